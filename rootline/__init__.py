"""Rootline: content-addressed manifests with a signed, compare-and-swap root.

A working directory's tracked files are uploaded to a content-addressed
store, a manifest naming every file by CID is published, and the CID of
that manifest becomes the new root of a namespace in the root registry.
The registry only advances when the caller's view of the current root is
still current, so concurrent pushers never silently overwrite each other.
"""

__version__ = "0.1.0"
__description__ = "Content-addressed manifests with a signed, compare-and-swap root"

from rootline.core.cid import ContentId, HashingParams
from rootline.core.push import PushOrchestrator
from rootline.models.manifest import Manifest, ManifestObject
from rootline.cli.app import app as cli

__all__ = [
    "ContentId",
    "HashingParams",
    "Manifest",
    "ManifestObject",
    "PushOrchestrator",
    "cli",
    "__version__",
]

"""rootline data models — all Pydantic v2, all frozen (immutable)."""

from rootline.models.manifest import Manifest, ManifestObject, normalize_path
from rootline.models.push import (
    VALID_TRANSITIONS,
    PushReport,
    PushState,
)
from rootline.models.registry import RootRecord, RootUpdate

__all__ = [
    # manifest
    "Manifest",
    "ManifestObject",
    "normalize_path",
    # push
    "PushState",
    "PushReport",
    "VALID_TRANSITIONS",
    # registry
    "RootUpdate",
    "RootRecord",
]

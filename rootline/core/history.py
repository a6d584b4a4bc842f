"""Walk the root history backwards through published manifests.

Each published manifest names its predecessor in ``previous_root``, so from
any root a reader can recover every earlier state.  Where the CID can be
recomputed locally the fetched bytes are checked against it, which makes a
lying gateway detectable.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Protocol

from pydantic import ValidationError

from rootline.core.cid import ContentId, verify_cid
from rootline.errors import GatewayError, VerificationError
from rootline.models.manifest import Manifest

logger = logging.getLogger(__name__)


class ContentReader(Protocol):
    async def fetch(self, cid: ContentId, path: str | None = None) -> bytes: ...


async def load_manifest(reader: ContentReader, root: ContentId) -> Manifest:
    """Fetch and decode the manifest published at *root*."""
    data = await reader.fetch(root)
    if verify_cid(data, root) is False:
        raise VerificationError(
            f"content served for {root} does not hash to it", expected=root
        )
    try:
        return Manifest.from_bytes(data)
    except (ValueError, ValidationError) as exc:
        raise GatewayError(f"{root} is not a rootline manifest: {exc}") from exc


async def walk_history(
    reader: ContentReader, root: ContentId | None, *, limit: int | None = None
) -> AsyncIterator[tuple[ContentId, Manifest]]:
    """Yield ``(root, manifest)`` pairs from *root* back to the first push."""
    current = root
    count = 0
    while current is not None and (limit is None or count < limit):
        manifest = await load_manifest(reader, current)
        logger.debug("history: %s -> %s", current, manifest.previous_root)
        yield current, manifest
        current = manifest.previous_root
        count += 1

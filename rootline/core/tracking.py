"""Record working-directory files in the manifest.

CIDs are obtained from the content store's hash-only mode so they are
computed with exactly the parameters a later upload will use.  Nothing is
stored remotely here; that is push's job.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from pathlib import Path

from rootline.bridge.content_store import ContentStore
from rootline.core.local_state import LocalState
from rootline.core.push import gather_bounded
from rootline.errors import LocalStateError
from rootline.models.manifest import Manifest, ManifestObject

logger = logging.getLogger(__name__)


def expand_paths(state: LocalState, paths: Iterable[Path]) -> list[str]:
    """Resolve files and directories to sorted manifest paths.

    Directories are walked recursively; the state directory is never
    included.
    """
    state_dir = state.state_dir.resolve()
    found: set[str] = set()
    for path in paths:
        path = Path(path)
        candidates = sorted(p for p in path.rglob("*") if p.is_file()) if path.is_dir() else [path]
        for candidate in candidates:
            resolved = candidate.resolve()
            if resolved == state_dir or state_dir in resolved.parents:
                continue
            found.add(state.relative_path(candidate))
    return sorted(found)


async def track_paths(
    state: LocalState,
    store: ContentStore,
    paths: Iterable[Path],
    *,
    max_concurrency: int = 8,
) -> tuple[Manifest, list[str]]:
    """Hash *paths* and record them in the local manifest.

    Returns the saved manifest and the manifest paths whose entry changed.
    """
    manifest = state.load_manifest()
    rel_paths = expand_paths(state, paths)

    async def _hash(rel: str) -> ManifestObject:
        data = await asyncio.to_thread(state.read_object, rel)
        cid = await store.hash_only(data)
        return ManifestObject(path=rel, cid=cid, size_bytes=len(data))

    objects = await gather_bounded(
        [lambda rel=rel: _hash(rel) for rel in rel_paths], max_concurrency
    )

    changed: list[str] = []
    for obj in objects:
        if manifest.get(obj.path) != obj:
            manifest = manifest.with_object(obj)
            changed.append(obj.path)
            logger.info("Tracked %s as %s", obj.path, obj.cid)
    if changed:
        state.save_manifest(manifest)
    return manifest, changed


def untrack_paths(state: LocalState, paths: Iterable[str]) -> Manifest:
    """Remove entries from the local manifest; files are left alone.

    Nothing is saved unless every path is tracked.
    """
    manifest = state.load_manifest()
    for path in paths:
        try:
            manifest = manifest.without_path(path)
        except KeyError:
            raise LocalStateError(f"{path} is not tracked") from None
        logger.info("Untracked %s", path)
    state.save_manifest(manifest)
    return manifest

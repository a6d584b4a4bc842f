"""Unit tests for recording working-directory files in the manifest."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from rootline.bridge.memory import InMemoryContentStore
from rootline.core.cid import compute_cid
from rootline.core.local_state import LocalState
from rootline.core.tracking import expand_paths, track_paths, untrack_paths
from rootline.errors import LocalStateError


def _write(root: Path, files: dict[str, bytes]) -> None:
    for rel, data in files.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)


class TestExpandPaths:
    def test_directories_are_walked(self, local_state: LocalState):
        _write(local_state.working_dir, {"a.txt": b"a", "docs/x/y.md": b"y", "docs/z.md": b"z"})
        paths = expand_paths(local_state, [local_state.working_dir])
        assert paths == ["a.txt", "docs/x/y.md", "docs/z.md"]

    def test_state_dir_is_skipped(self, local_state: LocalState):
        _write(local_state.working_dir, {"a.txt": b"a"})
        paths = expand_paths(local_state, [local_state.working_dir])
        assert not any(p.startswith(".rootline") for p in paths)

    def test_duplicates_collapse(self, local_state: LocalState):
        _write(local_state.working_dir, {"docs/z.md": b"z"})
        docs = local_state.working_dir / "docs"
        assert expand_paths(local_state, [docs, docs / "z.md"]) == ["docs/z.md"]


class TestTrackPaths:
    def test_tracks_new_files(self, local_state: LocalState, content_store: InMemoryContentStore):
        _write(local_state.working_dir, {"a.txt": b"alpha", "docs/b.md": b"bravo"})
        manifest, changed = asyncio.run(
            track_paths(local_state, content_store, [local_state.working_dir])
        )
        assert changed == ["a.txt", "docs/b.md"]
        assert manifest.get("a.txt").cid == compute_cid(b"alpha")
        assert manifest.get("docs/b.md").size_bytes == 5
        assert local_state.load_manifest() == manifest

    def test_hash_only_stores_nothing(self, local_state: LocalState, content_store: InMemoryContentStore):
        _write(local_state.working_dir, {"a.txt": b"alpha"})
        asyncio.run(track_paths(local_state, content_store, [local_state.working_dir]))
        assert content_store.blocks == {}
        assert content_store.uploads == []

    def test_unchanged_files_report_nothing(self, local_state: LocalState, content_store: InMemoryContentStore):
        _write(local_state.working_dir, {"a.txt": b"alpha"})
        asyncio.run(track_paths(local_state, content_store, [local_state.working_dir]))
        _, changed = asyncio.run(
            track_paths(local_state, content_store, [local_state.working_dir])
        )
        assert changed == []

    def test_modified_file_reported(self, local_state: LocalState, content_store: InMemoryContentStore):
        _write(local_state.working_dir, {"a.txt": b"alpha", "b.txt": b"bravo"})
        asyncio.run(track_paths(local_state, content_store, [local_state.working_dir]))
        _write(local_state.working_dir, {"b.txt": b"bravo v2"})
        manifest, changed = asyncio.run(
            track_paths(local_state, content_store, [local_state.working_dir])
        )
        assert changed == ["b.txt"]
        assert manifest.get("b.txt").cid == compute_cid(b"bravo v2")

    def test_keeps_previous_root(self, local_state: LocalState, content_store: InMemoryContentStore):
        prev = compute_cid(b"earlier manifest")
        local_state.save_manifest(local_state.load_manifest().with_previous_root(prev))
        _write(local_state.working_dir, {"a.txt": b"alpha"})
        manifest, _ = asyncio.run(
            track_paths(local_state, content_store, [local_state.working_dir])
        )
        assert manifest.previous_root == prev


class TestUntrackPaths:
    def test_removes_entry_and_keeps_file(self, tracked_state: LocalState):
        manifest = untrack_paths(tracked_state, ["a.txt"])
        assert manifest.get("a.txt") is None
        assert tracked_state.load_manifest().get("a.txt") is None
        assert (tracked_state.working_dir / "a.txt").exists()

    def test_unknown_path(self, tracked_state: LocalState):
        with pytest.raises(LocalStateError, match="not tracked"):
            untrack_paths(tracked_state, ["never-tracked.txt"])

    def test_unknown_path_saves_nothing(self, tracked_state: LocalState):
        before = tracked_state.load_manifest()
        with pytest.raises(LocalStateError):
            untrack_paths(tracked_state, ["a.txt", "never-tracked.txt"])
        assert tracked_state.load_manifest() == before

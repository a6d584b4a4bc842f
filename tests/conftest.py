"""Shared test fixtures for rootline."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from rootline.bridge.crypto_bridge import Signer
from rootline.bridge.memory import InMemoryContentStore, InMemoryRootRegistry
from rootline.core.cid import compute_cid
from rootline.core.local_state import LocalState
from rootline.core.push import PushOrchestrator
from rootline.models.manifest import Manifest, ManifestObject

NAMESPACE = "test-ns"

SAMPLE_FILES: dict[str, bytes] = {
    "a.txt": b"alpha",
    "docs/b.md": b"# bravo\n",
    "c.bin": bytes(range(256)),
}


@pytest.fixture
def sample_files() -> dict[str, bytes]:
    return dict(SAMPLE_FILES)


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def work_dir(tmp_dir: Path) -> Path:
    """An empty working directory."""
    path = tmp_dir / "work"
    path.mkdir()
    return path


@pytest.fixture
def local_state(work_dir: Path) -> LocalState:
    """Initialized local state with an empty manifest."""
    state = LocalState(work_dir)
    state.init()
    return state


@pytest.fixture
def write_files(local_state: LocalState) -> Callable[[dict[str, bytes]], Manifest]:
    """Factory fixture: write files into the working dir and track them."""

    def _write(files: dict[str, bytes]) -> Manifest:
        manifest = local_state.load_manifest()
        for rel, data in files.items():
            target = local_state.working_dir / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            manifest = manifest.with_object(
                ManifestObject(path=rel, cid=compute_cid(data), size_bytes=len(data))
            )
        local_state.save_manifest(manifest)
        return manifest

    return _write


@pytest.fixture
def tracked_state(local_state: LocalState, write_files) -> LocalState:
    """Local state tracking SAMPLE_FILES, never pushed."""
    write_files(SAMPLE_FILES)
    return local_state


@pytest.fixture
def content_store() -> InMemoryContentStore:
    return InMemoryContentStore()


@pytest.fixture
def registry() -> InMemoryRootRegistry:
    return InMemoryRootRegistry()


@pytest.fixture
def signer() -> Signer:
    return Signer.generate()


@pytest.fixture
def make_orchestrator(
    content_store: InMemoryContentStore,
    registry: InMemoryRootRegistry,
    signer: Signer,
    tracked_state: LocalState,
) -> Callable[..., PushOrchestrator]:
    """Factory fixture: build a PushOrchestrator over the in-memory backends."""

    def _factory(**overrides: Any) -> PushOrchestrator:
        kwargs: dict[str, Any] = {
            "content_store": content_store,
            "registry": registry,
            "signer": signer,
            "namespace": NAMESPACE,
            "local_state": tracked_state,
            "max_concurrency": 4,
        }
        kwargs.update(overrides)
        return PushOrchestrator(
            kwargs.pop("content_store"),
            kwargs.pop("registry"),
            kwargs.pop("signer"),
            **kwargs,
        )

    return _factory


@pytest.fixture
def snapshot() -> Callable[[LocalState], dict[str, bytes]]:
    """Capture every file under a state directory, byte for byte."""

    def _snapshot(state: LocalState) -> dict[str, bytes]:
        return {
            str(p.relative_to(state.state_dir)): p.read_bytes()
            for p in sorted(state.state_dir.rglob("*"))
            if p.is_file()
        }

    return _snapshot

"""Unit tests for the root registry — SQLite backend, in-memory backend, factory."""

from __future__ import annotations

import asyncio
import time
from pathlib import Path

import pytest

from rootline.bridge.crypto_bridge import Signer
from rootline.bridge.memory import InMemoryRootRegistry
from rootline.bridge.registry import (
    SqliteRootRegistry,
    build_update,
    check_update,
    open_registry,
)
from rootline.core.cid import compute_cid
from rootline.errors import (
    BackendFault,
    ConfigurationError,
    ConflictError,
    RegistryError,
    RegistryOutcomeUnknownError,
)

NS = "docs"
R1 = compute_cid(b"root-1")
R2 = compute_cid(b"root-2")
R3 = compute_cid(b"root-3")


@pytest.fixture(params=["sqlite", "memory"])
def any_registry(request, tmp_path: Path):
    """Each backend must honour the same compare-and-swap contract."""
    if request.param == "sqlite":
        return SqliteRootRegistry(tmp_path / "registry.db")
    return InMemoryRootRegistry()


# ---------------------------------------------------------------------------
# Test: compare-and-swap contract
# ---------------------------------------------------------------------------


class TestCompareAndSwap:
    def test_unset_namespace_has_no_root(self, any_registry):
        assert asyncio.run(any_registry.current_root(NS)) is None

    def test_first_swap_from_unset(self, any_registry, signer: Signer):
        record = asyncio.run(any_registry.compare_and_swap(NS, None, R1, signer))
        assert record.sequence == 1
        assert record.previous_root is None
        assert record.root == R1
        assert record.signer_public_key == signer.public_key
        assert asyncio.run(any_registry.current_root(NS)) == R1

    def test_swap_chain(self, any_registry, signer: Signer):
        async def _main():
            await any_registry.compare_and_swap(NS, None, R1, signer)
            record = await any_registry.compare_and_swap(NS, R1, R2, signer)
            return record, await any_registry.current_root(NS)

        record, current = asyncio.run(_main())
        assert record.sequence == 2
        assert record.previous_root == R1
        assert current == R2

    def test_stale_expected_root_conflicts(self, any_registry, signer: Signer):
        async def _main():
            await any_registry.compare_and_swap(NS, None, R1, signer)
            await any_registry.compare_and_swap(NS, R1, R2, signer)
            await any_registry.compare_and_swap(NS, R1, R3, signer)

        with pytest.raises(ConflictError) as exc_info:
            asyncio.run(_main())
        assert exc_info.value.expected == R1
        assert exc_info.value.actual == R2
        assert asyncio.run(any_registry.current_root(NS)) == R2

    def test_expecting_unset_on_set_namespace_conflicts(self, any_registry, signer: Signer):
        asyncio.run(any_registry.compare_and_swap(NS, None, R1, signer))
        with pytest.raises(ConflictError):
            asyncio.run(any_registry.compare_and_swap(NS, None, R2, signer))

    def test_conflict_is_not_a_backend_fault(self, any_registry, signer: Signer):
        asyncio.run(any_registry.compare_and_swap(NS, None, R1, signer))
        with pytest.raises(ConflictError) as exc_info:
            asyncio.run(any_registry.compare_and_swap(NS, R2, R3, signer))
        assert not isinstance(exc_info.value, BackendFault)

    def test_namespaces_are_independent(self, any_registry, signer: Signer):
        async def _main():
            await any_registry.compare_and_swap("one", None, R1, signer)
            await any_registry.compare_and_swap("two", None, R2, signer)
            return await any_registry.current_root("one"), await any_registry.current_root("two")

        assert asyncio.run(_main()) == (R1, R2)

    def test_history_and_chain(self, any_registry, signer: Signer):
        async def _main():
            await any_registry.compare_and_swap(NS, None, R1, signer)
            await any_registry.compare_and_swap(NS, R1, R2, signer)
            return await any_registry.history(NS), await any_registry.verify_chain(NS)

        history, valid = asyncio.run(_main())
        assert [r.root for r in history] == [R1, R2]
        assert history[1].previous_record_hash == history[0].record_hash
        assert valid is True


class TestAuthorization:
    def test_unauthorized_signer_rejected(self, tmp_path: Path, signer: Signer):
        other = Signer.generate()
        registry = SqliteRootRegistry(tmp_path / "r.db", authorized_keys=[other.public_key])
        with pytest.raises(RegistryError, match="not authorized"):
            asyncio.run(registry.compare_and_swap(NS, None, R1, signer))
        assert asyncio.run(registry.current_root(NS)) is None

    def test_authorized_signer_accepted(self, tmp_path: Path, signer: Signer):
        registry = SqliteRootRegistry(tmp_path / "r.db", authorized_keys=[signer.public_key])
        asyncio.run(registry.compare_and_swap(NS, None, R1, signer))
        assert asyncio.run(registry.current_root(NS)) == R1

    def test_forged_signature_rejected(self, signer: Signer):
        update = build_update(NS, None, R1, signer)
        forged = update.model_copy(update={"new_root": R2})
        with pytest.raises(RegistryError, match="signature"):
            check_update(forged, None)


# ---------------------------------------------------------------------------
# Test: SQLite persistence
# ---------------------------------------------------------------------------


class TestSqlitePersistence:
    def test_root_survives_reopen(self, tmp_path: Path, signer: Signer):
        db = tmp_path / "registry.db"
        asyncio.run(SqliteRootRegistry(db).compare_and_swap(NS, None, R1, signer))
        reopened = SqliteRootRegistry(db)
        assert asyncio.run(reopened.current_root(NS)) == R1
        assert asyncio.run(reopened.verify_chain(NS)) is True

    def test_creates_parent_directories(self, tmp_path: Path):
        SqliteRootRegistry(tmp_path / "a" / "b" / "registry.db")
        assert (tmp_path / "a" / "b" / "registry.db").exists()


class TestSqliteTimeouts:
    @pytest.fixture
    def slow_registry(self, tmp_path: Path, monkeypatch) -> SqliteRootRegistry:
        registry = SqliteRootRegistry(tmp_path / "registry.db", timeout_seconds=0.05)

        def _stall(*args):
            time.sleep(0.3)

        monkeypatch.setattr(registry, "_apply_update", _stall)
        monkeypatch.setattr(registry, "_history_sync", _stall)
        return registry

    def test_cas_timeout_is_outcome_unknown(self, slow_registry, signer: Signer):
        with pytest.raises(RegistryOutcomeUnknownError, match="re-read"):
            asyncio.run(slow_registry.compare_and_swap(NS, None, R1, signer))

    def test_read_timeout_is_plain_registry_error(self, slow_registry):
        with pytest.raises(RegistryError, match="history timed out") as exc_info:
            asyncio.run(slow_registry.history(NS))
        assert not isinstance(exc_info.value, RegistryOutcomeUnknownError)


# ---------------------------------------------------------------------------
# Test: in-memory fault knobs
# ---------------------------------------------------------------------------


class TestInMemoryKnobs:
    def test_injected_fault(self, signer: Signer):
        registry = InMemoryRootRegistry()
        registry.fault = RegistryError("unavailable")
        with pytest.raises(RegistryError, match="unavailable"):
            asyncio.run(registry.compare_and_swap(NS, None, R1, signer))
        assert registry.calls == 1

    def test_timeout_outcome_unknown_but_applied(self, signer: Signer):
        registry = InMemoryRootRegistry(timeout_seconds=0.05)
        registry.delay_seconds = 0.2

        async def _main():
            with pytest.raises(RegistryOutcomeUnknownError):
                await registry.compare_and_swap(NS, None, R1, signer)
            await asyncio.sleep(0.4)
            return await registry.current_root(NS)

        assert asyncio.run(_main()) == R1

    def test_seed(self):
        registry = InMemoryRootRegistry()
        registry.seed(NS, R1)
        assert asyncio.run(registry.current_root(NS)) == R1


# ---------------------------------------------------------------------------
# Test: factory
# ---------------------------------------------------------------------------


class TestOpenRegistry:
    def test_sqlite_url(self, tmp_path: Path):
        registry = open_registry(f"sqlite:///{tmp_path / 'reg.db'}")
        assert isinstance(registry, SqliteRootRegistry)

    def test_memory_url(self):
        assert isinstance(open_registry("memory://"), InMemoryRootRegistry)

    @pytest.mark.parametrize("url", ["", "sqlite:///", "https://chain.example/rpc"])
    def test_unsupported(self, url):
        with pytest.raises(ConfigurationError):
            open_registry(url)

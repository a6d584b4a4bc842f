"""In-memory content store and root registry.

Deterministic substitutes for the remote services.  They implement the same
protocols as the real bridges and add knobs for injecting the failures push
has to survive: CID mismatches, probe faults, registry faults and slow
registry calls whose outcome is unknown to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable

from rootline.bridge.crypto_bridge import Signer
from rootline.bridge.registry import build_update, check_update, seal_record, verify_records
from rootline.core.cid import DEFAULT_HASHING, ContentId, HashingParams, compute_cid
from rootline.errors import (
    ConflictError,
    GatewayError,
    RegistryOutcomeUnknownError,
)
from rootline.models.registry import RootRecord, RootUpdate

logger = logging.getLogger(__name__)


class InMemoryContentStore:
    """A content store that keeps blocks in a dict.

    Parameters
    ----------
    hashing:
        Parameters used to compute CIDs of uploaded bytes.
    cid_override:
        Optional hook ``(data, computed) -> reported``; lets a test make the
        "remote" report a different CID than the one it computed.
    """

    def __init__(
        self,
        *,
        hashing: HashingParams = DEFAULT_HASHING,
        cid_override: Callable[[bytes, ContentId], ContentId] | None = None,
    ) -> None:
        self._hashing = hashing
        self._cid_override = cid_override
        self.blocks: dict[ContentId, bytes] = {}
        self.probe_fault: Exception | None = None
        self.upload_fault: Exception | None = None
        self.probes: list[ContentId] = []
        self.uploads: list[ContentId] = []

    def put(self, data: bytes) -> ContentId:
        """Seed a block directly, bypassing counters and fault injection."""
        cid = compute_cid(data, self._hashing, single_block=False)
        self.blocks[cid] = bytes(data)
        return cid

    async def exists(self, cid: ContentId) -> bool:
        self.probes.append(cid)
        if self.probe_fault is not None:
            raise self.probe_fault
        return cid in self.blocks

    async def upload(self, data: bytes) -> ContentId:
        if self.upload_fault is not None:
            raise self.upload_fault
        computed = compute_cid(data, self._hashing, single_block=False)
        reported = computed
        if self._cid_override is not None:
            reported = self._cid_override(data, computed)
        self.blocks[computed] = bytes(data)
        self.uploads.append(computed)
        return reported

    async def hash_only(self, data: bytes) -> ContentId:
        return compute_cid(data, self._hashing, single_block=False)

    async def fetch(self, cid: ContentId, path: str | None = None) -> bytes:
        if path:
            raise GatewayError("sub-path resolution is not supported in memory")
        try:
            return self.blocks[cid]
        except KeyError:
            raise GatewayError(f"{cid} is not held by this store") from None

    async def aclose(self) -> None:
        pass

    async def __aenter__(self) -> InMemoryContentStore:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()


class InMemoryRootRegistry:
    """A root registry held in a dict.

    The swap body contains no ``await``, so on a single event loop it is
    atomic with respect to every other coroutine.

    Parameters
    ----------
    timeout_seconds:
        Bound on each call when ``delay_seconds`` is set.
    authorized_keys:
        Hex public keys allowed to move roots; ``None`` accepts any signer.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 30.0,
        authorized_keys: Iterable[str] | None = None,
    ) -> None:
        self._timeout = timeout_seconds
        self._authorized = frozenset(authorized_keys) if authorized_keys is not None else None
        self._roots: dict[str, ContentId] = {}
        self._records: dict[str, list[RootRecord]] = {}
        self.fault: Exception | None = None
        self.delay_seconds: float = 0.0
        self.calls: int = 0

    def seed(self, namespace: str, root: ContentId) -> None:
        """Set a root directly, without a record."""
        self._roots[namespace] = root

    async def current_root(self, namespace: str) -> ContentId | None:
        return self._roots.get(namespace)

    async def compare_and_swap(
        self,
        namespace: str,
        expected_root: ContentId | None,
        new_root: ContentId,
        signer: Signer,
    ) -> RootRecord:
        self.calls += 1
        if self.fault is not None:
            raise self.fault
        update = build_update(namespace, expected_root, new_root, signer)
        if self.delay_seconds:
            apply = asyncio.ensure_future(self._apply_later(update))
            try:
                return await asyncio.wait_for(asyncio.shield(apply), self._timeout)
            except asyncio.TimeoutError as exc:
                raise RegistryOutcomeUnknownError(
                    f"compare_and_swap timed out after {self._timeout}s"
                ) from exc
        return self._apply(update)

    async def history(self, namespace: str) -> list[RootRecord]:
        return list(self._records.get(namespace, []))

    async def verify_chain(self, namespace: str) -> bool:
        return verify_records(namespace, self._records.get(namespace, []))

    async def _apply_later(self, update: RootUpdate) -> RootRecord:
        await asyncio.sleep(self.delay_seconds)
        return self._apply(update)

    def _apply(self, update: RootUpdate) -> RootRecord:
        check_update(update, self._authorized)
        current = self._roots.get(update.namespace)
        if current != update.expected_root:
            raise ConflictError(update.namespace, update.expected_root, current)
        records = self._records.setdefault(update.namespace, [])
        record = seal_record(
            update,
            sequence=len(records) + 1,
            previous_record_hash=records[-1].record_hash if records else "",
        )
        records.append(record)
        self._roots[update.namespace] = update.new_root
        logger.debug(
            "InMemoryRootRegistry %s: %s -> %s", update.namespace, current, update.new_root
        )
        return record


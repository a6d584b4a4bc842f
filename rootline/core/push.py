"""Push orchestrator — publish the local manifest and advance the root.

The PushOrchestrator wires a ContentStore, a RootRegistry, a Signer and the
working directory's LocalState into one protocol:

1. Probe every manifest object on the content store (concurrently).
2. Upload the missing ones and verify the CID the remote computed.
3. Chain the manifest onto the local root and upload it; its CID is the
   new root.
4. Compare-and-swap the registry from the local root to the new root.
5. Only then persist the new root and manifest locally.

Nothing is written locally before the registry confirms, so a failure at
any earlier step leaves the working directory exactly as it was.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

from rootline.bridge.content_store import ContentStore
from rootline.bridge.crypto_bridge import Signer
from rootline.bridge.registry import RootRegistry
from rootline.core.cid import ContentId, verify_cid
from rootline.core.local_state import LocalState
from rootline.errors import (
    ConfigurationError,
    ConflictError,
    ContentStoreError,
    LocalStateError,
    RegistryError,
    RootlineError,
    VerificationError,
)
from rootline.models.manifest import Manifest, ManifestObject
from rootline.models.push import VALID_TRANSITIONS, PushReport, PushState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InvalidTransitionError(RuntimeError):
    """Raised when a push attempt is driven through an illegal transition."""


class PushAttempt:
    """Tracks the state of one push attempt."""

    def __init__(self, namespace: str) -> None:
        self.namespace = namespace
        self.state = PushState.IDLE

    def advance(self, to_state: PushState) -> None:
        if to_state not in VALID_TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"push of {self.namespace!r}: {self.state.value} -> {to_state.value} "
                "is not a valid transition"
            )
        logger.debug("push %s: %s -> %s", self.namespace, self.state.value, to_state.value)
        self.state = to_state

    def fail(self, exc: RootlineError, to_state: PushState = PushState.FAULTED) -> None:
        """Move to a terminal failure state and stamp it on *exc*."""
        self.advance(to_state)
        exc.state = to_state


async def gather_bounded(
    calls: Iterable[Callable[[], Awaitable[T]]], limit: int
) -> list[T]:
    """Run *calls* with at most *limit* in flight; fail fast.

    On the first failure the remaining calls are cancelled and the error of
    the earliest failing call (in input order) is raised.
    """
    semaphore = asyncio.Semaphore(limit)

    async def _run(call: Callable[[], Awaitable[T]]) -> T:
        async with semaphore:
            return await call()

    tasks = [asyncio.ensure_future(_run(call)) for call in calls]
    if not tasks:
        return []
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except BaseException:
        for task in tasks:
            task.cancel()
        raise
    if pending:
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
    for task in tasks:
        if task in done and not task.cancelled() and task.exception() is not None:
            raise task.exception()
    return [task.result() for task in tasks]


class PushOrchestrator:
    """Publishes a manifest and advances the namespace root exactly once.

    Parameters
    ----------
    content_store:
        Where objects and manifests are uploaded.
    registry:
        Holder of the namespace's root pointer.
    signer:
        Authorizes the compare-and-swap.
    namespace:
        Registry namespace the root belongs to.
    local_state:
        Working directory to read objects from and commit to.
    max_concurrency:
        Upper bound on in-flight probes and uploads.
    """

    def __init__(
        self,
        content_store: ContentStore | None,
        registry: RootRegistry | None,
        signer: Signer | None,
        *,
        namespace: str,
        local_state: LocalState,
        max_concurrency: int = 8,
    ) -> None:
        missing = [
            name
            for name, value in (
                ("content store", content_store),
                ("root registry", registry),
                ("signer", signer),
            )
            if value is None
        ]
        if not namespace:
            missing.append("namespace")
        if missing:
            raise ConfigurationError(f"push requires: {', '.join(missing)}")
        if max_concurrency < 1:
            raise ConfigurationError("max_concurrency must be at least 1")

        self._store = content_store
        self._registry = registry
        self._signer = signer
        self._namespace = namespace
        self._state = local_state
        self._max_concurrency = max_concurrency

    @property
    def namespace(self) -> str:
        return self._namespace

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def push_working_dir(self) -> PushReport:
        """Load root and manifest from local state, then push them."""
        return await self.push(self._state.load_root(), self._state.load_manifest())

    async def push(self, local_root: ContentId | None, manifest: Manifest) -> PushReport:
        """Run the push protocol for *manifest* chained onto *local_root*.

        Raises
        ------
        VerificationError
            A remote CID did not match the manifest.  Registry untouched.
        ContentStoreError
            Probe or upload failed.  Registry untouched.
        ConflictError
            Someone else advanced the root first.  Local state untouched.
        RegistryError
            Registry failure (``RegistryOutcomeUnknownError`` on timeout).
        LocalStateError
            Reading an object failed, or persisting after commit failed
            (``error.state`` is then ``COMMITTED``).
        """
        attempt = PushAttempt(self._namespace)
        entries = list(manifest.entries())
        logger.info(
            "Pushing %d object(s) to %s (local root %s)",
            len(entries),
            self._namespace,
            local_root or "unset",
        )

        # 1. Probe
        attempt.advance(PushState.PROBING)
        try:
            present = await gather_bounded(
                [lambda obj=obj: self._probe(obj) for _, obj in entries],
                self._max_concurrency,
            )
        except RootlineError as exc:
            attempt.fail(exc)
            raise
        except Exception as exc:
            err = ContentStoreError(f"probing {self._namespace!r} failed: {exc}")
            attempt.fail(err)
            raise err from exc

        missing = [obj for (_, obj), found in zip(entries, present) if not found]
        skipped = [path for (path, _), found in zip(entries, present) if found]

        # 2. Upload missing objects, then the chained manifest
        attempt.advance(PushState.UPLOADING)
        published = manifest.with_previous_root(local_root)
        try:
            await gather_bounded(
                [lambda obj=obj: self._upload_object(obj) for obj in missing],
                self._max_concurrency,
            )
            manifest_bytes = published.to_bytes()
            new_root = await self._store.upload(manifest_bytes)
            if verify_cid(manifest_bytes, new_root) is False:
                raise VerificationError(
                    f"manifest: remote reported {new_root}, which does not hash the bytes sent",
                    actual=new_root,
                )
        except RootlineError as exc:
            attempt.fail(exc)
            raise
        except Exception as exc:
            err = ContentStoreError(f"uploading to {self._namespace!r} failed: {exc}")
            attempt.fail(err)
            raise err from exc
        attempt.advance(PushState.ROOT_COMPUTED)
        logger.info("Manifest uploaded: new root %s", new_root)

        # 3. Compare-and-swap
        attempt.advance(PushState.REGISTRY_PENDING)
        try:
            record = await self._registry.compare_and_swap(
                self._namespace, local_root, new_root, self._signer
            )
        except ConflictError as exc:
            attempt.fail(exc, PushState.CONFLICTED)
            logger.warning(
                "Root of %s moved to %s before this push; refresh and retry",
                self._namespace,
                exc.actual,
            )
            raise
        except RootlineError as exc:
            attempt.fail(exc)
            raise
        except Exception as exc:
            err = RegistryError(f"compare_and_swap on {self._namespace!r} failed: {exc}")
            attempt.fail(err)
            raise err from exc
        attempt.advance(PushState.COMMITTED)

        # 4. Persist, strictly after the registry confirmed
        try:
            self._state.commit(new_root, published)
        except LocalStateError as exc:
            exc.state = PushState.COMMITTED
            logger.warning(
                "Registry committed %s but local state was not updated: %s",
                new_root,
                exc,
            )
            raise

        logger.info(
            "Committed %s: %s -> %s (%d uploaded, %d already present)",
            self._namespace,
            local_root or "unset",
            new_root,
            len(missing),
            len(skipped),
        )
        return PushReport(
            namespace=self._namespace,
            previous_root=local_root,
            new_root=new_root,
            uploaded=[obj.path for obj in missing],
            skipped=skipped,
            registry_sequence=record.sequence,
        )

    # ------------------------------------------------------------------
    # Per-object steps
    # ------------------------------------------------------------------

    async def _probe(self, obj: ManifestObject) -> bool:
        found = await self._store.exists(obj.cid)
        logger.debug("probe %s (%s): %s", obj.path, obj.cid, "present" if found else "absent")
        return found

    async def _upload_object(self, obj: ManifestObject) -> None:
        data = await asyncio.to_thread(self._state.read_object, obj.path)
        reported = await self._store.upload(data)
        if reported != obj.cid:
            raise VerificationError(
                f"{obj.path}: remote computed {reported}, manifest records {obj.cid}",
                path=obj.path,
                expected=obj.cid,
                actual=reported,
            )
        logger.info("Uploaded %s (%s, %d bytes)", obj.path, obj.cid, len(data))

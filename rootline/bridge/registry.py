"""Root registry bridge — the single compare-and-swap root pointer.

The registry holds exactly one current root CID per namespace.  Its only
mutating operation is ``compare_and_swap``: set the root to ``new`` iff the
current root equals ``expected``.  If two writers race from the same
expected root, at most one wins; the other gets ``ConflictError``.

Every accepted update is also appended to a hash-chained record log
(``previous_record_hash`` → ``record_hash``), so the sequence of roots a
namespace has pointed at can be audited and tamper-checked.

``SqliteRootRegistry`` runs the swap inside ``BEGIN IMMEDIATE`` so that
processes sharing the database file serialize on SQLite's write lock.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol, TypeVar

from rootline.bridge.crypto_bridge import Signer, key_fingerprint, verify_data
from rootline.core.cid import ContentId
from rootline.core.hasher import compute_record_hash
from rootline.errors import (
    ConfigurationError,
    ConflictError,
    RegistryError,
    RegistryIntegrityError,
    RegistryOutcomeUnknownError,
)
from rootline.models.registry import RootRecord, RootUpdate

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RootRegistry(Protocol):
    """What push needs from the external root registry."""

    async def current_root(self, namespace: str) -> ContentId | None: ...

    async def compare_and_swap(
        self,
        namespace: str,
        expected_root: ContentId | None,
        new_root: ContentId,
        signer: Signer,
    ) -> RootRecord: ...


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def build_update(
    namespace: str,
    expected_root: ContentId | None,
    new_root: ContentId,
    signer: Signer,
) -> RootUpdate:
    """Construct and sign a ``RootUpdate``."""
    unsigned = RootUpdate(
        namespace=namespace,
        expected_root=expected_root,
        new_root=new_root,
        signer_public_key=signer.public_key,
        signature="",
    )
    return unsigned.model_copy(
        update={"signature": signer.sign(unsigned.signing_bytes())}
    )


def check_update(update: RootUpdate, authorized_keys: frozenset[str] | None) -> None:
    """Reject updates with a bad signature or an unauthorized signer."""
    if not verify_data(update.signing_bytes(), update.signature, update.signer_public_key):
        raise RegistryError(
            f"signature from {key_fingerprint(update.signer_public_key)} "
            f"rejected for namespace {update.namespace!r}"
        )
    if authorized_keys is not None and update.signer_public_key not in authorized_keys:
        raise RegistryError(
            f"signer {key_fingerprint(update.signer_public_key)} is not authorized "
            f"for namespace {update.namespace!r}"
        )


def seal_record(
    update: RootUpdate, *, sequence: int, previous_record_hash: str
) -> RootRecord:
    """Turn an accepted update into a sealed, chain-linked record."""
    record = RootRecord(
        namespace=update.namespace,
        sequence=sequence,
        previous_root=update.expected_root,
        root=update.new_root,
        signer_public_key=update.signer_public_key,
        signature=update.signature,
        previous_record_hash=previous_record_hash,
    )
    record_dict = record.model_dump(mode="json")
    record_dict["record_hash"] = ""
    return record.model_copy(update={"record_hash": compute_record_hash(record_dict)})


def verify_records(namespace: str, records: Iterable[RootRecord]) -> bool:
    """Walk *records* in order and check hashes, links and signatures.

    Returns ``True`` if the chain is valid, raises ``RegistryIntegrityError``
    otherwise.
    """
    prev_hash = ""
    prev_root: ContentId | None = None
    for record in records:
        if record.previous_record_hash != prev_hash:
            raise RegistryIntegrityError(
                f"Chain broken at record {record.sequence} of {namespace!r}: "
                f"expected previous_hash={prev_hash!r}, "
                f"got {record.previous_record_hash!r}"
            )
        expected_hash = compute_record_hash(record.model_dump(mode="json"))
        if record.record_hash != expected_hash:
            raise RegistryIntegrityError(
                f"Tampered record {record.sequence} of {namespace!r}: "
                f"expected hash={expected_hash!r}, got {record.record_hash!r}"
            )
        if record.previous_root != prev_root:
            raise RegistryIntegrityError(
                f"Record {record.sequence} of {namespace!r} swaps from "
                f"{record.previous_root}, but the root was {prev_root}"
            )
        update = RootUpdate(
            namespace=record.namespace,
            expected_root=record.previous_root,
            new_root=record.root,
            signer_public_key=record.signer_public_key,
            signature=record.signature,
        )
        if not verify_data(update.signing_bytes(), record.signature, record.signer_public_key):
            raise RegistryIntegrityError(
                f"Record {record.sequence} of {namespace!r} carries an invalid signature"
            )
        prev_hash = record.record_hash
        prev_root = record.root
    return True


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_ROOTS = """
CREATE TABLE IF NOT EXISTS roots (
    namespace     TEXT PRIMARY KEY,
    root          TEXT NOT NULL,
    sequence      INTEGER NOT NULL,
    record_hash   TEXT NOT NULL
);
"""

_CREATE_RECORDS = """
CREATE TABLE IF NOT EXISTS root_records (
    id                    INTEGER PRIMARY KEY AUTOINCREMENT,
    record_id             TEXT NOT NULL UNIQUE,
    namespace             TEXT NOT NULL,
    sequence              INTEGER NOT NULL,
    previous_root         TEXT,
    root                  TEXT NOT NULL,
    signer_public_key     TEXT NOT NULL,
    signature             TEXT NOT NULL,
    timestamp_utc         TEXT NOT NULL,
    previous_record_hash  TEXT NOT NULL DEFAULT '',
    record_hash           TEXT NOT NULL UNIQUE,
    UNIQUE (namespace, sequence)
);
"""

_CREATE_IDX_NAMESPACE = """
CREATE INDEX IF NOT EXISTS idx_records_namespace ON root_records(namespace, sequence);
"""


class SqliteRootRegistry:
    """``RootRegistry`` backed by a SQLite database file.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.  Created if it does not exist.
    timeout_seconds:
        Bound on each registry call.  A call that exceeds it raises
        ``RegistryOutcomeUnknownError``: the worker thread may still commit.
    authorized_keys:
        Hex public keys allowed to move roots.  ``None`` accepts any key
        with a valid signature.
    """

    def __init__(
        self,
        db_path: Path,
        *,
        timeout_seconds: float = 30.0,
        authorized_keys: Iterable[str] | None = None,
    ) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._timeout = timeout_seconds
        self._authorized = frozenset(authorized_keys) if authorized_keys is not None else None
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self._db_path),
            timeout=self._timeout,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_schema(self) -> None:
        conn = self._connect()
        try:
            conn.execute(_CREATE_ROOTS)
            conn.execute(_CREATE_RECORDS)
            conn.execute(_CREATE_IDX_NAMESPACE)
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # RootRegistry protocol
    # ------------------------------------------------------------------

    async def current_root(self, namespace: str) -> ContentId | None:
        return await self._call(self._current_root_sync, namespace, what="current_root")

    async def compare_and_swap(
        self,
        namespace: str,
        expected_root: ContentId | None,
        new_root: ContentId,
        signer: Signer,
    ) -> RootRecord:
        update = build_update(namespace, expected_root, new_root, signer)
        return await self._call(self._apply_update, update, what="compare_and_swap")

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    async def history(self, namespace: str) -> list[RootRecord]:
        """All accepted updates for *namespace*, oldest first."""
        return await self._call(self._history_sync, namespace, what="history")

    async def verify_chain(self, namespace: str) -> bool:
        return verify_records(namespace, await self.history(namespace))

    # ------------------------------------------------------------------
    # Internal: synchronous bodies run in a worker thread
    # ------------------------------------------------------------------

    async def _call(self, fn: Callable[..., T], *args: Any, what: str) -> T:
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), self._timeout)
        except asyncio.TimeoutError as exc:
            if what == "compare_and_swap":
                raise RegistryOutcomeUnknownError(
                    f"{what} timed out after {self._timeout}s; "
                    "re-read the current root before retrying"
                ) from exc
            raise RegistryError(f"{what} timed out after {self._timeout}s") from exc

    def _current_root_sync(self, namespace: str) -> ContentId | None:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT root FROM roots WHERE namespace = ?", (namespace,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise RegistryError(f"reading root of {namespace!r} failed: {exc}") from exc
        finally:
            conn.close()
        return ContentId.parse(row[0]) if row else None

    def _apply_update(self, update: RootUpdate) -> RootRecord:
        check_update(update, self._authorized)
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT root, sequence, record_hash FROM roots WHERE namespace = ?",
                (update.namespace,),
            ).fetchone()
            current = ContentId.parse(row[0]) if row else None
            if current != update.expected_root:
                conn.execute("ROLLBACK")
                raise ConflictError(update.namespace, update.expected_root, current)

            sequence = row[1] + 1 if row else 1
            record = seal_record(
                update, sequence=sequence, previous_record_hash=row[2] if row else ""
            )
            self._insert(conn, record)
            conn.execute(
                """
                INSERT INTO roots (namespace, root, sequence, record_hash)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(namespace) DO UPDATE SET
                    root = excluded.root,
                    sequence = excluded.sequence,
                    record_hash = excluded.record_hash
                """,
                (record.namespace, str(record.root), record.sequence, record.record_hash),
            )
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise RegistryError(
                f"compare_and_swap on {update.namespace!r} failed: {exc}"
            ) from exc
        finally:
            conn.close()

        logger.info(
            "Registry %s: %s -> %s (seq=%d, signer=%s)",
            record.namespace,
            record.previous_root,
            record.root,
            record.sequence,
            key_fingerprint(record.signer_public_key),
        )
        return record

    @staticmethod
    def _insert(conn: sqlite3.Connection, record: RootRecord) -> None:
        conn.execute(
            """
            INSERT INTO root_records
                (record_id, namespace, sequence, previous_root, root,
                 signer_public_key, signature, timestamp_utc,
                 previous_record_hash, record_hash)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.record_id,
                record.namespace,
                record.sequence,
                str(record.previous_root) if record.previous_root is not None else None,
                str(record.root),
                record.signer_public_key,
                record.signature,
                record.timestamp_utc.isoformat(),
                record.previous_record_hash,
                record.record_hash,
            ),
        )

    def _history_sync(self, namespace: str) -> list[RootRecord]:
        conn = self._connect()
        try:
            rows = conn.execute(
                """
                SELECT record_id, namespace, sequence, previous_root, root,
                       signer_public_key, signature, timestamp_utc,
                       previous_record_hash, record_hash
                FROM root_records WHERE namespace = ? ORDER BY sequence ASC
                """,
                (namespace,),
            ).fetchall()
        except sqlite3.Error as exc:
            raise RegistryError(f"reading history of {namespace!r} failed: {exc}") from exc
        finally:
            conn.close()
        return [self._row_to_record(row) for row in rows]

    @staticmethod
    def _row_to_record(row: tuple) -> RootRecord:
        (
            record_id,
            namespace,
            sequence,
            previous_root,
            root,
            signer_public_key,
            signature,
            timestamp_utc,
            previous_record_hash,
            record_hash,
        ) = row
        return RootRecord(
            record_id=record_id,
            namespace=namespace,
            sequence=sequence,
            previous_root=previous_root,
            root=root,
            signer_public_key=signer_public_key,
            signature=signature,
            timestamp_utc=datetime.fromisoformat(timestamp_utc),
            previous_record_hash=previous_record_hash,
            record_hash=record_hash,
        )

    def __repr__(self) -> str:
        return f"SqliteRootRegistry(db_path={str(self._db_path)!r})"


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def open_registry(
    url: str,
    *,
    timeout_seconds: float = 30.0,
    authorized_keys: Iterable[str] | None = None,
) -> RootRegistry:
    """Open a registry from a URL.

    Supported schemes: ``sqlite:///<path>`` and ``memory://`` (process-local,
    for dry runs).
    """
    if url.startswith("sqlite:///"):
        path = url.removeprefix("sqlite:///")
        if not path:
            raise ConfigurationError(f"registry URL has no database path: {url!r}")
        return SqliteRootRegistry(
            Path(path), timeout_seconds=timeout_seconds, authorized_keys=authorized_keys
        )
    if url.startswith("memory://"):
        from rootline.bridge.memory import InMemoryRootRegistry

        return InMemoryRootRegistry(
            timeout_seconds=timeout_seconds, authorized_keys=authorized_keys
        )
    raise ConfigurationError(f"unsupported registry URL: {url!r}")

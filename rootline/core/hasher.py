"""Canonical hashing helpers for manifests and registry records.

Every byte sequence that gets content-addressed or signed goes through
``canonical_json_bytes`` so that two writers serializing the same logical
value always produce the same bytes, and therefore the same CID.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact.

    - sorted keys
    - no whitespace separators (",", ":")
    - ensure_ascii=True
    - UTF-8 encoding
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def compute_record_hash(record_dict: dict[str, Any]) -> str:
    """SHA-256 of a registry record (excluding the record_hash field itself).

    This is the seal that makes each accepted root update tamper-evident.
    """
    d = {k: v for k, v in record_dict.items() if k != "record_hash"}
    return sha256_hex(canonical_json_bytes(d))


def update_signing_bytes(
    namespace: str, expected_root: str | None, new_root: str
) -> bytes:
    """The exact bytes a signer authorizes for a compare-and-swap."""
    return canonical_json_bytes(
        {
            "namespace": namespace,
            "expected_root": expected_root,
            "new_root": new_root,
        }
    )

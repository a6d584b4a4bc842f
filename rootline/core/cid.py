"""Content identifiers (CIDv1) and the fixed hashing configuration.

A CID is rendered as a multibase string: the ``b`` prefix followed by the
lowercase, unpadded RFC 4648 base32 encoding of

    varint(version) || varint(codec) || varint(hash_code) || varint(len) || digest

Only version 1 is accepted.  Two CIDs are equal iff version, codec, hash
function and digest are all equal.

Local computation covers single-block content only (at most one chunk, raw
leaf codec), which is what a kubo node produces for the same bytes with
``cid-version=1`` and ``raw-leaves=true``.  Larger files are chunked into a
DAG by the node; for those the node's hash-only mode is the reference.
"""

from __future__ import annotations

import base64
import hashlib
from typing import Any

import blake3
from pydantic import BaseModel, ConfigDict
from pydantic_core import core_schema

CID_VERSION = 1
MULTIBASE_BASE32 = "b"

CODECS: dict[str, int] = {
    "raw": 0x55,
    "dag-pb": 0x70,
    "dag-cbor": 0x71,
    "dag-json": 0x0129,
}

HASH_FUNCTIONS: dict[str, int] = {
    "identity": 0x00,
    "sha2-256": 0x12,
    "blake3": 0x1E,
}

_CODEC_NAMES = {code: name for name, code in CODECS.items()}
_HASH_NAMES = {code: name for name, code in HASH_FUNCTIONS.items()}

DEFAULT_CHUNK_SIZE = 262144


class CidError(ValueError):
    """Raised when a string or byte sequence is not a valid CIDv1."""


# ---------------------------------------------------------------------------
# Varint helpers (unsigned LEB128, as used by multiformats)
# ---------------------------------------------------------------------------


def _encode_varint(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _decode_varint(data: bytes, offset: int) -> tuple[int, int]:
    """Decode a varint at *offset*; return ``(value, next_offset)``."""
    value = 0
    shift = 0
    while True:
        if offset >= len(data):
            raise CidError("truncated varint")
        byte = data[offset]
        offset += 1
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, offset
        shift += 7
        if shift > 63:
            raise CidError("varint too long")


# ---------------------------------------------------------------------------
# ContentId
# ---------------------------------------------------------------------------


class ContentId:
    """An immutable CIDv1 value.

    Usable directly as a pydantic field type: it validates from its string
    form and serializes back to it in JSON mode.
    """

    __slots__ = ("_codec", "_hash_code", "_digest")

    def __init__(self, codec: int, hash_code: int, digest: bytes) -> None:
        self._codec = codec
        self._hash_code = hash_code
        self._digest = bytes(digest)

    # -- construction ------------------------------------------------------

    @classmethod
    def parse(cls, value: str) -> ContentId:
        """Parse the multibase (base32) string form of a CIDv1."""
        if not isinstance(value, str) or not value:
            raise CidError(f"not a CID: {value!r}")
        value = value.strip()
        if value.startswith("Qm"):
            raise CidError(f"CIDv0 is not supported: {value}")
        if value[0] != MULTIBASE_BASE32:
            raise CidError(f"unsupported multibase prefix {value[0]!r} in {value}")
        body = value[1:].upper()
        padding = "=" * (-len(body) % 8)
        try:
            raw = base64.b32decode(body + padding)
        except ValueError as exc:
            raise CidError(f"invalid base32 in CID {value}") from exc
        return cls.from_bytes(raw)

    @classmethod
    def from_bytes(cls, raw: bytes) -> ContentId:
        """Decode the binary form of a CIDv1."""
        version, offset = _decode_varint(raw, 0)
        if version != CID_VERSION:
            raise CidError(f"unsupported CID version {version}")
        codec, offset = _decode_varint(raw, offset)
        hash_code, offset = _decode_varint(raw, offset)
        length, offset = _decode_varint(raw, offset)
        digest = raw[offset:]
        if len(digest) != length:
            raise CidError(
                f"digest length mismatch: header says {length}, got {len(digest)}"
            )
        return cls(codec, hash_code, digest)

    # -- accessors ---------------------------------------------------------

    @property
    def version(self) -> int:
        return CID_VERSION

    @property
    def codec(self) -> int:
        return self._codec

    @property
    def codec_name(self) -> str:
        return _CODEC_NAMES.get(self._codec, hex(self._codec))

    @property
    def hash_code(self) -> int:
        return self._hash_code

    @property
    def hash_name(self) -> str:
        return _HASH_NAMES.get(self._hash_code, hex(self._hash_code))

    @property
    def digest(self) -> bytes:
        return self._digest

    def to_bytes(self) -> bytes:
        return (
            _encode_varint(CID_VERSION)
            + _encode_varint(self._codec)
            + _encode_varint(self._hash_code)
            + _encode_varint(len(self._digest))
            + self._digest
        )

    # -- value semantics ---------------------------------------------------

    def __str__(self) -> str:
        encoded = base64.b32encode(self.to_bytes()).decode("ascii")
        return MULTIBASE_BASE32 + encoded.rstrip("=").lower()

    def __repr__(self) -> str:
        return f"ContentId({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ContentId):
            return NotImplemented
        return (
            self._codec == other._codec
            and self._hash_code == other._hash_code
            and self._digest == other._digest
        )

    def __hash__(self) -> int:
        return hash((self._codec, self._hash_code, self._digest))

    # -- pydantic integration ----------------------------------------------

    @classmethod
    def _validate(cls, value: Any) -> ContentId:
        if isinstance(value, ContentId):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        raise CidError(f"expected a CID string, got {type(value).__name__}")

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: Any
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.to_string_ser_schema(),
        )


# ---------------------------------------------------------------------------
# Hashing parameters and local computation
# ---------------------------------------------------------------------------


class HashingParams(BaseModel):
    """The fixed hashing configuration shared by local and remote hashing.

    The remote must be asked to hash with exactly these parameters, otherwise
    its CIDs will not match the ones recorded in the manifest.
    """

    model_config = ConfigDict(frozen=True)

    cid_version: int = CID_VERSION
    hash_function: str = "blake3"
    codec: str = "raw"
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def add_params(self, *, pin: bool = True, only_hash: bool = False) -> dict[str, str]:
        """Query parameters for a kubo ``/api/v0/add`` call."""
        params = {
            "cid-version": str(self.cid_version),
            "hash": self.hash_function,
            "raw-leaves": "true" if self.codec == "raw" else "false",
            "chunker": f"size-{self.chunk_size}",
            "pin": "true" if pin else "false",
        }
        if only_hash:
            params["only-hash"] = "true"
        return params


DEFAULT_HASHING = HashingParams()


def _digest(data: bytes, hash_function: str) -> bytes:
    if hash_function == "blake3":
        return blake3.blake3(data).digest()
    if hash_function == "sha2-256":
        return hashlib.sha256(data).digest()
    if hash_function == "identity":
        return bytes(data)
    raise CidError(f"hash function {hash_function!r} cannot be computed locally")


def compute_cid(
    data: bytes,
    params: HashingParams = DEFAULT_HASHING,
    *,
    single_block: bool = True,
) -> ContentId:
    """Compute the CID of *data* under *params*.

    With ``single_block=True`` (the default) content larger than one chunk is
    rejected, because a remote node would chunk it into a DAG whose root CID
    differs from a plain hash of the bytes.
    """
    if params.cid_version != CID_VERSION:
        raise CidError(f"unsupported CID version {params.cid_version}")
    if single_block and len(data) > params.chunk_size:
        raise CidError(
            f"{len(data)} bytes exceeds one {params.chunk_size}-byte chunk; "
            "ask the content store to hash it instead"
        )
    try:
        codec = CODECS[params.codec]
        hash_code = HASH_FUNCTIONS[params.hash_function]
    except KeyError as exc:
        raise CidError(f"unknown multicodec {exc.args[0]!r}") from exc
    return ContentId(codec, hash_code, _digest(data, params.hash_function))


def verify_cid(data: bytes, cid: ContentId) -> bool | None:
    """Check *data* against *cid* when that is possible locally.

    Returns ``True``/``False`` for raw single-block CIDs whose hash function
    is known, and ``None`` when the CID cannot be recomputed locally (for
    instance a chunked ``dag-pb`` root).
    """
    if cid.codec != CODECS["raw"]:
        return None
    hash_name = _HASH_NAMES.get(cid.hash_code)
    if hash_name is None:
        return None
    return _digest(data, hash_name) == cid.digest

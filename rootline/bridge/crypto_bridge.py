"""Crypto bridge — Ed25519 signing of root updates via PyNaCl.

Key material is handled as hex strings throughout: a 32-byte seed for the
private key and a 32-byte verify key for the public key.  ``Signer`` is the
capability handed to the push orchestrator; the registry only ever sees the
public key and signatures.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

import nacl.signing
from nacl.exceptions import BadSignatureError

from rootline.errors import ConfigurationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def generate_keypair() -> tuple[str, str]:
    """Generate an Ed25519 key pair.

    Returns
    -------
    tuple[str, str]
        ``(private_key_hex, public_key_hex)``
    """
    sk = nacl.signing.SigningKey.generate()
    return (sk.encode().hex(), sk.verify_key.encode().hex())


def sign_data(data: bytes, private_key: str) -> str:
    """Sign *data* with the hex-encoded seed *private_key*.

    Returns the hex-encoded signature (128 hex chars = 64 bytes).
    """
    sk = nacl.signing.SigningKey(bytes.fromhex(private_key))
    return sk.sign(data).signature.hex()


def verify_data(data: bytes, signature: str, public_key: str) -> bool:
    """Verify that *signature* is valid for *data* under *public_key*.

    Fail-closed: returns ``False`` for empty or malformed input as well as
    for a cryptographic mismatch.
    """
    if not signature or not public_key:
        return False
    try:
        vk = nacl.signing.VerifyKey(bytes.fromhex(public_key))
        vk.verify(data, bytes.fromhex(signature))
        return True
    except (BadSignatureError, ValueError, TypeError):
        # BadSignatureError: cryptographic mismatch
        # ValueError / TypeError: malformed hex or wrong key length
        return False


def key_fingerprint(public_key: str) -> str:
    """First 16 hex characters of SHA-256(public_key).

    Short enough for log lines and CLI output.
    """
    if not public_key:
        return ""
    return hashlib.sha256(public_key.encode("utf-8")).hexdigest()[:16]


# ---------------------------------------------------------------------------
# Signer capability
# ---------------------------------------------------------------------------


class Signer:
    """Holds an Ed25519 signing key and authorizes registry updates.

    Parameters
    ----------
    private_key:
        Hex-encoded 32-byte seed.
    """

    def __init__(self, private_key: str) -> None:
        try:
            self._key = nacl.signing.SigningKey(bytes.fromhex(private_key.strip()))
        except (ValueError, TypeError) as exc:
            raise ConfigurationError(
                "signing key must be a 64-character hex Ed25519 seed"
            ) from exc
        self._public_key = self._key.verify_key.encode().hex()

    @classmethod
    def generate(cls) -> Signer:
        private_key, _ = generate_keypair()
        return cls(private_key)

    @classmethod
    def from_file(cls, path: Path) -> Signer:
        """Load a hex seed from *path* (surrounding whitespace ignored)."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"cannot read signing key {path}: {exc}") from exc
        return cls(text)

    @property
    def public_key(self) -> str:
        return self._public_key

    @property
    def fingerprint(self) -> str:
        return key_fingerprint(self._public_key)

    def private_key_hex(self) -> str:
        return self._key.encode().hex()

    def sign(self, data: bytes) -> str:
        signature = self._key.sign(data).signature.hex()
        logger.debug("Signer %s: signed %d bytes.", self.fingerprint, len(data))
        return signature

    def __repr__(self) -> str:
        return f"Signer(fingerprint={self.fingerprint!r})"

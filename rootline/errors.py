"""Error taxonomy for push and its collaborators.

Callers branch on the class, not on the message:

- ``ConfigurationError`` — missing or invalid endpoint/signer; nothing was
  attempted.
- ``VerificationError`` — the remote computed a different CID than the one
  recorded locally.  Deterministic, so never retried automatically.
- ``BackendFault`` — transport, auth or service failure of the content
  store, gateway or registry.  Safe to retry as a fresh attempt.
- ``RegistryOutcomeUnknownError`` — the registry call timed out; the update
  may or may not have been applied.  Re-read the current root first.
- ``ConflictError`` — the registry's current root is not the one this writer
  expected.  Refresh, re-diff, retry at the caller's discretion.

A "not found" existence probe is not an error at all.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rootline.core.cid import ContentId
    from rootline.models.push import PushState


class RootlineError(RuntimeError):
    """Base class for all rootline errors.

    ``state`` is set by the push orchestrator to the terminal state of the
    attempt that raised the error.
    """

    state: PushState | None = None


class ConfigurationError(RootlineError):
    """Raised when required endpoints or signing material are missing."""


class LocalStateError(RootlineError):
    """Raised when the working directory's durable state cannot be used."""


class VerificationError(RootlineError):
    """Raised when a remote-computed CID differs from the expected one."""

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        expected: ContentId | None = None,
        actual: ContentId | str | None = None,
    ) -> None:
        super().__init__(message)
        self.path = path
        self.expected = expected
        self.actual = actual


class BackendFault(RootlineError):
    """A remote service failed for a reason other than not-found or conflict."""


class ContentStoreError(BackendFault):
    """The content store rejected or failed a request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GatewayError(BackendFault):
    """The gateway could not serve the requested content."""


class RegistryError(BackendFault):
    """The root registry failed for a reason other than a stale root."""


class RegistryOutcomeUnknownError(RegistryError):
    """The registry call timed out; the update may have been applied."""


class RegistryIntegrityError(RegistryError):
    """The registry's record chain is broken or has been tampered with."""


class ConflictError(RootlineError):
    """The registry's current root differs from the expected previous root."""

    def __init__(
        self,
        namespace: str,
        expected: ContentId | None,
        actual: ContentId | None,
    ) -> None:
        super().__init__(
            f"root of {namespace!r} is {actual or 'unset'}, "
            f"expected {expected or 'unset'}"
        )
        self.namespace = namespace
        self.expected = expected
        self.actual = actual

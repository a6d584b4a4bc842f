"""Root registry models — signed updates and the record chain they produce."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from rootline.core.cid import ContentId
from rootline.core.hasher import update_signing_bytes


class RootUpdate(BaseModel):
    """A signed request to move a namespace's root from one CID to another."""

    model_config = ConfigDict(frozen=True)

    namespace: str
    expected_root: ContentId | None
    new_root: ContentId
    signer_public_key: str
    signature: str

    def signing_bytes(self) -> bytes:
        return update_signing_bytes(
            self.namespace,
            str(self.expected_root) if self.expected_root is not None else None,
            str(self.new_root),
        )


class RootRecord(BaseModel):
    """An accepted root update, sealed into the registry's record chain.

    ``previous_record_hash`` links to the namespace's prior record and
    ``record_hash`` seals this one, exactly like a ledger entry.
    """

    model_config = ConfigDict(frozen=True)

    record_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    namespace: str
    sequence: int
    previous_root: ContentId | None = None
    root: ContentId
    signer_public_key: str
    signature: str
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    previous_record_hash: str = ""
    record_hash: str = ""

"""Push attempt state machine and result models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from rootline.core.cid import ContentId


class PushState(str, Enum):
    """States of a single push attempt."""

    IDLE = "idle"
    PROBING = "probing"
    UPLOADING = "uploading"
    ROOT_COMPUTED = "root_computed"
    REGISTRY_PENDING = "registry_pending"
    COMMITTED = "committed"
    CONFLICTED = "conflicted"
    FAULTED = "faulted"


# COMMITTED, CONFLICTED and FAULTED are terminal.
VALID_TRANSITIONS: dict[PushState, set[PushState]] = {
    PushState.IDLE: {PushState.PROBING, PushState.FAULTED},
    PushState.PROBING: {PushState.UPLOADING, PushState.FAULTED},
    PushState.UPLOADING: {PushState.ROOT_COMPUTED, PushState.FAULTED},
    PushState.ROOT_COMPUTED: {PushState.REGISTRY_PENDING, PushState.FAULTED},
    PushState.REGISTRY_PENDING: {
        PushState.COMMITTED,
        PushState.CONFLICTED,
        PushState.FAULTED,
    },
    PushState.COMMITTED: set(),
    PushState.CONFLICTED: set(),
    PushState.FAULTED: set(),
}


class PushReport(BaseModel):
    """What a successful push did."""

    model_config = ConfigDict(frozen=True)

    namespace: str
    previous_root: ContentId | None
    new_root: ContentId
    uploaded: list[str] = []
    skipped: list[str] = []
    registry_sequence: int = 0
    state: PushState = PushState.COMMITTED

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SessionState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    ATTACHING = "attaching"
    READY = "ready"
    FAILED = "failed"


class StatusSnapshot(BaseModel):
    """What the collaborator sees of a session.

    ``ready`` only means the sink is producing frames. It is not a face
    detection result.
    """

    model_config = ConfigDict(frozen=True)

    active: bool
    ready: bool
    warning: str | None = None
    state: SessionState = SessionState.IDLE

    @classmethod
    def for_state(cls, state: SessionState, warning: str | None) -> "StatusSnapshot":
        return cls(
            active=state in (SessionState.ATTACHING, SessionState.READY),
            ready=state is SessionState.READY,
            warning=warning,
            state=state,
        )


class DebugEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    message: str


class CameraStatus(BaseModel):
    backend: str
    supported: bool
    state: SessionState
    active: bool
    ready: bool
    warning: str | None = None


class CaptureResponse(BaseModel):
    captured: bool
    width: int | None = None
    height: int | None = None
    mime_type: str | None = None
    image_base64: str | None = None


class DebugTrailResponse(BaseModel):
    entries: list[DebugEntry] = Field(default_factory=list)

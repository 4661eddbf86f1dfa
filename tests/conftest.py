from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ballotcam.camera.backends.stub import StubCapabilityProvider  # noqa: E402
from ballotcam.camera.models import SessionState, StatusSnapshot  # noqa: E402
from ballotcam.camera.session import DeviceSession  # noqa: E402

_HOLDING_STATES = (SessionState.ATTACHING, SessionState.READY)


class SessionRecorder:
    """Records every snapshot a session emits and checks the handle invariant."""

    def __init__(self, session: DeviceSession):
        self.session = session
        self.snapshots: list[StatusSnapshot] = []
        self.violations: list[str] = []
        session.add_observer(self)

    def __call__(self, snapshot: StatusSnapshot) -> None:
        self.snapshots.append(snapshot)
        self.check()

    def check(self) -> None:
        holds = self.session.stream_handle is not None
        if holds != (self.session.state in _HOLDING_STATES):
            self.violations.append(f"state={self.session.state.value} handle={holds}")

    @property
    def states(self) -> list[SessionState]:
        return [snapshot.state for snapshot in self.snapshots]


@pytest.fixture
def provider() -> StubCapabilityProvider:
    return StubCapabilityProvider()


@pytest.fixture
def manual_provider() -> StubCapabilityProvider:
    return StubCapabilityProvider(auto_play=False)


@pytest.fixture
def recorder():
    return SessionRecorder

from __future__ import annotations

import base64

from ballotcam.camera.backends.base import CapabilityProvider, VideoSink
from ballotcam.camera.backends.stub import StubCapabilityProvider
from ballotcam.camera.capture import CapturedImage, FrameCapturer
from ballotcam.camera.errors import CameraError, SessionInactiveError
from ballotcam.camera.models import (
    CameraStatus,
    CaptureResponse,
    DebugTrailResponse,
    SessionState,
    StatusSnapshot,
)
from ballotcam.camera.session import DeviceSession
from ballotcam.config import CameraConfig, get_camera_config
from ballotcam.logging.audit import audit_event


class CameraService:
    """Collaborator-side view of one device session.

    Only status snapshots and captured images cross this boundary; the
    stream and sink stay inside the session.
    """

    def __init__(self, config: CameraConfig | None = None, provider: CapabilityProvider | None = None):
        self._config = config or get_camera_config()
        self._provider = provider or self._build_provider()
        self._session = DeviceSession(
            self._provider,
            on_status_change=self._on_status_change,
            debug_trail_size=self._config.debug_trail_size,
        )
        self._capturer = FrameCapturer()
        self._sink: VideoSink | None = None
        self._last_status: StatusSnapshot = self._session.snapshot()

    @property
    def config(self) -> CameraConfig:
        return self._config

    @property
    def session(self) -> DeviceSession:
        return self._session

    def status(self, request_id: str | None = None) -> CameraStatus:
        supported = self._provider.is_supported()
        audit_event(
            "camera.status",
            request_id=request_id,
            backend=self._provider.name,
            supported=supported,
            state=self._last_status.state.value,
        )
        return self._to_status(supported)

    async def open(self, request_id: str | None = None) -> CameraStatus:
        if self._sink is None:
            self._sink = self._provider.create_sink()
            self._session.sink_ready(self._sink)
        snapshot = await self._session.open()
        audit_event(
            "camera.open",
            request_id=request_id,
            backend=self._provider.name,
            state=snapshot.state.value,
            result="failed" if snapshot.warning else "ok",
        )
        return self._to_status(self._provider.is_supported())

    def close(self, request_id: str | None = None) -> CameraStatus:
        snapshot = self._session.close()
        audit_event("camera.close", request_id=request_id, backend=self._provider.name, state=snapshot.state.value)
        return self._to_status(self._provider.is_supported())

    def capture(self, request_id: str | None = None) -> CaptureResponse:
        if self._session.state in (SessionState.IDLE, SessionState.FAILED):
            audit_event("camera.capture", request_id=request_id, backend=self._provider.name, result="inactive")
            raise SessionInactiveError()
        try:
            image = self._capturer.capture(self._session)
        except CameraError as exc:
            audit_event("camera.capture", request_id=request_id, backend=self._provider.name, result=exc.code)
            raise
        audit_event(
            "camera.capture",
            request_id=request_id,
            backend=self._provider.name,
            result="captured",
            width=image.width,
            height=image.height,
            size=image.size,
        )
        return self._to_response(image)

    def debug_trail(self) -> DebugTrailResponse:
        return DebugTrailResponse(entries=self._session.debug_trail())

    def _on_status_change(self, snapshot: StatusSnapshot) -> None:
        self._last_status = snapshot

    def _to_status(self, supported: bool) -> CameraStatus:
        snapshot = self._last_status
        return CameraStatus(
            backend=self._provider.name,
            supported=supported,
            state=snapshot.state,
            active=snapshot.active,
            ready=snapshot.ready,
            warning=snapshot.warning,
        )

    @staticmethod
    def _to_response(image: CapturedImage) -> CaptureResponse:
        return CaptureResponse(
            captured=True,
            width=image.width,
            height=image.height,
            mime_type=image.mime_type,
            image_base64=base64.b64encode(image.data).decode("utf-8"),
        )

    def _build_provider(self) -> CapabilityProvider:
        if self._config.backend == "opencv":
            from ballotcam.camera.backends.opencv import OpenCVCapabilityProvider

            return OpenCVCapabilityProvider(self._config)
        return StubCapabilityProvider()

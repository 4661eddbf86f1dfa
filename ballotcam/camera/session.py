from __future__ import annotations

import asyncio
from collections import deque
from datetime import datetime, timezone
from typing import Callable

from ballotcam.camera.backends.base import (
    DEFAULT_CONSTRAINTS,
    CapabilityProvider,
    StreamHandle,
    StreamRejected,
    Unsubscribe,
    VideoSink,
)
from ballotcam.camera.errors import (
    CameraError,
    SinkFaultError,
    UnknownCameraError,
    UnsupportedPlatformError,
    classify_rejection,
)
from ballotcam.camera.models import DebugEntry, SessionState, StatusSnapshot
from ballotcam.logging.audit import audit_event, safe_excerpt
from ballotcam.logging.logger import get_logger

StatusObserver = Callable[[StatusSnapshot], None]

_BUSY_STATES = (SessionState.REQUESTING, SessionState.ATTACHING, SessionState.READY)
_ATTACHED_STATES = (SessionState.ATTACHING, SessionState.READY)


class _ListenerScope:
    def __init__(self) -> None:
        self._unsubscribes: list[Unsubscribe] = []

    def __len__(self) -> int:
        return len(self._unsubscribes)

    def add(self, unsubscribe: Unsubscribe) -> None:
        self._unsubscribes.append(unsubscribe)

    def close(self) -> None:
        while self._unsubscribes:
            self._unsubscribes.pop()()


class DeviceSession:
    """Owns one acquired video stream from request to teardown.

    All state changes go through ``_transition``. Sink events and status
    notifications are queued and drained in order by ``_pump``, so an event
    or observer that re-enters the session never interleaves with a
    transition in progress. ``open``, ``close`` and the sink callbacks must
    run on the same event loop thread.
    """

    def __init__(
        self,
        provider: CapabilityProvider,
        *,
        on_status_change: StatusObserver | None = None,
        debug_trail_size: int = 5,
    ):
        self._provider = provider
        self._state = SessionState.IDLE
        self._handle: StreamHandle | None = None
        self._sink: VideoSink | None = None
        self._attached = False
        self._warning: str | None = None
        self._last_error: CameraError | None = None
        self._generation = 0
        self._metadata_seen = False
        self._first_frame_seen = False
        self._readiness = _ListenerScope()
        self._faults = _ListenerScope()
        self._observers: list[StatusObserver] = []
        self._outbox: deque[StatusSnapshot] = deque()
        self._events: deque[tuple[int, str, str | None]] = deque()
        self._pumping = False
        self._trail: deque[DebugEntry] = deque(maxlen=debug_trail_size)
        if on_status_change is not None:
            self._observers.append(on_status_change)

    async def __aenter__(self) -> "DeviceSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def stream_handle(self) -> StreamHandle | None:
        return self._handle

    @property
    def sink(self) -> VideoSink | None:
        return self._sink

    @property
    def warning(self) -> str | None:
        return self._warning

    @property
    def last_error(self) -> CameraError | None:
        return self._last_error

    @property
    def is_ready(self) -> bool:
        return self._state is SessionState.READY

    @property
    def pending_listeners(self) -> int:
        return len(self._readiness) + len(self._faults)

    def snapshot(self) -> StatusSnapshot:
        return StatusSnapshot.for_state(self._state, self._warning)

    def debug_trail(self) -> list[DebugEntry]:
        return list(self._trail)

    def add_observer(self, observer: StatusObserver) -> Unsubscribe:
        self._observers.append(observer)

        def _remove() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _remove

    async def open(self) -> StatusSnapshot:
        """Request a stream from the provider.

        Errors are never raised; they end in FAILED (or IDLE for an
        unsupported platform) with ``warning`` set.
        """
        if self._state in _BUSY_STATES:
            self._trace(f"open ignored, session is {self._state.value}")
            return self.snapshot()

        if not self._provider.is_supported():
            error = UnsupportedPlatformError()
            self._last_error = error
            self._transition(SessionState.IDLE, error.message)
            return self.snapshot()

        self._generation += 1
        generation = self._generation
        self._last_error = None
        self._transition(SessionState.REQUESTING, self._warning)
        if not self._is_pending(generation):
            self._trace("open abandoned before the request was sent")
            return self.snapshot()

        try:
            handle = await self._provider.request_video_stream(DEFAULT_CONSTRAINTS)
        except StreamRejected as exc:
            self._request_failed(generation, classify_rejection(exc.reason, exc.detail))
            return self.snapshot()
        except asyncio.CancelledError:
            if self._is_pending(generation):
                self._generation += 1
                self._transition(SessionState.IDLE, None)
            raise
        except Exception as exc:
            self._request_failed(generation, UnknownCameraError(str(exc) or type(exc).__name__))
            return self.snapshot()

        if not self._is_pending(generation):
            handle.stop()
            self._trace("stream arrived after close, stopped it")
            return self.snapshot()

        self._handle = handle
        self._metadata_seen = False
        self._first_frame_seen = False
        self._transition(SessionState.ATTACHING, None)
        self._attach_if_waiting()
        return self.snapshot()

    def sink_ready(self, sink: VideoSink) -> None:
        """Confirm that ``sink`` exists and can receive the stream.

        Attachment happens here when a stream is already waiting, or right
        after the stream is granted otherwise.
        """
        if self._attached and sink is not self._sink:
            raise ValueError("a different sink is already attached to this session")
        self._sink = sink
        self._trace("sink confirmed")
        self._attach_if_waiting()

    def close(self) -> StatusSnapshot:
        if self._state is SessionState.IDLE:
            return self.snapshot()
        self._generation += 1
        self._release()
        self._transition(SessionState.IDLE, None)
        return self.snapshot()

    def _is_pending(self, generation: int) -> bool:
        return generation == self._generation and self._state is SessionState.REQUESTING

    def _request_failed(self, generation: int, error: CameraError) -> None:
        if not self._is_pending(generation):
            self._trace(f"late rejection ignored: {error.code}")
            return
        self._fail(error)

    def _attach_if_waiting(self) -> None:
        if (
            self._state is SessionState.ATTACHING
            and self._sink is not None
            and self._handle is not None
            and not self._attached
        ):
            self._attach()

    def _attach(self) -> None:
        sink = self._sink
        handle = self._handle
        generation = self._generation
        self._attached = True
        self._readiness.add(sink.on_metadata_ready(lambda: self._dispatch(generation, "metadata")))
        self._readiness.add(sink.on_first_frame(lambda: self._dispatch(generation, "first_frame")))
        self._faults.add(sink.on_fault(lambda reason=None: self._dispatch(generation, "fault", reason)))
        self._trace("attaching stream to sink")
        try:
            sink.attach(handle)
        except Exception as exc:
            get_logger().exception("sink attach failed")
            if generation == self._generation and self._state is SessionState.ATTACHING:
                self._fail(SinkFaultError(f"Video playback error: {exc}"))

    def _dispatch(self, generation: int, event: str, detail: str | None = None) -> None:
        self._events.append((generation, event, detail))
        self._pump()

    def _pump(self) -> None:
        if self._pumping:
            return
        self._pumping = True
        try:
            while self._outbox or self._events:
                if self._outbox:
                    self._notify(self._outbox.popleft())
                    continue
                generation, event, detail = self._events.popleft()
                if generation != self._generation:
                    self._trace(f"stale {event} event dropped")
                    continue
                self._handle_event(event, detail)
        finally:
            self._pumping = False

    def _handle_event(self, event: str, detail: str | None) -> None:
        if event == "fault":
            if self._state in _ATTACHED_STATES:
                self._fail(SinkFaultError(detail) if detail else SinkFaultError())
            return
        if self._state is not SessionState.ATTACHING:
            return
        if event == "metadata":
            self._metadata_seen = True
            self._trace(f"metadata loaded: {self._sink.current_width}x{self._sink.current_height}")
        elif event == "first_frame":
            self._first_frame_seen = True
            if not self._metadata_seen:
                self._trace("first frame before metadata, waiting")
                return
        if self._metadata_seen and self._first_frame_seen:
            self._confirm_ready()

    def _confirm_ready(self) -> None:
        if self._sink.current_width <= 0 or self._sink.current_height <= 0:
            self._trace("sink dimensions not known yet, waiting")
            return
        self._readiness.close()
        self._transition(SessionState.READY, None)

    def _fail(self, error: CameraError) -> None:
        self._last_error = error
        self._generation += 1
        self._release()
        self._transition(SessionState.FAILED, error.message)

    def _release(self) -> None:
        self._readiness.close()
        self._faults.close()
        if self._attached:
            self._attached = False
            self._sink.detach()
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.stop()
            self._trace("stream stopped")
        self._metadata_seen = False
        self._first_frame_seen = False

    def _transition(self, state: SessionState, warning: str | None) -> None:
        previous = self._state
        self._state = state
        self._warning = warning
        self._trace(f"{previous.value} -> {state.value}" + (f" ({warning})" if warning else ""))
        audit_event(
            "camera.transition",
            backend=self._provider.name,
            previous=previous.value,
            state=state.value,
            warning=safe_excerpt(warning) if warning else None,
        )
        self._outbox.append(StatusSnapshot.for_state(state, warning))
        self._pump()

    def _notify(self, snapshot: StatusSnapshot) -> None:
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception:
                get_logger().exception("status observer failed")

    def _trace(self, message: str) -> None:
        self._trail.append(DebugEntry(timestamp=datetime.now(tz=timezone.utc), message=message))
        get_logger().info("camera session: %s", message)

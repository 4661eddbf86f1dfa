from __future__ import annotations

import asyncio

import numpy

from ballotcam.camera.backends.base import (
    CapabilityProvider,
    FaultListener,
    Listener,
    ListenerSet,
    StreamConstraints,
    StreamHandle,
    StreamRejected,
    Unsubscribe,
    VideoSink,
)


def _test_pattern(width: int, height: int) -> numpy.ndarray:
    frame = numpy.zeros((height, width, 3), dtype=numpy.uint8)
    frame[:, : width // 2] = (32, 96, 160)
    frame[:, width // 2 :] = (200, 200, 200)
    return frame


class StubStreamHandle(StreamHandle):
    def __init__(self, label: str):
        self.label = label
        self.stop_calls = 0

    @property
    def active(self) -> bool:
        return self.stop_calls == 0

    def stop(self) -> None:
        self.stop_calls += 1


class StubVideoSink(VideoSink):
    """In-process sink. Events fire on attach when ``auto_play`` is set,
    otherwise the caller drives them with the ``emit_*`` methods."""

    def __init__(self, width: int = 640, height: int = 480, auto_play: bool = True):
        self._native_size = (width, height)
        self._auto_play = auto_play
        self._width = 0
        self._height = 0
        self._frame: numpy.ndarray | None = None
        self._metadata = ListenerSet()
        self._first_frame = ListenerSet()
        self._fault = ListenerSet()
        self.handle: StreamHandle | None = None
        self.attach_calls = 0
        self.detach_calls = 0

    @property
    def current_width(self) -> int:
        return self._width

    @property
    def current_height(self) -> int:
        return self._height

    @property
    def listener_count(self) -> int:
        return len(self._metadata) + len(self._first_frame) + len(self._fault)

    def attach(self, handle: StreamHandle) -> None:
        self.handle = handle
        self.attach_calls += 1
        if self._auto_play:
            self.emit_metadata()
            self.emit_first_frame()

    def detach(self) -> None:
        self.handle = None
        self.detach_calls += 1
        self._width = 0
        self._height = 0
        self._frame = None

    def on_metadata_ready(self, listener: Listener) -> Unsubscribe:
        return self._metadata.add(listener)

    def on_first_frame(self, listener: Listener) -> Unsubscribe:
        return self._first_frame.add(listener)

    def on_fault(self, listener: FaultListener) -> Unsubscribe:
        return self._fault.add(listener)

    def current_frame(self) -> numpy.ndarray | None:
        return self._frame

    def emit_metadata(self) -> None:
        self._width, self._height = self._native_size
        self._metadata.fire()

    def emit_first_frame(self) -> None:
        width, height = self._native_size
        self._frame = _test_pattern(width, height)
        self._first_frame.fire()

    def emit_fault(self, message: str = "Video playback error.") -> None:
        self._fault.fire(message)

    def resize(self, width: int, height: int) -> None:
        self._width = width
        self._height = height


class StubCapabilityProvider(CapabilityProvider):
    name = "stub"

    def __init__(
        self,
        *,
        supported: bool = True,
        reject_with: str | None = None,
        reject_detail: str | None = None,
        width: int = 640,
        height: int = 480,
        auto_play: bool = True,
    ):
        self.supported = supported
        self.reject_with = reject_with
        self.reject_detail = reject_detail
        self.width = width
        self.height = height
        self.auto_play = auto_play
        self.requests = 0
        self.handles: list[StubStreamHandle] = []
        self.sinks: list[StubVideoSink] = []
        self.last_constraints: StreamConstraints | None = None
        self._gate: asyncio.Event | None = None

    def is_supported(self) -> bool:
        return self.supported

    def hold(self) -> None:
        """Keep subsequent requests pending until :meth:`release`."""
        self._gate = asyncio.Event()

    def release(self) -> None:
        if self._gate is not None:
            self._gate.set()
            self._gate = None

    async def request_video_stream(self, constraints: StreamConstraints) -> StubStreamHandle:
        self.requests += 1
        self.last_constraints = constraints
        if self._gate is not None:
            await self._gate.wait()
        if self.reject_with is not None:
            raise StreamRejected(self.reject_with, self.reject_detail)
        handle = StubStreamHandle(label=f"stub-{self.requests}")
        self.handles.append(handle)
        return handle

    def create_sink(self) -> StubVideoSink:
        sink = StubVideoSink(self.width, self.height, auto_play=self.auto_play)
        self.sinks.append(sink)
        return sink

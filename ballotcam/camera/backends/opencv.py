from __future__ import annotations

import asyncio
import importlib
import importlib.util
import threading
import time
from typing import Any, Callable

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
from ballotcam.config import CameraConfig
from ballotcam.logging.logger import get_logger


def _cv2_available() -> bool:
    return importlib.util.find_spec("cv2") is not None


class OpenCVStreamHandle(StreamHandle):
    def __init__(self, capture: Any, device_index: int):
        self._capture = capture
        self._device_index = device_index
        self._lock = threading.Lock()
        self._stopped = False

    @property
    def active(self) -> bool:
        return not self._stopped

    def read(self) -> tuple[bool, Any]:
        with self._lock:
            if self._stopped:
                return False, None
            return self._capture.read()

    def stop(self) -> None:
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            self._capture.release()
        get_logger().info("opencv: released device %s", self._device_index)


class OpenCVVideoSink(VideoSink):
    """Pulls frames from an attached capture on a daemon thread.

    Sink events are posted back to the event loop that attached the stream.
    ``detach`` joins the reader thread and the handle's ``stop`` waits for
    the read lock, so closing a session on the loop thread blocks it for at
    most one pending ``read()``. The reader thread has exited before the
    capture is released.
    """

    def __init__(self, read_timeout_ms: int = 2000):
        self._read_timeout = read_timeout_ms / 1000.0
        self._lock = threading.Lock()
        self._width = 0
        self._height = 0
        self._frame: Any = None
        self._metadata = ListenerSet()
        self._first_frame = ListenerSet()
        self._fault = ListenerSet()
        self._handle: OpenCVStreamHandle | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()

    @property
    def current_width(self) -> int:
        with self._lock:
            return self._width

    @property
    def current_height(self) -> int:
        with self._lock:
            return self._height

    def attach(self, handle: OpenCVStreamHandle) -> None:
        self._loop = asyncio.get_running_loop()
        self._handle = handle
        self._stop.clear()
        self._thread = threading.Thread(target=self._read_loop, name="ballotcam-sink", daemon=True)
        self._thread.start()

    def detach(self) -> None:
        self._stop.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=2.0)
        self._thread = None
        self._handle = None
        with self._lock:
            self._width = 0
            self._height = 0
            self._frame = None

    def on_metadata_ready(self, listener: Listener) -> Unsubscribe:
        return self._metadata.add(listener)

    def on_first_frame(self, listener: Listener) -> Unsubscribe:
        return self._first_frame.add(listener)

    def on_fault(self, listener: FaultListener) -> Unsubscribe:
        return self._fault.add(listener)

    def current_frame(self) -> Any:
        with self._lock:
            return None if self._frame is None else self._frame.copy()

    def _read_loop(self) -> None:
        handle = self._handle
        presented = False
        last_frame_at = time.monotonic()
        while not self._stop.is_set():
            success, frame = handle.read()
            if self._stop.is_set():
                break
            if not success or frame is None or frame.size == 0:
                if time.monotonic() - last_frame_at > self._read_timeout:
                    self._post(self._fault.fire, "Video playback error: camera stopped delivering frames.")
                    return
                time.sleep(0.01)
                continue
            last_frame_at = time.monotonic()
            height, width = frame.shape[:2]
            with self._lock:
                self._frame = frame
                if not presented:
                    self._width = width
                    self._height = height
            if not presented:
                presented = True
                self._post(self._metadata.fire)
                self._post(self._first_frame.fire)

    def _post(self, callback: Callable[..., None], *args: Any) -> None:
        try:
            self._loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            get_logger().warning("opencv: event loop closed, dropping sink event")
            self._stop.set()


class OpenCVCapabilityProvider(CapabilityProvider):
    name = "opencv"

    def __init__(self, config: CameraConfig):
        self._config = config

    def is_supported(self) -> bool:
        return _cv2_available()

    async def request_video_stream(self, constraints: StreamConstraints) -> OpenCVStreamHandle:
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, self._open_capture, constraints)
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            future.add_done_callback(_stop_orphaned_handle)
            raise

    def create_sink(self) -> OpenCVVideoSink:
        return OpenCVVideoSink(read_timeout_ms=self._config.read_timeout_ms)

    def _open_capture(self, constraints: StreamConstraints) -> OpenCVStreamHandle:
        cv2 = importlib.import_module("cv2")
        index = self._config.device_index
        capture = cv2.VideoCapture(index)
        if not capture or not capture.isOpened():
            raise StreamRejected("NotFoundError", f"Camera device {index} not available.")
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.ideal_width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.ideal_height)
        success, frame = capture.read()
        if not success or frame is None:
            capture.release()
            raise StreamRejected("NotReadableError", f"Camera device {index} returned no frames.")
        if frame.size == 0:
            capture.release()
            raise StreamRejected("OverconstrainedError", f"Camera device {index} returned an empty frame.")
        height, width = frame.shape[:2]
        get_logger().info(
            "opencv: opened device %s at %dx%d (ideal %dx%d)",
            index,
            width,
            height,
            constraints.ideal_width,
            constraints.ideal_height,
        )
        return OpenCVStreamHandle(capture, index)


def _stop_orphaned_handle(future: "asyncio.Future[OpenCVStreamHandle]") -> None:
    if future.cancelled() or future.exception() is not None:
        return
    future.result().stop()
    get_logger().info("opencv: stopped stream acquired after the request was abandoned")

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import cv2
import numpy

from ballotcam.camera.errors import CaptureEncodeError, CaptureNotReadyError
from ballotcam.camera.models import SessionState
from ballotcam.camera.session import DeviceSession
from ballotcam.logging.logger import get_logger

JPEG_MIME_TYPE = "image/jpeg"
JPEG_QUALITY = 0.9


@dataclass(frozen=True)
class CapturedImage:
    data: bytes
    width: int
    height: int
    mime_type: str = JPEG_MIME_TYPE

    @property
    def size(self) -> int:
        return len(self.data)


class FrameCapturer:
    """Encodes the current frame of a ready session as a JPEG still."""

    def __init__(
        self,
        on_image_captured: Callable[[CapturedImage], None] | None = None,
        quality: float = JPEG_QUALITY,
    ):
        self._on_image_captured = on_image_captured
        self._quality = quality

    def capture(self, session: DeviceSession) -> CapturedImage:
        sink = session.sink
        if session.state is not SessionState.READY or sink is None:
            raise CaptureNotReadyError()
        width, height = sink.current_width, sink.current_height
        if width <= 0 or height <= 0:
            raise CaptureNotReadyError()
        frame = sink.current_frame()
        if frame is None:
            raise CaptureNotReadyError()

        raster = numpy.zeros((height, width, 3), dtype=numpy.uint8)
        self._draw(raster, frame)
        success, buffer = cv2.imencode(
            ".jpg", raster, [int(cv2.IMWRITE_JPEG_QUALITY), int(round(self._quality * 100))]
        )
        if not success:
            raise CaptureEncodeError()

        image = CapturedImage(data=buffer.tobytes(), width=width, height=height)
        get_logger().info("captured %dx%d frame, %d bytes", width, height, image.size)
        if self._on_image_captured is not None:
            self._on_image_captured(image)
        return image

    @staticmethod
    def _draw(raster: numpy.ndarray, frame: numpy.ndarray) -> None:
        height, width = raster.shape[:2]
        if frame.ndim == 2:
            frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
        if frame.shape[:2] != (height, width):
            frame = cv2.resize(frame, (width, height))
        raster[:, :] = frame[:, :, :3]

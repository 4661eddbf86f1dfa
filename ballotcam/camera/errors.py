from __future__ import annotations

_ACCESS_PREFIX = "Failed to access camera. "


class CameraError(Exception):
    code = "camera_error"

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class PermissionDeniedError(CameraError):
    code = "permission_denied"

    def __init__(self, message: str = _ACCESS_PREFIX + "Please allow camera permissions and try again."):
        super().__init__(message, status_code=403)


class DeviceNotFoundError(CameraError):
    code = "device_not_found"

    def __init__(self, message: str = _ACCESS_PREFIX + "No camera found on this device."):
        super().__init__(message, status_code=404)


class DeviceBusyError(CameraError):
    code = "device_busy"

    def __init__(self, message: str = _ACCESS_PREFIX + "Camera is already in use by another application."):
        super().__init__(message, status_code=409)


class ConstraintsUnsatisfiableError(CameraError):
    code = "constraints_unsatisfiable"

    def __init__(self, message: str = _ACCESS_PREFIX + "Camera constraints could not be satisfied."):
        super().__init__(message, status_code=422)


class UnsupportedPlatformError(CameraError):
    code = "unsupported_platform"

    def __init__(self, message: str = "Camera access is not supported on this platform."):
        super().__init__(message, status_code=501)


class SinkFaultError(CameraError):
    code = "sink_fault"

    def __init__(self, message: str = "Video playback error."):
        super().__init__(message, status_code=502)


class CaptureNotReadyError(CameraError):
    code = "capture_not_ready"

    def __init__(self, message: str = "Video not ready for capture. Please wait for camera to fully load."):
        super().__init__(message, status_code=409)


class CaptureEncodeError(CameraError):
    code = "capture_failed"

    def __init__(self, message: str = "Failed to capture image. Please try again."):
        super().__init__(message, status_code=500)


class SessionInactiveError(CameraError):
    code = "session_inactive"

    def __init__(self, message: str = "Camera session is not open."):
        super().__init__(message, status_code=409)


class UnknownCameraError(CameraError):
    code = "unknown"

    def __init__(self, detail: str | None = None):
        self.detail = detail
        super().__init__(_ACCESS_PREFIX + (detail or "Unknown error occurred."), status_code=500)


_REJECTIONS: dict[str, type[CameraError]] = {
    "NotAllowedError": PermissionDeniedError,
    "NotFoundError": DeviceNotFoundError,
    "NotReadableError": DeviceBusyError,
    "OverconstrainedError": ConstraintsUnsatisfiableError,
}


def classify_rejection(reason: str | None, detail: str | None = None) -> CameraError:
    """Map a raw platform rejection reason onto the camera error taxonomy."""
    error_cls = _REJECTIONS.get(reason or "")
    if error_cls is None:
        return UnknownCameraError(detail)
    return error_cls()

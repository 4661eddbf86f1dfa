from __future__ import annotations

import os
from dataclasses import dataclass

_BACKENDS = {"stub", "opencv"}


@dataclass(frozen=True)
class CameraConfig:
    backend: str
    device_index: int
    debug_trail_size: int
    read_timeout_ms: int


@dataclass(frozen=True)
class LocalServerConfig:
    host: str
    port: int
    log_level: str


def _parse_int(value: str | None, default: int, *, minimum: int | None = None) -> int:
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    if minimum is not None and parsed < minimum:
        return default
    return parsed


def get_camera_config() -> CameraConfig:
    backend = os.getenv("BALLOTCAM_CAMERA_BACKEND", "stub").strip().lower()
    if backend not in _BACKENDS:
        backend = "stub"
    return CameraConfig(
        backend=backend,
        device_index=_parse_int(os.getenv("BALLOTCAM_CAMERA_DEVICE_INDEX"), 0, minimum=0),
        debug_trail_size=_parse_int(os.getenv("BALLOTCAM_CAMERA_DEBUG_TRAIL"), 5, minimum=1),
        read_timeout_ms=_parse_int(os.getenv("BALLOTCAM_CAMERA_READ_TIMEOUT_MS"), 2000, minimum=1),
    )


def get_local_server_config() -> LocalServerConfig:
    level = os.getenv("BALLOTCAM_LOG_LEVEL", "INFO").strip().upper() or "INFO"
    return LocalServerConfig(
        host=os.getenv("BALLOTCAM_LOCAL_HOST", "127.0.0.1"),
        port=_parse_int(os.getenv("BALLOTCAM_LOCAL_PORT"), 8000, minimum=1),
        log_level=level,
    )


def get_log_level() -> str:
    return get_local_server_config().log_level

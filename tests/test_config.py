from __future__ import annotations

import pytest

from ballotcam.config import get_camera_config, get_local_server_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "BALLOTCAM_CAMERA_BACKEND",
        "BALLOTCAM_CAMERA_DEVICE_INDEX",
        "BALLOTCAM_CAMERA_DEBUG_TRAIL",
        "BALLOTCAM_CAMERA_READ_TIMEOUT_MS",
        "BALLOTCAM_LOCAL_HOST",
        "BALLOTCAM_LOCAL_PORT",
        "BALLOTCAM_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


def test_camera_defaults():
    config = get_camera_config()
    assert config.backend == "stub"
    assert config.device_index == 0
    assert config.debug_trail_size == 5
    assert config.read_timeout_ms == 2000


def test_camera_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("BALLOTCAM_CAMERA_BACKEND", " OpenCV ")
    monkeypatch.setenv("BALLOTCAM_CAMERA_DEVICE_INDEX", "2")
    monkeypatch.setenv("BALLOTCAM_CAMERA_DEBUG_TRAIL", "10")
    config = get_camera_config()
    assert config.backend == "opencv"
    assert config.device_index == 2
    assert config.debug_trail_size == 10


def test_invalid_values_fall_back(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("BALLOTCAM_CAMERA_BACKEND", "v4l2")
    monkeypatch.setenv("BALLOTCAM_CAMERA_DEVICE_INDEX", "-1")
    monkeypatch.setenv("BALLOTCAM_CAMERA_DEBUG_TRAIL", "many")
    config = get_camera_config()
    assert config.backend == "stub"
    assert config.device_index == 0
    assert config.debug_trail_size == 5


def test_local_server_config(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("BALLOTCAM_LOCAL_PORT", "9001")
    monkeypatch.setenv("BALLOTCAM_LOG_LEVEL", "debug")
    config = get_local_server_config()
    assert config.host == "127.0.0.1"
    assert config.port == 9001
    assert config.log_level == "DEBUG"

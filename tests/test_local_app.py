from __future__ import annotations

import base64

import pytest
from fastapi.testclient import TestClient

from ballotcam.camera.backends.stub import StubCapabilityProvider
from ballotcam.camera.service import CameraService
from ballotcam.config import get_camera_config
from ballotcam_local.main import create_app


def _client(monkeypatch: pytest.MonkeyPatch, provider: StubCapabilityProvider | None = None) -> TestClient:
    monkeypatch.setenv("BALLOTCAM_CAMERA_BACKEND", "stub")
    service = CameraService(get_camera_config(), provider=provider) if provider else None
    return TestClient(create_app(service))


def test_health(monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(monkeypatch)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_status_starts_idle(monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(monkeypatch)
    payload = client.get("/camera/status").json()
    assert payload == {
        "backend": "stub",
        "supported": True,
        "state": "idle",
        "active": False,
        "ready": False,
        "warning": None,
    }


def test_capture_without_session_is_conflict(monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(monkeypatch)
    response = client.post("/camera/capture")
    assert response.status_code == 409
    assert response.json()["error"] == "session_inactive"


def test_open_capture_close(monkeypatch: pytest.MonkeyPatch) -> None:
    provider = StubCapabilityProvider()
    client = _client(monkeypatch, provider)

    opened = client.post("/camera/open", headers={"X-Request-ID": "req-1"})
    assert opened.status_code == 200
    assert opened.json()["ready"] is True
    assert opened.json()["active"] is True

    captured = client.post("/camera/capture")
    assert captured.status_code == 200
    payload = captured.json()
    assert payload["captured"] is True
    assert payload["mime_type"] == "image/jpeg"
    assert (payload["width"], payload["height"]) == (640, 480)
    assert base64.b64decode(payload["image_base64"])[:2] == b"\xff\xd8"

    closed = client.post("/camera/close")
    assert closed.json()["state"] == "idle"
    assert closed.json()["active"] is False
    assert provider.handles[0].stop_calls == 1


def test_rejected_open_reports_warning(monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(monkeypatch, StubCapabilityProvider(reject_with="NotAllowedError"))

    opened = client.post("/camera/open")
    assert opened.status_code == 200
    payload = opened.json()
    assert payload["state"] == "failed"
    assert payload["active"] is False
    assert "allow camera permissions" in payload["warning"]

    assert client.post("/camera/capture").status_code == 409


def test_capture_while_attaching_is_not_ready(monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(monkeypatch, StubCapabilityProvider(auto_play=False))

    assert client.post("/camera/open").json()["state"] == "attaching"
    response = client.post("/camera/capture")
    assert response.status_code == 409
    assert response.json()["error"] == "capture_not_ready"


def test_debug_trail_lists_recent_entries(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BALLOTCAM_CAMERA_DEBUG_TRAIL", "4")
    client = _client(monkeypatch)
    client.post("/camera/open")

    entries = client.get("/camera/debug").json()["entries"]

    assert len(entries) == 4
    assert entries[-1]["message"] == "attaching -> ready"


def test_shutdown_closes_session(monkeypatch: pytest.MonkeyPatch) -> None:
    provider = StubCapabilityProvider()
    with _client(monkeypatch, provider) as client:
        client.post("/camera/open")
        assert provider.handles[0].stop_calls == 0
    assert provider.handles[0].stop_calls == 1

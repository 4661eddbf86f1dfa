from __future__ import annotations

import pytest

from ballotcam.camera.errors import (
    CameraError,
    ConstraintsUnsatisfiableError,
    DeviceBusyError,
    DeviceNotFoundError,
    PermissionDeniedError,
    UnknownCameraError,
    classify_rejection,
)


@pytest.mark.parametrize(
    ("reason", "expected"),
    [
        ("NotAllowedError", PermissionDeniedError),
        ("NotFoundError", DeviceNotFoundError),
        ("NotReadableError", DeviceBusyError),
        ("OverconstrainedError", ConstraintsUnsatisfiableError),
        ("AbortError", UnknownCameraError),
        ("", UnknownCameraError),
        (None, UnknownCameraError),
    ],
)
def test_classify_rejection(reason, expected):
    error = classify_rejection(reason)
    assert type(error) is expected
    assert isinstance(error, CameraError)


def test_classification_is_deterministic():
    first = classify_rejection("NotReadableError")
    second = classify_rejection("NotReadableError")
    assert first.message == second.message
    assert first.status_code == second.status_code == 409


def test_unknown_error_keeps_detail():
    error = classify_rejection("SecurityError", "Camera blocked by policy")
    assert isinstance(error, UnknownCameraError)
    assert error.detail == "Camera blocked by policy"
    assert error.message == "Failed to access camera. Camera blocked by policy"


def test_unknown_error_without_detail_has_generic_message():
    assert classify_rejection("SecurityError").message == "Failed to access camera. Unknown error occurred."


def test_operator_messages():
    assert "allow camera permissions" in PermissionDeniedError().message
    assert "No camera found" in DeviceNotFoundError().message
    assert "constraints could not be satisfied" in ConstraintsUnsatisfiableError().message

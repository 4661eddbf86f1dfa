from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ballotcam.camera.errors import CameraError
from ballotcam.camera.models import CameraStatus, CaptureResponse, DebugTrailResponse
from ballotcam.camera.service import CameraService
from ballotcam.logging.audit import audit_event
from ballotcam.logging.logger import get_logger


def _request_id(request: Request) -> str | None:
    return request.headers.get("X-Request-ID") or request.headers.get("X-Request-Id")


def create_app(camera_service: CameraService | None = None) -> FastAPI:
    get_logger()
    service = camera_service or CameraService()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        service.close()

    app = FastAPI(title="BallotCam Local", lifespan=lifespan)
    app.state.camera_service = service

    @app.exception_handler(CameraError)
    async def camera_error_handler(request: Request, exc: CameraError) -> JSONResponse:
        audit_event("camera.error", request_id=_request_id(request), error=exc.code, path=request.url.path)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.code, "message": exc.message})

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/camera/status", response_model=CameraStatus)
    async def camera_status(request: Request) -> CameraStatus:
        return service.status(request_id=_request_id(request))

    @app.post("/camera/open", response_model=CameraStatus)
    async def camera_open(request: Request) -> CameraStatus:
        return await service.open(request_id=_request_id(request))

    @app.post("/camera/close", response_model=CameraStatus)
    async def camera_close(request: Request) -> CameraStatus:
        return service.close(request_id=_request_id(request))

    @app.post("/camera/capture", response_model=CaptureResponse)
    async def camera_capture(request: Request) -> CaptureResponse:
        return service.capture(request_id=_request_id(request))

    @app.get("/camera/debug", response_model=DebugTrailResponse)
    async def camera_debug() -> DebugTrailResponse:
        return service.debug_trail()

    return app

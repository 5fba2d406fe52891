from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

import httpx
from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .dependencies import get_state
from .gallery import GalleryRecorder, create_gallery_storage
from .gallery_routes import router as gallery_router
from .gateway_client import GatewayBusinessError, GatewayClient, GatewayPayloadError, GatewayTransportError
from .image_utils import compress_image
from .poller import Clock, Poller
from .reporter import to_user_progress
from .review_routes import router as review_router
from .reviews import ReviewStore
from .state import GatewayConfig, GatewayState
from .status import TaskStatus, map_status
from .task_client import TaskClient, WorkflowSession, select_image_urls

logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"


class ImageIdPayload(BaseModel):
    imageId: Optional[str] = None


class TaskIdPayload(BaseModel):
    taskId: Optional[str] = None


class StatusResponse(BaseModel):
    status: str
    progress: int


class ResultResponse(BaseModel):
    images: List[str]


class TaskSessionResponse(BaseModel):
    session_id: str
    state: str
    task_id: Optional[str] = None
    status: Optional[str] = None
    progress: int = 0
    result_url: Optional[str] = None
    error_category: Optional[str] = None
    message: Optional[str] = None


def _gateway_failure(error: str, exc: Exception) -> JSONResponse:
    if isinstance(exc, GatewayBusinessError):
        return JSONResponse({"error": exc.msg or error}, status_code=500)
    return JSONResponse({"error": error, "details": str(exc)}, status_code=500)


def _session_response(session_id: str, session: WorkflowSession) -> TaskSessionResponse:
    if session.current is None:
        return TaskSessionResponse(session_id=session_id, state="idle")
    return TaskSessionResponse(session_id=session_id, **session.current.snapshot())


def build_state(
    config: GatewayConfig,
    gateway: Optional[GatewayClient] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Optional[Clock] = None,
) -> GatewayState:
    data_dir = config.resolved_data_dir()
    if gateway is None:
        gateway = GatewayClient(
            base_url=config.api_base_url,
            api_key=config.api_key,
            webapp_id=config.webapp_id,
            node_id=config.node_id,
            timeout=config.request_timeout,
            transport=transport,
        )
    recorder = GalleryRecorder(
        create_gallery_storage(config.storage_type, data_dir),
        limit=config.gallery_limit,
    )
    poller = Poller(
        gateway,
        interval=config.poll_interval,
        max_consecutive_failures=config.poll_max_failures,
        timeout=config.poll_timeout,
        clock=clock,
    )
    task_client = TaskClient(
        gateway,
        poller=poller,
        recorder=recorder,
        max_attempts=config.retry_attempts,
        retry_delay=config.retry_delay,
        clock=clock,
        locale=config.locale,
    )
    return GatewayState(
        config=config,
        gateway=gateway,
        recorder=recorder,
        reviews=ReviewStore(data_dir / "reviews.json"),
        task_client=task_client,
        http_transport=transport,
    )


def create_app(
    config: Optional[GatewayConfig] = None,
    gateway: Optional[GatewayClient] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    cfg = config or GatewayConfig()
    state = build_state(cfg, gateway=gateway, transport=transport, clock=clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI):  # noqa: ANN001
        logger.info(f"Gateway configuration: {cfg.describe()}")
        try:
            yield
        finally:
            for session in state.sessions.values():
                session.reset()
            state.sessions.clear()
            await state.gateway.close()

    app = FastAPI(title="Polaroid Gateway", version=APP_VERSION, lifespan=lifespan)
    app.state.gateway_state = state

    app.include_router(gallery_router)
    app.include_router(review_router)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):  # noqa: ANN001
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:  # noqa: BLE001
            duration_ms = int((time.perf_counter() - started) * 1000)
            logger.exception(f"{request.method} {request.url.path} failed after {duration_ms}ms")
            return JSONResponse(
                {"error": "Request failed", "message": str(exc)},
                status_code=500,
            )
        duration_ms = int((time.perf_counter() - started) * 1000)
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms}ms)")
        return response

    @app.post("/api/upload")
    async def upload(
        state: GatewayState = Depends(get_state),
        file: UploadFile = File(None),
    ) -> JSONResponse:
        if file is None:
            raise HTTPException(status_code=400, detail="No file provided")
        data = await file.read()
        if not data:
            raise HTTPException(status_code=400, detail="No file provided")

        try:
            body = await state.gateway.upload_raw(
                data,
                filename=file.filename or "image.jpg",
                content_type=file.content_type or "image/jpeg",
            )
        except GatewayTransportError as e:
            logger.error(f"Error processing upload: {e}")
            return _gateway_failure("Failed to upload file", e)
        return JSONResponse(body)

    @app.post("/api/generate")
    async def generate(
        payload: ImageIdPayload,
        state: GatewayState = Depends(get_state),
    ) -> JSONResponse:
        if not payload.imageId:
            raise HTTPException(status_code=400, detail="No image ID provided")

        logger.info(f"Generating image with ID: {payload.imageId}")
        try:
            body = await state.gateway.run_raw(payload.imageId)
        except GatewayTransportError as e:
            logger.error(f"Error generating image: {e} (body: {e.body})")
            return _gateway_failure("Failed to generate image", e)
        return JSONResponse(body)

    @app.post("/api/status", response_model=StatusResponse)
    async def status(
        payload: TaskIdPayload,
        state: GatewayState = Depends(get_state),
    ):
        if not payload.taskId:
            raise HTTPException(status_code=400, detail="No task ID provided")

        try:
            data = await state.gateway.status(payload.taskId)
            update = map_status(data)
        except (GatewayTransportError, GatewayBusinessError) as e:
            logger.error(f"Error checking status for {payload.taskId}: {e}")
            return _gateway_failure("Failed to check status", e)
        except ValueError as e:
            logger.error(f"Malformed status for {payload.taskId}: {e}")
            return _gateway_failure("Failed to check status", e)

        status_name = update.raw if update.status is TaskStatus.UNKNOWN else update.status.value
        progress = to_user_progress(update.status, update.progress)
        logger.info(f"Processed status for {payload.taskId}: {status_name} progress={progress}")
        return StatusResponse(status=status_name, progress=progress)

    @app.post("/api/result", response_model=ResultResponse)
    async def result(
        payload: TaskIdPayload,
        state: GatewayState = Depends(get_state),
    ):
        if not payload.taskId:
            raise HTTPException(status_code=400, detail="No task ID provided")

        try:
            items = await state.gateway.outputs(payload.taskId)
        except (GatewayTransportError, GatewayBusinessError, GatewayPayloadError) as e:
            logger.error(f"Error getting results for {payload.taskId}: {e}")
            return _gateway_failure("Failed to get results", e)

        images = select_image_urls(items)
        logger.info(f"Found {len(images)} images for {payload.taskId}")
        return ResultResponse(images=images)

    @app.post("/api/tasks", response_model=TaskSessionResponse, status_code=202)
    async def start_task(
        state: GatewayState = Depends(get_state),
        file: UploadFile = File(None),
        session_id: Optional[str] = Form(None),
    ) -> TaskSessionResponse:
        """
        Start the generation workflow for a session.

        Any workflow already running for the same session is cancelled first.
        """
        if file is None:
            raise HTTPException(status_code=400, detail="No file provided")
        data = await file.read()
        if not data:
            raise HTTPException(status_code=400, detail="No file provided")

        try:
            compressed = await asyncio.to_thread(compress_image, data)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"Invalid image: {e}") from e

        state.prune_sessions()
        session_id = session_id or uuid.uuid4().hex
        session = state.sessions.get(session_id)
        if session is None:
            session = WorkflowSession(state.task_client)
            state.sessions[session_id] = session
        session.start(compressed, filename="image.jpg")
        logger.info(f"Started workflow for session {session_id} ({len(data)} -> {len(compressed)} bytes)")
        return _session_response(session_id, session)

    @app.get("/api/tasks/{session_id}", response_model=TaskSessionResponse)
    async def get_task(session_id: str, state: GatewayState = Depends(get_state)) -> TaskSessionResponse:
        state.prune_sessions()
        session = state.sessions.get(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="session not found")
        return _session_response(session_id, session)

    @app.delete("/api/tasks/{session_id}")
    async def reset_task(session_id: str, state: GatewayState = Depends(get_state)) -> JSONResponse:
        session = state.sessions.pop(session_id, None)
        if session is None:
            raise HTTPException(status_code=404, detail="session not found")
        session.reset()
        return JSONResponse({"session_id": session_id, "state": "reset"})

    @app.get("/api/health")
    async def health_check(state: GatewayState = Depends(get_state)) -> JSONResponse:
        status = {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": state.config.environment,
            "apiConfigured": state.config.api_configured,
            "apiBaseUrl": state.config.api_base_url,
        }
        logger.info(f"Health check: {status}")
        return JSONResponse(status)

    @app.post("/api/debug")
    async def debug(state: GatewayState = Depends(get_state)) -> JSONResponse:
        env = state.config.describe()
        timestamp = datetime.now(timezone.utc).isoformat()
        if not state.config.api_configured:
            logger.error("Debug check: API key not configured")
            return JSONResponse(
                {"status": "error", "message": "API key not configured, check environment variables", "env": env},
                status_code=500,
            )

        try:
            data = await state.gateway.ping()
        except GatewayTransportError as e:
            logger.error(f"Gateway connectivity test failed: {e}")
            return JSONResponse(
                {
                    "status": "error",
                    "message": "Gateway connection failed",
                    "timestamp": timestamp,
                    "error": {"message": str(e), "response": e.body, "status": e.status_code},
                    "env": env,
                }
            )

        logger.info(f"Gateway connectivity test response: {data}")
        return JSONResponse(
            {
                "status": "success",
                "message": "Gateway connection succeeded",
                "timestamp": timestamp,
                "data": data,
                "env": env,
            }
        )

    return app

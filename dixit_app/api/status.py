from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from dixit_app.api.errors import error_response
from dixit_app.config import Settings, get_settings
from dixit_app.models.schemas import HealthMemory, HealthResponse, SleepResponse, WelcomeResponse
from dixit_app.observability.request_id import get_request_id
from dixit_app.services.process_stats import ProcessStats, get_process_stats, to_megabytes
from dixit_app.services.sleep import SleepDurationError, pause, resolve_duration


WELCOME_MESSAGE = "Hello World from EKS CI/CD Demo!!"

router = APIRouter(tags=["status"])


@router.get("/", response_model=WelcomeResponse)
async def root(
    request_id: str = Depends(get_request_id),
    settings: Settings = Depends(get_settings),
) -> WelcomeResponse:
    return WelcomeResponse(
        message=WELCOME_MESSAGE,
        app=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        request_id=request_id,
    )


@router.get("/health", response_model=HealthResponse)
async def health(
    request_id: str = Depends(get_request_id),
    settings: Settings = Depends(get_settings),
    stats: ProcessStats = Depends(get_process_stats),
) -> HealthResponse:
    # Reaching this handler at all is the liveness signal; nothing deeper is probed.
    memory = stats.memory()
    return HealthResponse(
        status="healthy",
        timestamp=stats.timestamp(),
        uptime=f"{int(stats.uptime_seconds())} seconds",
        memory=HealthMemory(
            rss=to_megabytes(memory.rss),
            heap_used=to_megabytes(memory.heap_used),
            heap_total=to_megabytes(memory.heap_total),
            external=to_megabytes(memory.external),
        ),
        environment=settings.environment,
        app=settings.app_name,
        version=settings.app_version,
        request_id=request_id,
    )


@router.get(
    "/sleep",
    response_model=SleepResponse,
    responses={status.HTTP_400_BAD_REQUEST: {"description": "Invalid or too large duration"}},
)
async def sleep(
    ms: str | None = Query(default=None, description="Delay in milliseconds"),
    request_id: str = Depends(get_request_id),
    settings: Settings = Depends(get_settings),
) -> SleepResponse | JSONResponse:
    try:
        duration = resolve_duration(ms, default_ms=settings.sleep_default_ms, max_ms=settings.sleep_max_ms)
    except SleepDurationError as exc:
        structlog.get_logger("app").info("sleep_rejected", ms=ms, reason=str(exc))
        return error_response(status.HTTP_400_BAD_REQUEST, request_id, str(exc))

    await pause(duration)
    # The requested duration is echoed back, not a measured one.
    return SleepResponse(message=f"Slept {duration}ms", duration=duration, request_id=request_id)

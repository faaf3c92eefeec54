from __future__ import annotations

from fastapi import APIRouter, Depends

from dixit_app.config import Settings, get_settings
from dixit_app.models.schemas import (
    CpuUsage,
    InfoResponse,
    MemoryUsage,
    MetricsResponse,
    PlatformInfo,
    UptimeInfo,
)
from dixit_app.observability.request_id import get_request_id
from dixit_app.services.process_stats import ProcessStats, format_uptime, get_process_stats


DESCRIPTION = "A demo application for CI/CD pipeline with Kubernetes deployment"

FEATURES = [
    "Health monitoring",
    "Request logging",
    "Performance metrics",
    "Configurable delays",
    "CORS support",
    "Security headers",
    "Response compression",
]

ENDPOINTS = {
    "/": "Welcome message with app info",
    "/health": "Health check with system status",
    "/sleep": "Delayed response (use ?ms=<milliseconds>)",
    "/api/info": "Application information",
    "/api/metrics": "Performance metrics",
}

router = APIRouter(prefix="/api", tags=["info"])


@router.get("/info", response_model=InfoResponse)
async def info(
    request_id: str = Depends(get_request_id),
    settings: Settings = Depends(get_settings),
) -> InfoResponse:
    return InfoResponse(
        app=settings.app_name,
        version=settings.app_version,
        description=DESCRIPTION,
        features=list(FEATURES),
        endpoints=dict(ENDPOINTS),
        request_id=request_id,
    )


@router.get("/metrics", response_model=MetricsResponse)
async def metrics(
    request_id: str = Depends(get_request_id),
    stats: ProcessStats = Depends(get_process_stats),
) -> MetricsResponse:
    seconds = int(stats.uptime_seconds())
    memory = stats.memory()
    cpu = stats.cpu()
    platform = stats.platform()
    return MetricsResponse(
        timestamp=stats.timestamp(),
        uptime=UptimeInfo(seconds=seconds, human=format_uptime(seconds)),
        memory=MemoryUsage(
            rss=memory.rss,
            heap_used=memory.heap_used,
            heap_total=memory.heap_total,
            external=memory.external,
            array_buffers=memory.array_buffers,
        ),
        cpu=CpuUsage(user=cpu.user, system=cpu.system),
        platform=PlatformInfo(
            arch=platform.arch,
            platform=platform.platform,
            python_version=platform.python_version,
        ),
        request_id=request_id,
    )

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Envelope(BaseModel):
    """Base for every JSON body the service returns; serialised with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    request_id: str = Field(min_length=1)


class ErrorResponse(Envelope):
    error: str
    details: str | None = None


class NotFoundResponse(Envelope):
    error: str
    method: str
    url: str


class WelcomeResponse(Envelope):
    message: str
    app: str
    version: str
    environment: str


class HealthMemory(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    rss: str
    heap_used: str
    heap_total: str
    external: str


class HealthResponse(Envelope):
    status: str = "healthy"
    timestamp: str
    uptime: str
    memory: HealthMemory
    environment: str
    app: str
    version: str


class SleepResponse(Envelope):
    message: str
    duration: int


class InfoResponse(Envelope):
    app: str
    version: str
    description: str
    features: list[str] = Field(min_length=1)
    endpoints: dict[str, str]


class UptimeInfo(BaseModel):
    seconds: int
    human: str


class MemoryUsage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    rss: int
    heap_used: int
    heap_total: int
    external: int
    array_buffers: int


class CpuUsage(BaseModel):
    user: int
    system: int


class PlatformInfo(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    arch: str
    platform: str
    python_version: str


class MetricsResponse(Envelope):
    timestamp: str
    uptime: UptimeInfo
    memory: MemoryUsage
    cpu: CpuUsage
    platform: PlatformInfo

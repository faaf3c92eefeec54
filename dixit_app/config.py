from __future__ import annotations

import re
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_SIZE_UNITS = {"b": 1, "kb": 1024, "mb": 1024**2, "gb": 1024**3}
_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(b|kb|mb|gb)?\s*$", re.IGNORECASE)


def parse_size(value: str) -> int:
    """Parse a human size such as ``10mb`` or ``512kb`` into bytes."""

    match = _SIZE_RE.match(value)
    if match is None:
        raise ValueError(f"Invalid size: {value!r}")
    number, unit = match.groups()
    return int(float(number) * _SIZE_UNITS[(unit or "b").lower()])


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT")

    app_name: str = Field(default="Dixit App", alias="APP_NAME")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")

    cors_origin: str = Field(default="*", alias="CORS_ORIGIN")
    cors_credentials: bool = Field(default=False, alias="CORS_CREDENTIALS")
    max_request_size: str = Field(default="10mb", alias="MAX_REQUEST_SIZE")
    security_headers_enabled: bool = Field(default=True, alias="SECURITY_HEADERS_ENABLED")
    compression_enabled: bool = Field(default=True, alias="COMPRESSION_ENABLED")

    sleep_default_ms: int = Field(default=1000, ge=0, alias="SLEEP_DEFAULT_MS")
    sleep_max_ms: int = Field(default=30000, ge=0, alias="SLEEP_MAX_MS")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    shutdown_timeout_seconds: int = Field(default=10, ge=0, alias="SHUTDOWN_TIMEOUT_SECONDS")

    @field_validator("max_request_size")
    @classmethod
    def _check_size(cls, v: str) -> str:
        parse_size(v)
        return v

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origin.split(",") if origin.strip()]

    @property
    def max_request_bytes(self) -> int:
        return parse_size(self.max_request_size)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

from __future__ import annotations

from collections.abc import AsyncIterator, Callable

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from dixit_app.config import get_settings
from dixit_app.main import create_app
from dixit_app.services.process_stats import ProcessStats, set_process_stats


_SETTINGS_ENV = (
    "HOST",
    "PORT",
    "APP_NAME",
    "APP_VERSION",
    "ENVIRONMENT",
    "CORS_ORIGIN",
    "CORS_CREDENTIALS",
    "MAX_REQUEST_SIZE",
    "SECURITY_HEADERS_ENABLED",
    "COMPRESSION_ENABLED",
    "SLEEP_DEFAULT_MS",
    "SLEEP_MAX_MS",
    "LOG_LEVEL",
    "SHUTDOWN_TIMEOUT_SECONDS",
)


class FixedProcessStats(ProcessStats):
    """Process snapshot with a pinned uptime, for deterministic formatting checks."""

    def __init__(self, uptime: float) -> None:
        super().__init__()
        self._uptime = uptime

    def uptime_seconds(self) -> float:
        return self._uptime


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    # Host environment must not leak into the settings under test.
    for name in _SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    set_process_stats(None)

    yield

    set_process_stats(None)
    get_settings.cache_clear()


@pytest.fixture
def fixed_uptime() -> Callable[[float], None]:
    def _pin(seconds: float) -> None:
        set_process_stats(FixedProcessStats(seconds))

    return _pin


@pytest.fixture
def build_app(monkeypatch: pytest.MonkeyPatch) -> Callable[..., FastAPI]:
    """Build a fresh app after applying environment overrides."""

    def _build(**env: str) -> FastAPI:
        for name, value in env.items():
            monkeypatch.setenv(name, value)
        get_settings.cache_clear()
        return create_app()

    return _build


@pytest.fixture
def app(build_app: Callable[..., FastAPI]) -> FastAPI:
    return build_app()


@pytest.fixture
async def api_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

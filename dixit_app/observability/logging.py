"""One JSON object per line on stdout, for both structlog and stdlib records.

Request-scoped fields bound by the request-context middleware (request_id,
method, path) are merged into every line written while that request runs.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

_CONFIGURED = False


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    # Unknown names come back from getLevelName as "Level X" strings.
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def _shared_processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _json_handler(shared: list[Any]) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=shared,
        )
    )
    return handler


def _route_server_loggers(handler: logging.Handler, level: int) -> None:
    for name in _SERVER_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers = [handler]
        server_logger.propagate = False
        server_logger.setLevel(level)
    # Access lines would duplicate the http_request event.
    logging.getLogger("uvicorn.access").disabled = True


def configure_logging(level: int | str = logging.INFO) -> None:
    """Install the JSON pipeline on the root logger and uvicorn's loggers.

    ``level`` may be a number or a name such as ``"debug"``; unknown names
    fall back to INFO. Only the first call has any effect.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    resolved = _resolve_level(level)
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = _json_handler(shared)
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(resolved)
    _route_server_loggers(handler, resolved)

    _CONFIGURED = True

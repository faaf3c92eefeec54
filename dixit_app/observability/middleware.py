from __future__ import annotations

from time import perf_counter
from typing import Any, Callable

import structlog
from starlette.datastructures import MutableHeaders

from dixit_app.api.errors import internal_error_response
from dixit_app.observability.request_id import REQUEST_ID_HEADER, new_request_id


def _log(level: str, event: str, **fields: Any) -> None:
    # Logging must never get in the way of delivering the response.
    try:
        getattr(structlog.get_logger("access"), level)(event, **fields)
    except Exception:  # noqa: BLE001
        pass


class RequestContextMiddleware:
    """Assigns request IDs, writes start/finish access logs, renders 500s."""

    def __init__(self, app: Callable[..., Any], *, expose_error_details: bool = False) -> None:
        self.app = app
        self.expose_error_details = expose_error_details

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = new_request_id()
        scope.setdefault("state", {})["request_id"] = request_id
        path = scope.get("path")
        method = scope.get("method")

        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            path=path,
            method=method,
        )

        start = perf_counter()
        status_code: int = 500
        response_started = False

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code, response_started

            if message.get("type") == "http.response.start":
                response_started = True
                status_code = int(message.get("status", 500))
                headers = MutableHeaders(scope=message)
                headers[REQUEST_ID_HEADER] = request_id

            await send(message)

        _log("info", "http_request_started")
        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            structlog.get_logger("app").exception("unhandled_exception", error=str(exc))
            if response_started:
                # Headers are already on the wire; let the server drop the connection.
                raise
            response = internal_error_response(request_id, exc, expose_details=self.expose_error_details)
            await response(scope, receive, send_wrapper)
        finally:
            elapsed_ms = (perf_counter() - start) * 1000.0
            _log(
                "info",
                "http_request",
                status_code=status_code,
                elapsed_ms=round(elapsed_ms, 2),
            )
            structlog.contextvars.clear_contextvars()

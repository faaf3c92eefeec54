"""Error envelopes and the HTTP error handlers that render them.

Every error body has the shape ``{"error": <str>, ..., "requestId": <id>}`` so
clients can correlate failures with the server's log lines.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dixit_app.models.schemas import ErrorResponse, NotFoundResponse
from dixit_app.observability.request_id import get_request_id


NOT_FOUND_MESSAGE = "Endpoint not found"
INTERNAL_ERROR_MESSAGE = "Internal Server Error"
PAYLOAD_TOO_LARGE_MESSAGE = "Request entity too large"

# Routes are keyed on method and path, so a wrong method is just another unknown endpoint.
_NOT_FOUND_STATUSES = {status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED}


def error_response(status_code: int, request_id: str, error: str, **extra: Any) -> JSONResponse:
    body = ErrorResponse(error=error, request_id=request_id, **extra)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


def internal_error_response(request_id: str, exc: BaseException, *, expose_details: bool) -> JSONResponse:
    details = str(exc) if expose_details else None
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        request_id,
        INTERNAL_ERROR_MESSAGE,
        details=details,
    )


def not_found_response(request: Request) -> JSONResponse:
    url = request.url.path
    if request.url.query:
        url = f"{url}?{request.url.query}"
    body = NotFoundResponse(
        error=NOT_FOUND_MESSAGE,
        method=request.method,
        url=url,
        request_id=get_request_id(request),
    )
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=body.model_dump(by_alias=True))


def register_error_handlers(app: FastAPI) -> None:
    """Register the HTTP error handlers on the FastAPI app.

    Unhandled exceptions are not registered here: they are rendered by
    ``RequestContextMiddleware``, which wraps the whole stack and so can
    guarantee the request ID and the completion log line.
    """

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code in _NOT_FOUND_STATUSES:
            return not_found_response(request)

        structlog.get_logger("app").warning("http_error", status_code=exc.status_code, detail=exc.detail)
        response = error_response(exc.status_code, get_request_id(request), str(exc.detail))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

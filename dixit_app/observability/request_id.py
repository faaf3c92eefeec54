from __future__ import annotations

import uuid

from fastapi import Request


REQUEST_ID_HEADER = "X-Request-ID"


def new_request_id() -> str:
    try:
        return str(uuid.uuid4())
    except NotImplementedError:
        # No OS entropy source; uuid1 is built from the clock and a counter.
        return str(uuid.uuid1())


def get_request_id(request: Request) -> str:
    """Return the correlation ID assigned by ``RequestContextMiddleware``.

    Usable as a FastAPI dependency. Outside the middleware (e.g. an app built
    without it) a fresh ID is assigned so the envelope is never missing one.
    """

    request_id = getattr(request.state, "request_id", None)
    if request_id is None:
        request_id = new_request_id()
        request.state.request_id = request_id
    return request_id

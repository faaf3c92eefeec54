"""Request-scoped observability for the HTTP service.

Request IDs are generated per request and bound into structlog contextvars so
every log line emitted while handling a request can be correlated.
"""

from __future__ import annotations

from __future__ import annotations

import argparse

import uvicorn

from dixit_app.config import get_settings
from dixit_app.observability.logging import configure_logging


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Dixit App HTTP service")
    parser.add_argument("--host", default=settings.host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to listen on")
    args = parser.parse_args()

    configure_logging(settings.log_level)
    # uvicorn stops accepting connections on SIGINT/SIGTERM and drains in-flight requests.
    uvicorn.run(
        "dixit_app.main:app",
        host=args.host,
        port=args.port,
        log_config=None,
        timeout_graceful_shutdown=settings.shutdown_timeout_seconds,
    )


if __name__ == "__main__":
    main()

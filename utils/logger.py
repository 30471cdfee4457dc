import logging
import os
import sys
import time
import uuid
from typing import Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging for the API process.

    - Level from the argument, else the LOG_LEVEL env var (default INFO)
    - A single stdout handler; nothing is added when uvicorn already configured one
    - uvicorn loggers follow the same level
    """
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    resolved = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(os.getenv("LOG_FORMAT", DEFAULT_LOG_FORMAT)))
        root.addHandler(handler)
    root.setLevel(resolved)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(resolved)


class RequestContextLogMiddleware(BaseHTTPMiddleware):
    """Logs each request with its latency and status and tags the response
    with an x-request-id (incoming header reused when present).
    """

    def __init__(self, app):
        super().__init__(app)
        self.logger = logging.getLogger("backend.http")

    async def dispatch(self, request: Request, call_next: Callable):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        started = time.perf_counter()
        method = request.method
        path = request.url.path
        client = request.client.host if request.client else ""

        self.logger.info("request start %s %s client=%s rid=%s", method, path, client, request_id)
        try:
            response = await call_next(request)
        except Exception:
            self.logger.exception(
                "request error %s %s time_ms=%s rid=%s",
                method,
                path,
                int((time.perf_counter() - started) * 1000),
                request_id,
            )
            raise

        response.headers["x-request-id"] = request_id
        self.logger.info(
            "request end %s %s status=%s time_ms=%s rid=%s",
            method,
            path,
            response.status_code,
            int((time.perf_counter() - started) * 1000),
            request_id,
        )
        return response

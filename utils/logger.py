import logging
import os
import sys
import time
import uuid
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv(
    "LOG_FORMAT",
    "%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

# Never echoed into logs: webhook signatures and the admin secret travel here
_SENSITIVE_HEADERS = ("x-formsg-signature", "x-admin-secret", "authorization")


def setup_logging() -> None:
    """Configure root logging and align the uvicorn loggers.

    - Level controlled by LOG_LEVEL env var (default INFO)
    - Single stdout handler; skipped if something (uvicorn) already installed one
    """
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    level = getattr(logging, LOG_LEVEL, logging.INFO)
    root.setLevel(level)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)


class RequestContextLogMiddleware(BaseHTTPMiddleware):
    """Middleware that:
    - Uses incoming X-Request-ID or generates one
    - Logs request start and completion with latency and status code
    - Attaches the request id to the response and to request.state
    """

    def __init__(self, app):
        super().__init__(app)
        self.logger = logging.getLogger("bridge.http")

    async def dispatch(self, request: Request, call_next: Callable):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        start = time.time()

        path = request.url.path
        method = request.method
        client = request.client.host if request.client else ""
        signed = any(h in request.headers for h in _SENSITIVE_HEADERS)

        self.logger.info(
            "request start %s %s client=%s signed=%s rid=%s",
            method,
            path,
            client,
            signed,
            request_id,
        )

        try:
            response = await call_next(request)
        except Exception:
            elapsed_ms = int((time.time() - start) * 1000)
            self.logger.exception(
                "request error %s %s time_ms=%s rid=%s",
                method,
                path,
                elapsed_ms,
                request_id,
            )
            raise

        elapsed_ms = int((time.time() - start) * 1000)
        response.headers["x-request-id"] = request_id
        self.logger.info(
            "request end %s %s status=%s time_ms=%s rid=%s",
            method,
            path,
            response.status_code,
            elapsed_ms,
            request_id,
        )
        return response

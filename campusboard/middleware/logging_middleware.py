"""Request logging middleware"""
import time
import logging
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("api.request")

# health checks, docs and the socket status poll
SKIP_PATHS = ("/health", "/ws/status", "/docs", "/redoc", "/openapi.json")

SESSION_HEADER = "x-session-id"


def describe(request: Request) -> str:
    """`METHOD /path` plus the presence session of the calling tab, when it sent one"""
    line = f"{request.method} {request.url.path}"
    session_id = request.headers.get(SESSION_HEADER)
    if session_id:
        line += f" [session {session_id}]"
    return line


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One line per HTTP request: INFO below 400, WARNING for client errors,
    ERROR for server errors. Unhandled exceptions are logged with their
    traceback and re-raised.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        line = describe(request)
        client_ip = request.client.host if request.client else "unknown"

        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.exception("%s - unhandled - %.2fms - %s", line, duration_ms, client_ip)
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        if not request.url.path.startswith(SKIP_PATHS):
            status_code = response.status_code
            if status_code >= 500:
                level = logging.ERROR
            elif status_code >= 400:
                level = logging.WARNING
            else:
                level = logging.INFO
            logger.log(level, "%s - %d - %.2fms - %s", line, status_code, duration_ms, client_ip)

        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response

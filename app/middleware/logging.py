"""
Logging middleware for request/response logging.

Logs all HTTP requests with timing and records request metrics.
"""
import time
import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.routes.metrics import track_request

logger = structlog.get_logger()


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log all HTTP requests with timing and context.

    Adds: request_id, route, method, duration_ms, status to every log.
    The request id is taken from X-Request-ID when the caller sends one
    and is echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request_logger = logger.bind(
            request_id=request_id,
            route=request.url.path,
            method=request.method,
            client=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            request_logger.error(
                "request_failed",
                status_code=500,
                duration_ms=round(duration_ms, 2),
                error=str(e)
            )
            raise

        duration = time.time() - start_time
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        track_request(request.method, endpoint, response.status_code, duration)

        request_logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2)
        )
        response.headers["X-Request-ID"] = request_id

        return response

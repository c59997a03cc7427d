"""HTTP middleware: correlation IDs, request logging and body size limits."""

import logging
import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from core.error_handler import build_error_response, set_correlation_id


logger = logging.getLogger(__name__)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Middleware to generate and track correlation IDs for requests.

    This middleware:
    - Generates unique correlation IDs for each request
    - Sets the correlation ID in the request context
    - Adds correlation ID to response headers
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request with correlation ID."""
        correlation_id = request.headers.get("X-Correlation-ID")
        if not correlation_id:
            correlation_id = str(uuid.uuid4())

        set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log one line per request with method, path, client, status and duration."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "%s %s from %s -> %d (%.1f ms, user_agent=%s)",
            request.method,
            request.url.path,
            request.client.host if request.client else "unknown",
            response.status_code,
            elapsed_ms,
            request.headers.get("user-agent", "-"),
        )
        return response


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject request bodies larger than ``max_body_size`` bytes with a 413."""

    def __init__(self, app: ASGIApp, max_body_size: int) -> None:
        super().__init__(app)
        self.max_body_size = max_body_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.method in {"POST", "PUT", "PATCH"}:
            declared = request.headers.get("content-length")
            if declared is not None:
                try:
                    too_large = int(declared) > self.max_body_size
                except ValueError:
                    return build_error_response(
                        status_code=400, message="Invalid Content-Length header"
                    )
            else:
                too_large = len(await request.body()) > self.max_body_size
            if too_large:
                logger.warning(
                    "Rejected %s %s: body exceeds %d bytes",
                    request.method,
                    request.url.path,
                    self.max_body_size,
                )
                return build_error_response(
                    status_code=413,
                    message=f"Request body exceeds {self.max_body_size} bytes",
                )
        return await call_next(request)

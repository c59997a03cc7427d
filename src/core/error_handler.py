"""Centralized error handling and logging for the enhancement service.

This module provides:
- Global exception handler for FastAPI producing the ``{error, message}`` envelope
- Structured logging with correlation IDs
- Environment-aware error messages (generic in production, detailed in dev)
- Prevention of prompt text and credential leakage into logs
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pythonjsonlogger.json import JsonFormatter
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from core.config import get_settings
from core.exceptions import AppError
from core.security_config import generic_error_message, is_sensitive_key
from schemas.api import ErrorResponse


# Context variable for correlation ID tracking across async calls
_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

logger = logging.getLogger(__name__)


def get_correlation_id() -> str:
    """Get or create a correlation ID for request tracing."""
    correlation_id: str | None = _correlation_id_var.get()
    if correlation_id is None or correlation_id == "":
        new_id = str(uuid.uuid4())
        _correlation_id_var.set(new_id)
        return new_id
    return correlation_id


def set_correlation_id(correlation_id: str | None) -> None:
    """Set the correlation ID for the current context."""
    _correlation_id_var.set(correlation_id)


class StructuredLogger:
    """Structured logger that includes correlation IDs and sanitized data."""

    def __init__(self, logger_name: str):
        self.logger = logging.getLogger(logger_name)

    def _log_with_context(
        self,
        level: int,
        message: str,
        extra_data: dict[str, Any] | None = None,
        exc_info: bool = False,
    ) -> None:
        """Log with correlation ID and structured data."""
        correlation_id = get_correlation_id()

        # Sanitize extra data so prompt text and credentials never hit the logs
        sanitized_data = self._sanitize_data(extra_data or {})

        log_data = {
            "correlation_id": correlation_id,
            **sanitized_data,
        }

        settings = get_settings()
        if settings.ENVIRONMENT == "production":
            # JsonFormatter merges `extra` keys into the emitted JSON object
            self.logger.log(level, message, extra=log_data, exc_info=exc_info)
        else:
            details = " ".join(f"{k}={v}" for k, v in sanitized_data.items())
            suffix = f" ({details})" if details else ""
            self.logger.log(
                level,
                f"[{correlation_id}] {message}{suffix}",
                extra={"structured_data": log_data},
                exc_info=exc_info,
            )

    def _sanitize_data(self, data: dict[str, Any]) -> dict[str, Any]:
        """Remove or mask sensitive data from log entries."""
        if not isinstance(data, dict) or not data:
            return {}

        sanitized: dict[str, Any] = {}
        for key, value in data.items():
            if is_sensitive_key(key):
                sanitized[key] = "[REDACTED]"
            else:
                sanitized[key] = self._sanitize_value(value)
        return sanitized

    def _sanitize_value(self, value: Any) -> Any:
        """Sanitize a single value which may be a dict, list, or primitive."""
        if isinstance(value, dict):
            return self._sanitize_data(value)
        if isinstance(value, list):
            return [self._sanitize_value(item) for item in value]
        return value

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug level message."""
        self._log_with_context(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info level message."""
        self._log_with_context(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning level message."""
        self._log_with_context(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error level message."""
        self._log_with_context(logging.ERROR, message, kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._log_with_context(logging.ERROR, message, kwargs, exc_info=True)


# Global structured logger instance
structured_logger = StructuredLogger(__name__)


class ExceptionNormalizationMiddleware(BaseHTTPMiddleware):
    """Catch any uncaught Exception and delegate to global_exception_handler."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:  # noqa: BLE001
            return await global_exception_handler(request, exc)


def build_error_response(
    *,
    status_code: int,
    message: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Construct the ``{error: true, message}`` JSON envelope."""
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message).model_dump(),
        headers={**(headers or {}), "X-Correlation-ID": get_correlation_id()},
    )


def _public_message(status_code: int, detail: str | None, environment: str) -> str:
    if environment == "production" or not detail:
        return generic_error_message(status_code)
    return detail


def describe_validation_errors(errors: list[dict[str, Any]]) -> str:
    """Render the first pydantic validation error as a short sentence."""
    if not errors:
        return "Invalid request data provided"
    first = errors[0]
    if first.get("type") == "json_invalid":
        return "Request body must be valid JSON"
    loc = [str(part) for part in first.get("loc", ()) if part != "body"]
    msg = str(first.get("msg", "is invalid")).removeprefix("Value error, ")
    if not loc:
        if first.get("type") == "missing":
            return "Request body is required"
        return msg
    field = ".".join(loc)
    if first.get("type") == "missing":
        return f"{field} is required"
    if msg.startswith(field):
        return msg
    return f"{field}: {msg}"


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler providing structured, sanitized responses.

    This function centralizes all error handling to ensure:
    - Consistent ``{error: true, message}`` envelope
    - Correlation ID is always present (response header)
    - Internal details are never leaked in production
    """
    settings = get_settings()
    environment = settings.ENVIRONMENT

    # Operational errors raised by our own code carry a safe message
    if isinstance(exc, AppError):
        log = (
            structured_logger.error
            if exc.status_code >= 500
            else structured_logger.warning
        )
        log(
            "Request failed",
            status_code=exc.status_code,
            error=exc.message,
            path=request.url.path,
            method=request.method,
        )
        return build_error_response(status_code=exc.status_code, message=exc.message)

    if isinstance(exc, StarletteHTTPException):
        status_code = getattr(exc, "status_code", 500)
        detail = getattr(exc, "detail", None)
        if status_code == 404 and detail in (None, "Not Found"):
            detail = f"Route {request.url.path} not found"
        structured_logger.warning(
            "HTTP error", status_code=status_code, path=request.url.path
        )
        message = detail if status_code == 429 and detail else _public_message(
            status_code, str(detail) if detail else None, environment
        )
        return build_error_response(
            status_code=status_code,
            message=message,
            headers=getattr(exc, "headers", None),
        )

    # Pydantic / FastAPI validation errors are client input problems
    if isinstance(exc, ValidationError | RequestValidationError):
        errors = list(exc.errors())
        structured_logger.warning(
            "Validation error",
            error_types=[e.get("type") for e in errors],
            path=request.url.path,
        )
        return build_error_response(
            status_code=400,
            message=_public_message(
                400, describe_validation_errors(errors), environment
            ),
        )

    # Generic fallback
    structured_logger.exception(
        "Unhandled exception", exception_type=exc.__class__.__name__, error=str(exc)
    )
    return build_error_response(
        status_code=500,
        message=_public_message(500, str(exc) or None, environment),
    )


def setup_logging() -> None:
    """Configure application logging with proper JSON structure and idempotent setup."""
    settings = get_settings()

    log_level = logging.DEBUG if settings.ENVIRONMENT == "development" else logging.INFO
    root_logger = logging.getLogger()

    # Make setup idempotent - avoid duplicate handlers
    if root_logger.handlers:
        return

    formatter: logging.Formatter
    if settings.ENVIRONMENT == "production":
        formatter = JsonFormatter(
            "{asctime}{levelname}{name}{message}",
            style="{",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
    else:
        # Human-readable logging for development
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.setLevel(log_level)

    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)

    # Suppress noisy third-party loggers in production
    if settings.ENVIRONMENT == "production":
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
        logging.getLogger("httpx").setLevel(logging.WARNING)

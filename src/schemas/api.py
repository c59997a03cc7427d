"""API response schemas.

This module defines the common response formats used across the service.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error API response.

    Every failed request is answered with this envelope, whatever its status.

    Attributes:
        error: Always True for error responses.
        message: A short human-readable error message.
    """

    error: bool = True
    message: str = "An error occurred"


class HealthResponse(BaseModel):
    """Health check payload used by monitors and load balancers."""

    status: str = "healthy"
    timestamp: str
    uptime: float = Field(ge=0, description="Seconds since the process started")
    environment: str
    model: str


class ServiceInfo(BaseModel):
    """Root endpoint payload describing the service."""

    name: str
    version: str
    status: str = "running"
    endpoints: dict[str, str]

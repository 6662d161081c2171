"""API response envelope schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from starlette.responses import JSONResponse


class ErrorCode(str, Enum):
    """Standardized error codes for API responses.

    4xx Client Errors:
        NOT_AUTHENTICATED: Cron secret missing or wrong (401)
        VALIDATION_ERROR: Request validation failed (422)

    5xx Server Errors:
        INTERNAL_ERROR: Unexpected server error (500)
        EXTERNAL_SERVICE_ERROR: Origin or object store failed (502)
        SERVICE_UNAVAILABLE: Object storage not configured (503)
    """

    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


# RFC 7807 Constants and Utilities
ERROR_TYPE_BASE: str = "https://cinevault.app/errors"
"""Base URI for constructing RFC 7807 type URIs."""

ERROR_TITLES: dict[ErrorCode, str] = {
    ErrorCode.NOT_AUTHENTICATED: "Authentication Required",
    ErrorCode.VALIDATION_ERROR: "Validation Error",
    ErrorCode.INTERNAL_ERROR: "Internal Server Error",
    ErrorCode.EXTERNAL_SERVICE_ERROR: "External Service Error",
    ErrorCode.SERVICE_UNAVAILABLE: "Service Unavailable",
}
"""Mapping from ErrorCode to human-readable RFC 7807 title."""


def get_error_type_uri(code: ErrorCode) -> str:
    """Generate RFC 7807 type URI from error code.

    Examples
    --------
    >>> get_error_type_uri(ErrorCode.SERVICE_UNAVAILABLE)
    'https://cinevault.app/errors/SERVICE_UNAVAILABLE'
    """
    return f"{ERROR_TYPE_BASE}/{code.value}"


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Standard API response wrapper."""

    model_config = ConfigDict(strict=True)

    data: T


class ProblemDetail(BaseModel):
    """RFC 7807 Problem Details response for API errors.

    Attributes
    ----------
    type : str
        URI identifying the problem type.
    title : str
        Short human-readable summary of the problem type.
    status : int
        HTTP status code (4xx or 5xx).
    detail : str
        Human-readable explanation of the specific problem occurrence.
    instance : str
        URI reference of the specific occurrence.
    code : str
        Application-specific error code from ErrorCode enum.
    """

    type: str = Field(..., description="URI identifying the problem type")
    title: str = Field(..., description="Short human-readable summary")
    status: int = Field(..., ge=400, le=599, description="HTTP status code")
    detail: str = Field(..., description="Human-readable explanation of the problem")
    instance: str = Field(
        ...,
        description="URI reference of the specific occurrence",
        examples=["/api/v1/images/tmdb/w500/abc.jpg"],
    )
    code: str = Field(..., description="Application-specific error code")


class ProblemJSONResponse(JSONResponse):
    """JSONResponse with the RFC 7807 ``application/problem+json`` media type."""

    media_type = "application/problem+json"


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthStatus(BaseModel):
    """Application health status."""

    model_config = ConfigDict(strict=True)

    status: str  # "healthy", "degraded"
    version: str
    cache: str  # "connected", "disconnected", "disabled"
    storage_configured: bool
    purge_configured: bool
    warmup_scheduler_running: bool
    timestamp: datetime


class HealthResponse(ApiResponse[HealthStatus]):
    """Response for health check endpoint."""

    pass


# ---------------------------------------------------------------------------
# Cron
# ---------------------------------------------------------------------------


class CdnWarmupResponse(BaseModel):
    """Summary of a CDN warmup run triggered over HTTP."""

    ok: bool
    warmed: int
    scope: str
    limit: int
    concurrency: int
    errors: Optional[list[str]] = None

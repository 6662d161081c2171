"""API schema exports.

This module provides a centralized export of all API schemas for convenient
imports throughout the application.
"""

from cinevault.api.schemas.responses import (
    ApiResponse,
    CdnWarmupResponse,
    ErrorCode,
    HealthResponse,
    HealthStatus,
    ProblemDetail,
    ProblemJSONResponse,
)

__all__ = [
    "ApiResponse",
    "CdnWarmupResponse",
    "ErrorCode",
    "HealthResponse",
    "HealthStatus",
    "ProblemDetail",
    "ProblemJSONResponse",
]

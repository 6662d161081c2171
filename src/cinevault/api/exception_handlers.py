"""Centralized exception handlers for FastAPI with RFC 7807 compliance.

Converts cinevault domain exceptions raised by route handlers into RFC 7807
Problem Details responses:

- AuthenticationError -> 401
- StorageNotConfiguredError -> 503
- OriginFetchError / ObjectStoreError -> 502 (generic detail, error logged)
- RequestValidationError -> 422
- anything else -> 500

RFC 7807 Reference: https://tools.ietf.org/html/rfc7807
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from cinevault.api.schemas.responses import (
    ERROR_TITLES,
    ErrorCode,
    ProblemDetail,
    ProblemJSONResponse,
    get_error_type_uri,
)
from cinevault.exceptions import (
    AuthenticationError,
    ObjectStoreError,
    OriginFetchError,
    StorageNotConfiguredError,
)

logger = logging.getLogger(__name__)

MAX_DETAIL_LENGTH = 4096
"""Maximum allowed length for detail messages before truncation."""

TRUNCATION_SUFFIX = "... (truncated)"


def _truncate_detail(detail: str) -> str:
    if len(detail) <= MAX_DETAIL_LENGTH:
        return detail
    return detail[: MAX_DETAIL_LENGTH - len(TRUNCATION_SUFFIX)] + TRUNCATION_SUFFIX


def problem_response(
    code: ErrorCode,
    status: int,
    detail: str,
    instance: str,
    headers: dict[str, str] | None = None,
) -> ProblemJSONResponse:
    """Build an RFC 7807 response.

    Parameters
    ----------
    code : ErrorCode
        The error code for the problem.
    status : int
        HTTP status code for the response.
    detail : str
        Human-readable explanation of the problem.
    instance : str
        URI reference of the specific occurrence.
    headers : dict[str, str] | None, optional
        Additional headers to include in the response.

    Returns
    -------
    ProblemJSONResponse
        RFC 7807 compliant JSON response.
    """
    problem = ProblemDetail(
        type=get_error_type_uri(code),
        title=ERROR_TITLES.get(code, "Error"),
        status=status,
        detail=_truncate_detail(detail),
        instance=instance,
        code=code.value,
    )
    return ProblemJSONResponse(
        content=problem.model_dump(), status_code=status, headers=headers
    )


async def storage_not_configured_handler(
    request: Request, exc: StorageNotConfiguredError
) -> ProblemJSONResponse:
    """Map missing object storage configuration to 503."""
    logger.error("Object storage not configured: %s", exc.message)
    return problem_response(
        code=ErrorCode.SERVICE_UNAVAILABLE,
        status=503,
        detail="Object storage is not configured",
        instance=str(request.url.path),
    )


async def auth_error_handler(
    request: Request, exc: AuthenticationError
) -> ProblemJSONResponse:
    """Map a missing or wrong secret to 401, keeping ``WWW-Authenticate``."""
    headers: dict[str, str] | None = None
    if exc.www_authenticate:
        headers = {"WWW-Authenticate": exc.www_authenticate}
    return problem_response(
        code=ErrorCode.NOT_AUTHENTICATED,
        status=401,
        detail=exc.message,
        instance=str(request.url.path),
        headers=headers,
    )


async def origin_fetch_error_handler(
    request: Request, exc: OriginFetchError
) -> ProblemJSONResponse:
    """Map a terminal origin failure to 502 without leaking origin details."""
    logger.error(
        "Origin fetch failed after %d attempts: %s", exc.attempts, exc.message
    )
    return problem_response(
        code=ErrorCode.EXTERNAL_SERVICE_ERROR,
        status=502,
        detail="Image origin unavailable",
        instance=str(request.url.path),
    )


async def object_store_error_handler(
    request: Request, exc: ObjectStoreError
) -> ProblemJSONResponse:
    """Map an object storage failure to 502."""
    logger.error("Object store error (key=%s): %s", exc.key, exc.message)
    return problem_response(
        code=ErrorCode.EXTERNAL_SERVICE_ERROR,
        status=502,
        detail="Object storage unavailable",
        instance=str(request.url.path),
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> ProblemJSONResponse:
    """Map request validation failures to 422."""
    messages = [
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', '')}"
        for error in exc.errors()
    ]
    return problem_response(
        code=ErrorCode.VALIDATION_ERROR,
        status=422,
        detail="; ".join(messages) or "Invalid request",
        instance=str(request.url.path),
    )


async def generic_error_handler(request: Request, exc: Exception) -> ProblemJSONResponse:
    """Catch-all for unexpected errors."""
    logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=True)
    return problem_response(
        code=ErrorCode.INTERNAL_ERROR,
        status=500,
        detail="An unexpected error occurred",
        instance=str(request.url.path),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""
    app.add_exception_handler(StorageNotConfiguredError, storage_not_configured_handler)  # type: ignore[arg-type]
    app.add_exception_handler(OriginFetchError, origin_fetch_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ObjectStoreError, object_store_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(AuthenticationError, auth_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_error_handler)

"""
Custom exceptions for the cinevault application.

This module defines domain-specific exceptions for the media caching
engine: object storage failures, terminal origin failures and metadata
cache backend errors.
"""

from __future__ import annotations


class CineVaultError(Exception):
    """Base exception for all cinevault errors."""

    def __init__(self, message: str) -> None:
        """
        Initialize CineVaultError.

        Parameters
        ----------
        message : str
            Human-readable error message.
        """
        self.message = message
        super().__init__(message)


class StorageNotConfiguredError(CineVaultError):
    """
    Exception raised when object storage is used without credentials.

    Raised on first use of the object store client when any of
    ``R2_ENDPOINT``, ``R2_BUCKET``, ``R2_ACCESS_KEY_ID`` or
    ``R2_SECRET_ACCESS_KEY`` is missing.
    """

    def __init__(
        self,
        message: str = (
            "Object storage not configured: set R2_ENDPOINT, R2_BUCKET, "
            "R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY"
        ),
    ) -> None:
        super().__init__(message)


class ObjectStoreError(CineVaultError):
    """
    Exception raised for unexpected object storage failures.

    Not-found responses are never raised as this error; they are
    translated to ``None`` / ``False`` by the gateway.

    Attributes
    ----------
    message : str
        Human-readable error message.
    key : str | None
        Object key involved in the failed operation.
    original_error : Exception | None
        The underlying client exception.
    """

    def __init__(
        self,
        message: str,
        key: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """
        Initialize ObjectStoreError.

        Parameters
        ----------
        message : str
            Human-readable error message.
        key : str | None, optional
            Object key involved in the failed operation (default: None).
        original_error : Exception | None, optional
            The underlying client exception (default: None).
        """
        self.key = key
        self.original_error = original_error
        super().__init__(message)


class OriginFetchError(CineVaultError):
    """
    Exception raised when a remote image cannot be obtained from the origin.

    Raised by the pull-through cache once the retry budget is exhausted.
    Callers should treat it as "image unavailable now" and may substitute
    a placeholder.

    Attributes
    ----------
    url : str
        Origin URL that could not be fetched.
    attempts : int
        Number of fetch attempts made.
    last_error : Exception | None
        The cause of the final failed attempt.

    Examples
    --------
    >>> try:
    ...     key = await media_cache.ensure_cached(descriptor)
    ... except OriginFetchError as e:
    ...     key = placeholder_key
    """

    def __init__(
        self,
        url: str,
        attempts: int,
        last_error: Exception | None = None,
    ) -> None:
        """
        Initialize OriginFetchError.

        Parameters
        ----------
        url : str
            Origin URL that could not be fetched.
        attempts : int
            Number of fetch attempts made.
        last_error : Exception | None, optional
            The cause of the final failed attempt (default: None).
        """
        self.url = url
        self.attempts = attempts
        self.last_error = last_error
        cause = str(last_error) if last_error is not None else "unknown error"
        super().__init__(
            f"TMDb image not loadable after {attempts} attempts: {url} - {cause}"
        )


class OriginHTTPError(CineVaultError):
    """Exception raised for a non-2xx or empty origin response.

    A ``status_code`` of 0 marks a 2xx response with an empty body.
    """

    def __init__(self, url: str, status_code: int, reason: str = "") -> None:
        self.url = url
        self.status_code = status_code
        if status_code == 0:
            message = reason or "Empty response"
        else:
            message = f"TMDb HTTP {status_code} {reason}".rstrip()
        super().__init__(message)


class CacheBackendError(CineVaultError):
    """
    Exception raised by a metadata cache backend when a call fails.

    Never escapes the metadata cache: the fail-safe wrapper logs it and
    degrades to a miss or a no-op.
    """

    def __init__(
        self,
        message: str,
        operation: str,
        original_error: Exception | None = None,
    ) -> None:
        self.operation = operation
        self.original_error = original_error
        super().__init__(message)


class WarmupError(CineVaultError):
    """Exception raised for a single URL that could not be warmed."""

    def __init__(self, url: str, status_code: int | None = None, reason: str = "") -> None:
        self.url = url
        self.status_code = status_code
        detail = f"HTTP {status_code}" if status_code is not None else reason
        if reason and status_code is not None:
            detail = f"{detail} - {reason}"
        super().__init__(f"{detail} for {url}")


class AuthenticationError(CineVaultError):
    """
    Exception raised when a protected endpoint gets no valid credentials.

    Attributes
    ----------
    message : str
        Human-readable error message.
    www_authenticate : str | None
        Value of the ``WWW-Authenticate`` response header.
    """

    def __init__(
        self, message: str = "Unauthorized", www_authenticate: str | None = "Bearer"
    ) -> None:
        self.www_authenticate = www_authenticate
        super().__init__(message)

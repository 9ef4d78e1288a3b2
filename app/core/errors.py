"""
Application error taxonomy.

Every failure that can reach an API caller is an AppError carrying:
- message: safe, user-facing text
- code: machine-readable "area/kind" string
- status_code: HTTP status for the response envelope

Low-level services raise the specific subclasses below. The retry wrapper
reads `retryable` to decide whether another attempt is worth making, and
the FastAPI handler in app.main turns any AppError into:

    {"error": {"message": "...", "code": "..."}}
"""

from typing import Any, Optional


RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class ErrorCode:
    """Machine-readable error codes returned in the error envelope."""

    API_SERVICE_UNAVAILABLE = "api/service-unavailable"
    API_RATE_LIMIT = "api/rate-limit"
    API_INVALID_RESPONSE = "api/invalid-response"

    DATABASE_ERROR = "database/error"

    VALIDATION_INVALID_FORMAT = "validation/invalid-format"
    VALIDATION_REQUIRED_FIELD = "validation/required-field"

    VIDEO_NOT_FOUND = "video/not-found"
    VIDEO_INVALID_URL = "video/invalid-url"
    VIDEO_PROCESSING_FAILED = "video/processing-failed"

    AI_GENERATION_FAILED = "ai/generation-failed"
    AI_RATE_LIMIT = "ai/rate-limit"

    UNAUTHORIZED = "auth/unauthorized"
    INTERNAL_ERROR = "internal/error"


class AppError(Exception):
    """Base class for all categorized application errors."""

    status_code: int = 500
    code: str = ErrorCode.INTERNAL_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    def to_response(self) -> dict[str, Any]:
        """Body of the JSON error envelope (no internals)."""
        return {"message": self.message, "code": self.code}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, status={self.status_code}, message={self.message!r})"


class InvalidInput(AppError):
    """Malformed request data. Never retried."""

    status_code = 400
    code = ErrorCode.VALIDATION_INVALID_FORMAT


class InvalidURL(InvalidInput):
    """URL is not a recognized YouTube video URL."""

    code = ErrorCode.VIDEO_INVALID_URL


class Unauthorized(AppError):
    """Missing, malformed or expired access token."""

    status_code = 401
    code = ErrorCode.UNAUTHORIZED


class NotFound(AppError):
    """Requested transcript / content does not exist upstream or locally."""

    status_code = 404
    code = ErrorCode.VIDEO_NOT_FOUND


class RateLimited(AppError):
    """Upstream throttling (HTTP 429). Retried with backoff."""

    status_code = 429
    code = ErrorCode.API_RATE_LIMIT
    retryable = True


class UpstreamUnavailable(AppError):
    """
    Upstream 5xx, network fault or other non-OK response.

    `upstream_status` is the status the provider answered with (None for
    network faults). Only transient statuses are retried.
    """

    status_code = 503
    code = ErrorCode.API_SERVICE_UNAVAILABLE

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code=code, details=details)
        self.upstream_status = upstream_status

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        if self.upstream_status is None:
            return True
        return self.upstream_status in RETRYABLE_STATUS_CODES


class InvalidFormat(AppError):
    """Upstream answered OK but the payload has an unexpected shape."""

    status_code = 502
    code = ErrorCode.API_INVALID_RESPONSE


class GenerationFailed(AppError):
    """The language model produced no usable output."""

    status_code = 503
    code = ErrorCode.AI_GENERATION_FAILED


class PersistenceError(AppError):
    """A record-store operation failed."""

    status_code = 500
    code = ErrorCode.DATABASE_ERROR


class OperationFailed(AppError):
    """
    Raised by the retry wrapper once every attempt has failed.

    Status and code are inherited from the last error when it is an
    AppError, so a rate limit that never cleared still surfaces as 429.
    """

    def __init__(self, operation_name: str, attempts: int, cause: BaseException):
        if isinstance(cause, AppError):
            code, status_code = cause.code, cause.status_code
        else:
            code, status_code = ErrorCode.API_SERVICE_UNAVAILABLE, 503
        super().__init__(
            f"Operation '{operation_name}' failed after {attempts} attempts",
            code=code,
            status_code=status_code,
            details={"operation": operation_name, "attempts": attempts},
        )
        self.operation_name = operation_name
        self.attempts = attempts
        self.cause = cause
        self.__cause__ = cause


def root_cause(error: BaseException) -> BaseException:
    """Unwrap OperationFailed layers to the error that actually happened."""
    while isinstance(error, OperationFailed):
        error = error.cause
    return error

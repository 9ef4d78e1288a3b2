"""
Exponential-backoff retry for network and storage calls.

Two shapes of operation are supported:

- `with_retry(op)`: op raises on failure and returns a value on success
  (HTTP calls, model calls).
- `with_retry_result(op)`: op returns a StoreResult whose `error` field
  carries the failure (record-store calls).

Both modes run on tenacity.AsyncRetrying. An error is retried only if it
is transient (see `is_retryable_error`); terminal errors propagate on the
first attempt.
Delay before attempt n (n > 1):

    min(initial_delay * backoff_factor ** (n - 1), max_delay)

Example:
    >>> options = RetryOptions(operation_name="fetch_transcript")
    >>> text = await with_retry(lambda: service.fetch(video_id), options)
"""

import asyncio
import functools
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, retry_if_result, stop_after_attempt

from app.core.config import settings
from app.core.errors import RETRYABLE_STATUS_CODES, AppError, OperationFailed
from app.core.logging import get_logger
from app.db.result import StoreResult

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_RETRYABLE_CODES = frozenset({
    "ECONNRESET",
    "ETIMEDOUT",
    "ECONNREFUSED",
    "NETWORK_ERROR",
    "RATE_LIMIT",
})

TRANSIENT_EXCEPTIONS = (
    httpx.TransportError,
    asyncio.TimeoutError,
    ConnectionError,
)


@dataclass(frozen=True)
class RetryOptions:
    """Retry policy. Delays are in seconds."""

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_factor: float = 2.0
    retryable_codes: frozenset = DEFAULT_RETRYABLE_CODES
    operation_name: str = "unknown"
    attempt_timeout: Optional[float] = None
    sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep, compare=False)

    @classmethod
    def from_settings(cls, operation_name: str, **overrides: Any) -> "RetryOptions":
        """Policy built from RETRY_* settings, used for all external calls."""
        options = cls(
            max_attempts=settings.RETRY_MAX_ATTEMPTS,
            initial_delay=settings.RETRY_INITIAL_DELAY_SECONDS,
            max_delay=settings.RETRY_MAX_DELAY_SECONDS,
            backoff_factor=settings.RETRY_BACKOFF_FACTOR,
            operation_name=operation_name,
            attempt_timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
        )
        return replace(options, **overrides)

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before the given (1-indexed) attempt."""
        if attempt <= 1:
            return 0.0
        return min(self.initial_delay * self.backoff_factor ** (attempt - 1), self.max_delay)


def _status_of(error: BaseException) -> Optional[int]:
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def is_retryable_error(error: Optional[BaseException], retryable_codes: frozenset = DEFAULT_RETRYABLE_CODES) -> bool:
    """
    Classify an error as transient (retry) or terminal (propagate).

    AppErrors declare their own retryability; anything else is judged by
    its carried status code, its code/type string, or its exception type.
    """
    if error is None:
        return False

    if isinstance(error, AppError):
        return bool(error.retryable)

    for attr in ("code", "type"):
        value = getattr(error, attr, None)
        if isinstance(value, str) and value in retryable_codes:
            return True

    status = _status_of(error)
    if status is not None:
        return status in RETRYABLE_STATUS_CODES

    return isinstance(error, TRANSIENT_EXCEPTIONS)


def _backoff(options: RetryOptions) -> Callable[[RetryCallState], float]:
    """tenacity wait strategy; `attempt_number` is the attempt that just failed."""

    def wait(retry_state: RetryCallState) -> float:
        return options.delay_before(retry_state.attempt_number + 1)

    return wait


def _outcome_error(retry_state: RetryCallState) -> Optional[BaseException]:
    outcome = retry_state.outcome
    if outcome is None:
        return None
    if outcome.failed:
        return outcome.exception()
    return outcome.result().error


def _log_retry(options: RetryOptions) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        error = _outcome_error(retry_state)
        logger.warning(
            "operation_retry",
            operation=options.operation_name,
            attempt=retry_state.attempt_number + 1,
            max_attempts=options.max_attempts,
            delay_seconds=retry_state.next_action.sleep if retry_state.next_action else 0.0,
            error=str(error),
            error_type=type(error).__name__,
        )

    return before_sleep


def _exhausted(options: RetryOptions, retry_state: RetryCallState) -> OperationFailed:
    error = _outcome_error(retry_state)
    logger.error(
        "operation_retries_exhausted",
        operation=options.operation_name,
        attempts=retry_state.attempt_number,
        error=str(error),
        error_type=type(error).__name__,
    )
    return OperationFailed(options.operation_name, retry_state.attempt_number, error)


def _retrying(options: RetryOptions, retry, retry_error_callback) -> AsyncRetrying:
    return AsyncRetrying(
        stop=stop_after_attempt(max(1, options.max_attempts)),
        wait=_backoff(options),
        retry=retry,
        sleep=options.sleep,
        before_sleep=_log_retry(options),
        retry_error_callback=retry_error_callback,
    )


async def _attempt(operation: Callable[[], Awaitable[T]], options: RetryOptions) -> T:
    if options.attempt_timeout is None:
        return await operation()
    return await asyncio.wait_for(operation(), timeout=options.attempt_timeout)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    options: Optional[RetryOptions] = None,
) -> T:
    """
    Run `operation` until it succeeds, a terminal error occurs, or attempts
    run out.

    Raises:
        The original error when it is terminal.
        OperationFailed (cause = last error) after max_attempts failures.
    """
    options = options or RetryOptions()

    def give_up(retry_state: RetryCallState) -> T:
        raise _exhausted(options, retry_state)

    retrying = _retrying(
        options,
        retry=retry_if_exception(lambda e: is_retryable_error(e, options.retryable_codes)),
        retry_error_callback=give_up,
    )

    try:
        return await retrying(_attempt, operation, options)
    except OperationFailed:
        raise
    except Exception as e:
        logger.error(
            "operation_failed_terminal",
            operation=options.operation_name,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise


async def with_retry_result(
    operation: Callable[[], Awaitable[StoreResult[T]]],
    options: Optional[RetryOptions] = None,
) -> StoreResult[T]:
    """
    Retry an operation that reports failure through `StoreResult.error`.

    Terminal embedded errors are returned unchanged. After max_attempts
    transient failures the result carries an OperationFailed instead.
    Exceptions raised by the operation itself are treated like embedded
    errors.
    """
    options = options or RetryOptions()

    async def attempt() -> StoreResult[T]:
        try:
            return await _attempt(operation, options)
        except Exception as e:
            return StoreResult.failed(e)

    def give_up(retry_state: RetryCallState) -> StoreResult[T]:
        return StoreResult.failed(_exhausted(options, retry_state))

    retrying = _retrying(
        options,
        retry=retry_if_result(lambda result: is_retryable_error(result.error, options.retryable_codes)),
        retry_error_callback=give_up,
    )
    return await retrying(attempt)


def retryable(**option_overrides: Any) -> Callable:
    """
    Decorator form of `with_retry` for async functions.

    The policy is built from RETRY_* settings on every call, with
    `option_overrides` applied on top.

        @retryable(operation_name="oembed_lookup", max_attempts=2)
        async def lookup(url): ...
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        overrides = dict(option_overrides)
        name = overrides.pop("operation_name", func.__name__)

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            options = RetryOptions.from_settings(name, **overrides)
            return await with_retry(lambda: func(*args, **kwargs), options)

        return wrapper

    return decorator

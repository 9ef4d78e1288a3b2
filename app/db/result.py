"""
Result type for record-store operations.

Record-store calls report failure as a value instead of raising, so the
retry wrapper can inspect the embedded error and decide whether to try
again (see app.core.retry.with_retry_result). Callers that just want the
data call `unwrap()`, which raises the embedded error.
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    """Either `data` (success) or `error` (failure), never both."""

    data: Optional[T] = None
    error: Optional[BaseException] = None

    @classmethod
    def ok(cls, data: Optional[T]) -> "StoreResult[T]":
        return cls(data=data)

    @classmethod
    def failed(cls, error: BaseException) -> "StoreResult[T]":
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Optional[T]:
        """Return data or raise the embedded error."""
        if self.error is not None:
            raise self.error
        return self.data

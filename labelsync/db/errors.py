"""Errors raised by annotation store backends.

Backends translate driver and HTTP failures into this hierarchy so the
commit protocol and the session controller handle one set of types. Each
error records the table it was working on and the record key
(``org/dataset#episode``, optionally with frame indexes) when known.
"""

from collections.abc import Collection
from typing import Any


def record_key(target: Any, frame_indexes: Collection[int] | None = None) -> str:
    """Key text for a canonical target and, optionally, some of its frames."""
    key = str(target)
    if frame_indexes:
        key += " frames " + ",".join(str(i) for i in sorted(frame_indexes))
    return key


class StoreError(Exception):
    """Base exception for all annotation store errors."""

    #: Whether repeating the same idempotent write may succeed
    retryable: bool = False

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        table: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message)
        self.cause = cause
        self.table = table
        self.key = key

    def __str__(self) -> str:
        message = super().__str__()
        where = [part for part in (self.table, self.key) if part]
        return f"{message} ({' '.join(where)})" if where else message

    def log_fields(self) -> dict[str, Any]:
        """Context for structured log events."""
        return {
            "error": super().__str__(),
            "error_type": type(self).__name__,
            "table": self.table,
            "key": self.key,
            "retryable": self.retryable,
        }


class ConnectionError(StoreError):
    """The store could not be reached or timed out; retrying may help."""

    retryable = True


class NotFoundError(StoreError):
    """The table or REST endpoint the store expects does not exist."""


class ConflictError(StoreError):
    """A unique constraint the upsert key did not cover was violated."""


class ValidationError(StoreError):
    """The backend rejected a row, or a stored row no longer parses.

    Examples: a tag outside the check constraint, or a stored tag that
    left the vocabulary.
    """

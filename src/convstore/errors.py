"""Error taxonomy for the storage layer."""

from __future__ import annotations

from typing import Any


class StoreError(Exception):
    """Base class for all storage errors.

    Carries the failing operation name and the key identifiers involved so
    the message is diagnosable without a traceback.
    """

    def __init__(self, operation: str, reason: str = "", **context: Any):
        self.operation = operation
        self.reason = reason
        self.context = context
        message = f"{operation} failed"
        if context:
            pairs = ", ".join(f"{k}={v!r}" for k, v in context.items())
            message += f" ({pairs})"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class InitializationError(StoreError):
    """Raised when the database directory, connection, pragmas or schema cannot be set up."""


class NotFoundError(StoreError):
    """Raised when a lookup or delete target does not exist."""


class InvalidPatternError(StoreError, ValueError):
    """Raised when a search expression is not a valid regular expression."""

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        super().__init__("search_messages", reason, pattern=pattern)


class CorruptDataError(StoreError):
    """Raised when stored content fails to deserialize."""


class TransactionError(StoreError):
    """Raised when a multi-statement write fails and has been rolled back."""

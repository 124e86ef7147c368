from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Closed set of outcomes the HTTP layer knows how to map."""

    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    GONE = "GONE"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_FAILED = "AUTH_FAILED"
    CONFLICT = "CONFLICT"
    STORAGE = "STORAGE"
    UNAVAILABLE = "UNAVAILABLE"


class GoneReason(str, Enum):
    EXPIRED = "EXPIRED"
    LIMIT_REACHED = "LIMIT_REACHED"
    BURNED = "BURNED"


class DomainError(Exception):
    """Base exception for all domain errors.

    Every error carries a closed ``kind``; handlers dispatch on it rather than
    on the concrete class. ``extra`` is merged into the JSON error body.
    """

    kind: ErrorKind = ErrorKind.VALIDATION
    default_message = "Domain error"

    def __init__(self, message: str | None = None, *, extra: dict[str, Any] | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.extra = extra or {}


class ValidationError(DomainError):
    """Exception raised when input fails validation rules (malformed code, bad body)."""
    kind = ErrorKind.VALIDATION
    default_message = "Invalid request"


class NotFoundError(DomainError):
    """Exception raised when a requested record does not exist."""
    kind = ErrorKind.NOT_FOUND
    default_message = "Not found"


class GoneError(DomainError):
    """Record existed but is no longer available (expired, exhausted or burned)."""
    kind = ErrorKind.GONE
    default_message = "Gone"

    def __init__(self, message: str | None = None, *, reason: GoneReason, extra: dict[str, Any] | None = None):
        super().__init__(message, extra=extra)
        self.reason = reason


class PasswordRequiredError(DomainError):
    kind = ErrorKind.AUTH_REQUIRED
    default_message = "Password required"


class PasswordIncorrectError(DomainError):
    kind = ErrorKind.AUTH_FAILED
    default_message = "Incorrect password"


class ConflictError(DomainError):
    """Exception raised when optimistic retries are exhausted or state conflicts."""
    kind = ErrorKind.CONFLICT
    default_message = "Busy, retry"


class StorageError(DomainError):
    """Exception raised when a storage backend fails or is not configured."""
    kind = ErrorKind.STORAGE
    default_message = "Storage error"


class FeatureDisabledError(DomainError):
    kind = ErrorKind.UNAVAILABLE
    default_message = "Feature is temporarily disabled"


class PreconditionFailedError(Exception):
    """Raised by a storage backend when a conditional write loses the race.

    Not a DomainError: callers inside the optimistic retry loop translate it
    into a retry and it must never reach the HTTP layer on its own.
    """

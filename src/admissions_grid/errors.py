"""Exceptions raised by the record grid, its backends and the verification service."""

from __future__ import annotations


class RecordGridError(Exception):
    """Base class for all admissions-grid errors."""


class UnknownViewError(RecordGridError, KeyError):
    """Raised when a view name has no registered :class:`ViewDefinition`."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown grid view: {name!r}")
        self.name = name

    def __str__(self) -> str:
        return self.args[0]


class RecordNotFoundError(RecordGridError, LookupError):
    """Raised when a backend has no record with the requested id."""

    def __init__(self, record_id: int, entity: str | None = None) -> None:
        label = entity or "record"
        super().__init__(f"No {label} with id {record_id}")
        self.record_id = record_id


class RecordValidationError(RecordGridError, ValueError):
    """Raised when submitted fields fail validation.

    ``errors`` maps a field name to every message produced for it, the way a
    form backend reports them.  Use :func:`first_errors` to reduce it to one
    message per field for display.
    """

    def __init__(self, errors: dict[str, list[str]], message: str | None = None) -> None:
        super().__init__(message or "The given data was invalid.")
        self.errors = errors


class AttachmentError(RecordValidationError):
    """Raised when an uploaded document is rejected."""


class VerificationError(RecordGridError):
    """Raised when an email verification request cannot be honoured."""


class VerificationThrottledError(VerificationError):
    """Raised when a verification code is requested again too soon."""

    def __init__(self, email: str, retry_after: float) -> None:
        super().__init__("Please wait before requesting another code")
        self.email = email
        self.retry_after = retry_after


def first_errors(errors: dict[str, list[str]]) -> dict[str, str]:
    """Keep the first message for every field that has one."""
    return {field: messages[0] for field, messages in errors.items() if messages}

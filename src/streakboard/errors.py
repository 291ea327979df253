"""Domain exceptions.

Every recoverable failure a service can raise maps to one HTTP status.
``InvariantViolation`` is the exception: it signals a programming error,
is logged, and surfaces as a generic 500.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(DomainError):
    """Malformed input: out-of-bounds score, missing field, bad enum value."""

    status_code = 400


class Forbidden(DomainError):
    """The caller lacks the capability the operation requires."""

    status_code = 403


class NotFound(DomainError):
    """Unknown organization, track, member or submission."""

    status_code = 404


class Conflict(DomainError):
    """Duplicate submission, duplicate membership, or a decision already made."""

    status_code = 409


class InvariantViolation(RuntimeError):
    """Internal state is inconsistent. Never shown to the caller verbatim."""

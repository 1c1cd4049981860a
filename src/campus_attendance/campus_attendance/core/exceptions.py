from __future__ import annotations

from typing import Sequence


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class InsufficientData(DomainError):
    """Raised when a student has no enrollments for the requested year."""


class DataIntegrityError(DomainError):
    """Raised for duplicate or contradictory enrollment rows.

    Never resolved silently: the caller must surface it.
    """


class ConfigNotResolvable(DomainError):
    """Raised when the department itself is unknown upstream."""


class BatchPreviewError(DomainError):
    """A batch preview hit one or more integrity/config errors.

    ``errors`` lists every error encountered, keyed by student id (None for
    errors that are not tied to one student).
    """

    def __init__(self, errors: Sequence[tuple[int | None, DomainError]]):
        self.errors = list(errors)
        lines = [
            f"student {sid}: {err}" if sid is not None else str(err)
            for sid, err in self.errors
        ]
        super().__init__(f"Batch preview failed with {len(self.errors)} error(s): " + "; ".join(lines))

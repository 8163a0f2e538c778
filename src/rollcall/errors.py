"""Error taxonomy for the selection engine.

Caller-input errors (ValidationError, NotFoundError,
NoEligibleParticipantsError, InvalidSelectionMethodError) are raised
immediately and never retried. TransactionFailedError signals that an
atomic write was aborted by the storage layer; it is marked retryable,
but the engine itself never retries.
"""

from __future__ import annotations


class SelectionError(Exception):
    """Base class for all selection engine errors."""

    retryable: bool = False

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(SelectionError, ValueError):
    """Missing or malformed required input."""


class NotFoundError(SelectionError, LookupError):
    """Referenced meeting or participant does not exist in the organization."""


class NoEligibleParticipantsError(SelectionError):
    """The candidate pool is empty after eligibility filtering."""


class InvalidSelectionMethodError(ValidationError):
    """Selection method outside {random, weighted, manual}."""


class TransactionFailedError(SelectionError):
    """An atomic multi-record write was aborted; nothing was committed."""

    retryable = True

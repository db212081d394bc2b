"""
Error hierarchy for the ledger service.

Each error carries the HTTP status it maps to; the app registers one handler
for ``LedgerError`` that renders ``{"detail": message}``.
"""

from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    """Base exception for all service errors."""

    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationError(LedgerError):
    """
    Request rejected before touching the store.

    Raised when:
    - amount is not a finite decimal, is <= 0, or does not fit NUMERIC(19,4)
    - transaction_type is not "credit" or "debit"
    - registration email or password is malformed
    """

    status_code = 400


class NotFoundError(LedgerError):
    """Unknown account on write, or no ledger history on balance read."""

    status_code = 404


class ConflictError(LedgerError):
    """An account with the same email is already registered."""

    status_code = 409


class AuthError(LedgerError):
    """Missing, invalid or mismatched credentials."""

    status_code = 401

    def __init__(
        self,
        message: str,
        status_code: int = 401,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class StorageError(LedgerError):
    """
    The durable store could not complete an operation.

    Never retried by the service; the transaction that raised it has been
    rolled back.
    """

    status_code = 500


class ImmutableEntryError(StorageError):
    """Attempt to update or delete a committed ledger entry."""

"""Validation package."""

from ledger_engine.validation.validator import (
    AccountDeletionError,
    TransactionValidationError,
    TransactionValidator,
)

__all__ = [
    "AccountDeletionError",
    "TransactionValidationError",
    "TransactionValidator",
]

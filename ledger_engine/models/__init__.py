"""
Data Models Package

This package contains all Pydantic models used by the ledger engine.
All records handed to or returned from the engine conform to these schemas.
"""

from ledger_engine.models.ledger import (
    MATERIALIZATION_PREFIX,
    TRANSFER_CATEGORY,
    Account,
    AccountKind,
    Currency,
    Frequency,
    RecurringRule,
    Transaction,
    TransactionKind,
    generate_transaction_id,
)
from ledger_engine.models.reports import (
    AccountBalance,
    AccountLedger,
    BalanceSummary,
    CatchUpReport,
    CategoryReport,
    CategoryTotal,
    LedgerEntry,
)
from ledger_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from ledger_engine.models.validation import ValidationIssue, ValidationResult

__all__ = [
    # Ledger records
    "MATERIALIZATION_PREFIX",
    "TRANSFER_CATEGORY",
    "Account",
    "AccountKind",
    "Currency",
    "Frequency",
    "RecurringRule",
    "Transaction",
    "TransactionKind",
    "generate_transaction_id",
    # Derived results
    "AccountBalance",
    "AccountLedger",
    "BalanceSummary",
    "CatchUpReport",
    "CategoryReport",
    "CategoryTotal",
    "LedgerEntry",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Validation
    "ValidationIssue",
    "ValidationResult",
]

"""
Audit Models for the Ledger Engine

Every change to the ledger is logged for audit purposes.
This provides:
1. Complete traceability of what the scheduler materialized and when
2. Debugging information when a catch-up run stops early
3. A record of imports that replaced the whole data set

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTION_REJECTED = "transaction_rejected"

    # Accounts
    ACCOUNT_ADDED = "account_added"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"

    # Recurring rules
    RULE_CREATED = "rule_created"
    RULE_DELETED = "rule_deleted"
    PERIOD_MATERIALIZED = "period_materialized"
    CATCH_UP_STARTED = "catch_up_started"
    CATCH_UP_COMPLETED = "catch_up_completed"

    # Backup
    DATA_EXPORTED = "data_exported"
    DATA_IMPORTED = "data_imported"
    IMPORT_REJECTED = "import_rejected"

    # Failures
    PERSISTENCE_FAILED = "persistence_failed"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every ledger mutation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'account', 'rule')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all periods of one catch-up run)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(transaction_id, "expense", "12.50")
        event = AuditEventBuilder.period_materialized(rule_id, transaction_id, due, correlation_id)
    """

    @staticmethod
    def transaction_added(
        transaction_id: str,
        kind: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction added: {kind} {amount}",
            details={"kind": kind, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def transaction_updated(
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction updated",
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def transaction_rejected(
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Transaction rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def account_changed(
        event_type: AuditEventType,
        account_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        verb = event_type.value.split("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Account {verb}: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def rule_created(
        rule_id: str,
        frequency: str,
        next_due_date: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RULE_CREATED,
            entity_type="rule",
            entity_id=rule_id,
            correlation_id=correlation_id,
            description=f"Recurring rule created ({frequency}), first due {next_due_date}",
            details={"frequency": frequency, "next_due_date": next_due_date},
            is_user_action=True,
        )

    @staticmethod
    def rule_deleted(
        rule_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RULE_DELETED,
            entity_type="rule",
            entity_id=rule_id,
            correlation_id=correlation_id,
            description="Recurring rule deleted; materialized transactions kept",
            is_user_action=True,
        )

    @staticmethod
    def period_materialized(
        rule_id: str,
        transaction_id: str,
        due_date: str,
        next_due_date: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERIOD_MATERIALIZED,
            entity_type="rule",
            entity_id=rule_id,
            correlation_id=correlation_id,
            description=f"Recurring period {due_date} materialized",
            details={
                "transaction_id": transaction_id,
                "due_date": due_date,
                "next_due_date": next_due_date,
            },
        )

    @staticmethod
    def catch_up_started(
        run_date: str,
        active_rules: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATCH_UP_STARTED,
            correlation_id=correlation_id,
            description=f"Recurring catch-up started for {run_date}",
            details={"run_date": run_date, "active_rules": active_rules},
        )

    @staticmethod
    def catch_up_completed(
        materialized: int,
        failed_rules: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATCH_UP_COMPLETED,
            severity=AuditSeverity.WARNING if failed_rules else AuditSeverity.INFO,
            correlation_id=correlation_id,
            description=f"Recurring catch-up materialized {materialized} transactions",
            details={"materialized": materialized, "failed_rules": failed_rules},
        )

    @staticmethod
    def persistence_failed(
        entity_type: str,
        entity_id: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Persistence failed for {entity_type}",
            error_message=error_message,
        )

    @staticmethod
    def data_exported(
        counts: dict[str, int],
        version: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_EXPORTED,
            description=f"Backup exported (version {version})",
            details={"counts": counts, "version": version},
            is_user_action=True,
        )

    @staticmethod
    def data_imported(
        counts: dict[str, int],
        version: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_IMPORTED,
            severity=AuditSeverity.WARNING,
            description="Backup imported; all accounts, transactions and rules replaced",
            details={"counts": counts, "version": version},
            is_user_action=True,
        )

    @staticmethod
    def import_rejected(
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_REJECTED,
            severity=AuditSeverity.WARNING,
            description="Backup import rejected; existing data untouched",
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

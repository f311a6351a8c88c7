"""
Audit Logger

DESIGN DECISION: Every change to the ledger is logged.
This provides:
1. Traceability of what the scheduler materialized and when
2. Debugging capability when a catch-up run stops early
3. A record of imports that replaced the whole data set

The audit logger:
- Is async to match the repository calls around it
- Gracefully handles failures (a broken audit store never breaks a ledger write)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledger_engine.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from ledger_engine.models.ledger import Account, RecurringRule, Transaction
from ledger_engine.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("ledger_engine.audit")

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def log_transaction_added(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.transaction_added(
            transaction_id=transaction.id,
            kind=transaction.kind.value,
            amount=str(transaction.amount),
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_updated(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_updated(transaction_id, correlation_id))

    async def log_transaction_deleted(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(transaction_id, correlation_id))

    async def log_transaction_rejected(
        self,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a transaction that failed validation."""
        await self.log(AuditEventBuilder.transaction_rejected(issues, correlation_id))

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def log_account_changed(
        self,
        event_type: AuditEventType,
        account: Account,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.account_changed(
            event_type=event_type,
            account_id=account.id,
            name=account.name,
            correlation_id=correlation_id,
        )
        await self.log(event)

    # -------------------------------------------------------------------------
    # Recurring rules
    # -------------------------------------------------------------------------

    async def log_rule_created(
        self,
        rule: RecurringRule,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.rule_created(
            rule_id=rule.id,
            frequency=rule.frequency.value,
            next_due_date=rule.next_due_date.isoformat(),
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_rule_deleted(
        self,
        rule_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.rule_deleted(rule_id, correlation_id))

    async def log_period_materialized(
        self,
        rule_id: str,
        transaction: Transaction,
        next_due_date: str,
        correlation_id: UUID,
    ) -> None:
        """Log one materialized recurring period."""
        event = AuditEventBuilder.period_materialized(
            rule_id=rule_id,
            transaction_id=transaction.id,
            due_date=transaction.date.isoformat(),
            next_due_date=next_due_date,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_catch_up_started(
        self,
        run_date: str,
        active_rules: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.catch_up_started(run_date, active_rules, correlation_id))

    async def log_catch_up_completed(
        self,
        materialized: int,
        failed_rules: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.catch_up_completed(materialized, failed_rules, correlation_id)
        )

    # -------------------------------------------------------------------------
    # Backup and failures
    # -------------------------------------------------------------------------

    async def log_data_exported(self, counts: dict[str, int], version: str) -> None:
        await self.log(AuditEventBuilder.data_exported(counts, version))

    async def log_data_imported(self, counts: dict[str, int], version: Optional[str]) -> None:
        await self.log(AuditEventBuilder.data_imported(counts, version))

    async def log_import_rejected(self, error_message: str) -> None:
        await self.log(AuditEventBuilder.import_rejected(error_message))

    async def log_persistence_failed(
        self,
        entity_type: str,
        entity_id: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a repository write that failed."""
        event = AuditEventBuilder.persistence_failed(
            entity_type=entity_type,
            entity_id=entity_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new operation (e.g., one catch-up run).
    Pass it through all subsequent operations.
    """
    return uuid4()

"""
Main Orchestrator for the Ledger Engine

This module ties the components together behind one façade:
1. Startup (ensure the default account exists, catch up recurring rules)
2. Writes (validate against the account registry, persist, audit)
3. Reads (balances, statements, category reports over a fresh snapshot)
4. Backup (export / all-or-nothing import)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No transaction reaches the store without reference validation
- The default account and referenced accounts are never deleted
- Every write is audited

Computations stay pure. The orchestrator only loads the snapshot they
need and hands it over.
"""

from datetime import date
from typing import Optional
from uuid import UUID, uuid4

import structlog
from pydantic import ValidationError

from ledger_engine.audit import AuditLogger, create_correlation_id
from ledger_engine.config import EngineSettings, Preferences, Settings, get_settings
from ledger_engine.engine.balances import calculate_balances
from ledger_engine.engine.ledger import reconstruct_ledger
from ledger_engine.engine.periods import advance
from ledger_engine.engine.reports import ReportPeriod, category_report, category_totals
from ledger_engine.models.audit import AuditEventType
from ledger_engine.models.ledger import (
    Account,
    AccountKind,
    Currency,
    Frequency,
    RecurringRule,
    Transaction,
    TransactionKind,
)
from ledger_engine.models.reports import (
    AccountLedger,
    BalanceSummary,
    CatchUpReport,
    CategoryReport,
    CategoryTotal,
)
from ledger_engine.scheduler import RecurringScheduler
from ledger_engine.services.backup import BackupDocument, BackupService
from ledger_engine.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    LedgerRepository,
    NotFoundError,
    PersistenceError,
    create_repository,
)
from ledger_engine.validation import TransactionValidationError, TransactionValidator


logger = structlog.get_logger(__name__)


def _rule_id() -> str:
    return f"rule_{uuid4().hex}"


class LedgerService:
    """
    Application façade over the repository, engine and scheduler.

    Usage:
        service = create_ledger_service()
        await service.startup()
        summary = await service.get_balances()
    """

    def __init__(
        self,
        repository: LedgerRepository,
        engine_settings: Optional[EngineSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        preferences: Optional[Preferences] = None,
    ):
        self._repository = repository
        self._settings = engine_settings or get_settings().engine
        self._audit_logger = audit_logger or AuditLogger()
        self._preferences = preferences or Preferences()
        self._validator = TransactionValidator(self._settings.default_account_id)
        self._scheduler = RecurringScheduler(
            repository,
            preferences=self._preferences,
            audit_logger=self._audit_logger,
        )
        self._backup = BackupService(
            repository,
            export_version=self._settings.export_version,
            audit_logger=self._audit_logger,
        )

    @property
    def repository(self) -> LedgerRepository:
        return self._repository

    @property
    def preferences(self) -> Preferences:
        return self._preferences

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    # -------------------------------------------------------------------------
    # Startup
    # -------------------------------------------------------------------------

    async def startup(self, today: Optional[date] = None) -> CatchUpReport:
        """
        Prepare the ledger for use.

        Loads stored preferences, creates the default account when the
        store has no accounts, then catches up every recurring rule.

        Raises:
            PersistenceError: The store could not be read or written
            ValidationError: The stored preferences are malformed
        """
        try:
            stored = await self._repository.load_preferences()
            if stored is not None:
                self._set_preferences(Preferences.model_validate(stored))

            await self.ensure_default_account()
            return await self.run_catch_up(today)
        except (PersistenceError, ValidationError) as e:
            await self._audit_logger.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"stage": "startup"},
            )
            logger.error("startup_failed", error=str(e))
            raise

    async def ensure_default_account(self) -> Optional[Account]:
        """Create the default account if there are no accounts at all."""
        if await self._repository.list_accounts():
            return None

        account = Account(
            id=self._settings.default_account_id,
            name=self._settings.default_account_name,
            kind=AccountKind.CASH,
            currency=self._settings.default_account_currency,
        )
        await self._repository.add_account(account)
        await self._audit_logger.log_account_changed(AuditEventType.ACCOUNT_ADDED, account)
        logger.info("default_account_created", account_id=account.id)
        return account

    async def run_catch_up(self, today: Optional[date] = None) -> CatchUpReport:
        return await self._scheduler.catch_up(today)

    # -------------------------------------------------------------------------
    # Preferences
    # -------------------------------------------------------------------------

    def _set_preferences(self, preferences: Preferences) -> None:
        self._preferences = preferences
        self._scheduler.preferences = preferences

    async def save_preferences(self, preferences: Preferences) -> None:
        await self._repository.save_preferences(preferences.model_dump(mode="json"))
        self._set_preferences(preferences)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_balances(self, preferred_currency: Optional[Currency] = None) -> BalanceSummary:
        accounts = await self._repository.list_accounts()
        transactions = await self._repository.list_transactions()
        return calculate_balances(
            accounts,
            transactions,
            preferred_currency or self._preferences.currency,
        )

    async def get_account_ledger(
        self,
        account_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> AccountLedger:
        """
        Statement of one account.

        Raises:
            NotFoundError: If the account doesn't exist
        """
        account = await self._get_account(account_id)
        # The full history is needed for true running balances
        transactions = await self._repository.list_transactions(account_id=account_id)
        return reconstruct_ledger(account, transactions, start, end)

    async def get_category_totals(
        self,
        kind: TransactionKind = TransactionKind.EXPENSE,
        currency: Optional[Currency] = None,
        period: ReportPeriod = ReportPeriod.CURRENT_MONTH,
        today: Optional[date] = None,
    ) -> list[CategoryTotal]:
        return category_totals(
            await self._repository.list_transactions(),
            await self._repository.list_accounts(),
            kind=kind,
            currency=currency or self._preferences.currency,
            period=period,
            today=today,
        )

    async def get_category_report(
        self,
        category: str,
        currency: Optional[Currency] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> CategoryReport:
        return category_report(
            category,
            currency or self._preferences.currency,
            await self._repository.list_transactions(date_from=start, date_to=end),
            await self._repository.list_accounts(),
            start=start,
            end=end,
        )

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def _validate(
        self,
        transaction: Transaction,
        recurrence: Optional[Frequency],
        correlation_id: UUID,
    ) -> None:
        accounts = await self._repository.list_accounts()
        try:
            self._validator.validate_or_raise(transaction, accounts, recurrence)
        except TransactionValidationError as e:
            await self._audit_logger.log_transaction_rejected(
                [issue.model_dump() for issue in e.issues],
                correlation_id=correlation_id,
            )
            raise

    async def add_transaction(
        self,
        transaction: Transaction,
        recurrence: Optional[Frequency] = None,
    ) -> Optional[RecurringRule]:
        """
        Store a user-entered transaction.

        With `recurrence`, a recurring rule is also created that starts at
        the transaction's date and is first due one period later. The two
        writes are separate: if storing the rule fails, the transaction
        stays stored without a rule and the PersistenceError is raised.

        Returns:
            The created rule, or None

        Raises:
            TransactionValidationError: Reference validation failed
            PersistenceError: The store rejected the write
        """
        correlation_id = create_correlation_id()
        await self._validate(transaction, recurrence, correlation_id)

        try:
            await self._repository.append_transaction(transaction)
        except PersistenceError as e:
            await self._audit_logger.log_persistence_failed(
                "transaction", transaction.id, str(e), correlation_id
            )
            raise
        await self._audit_logger.log_transaction_added(transaction, correlation_id)

        if recurrence is None:
            return None

        rule = RecurringRule(
            id=_rule_id(),
            amount=transaction.amount,
            category=transaction.category,
            kind=transaction.kind,
            source_account_id=transaction.source_account_id,
            frequency=recurrence,
            start_date=transaction.date,
            next_due_date=advance(transaction.date, recurrence),
            note=transaction.note,
        )
        try:
            await self._repository.add_recurring_rule(rule)
        except PersistenceError as e:
            await self._audit_logger.log_persistence_failed(
                "rule", rule.id, str(e), correlation_id
            )
            raise
        await self._audit_logger.log_rule_created(rule, correlation_id)
        return rule

    async def update_transaction(self, transaction: Transaction) -> None:
        """
        Replace every mutable field of a stored transaction, keeping its id.

        Raises:
            TransactionValidationError, NotFoundError, PersistenceError
        """
        correlation_id = create_correlation_id()
        await self._validate(transaction, None, correlation_id)
        await self._repository.update_transaction(transaction)
        await self._audit_logger.log_transaction_updated(transaction.id, correlation_id)

    async def delete_transaction(self, transaction_id: str) -> bool:
        deleted = await self._repository.delete_transaction(transaction_id)
        if deleted:
            await self._audit_logger.log_transaction_deleted(transaction_id)
        return deleted

    async def list_transactions(
        self,
        account_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        """Transactions newest first."""
        transactions = await self._repository.list_transactions(account_id, date_from, date_to)
        return sorted(transactions, key=lambda t: (t.date, t.id), reverse=True)

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def _get_account(self, account_id: str) -> Account:
        for account in await self._repository.list_accounts():
            if account.id == account_id:
                return account
        raise NotFoundError(f"Account not found: {account_id}")

    async def list_accounts(self) -> list[Account]:
        return await self._repository.list_accounts()

    async def add_account(self, account: Account) -> None:
        await self._repository.add_account(account)
        await self._audit_logger.log_account_changed(AuditEventType.ACCOUNT_ADDED, account)

    async def update_account(self, account: Account) -> None:
        await self._repository.update_account(account)
        await self._audit_logger.log_account_changed(AuditEventType.ACCOUNT_UPDATED, account)

    async def delete_account(self, account_id: str) -> bool:
        """
        Delete an account that nothing references.

        Raises:
            AccountDeletionError: Default account, or referenced by a transaction
        """
        transactions = await self._repository.list_transactions(account_id=account_id)
        self._validator.check_account_deletion(account_id, transactions)

        accounts = {a.id: a for a in await self._repository.list_accounts()}
        deleted = await self._repository.delete_account(account_id)
        if deleted:
            await self._audit_logger.log_account_changed(
                AuditEventType.ACCOUNT_DELETED, accounts[account_id]
            )
        return deleted

    # -------------------------------------------------------------------------
    # Recurring rules
    # -------------------------------------------------------------------------

    async def list_recurring_rules(self) -> list[RecurringRule]:
        return await self._repository.list_recurring_rules()

    async def delete_recurring_rule(self, rule_id: str) -> bool:
        """Hard-delete a rule. Transactions it already produced are kept."""
        deleted = await self._repository.delete_recurring_rule(rule_id)
        if deleted:
            await self._audit_logger.log_rule_deleted(rule_id)
        return deleted

    # -------------------------------------------------------------------------
    # Backup
    # -------------------------------------------------------------------------

    async def export_json(self) -> str:
        return await self._backup.export_json(self._preferences)

    async def import_json(self, raw: str | bytes) -> BackupDocument:
        """
        Replace the whole ledger with a backup.

        Raises:
            ImportFormatError: Malformed backup; nothing changed
        """
        document = await self._backup.import_json(raw)
        if document.settings is not None:
            self._set_preferences(document.settings)
        return document


def create_ledger_service(
    settings: Optional[Settings] = None,
    repository: Optional[LedgerRepository] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> LedgerService:
    """
    Factory function to create the ledger service.

    Args:
        settings: Process settings (defaults to the cached ones)
        repository: Use this repository instead of the configured backend
        audit_storage: Where audit events are kept (in memory by default)
    """
    settings = settings or get_settings()
    repository = repository or create_repository(settings.storage)
    audit_logger = AuditLogger(audit_storage or InMemoryAuditStorage())

    return LedgerService(
        repository,
        engine_settings=settings.engine,
        audit_logger=audit_logger,
    )

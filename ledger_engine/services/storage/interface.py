"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the relational store for a flat key-value document
2. Use in-memory storage for testing
3. Keep the engine decoupled from the storage implementation

The engine never branches on which backend is active. The backend is
chosen once at startup (see factory.py).

The interface is intentionally simple - we're not building a full ORM.
Just the operations the ledger needs.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional
from uuid import UUID

from ledger_engine.models.audit import AuditEvent
from ledger_engine.models.ledger import (
    Account,
    RecurringRule,
    Transaction,
)


class LedgerRepository(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (SQL database, JSON document, memory)
    must implement these methods.
    """

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_accounts(self) -> list[Account]:
        """Return every account."""
        pass

    @abstractmethod
    async def add_account(self, account: Account) -> bool:
        """
        Add a new account.

        Raises:
            DuplicateError: If an account with this id already exists
            PersistenceError: If the write fails
        """
        pass

    @abstractmethod
    async def update_account(self, account: Account) -> bool:
        """
        Replace an existing account's fields.

        Raises:
            NotFoundError: If the account doesn't exist
        """
        pass

    @abstractmethod
    async def delete_account(self, account_id: str) -> bool:
        """Delete an account. Returns False if it didn't exist."""
        pass

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_transactions(
        self,
        account_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        """
        List transactions with optional filters.

        No ordering is guaranteed; the engine sorts as it needs.

        Args:
            account_id: Only transactions with this account as source or target
            date_from: Only transactions on or after this date
            date_to: Only transactions on or before this date
        """
        pass

    @abstractmethod
    async def append_transaction(self, transaction: Transaction) -> bool:
        """
        Append a transaction.

        Raises:
            DuplicateError: If a transaction with this id already exists
            PersistenceError: If the write fails
        """
        pass

    @abstractmethod
    async def update_transaction(self, transaction: Transaction) -> bool:
        """
        Replace all mutable fields of an existing transaction, keeping its id.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> bool:
        """Delete a transaction. Returns False if it didn't exist."""
        pass

    # -------------------------------------------------------------------------
    # Recurring rules
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_recurring_rules(self) -> list[RecurringRule]:
        pass

    @abstractmethod
    async def add_recurring_rule(self, rule: RecurringRule) -> bool:
        """
        Raises:
            DuplicateError: If a rule with this id already exists
        """
        pass

    @abstractmethod
    async def update_recurring_rule(self, rule_id: str, next_due_date: date) -> bool:
        """
        Persist a rule's advanced due date.

        Raises:
            NotFoundError: If the rule doesn't exist
        """
        pass

    @abstractmethod
    async def delete_recurring_rule(self, rule_id: str) -> bool:
        """Hard-delete a rule. Materialized transactions are kept."""
        pass

    @abstractmethod
    async def commit_period_step(
        self,
        transaction: Transaction,
        rule_id: str,
        next_due_date: date,
    ) -> bool:
        """
        Atomically materialize one recurring period.

        Appends `transaction` and moves the rule to `next_due_date` in a
        single unit: either both happen or neither does. A transaction
        whose id already exists counts as already materialized, so the
        rule still advances and no duplicate is written.

        The stored due date only ever moves forward. A step for a period
        before the stored `next_due_date` (a stale rule snapshot) is a
        no-op, and `next_due_date` is written only when it is later than
        the stored one.

        Returns:
            True if the transaction was newly written, False if it existed
            or the period was already behind the rule

        Raises:
            NotFoundError: If the rule doesn't exist
            PersistenceError: If the write fails (nothing is applied)
        """
        pass

    # -------------------------------------------------------------------------
    # Whole data set
    # -------------------------------------------------------------------------

    @abstractmethod
    async def replace_all(
        self,
        accounts: list[Account],
        transactions: list[Transaction],
        rules: list[RecurringRule],
        preferences: Optional[dict] = None,
    ) -> bool:
        """
        Replace every account, transaction and rule in one unit.

        Either the full set is replaced, or the store is left untouched.
        Preferences are replaced only when given.
        """
        pass

    @abstractmethod
    async def load_preferences(self) -> Optional[dict]:
        """Return the stored preferences document, or None if never saved."""
        pass

    @abstractmethod
    async def save_preferences(self, preferences: dict) -> bool:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one catch-up run).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Returns:
            List of recent events (newest first)
        """
        pass


class PersistenceError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(PersistenceError):
    """Entity not found in storage."""
    pass


class DuplicateError(PersistenceError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(PersistenceError):
    """Could not connect to storage backend."""
    pass

"""
In-Memory Storage Implementation

Used for testing and for short-lived sessions that never touch disk.
Records are copied on the way in and out so callers can never mutate
stored state by accident.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from ledger_engine.models.audit import AuditEvent
from ledger_engine.models.ledger import (
    Account,
    RecurringRule,
    Transaction,
)
from ledger_engine.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerRepository,
    NotFoundError,
)


def matches_filters(
    transaction: Transaction,
    account_id: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> bool:
    """Shared transaction filter for backends that filter in Python."""
    if account_id and account_id not in (
        transaction.source_account_id,
        transaction.target_account_id,
    ):
        return False
    if date_from and transaction.date < date_from:
        return False
    if date_to and transaction.date > date_to:
        return False
    return True


class InMemoryLedgerRepository(LedgerRepository):
    """
    Dictionary-backed repository.

    Every method completes without awaiting anything, so each call is
    atomic with respect to other coroutines on the same event loop.
    """

    def __init__(
        self,
        accounts: Optional[list[Account]] = None,
        transactions: Optional[list[Transaction]] = None,
        rules: Optional[list[RecurringRule]] = None,
    ):
        self._accounts: dict[str, Account] = {}
        self._transactions: dict[str, Transaction] = {}
        self._rules: dict[str, RecurringRule] = {}
        self._preferences: Optional[dict] = None

        for account in accounts or []:
            self._accounts[account.id] = account.model_copy(deep=True)
        for transaction in transactions or []:
            self._transactions[transaction.id] = transaction.model_copy(deep=True)
        for rule in rules or []:
            self._rules[rule.id] = rule.model_copy(deep=True)

    # Accounts

    async def list_accounts(self) -> list[Account]:
        return [a.model_copy(deep=True) for a in self._accounts.values()]

    async def add_account(self, account: Account) -> bool:
        if account.id in self._accounts:
            raise DuplicateError(f"Account already exists: {account.id}")
        self._accounts[account.id] = account.model_copy(deep=True)
        return True

    async def update_account(self, account: Account) -> bool:
        if account.id not in self._accounts:
            raise NotFoundError(f"Account not found: {account.id}")
        self._accounts[account.id] = account.model_copy(deep=True)
        return True

    async def delete_account(self, account_id: str) -> bool:
        return self._accounts.pop(account_id, None) is not None

    # Transactions

    async def list_transactions(
        self,
        account_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        return [
            t.model_copy(deep=True)
            for t in self._transactions.values()
            if matches_filters(t, account_id, date_from, date_to)
        ]

    async def append_transaction(self, transaction: Transaction) -> bool:
        if transaction.id in self._transactions:
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        self._transactions[transaction.id] = transaction.model_copy(deep=True)
        return True

    async def update_transaction(self, transaction: Transaction) -> bool:
        if transaction.id not in self._transactions:
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        self._transactions[transaction.id] = transaction.model_copy(deep=True)
        return True

    async def delete_transaction(self, transaction_id: str) -> bool:
        return self._transactions.pop(transaction_id, None) is not None

    # Recurring rules

    async def list_recurring_rules(self) -> list[RecurringRule]:
        return [r.model_copy(deep=True) for r in self._rules.values()]

    async def add_recurring_rule(self, rule: RecurringRule) -> bool:
        if rule.id in self._rules:
            raise DuplicateError(f"Recurring rule already exists: {rule.id}")
        self._rules[rule.id] = rule.model_copy(deep=True)
        return True

    async def update_recurring_rule(self, rule_id: str, next_due_date: date) -> bool:
        rule = self._rules.get(rule_id)
        if rule is None:
            raise NotFoundError(f"Recurring rule not found: {rule_id}")
        self._rules[rule_id] = rule.model_copy(update={"next_due_date": next_due_date})
        return True

    async def delete_recurring_rule(self, rule_id: str) -> bool:
        return self._rules.pop(rule_id, None) is not None

    async def commit_period_step(
        self,
        transaction: Transaction,
        rule_id: str,
        next_due_date: date,
    ) -> bool:
        rule = self._rules.get(rule_id)
        if rule is None:
            raise NotFoundError(f"Recurring rule not found: {rule_id}")

        if transaction.date < rule.next_due_date:
            return False

        created = transaction.id not in self._transactions
        if created:
            self._transactions[transaction.id] = transaction.model_copy(deep=True)
        if next_due_date > rule.next_due_date:
            self._rules[rule_id] = rule.model_copy(update={"next_due_date": next_due_date})
        return created

    # Whole data set

    async def replace_all(
        self,
        accounts: list[Account],
        transactions: list[Transaction],
        rules: list[RecurringRule],
        preferences: Optional[dict] = None,
    ) -> bool:
        self._accounts = {a.id: a.model_copy(deep=True) for a in accounts}
        self._transactions = {t.id: t.model_copy(deep=True) for t in transactions}
        self._rules = {r.id: r.model_copy(deep=True) for r in rules}
        if preferences is not None:
            self._preferences = dict(preferences)
        return True

    async def load_preferences(self) -> Optional[dict]:
        return dict(self._preferences) if self._preferences is not None else None

    async def save_preferences(self, preferences: dict) -> bool:
        self._preferences = dict(preferences)
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]

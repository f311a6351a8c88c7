"""Record builders shared by the test modules."""

from datetime import date
from decimal import Decimal

from ledger_engine.models.ledger import (
    Account,
    AccountKind,
    Currency,
    Frequency,
    RecurringRule,
    Transaction,
    TransactionKind,
)


def make_account(
    account_id: str,
    currency: Currency = Currency.TL,
    opening: str = "0",
    kind: AccountKind = AccountKind.BANK,
) -> Account:
    return Account(
        id=account_id,
        name=account_id.replace("_", " ").title(),
        kind=kind,
        currency=currency,
        opening_balance=Decimal(opening),
    )


def make_tx(
    tx_id: str,
    day: date,
    amount: str,
    kind: TransactionKind,
    source: str,
    target: str | None = None,
    target_amount: str | None = None,
    category: str = "Food",
) -> Transaction:
    return Transaction(
        id=tx_id,
        date=day,
        amount=Decimal(amount),
        kind=kind,
        source_account_id=source,
        target_account_id=target,
        target_amount=Decimal(target_amount) if target_amount else None,
        category=category,
    )


def make_rule(
    rule_id: str = "rule_1",
    next_due: date = date(2024, 1, 1),
    frequency: Frequency = Frequency.DAILY,
    amount: str = "10",
    source: str = "cash",
    is_active: bool = True,
    note: str = "",
) -> RecurringRule:
    return RecurringRule(
        id=rule_id,
        amount=Decimal(amount),
        category="Rent & Housing",
        kind=TransactionKind.EXPENSE,
        source_account_id=source,
        frequency=frequency,
        start_date=next_due,
        next_due_date=next_due,
        note=note,
        is_active=is_active,
    )

"""
Category/Aggregate Reporter

Groups income or expense transactions by category for summary views.

Only transactions whose SOURCE account is in the requested currency are
counted, so every total is a sum of amounts in a single currency.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, Sequence

from ledger_engine.engine.balances import ZERO
from ledger_engine.engine.ledger import sort_key
from ledger_engine.engine.periods import month_bounds, year_bounds
from ledger_engine.models.ledger import (
    Account,
    Currency,
    Transaction,
    TransactionKind,
)
from ledger_engine.models.reports import CategoryReport, CategoryTotal


class ReportPeriod(str, Enum):
    CURRENT_MONTH = "current_month"
    CURRENT_YEAR = "current_year"
    ALL_TIME = "all_time"


def period_bounds(
    period: ReportPeriod,
    today: date,
) -> tuple[Optional[date], Optional[date]]:
    """Inclusive date range of a period selector; None bounds are open."""
    if period == ReportPeriod.CURRENT_MONTH:
        return month_bounds(today)
    if period == ReportPeriod.CURRENT_YEAR:
        return year_bounds(today)
    return None, None


def _in_range(day: date, start: Optional[date], end: Optional[date]) -> bool:
    if start is not None and day < start:
        return False
    if end is not None and day > end:
        return False
    return True


def _currency_of_source(
    transaction: Transaction,
    accounts_by_id: dict[str, Account],
) -> Optional[Currency]:
    account = accounts_by_id.get(transaction.source_account_id)
    return account.currency if account is not None else None


def category_totals(
    transactions: Sequence[Transaction],
    accounts: Sequence[Account],
    kind: TransactionKind,
    currency: Currency,
    period: ReportPeriod = ReportPeriod.CURRENT_MONTH,
    today: Optional[date] = None,
) -> list[CategoryTotal]:
    """
    Sum amounts per category.

    Args:
        transactions: Full transaction history
        accounts: Every known account (for source currencies)
        kind: EXPENSE or INCOME
        currency: Only transactions booked on accounts in this currency
        period: Current month, current year or all time
        today: Reference date for the period (defaults to today)

    Returns:
        Category totals ordered by descending total, ties by name
    """
    today = today or date.today()
    start, end = period_bounds(period, today)
    accounts_by_id = {account.id: account for account in accounts}

    totals: dict[str, Decimal] = {}
    for transaction in transactions:
        if transaction.kind != kind:
            continue
        if _currency_of_source(transaction, accounts_by_id) != currency:
            continue
        if not _in_range(transaction.date, start, end):
            continue
        totals[transaction.category] = totals.get(transaction.category, ZERO) + transaction.amount

    ordered = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
    return [CategoryTotal(category=name, total=total) for name, total in ordered]


def category_report(
    category: str,
    currency: Currency,
    transactions: Sequence[Transaction],
    accounts: Sequence[Account],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> CategoryReport:
    """Every transaction of one category and currency in a window, newest first."""
    accounts_by_id = {account.id: account for account in accounts}

    matching = [
        t for t in transactions
        if t.category == category
        and _currency_of_source(t, accounts_by_id) == currency
        and _in_range(t.date, start, end)
    ]
    matching.sort(key=sort_key, reverse=True)

    total_income = sum(
        (t.amount for t in matching if t.kind == TransactionKind.INCOME), ZERO
    )
    total_expense = sum(
        (t.amount for t in matching if t.kind == TransactionKind.EXPENSE), ZERO
    )

    return CategoryReport(
        category=category,
        currency=currency,
        start=start,
        end=end,
        transactions=matching,
        total_income=total_income,
        total_expense=total_expense,
    )

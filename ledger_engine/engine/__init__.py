"""
Pure ledger computations.

Nothing in this package performs I/O. Every function takes a snapshot of
accounts and transactions and returns a new derived value.
"""

from ledger_engine.engine.balances import (
    account_balance,
    calculate_balances,
    currencies_in_use,
    signed_delta,
)
from ledger_engine.engine.ledger import (
    reconstruct_ledger,
    sort_key,
    sort_transactions,
)
from ledger_engine.engine.periods import add_months, advance
from ledger_engine.engine.reports import (
    ReportPeriod,
    category_report,
    category_totals,
    period_bounds,
)

__all__ = [
    "ReportPeriod",
    "account_balance",
    "add_months",
    "advance",
    "calculate_balances",
    "category_report",
    "category_totals",
    "currencies_in_use",
    "period_bounds",
    "reconstruct_ledger",
    "signed_delta",
    "sort_key",
    "sort_transactions",
]

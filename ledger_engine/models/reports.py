"""
Derived Result Models

Everything in this module is COMPUTED from accounts and transactions.
None of it is ever persisted; it is rebuilt on demand for display,
statements and summaries.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from ledger_engine.models.ledger import (
    Account,
    Currency,
    Transaction,
)


# =============================================================================
# BALANCES
# =============================================================================

class AccountBalance(BaseModel):
    """An account together with its current derived balance."""

    account: Account
    balance: Decimal


class BalanceSummary(BaseModel):
    """
    Result of the balance calculator.

    `balances_by_currency` always holds every supported currency,
    zero where nothing is booked.
    """

    accounts: list[AccountBalance] = Field(default_factory=list)
    balances_by_currency: dict[Currency, Decimal] = Field(default_factory=dict)
    liquid_balances_by_currency: dict[Currency, Decimal] = Field(
        default_factory=dict,
        description="Bank and cash accounts only"
    )
    currencies_in_use: list[Currency] = Field(default_factory=list)

    # Figures for the preferred display currency
    preferred_currency: Optional[Currency] = None
    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")

    def balance_of(self, account_id: str) -> Optional[Decimal]:
        """Look up one account's balance."""
        for item in self.accounts:
            if item.account.id == account_id:
                return item.balance
        return None


# =============================================================================
# LEDGER
# =============================================================================

class LedgerEntry(BaseModel):
    """One transaction's effect on one account's running balance."""

    transaction: Transaction
    delta: Decimal = Field(
        ...,
        description="Signed change applied to the account"
    )
    running_balance: Decimal = Field(
        ...,
        description="Account balance immediately after this entry"
    )

    @property
    def date(self) -> date:
        return self.transaction.date


class AccountLedger(BaseModel):
    """
    Statement of one account over a date window.

    CRITICAL: running balances come from the full history,
    never from a window-local recomputation.
    """

    account_id: str
    start: Optional[date] = None
    end: Optional[date] = None
    opening_balance: Decimal = Field(
        ...,
        description="Balance just before the first in-window entry"
    )
    closing_balance: Decimal
    entries: list[LedgerEntry] = Field(default_factory=list)
    total_in: Decimal = Decimal("0")
    total_out: Decimal = Decimal("0")


# =============================================================================
# REPORTS
# =============================================================================

class CategoryTotal(BaseModel):
    category: str
    total: Decimal


class CategoryReport(BaseModel):
    """Drill-down of a single category in one currency."""

    category: str
    currency: Currency
    start: Optional[date] = None
    end: Optional[date] = None
    transactions: list[Transaction] = Field(
        default_factory=list,
        description="Matching transactions, newest first"
    )
    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")


# =============================================================================
# SCHEDULER
# =============================================================================

class CatchUpReport(BaseModel):
    """Outcome of one scheduler catch-up run."""

    run_date: date
    materialized: list[Transaction] = Field(default_factory=list)
    rules_processed: int = 0
    rules_skipped: int = 0
    failures: dict[str, str] = Field(
        default_factory=dict,
        description="rule id -> error message for rules that stopped early"
    )

    @property
    def materialized_count(self) -> int:
        return len(self.materialized)

    @property
    def succeeded(self) -> bool:
        return not self.failures



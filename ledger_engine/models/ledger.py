"""
Core Ledger Models

These models define the strict schemas for the records the engine works on:
accounts, transactions and recurring rules.

They are designed to:
1. Enforce the record invariants at construction time
2. Be serializable for storage and backup
3. Accept the legacy camelCase field names of older exports

DESIGN DECISION: Money is always Decimal. Floats never enter the ledger,
so balances are exact and reproducible across runs and backends.
"""

import secrets
import time
import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


TRANSFER_CATEGORY = "Transfer"

# Id prefix of transactions written by the recurring-rule scheduler
MATERIALIZATION_PREFIX = "rec_"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Currency(str, Enum):
    """Supported account currencies. Amounts in different currencies are never summed."""
    TL = "TL"
    USD = "USD"
    EUR = "EUR"
    TOMAN = "TOMAN"


class AccountKind(str, Enum):
    """What kind of holder an account represents."""
    BANK = "bank"
    CASH = "cash"
    PERSON = "person"  # Money owed by / to a person, not liquid


class TransactionKind(str, Enum):
    EXPENSE = "expense"
    INCOME = "income"
    TRANSFER = "transfer"


class Frequency(str, Enum):
    """Recurrence period of a recurring rule."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


def generate_transaction_id() -> str:
    """
    Create a new transaction id.

    The zero-padded nanosecond prefix keeps ids lexically sortable in
    creation order; the random suffix separates ids created in the same tick.
    """
    return f"{time.time_ns():020d}{secrets.token_hex(3)}"


# =============================================================================
# ACCOUNT
# =============================================================================

class Account(BaseModel):
    """
    An account holding money in exactly one currency.

    The balance is never stored; it is always derived from the
    opening balance and the transaction history.
    """
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Stable account identifier"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name"
    )
    kind: AccountKind = Field(
        ...,
        validation_alias=AliasChoices("kind", "type"),
        description="Bank, cash or person account"
    )
    currency: Currency = Field(
        ...,
        description="Currency of every amount booked on this account"
    )
    opening_balance: Decimal = Field(
        default=Decimal("0"),
        validation_alias=AliasChoices("opening_balance", "initialBalance"),
        description="Signed balance before the first transaction"
    )


# =============================================================================
# TRANSACTION
# =============================================================================

class Transaction(BaseModel):
    """
    A single booked movement of money.

    Amounts are always positive; the kind decides the sign.
    A transfer moves `amount` out of the source account and
    `target_amount` into the target account. The two differ only when
    the accounts have different currencies.
    """
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    id: str = Field(
        default_factory=generate_transaction_id,
        min_length=1,
        description="Unique id, also the same-day tie-break sort key"
    )
    date: dt.date = Field(
        ...,
        description="Booking date (no time of day)"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount in the source account's currency"
    )
    kind: TransactionKind = Field(
        ...,
        validation_alias=AliasChoices("kind", "type"),
    )
    source_account_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("source_account_id", "accountId"),
    )
    target_account_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("target_account_id", "toAccountId"),
        description="Receiving account (transfers only)"
    )
    target_amount: Optional[Decimal] = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("target_amount", "targetAmount"),
        description="Amount received in the target account's currency (transfers only)"
    )
    category: str = Field(
        default="",
        max_length=200,
    )
    note: str = Field(
        default="",
        max_length=1000,
    )
    is_recurring_generated: bool = Field(
        default=False,
        description="Created by the recurring-rule scheduler"
    )

    @model_validator(mode="before")
    @classmethod
    def normalize_legacy_fields(cls, data: Any) -> Any:
        """
        Clean up legacy rows before field validation.

        Older exports stored `targetAmount = amount` on every row,
        a null note, and an empty `toAccountId` on non-transfers.
        Their `isRecurring` flag was also set on the user-entered row that
        started a rule, so it only counts as scheduler-generated on rows
        whose id carries the materialization prefix.
        """
        if not isinstance(data, dict):
            return data
        data = dict(data)
        kind = data.get("kind", data.get("type"))
        if kind != TransactionKind.TRANSFER:
            data.pop("target_amount", None)
            data.pop("targetAmount", None)
        for key in ("target_account_id", "toAccountId", "target_amount", "targetAmount"):
            if data.get(key) in ("", None):
                data.pop(key, None)
        if data.get("note") is None:
            data.pop("note", None)
        if "isRecurring" in data:
            legacy_flag = bool(data.pop("isRecurring"))
            if "is_recurring_generated" not in data:
                row_id = str(data.get("id", ""))
                data["is_recurring_generated"] = (
                    legacy_flag and row_id.startswith(MATERIALIZATION_PREFIX)
                )
        return data

    @model_validator(mode="after")
    def validate_kind_fields(self) -> "Transaction":
        """Enforce the per-kind field rules."""
        if self.kind == TransactionKind.TRANSFER:
            if not self.target_account_id:
                raise ValueError("Transfer requires a target account")
            if self.target_account_id == self.source_account_id:
                raise ValueError("Transfer source and target accounts must differ")
            self.category = TRANSFER_CATEGORY
        else:
            if self.target_account_id is not None:
                raise ValueError("Only transfers may have a target account")
            if not self.category:
                raise ValueError("Category is required for income and expense")
        return self

    @property
    def received_amount(self) -> Decimal:
        """Amount credited to the target account; equals `amount` unless set."""
        if self.target_amount is not None:
            return self.target_amount
        return self.amount


# =============================================================================
# RECURRING RULE
# =============================================================================

class RecurringRule(BaseModel):
    """
    A template that the scheduler materializes once per elapsed period.

    CRITICAL: Only the scheduler moves `next_due_date`, and only forward.
    Deleting a rule never retracts the transactions it already produced.
    """
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    category: str = Field(..., min_length=1, max_length=200)
    kind: TransactionKind = Field(
        ...,
        validation_alias=AliasChoices("kind", "type"),
    )
    source_account_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("source_account_id", "accountId"),
    )
    frequency: Frequency
    start_date: dt.date = Field(
        ...,
        validation_alias=AliasChoices("start_date", "startDate"),
    )
    next_due_date: dt.date = Field(
        ...,
        validation_alias=AliasChoices("next_due_date", "nextDueDate"),
    )
    note: str = Field(default="", max_length=1000)
    is_active: bool = Field(
        default=True,
        validation_alias=AliasChoices("is_active", "isActive"),
    )

    @model_validator(mode="before")
    @classmethod
    def drop_null_note(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("note") is None:
            data = {k: v for k, v in data.items() if k != "note"}
        return data

    @model_validator(mode="after")
    def validate_rule(self) -> "RecurringRule":
        """Transfers are never recurring, and the due date never precedes the start."""
        if self.kind == TransactionKind.TRANSFER:
            raise ValueError("Transfers cannot be recurring")
        if self.next_due_date < self.start_date:
            raise ValueError("Next due date cannot be before start date")
        return self

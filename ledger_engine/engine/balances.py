"""
Balance Calculator

Derives every account's current balance, and the per-currency aggregate,
from the opening balances and the full transaction history.

DESIGN DECISION: Calculation is a pure function over a snapshot.
It never touches storage and never raises on malformed history:
a leg whose account no longer exists simply contributes nothing.

Amounts in different currencies are never added together. A transfer
between currencies takes `amount` out of the source currency and puts
`target_amount` into the target currency; no exchange-rate gain or loss
entry reconciles the two.
"""

from decimal import Decimal
from typing import Iterable, Optional, Sequence

from ledger_engine.models.ledger import (
    Account,
    AccountKind,
    Currency,
    Transaction,
    TransactionKind,
)
from ledger_engine.models.reports import AccountBalance, BalanceSummary


ZERO = Decimal("0")

LIQUID_KINDS = (AccountKind.BANK, AccountKind.CASH)


def signed_delta(transaction: Transaction, account_id: str) -> Decimal:
    """
    Signed effect of one transaction on one account.

    Source leg: +amount for income, -amount for expense and transfer.
    Target leg: +target_amount.
    Both legs apply if (malformed) data names the account on both sides.
    """
    delta = ZERO
    if transaction.source_account_id == account_id:
        if transaction.kind == TransactionKind.INCOME:
            delta += transaction.amount
        else:
            delta -= transaction.amount
    if (
        transaction.kind == TransactionKind.TRANSFER
        and transaction.target_account_id == account_id
    ):
        delta += transaction.received_amount
    return delta


def account_balance(account: Account, transactions: Iterable[Transaction]) -> Decimal:
    """Opening balance plus every signed delta touching the account."""
    balance = account.opening_balance
    for transaction in transactions:
        balance += signed_delta(transaction, account.id)
    return balance


def _empty_currency_map() -> dict[Currency, Decimal]:
    return {currency: ZERO for currency in Currency}


def currencies_in_use(
    accounts: Sequence[Account],
    transactions: Iterable[Transaction],
) -> list[Currency]:
    """
    Currencies worth showing: those of accounts with a non-zero opening
    balance or that are the source of at least one transaction.
    """
    by_id = {account.id: account for account in accounts}
    used = {a.currency for a in accounts if a.opening_balance != ZERO}
    for transaction in transactions:
        account = by_id.get(transaction.source_account_id)
        if account is not None:
            used.add(account.currency)
    return [currency for currency in Currency if currency in used]


def calculate_balances(
    accounts: Sequence[Account],
    transactions: Sequence[Transaction],
    preferred_currency: Optional[Currency] = None,
) -> BalanceSummary:
    """
    Compute per-account balances and per-currency aggregates.

    Args:
        accounts: Every known account
        transactions: The full transaction history (any order)
        preferred_currency: Currency for the income/expense/balance headline

    Returns:
        BalanceSummary with one AccountBalance per account, in input order
    """
    by_id = {account.id: account for account in accounts}
    balances = {account.id: account.opening_balance for account in accounts}
    by_currency = _empty_currency_map()
    for account in accounts:
        by_currency[account.currency] += account.opening_balance

    total_income = ZERO
    total_expense = ZERO

    for transaction in transactions:
        source = by_id.get(transaction.source_account_id)

        if transaction.kind == TransactionKind.TRANSFER:
            target = by_id.get(transaction.target_account_id)
            if source is not None:
                balances[source.id] -= transaction.amount
                by_currency[source.currency] -= transaction.amount
            if target is not None:
                balances[target.id] += transaction.received_amount
                by_currency[target.currency] += transaction.received_amount
            continue

        if source is None:
            continue

        if transaction.kind == TransactionKind.INCOME:
            balances[source.id] += transaction.amount
            by_currency[source.currency] += transaction.amount
            if source.currency == preferred_currency:
                total_income += transaction.amount
        else:
            balances[source.id] -= transaction.amount
            by_currency[source.currency] -= transaction.amount
            if source.currency == preferred_currency:
                total_expense += transaction.amount

    liquid = _empty_currency_map()
    for account in accounts:
        if account.kind in LIQUID_KINDS:
            liquid[account.currency] += balances[account.id]

    return BalanceSummary(
        accounts=[
            AccountBalance(account=account, balance=balances[account.id])
            for account in accounts
        ],
        balances_by_currency=by_currency,
        liquid_balances_by_currency=liquid,
        currencies_in_use=currencies_in_use(accounts, transactions),
        preferred_currency=preferred_currency,
        total_income=total_income,
        total_expense=total_expense,
        balance=by_currency[preferred_currency] if preferred_currency else ZERO,
    )

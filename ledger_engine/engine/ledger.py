"""
Ledger Reconstructor

Builds the running-balance history of one account, used for statements.

The walk always starts at the account's opening balance and covers the
whole history in (date, id) order; the date window only selects which
entries are returned. Running balances therefore reflect true history,
never a recomputation relative to the window.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from ledger_engine.engine.balances import ZERO, signed_delta
from ledger_engine.models.ledger import Account, Transaction
from ledger_engine.models.reports import AccountLedger, LedgerEntry


def sort_key(transaction: Transaction) -> tuple[date, str]:
    """The (date, id) total order shared by every balance computation."""
    return transaction.date, transaction.id


def sort_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    return sorted(transactions, key=sort_key)


def touches_account(transaction: Transaction, account_id: str) -> bool:
    return (
        transaction.source_account_id == account_id
        or transaction.target_account_id == account_id
    )


def reconstruct_ledger(
    account: Account,
    transactions: Iterable[Transaction],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> AccountLedger:
    """
    Reconstruct an account statement for the `[start, end]` window.

    Args:
        account: The account to reconstruct
        transactions: Full transaction history (any order, any accounts)
        start: First date included; None means from the beginning
        end: Last date included; None means up to the latest entry

    Returns:
        AccountLedger whose opening balance is the balance just before
        `start` and whose entries carry their true running balances
    """
    related = sort_transactions(
        t for t in transactions if touches_account(t, account.id)
    )

    running = account.opening_balance
    opening = account.opening_balance
    entries: list[LedgerEntry] = []
    total_in = ZERO
    total_out = ZERO

    for transaction in related:
        delta = signed_delta(transaction, account.id)
        running += delta

        if start is not None and transaction.date < start:
            opening = running
            continue
        if end is not None and transaction.date > end:
            continue

        entries.append(LedgerEntry(
            transaction=transaction,
            delta=delta,
            running_balance=running,
        ))
        if delta > ZERO:
            total_in += delta
        else:
            total_out += -delta

    closing: Decimal = entries[-1].running_balance if entries else opening

    return AccountLedger(
        account_id=account.id,
        start=start,
        end=end,
        opening_balance=opening,
        closing_balance=closing,
        entries=entries,
        total_in=total_in,
        total_out=total_out,
    )

"""
JSON Key-Value Storage Implementation

DESIGN DECISION: The whole data set lives in one flat JSON document with
the keys `accounts`, `transactions`, `recurring` and `settings`. This is the
shape the original app kept in browser storage, so an old export can be
dropped in place and read directly.

Every mutation rewrites the document through a temp file in the same
directory followed by `os.replace`. A crash mid-write leaves either the old
or the new document on disk, never a half-written one.

TRADEOFFS:
- Every read parses the whole file (fine for a personal ledger)
- Filters are applied in Python
"""

import json
import os
import tempfile
from contextlib import suppress
from datetime import date
from pathlib import Path
from typing import Any, Optional, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from ledger_engine.models.ledger import (
    Account,
    RecurringRule,
    Transaction,
)
from ledger_engine.services.storage.interface import (
    DuplicateError,
    LedgerRepository,
    NotFoundError,
    PersistenceError,
)
from ledger_engine.services.storage.memory import matches_filters


logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Document keys
ACCOUNTS_KEY = "accounts"
TRANSACTIONS_KEY = "transactions"
RECURRING_KEY = "recurring"
SETTINGS_KEY = "settings"


def _empty_document() -> dict[str, Any]:
    return {
        ACCOUNTS_KEY: [],
        TRANSACTIONS_KEY: [],
        RECURRING_KEY: [],
        SETTINGS_KEY: None,
    }


def _dump(record: BaseModel) -> dict[str, Any]:
    return record.model_dump(mode="json")


def _index_of(rows: list[dict], record_id: str) -> Optional[int]:
    for index, row in enumerate(rows):
        if row.get("id") == record_id:
            return index
    return None


class JsonFileLedgerRepository(LedgerRepository):
    """
    Repository backed by a single JSON document on disk.

    The file is created on the first write. A missing file reads as an
    empty ledger.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    # -------------------------------------------------------------------------
    # Document I/O
    # -------------------------------------------------------------------------

    def _load(self) -> dict[str, Any]:
        """Read the document, filling in any missing key."""
        if not self._path.exists():
            return _empty_document()

        try:
            with open(self._path, encoding="utf-8") as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Ledger file is not valid JSON: {self._path}: {e}") from e
        except OSError as e:
            raise PersistenceError(f"Failed to read ledger file {self._path}: {e}") from e

        if not isinstance(raw, dict):
            raise PersistenceError(f"Ledger file must hold a JSON object: {self._path}")

        document = _empty_document()
        for key in (ACCOUNTS_KEY, TRANSACTIONS_KEY, RECURRING_KEY):
            value = raw.get(key)
            if value is None:
                continue
            if not isinstance(value, list):
                raise PersistenceError(f"Key '{key}' must hold a list: {self._path}")
            document[key] = value
        document[SETTINGS_KEY] = raw.get(SETTINGS_KEY)
        return document

    def _save(self, document: dict[str, Any]) -> None:
        """Write the document atomically (temp file + os.replace)."""
        tmp_path = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                dir=self._path.parent,
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self._path)
        except OSError as e:
            if tmp_path is not None:
                with suppress(OSError):
                    os.unlink(tmp_path)
            logger.error("ledger_file_write_failed", path=str(self._path), error=str(e))
            raise PersistenceError(f"Failed to write ledger file {self._path}: {e}") from e

    def _parse(self, model: type[ModelT], rows: list[dict]) -> list[ModelT]:
        try:
            return [model.model_validate(row) for row in rows]
        except ValidationError as e:
            raise PersistenceError(
                f"Corrupt {model.__name__} record in {self._path}: {e}"
            ) from e

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def list_accounts(self) -> list[Account]:
        return self._parse(Account, self._load()[ACCOUNTS_KEY])

    async def add_account(self, account: Account) -> bool:
        document = self._load()
        rows = document[ACCOUNTS_KEY]
        if _index_of(rows, account.id) is not None:
            raise DuplicateError(f"Account already exists: {account.id}")
        rows.append(_dump(account))
        self._save(document)
        return True

    async def update_account(self, account: Account) -> bool:
        document = self._load()
        rows = document[ACCOUNTS_KEY]
        index = _index_of(rows, account.id)
        if index is None:
            raise NotFoundError(f"Account not found: {account.id}")
        rows[index] = _dump(account)
        self._save(document)
        return True

    async def delete_account(self, account_id: str) -> bool:
        document = self._load()
        rows = document[ACCOUNTS_KEY]
        index = _index_of(rows, account_id)
        if index is None:
            return False
        del rows[index]
        self._save(document)
        return True

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def list_transactions(
        self,
        account_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        transactions = self._parse(Transaction, self._load()[TRANSACTIONS_KEY])
        return [
            t for t in transactions
            if matches_filters(t, account_id, date_from, date_to)
        ]

    async def append_transaction(self, transaction: Transaction) -> bool:
        document = self._load()
        rows = document[TRANSACTIONS_KEY]
        if _index_of(rows, transaction.id) is not None:
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        rows.append(_dump(transaction))
        self._save(document)
        return True

    async def update_transaction(self, transaction: Transaction) -> bool:
        document = self._load()
        rows = document[TRANSACTIONS_KEY]
        index = _index_of(rows, transaction.id)
        if index is None:
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        rows[index] = _dump(transaction)
        self._save(document)
        return True

    async def delete_transaction(self, transaction_id: str) -> bool:
        document = self._load()
        rows = document[TRANSACTIONS_KEY]
        index = _index_of(rows, transaction_id)
        if index is None:
            return False
        del rows[index]
        self._save(document)
        return True

    # -------------------------------------------------------------------------
    # Recurring rules
    # -------------------------------------------------------------------------

    async def list_recurring_rules(self) -> list[RecurringRule]:
        return self._parse(RecurringRule, self._load()[RECURRING_KEY])

    async def add_recurring_rule(self, rule: RecurringRule) -> bool:
        document = self._load()
        rows = document[RECURRING_KEY]
        if _index_of(rows, rule.id) is not None:
            raise DuplicateError(f"Recurring rule already exists: {rule.id}")
        rows.append(_dump(rule))
        self._save(document)
        return True

    def _advance_rule(self, rows: list[dict], rule_id: str, next_due_date: date) -> None:
        index = _index_of(rows, rule_id)
        if index is None:
            raise NotFoundError(f"Recurring rule not found: {rule_id}")
        rule = self._parse(RecurringRule, [rows[index]])[0]
        rows[index] = _dump(rule.model_copy(update={"next_due_date": next_due_date}))

    async def update_recurring_rule(self, rule_id: str, next_due_date: date) -> bool:
        document = self._load()
        self._advance_rule(document[RECURRING_KEY], rule_id, next_due_date)
        self._save(document)
        return True

    async def delete_recurring_rule(self, rule_id: str) -> bool:
        document = self._load()
        rows = document[RECURRING_KEY]
        index = _index_of(rows, rule_id)
        if index is None:
            return False
        del rows[index]
        self._save(document)
        return True

    async def commit_period_step(
        self,
        transaction: Transaction,
        rule_id: str,
        next_due_date: date,
    ) -> bool:
        # Both changes go into the same document write
        document = self._load()
        rules = document[RECURRING_KEY]
        index = _index_of(rules, rule_id)
        if index is None:
            raise NotFoundError(f"Recurring rule not found: {rule_id}")
        stored_due = self._parse(RecurringRule, [rules[index]])[0].next_due_date
        if transaction.date < stored_due:
            return False
        if next_due_date > stored_due:
            self._advance_rule(rules, rule_id, next_due_date)

        rows = document[TRANSACTIONS_KEY]
        created = _index_of(rows, transaction.id) is None
        if created:
            rows.append(_dump(transaction))

        self._save(document)
        return created

    # -------------------------------------------------------------------------
    # Whole data set
    # -------------------------------------------------------------------------

    async def replace_all(
        self,
        accounts: list[Account],
        transactions: list[Transaction],
        rules: list[RecurringRule],
        preferences: Optional[dict] = None,
    ) -> bool:
        settings = preferences
        if settings is None and self._path.exists():
            settings = self._load()[SETTINGS_KEY]

        self._save({
            ACCOUNTS_KEY: [_dump(a) for a in accounts],
            TRANSACTIONS_KEY: [_dump(t) for t in transactions],
            RECURRING_KEY: [_dump(r) for r in rules],
            SETTINGS_KEY: settings,
        })
        return True

    async def load_preferences(self) -> Optional[dict]:
        settings = self._load()[SETTINGS_KEY]
        if settings is None:
            return None
        if not isinstance(settings, dict):
            raise PersistenceError(f"Key 'settings' must hold an object: {self._path}")
        return settings

    async def save_preferences(self, preferences: dict) -> bool:
        document = self._load()
        document[SETTINGS_KEY] = preferences
        self._save(document)
        return True

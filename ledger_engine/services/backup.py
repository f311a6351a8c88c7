"""
Backup Export / Import

A backup is a single JSON document:

    {"accounts": [...], "transactions": [...], "recurring": [...],
     "settings": {...}, "version": "3.0"}

CRITICAL: Import is all-or-nothing. The whole document is parsed and
validated before anything is written, and the store is replaced through
`LedgerRepository.replace_all`, which is atomic. A malformed backup
leaves the existing ledger untouched.

Older exports (version 2.0 and earlier) used camelCase field names and
may lack `isActive` on recurring rules; the models accept both.
"""

import json
from collections import Counter
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from ledger_engine.audit import AuditLogger
from ledger_engine.config.preferences import Preferences
from ledger_engine.models.ledger import Account, RecurringRule, Transaction
from ledger_engine.services.storage.interface import LedgerRepository


class ImportFormatError(Exception):
    """The backup document is malformed; nothing was imported."""
    pass


class BackupDocument(BaseModel):
    """A complete, validated backup."""

    accounts: list[Account]
    transactions: list[Transaction] = Field(default_factory=list)
    recurring: list[RecurringRule] = Field(default_factory=list)
    settings: Optional[Preferences] = None
    version: Optional[str] = None

    def counts(self) -> dict[str, int]:
        return {
            "accounts": len(self.accounts),
            "transactions": len(self.transactions),
            "recurring": len(self.recurring),
        }


def _check_unique_ids(name: str, records: list[Any]) -> None:
    duplicates = [
        record_id
        for record_id, count in Counter(record.id for record in records).items()
        if count > 1
    ]
    if duplicates:
        raise ImportFormatError(f"Duplicate ids in '{name}': {', '.join(sorted(duplicates))}")


def parse_backup(raw: str | bytes) -> BackupDocument:
    """
    Parse and validate a backup document without touching any store.

    Raises:
        ImportFormatError: On invalid JSON, a wrong shape or any invalid record
    """
    try:
        data: Any = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ImportFormatError(f"Backup is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ImportFormatError("Backup must be a JSON object")
    if not isinstance(data.get("accounts"), list):
        raise ImportFormatError("Backup must contain an 'accounts' list")
    for key in ("transactions", "recurring"):
        if data.get(key) is not None and not isinstance(data[key], list):
            raise ImportFormatError(f"'{key}' must be a list when present")

    cleaned = {
        "accounts": data["accounts"],
        "transactions": data.get("transactions") or [],
        "recurring": data.get("recurring") or [],
        "settings": data.get("settings") or None,
        "version": str(data["version"]) if data.get("version") is not None else None,
    }

    try:
        document = BackupDocument.model_validate(cleaned)
    except ValidationError as e:
        raise ImportFormatError(f"Backup contains invalid records: {e}") from e

    _check_unique_ids("accounts", document.accounts)
    _check_unique_ids("transactions", document.transactions)
    _check_unique_ids("recurring", document.recurring)
    return document


class BackupService:
    """
    Exports the whole ledger to a backup document and restores from one.
    """

    def __init__(
        self,
        repository: LedgerRepository,
        export_version: str = "3.0",
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._export_version = export_version
        self._audit_logger = audit_logger

    async def export_document(self, preferences: Optional[Preferences] = None) -> dict[str, Any]:
        """
        Snapshot every account, transaction and rule as a JSON-ready dict.

        Args:
            preferences: Preferences to embed; defaults to the stored ones
        """
        if preferences is None:
            stored = await self._repository.load_preferences()
            preferences = Preferences.model_validate(stored or {})

        document = BackupDocument(
            accounts=await self._repository.list_accounts(),
            transactions=await self._repository.list_transactions(),
            recurring=await self._repository.list_recurring_rules(),
            settings=preferences,
            version=self._export_version,
        )

        if self._audit_logger:
            await self._audit_logger.log_data_exported(document.counts(), self._export_version)

        return document.model_dump(mode="json")

    async def export_json(self, preferences: Optional[Preferences] = None) -> str:
        document = await self.export_document(preferences)
        return json.dumps(document, ensure_ascii=False, indent=2)

    async def import_json(self, raw: str | bytes) -> BackupDocument:
        """
        Replace the whole ledger with the contents of a backup.

        Stored preferences are replaced only when the backup carries them.

        Raises:
            ImportFormatError: The backup is malformed (store untouched)
            PersistenceError: The store rejected the replacement (store untouched)
        """
        try:
            document = parse_backup(raw)
        except ImportFormatError as e:
            if self._audit_logger:
                await self._audit_logger.log_import_rejected(str(e))
            raise

        preferences = (
            document.settings.model_dump(mode="json")
            if document.settings is not None
            else None
        )
        await self._repository.replace_all(
            accounts=document.accounts,
            transactions=document.transactions,
            rules=document.recurring,
            preferences=preferences,
        )

        if self._audit_logger:
            await self._audit_logger.log_data_imported(document.counts(), document.version)

        return document

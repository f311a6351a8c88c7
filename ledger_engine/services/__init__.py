"""Services package."""

from ledger_engine.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryLedgerRepository,
    JsonFileLedgerRepository,
    LedgerRepository,
    NotFoundError,
    PersistenceError,
    SqlLedgerRepository,
    StorageConnectionError,
    create_repository,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryLedgerRepository",
    "JsonFileLedgerRepository",
    "LedgerRepository",
    "NotFoundError",
    "PersistenceError",
    "SqlLedgerRepository",
    "StorageConnectionError",
    "create_repository",
]

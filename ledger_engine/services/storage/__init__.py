"""
Storage Services Package

Provides the abstract repository interface and its three interchangeable
implementations: in-memory, JSON key-value document and SQL (SQLAlchemy).
"""

from ledger_engine.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerRepository,
    NotFoundError,
    PersistenceError,
    StorageConnectionError,
)
from ledger_engine.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerRepository,
)
from ledger_engine.services.storage.json_file import JsonFileLedgerRepository
from ledger_engine.services.storage.sql import SqlLedgerRepository
from ledger_engine.services.storage.factory import create_repository

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerRepository",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "PersistenceError",
    "StorageConnectionError",
    # Implementations
    "InMemoryAuditStorage",
    "InMemoryLedgerRepository",
    "JsonFileLedgerRepository",
    "SqlLedgerRepository",
    "create_repository",
]

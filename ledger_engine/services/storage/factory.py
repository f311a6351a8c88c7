"""
Repository selection.

The backend is chosen exactly once, at startup, from StorageSettings.
Nothing downstream ever checks which implementation it was handed.
"""

from typing import Optional

import structlog

from ledger_engine.config import StorageSettings, get_settings
from ledger_engine.services.storage.interface import LedgerRepository
from ledger_engine.services.storage.json_file import JsonFileLedgerRepository
from ledger_engine.services.storage.memory import InMemoryLedgerRepository
from ledger_engine.services.storage.sql import SqlLedgerRepository


logger = structlog.get_logger(__name__)


def create_repository(settings: Optional[StorageSettings] = None) -> LedgerRepository:
    """
    Build the repository configured in `settings`.

    Args:
        settings: Storage settings (defaults to the cached process settings)
    """
    settings = settings or get_settings().storage

    if settings.backend == "memory":
        repository: LedgerRepository = InMemoryLedgerRepository()
    elif settings.backend == "json":
        repository = JsonFileLedgerRepository(settings.json_path)
    else:
        repository = SqlLedgerRepository(settings.database_url, echo=settings.echo_sql)

    logger.info(
        "repository_selected",
        backend=settings.backend,
        implementation=type(repository).__name__,
    )
    return repository

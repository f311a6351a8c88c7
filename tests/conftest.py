"""
Shared fixtures for the ledger engine tests.

Every repository-level test runs against in-memory storage unless it
asks for a specific backend.
"""

import pytest

from ledger_engine.audit import AuditLogger
from ledger_engine.config import EngineSettings, Preferences
from ledger_engine.models.ledger import Account, AccountKind, Currency
from ledger_engine.orchestrator import LedgerService
from ledger_engine.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerRepository,
    JsonFileLedgerRepository,
    SqlLedgerRepository,
)

from tests.factories import make_account


@pytest.fixture
def tl_cash() -> Account:
    return make_account("cash", Currency.TL, "100", AccountKind.CASH)


@pytest.fixture
def usd_bank() -> Account:
    return make_account("usd_bank", Currency.USD, "50", AccountKind.BANK)


@pytest.fixture
def repository(tl_cash, usd_bank) -> InMemoryLedgerRepository:
    return InMemoryLedgerRepository(accounts=[tl_cash, usd_bank])


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def preferences() -> Preferences:
    return Preferences()


@pytest.fixture
def engine_settings() -> EngineSettings:
    return EngineSettings(
        default_account_id="default_cash",
        default_account_name="Cash",
        default_account_currency=Currency.TL,
        export_version="3.0",
    )


@pytest.fixture
def service(repository, engine_settings, audit_logger) -> LedgerService:
    return LedgerService(
        repository,
        engine_settings=engine_settings,
        audit_logger=audit_logger,
    )


@pytest.fixture(params=["memory", "json", "sql"])
def any_repository(request, tmp_path):
    """Each backend in turn, all empty."""
    if request.param == "memory":
        yield InMemoryLedgerRepository()
    elif request.param == "json":
        yield JsonFileLedgerRepository(tmp_path / "ledger.json")
    else:
        repo = SqlLedgerRepository(f"sqlite:///{tmp_path / 'ledger.db'}")
        yield repo
        repo.dispose()

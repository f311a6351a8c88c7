"""Tests for the ledger service façade."""

import json
from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from ledger_engine.audit import AuditLogger
from ledger_engine.config import EngineSettings, Preferences
from ledger_engine.engine.reports import ReportPeriod
from ledger_engine.models.audit import AuditEventType
from ledger_engine.models.ledger import Currency, Frequency, TransactionKind
from ledger_engine.orchestrator import LedgerService
from ledger_engine.services.backup import ImportFormatError
from ledger_engine.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerRepository,
    NotFoundError,
    PersistenceError,
)
from ledger_engine.validation import AccountDeletionError, TransactionValidationError

from tests.factories import make_account, make_rule, make_tx


D = date(2024, 3, 10)


async def _event_types(storage):
    return [e.event_type for e in await storage.get_recent_events()]


class TestStartup:

    @pytest.mark.asyncio
    async def test_creates_default_account(self, engine_settings):
        repository = InMemoryLedgerRepository()
        service = LedgerService(repository, engine_settings=engine_settings)

        await service.startup(today=D)

        accounts = await repository.list_accounts()
        assert [a.id for a in accounts] == ["default_cash"]
        assert accounts[0].currency == Currency.TL
        assert accounts[0].opening_balance == Decimal("0")

    @pytest.mark.asyncio
    async def test_existing_accounts_are_kept(self, service, repository):
        assert await service.ensure_default_account() is None
        assert len(await repository.list_accounts()) == 2

    @pytest.mark.asyncio
    async def test_catches_up_with_stored_preferences(self, engine_settings):
        repository = InMemoryLedgerRepository(
            accounts=[make_account("cash")],
            rules=[make_rule(next_due=date(2024, 3, 9), note="Gym")],
        )
        await repository.save_preferences({"recurring_note_suffix": "[auto]", "currency": "USD"})
        service = LedgerService(repository, engine_settings=engine_settings)

        report = await service.startup(today=D)

        assert report.materialized_count == 2
        assert service.preferences.currency == Currency.USD
        notes = {t.note for t in await repository.list_transactions()}
        assert notes == {"Gym [auto]"}

    @pytest.mark.asyncio
    async def test_malformed_preferences_fail_startup(self, engine_settings, audit_storage):
        repository = InMemoryLedgerRepository()
        await repository.save_preferences({"currency": "GBP"})
        service = LedgerService(
            repository,
            engine_settings=engine_settings,
            audit_logger=AuditLogger(audit_storage),
        )

        with pytest.raises(ValidationError):
            await service.startup(today=D)

        events = await audit_storage.get_recent_events()
        assert events[0].event_type == AuditEventType.SYSTEM_ERROR
        assert events[0].details == {"stage": "startup"}
        assert await repository.list_accounts() == []

    @pytest.mark.asyncio
    async def test_storage_failure_fails_startup(self, engine_settings, audit_storage):

        class UnreadableRepository(InMemoryLedgerRepository):
            async def list_accounts(self):
                raise PersistenceError("ledger file unreadable")

        service = LedgerService(
            UnreadableRepository(),
            engine_settings=engine_settings,
            audit_logger=AuditLogger(audit_storage),
        )

        with pytest.raises(PersistenceError):
            await service.startup(today=D)

        event = (await audit_storage.get_recent_events())[0]
        assert event.event_type == AuditEventType.SYSTEM_ERROR
        assert event.error_message == "ledger file unreadable"


class TestTransactions:

    @pytest.mark.asyncio
    async def test_add_expense(self, service, repository, audit_storage):
        rule = await service.add_transaction(
            make_tx("t1", D, "30", TransactionKind.EXPENSE, "cash")
        )

        assert rule is None
        summary = await service.get_balances()
        assert summary.balance_of("cash") == Decimal("70")
        assert AuditEventType.TRANSACTION_ADDED in await _event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_add_with_recurrence_creates_rule(self, service, repository):
        rule = await service.add_transaction(
            make_tx("t1", date(2024, 1, 31), "500", TransactionKind.EXPENSE, "cash", category="Rent & Housing"),
            recurrence=Frequency.MONTHLY,
        )

        assert rule.id.startswith("rule_")
        assert rule.start_date == date(2024, 1, 31)
        assert rule.next_due_date == date(2024, 2, 29)
        assert rule.amount == Decimal("500")
        assert await repository.list_recurring_rules() == [rule]

    @pytest.mark.asyncio
    async def test_rule_write_failure_keeps_transaction(self, tl_cash, engine_settings, audit_storage):

        class NoRulesRepository(InMemoryLedgerRepository):
            async def add_recurring_rule(self, rule):
                raise PersistenceError("rules table locked")

        repository = NoRulesRepository(accounts=[tl_cash])
        service = LedgerService(
            repository,
            engine_settings=engine_settings,
            audit_logger=AuditLogger(audit_storage),
        )

        with pytest.raises(PersistenceError):
            await service.add_transaction(
                make_tx("t1", D, "30", TransactionKind.EXPENSE, "cash"),
                recurrence=Frequency.MONTHLY,
            )

        assert [t.id for t in await repository.list_transactions()] == ["t1"]
        failed = [
            e for e in await audit_storage.get_recent_events()
            if e.event_type == AuditEventType.PERSISTENCE_FAILED
        ]
        assert len(failed) == 1
        assert failed[0].entity_type == "rule"
        assert failed[0].error_message == "rules table locked"

    @pytest.mark.asyncio
    async def test_recurring_transfer_rejected(self, service, repository, audit_storage):
        transfer = make_tx("t1", D, "5", TransactionKind.TRANSFER, "cash", target="usd_bank", target_amount="1")

        with pytest.raises(TransactionValidationError):
            await service.add_transaction(transfer, recurrence=Frequency.WEEKLY)

        assert await repository.list_transactions() == []
        assert await repository.list_recurring_rules() == []
        assert AuditEventType.TRANSACTION_REJECTED in await _event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_unknown_account_rejected(self, service, repository):
        with pytest.raises(TransactionValidationError):
            await service.add_transaction(make_tx("t1", D, "5", TransactionKind.INCOME, "ghost"))
        assert await repository.list_transactions() == []

    @pytest.mark.asyncio
    async def test_cross_currency_transfer(self, service):
        with pytest.raises(TransactionValidationError) as exc_info:
            await service.add_transaction(
                make_tx("t1", D, "100", TransactionKind.TRANSFER, "cash", target="usd_bank")
            )
        assert exc_info.value.issues[0].issue_type == "missing_target_amount"

        await service.add_transaction(
            make_tx("t2", D, "100", TransactionKind.TRANSFER, "cash", target="usd_bank", target_amount="3")
        )
        summary = await service.get_balances()
        assert summary.balance_of("cash") == Decimal("0")
        assert summary.balance_of("usd_bank") == Decimal("53")

    @pytest.mark.asyncio
    async def test_update_transaction(self, service):
        await service.add_transaction(make_tx("t1", D, "30", TransactionKind.EXPENSE, "cash"))
        await service.update_transaction(make_tx("t1", D, "45", TransactionKind.EXPENSE, "cash"))

        assert (await service.get_balances()).balance_of("cash") == Decimal("55")

        with pytest.raises(NotFoundError):
            await service.update_transaction(make_tx("t9", D, "1", TransactionKind.EXPENSE, "cash"))

    @pytest.mark.asyncio
    async def test_delete_transaction(self, service, audit_storage):
        await service.add_transaction(make_tx("t1", D, "30", TransactionKind.EXPENSE, "cash"))

        assert await service.delete_transaction("t1") is True
        assert await service.delete_transaction("t1") is False
        assert (await service.get_balances()).balance_of("cash") == Decimal("100")
        assert (await _event_types(audit_storage)).count(AuditEventType.TRANSACTION_DELETED) == 1

    @pytest.mark.asyncio
    async def test_list_newest_first(self, service):
        await service.add_transaction(make_tx("a", date(2024, 1, 1), "1", TransactionKind.EXPENSE, "cash"))
        await service.add_transaction(make_tx("b", date(2024, 2, 1), "1", TransactionKind.EXPENSE, "cash"))
        await service.add_transaction(make_tx("c", date(2024, 2, 1), "1", TransactionKind.EXPENSE, "cash"))

        assert [t.id for t in await service.list_transactions()] == ["c", "b", "a"]


class TestAccounts:

    @pytest.mark.asyncio
    async def test_referenced_account_cannot_be_deleted(self, service):
        await service.add_transaction(
            make_tx("t1", D, "10", TransactionKind.TRANSFER, "cash", target="usd_bank", target_amount="1")
        )
        with pytest.raises(AccountDeletionError):
            await service.delete_account("usd_bank")
        assert len(await service.list_accounts()) == 2

    @pytest.mark.asyncio
    async def test_default_account_cannot_be_deleted(self, engine_settings):
        service = LedgerService(InMemoryLedgerRepository(), engine_settings=engine_settings)
        await service.ensure_default_account()
        with pytest.raises(AccountDeletionError):
            await service.delete_account("default_cash")

    @pytest.mark.asyncio
    async def test_unreferenced_account_is_deleted(self, service, audit_storage):
        await service.add_account(make_account("savings", Currency.EUR))

        assert await service.delete_account("savings") is True
        assert await service.delete_account("savings") is False
        types = await _event_types(audit_storage)
        assert AuditEventType.ACCOUNT_ADDED in types
        assert AuditEventType.ACCOUNT_DELETED in types

    @pytest.mark.asyncio
    async def test_update_account_opening_balance(self, service):
        await service.update_account(make_account("cash", Currency.TL, "250"))
        assert (await service.get_balances()).balance_of("cash") == Decimal("250")


class TestReads:

    @pytest.mark.asyncio
    async def test_account_ledger(self, service):
        await service.add_transaction(make_tx("t1", date(2024, 1, 1), "10", TransactionKind.EXPENSE, "cash"))
        await service.add_transaction(make_tx("t2", date(2024, 2, 1), "20", TransactionKind.INCOME, "cash", category="Salary"))

        ledger = await service.get_account_ledger("cash", start=date(2024, 2, 1))

        assert ledger.opening_balance == Decimal("90")
        assert [e.running_balance for e in ledger.entries] == [Decimal("110")]

        with pytest.raises(NotFoundError):
            await service.get_account_ledger("ghost")

    @pytest.mark.asyncio
    async def test_category_totals_and_report(self, service):
        await service.add_transaction(make_tx("t1", D, "10", TransactionKind.EXPENSE, "cash"))
        await service.add_transaction(make_tx("t2", D, "4", TransactionKind.EXPENSE, "cash", category="Health"))
        await service.add_transaction(make_tx("t3", D, "7", TransactionKind.EXPENSE, "usd_bank"))

        totals = await service.get_category_totals(period=ReportPeriod.CURRENT_MONTH, today=D)
        assert [(t.category, t.total) for t in totals] == [
            ("Food", Decimal("10")), ("Health", Decimal("4")),
        ]

        report = await service.get_category_report("Food", Currency.USD)
        assert [t.id for t in report.transactions] == ["t3"]
        assert report.total_expense == Decimal("7")

    @pytest.mark.asyncio
    async def test_preferred_currency_headline(self, service):
        await service.save_preferences(Preferences(currency=Currency.USD))
        await service.add_transaction(make_tx("t1", D, "7", TransactionKind.EXPENSE, "usd_bank"))

        summary = await service.get_balances()
        assert summary.preferred_currency == Currency.USD
        assert summary.total_expense == Decimal("7")


class TestBackup:

    @pytest.mark.asyncio
    async def test_round_trip_between_services(self, service, engine_settings):
        await service.add_transaction(
            make_tx("t1", D, "12.5", TransactionKind.EXPENSE, "cash"),
            recurrence=Frequency.WEEKLY,
        )
        raw = await service.export_json()
        assert json.loads(raw)["version"] == "3.0"

        other = LedgerService(InMemoryLedgerRepository(), engine_settings=engine_settings)
        document = await other.import_json(raw)

        assert document.counts() == {"accounts": 2, "transactions": 1, "recurring": 1}
        assert (await other.get_balances()).accounts == (await service.get_balances()).accounts

    @pytest.mark.asyncio
    async def test_import_replaces_preferences(self, service):
        raw = json.dumps({"accounts": [], "settings": {"currency": "EUR"}})
        await service.import_json(raw)
        assert service.preferences.currency == Currency.EUR

    @pytest.mark.asyncio
    async def test_rejected_import_is_audited(self, service, audit_storage):
        with pytest.raises(ImportFormatError):
            await service.import_json("{}")
        assert AuditEventType.IMPORT_REJECTED in await _event_types(audit_storage)
        assert len(await service.list_accounts()) == 2


class TestAuditLogger:

    @pytest.mark.asyncio
    async def test_storage_failure_is_not_raised(self):

        class BrokenStorage(InMemoryAuditStorage):
            async def append_event(self, event):
                raise RuntimeError("audit store offline")

        logger = AuditLogger(BrokenStorage())
        await logger.log_rule_deleted("rule_1")

    @pytest.mark.asyncio
    async def test_without_storage(self):
        logger = AuditLogger()
        assert logger.storage is None
        await logger.log_transaction_deleted("t1")


def test_engine_settings_from_env(monkeypatch):
    monkeypatch.setenv("LEDGER_DEFAULT_ACCOUNT_ID", "wallet")
    monkeypatch.setenv("LEDGER_DEFAULT_ACCOUNT_CURRENCY", "EUR")

    settings = EngineSettings()

    assert settings.default_account_id == "wallet"
    assert settings.default_account_currency == Currency.EUR

"""
Tests for the Ledger Engine models

Test strategy:
1. Unit tests for individual components (models, validators, calculators)
2. Repository contract tests run against every backend
3. No network or external services in tests
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from ledger_engine.config import Preferences
from ledger_engine.models.ledger import (
    TRANSFER_CATEGORY,
    Account,
    AccountKind,
    Currency,
    Frequency,
    RecurringRule,
    Transaction,
    TransactionKind,
    generate_transaction_id,
)
from ledger_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from ledger_engine.models.validation import ValidationIssue, ValidationResult


class TestLedgerModels:
    """Tests for the ledger record models."""

    def test_account_creation(self):
        account = Account(
            id="bank_1",
            name="  Main Bank  ",
            kind=AccountKind.BANK,
            currency=Currency.USD,
            opening_balance=Decimal("250.50"),
        )
        assert account.name == "Main Bank"
        assert account.opening_balance == Decimal("250.50")

    def test_account_accepts_legacy_field_names(self):
        account = Account.model_validate({
            "id": "default_cash",
            "name": "Cash",
            "type": "cash",
            "initialBalance": 0,
            "currency": "TL",
        })
        assert account.kind == AccountKind.CASH
        assert account.opening_balance == Decimal("0")

    def test_transaction_rejects_non_positive_amount(self):
        with pytest.raises(ValidationError):
            Transaction(
                date=date(2024, 1, 1),
                amount=Decimal("0"),
                kind=TransactionKind.EXPENSE,
                source_account_id="cash",
                category="Food",
            )
        with pytest.raises(ValidationError):
            Transaction(
                date=date(2024, 1, 1),
                amount=Decimal("-5"),
                kind=TransactionKind.EXPENSE,
                source_account_id="cash",
                category="Food",
            )

    def test_transfer_requires_distinct_target(self):
        with pytest.raises(ValidationError):
            Transaction(
                date=date(2024, 1, 1),
                amount=Decimal("10"),
                kind=TransactionKind.TRANSFER,
                source_account_id="cash",
            )
        with pytest.raises(ValidationError):
            Transaction(
                date=date(2024, 1, 1),
                amount=Decimal("10"),
                kind=TransactionKind.TRANSFER,
                source_account_id="cash",
                target_account_id="cash",
            )

    def test_transfer_category_is_normalized(self):
        transfer = Transaction(
            date=date(2024, 1, 1),
            amount=Decimal("10"),
            kind=TransactionKind.TRANSFER,
            source_account_id="cash",
            target_account_id="bank",
            category="Whatever",
        )
        assert transfer.category == TRANSFER_CATEGORY

    def test_non_transfer_rules(self):
        with pytest.raises(ValidationError):
            Transaction(
                date=date(2024, 1, 1),
                amount=Decimal("10"),
                kind=TransactionKind.EXPENSE,
                source_account_id="cash",
                target_account_id="bank",
                category="Food",
            )
        with pytest.raises(ValidationError):
            Transaction(
                date=date(2024, 1, 1),
                amount=Decimal("10"),
                kind=TransactionKind.INCOME,
                source_account_id="cash",
            )

    def test_received_amount_defaults_to_amount(self):
        transfer = Transaction(
            date=date(2024, 1, 1),
            amount=Decimal("10"),
            kind=TransactionKind.TRANSFER,
            source_account_id="cash",
            target_account_id="bank",
        )
        assert transfer.target_amount is None
        assert transfer.received_amount == Decimal("10")

    def test_legacy_transaction_row(self):
        """Legacy rows carried targetAmount on every row and empty toAccountId."""
        tx = Transaction.model_validate({
            "id": "1704067200000",
            "date": "2024-01-01",
            "amount": 12.5,
            "type": "expense",
            "accountId": "default_cash",
            "toAccountId": "",
            "targetAmount": 12.5,
            "category": "Food",
            "note": None,
            "isRecurring": False,
        })
        assert tx.amount == Decimal("12.5")
        assert tx.target_account_id is None
        assert tx.target_amount is None
        assert tx.note == ""

    def test_legacy_recurring_flag_on_user_row(self):
        """The row that started a rule was flagged too; it is not generated."""
        tx = Transaction.model_validate({
            "id": "1704067200000",
            "date": "2024-01-01",
            "amount": 500,
            "type": "expense",
            "accountId": "default_cash",
            "category": "Rent & Housing",
            "isRecurring": True,
        })
        assert tx.is_recurring_generated is False

    def test_legacy_recurring_flag_on_materialized_row(self):
        tx = Transaction.model_validate({
            "id": "rec_" + "0" * 32,
            "date": "2024-02-01",
            "amount": 500,
            "type": "expense",
            "accountId": "default_cash",
            "category": "Rent & Housing",
            "isRecurring": True,
        })
        assert tx.is_recurring_generated is True

    def test_generated_ids_sort_in_creation_order(self):
        first = generate_transaction_id()
        second = generate_transaction_id()
        assert first[:20] <= second[:20]
        assert len(first) == len(second) == 26

    def test_recurring_rule_defaults_active(self):
        rule = RecurringRule.model_validate({
            "id": "rule_1",
            "amount": "100",
            "category": "Rent & Housing",
            "type": "expense",
            "accountId": "cash",
            "frequency": "monthly",
            "startDate": "2024-01-01",
            "nextDueDate": "2024-02-01",
        })
        assert rule.is_active is True
        assert rule.frequency == Frequency.MONTHLY

    def test_recurring_rule_rejects_transfer(self):
        with pytest.raises(ValidationError):
            RecurringRule(
                id="rule_1",
                amount=Decimal("10"),
                category="Transfer",
                kind=TransactionKind.TRANSFER,
                source_account_id="cash",
                frequency=Frequency.DAILY,
                start_date=date(2024, 1, 1),
                next_due_date=date(2024, 1, 2),
            )

    def test_recurring_rule_due_not_before_start(self):
        with pytest.raises(ValidationError):
            RecurringRule(
                id="rule_1",
                amount=Decimal("10"),
                category="Food",
                kind=TransactionKind.EXPENSE,
                source_account_id="cash",
                frequency=Frequency.DAILY,
                start_date=date(2024, 1, 5),
                next_due_date=date(2024, 1, 4),
            )


class TestPreferences:
    """Preferences fill in missing fields one by one."""

    def test_partial_document_keeps_defaults(self):
        prefs = Preferences.model_validate({
            "appName": "My Ledger",
            "security": {"enabled": True},
        })
        assert prefs.app_name == "My Ledger"
        assert prefs.security.enabled is True
        assert prefs.security.use_biometrics is False
        assert "Food" in prefs.categories.expense
        assert prefs.currency == Currency.TL

    def test_unknown_keys_ignored(self):
        prefs = Preferences.model_validate({"currency": "USD", "legacyFlag": 1})
        assert prefs.currency == Currency.USD


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            description="Test event",
        )
        assert event.event_id is not None
        assert event.timestamp is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.PERIOD_MATERIALIZED,
            entity_type="rule",
            entity_id="rule_1",
            correlation_id=correlation_id,
            description="Period materialized",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "period_materialized"
        assert log_dict["entity_id"] == "rule_1"
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_audit_event_builder_transaction_added(self):
        event = AuditEventBuilder.transaction_added(
            transaction_id="tx_1",
            kind="expense",
            amount="12.50",
        )
        assert event.event_type == AuditEventType.TRANSACTION_ADDED
        assert event.entity_type == "transaction"
        assert event.is_user_action is True
        assert event.details["amount"] == "12.50"

    def test_audit_event_builder_catch_up_with_failures(self):
        event = AuditEventBuilder.catch_up_completed(
            materialized=3,
            failed_rules=["rule_2"],
            correlation_id=uuid4(),
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.details["failed_rules"] == ["rule_2"]

    def test_audit_event_builder_system_error(self):
        event = AuditEventBuilder.system_error(
            error_type="PersistenceError",
            error_message="disk full",
            details={"stage": "startup"},
        )
        assert event.event_type == AuditEventType.SYSTEM_ERROR
        assert event.severity == AuditSeverity.ERROR
        assert event.details == {"stage": "startup"}

    def test_account_changed_description(self):
        event = AuditEventBuilder.account_changed(
            AuditEventType.ACCOUNT_DELETED, "bank_1", "Main Bank"
        )
        assert event.description == "Account deleted: Main Bank"


class TestValidationResult:
    """Tests for validation result model."""

    def test_validation_result_has_errors(self):
        result = ValidationResult(
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="source_account_id",
                    issue_type="unknown_account",
                    message="Source account does not exist: ghost",
                    severity="error",
                ),
            ],
        )
        assert not result.is_valid
        assert len(result.errors) == 1
        assert result.warnings == []

    def test_validation_result_warnings_only(self):
        result = ValidationResult(
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="target_amount",
                    issue_type="inconsistent",
                    message="Same-currency transfer credits a different amount",
                    severity="warning",
                ),
            ],
        )
        assert result.is_valid
        assert result.errors == []
        assert len(result.warnings) == 1

    def test_issue_severity_is_restricted(self):
        with pytest.raises(ValidationError):
            ValidationIssue(
                field="x",
                issue_type="y",
                message="z",
                severity="fatal",
            )


class TestEnums:
    """The fixed value sets."""

    def test_currencies(self):
        assert {c.value for c in Currency} == {"TL", "USD", "EUR", "TOMAN"}

    def test_frequencies(self):
        assert {f.value for f in Frequency} == {"daily", "weekly", "monthly", "yearly"}

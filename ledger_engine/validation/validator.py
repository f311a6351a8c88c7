"""
Two-Stage Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - RECORD VALIDATION:
- Type checking, positive amounts, per-kind field rules
- Done by the pydantic models themselves at construction
- A malformed record never exists as a model instance

STAGE 2 - REFERENCE VALIDATION:
- Source and target accounts exist
- Cross-currency transfers state the received amount
- Transfers are never recurring
- Needs the account registry, so it runs in the service layer

IMPORTANT: Validation NEVER silently fixes issues.
It reports them, and the service refuses to write.
"""

from collections.abc import Iterable, Sequence
from typing import Optional

from ledger_engine.models.ledger import (
    Account,
    Frequency,
    Transaction,
    TransactionKind,
)
from ledger_engine.models.validation import ValidationIssue, ValidationResult


class TransactionValidationError(Exception):
    """A transaction failed reference validation and was not stored."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        messages = "; ".join(issue.message for issue in issues)
        super().__init__(f"Transaction rejected: {messages}")


class AccountDeletionError(Exception):
    """The account cannot be deleted (default account, or still referenced)."""

    def __init__(self, account_id: str, reason: str):
        self.account_id = account_id
        self.reason = reason
        super().__init__(f"Account {account_id} cannot be deleted: {reason}")


class TransactionValidator:
    """
    Validates transactions against the account registry.

    Stateless apart from the default account id; the caller passes the
    current accounts on every call.
    """

    def __init__(self, default_account_id: str = "default_cash"):
        self._default_account_id = default_account_id

    def validate(
        self,
        transaction: Transaction,
        accounts: Sequence[Account],
        recurrence: Optional[Frequency] = None,
    ) -> ValidationResult:
        """
        Run reference validation for one transaction.

        Args:
            transaction: A model-valid transaction
            accounts: Every known account
            recurrence: Frequency, if the transaction should start a recurring rule

        Returns:
            ValidationResult with all issues found
        """
        issues: list[ValidationIssue] = []
        accounts_by_id = {account.id: account for account in accounts}

        source = accounts_by_id.get(transaction.source_account_id)
        if source is None:
            issues.append(ValidationIssue(
                field="source_account_id",
                issue_type="unknown_account",
                message=f"Source account does not exist: {transaction.source_account_id}",
                severity="error",
                suggested_fix="Pick an existing account",
            ))

        if transaction.kind == TransactionKind.TRANSFER:
            issues.extend(self._validate_transfer(transaction, source, accounts_by_id))
            if recurrence is not None:
                issues.append(ValidationIssue(
                    field="recurrence",
                    issue_type="recurring_transfer",
                    message="Transfers cannot be recurring",
                    severity="error",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return ValidationResult(is_valid=is_valid, issues=issues)

    def _validate_transfer(
        self,
        transaction: Transaction,
        source: Optional[Account],
        accounts_by_id: dict[str, Account],
    ) -> list[ValidationIssue]:
        issues = []

        target = accounts_by_id.get(transaction.target_account_id or "")
        if target is None:
            issues.append(ValidationIssue(
                field="target_account_id",
                issue_type="unknown_account",
                message=f"Target account does not exist: {transaction.target_account_id}",
                severity="error",
                suggested_fix="Pick an existing account",
            ))

        if source is None or target is None:
            return issues

        if source.currency != target.currency and transaction.target_amount is None:
            issues.append(ValidationIssue(
                field="target_amount",
                issue_type="missing_target_amount",
                message=(
                    f"Transfer from {source.currency.value} to {target.currency.value} "
                    "needs the amount received"
                ),
                severity="error",
                suggested_fix="Enter the amount credited to the target account",
            ))
        elif (
            source.currency == target.currency
            and transaction.target_amount is not None
            and transaction.target_amount != transaction.amount
        ):
            issues.append(ValidationIssue(
                field="target_amount",
                issue_type="inconsistent",
                message="Same-currency transfer credits a different amount than it debits",
                severity="warning",
                suggested_fix="Please verify the received amount",
            ))

        return issues

    def validate_or_raise(
        self,
        transaction: Transaction,
        accounts: Sequence[Account],
        recurrence: Optional[Frequency] = None,
    ) -> ValidationResult:
        """Like `validate`, but raises TransactionValidationError on any error."""
        result = self.validate(transaction, accounts, recurrence)
        if not result.is_valid:
            raise TransactionValidationError(result.errors)
        return result

    def check_account_deletion(
        self,
        account_id: str,
        transactions: Iterable[Transaction],
    ) -> None:
        """
        Raise AccountDeletionError unless the account may be deleted.

        The default account is permanent, and an account referenced by any
        transaction (as source or transfer target) is kept.
        """
        if account_id == self._default_account_id:
            raise AccountDeletionError(account_id, "the default account is permanent")

        referencing = sum(
            1 for t in transactions
            if t.source_account_id == account_id or t.target_account_id == account_id
        )
        if referencing:
            raise AccountDeletionError(
                account_id,
                f"referenced by {referencing} transaction(s)",
            )

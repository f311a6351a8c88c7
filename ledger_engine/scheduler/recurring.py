"""
Recurring Rule Scheduler

Advances every active recurring rule from its stored due date up to
"today", materializing one transaction per elapsed period.

DESIGN DECISION: Materialization ids are a pure function of
(rule id, due date). Re-running a catch-up for a period that already
exists hits the same id, so it can never create a duplicate.

CRITICAL: Each period step is committed with
`LedgerRepository.commit_period_step`, which appends the transaction and
advances the rule in one atomic unit. An interruption between steps
(crash, cancellation, storage failure) leaves every rule positioned at
its last committed period, and the next run resumes from there.

There is no atomicity across rules: one rule failing never rolls back
or blocks another.
"""

import hashlib
from collections.abc import Sequence
from datetime import date
from typing import Optional

import structlog

from ledger_engine.audit import AuditLogger, create_correlation_id
from ledger_engine.config.preferences import Preferences
from ledger_engine.engine.periods import advance
from ledger_engine.models.ledger import MATERIALIZATION_PREFIX, RecurringRule, Transaction
from ledger_engine.models.reports import CatchUpReport
from ledger_engine.services.storage import LedgerRepository, PersistenceError


logger = structlog.get_logger(__name__)


def materialization_id(rule_id: str, due_date: date) -> str:
    """
    Deterministic id of the transaction materialized for one period.

    "rec_" followed by the first 32 hex characters of
    SHA-256("{rule_id}|{iso due date}").
    """
    digest = hashlib.sha256(f"{rule_id}|{due_date.isoformat()}".encode("utf-8"))
    return MATERIALIZATION_PREFIX + digest.hexdigest()[:32]


def materialization_note(rule: RecurringRule, preferences: Preferences) -> str:
    if rule.note:
        return f"{rule.note} {preferences.recurring_note_suffix}"
    return preferences.recurring_default_note


def build_materialized_transaction(
    rule: RecurringRule,
    due_date: date,
    preferences: Preferences,
) -> Transaction:
    """The concrete transaction a rule produces for the period due on `due_date`."""
    return Transaction(
        id=materialization_id(rule.id, due_date),
        date=due_date,
        amount=rule.amount,
        kind=rule.kind,
        source_account_id=rule.source_account_id,
        category=rule.category,
        note=materialization_note(rule, preferences),
        is_recurring_generated=True,
    )


class RecurringScheduler:
    """
    Catches recurring rules up with the current date.

    Usage:
        scheduler = RecurringScheduler(repository, preferences)
        report = await scheduler.catch_up()
    """

    def __init__(
        self,
        repository: LedgerRepository,
        preferences: Optional[Preferences] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._preferences = preferences or Preferences()
        self._audit_logger = audit_logger

    @property
    def preferences(self) -> Preferences:
        return self._preferences

    @preferences.setter
    def preferences(self, value: Preferences) -> None:
        self._preferences = value

    async def catch_up(
        self,
        today: Optional[date] = None,
        rules: Optional[Sequence[RecurringRule]] = None,
    ) -> CatchUpReport:
        """
        Materialize every elapsed period of every active rule.

        Args:
            today: Last date to catch up to (inclusive); defaults to today
            rules: Rules to process; defaults to every stored rule

        Returns:
            CatchUpReport listing newly materialized transactions and any
            rule that stopped early because of a PersistenceError
        """
        today = today or date.today()
        if rules is None:
            rules = await self._repository.list_recurring_rules()

        correlation_id = create_correlation_id()
        report = CatchUpReport(run_date=today)
        active = [rule for rule in rules if rule.is_active]
        report.rules_skipped = len(rules) - len(active)

        if self._audit_logger:
            await self._audit_logger.log_catch_up_started(
                run_date=today.isoformat(),
                active_rules=len(active),
                correlation_id=correlation_id,
            )

        for rule in active:
            report.rules_processed += 1
            try:
                await self._catch_up_rule(rule, today, report, correlation_id)
            except PersistenceError as e:
                report.failures[rule.id] = str(e)
                logger.warning(
                    "catch_up_rule_failed",
                    rule_id=rule.id,
                    error=str(e),
                    correlation_id=str(correlation_id),
                )
                if self._audit_logger:
                    await self._audit_logger.log_persistence_failed(
                        entity_type="rule",
                        entity_id=rule.id,
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )

        if self._audit_logger:
            await self._audit_logger.log_catch_up_completed(
                materialized=report.materialized_count,
                failed_rules=list(report.failures),
                correlation_id=correlation_id,
            )

        logger.info(
            "catch_up_completed",
            run_date=today.isoformat(),
            materialized=report.materialized_count,
            rules_processed=report.rules_processed,
            failed_rules=len(report.failures),
        )
        return report

    async def _catch_up_rule(
        self,
        rule: RecurringRule,
        today: date,
        report: CatchUpReport,
        correlation_id,
    ) -> None:
        """Step one rule forward period by period, committing each step."""
        due = rule.next_due_date
        while due <= today:
            transaction = build_materialized_transaction(rule, due, self._preferences)
            next_due = advance(due, rule.frequency)

            created = await self._repository.commit_period_step(
                transaction, rule.id, next_due
            )
            if created:
                report.materialized.append(transaction)
                if self._audit_logger:
                    await self._audit_logger.log_period_materialized(
                        rule_id=rule.id,
                        transaction=transaction,
                        next_due_date=next_due.isoformat(),
                        correlation_id=correlation_id,
                    )
            else:
                logger.info(
                    "period_already_committed",
                    rule_id=rule.id,
                    due_date=due.isoformat(),
                    transaction_id=transaction.id,
                )
            due = next_due

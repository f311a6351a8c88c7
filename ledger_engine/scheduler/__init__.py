"""Recurring-rule scheduling package."""

from ledger_engine.scheduler.recurring import (
    RecurringScheduler,
    build_materialized_transaction,
    materialization_id,
)

__all__ = [
    "RecurringScheduler",
    "build_materialized_transaction",
    "materialization_id",
]

"""
SQL Storage Implementation

DESIGN DECISION: A relational backend built on the SQLAlchemy 2.0 ORM.
Each repository call runs inside one session transaction, so the
multi-row operations (`commit_period_step`, `replace_all`) are atomic
for free.

Money columns are stored as decimal strings. SQLite has no native
decimal type, and a float round-trip would break exact balances.

No foreign keys are declared between transactions and accounts: the
ledger tolerates dangling references (an imported backup may carry
them), and account deletion is guarded by the service layer instead.
"""

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Any, Optional, TypeVar

import structlog
from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    Integer,
    String,
    Text,
    TypeDecorator,
    create_engine,
    delete,
    or_,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ledger_engine.models.ledger import (
    Account,
    AccountKind,
    Currency,
    Frequency,
    RecurringRule,
    Transaction,
    TransactionKind,
)
from ledger_engine.services.storage.interface import (
    DuplicateError,
    LedgerRepository,
    NotFoundError,
    PersistenceError,
    StorageConnectionError,
)


logger = structlog.get_logger(__name__)

T = TypeVar("T")

PREFERENCES_ROW_ID = 1


# =============================================================================
# ORM TABLES
# =============================================================================

class DecimalString(TypeDecorator):
    """Exact Decimal stored as text."""

    impl = String(40)
    cache_ok = True

    def process_bind_param(self, value: Optional[Decimal], dialect: Any) -> Optional[str]:
        return None if value is None else str(value)

    def process_result_value(self, value: Optional[str], dialect: Any) -> Optional[Decimal]:
        return None if value is None else Decimal(value)


class Base(DeclarativeBase):
    pass


class AccountRow(Base):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False)
    opening_balance: Mapped[Decimal] = mapped_column(DecimalString, nullable=False)


class TransactionRow(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(DecimalString, nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    source_account_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    target_account_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    target_amount: Mapped[Optional[Decimal]] = mapped_column(DecimalString, nullable=True)
    category: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_recurring_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class RecurringRuleRow(Base):
    __tablename__ = "recurring_rules"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    amount: Mapped[Decimal] = mapped_column(DecimalString, nullable=False)
    category: Mapped[str] = mapped_column(String(200), nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    source_account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    frequency: Mapped[str] = mapped_column(String(16), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    next_due_date: Mapped[date] = mapped_column(Date, nullable=False)
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class PreferencesRow(Base):
    """Single-row table holding the preferences document."""
    __tablename__ = "preferences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    document: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)


# =============================================================================
# ROW <-> MODEL MAPPING
# =============================================================================

def _account_to_row(account: Account) -> AccountRow:
    return AccountRow(
        id=account.id,
        name=account.name,
        kind=account.kind.value,
        currency=account.currency.value,
        opening_balance=account.opening_balance,
    )


def _row_to_account(row: AccountRow) -> Account:
    return Account(
        id=row.id,
        name=row.name,
        kind=AccountKind(row.kind),
        currency=Currency(row.currency),
        opening_balance=row.opening_balance,
    )


def _transaction_to_row(transaction: Transaction) -> TransactionRow:
    return TransactionRow(
        id=transaction.id,
        date=transaction.date,
        amount=transaction.amount,
        kind=transaction.kind.value,
        source_account_id=transaction.source_account_id,
        target_account_id=transaction.target_account_id,
        target_amount=transaction.target_amount,
        category=transaction.category,
        note=transaction.note,
        is_recurring_generated=transaction.is_recurring_generated,
    )


def _copy_transaction_fields(row: TransactionRow, transaction: Transaction) -> None:
    row.date = transaction.date
    row.amount = transaction.amount
    row.kind = transaction.kind.value
    row.source_account_id = transaction.source_account_id
    row.target_account_id = transaction.target_account_id
    row.target_amount = transaction.target_amount
    row.category = transaction.category
    row.note = transaction.note
    row.is_recurring_generated = transaction.is_recurring_generated


def _row_to_transaction(row: TransactionRow) -> Transaction:
    return Transaction(
        id=row.id,
        date=row.date,
        amount=row.amount,
        kind=TransactionKind(row.kind),
        source_account_id=row.source_account_id,
        target_account_id=row.target_account_id,
        target_amount=row.target_amount,
        category=row.category,
        note=row.note,
        is_recurring_generated=row.is_recurring_generated,
    )


def _rule_to_row(rule: RecurringRule) -> RecurringRuleRow:
    return RecurringRuleRow(
        id=rule.id,
        amount=rule.amount,
        category=rule.category,
        kind=rule.kind.value,
        source_account_id=rule.source_account_id,
        frequency=rule.frequency.value,
        start_date=rule.start_date,
        next_due_date=rule.next_due_date,
        note=rule.note,
        is_active=rule.is_active,
    )


def _row_to_rule(row: RecurringRuleRow) -> RecurringRule:
    return RecurringRule(
        id=row.id,
        amount=row.amount,
        category=row.category,
        kind=TransactionKind(row.kind),
        source_account_id=row.source_account_id,
        frequency=Frequency(row.frequency),
        start_date=row.start_date,
        next_due_date=row.next_due_date,
        note=row.note,
        is_active=row.is_active,
    )


def _is_in_memory_sqlite(database_url: str) -> bool:
    return database_url in ("sqlite://", "sqlite:///:memory:")


# =============================================================================
# REPOSITORY
# =============================================================================

class SqlLedgerRepository(LedgerRepository):
    """
    Relational repository (SQLite, PostgreSQL, ...).

    Tables are created on construction if they don't exist yet.
    Transient `OperationalError`s (locked database, dropped connection)
    are retried; every other driver error surfaces as PersistenceError.
    """

    def __init__(
        self,
        database_url: str,
        echo: bool = False,
        engine: Optional[Engine] = None,
    ):
        if engine is None:
            if _is_in_memory_sqlite(database_url):
                # One shared connection, or every session sees an empty database
                engine = create_engine(
                    database_url,
                    echo=echo,
                    connect_args={"check_same_thread": False},
                    poolclass=StaticPool,
                )
            else:
                engine = create_engine(database_url, echo=echo, pool_pre_ping=True)

        self._engine = engine
        self._session_maker = sessionmaker(bind=engine, expire_on_commit=False, class_=Session)

        try:
            Base.metadata.create_all(engine)
        except SQLAlchemyError as e:
            raise StorageConnectionError(f"Failed to initialize database: {e}") from e

    @property
    def engine(self) -> Engine:
        return self._engine

    def dispose(self) -> None:
        """Close every pooled connection."""
        self._engine.dispose()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""
        session = self._session_maker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @retry(
        retry=retry_if_exception_type(OperationalError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
        reraise=True,
    )
    def _run_with_retry(self, operation: Callable[[Session], T]) -> T:
        with self.session_scope() as session:
            return operation(session)

    def _run(self, action: str, operation: Callable[[Session], T]) -> T:
        """Run `operation` in one session transaction, mapping driver errors."""
        try:
            return self._run_with_retry(operation)
        except PersistenceError:
            raise
        except SQLAlchemyError as e:
            logger.error("sql_operation_failed", action=action, error=str(e))
            raise PersistenceError(f"Failed to {action}: {e}") from e

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def list_accounts(self) -> list[Account]:
        def operation(session: Session) -> list[Account]:
            rows = session.scalars(select(AccountRow)).all()
            return [_row_to_account(row) for row in rows]

        return self._run("list accounts", operation)

    async def add_account(self, account: Account) -> bool:
        def operation(session: Session) -> bool:
            if session.get(AccountRow, account.id) is not None:
                raise DuplicateError(f"Account already exists: {account.id}")
            session.add(_account_to_row(account))
            return True

        return self._run("add account", operation)

    async def update_account(self, account: Account) -> bool:
        def operation(session: Session) -> bool:
            row = session.get(AccountRow, account.id)
            if row is None:
                raise NotFoundError(f"Account not found: {account.id}")
            row.name = account.name
            row.kind = account.kind.value
            row.currency = account.currency.value
            row.opening_balance = account.opening_balance
            return True

        return self._run("update account", operation)

    async def delete_account(self, account_id: str) -> bool:
        def operation(session: Session) -> bool:
            row = session.get(AccountRow, account_id)
            if row is None:
                return False
            session.delete(row)
            return True

        return self._run("delete account", operation)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def list_transactions(
        self,
        account_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        statement = select(TransactionRow)
        if account_id:
            statement = statement.where(or_(
                TransactionRow.source_account_id == account_id,
                TransactionRow.target_account_id == account_id,
            ))
        if date_from:
            statement = statement.where(TransactionRow.date >= date_from)
        if date_to:
            statement = statement.where(TransactionRow.date <= date_to)

        def operation(session: Session) -> list[Transaction]:
            return [_row_to_transaction(row) for row in session.scalars(statement).all()]

        return self._run("list transactions", operation)

    async def append_transaction(self, transaction: Transaction) -> bool:
        def operation(session: Session) -> bool:
            if session.get(TransactionRow, transaction.id) is not None:
                raise DuplicateError(f"Transaction already exists: {transaction.id}")
            session.add(_transaction_to_row(transaction))
            return True

        return self._run("append transaction", operation)

    async def update_transaction(self, transaction: Transaction) -> bool:
        def operation(session: Session) -> bool:
            row = session.get(TransactionRow, transaction.id)
            if row is None:
                raise NotFoundError(f"Transaction not found: {transaction.id}")
            _copy_transaction_fields(row, transaction)
            return True

        return self._run("update transaction", operation)

    async def delete_transaction(self, transaction_id: str) -> bool:
        def operation(session: Session) -> bool:
            row = session.get(TransactionRow, transaction_id)
            if row is None:
                return False
            session.delete(row)
            return True

        return self._run("delete transaction", operation)

    # -------------------------------------------------------------------------
    # Recurring rules
    # -------------------------------------------------------------------------

    async def list_recurring_rules(self) -> list[RecurringRule]:
        def operation(session: Session) -> list[RecurringRule]:
            rows = session.scalars(select(RecurringRuleRow)).all()
            return [_row_to_rule(row) for row in rows]

        return self._run("list recurring rules", operation)

    async def add_recurring_rule(self, rule: RecurringRule) -> bool:
        def operation(session: Session) -> bool:
            if session.get(RecurringRuleRow, rule.id) is not None:
                raise DuplicateError(f"Recurring rule already exists: {rule.id}")
            session.add(_rule_to_row(rule))
            return True

        return self._run("add recurring rule", operation)

    async def update_recurring_rule(self, rule_id: str, next_due_date: date) -> bool:
        def operation(session: Session) -> bool:
            row = session.get(RecurringRuleRow, rule_id)
            if row is None:
                raise NotFoundError(f"Recurring rule not found: {rule_id}")
            row.next_due_date = next_due_date
            return True

        return self._run("update recurring rule", operation)

    async def delete_recurring_rule(self, rule_id: str) -> bool:
        def operation(session: Session) -> bool:
            row = session.get(RecurringRuleRow, rule_id)
            if row is None:
                return False
            session.delete(row)
            return True

        return self._run("delete recurring rule", operation)

    async def commit_period_step(
        self,
        transaction: Transaction,
        rule_id: str,
        next_due_date: date,
    ) -> bool:
        def operation(session: Session) -> bool:
            rule_row = session.get(RecurringRuleRow, rule_id)
            if rule_row is None:
                raise NotFoundError(f"Recurring rule not found: {rule_id}")

            if transaction.date < rule_row.next_due_date:
                return False

            created = session.get(TransactionRow, transaction.id) is None
            if created:
                session.add(_transaction_to_row(transaction))
            if next_due_date > rule_row.next_due_date:
                rule_row.next_due_date = next_due_date
            return created

        return self._run("commit recurring period", operation)

    # -------------------------------------------------------------------------
    # Whole data set
    # -------------------------------------------------------------------------

    async def replace_all(
        self,
        accounts: list[Account],
        transactions: list[Transaction],
        rules: list[RecurringRule],
        preferences: Optional[dict] = None,
    ) -> bool:
        def operation(session: Session) -> bool:
            session.execute(delete(TransactionRow))
            session.execute(delete(RecurringRuleRow))
            session.execute(delete(AccountRow))
            session.add_all([_account_to_row(a) for a in accounts])
            session.add_all([_transaction_to_row(t) for t in transactions])
            session.add_all([_rule_to_row(r) for r in rules])
            if preferences is not None:
                session.merge(PreferencesRow(id=PREFERENCES_ROW_ID, document=preferences))
            return True

        return self._run("replace data set", operation)

    async def load_preferences(self) -> Optional[dict]:
        def operation(session: Session) -> Optional[dict]:
            row = session.get(PreferencesRow, PREFERENCES_ROW_ID)
            return dict(row.document) if row is not None else None

        return self._run("load preferences", operation)

    async def save_preferences(self, preferences: dict) -> bool:
        def operation(session: Session) -> bool:
            session.merge(PreferencesRow(id=PREFERENCES_ROW_ID, document=preferences))
            return True

        return self._run("save preferences", operation)

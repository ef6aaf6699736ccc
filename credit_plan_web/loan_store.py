"""Persistence layer for loans and their payment schedules.

Loans and schedule rows live in two tables of any SQLAlchemy-compatible
database. SQLite is the default for local use; PostgreSQL or MySQL URLs work
the same way. Nullable numeric columns keep ``NULL`` (unset) apart from
``0``, so an interest-free loan reloads with a zero rate rather than no rate.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    select,
)
from sqlalchemy.orm import declarative_base, sessionmaker

from credit_plan.data_models import InputMode, Loan, LoanStatus, ScheduleItem, ScheduleType
from credit_plan.errors import InvalidParametersError

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LoanModel(Base):
    __tablename__ = "loans"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    notes = Column(Text, nullable=False, default="")
    schedule_type = Column(String(32), nullable=False, default=ScheduleType.ANNUITY.value)
    amount = Column(Numeric(14, 2), nullable=True)
    annual_rate = Column(Numeric(9, 4), nullable=True)
    term_months = Column(Integer, nullable=True)
    start_date = Column(Date, nullable=True)
    payment_day = Column(Integer, nullable=True)
    monthly_payment = Column(Numeric(14, 2), nullable=True)
    current_balance = Column(Numeric(14, 2), nullable=False, default=0)
    status = Column(String(16), nullable=False, default=LoanStatus.ACTIVE.value)
    input_mode = Column(String(32), nullable=False, default=InputMode.AMOUNT_RATE_TERM.value)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


class ScheduleItemModel(Base):
    __tablename__ = "schedule_items"
    __table_args__ = (UniqueConstraint("loan_id", "month_number", name="uq_schedule_month"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    loan_id = Column(String(64), ForeignKey("loans.id", ondelete="CASCADE"), index=True, nullable=False)
    month_number = Column(Integer, nullable=False)
    payment_date = Column(Date, nullable=False)
    planned_payment = Column(Numeric(14, 2), nullable=False)
    interest_part = Column(Numeric(14, 2), nullable=False)
    principal_part = Column(Numeric(14, 2), nullable=False)
    remaining_balance = Column(Numeric(14, 2), nullable=False)
    paid = Column(Boolean, nullable=False, default=False)
    paid_amount = Column(Numeric(14, 2), nullable=True)
    paid_at = Column(Date, nullable=True)


_LOAN_FIELDS = (
    "name",
    "description",
    "notes",
    "amount",
    "annual_rate",
    "term_months",
    "start_date",
    "payment_day",
    "monthly_payment",
    "current_balance",
)

_NUMERIC_SCALES = {
    column.name: column.type.scale for column in LoanModel.__table__.columns if isinstance(column.type, Numeric)
}


class LoanStore:
    """Database-backed loan and schedule store."""

    def __init__(self, url: str) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)

    @staticmethod
    def normalize_loan(loan: Loan) -> Loan:
        """Round the loan's numeric fields to the precision of their columns."""
        changes = {}
        for name, scale in _NUMERIC_SCALES.items():
            value = getattr(loan, name)
            if value is None:
                continue
            try:
                changes[name] = Decimal(value).quantize(Decimal(1).scaleb(-scale), rounding=ROUND_HALF_UP)
            except InvalidOperation as exc:
                raise InvalidParametersError("Value out of range", {name: str(value)}) from exc
        return replace(loan, **changes)

    def list_loans(self) -> List[Loan]:
        with self._session_factory() as session:
            rows: Iterable[LoanModel] = session.execute(
                select(LoanModel).order_by(LoanModel.created_at.asc(), LoanModel.id.asc())
            ).scalars()
            return [self._to_loan(row) for row in rows]

    def load_loan(self, loan_id: str) -> Optional[Loan]:
        if not loan_id:
            return None
        with self._session_factory() as session:
            row = session.get(LoanModel, loan_id)
            return self._to_loan(row) if row else None

    def save_loan(self, loan: Loan) -> Loan:
        """Insert or update ``loan`` and return it as stored."""
        loan = self.normalize_loan(loan)
        with self._session_factory() as session:
            row = session.get(LoanModel, loan.id)
            if row is None:
                row = LoanModel(id=loan.id)
                session.add(row)
            for name in _LOAN_FIELDS:
                setattr(row, name, getattr(loan, name))
            row.schedule_type = loan.schedule_type.value
            row.status = loan.status.value
            row.input_mode = loan.input_mode.value
            session.commit()
            return self._to_loan(row)

    def delete_loan(self, loan_id: str) -> bool:
        with self._session_factory() as session:
            row = session.get(LoanModel, loan_id)
            if row is None:
                return False
            session.execute(delete(ScheduleItemModel).where(ScheduleItemModel.loan_id == loan_id))
            session.delete(row)
            session.commit()
            return True

    def load_schedule(self, loan_id: str) -> List[ScheduleItem]:
        """Return the loan's schedule sorted by month number."""
        with self._session_factory() as session:
            rows = session.execute(
                select(ScheduleItemModel)
                .where(ScheduleItemModel.loan_id == loan_id)
                .order_by(ScheduleItemModel.month_number.asc())
            ).scalars()
            return [self._to_item(row) for row in rows]

    def load_schedules(self) -> Dict[str, List[ScheduleItem]]:
        """Every stored schedule keyed by loan id."""
        schedules: Dict[str, List[ScheduleItem]] = {}
        with self._session_factory() as session:
            rows = session.execute(
                select(ScheduleItemModel).order_by(
                    ScheduleItemModel.loan_id.asc(), ScheduleItemModel.month_number.asc()
                )
            ).scalars()
            for row in rows:
                schedules.setdefault(row.loan_id, []).append(self._to_item(row))
        return schedules

    def save_schedule(self, loan_id: str, items: Iterable[ScheduleItem]) -> None:
        """Replace the loan's whole schedule with ``items``."""
        with self._session_factory() as session:
            session.execute(delete(ScheduleItemModel).where(ScheduleItemModel.loan_id == loan_id))
            session.add_all(
                ScheduleItemModel(
                    loan_id=loan_id,
                    month_number=item.month_number,
                    payment_date=item.payment_date,
                    planned_payment=item.planned_payment,
                    interest_part=item.interest_part,
                    principal_part=item.principal_part,
                    remaining_balance=item.remaining_balance,
                    paid=item.paid,
                    paid_amount=item.paid_amount,
                    paid_at=item.paid_at,
                )
                for item in items
            )
            session.commit()

    @staticmethod
    def _to_loan(row: LoanModel) -> Loan:
        return Loan(
            id=row.id,
            name=row.name or "",
            description=row.description or "",
            notes=row.notes or "",
            schedule_type=ScheduleType(row.schedule_type),
            amount=row.amount,
            annual_rate=row.annual_rate,
            term_months=row.term_months,
            start_date=row.start_date,
            payment_day=row.payment_day,
            monthly_payment=row.monthly_payment,
            current_balance=row.current_balance,
            status=LoanStatus(row.status),
            input_mode=InputMode(row.input_mode),
        )

    @staticmethod
    def _to_item(row: ScheduleItemModel) -> ScheduleItem:
        return ScheduleItem(
            month_number=row.month_number,
            payment_date=row.payment_date,
            planned_payment=row.planned_payment,
            interest_part=row.interest_part,
            principal_part=row.principal_part,
            remaining_balance=row.remaining_balance,
            paid=bool(row.paid),
            paid_amount=row.paid_amount,
            paid_at=row.paid_at,
        )


def create_store_from_env(url: str | None) -> LoanStore:
    return LoanStore(url or "sqlite:///credit_plan.sqlite3")

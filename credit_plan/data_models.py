"""Data models for the credit plan engine.

This module defines the dataclasses the engine works with: the loan record,
the parameters that generate a schedule, individual schedule rows and the
derived summary and reminder records. Optional numeric fields use ``None`` as
the only "unset" value, so an interest-free loan (``annual_rate == 0``) is
never mistaken for a loan whose rate has not been entered yet.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional


class ScheduleType(str, Enum):
    """Amortization method used to build a schedule."""

    ANNUITY = "annuity"
    DIFFERENTIATED = "differentiated"


class LoanStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class InputMode(str, Enum):
    """Which loan parameter the smart input derives from the others.

    ``AMOUNT_RATE_TERM`` derives the monthly payment, ``AMOUNT_RATE_PAYMENT``
    derives the term and ``RATE_TERM_PAYMENT`` derives the amount.
    """

    AMOUNT_RATE_TERM = "amount_rate_term"
    AMOUNT_RATE_PAYMENT = "amount_rate_payment"
    RATE_TERM_PAYMENT = "rate_term_payment"


@dataclass(frozen=True)
class ScheduleParams:
    """The parameters a schedule is generated from.

    Attributes
    ----------
    schedule_type: ScheduleType
        Annuity or differentiated amortization.
    amount: Optional[Decimal]
        Original principal.
    annual_rate: Optional[Decimal]
        Nominal annual rate in percent (``12`` means 12 % a year). ``0`` is a
        valid interest-free rate; ``None`` means the rate is not known yet.
    term_months: Optional[int]
        Number of monthly payments.
    start_date: Optional[date]
        Date of the first payment period.
    payment_day: Optional[int]
        Day of month payments fall due (1-31). ``None`` keeps the day of
        ``start_date``.
    """

    schedule_type: ScheduleType = ScheduleType.ANNUITY
    amount: Optional[Decimal] = None
    annual_rate: Optional[Decimal] = None
    term_months: Optional[int] = None
    start_date: Optional[date] = None
    payment_day: Optional[int] = None

    @classmethod
    def field_names(cls) -> tuple:
        return tuple(f.name for f in fields(cls))

    @property
    def is_complete(self) -> bool:
        """True when every input needed to build a schedule is present."""
        return (
            self.amount is not None
            and self.annual_rate is not None
            and self.term_months is not None
            and self.start_date is not None
        )


@dataclass
class Loan:
    """A borrowing instrument tracked by the application.

    ``current_balance`` is derived from the paid rows of the loan's schedule
    and should only be updated through
    :func:`credit_plan.ledger.recalculate_current_balance`.
    """

    id: str
    name: str = ""
    description: str = ""
    notes: str = ""
    schedule_type: ScheduleType = ScheduleType.ANNUITY
    amount: Optional[Decimal] = None
    annual_rate: Optional[Decimal] = None
    term_months: Optional[int] = None
    start_date: Optional[date] = None
    payment_day: Optional[int] = None
    monthly_payment: Optional[Decimal] = None
    current_balance: Decimal = Decimal("0")
    status: LoanStatus = LoanStatus.ACTIVE
    input_mode: InputMode = InputMode.AMOUNT_RATE_TERM

    def schedule_params(self) -> ScheduleParams:
        return ScheduleParams(
            schedule_type=self.schedule_type,
            amount=self.amount,
            annual_rate=self.annual_rate,
            term_months=self.term_months,
            start_date=self.start_date,
            payment_day=self.payment_day,
        )

    def with_params(self, params: ScheduleParams) -> "Loan":
        """Return a copy of the loan carrying ``params``."""
        return replace(
            self,
            schedule_type=params.schedule_type,
            amount=params.amount,
            annual_rate=params.annual_rate,
            term_months=params.term_months,
            start_date=params.start_date,
            payment_day=params.payment_day,
        )

    @property
    def is_active(self) -> bool:
        return self.status == LoanStatus.ACTIVE


@dataclass(frozen=True)
class ScheduleItem:
    """One payment period of a schedule.

    ``planned_payment`` always equals ``interest_part + principal_part``
    rounded to cents. ``paid_amount`` and ``paid_at`` are set only while
    ``paid`` is true.
    """

    month_number: int
    payment_date: date
    planned_payment: Decimal
    interest_part: Decimal
    principal_part: Decimal
    remaining_balance: Decimal
    paid: bool = False
    paid_amount: Optional[Decimal] = None
    paid_at: Optional[date] = None


@dataclass(frozen=True)
class CreditSummary:
    """Aggregate figures for one loan.

    ``total_interest_paid`` and ``total_paid`` cover the whole schedule;
    ``actual_paid`` covers only the rows marked as paid.
    """

    total_interest_paid: Decimal
    total_paid: Decimal
    actual_paid: Decimal
    current_balance: Decimal
    months_remaining: int


@dataclass(frozen=True)
class UpcomingPayment:
    loan_id: str
    loan_name: str
    payment_date: date
    amount: Decimal
    month_number: int


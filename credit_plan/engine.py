"""Core calculation engine for the credit plan.

This module builds month-by-month amortization schedules for annuity (equal
installment) and differentiated (equal principal) loans. Every money value is
rounded to cents at each step, and the final row absorbs whatever rounding
residual is left so the schedule always closes at exactly zero. Results are
returned as lists of ``ScheduleItem`` objects; incomplete or invalid input
yields an empty list.
"""

from __future__ import annotations

import logging
from datetime import MAXYEAR, date
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Tuple, Union

from .data_models import ScheduleItem, ScheduleParams, ScheduleType
from .utils import ZERO, payment_date, round_cents, to_amount, to_annual_rate, to_date, to_payment_day, to_term

log = logging.getLogger(__name__)

_Inputs = Tuple[Decimal, Decimal, int, date, Optional[int]]


def monthly_rate(annual_rate: Decimal) -> Decimal:
    """Convert an annual percentage rate into a monthly decimal rate."""
    return annual_rate / Decimal(12) / Decimal(100)


def annuity_payment(principal: Decimal, rate_per_month: Decimal, term: int) -> Decimal:
    """Return the annuity (equal installment) monthly payment, rounded to cents.

    The formula is:

        payment = P * i / (1 - (1 + i)^-n)

    where ``P`` is the principal, ``i`` is the monthly interest rate and
    ``n`` is the number of payments. When the interest rate is zero, the
    payment simplifies to ``P / n``.
    """
    if term <= 0:
        raise ValueError("Term must be positive")
    if rate_per_month == 0:
        return round_cents(principal / Decimal(term))
    discount = (1 + rate_per_month) ** -term
    return round_cents(principal * rate_per_month / (1 - discount))


def _normalize_inputs(amount: Any, annual_rate: Any, term_months: Any, start_date: Any, payment_day: Any) -> Optional[_Inputs]:
    principal = to_amount(amount)
    # a zero rate is an interest-free loan, only a missing or negative one is invalid
    rate = to_annual_rate(annual_rate)
    term = to_term(term_months)
    start = to_date(start_date)
    if principal is None or round_cents(principal) <= 0:
        return None
    principal = round_cents(principal)
    if rate is None or term is None or start is None:
        return None
    if start.year + (start.month + term - 2) // 12 > MAXYEAR:
        return None
    return principal, rate, term, start, to_payment_day(payment_day)


def build_annuity_schedule(
    amount: Any,
    annual_rate: Any,
    term_months: Any,
    start_date: Any,
    payment_day: Any = None,
) -> List[ScheduleItem]:
    """Build an annuity schedule: a constant payment whose interest/principal split shifts over time.

    Returns an empty list when any input is missing or out of range. The
    schedule may end before ``term_months`` if the balance is repaid early.
    """
    inputs = _normalize_inputs(amount, annual_rate, term_months, start_date, payment_day)
    if inputs is None:
        return []
    principal, rate, term, start, day = inputs
    rate_per_month = monthly_rate(rate)
    payment = annuity_payment(principal, rate_per_month, term)
    if payment <= 0:
        return []

    schedule: List[ScheduleItem] = []
    balance = principal
    for month in range(1, term + 1):
        interest_part = round_cents(balance * rate_per_month)
        principal_part = round_cents(payment - interest_part)
        # the installment never repays more than is owed, nor less than nothing
        principal_part = min(max(principal_part, ZERO), balance)
        new_balance = round_cents(balance - principal_part)

        # Last month: fold the rounding residual into the principal
        if month == term and new_balance != 0:
            principal_part = round_cents(principal_part + new_balance)
            new_balance = round_cents(ZERO)

        schedule.append(
            ScheduleItem(
                month_number=month,
                payment_date=payment_date(start, month, day),
                planned_payment=round_cents(interest_part + principal_part),
                interest_part=interest_part,
                principal_part=principal_part,
                remaining_balance=new_balance,
            )
        )
        balance = new_balance
        if balance <= 0:
            break
    return schedule


def build_differentiated_schedule(
    amount: Any,
    annual_rate: Any,
    term_months: Any,
    start_date: Any,
    payment_day: Any = None,
) -> List[ScheduleItem]:
    """Build a differentiated schedule: equal principal each month, shrinking interest.

    The last month repays whatever balance remains, so the principal parts
    always add up to ``amount``.
    """
    inputs = _normalize_inputs(amount, annual_rate, term_months, start_date, payment_day)
    if inputs is None:
        return []
    principal, rate, term, start, day = inputs
    rate_per_month = monthly_rate(rate)
    fixed_principal = round_cents(principal / Decimal(term))

    schedule: List[ScheduleItem] = []
    balance = principal
    for month in range(1, term + 1):
        interest_part = round_cents(balance * rate_per_month)
        if month == term:
            principal_part = balance
        else:
            principal_part = min(fixed_principal, balance)
        principal_part = round_cents(principal_part)
        new_balance = round_cents(balance - principal_part)

        if month == term and new_balance != 0:
            principal_part = round_cents(principal_part + new_balance)
            new_balance = round_cents(ZERO)

        schedule.append(
            ScheduleItem(
                month_number=month,
                payment_date=payment_date(start, month, day),
                planned_payment=round_cents(interest_part + principal_part),
                interest_part=interest_part,
                principal_part=principal_part,
                remaining_balance=new_balance,
            )
        )
        balance = new_balance
        if balance <= 0:
            break
    return schedule


def to_schedule_type(value: Any) -> ScheduleType:
    """Map a schedule type name onto ``ScheduleType``; anything unknown is annuity."""
    if isinstance(value, ScheduleType):
        return value
    if isinstance(value, str) and value.strip().lower() == ScheduleType.DIFFERENTIATED.value:
        return ScheduleType.DIFFERENTIATED
    return ScheduleType.ANNUITY


def build_schedule(params: Union[ScheduleParams, Mapping[str, Any]]) -> List[ScheduleItem]:
    """Build the schedule for ``params``, dispatching on its schedule type.

    ``params`` is either a ``ScheduleParams`` or a mapping with the same
    keys. The schedule type defaults to annuity.
    """
    if isinstance(params, ScheduleParams):
        values = {name: getattr(params, name) for name in ScheduleParams.field_names()}
    else:
        values = dict(params)
    schedule_type = to_schedule_type(values.get("schedule_type"))
    builder = build_differentiated_schedule if schedule_type == ScheduleType.DIFFERENTIATED else build_annuity_schedule
    schedule = builder(
        values.get("amount"),
        values.get("annual_rate"),
        values.get("term_months"),
        values.get("start_date"),
        values.get("payment_day"),
    )
    if not schedule:
        log.debug("Schedule not built, inputs incomplete: %s", values)
    return schedule

"""Payment ledger: record payments against schedule rows and derive balances.

Schedules are never modified in place. ``apply_payment`` returns a new list
with one row toggled, and the balance and summary helpers only read.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from operator import attrgetter
from typing import Any, List, Optional, Sequence

from .data_models import CreditSummary, Loan, ScheduleItem
from .errors import InvalidParametersError, ScheduleIndexError, ScheduleIntegrityError
from .utils import ZERO, round_cents, to_amount


def validate_schedule(schedule: Sequence[ScheduleItem]) -> None:
    """Raise ``ScheduleIntegrityError`` unless rows are numbered 1..N in order."""
    for position, item in enumerate(schedule, start=1):
        if item.month_number != position:
            raise ScheduleIntegrityError(
                "Schedule rows must be numbered 1..N without gaps",
                {"position": position, "month_number": item.month_number},
            )


def apply_payment(
    schedule: Sequence[ScheduleItem],
    item_index: int,
    paid_amount: Any = None,
    today: Optional[date] = None,
) -> List[ScheduleItem]:
    """Toggle the paid state of the row at ``item_index``.

    An unpaid row becomes paid with ``paid_amount`` (the planned payment when
    omitted) and ``paid_at`` set to ``today``. A paid row goes back to unpaid
    and loses both. Applying twice restores the original row. A ``paid_amount``
    that is not a positive number raises ``InvalidParametersError``.
    """
    items = list(schedule)
    validate_schedule(items)
    if not 0 <= item_index < len(items):
        raise ScheduleIndexError(item_index, len(items))

    item = items[item_index]
    if item.paid:
        items[item_index] = replace(item, paid=False, paid_amount=None, paid_at=None)
    else:
        amount = item.planned_payment
        if paid_amount is not None:
            amount = to_amount(paid_amount)
            if amount is None:
                raise InvalidParametersError("Paid amount must be a positive number", {"paid_amount": paid_amount})
        items[item_index] = replace(
            item,
            paid=True,
            paid_amount=round_cents(amount),
            paid_at=today or date.today(),
        )
    return items


def _paid_rows(schedule: Sequence[ScheduleItem]) -> List[ScheduleItem]:
    return [item for item in sorted(schedule, key=attrgetter("month_number")) if item.paid]


def recalculate_current_balance(loan: Loan, schedule: Sequence[ScheduleItem]) -> Decimal:
    """Outstanding principal: the loan amount less the principal of every paid row, never below zero."""
    balance = round_cents(loan.amount if loan.amount is not None else ZERO)
    for item in _paid_rows(schedule):
        balance = round_cents(balance - item.principal_part)
    return max(round_cents(ZERO), balance)


def calculate_credit_summary(loan: Loan, schedule: Sequence[ScheduleItem]) -> CreditSummary:
    total_interest = ZERO
    total_planned = ZERO
    actual_paid = ZERO
    months_remaining = 0
    for item in schedule:
        total_interest += item.interest_part
        total_planned += item.planned_payment
        if item.paid:
            actual_paid += item.paid_amount if item.paid_amount is not None else item.planned_payment
        else:
            months_remaining += 1

    return CreditSummary(
        total_interest_paid=round_cents(total_interest),
        total_paid=round_cents(total_planned),
        actual_paid=round_cents(actual_paid),
        current_balance=recalculate_current_balance(loan, schedule),
        months_remaining=months_remaining,
    )

"""Upcoming payment reminders across loans."""

from __future__ import annotations

from datetime import date
from typing import Iterable, List, Mapping, Optional, Sequence

from .data_models import Loan, ScheduleItem, UpcomingPayment
from .utils import days_after


def get_upcoming_payments(
    loans: Iterable[Loan],
    schedule_by_loan_id: Mapping[str, Sequence[ScheduleItem]],
    days_ahead: int = 7,
    today: Optional[date] = None,
) -> List[UpcomingPayment]:
    """Unpaid rows of active loans due between ``today`` and ``today + days_ahead``.

    Both ends of the window are inclusive. The result is sorted by payment
    date; payments due the same day keep the order of ``loans``.
    """
    if days_ahead < 0:
        return []
    start = today or date.today()
    end = days_after(start, days_ahead)

    upcoming: List[UpcomingPayment] = []
    for loan in loans:
        if not loan.is_active:
            continue
        for item in schedule_by_loan_id.get(loan.id, ()):
            if item.paid or not start <= item.payment_date <= end:
                continue
            upcoming.append(
                UpcomingPayment(
                    loan_id=loan.id,
                    loan_name=loan.name,
                    payment_date=item.payment_date,
                    amount=item.planned_payment,
                    month_number=item.month_number,
                )
            )
    # sort is stable, so ties keep loan order and then month order
    upcoming.sort(key=lambda payment: payment.payment_date)
    return upcoming

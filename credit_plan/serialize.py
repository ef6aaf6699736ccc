"""Conversion between engine objects and JSON-serialisable dictionaries.

Dates are written as ``YYYY-MM-DD`` strings and money as floats with two
decimal places. ``None`` stays ``None``, so an unset rate is written as
``null`` and an interest-free one as ``0.0``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .data_models import CreditSummary, InputMode, Loan, LoanStatus, ScheduleItem, UpcomingPayment
from .engine import to_schedule_type
from .errors import InvalidParametersError
from .utils import ZERO, to_date, to_decimal, to_int, to_payment_day


def _money(value: Optional[Decimal]) -> Optional[float]:
    return None if value is None else float(value)


def _iso(value) -> Optional[str]:
    return None if value is None else value.isoformat()


def schedule_item_to_dict(item: ScheduleItem) -> Dict[str, Any]:
    return {
        "month_number": item.month_number,
        "payment_date": item.payment_date.isoformat(),
        "planned_payment": float(item.planned_payment),
        "interest_part": float(item.interest_part),
        "principal_part": float(item.principal_part),
        "remaining_balance": float(item.remaining_balance),
        "paid": item.paid,
        "paid_amount": _money(item.paid_amount),
        "paid_at": _iso(item.paid_at),
    }


def schedule_to_dicts(schedule: Iterable[ScheduleItem]) -> List[Dict[str, Any]]:
    return [schedule_item_to_dict(item) for item in schedule]


def schedule_item_from_dict(data: Mapping[str, Any]) -> ScheduleItem:
    """Parse one schedule row; raises ``InvalidParametersError`` on missing or mistyped fields."""
    month_number = to_int(data.get("month_number"))
    payment_date = to_date(data.get("payment_date"))
    amounts = {
        key: to_decimal(data.get(key))
        for key in ("planned_payment", "interest_part", "principal_part", "remaining_balance")
    }
    paid = data.get("paid", False)
    if month_number is None or payment_date is None or any(value is None for value in amounts.values()):
        raise InvalidParametersError("Malformed schedule row", {"row": dict(data)})
    if not isinstance(paid, bool):
        raise InvalidParametersError("Schedule row field paid must be true or false", {"paid": paid})
    return ScheduleItem(
        month_number=month_number,
        payment_date=payment_date,
        paid=paid,
        paid_amount=to_decimal(data.get("paid_amount")) if paid else None,
        paid_at=to_date(data.get("paid_at")) if paid else None,
        **amounts,
    )


def loan_to_dict(loan: Loan, schedule: Optional[Iterable[ScheduleItem]] = None) -> Dict[str, Any]:
    data = {
        "id": loan.id,
        "name": loan.name,
        "description": loan.description,
        "notes": loan.notes,
        "schedule_type": loan.schedule_type.value,
        "amount": _money(loan.amount),
        "annual_rate": _money(loan.annual_rate),
        "term_months": loan.term_months,
        "start_date": _iso(loan.start_date),
        "payment_day": loan.payment_day,
        "monthly_payment": _money(loan.monthly_payment),
        "current_balance": float(loan.current_balance),
        "status": loan.status.value,
        "input_mode": loan.input_mode.value,
    }
    if schedule is not None:
        data["schedule"] = schedule_to_dicts(schedule)
    return data


def loan_from_dict(data: Mapping[str, Any]) -> Loan:
    """Build a ``Loan`` from loosely typed input such as a JSON payload.

    Numeric fields that are absent or blank become ``None``. A rate of ``0``
    is kept as ``Decimal("0")``.
    """
    try:
        status = LoanStatus(data.get("status") or LoanStatus.ACTIVE.value)
        input_mode = InputMode(data.get("input_mode") or InputMode.AMOUNT_RATE_TERM.value)
    except ValueError as exc:
        raise InvalidParametersError(str(exc)) from exc
    return Loan(
        id=str(data.get("id") or ""),
        name=str(data.get("name") or ""),
        description=str(data.get("description") or ""),
        notes=str(data.get("notes") or ""),
        schedule_type=to_schedule_type(data.get("schedule_type")),
        amount=to_decimal(data.get("amount")),
        annual_rate=to_decimal(data.get("annual_rate")),
        term_months=to_int(data.get("term_months")),
        start_date=to_date(data.get("start_date")),
        payment_day=to_payment_day(data.get("payment_day")),
        monthly_payment=to_decimal(data.get("monthly_payment")),
        current_balance=to_decimal(data.get("current_balance")) or ZERO,
        status=status,
        input_mode=input_mode,
    )


def summary_to_dict(summary: CreditSummary) -> Dict[str, Any]:
    return {
        "total_interest_paid": float(summary.total_interest_paid),
        "total_paid": float(summary.total_paid),
        "actual_paid": float(summary.actual_paid),
        "current_balance": float(summary.current_balance),
        "months_remaining": summary.months_remaining,
    }


def upcoming_to_dict(payment: UpcomingPayment) -> Dict[str, Any]:
    return {
        "loan_id": payment.loan_id,
        "loan_name": payment.loan_name,
        "payment_date": payment.payment_date.isoformat(),
        "amount": float(payment.amount),
        "month_number": payment.month_number,
    }

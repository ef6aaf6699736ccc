"""Utility functions for the credit plan engine.

This module normalizes loosely typed user input (strings, floats, Decimals)
into the types the engine works with, rounds money to cents and computes
payment dates. Normalizers return ``None`` for missing or unusable input
instead of raising, because an incomplete loan is an expected state.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, getcontext
from typing import Any, Optional

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

CENT = Decimal("0.01")
ZERO = Decimal("0")

# inputs at or past these bounds would overflow the context once carried to cents
MAX_AMOUNT = Decimal("1e15")
MAX_ANNUAL_RATE = Decimal("1e6")
MAX_TERM_MONTHS = 12000


def round_cents(value: Decimal) -> Decimal:
    """Round ``value`` half-up to two decimal places."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert ``value`` into a finite ``Decimal`` or return ``None``.

    Accepts ``Decimal``, ``int``, ``float`` and numeric strings (commas used as
    thousands separators are stripped). Booleans, NaN and infinities are
    rejected.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        # go through str so 0.1 becomes Decimal("0.1"), not its binary expansion
        result = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = value.strip().replace(",", "")
        if not cleaned:
            return None
        try:
            result = Decimal(cleaned)
        except InvalidOperation:
            return None
    else:
        return None
    if not result.is_finite():
        return None
    return result


def to_int(value: Any) -> Optional[int]:
    """Convert ``value`` into an ``int`` when it is integral, else ``None``."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    number = to_decimal(value)
    if number is None or number != number.to_integral_value():
        return None
    return int(number)


def to_amount(value: Any) -> Optional[Decimal]:
    """Return ``value`` as a positive money amount below ``MAX_AMOUNT``, or ``None``."""
    number = to_decimal(value)
    if number is None or number <= 0 or number >= MAX_AMOUNT:
        return None
    return number


def to_annual_rate(value: Any) -> Optional[Decimal]:
    """Return ``value`` as an annual rate in percent; zero is a valid rate."""
    number = to_decimal(value)
    if number is None or number < 0 or number >= MAX_ANNUAL_RATE:
        return None
    return number


def to_term(value: Any) -> Optional[int]:
    term = to_int(value)
    if term is None or not 1 <= term <= MAX_TERM_MONTHS:
        return None
    return term


def to_payment_day(value: Any) -> Optional[int]:
    """Return ``value`` as a day of month in 1-31, or ``None``."""
    day = to_int(value)
    if day is None or not 1 <= day <= 31:
        return None
    return day


def to_date(value: Any) -> Optional[date]:
    """Parse a ``YYYY-MM-DD`` string (or pass through a date) or return ``None``.

    Timestamps such as ``2024-01-15T00:00:00Z`` are reduced to their date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def parse_iso_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string into a ``date``.

    Raises
    ------
    ValueError
        If the string is not a valid ISO date.
    """
    parsed = to_date(value)
    if parsed is None:
        raise ValueError(f"Invalid date string: {value}")
    return parsed


def add_months(dt: date, months: int, day: Optional[int] = None) -> date:
    """Return a new date a number of months after ``dt``.

    ``day`` replaces the day of month of the result when given. The day is
    clamped to the last valid day if needed (e.g., adding one month to Jan 31
    yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    wanted = dt.day if day is None else day
    day_of_month = min(wanted, calendar.monthrange(year, month)[1])
    return date(year, month, day_of_month)


def payment_date(start_date: date, month_number: int, payment_day: Optional[int] = None) -> date:
    """Due date of the ``month_number``-th payment (1-based)."""
    return add_months(start_date, month_number - 1, to_payment_day(payment_day))


def days_after(dt: date, days: int) -> date:
    return dt + timedelta(days=days)

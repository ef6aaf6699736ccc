"""Smart input: solve one annuity parameter from the others.

Given any three of amount, annual rate, term and monthly payment, the
functions below derive the fourth. They return ``None`` for missing, invalid
or infeasible input (for example a payment too small to ever cover the
interest) and never raise.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import ROUND_CEILING, Decimal
from typing import Any, Optional

from .data_models import InputMode, Loan, ScheduleType
from .engine import annuity_payment, monthly_rate
from .utils import round_cents, to_amount, to_annual_rate, to_term


def calculate_annuity_payment(amount: Any, annual_rate: Any, term_months: Any) -> Optional[Decimal]:
    """Amount + rate + term -> monthly payment."""
    principal = to_amount(amount)
    rate = to_annual_rate(annual_rate)
    term = to_term(term_months)
    if principal is None or rate is None or term is None:
        return None
    return annuity_payment(principal, monthly_rate(rate), term)


def calculate_term_from_payment(amount: Any, annual_rate: Any, monthly_payment: Any) -> Optional[int]:
    """Amount + rate + payment -> number of months.

    Uses ``n = -ln(1 - A*i/P) / ln(1 + i)`` (``A / P`` without interest) and
    rounds up, since a partial final month is still a payment. Returns
    ``None`` when the payment does not exceed the monthly interest.
    """
    principal = to_amount(amount)
    rate = to_annual_rate(annual_rate)
    payment = to_amount(monthly_payment)
    if principal is None or rate is None or payment is None:
        return None

    rate_per_month = monthly_rate(rate)
    if rate_per_month == 0:
        raw_term = principal / payment
    else:
        ratio = principal * rate_per_month / payment
        if ratio >= 1:
            return None
        raw_term = -(1 - ratio).ln() / (1 + rate_per_month).ln()

    return int(raw_term.to_integral_value(rounding=ROUND_CEILING))


def calculate_amount_from_payment(annual_rate: Any, term_months: Any, monthly_payment: Any) -> Optional[Decimal]:
    """Rate + term + payment -> largest amount that payment amortizes."""
    rate = to_annual_rate(annual_rate)
    term = to_term(term_months)
    payment = to_amount(monthly_payment)
    if rate is None or term is None or payment is None:
        return None

    rate_per_month = monthly_rate(rate)
    if rate_per_month == 0:
        return round_cents(payment * term)
    discount = (1 + rate_per_month) ** -term
    return round_cents(payment * (1 - discount) / rate_per_month)


def solve_loan(loan: Loan) -> Loan:
    """Return a copy of ``loan`` with the unknown of its input mode filled in.

    The formulas are the annuity ones, so differentiated loans are returned
    unchanged, as is any loan whose known parameters are incomplete.
    """
    if loan.schedule_type != ScheduleType.ANNUITY:
        return loan
    if loan.input_mode == InputMode.AMOUNT_RATE_PAYMENT:
        term = calculate_term_from_payment(loan.amount, loan.annual_rate, loan.monthly_payment)
        return loan if term is None else replace(loan, term_months=term)
    if loan.input_mode == InputMode.RATE_TERM_PAYMENT:
        amount = calculate_amount_from_payment(loan.annual_rate, loan.term_months, loan.monthly_payment)
        return loan if amount is None else replace(loan, amount=amount)
    payment = calculate_annuity_payment(loan.amount, loan.annual_rate, loan.term_months)
    return loan if payment is None else replace(loan, monthly_payment=payment)

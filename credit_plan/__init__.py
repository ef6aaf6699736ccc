"""Loan amortization schedules, smart input and payment tracking."""

from .data_models import (
    CreditSummary,
    InputMode,
    Loan,
    LoanStatus,
    ScheduleItem,
    ScheduleParams,
    ScheduleType,
    UpcomingPayment,
)
from .engine import build_annuity_schedule, build_differentiated_schedule, build_schedule
from .ledger import apply_payment, calculate_credit_summary, recalculate_current_balance
from .rebuild import rebuild_after_change
from .reminders import get_upcoming_payments
from .solver import calculate_amount_from_payment, calculate_annuity_payment, calculate_term_from_payment

__all__ = [
    "CreditSummary",
    "InputMode",
    "Loan",
    "LoanStatus",
    "ScheduleItem",
    "ScheduleParams",
    "ScheduleType",
    "UpcomingPayment",
    "apply_payment",
    "build_annuity_schedule",
    "build_differentiated_schedule",
    "build_schedule",
    "calculate_amount_from_payment",
    "calculate_annuity_payment",
    "calculate_credit_summary",
    "calculate_term_from_payment",
    "get_upcoming_payments",
    "rebuild_after_change",
    "recalculate_current_balance",
]

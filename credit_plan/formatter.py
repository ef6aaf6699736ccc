"""Output helpers for the credit plan command line.

This module renders schedules, summaries and reminder lists as plain text
tables using built-in printing and string formatting.
"""

from __future__ import annotations

from typing import Iterable, Optional

from .data_models import CreditSummary, ScheduleItem, ScheduleParams, UpcomingPayment


def print_summary(summary: CreditSummary, params: Optional[ScheduleParams] = None, payment=None) -> None:
    """Print a summary of loan metrics in a human-readable format."""
    print("Summary")
    print("-" * 72)
    if params is not None:
        print(f"Schedule type      : {params.schedule_type.value}")
        print(f"Amount             : {params.amount:.2f}")
        print(f"Annual rate        : {params.annual_rate}%")
        print(f"Term               : {params.term_months} months")
    if payment is not None:
        print(f"Monthly payment    : {payment:.2f}")
    print(f"Total interest     : {summary.total_interest_paid:.2f}")
    print(f"Total of payments  : {summary.total_paid:.2f}")
    print(f"Paid so far        : {summary.actual_paid:.2f}")
    print(f"Current balance    : {summary.current_balance:.2f}")
    print(f"Months remaining   : {summary.months_remaining}")
    print("-" * 72)


def print_schedule(schedule: Iterable[ScheduleItem]) -> None:
    """Print the payment schedule as a simple tab-separated table."""
    headers = [
        "Month",
        "Date",
        "Payment",
        "Interest",
        "Principal",
        "Balance",
        "Paid",
    ]
    print("\t".join(headers))
    for item in schedule:
        row = [
            str(item.month_number),
            item.payment_date.isoformat(),
            f"{item.planned_payment:.2f}",
            f"{item.interest_part:.2f}",
            f"{item.principal_part:.2f}",
            f"{item.remaining_balance:.2f}",
            "Yes" if item.paid else "No",
        ]
        print("\t".join(row))


def print_upcoming(payments: Iterable[UpcomingPayment]) -> None:
    """Print upcoming payments, one per line, or a note when there are none."""
    payments = list(payments)
    if not payments:
        print("No payments due.")
        return
    print(f"{'Date':12s} {'Loan':30s} {'Month':>5s} {'Amount':>12s}")
    for payment in payments:
        print(
            f"{payment.payment_date.isoformat():12s} {payment.loan_name[:30]:30s} "
            f"{payment.month_number:5d} {payment.amount:12.2f}"
        )

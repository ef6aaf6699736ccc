"""Exceptions raised by the credit plan engine and its callers.

Missing or infeasible loan inputs are not errors: the engine answers them with
``None`` or an empty schedule. The exceptions below signal caller bugs such as
a malformed schedule or an unknown loan id.
"""

from typing import Optional


class CreditPlanError(Exception):
    """Base exception for all credit plan errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ScheduleIndexError(CreditPlanError, IndexError):
    """Raised when a row index falls outside the schedule."""

    def __init__(self, index: int, length: int):
        super().__init__(
            f"Schedule row {index} out of range",
            {"index": index, "length": length},
        )


class ScheduleIntegrityError(CreditPlanError, ValueError):
    """Raised when a schedule is not sorted or has gaps in its month numbers."""


class ScheduleTypeLockedError(CreditPlanError):
    """Raised when the schedule type of a loan with paid rows is changed."""

    def __init__(self, current, requested, paid_months: int):
        super().__init__(
            "Schedule type cannot change once payments are recorded",
            {
                "current": getattr(current, "value", current),
                "requested": getattr(requested, "value", requested),
                "paid_months": paid_months,
            },
        )


class LoanNotFoundError(CreditPlanError):
    """Raised when a loan cannot be found."""

    def __init__(self, loan_id: str):
        super().__init__(f"Loan '{loan_id}' not found", {"loan_id": loan_id})


class InvalidParametersError(CreditPlanError, ValueError):
    """Raised when explicitly supplied loan parameters cannot be parsed."""

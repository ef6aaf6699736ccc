"""Loan service: drives the credit plan engine against the loan store.

Every operation that reads a schedule, changes it and writes it back runs
under a per-loan lock, so concurrent requests for the same loan are applied
one after the other while different loans proceed independently.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError

from credit_plan import ledger
from credit_plan.data_models import CreditSummary, InputMode, Loan, ScheduleItem, ScheduleParams, UpcomingPayment
from credit_plan.engine import build_schedule
from credit_plan.errors import CreditPlanError, InvalidParametersError, LoanNotFoundError, ScheduleIndexError
from credit_plan.rebuild import merge_params, rebuild_after_change
from credit_plan.reminders import get_upcoming_payments
from credit_plan.solver import solve_loan

from .loan_store import LoanStore

log = logging.getLogger(__name__)

LoanWithSchedule = Tuple[Loan, List[ScheduleItem]]


@dataclass
class MigrationReport:
    """Outcome of migrating loans that have no schedule yet."""

    migrated: List[Loan] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)


class LoanService:
    """Loan operations on top of a ``LoanStore``.

    The service keeps ``Loan.current_balance`` in step with the stored
    schedule: every write that touches a schedule recomputes the balance from
    the paid rows and persists it.
    """

    def __init__(self, store: LoanStore):
        self.store = store
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _writing(self, loan_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(loan_id, threading.Lock())
        with lock:
            yield

    def _require_loan(self, loan_id: str) -> Loan:
        loan = self.store.load_loan(loan_id)
        if loan is None:
            raise LoanNotFoundError(loan_id)
        return loan

    def _store_balance(self, loan: Loan, schedule: Sequence[ScheduleItem]) -> Loan:
        balance = ledger.recalculate_current_balance(loan, schedule)
        if balance != loan.current_balance:
            loan = self.store.save_loan(replace(loan, current_balance=balance))
            log.info("Balance of loan %s is now %s", loan.id, balance, extra={"loan_id": loan.id})
        return loan

    def list_loans(self) -> List[LoanWithSchedule]:
        schedules = self.store.load_schedules()
        return [(loan, schedules.get(loan.id, [])) for loan in self.store.list_loans()]

    def get_loan(self, loan_id: str) -> LoanWithSchedule:
        return self._require_loan(loan_id), self.store.load_schedule(loan_id)

    def save_loan(self, loan: Loan, schedule: Optional[Sequence[ScheduleItem]] = None) -> LoanWithSchedule:
        """Create or update a loan.

        A supplied schedule replaces the stored one. Without one, a schedule
        is built only if the loan has none yet and its inputs are complete;
        an existing schedule changes through ``rebuild_schedule`` instead.
        """
        if schedule:
            ledger.validate_schedule(schedule)
        if not loan.id:
            loan = replace(loan, id=uuid4().hex)
        with self._writing(loan.id):
            saved = self.store.save_loan(solve_loan(self.store.normalize_loan(loan)))
            if schedule:
                self.store.save_schedule(saved.id, schedule)
            elif not self.store.load_schedule(saved.id) and saved.schedule_params().is_complete:
                built = build_schedule(saved.schedule_params())
                if built:
                    self.store.save_schedule(saved.id, built)
                    log.info("Built %d-month schedule for loan %s", len(built), saved.id, extra={"loan_id": saved.id})
                else:
                    log.warning("Parameters of loan %s do not produce a schedule", saved.id, extra={"loan_id": saved.id})
            current = self.store.load_schedule(saved.id)
            saved = self._store_balance(saved, current)
            return saved, current

    def delete_loan(self, loan_id: str) -> None:
        with self._writing(loan_id):
            if not self.store.delete_loan(loan_id):
                raise LoanNotFoundError(loan_id)
        with self._locks_guard:
            self._locks.pop(loan_id, None)
        log.info("Deleted loan %s", loan_id, extra={"loan_id": loan_id})

    def apply_payment(
        self,
        loan_id: str,
        month_number: int,
        paid_amount: Any = None,
        today: Optional[date] = None,
    ) -> LoanWithSchedule:
        """Toggle the paid state of one month of the loan's schedule."""
        with self._writing(loan_id):
            loan = self._require_loan(loan_id)
            schedule = self.store.load_schedule(loan_id)
            index = next((i for i, item in enumerate(schedule) if item.month_number == month_number), None)
            if index is None:
                raise ScheduleIndexError(month_number - 1, len(schedule))
            updated = ledger.apply_payment(schedule, index, paid_amount, today)
            self.store.save_schedule(loan_id, updated)
            loan = self._store_balance(loan, updated)
            return loan, updated

    def rebuild_schedule(
        self,
        loan_id: str,
        new_params: Union[ScheduleParams, Mapping[str, Any]],
    ) -> LoanWithSchedule:
        """Regenerate the schedule for changed parameters, keeping payment history.

        The merged parameters, rounded to their stored precision, are stored
        on the loan and generate the new schedule. Parameters that produce no
        schedule are rejected when the loan has one to lose or when they are
        complete.
        """
        with self._writing(loan_id):
            loan = self._require_loan(loan_id)
            schedule = self.store.load_schedule(loan_id)
            updated = self.store.normalize_loan(loan.with_params(merge_params(loan, new_params)))
            params = updated.schedule_params()
            rebuilt = rebuild_after_change(loan, schedule, params)
            if not rebuilt and (schedule or params.is_complete):
                raise InvalidParametersError("Parameters do not produce a schedule", {"loan_id": loan_id})

            if updated.input_mode == InputMode.AMOUNT_RATE_TERM:
                updated = solve_loan(updated)
            updated = self.store.save_loan(updated)
            self.store.save_schedule(loan_id, rebuilt)
            updated = self._store_balance(updated, rebuilt)
            log.info(
                "Rebuilt schedule of loan %s: %d -> %d months",
                loan_id,
                len(schedule),
                len(rebuilt),
                extra={"loan_id": loan_id},
            )
            return updated, rebuilt

    def summary(self, loan_id: str) -> CreditSummary:
        loan, schedule = self.get_loan(loan_id)
        return ledger.calculate_credit_summary(loan, schedule)

    def upcoming_payments(self, days_ahead: int = 7, today: Optional[date] = None) -> List[UpcomingPayment]:
        return get_upcoming_payments(self.store.list_loans(), self.store.load_schedules(), days_ahead, today)

    def find_loans_needing_schedule(self) -> List[Loan]:
        """Loans that have no schedule stored yet."""
        schedules = self.store.load_schedules()
        return [loan for loan in self.store.list_loans() if not schedules.get(loan.id)]

    def migrate_loan(self, loan_id: str) -> Loan:
        """Give a loan without a schedule one, or at least a sensible balance.

        Loans whose inputs are complete get a schedule; the others keep none
        and have their balance defaulted to the loan amount.
        """
        with self._writing(loan_id):
            loan = self._require_loan(loan_id)
            if self.store.load_schedule(loan_id):
                return loan
            params = loan.schedule_params()
            built = build_schedule(params) if params.is_complete else []
            if built:
                self.store.save_schedule(loan_id, built)
                log.info("Migrated loan %s with %d schedule rows", loan_id, len(built), extra={"loan_id": loan_id})
                return self._store_balance(loan, built)
            if loan.current_balance == 0 and loan.amount is not None:
                loan = self.store.save_loan(replace(loan, current_balance=loan.amount))
            log.info("Migrated loan %s without a schedule", loan_id, extra={"loan_id": loan_id})
            return loan

    def migrate_all(self) -> MigrationReport:
        report = MigrationReport()
        for loan in self.find_loans_needing_schedule():
            try:
                report.migrated.append(self.migrate_loan(loan.id))
            except (CreditPlanError, SQLAlchemyError) as exc:
                log.exception("Migration of loan %s failed", loan.id, extra={"loan_id": loan.id})
                report.failed.append((loan.id, str(exc)))
        log.info("Migration complete: %d succeeded, %d failed", len(report.migrated), len(report.failed))
        return report

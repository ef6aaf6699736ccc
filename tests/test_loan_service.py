from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from credit_plan.data_models import InputMode, Loan, ScheduleType
from credit_plan.engine import build_schedule
from credit_plan.errors import (
    InvalidParametersError,
    LoanNotFoundError,
    ScheduleIndexError,
    ScheduleIntegrityError,
    ScheduleTypeLockedError,
)
from credit_plan.ledger import recalculate_current_balance

PAID_ON = date(2024, 1, 5)


def _new_loan(**kwargs):
    values = dict(
        id="",
        name="Car",
        amount=Decimal("1200"),
        annual_rate=Decimal("12"),
        term_months=12,
        start_date=date(2024, 1, 1),
    )
    values.update(kwargs)
    return Loan(**values)


def test_save_loan_assigns_id_and_builds_schedule(service):
    loan, schedule = service.save_loan(_new_loan())

    assert loan.id
    assert len(schedule) == 12
    assert loan.monthly_payment == Decimal("106.62")
    assert loan.current_balance == Decimal("1200.00")
    assert service.get_loan(loan.id) == (loan, schedule)


def test_save_loan_without_rate_builds_nothing(service):
    loan, schedule = service.save_loan(_new_loan(annual_rate=None))

    assert schedule == []
    assert loan.monthly_payment is None
    assert service.find_loans_needing_schedule() == [loan]


def test_save_loan_with_zero_rate_builds_schedule(service):
    loan, schedule = service.save_loan(_new_loan(annual_rate=Decimal("0")))

    assert loan.annual_rate == 0
    assert len(schedule) == 12
    assert schedule[0].planned_payment == Decimal("100.00")


def test_save_loan_solves_term_from_payment(service):
    loan, schedule = service.save_loan(
        _new_loan(
            amount=Decimal("100000"),
            annual_rate=Decimal("10"),
            term_months=None,
            monthly_payment=Decimal("4614.50"),
            input_mode=InputMode.AMOUNT_RATE_PAYMENT,
        )
    )

    assert loan.term_months == 24
    assert len(schedule) == 24


def test_save_loan_keeps_existing_schedule(service):
    loan, schedule = service.save_loan(_new_loan())
    loan, _ = service.apply_payment(loan.id, 1, today=PAID_ON)

    _, again = service.save_loan(loan)

    assert again[0].paid
    assert len(again) == len(schedule)


def test_save_loan_with_supplied_schedule(service):
    loan = _new_loan(id="given")
    schedule = build_schedule(loan.schedule_params())[:3]

    saved, stored = service.save_loan(loan, schedule)

    assert stored == schedule
    assert saved.id == "given"


def test_save_loan_rejects_malformed_schedule(service):
    loan = _new_loan(id="given")
    schedule = build_schedule(loan.schedule_params())

    with pytest.raises(ScheduleIntegrityError):
        service.save_loan(loan, schedule[1:])


def test_apply_payment_updates_balance(service):
    loan, schedule = service.save_loan(_new_loan(annual_rate=Decimal("0")))

    loan, schedule = service.apply_payment(loan.id, 1, today=PAID_ON)
    assert schedule[0].paid and schedule[0].paid_at == PAID_ON
    assert loan.current_balance == Decimal("1100.00")
    assert service.get_loan(loan.id)[0].current_balance == Decimal("1100.00")

    loan, schedule = service.apply_payment(loan.id, 1)
    assert not schedule[0].paid
    assert loan.current_balance == Decimal("1200.00")


def test_apply_payment_unknown_month(service):
    loan, _ = service.save_loan(_new_loan())

    with pytest.raises(ScheduleIndexError):
        service.apply_payment(loan.id, 13)


def test_unknown_loan(service):
    with pytest.raises(LoanNotFoundError):
        service.apply_payment("missing", 1)
    with pytest.raises(LoanNotFoundError):
        service.rebuild_schedule("missing", {"term_months": 6})
    with pytest.raises(LoanNotFoundError):
        service.delete_loan("missing")
    with pytest.raises(LoanNotFoundError):
        service.summary("missing")


def test_rebuild_schedule_persists_params_and_history(service):
    loan, _ = service.save_loan(_new_loan(annual_rate=Decimal("0")))
    service.apply_payment(loan.id, 1, paid_amount=100, today=PAID_ON)

    loan, schedule = service.rebuild_schedule(loan.id, {"annual_rate": 12, "term_months": 6})

    assert loan.annual_rate == Decimal("12")
    assert loan.term_months == 6
    assert loan.monthly_payment is not None
    assert len(schedule) == 6
    assert schedule[0].paid and schedule[0].paid_amount == Decimal("100.00")
    assert service.get_loan(loan.id) == (loan, schedule)


def test_rebuild_schedule_to_zero_rate(service):
    loan, _ = service.save_loan(_new_loan())

    loan, schedule = service.rebuild_schedule(loan.id, {"annual_rate": 0})

    assert loan.annual_rate == 0
    assert loan.monthly_payment == Decimal("100.00")
    assert all(item.interest_part == 0 for item in schedule)


def test_rebuild_schedule_type_locked(service):
    loan, _ = service.save_loan(_new_loan())
    service.apply_payment(loan.id, 1, today=PAID_ON)

    with pytest.raises(ScheduleTypeLockedError):
        service.rebuild_schedule(loan.id, {"schedule_type": ScheduleType.DIFFERENTIATED.value})
    assert service.get_loan(loan.id)[0].schedule_type == ScheduleType.ANNUITY


def test_rebuild_schedule_rejects_bad_input(service):
    loan, _ = service.save_loan(_new_loan())

    with pytest.raises(InvalidParametersError):
        service.rebuild_schedule(loan.id, {"amount": "lots"})
    with pytest.raises(InvalidParametersError):
        service.rebuild_schedule(loan.id, {"amount": -5})


def test_summary(service):
    loan, _ = service.save_loan(_new_loan(schedule_type=ScheduleType.DIFFERENTIATED))
    service.apply_payment(loan.id, 1, today=PAID_ON)

    summary = service.summary(loan.id)

    assert summary.total_interest_paid == Decimal("78.00")
    assert summary.actual_paid == Decimal("112.00")
    assert summary.current_balance == Decimal("1100.00")
    assert summary.months_remaining == 11


def test_delete_loan(service):
    loan, _ = service.save_loan(_new_loan())

    service.delete_loan(loan.id)

    assert service.list_loans() == []
    assert loan.id not in service._locks
    with pytest.raises(LoanNotFoundError):
        service.get_loan(loan.id)


def test_upcoming_payments(service):
    loan, _ = service.save_loan(_new_loan(name="Car"))

    upcoming = service.upcoming_payments(7, today=date(2024, 2, 27))

    assert [(p.loan_id, p.payment_date, p.month_number) for p in upcoming] == [(loan.id, date(2024, 3, 1), 3)]


def test_migrate_all(service, store):
    complete = Loan(
        id="complete",
        amount=Decimal("1200"),
        annual_rate=Decimal("0"),
        term_months=12,
        start_date=date(2024, 1, 1),
    )
    draft = Loan(id="draft", amount=Decimal("500"))
    store.save_loan(complete)
    store.save_loan(draft)

    report = service.migrate_all()

    assert sorted(loan.id for loan in report.migrated) == ["complete", "draft"]
    assert report.failed == []
    assert len(store.load_schedule("complete")) == 12
    assert store.load_loan("complete").current_balance == Decimal("1200.00")
    assert store.load_schedule("draft") == []
    assert store.load_loan("draft").current_balance == Decimal("500")
    assert service.find_loans_needing_schedule() == [store.load_loan("draft")]


def test_migrate_loan_with_schedule_is_noop(service):
    loan, schedule = service.save_loan(_new_loan())

    assert service.migrate_loan(loan.id) == loan
    assert service.get_loan(loan.id)[1] == schedule


def test_concurrent_payments_on_one_loan_are_all_kept(service):
    loan, _ = service.save_loan(_new_loan(term_months=8))

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda month: service.apply_payment(loan.id, month, today=PAID_ON), range(1, 9)))

    loan, schedule = service.get_loan(loan.id)
    assert all(item.paid for item in schedule)
    assert loan.current_balance == recalculate_current_balance(loan, schedule)
    assert loan.current_balance == 0


def test_save_loan_builds_schedule_from_stored_rate(service):
    loan, schedule = service.save_loan(_new_loan(annual_rate=Decimal("12.345678")))

    assert loan.annual_rate == Decimal("12.3457")
    assert service.get_loan(loan.id)[0].annual_rate == Decimal("12.3457")
    assert schedule == build_schedule(loan.schedule_params())


def test_rebuild_schedule_uses_stored_rate(service):
    loan, _ = service.save_loan(_new_loan())

    loan, schedule = service.rebuild_schedule(loan.id, {"annual_rate": "7.123456"})

    assert loan.annual_rate == Decimal("7.1235")
    assert schedule == build_schedule(loan.schedule_params())
    assert service.get_loan(loan.id) == (loan, schedule)


def test_rebuild_schedule_keeps_schedule_when_params_are_incomplete(service):
    given = _new_loan(id="given")
    schedule = build_schedule(given.schedule_params())
    loan, _ = service.save_loan(replace(given, start_date=None), schedule)

    with pytest.raises(InvalidParametersError):
        service.rebuild_schedule(loan.id, {"term_months": 6})
    assert service.get_loan(loan.id)[1] == schedule
    assert service.get_loan(loan.id)[0].term_months == 12

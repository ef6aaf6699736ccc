"""Regenerate a schedule after the loan parameters change.

The schedule is rebuilt from scratch with the new parameters and the payment
history of the old one is carried over by month number: a month that was
paid stays paid with the same amount and date, while its interest and
principal split is recomputed. Months that disappear because the term got
shorter lose their history.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Dict, List, Mapping, Sequence, Union

from .data_models import Loan, ScheduleItem, ScheduleParams
from .engine import build_schedule, to_schedule_type
from .errors import InvalidParametersError, ScheduleTypeLockedError
from .ledger import validate_schedule
from .utils import to_date, to_decimal, to_int, to_payment_day

_PARSERS: Dict[str, Callable[[Any], Any]] = {
    "schedule_type": to_schedule_type,
    "amount": to_decimal,
    "annual_rate": to_decimal,
    "term_months": to_int,
    "start_date": to_date,
    "payment_day": to_payment_day,
}


def merge_params(loan: Loan, new_params: Union[ScheduleParams, Mapping[str, Any]]) -> ScheduleParams:
    """Overlay ``new_params`` on the loan's current schedule parameters.

    A ``ScheduleParams`` replaces the current parameters outright. In a
    mapping, a key whose value is ``None`` is treated as not provided; any
    other value, including a zero rate, overrides the loan's value.
    """
    if isinstance(new_params, ScheduleParams):
        return new_params
    changes = {}
    for key, value in new_params.items():
        parser = _PARSERS.get(key)
        if parser is None:
            raise InvalidParametersError("Unknown schedule parameter", {"key": key})
        if value is None:
            continue
        parsed = parser(value)
        if parsed is None:
            raise InvalidParametersError("Unparseable schedule parameter", {"key": key, "value": value})
        changes[key] = parsed
    return replace(loan.schedule_params(), **changes)


def rebuild_after_change(
    loan: Loan,
    schedule: Sequence[ScheduleItem],
    new_params: Union[ScheduleParams, Mapping[str, Any]],
) -> List[ScheduleItem]:
    """Build the schedule for the merged parameters and restore paid rows.

    Raises ``ScheduleTypeLockedError`` when the schedule type would change
    while any row is paid, since the paid months were accounted for under the
    old method.
    """
    validate_schedule(schedule)
    params = merge_params(loan, new_params)
    paid_rows = {item.month_number: item for item in schedule if item.paid}
    if paid_rows and params.schedule_type != loan.schedule_type:
        raise ScheduleTypeLockedError(loan.schedule_type, params.schedule_type, len(paid_rows))

    rebuilt = []
    for item in build_schedule(params):
        prior = paid_rows.get(item.month_number)
        if prior is not None:
            item = replace(item, paid=True, paid_amount=prior.paid_amount, paid_at=prior.paid_at)
        rebuilt.append(item)
    return rebuilt

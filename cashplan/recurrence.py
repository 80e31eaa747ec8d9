import logging
import math
from datetime import date, timedelta
from itertools import takewhile
from typing import Iterator, Optional, Union

from dateutil.relativedelta import relativedelta, MO, TU, WE, TH, FR, SA, SU

from cashplan.models import DAYS_OF_WEEK, IncomeEvent, Obligation, RecurringIncomeRule

logger = logging.getLogger(__name__)

_WEEKDAYS = (MO, TU, WE, TH, FR, SA, SU)


def clamp_to_month(year: int, month: int, day: int) -> date:
    """Return `day` in the given month, clamped to the month's last day (31 -> Apr 30)."""
    return date(year, month, 1) + relativedelta(day=day)


def last_day_of_month(d: date) -> date:
    return d + relativedelta(day=31)


def last_business_day_of_month(d: date) -> date:
    last = last_day_of_month(d)
    if last.weekday() >= 5:
        last += relativedelta(weekday=FR(-1))
    return last


def _month_index(d: date) -> int:
    return d.year * 12 + d.month - 1


def _in_active_range(obligation: Obligation, d: date) -> bool:
    if obligation.start_month and _month_index(d) < _month_index(obligation.start_month):
        return False
    if obligation.end_month and _month_index(d) > _month_index(obligation.end_month):
        return False
    return True


def _resolve_monthly_bill(obligation: Obligation, reference_date: date) -> Optional[date]:
    month = reference_date.replace(day=1)
    if obligation.start_month and _month_index(month) < _month_index(obligation.start_month):
        month = obligation.start_month.replace(day=1)

    candidate = clamp_to_month(month.year, month.month, obligation.due_day)
    if candidate < reference_date:
        month += relativedelta(months=1)
        candidate = clamp_to_month(month.year, month.month, obligation.due_day)

    if not _in_active_range(obligation, candidate):
        return None
    return candidate


def resolve_next_occurrence(
        rule: Union[Obligation, RecurringIncomeRule],
        reference_date: date,
) -> Optional[date]:
    """Resolve the next concrete date for a bill or a recurring income rule.

    One-time bills always resolve to their stored date, even when it is in the
    past. Day-of-month bills resolve to the due day in the reference month, or
    the following month when that day is already behind the reference date.
    Income rules resolve to the first stride-aligned occurrence on or after the
    reference date, or None once the rule has ended.
    """
    if isinstance(rule, RecurringIncomeRule):
        return next(iter_income_occurrences(rule, reference_date), None)

    if rule.due_date is not None:
        return rule.due_date
    if rule.due_day is not None:
        return _resolve_monthly_bill(rule, reference_date)
    return None


def monthly_occurrences_between(obligation: Obligation, start: date, end: date) -> list[date]:
    """Due-day candidates of every calendar month touching [start, end] that fall inside it."""
    if obligation.due_day is None:
        return []

    result = []
    month = start.replace(day=1)
    while month <= end:
        candidate = clamp_to_month(month.year, month.month, obligation.due_day)
        if start <= candidate <= end and _in_active_range(obligation, candidate):
            result.append(candidate)
        month += relativedelta(months=1)
    return result


def is_overdue(obligation: Obligation, today: date) -> bool:
    if obligation.is_deferred:
        return False
    resolved = resolve_next_occurrence(obligation, today)
    return resolved is not None and resolved < today


def _monthly_placement(rule: RecurringIncomeRule, month_start: date) -> date:
    if rule.last_business_day_of_month:
        return last_business_day_of_month(month_start)
    if rule.last_day_of_month:
        return last_day_of_month(month_start)
    return clamp_to_month(month_start.year, month_start.month, rule.day_of_month)


def iter_income_occurrences(rule: RecurringIncomeRule, from_date: date) -> Iterator[date]:
    """Yield the rule's occurrences on or after `from_date`, ascending.

    Occurrences are counted in strides of `interval` weeks or months from the
    rule's start date. Iteration stops before `end_date`.
    """
    if rule.unit == "week":
        weekday = _WEEKDAYS[DAYS_OF_WEEK[rule.day_of_week]]
        anchor = rule.start_date + relativedelta(weekday=weekday)
        stride = timedelta(weeks=rule.interval)
        k = 0
        if from_date > anchor:
            k = math.ceil((from_date - anchor).days / stride.days)
        current = anchor + stride * k
        while rule.end_date is None or current < rule.end_date:
            yield current
            current += stride
        return

    start_month = rule.start_date.replace(day=1)
    k = 0
    if from_date > rule.start_date:
        months_between = _month_index(from_date) - _month_index(start_month)
        k = max(0, months_between // rule.interval - 1)

    while True:
        current = _monthly_placement(rule, start_month + relativedelta(months=k * rule.interval))
        if rule.end_date is not None and current >= rule.end_date:
            return
        if current >= rule.start_date and current >= from_date:
            yield current
        k += 1


def income_occurrences(rule: RecurringIncomeRule, start: date, end: date) -> list[date]:
    return list(takewhile(lambda d: d <= end, iter_income_occurrences(rule, start)))


def expand_deposits(
        rules: list[RecurringIncomeRule] | tuple[RecurringIncomeRule, ...],
        deposits: list[IncomeEvent] | tuple[IncomeEvent, ...],
        start: date,
        end: date,
) -> list[IncomeEvent]:
    """Standalone deposits plus one generated deposit per rule occurrence in [start, end]."""
    events = list(deposits)
    for rule in rules:
        dates = income_occurrences(rule, start, end)
        logger.debug("Rule %s produced %d occurrence(s) between %s and %s", rule.id, len(dates), start, end)
        for d in dates:
            events.append(IncomeEvent(
                id=f"{rule.id}-{d.isoformat()}",
                amount=rule.amount,
                date=d,
                name=f"Recurring: ${rule.amount:,.2f}",
                source_rule_id=rule.id,
            ))
    return events


def _ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        return f"{n}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def describe_rule(rule: RecurringIncomeRule) -> str:
    interval_text = "" if rule.interval == 1 else f"every {rule.interval} "
    unit_text = rule.unit if rule.interval == 1 else f"{rule.unit}s"

    if rule.unit == "week":
        return f"{interval_text}{unit_text} on {rule.day_of_week.capitalize()}"
    if rule.last_business_day_of_month:
        return f"{interval_text}{unit_text} on last business day"
    if rule.last_day_of_month:
        return f"{interval_text}{unit_text} on last day"
    return f"{interval_text}{unit_text} on the {_ordinal(rule.day_of_month)}"

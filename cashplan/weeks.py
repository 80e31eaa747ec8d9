import logging
from dataclasses import replace
from datetime import date, timedelta
from typing import Iterable

from dateutil.relativedelta import relativedelta, SU

from cashplan.models import BillOccurrence, BucketResult, IncomeEvent, Obligation, WeekWindow
from cashplan.recurrence import is_overdue, monthly_occurrences_between

logger = logging.getLogger(__name__)

DEFAULT_WEEK_COUNT = 6


def week_start(d: date) -> date:
    """Sunday on or before `d`."""
    return d + relativedelta(weekday=SU(-1))


def build_weeks(count: int, offset_weeks: int, reference_date: date) -> list[WeekWindow]:
    if count < 0:
        raise ValueError(f"Week count cannot be negative, got {count}")
    first = week_start(reference_date + timedelta(weeks=offset_weeks))
    return [WeekWindow(start_date=first + timedelta(weeks=i)) for i in range(count)]


def current_amount_due(obligation: Obligation) -> float:
    """Amount a bill contributes to a week's total.

    Variable bills take the first non-zero of minimum due, updated balance and
    statement balance.
    """
    if obligation.is_variable:
        return (
            obligation.statement_minimum_due
            or obligation.updated_balance
            or obligation.statement_balance
            or 0.0
        )
    return obligation.amount or 0.0


def amount_paid(obligation: Obligation) -> float:
    return sum(p.amount for p in obligation.payments)


def amount_remaining(obligation: Obligation) -> float:
    return max(0.0, current_amount_due(obligation) - amount_paid(obligation))


def is_paid(obligation: Obligation) -> bool:
    due = current_amount_due(obligation)
    return due > 0 and amount_paid(obligation) >= due


def partition_obligations(
        obligations: Iterable[Obligation],
        today: date,
) -> tuple[list[Obligation], list[Obligation], list[Obligation]]:
    """Split bills into (scheduled, deferred, overdue); each bill lands in exactly one list."""
    scheduled, deferred, overdue = [], [], []
    for ob in obligations:
        if ob.is_deferred:
            deferred.append(ob)
        elif is_overdue(ob, today):
            overdue.append(ob)
        else:
            scheduled.append(ob)
    return scheduled, deferred, overdue


def _occurrences_in_window(ob: Obligation, window: WeekWindow) -> list[date]:
    if ob.due_date is not None:
        return [ob.due_date] if window.contains(ob.due_date) else []
    # a window can straddle two months, so both months' due days are candidates
    return monthly_occurrences_between(ob, window.start_date, window.end_date)


def assign_obligations(
        obligations: Iterable[Obligation],
        weeks: list[WeekWindow],
        today: date,
) -> BucketResult:
    scheduled, deferred, overdue = partition_obligations(obligations, today)

    placed: list[list[BillOccurrence]] = [[] for _ in weeks]
    for ob in scheduled:
        for i, window in enumerate(weeks):
            for d in _occurrences_in_window(ob, window):
                placed[i].append(BillOccurrence(obligation=ob, due_date=d, amount=current_amount_due(ob)))

    new_weeks = []
    for window, bills in zip(weeks, placed):
        bills = list(window.bills) + bills
        new_weeks.append(replace(
            window,
            bills=tuple(bills),
            total_bills=sum(b.amount for b in bills),
        ))

    logger.debug(
        "Bucketed %d scheduled, %d deferred, %d overdue bill(s) into %d week(s)",
        len(scheduled), len(deferred), len(overdue), len(weeks),
    )
    return BucketResult(weeks=new_weeks, deferred=deferred, overdue=overdue)


def assign_deposits(deposits: Iterable[IncomeEvent], weeks: list[WeekWindow]) -> list[WeekWindow]:
    placed: list[list[IncomeEvent]] = [[] for _ in weeks]
    for deposit in deposits:
        if deposit.date is None:
            continue
        for i, window in enumerate(weeks):
            if window.contains(deposit.date):
                placed[i].append(deposit)
                break

    new_weeks = []
    for window, found in zip(weeks, placed):
        found = list(window.deposits) + found
        new_weeks.append(replace(
            window,
            deposits=tuple(found),
            total_income=sum(d.amount for d in found),
        ))
    return new_weeks

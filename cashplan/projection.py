import logging
from dataclasses import replace
from datetime import date, timedelta
from typing import Sequence

from cashplan.budgets import week_expense_deduction
from cashplan.models import CashFlowReport, Snapshot, WeekWindow
from cashplan.recurrence import expand_deposits
from cashplan.weeks import DEFAULT_WEEK_COUNT, assign_deposits, assign_obligations, build_weeks

logger = logging.getLogger(__name__)


def _check_contiguous(weeks: Sequence[WeekWindow]):
    for prev, nxt in zip(weeks, weeks[1:]):
        if nxt.start_date != prev.start_date + timedelta(days=7):
            raise ValueError(
                f"Weeks must be contiguous and in order: {prev.start_date} is followed by {nxt.start_date}"
            )


def project(
        weeks: Sequence[WeekWindow],
        income_by_week: Sequence[float],
        deduction_by_week: Sequence[float],
) -> list[WeekWindow]:
    """Propagate the carryover balance forward through the weeks.

    Each week's available money is its income plus the carryover minus the
    expense deduction. Whatever is left after bills carries into the next week;
    a shortfall is dropped rather than carried as debt.
    """
    if not len(weeks) == len(income_by_week) == len(deduction_by_week):
        raise ValueError(
            f"Got {len(weeks)} weeks, {len(income_by_week)} income totals "
            f"and {len(deduction_by_week)} deductions"
        )
    _check_contiguous(weeks)

    result = []
    carryover = 0.0
    for window, income, deduction in zip(weeks, income_by_week, deduction_by_week):
        available = income + carryover - deduction
        projected = replace(
            window,
            total_income=income,
            expense_deduction=deduction,
            total_deposits=available,
            carryover_balance=carryover,
        )
        result.append(projected)
        carryover = max(projected.remainder, 0.0)
    return result


def project_cash_flow(
        snapshot: Snapshot,
        reference_date: date,
        count: int = DEFAULT_WEEK_COUNT,
        offset_weeks: int = 0,
        today: date | None = None,
) -> CashFlowReport:
    """Run the whole weekly pipeline over one snapshot.

    `today` decides which one-time bills are overdue and defaults to
    `reference_date`.
    """
    today = today or reference_date
    weeks = build_weeks(count, offset_weeks, reference_date)
    bucketed = assign_obligations(snapshot.obligations, weeks, today)
    if not weeks:
        return CashFlowReport(weeks=[], deferred=bucketed.deferred, overdue=bucketed.overdue)

    deposits = expand_deposits(
        snapshot.income_rules, snapshot.deposits, weeks[0].start_date, weeks[-1].end_date
    )
    weeks = assign_deposits(deposits, bucketed.weeks)

    income = [w.total_income for w in weeks]
    deductions = [week_expense_deduction(snapshot.budgets, snapshot.purchases, w) for w in weeks]
    weeks = project(weeks, income, deductions)

    logger.debug(
        "Projected %d week(s) from %s, final carryover %.2f",
        len(weeks), weeks[0].start_date, max(weeks[-1].remainder, 0.0),
    )
    return CashFlowReport(weeks=weeks, deferred=bucketed.deferred, overdue=bucketed.overdue)

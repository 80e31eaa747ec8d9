import logging
import math
from datetime import date
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta

from cashplan.models import Allocation, Goal, GoalProjection, IncomeSource

logger = logging.getLogger(__name__)

# Fixed weeks-per-month approximation; monthly figures are not calendar-exact.
WEEKS_PER_MONTH = 4.33
DEFAULT_DAYS_PER_WEEK = 5


def monthly_income(source: IncomeSource) -> float:
    if source.cadence == "per_project":
        # project payments are entered as a monthly figure already
        return source.project_amount or 0.0

    if source.cadence == "daily_varying":
        weekly = sum((source.daily_pay_by_weekday or {}).values())
        return weekly * WEEKS_PER_MONTH

    days = source.days_per_week if source.days_per_week is not None else DEFAULT_DAYS_PER_WEEK
    return (source.daily_pay or 0.0) * days * WEEKS_PER_MONTH


def allocated_amount(allocation: Allocation, source: IncomeSource) -> float:
    if allocation.mode == "fixed_amount":
        return allocation.fixed_amount or 0.0
    if allocation.mode == "percentage":
        return monthly_income(source) * (allocation.percentage or 0.0) / 100
    return monthly_income(source)


def goal_deadline(goal: Goal) -> Optional[date]:
    """Concrete deadline from whichever of due date, due month or due week is set."""
    if goal.due_date is not None:
        return goal.due_date
    if goal.due_month is not None:
        return goal.due_month + relativedelta(day=31)
    if goal.due_week:
        year, week = goal.due_week.split("-W")
        return date.fromisocalendar(int(year), int(week), 7)
    return None


def monthly_contribution(goal: Goal, sources: Iterable[IncomeSource]) -> float:
    by_id = {s.id: s for s in sources}
    total = goal.bank_balance_amount if goal.use_bank_balance else 0.0
    for allocation in goal.allocations:
        source = by_id.get(allocation.source_id)
        if source is None:
            logger.debug("Goal %s: skipping allocation from unknown source %s", goal.id, allocation.source_id)
            continue
        total += allocated_amount(allocation, source)
    return total


def _months_until_max(today: date) -> int:
    return (date.max.year - today.year) * 12 + date.max.month - today.month


def project_goal(goal: Goal, sources: Iterable[IncomeSource], today: date) -> GoalProjection:
    total = monthly_contribution(goal, sources)
    can_afford = total >= goal.target_amount

    if can_afford:
        projected_date = today
    elif total > 0:
        months = goal.target_amount / total
        if not math.isfinite(months) or months > _months_until_max(today):
            logger.debug("Goal %s: %s month(s) runs past the calendar, no projected date", goal.id, months)
            projected_date = None
        else:
            projected_date = today + relativedelta(months=math.ceil(months))
    else:
        projected_date = None

    deadline = goal_deadline(goal)
    meets_deadline = None
    if deadline is not None:
        meets_deadline = projected_date is not None and projected_date <= deadline

    return GoalProjection(
        can_afford=can_afford,
        projected_date=projected_date,
        shortfall=0.0 if can_afford else goal.target_amount - total,
        surplus=total - goal.target_amount if can_afford else 0.0,
        monthly_total=total,
        deadline=deadline,
        meets_deadline=meets_deadline,
    )


def remaining_bank_balance(bank_balance: float, goals: Iterable[Goal]) -> float:
    committed = sum(g.bank_balance_amount for g in goals if g.use_bank_balance and not g.is_paid)
    return bank_balance - committed

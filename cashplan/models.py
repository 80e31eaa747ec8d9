from __future__ import annotations
import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional, Literal, Mapping


Priority = Literal["low", "medium", "high"]
RecurrenceUnit = Literal["week", "month"]
AllocationMode = Literal["all", "percentage", "fixed_amount"]
PayCadence = Literal["daily_fixed", "daily_varying", "per_project"]

PRIORITIES = ("low", "medium", "high")
RECURRENCE_UNITS = ("week", "month")
ALLOCATION_MODES = ("all", "percentage", "fixed_amount")
PAY_CADENCES = ("daily_fixed", "daily_varying", "per_project")

# date.weekday() numbering, Monday == 0
DAYS_OF_WEEK = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


class RuleValidationError(ValueError):
    """Raised when a record combines incompatible or out-of-range fields."""


def _is_day_number(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 1 <= value <= 31


@dataclass(frozen=True)
class Payment:
    amount: float
    payment_date: date


@dataclass(frozen=True)
class Obligation:
    id: str
    name: str = ""
    amount: Optional[float] = None
    priority: Priority = "medium"
    due_date: Optional[date] = None
    due_day: Optional[int] = None
    deferred: bool = False
    is_variable: bool = False
    statement_balance: Optional[float] = None
    statement_minimum_due: Optional[float] = None
    updated_balance: Optional[float] = None
    start_month: Optional[date] = None
    end_month: Optional[date] = None
    category_id: Optional[str] = None
    payments: tuple[Payment, ...] = ()

    def __post_init__(self):
        if self.due_date is not None and self.due_day is not None:
            raise RuleValidationError(
                f"Bill {self.id!r} has both a one-time due date and a recurring due day"
            )
        if self.due_day is not None and not _is_day_number(self.due_day):
            raise RuleValidationError(f"Bill {self.id!r}: due day must be 1-31, got {self.due_day}")
        if self.priority not in PRIORITIES:
            raise RuleValidationError(f"Bill {self.id!r}: unknown priority {self.priority!r}")
        if self.start_month and self.end_month and self.end_month < self.start_month:
            raise RuleValidationError(f"Bill {self.id!r}: end month is before start month")

    @property
    def is_recurring(self) -> bool:
        return self.due_day is not None

    @property
    def is_deferred(self) -> bool:
        return self.deferred or (self.due_date is None and self.due_day is None)


@dataclass(frozen=True)
class IncomeEvent:
    id: str
    amount: float
    date: Optional[date] = None
    name: str = ""
    source_rule_id: Optional[str] = None


@dataclass(frozen=True)
class RecurringIncomeRule:
    id: str
    amount: float
    unit: RecurrenceUnit
    start_date: date
    interval: int = 1
    day_of_week: Optional[str] = None
    day_of_month: Optional[int] = None
    last_day_of_month: bool = False
    last_business_day_of_month: bool = False
    end_date: Optional[date] = None

    def __post_init__(self):
        if self.unit not in RECURRENCE_UNITS:
            raise RuleValidationError(f"Rule {self.id!r}: unit must be 'week' or 'month', got {self.unit!r}")
        if isinstance(self.interval, bool) or not isinstance(self.interval, int) or self.interval < 1:
            raise RuleValidationError(f"Rule {self.id!r}: interval must be a whole number >= 1, got {self.interval!r}")

        monthly_fields = [
            name for name, is_set in (
                ("day_of_month", self.day_of_month is not None),
                ("last_day_of_month", self.last_day_of_month),
                ("last_business_day_of_month", self.last_business_day_of_month),
            ) if is_set
        ]

        if self.unit == "week":
            if monthly_fields:
                raise RuleValidationError(
                    f"Rule {self.id!r}: weekly rules cannot use {', '.join(monthly_fields)}"
                )
            if self.day_of_week is None:
                raise RuleValidationError(f"Rule {self.id!r}: weekly rules need a day of week")
            if self.day_of_week not in DAYS_OF_WEEK:
                raise RuleValidationError(f"Rule {self.id!r}: unknown day of week {self.day_of_week!r}")
        else:
            if self.day_of_week is not None:
                raise RuleValidationError(f"Rule {self.id!r}: monthly rules cannot use day_of_week")
            if len(monthly_fields) != 1:
                raise RuleValidationError(
                    f"Rule {self.id!r}: monthly rules need exactly one of "
                    f"day_of_month, last_day_of_month, last_business_day_of_month"
                )
            if self.day_of_month is not None and not _is_day_number(self.day_of_month):
                raise RuleValidationError(
                    f"Rule {self.id!r}: day of month must be 1-31, got {self.day_of_month}"
                )

        if self.end_date is not None and self.end_date < self.start_date:
            raise RuleValidationError(f"Rule {self.id!r}: end date is before start date")


@dataclass(frozen=True)
class CategoryBudget:
    id: str
    category_id: str
    amount: float
    effective_from: date
    effective_to: Optional[date] = None

    def __post_init__(self):
        if self.effective_to is not None and self.effective_to < self.effective_from:
            raise RuleValidationError(f"Budget {self.id!r}: effective_to is before effective_from")


@dataclass(frozen=True)
class CategoryPurchase:
    id: str
    category_id: str
    estimated_amount: Optional[float] = None
    actual_amount: Optional[float] = None
    purchase_date: Optional[date] = None

    @property
    def amount(self) -> float:
        if self.actual_amount:
            return self.actual_amount
        return self.estimated_amount or 0.0


@dataclass(frozen=True)
class BillOccurrence:
    obligation: Obligation
    due_date: date
    amount: float


@dataclass(frozen=True)
class WeekWindow:
    start_date: date
    bills: tuple[BillOccurrence, ...] = ()
    deposits: tuple[IncomeEvent, ...] = ()
    total_bills: float = 0.0
    total_income: float = 0.0
    expense_deduction: float = 0.0
    total_deposits: float = 0.0
    carryover_balance: float = 0.0

    @property
    def end_date(self) -> date:
        return self.start_date + timedelta(days=6)

    @property
    def remainder(self) -> float:
        return self.total_deposits - self.total_bills

    def contains(self, d: date) -> bool:
        return self.start_date <= d <= self.end_date


@dataclass(frozen=True)
class IncomeSource:
    id: str
    name: str = ""
    cadence: PayCadence = "daily_fixed"
    daily_pay: Optional[float] = None
    daily_pay_by_weekday: Optional[Mapping[str, float]] = None
    days_per_week: Optional[int] = None
    project_amount: Optional[float] = None
    project_cadence: Optional[str] = None

    def __post_init__(self):
        if self.cadence not in PAY_CADENCES:
            raise RuleValidationError(f"Income source {self.id!r}: unknown cadence {self.cadence!r}")
        if self.days_per_week is not None and not 0 <= self.days_per_week <= 7:
            raise RuleValidationError(
                f"Income source {self.id!r}: days per week must be 0-7, got {self.days_per_week}"
            )
        if self.daily_pay_by_weekday:
            unknown = set(self.daily_pay_by_weekday) - set(DAYS_OF_WEEK)
            if unknown:
                raise RuleValidationError(
                    f"Income source {self.id!r}: unknown weekdays {sorted(unknown)}"
                )


@dataclass(frozen=True)
class Allocation:
    source_id: str
    mode: AllocationMode = "all"
    percentage: Optional[float] = None
    fixed_amount: Optional[float] = None

    def __post_init__(self):
        if self.mode not in ALLOCATION_MODES:
            raise RuleValidationError(f"Unknown allocation mode {self.mode!r}")
        if self.percentage is not None and self.percentage < 0:
            raise RuleValidationError("Allocation percentage cannot be negative")
        if self.fixed_amount is not None and self.fixed_amount < 0:
            raise RuleValidationError("Allocation fixed amount cannot be negative")


@dataclass(frozen=True)
class Goal:
    id: str
    target_amount: float
    title: str = ""
    due_date: Optional[date] = None
    due_month: Optional[date] = None
    due_week: Optional[str] = None      # ISO week, 'YYYY-Www'
    allocations: tuple[Allocation, ...] = ()
    use_bank_balance: bool = False
    bank_balance_amount: float = 0.0
    is_paid: bool = False

    def __post_init__(self):
        if self.target_amount < 0:
            raise RuleValidationError(f"Goal {self.id!r}: target amount cannot be negative")
        if self.due_week is None:
            return
        if not isinstance(self.due_week, str) or not re.fullmatch(r"\d{4}-W(0[1-9]|[1-4]\d|5[0-3])", self.due_week):
            raise RuleValidationError(f"Goal {self.id!r}: due week must look like 'YYYY-Www', got {self.due_week!r}")
        # W53 only exists in some years
        year, week = self.due_week.split("-W")
        try:
            date.fromisocalendar(int(year), int(week), 7)
        except ValueError:
            raise RuleValidationError(f"Goal {self.id!r}: {self.due_week} does not exist") from None


@dataclass(frozen=True)
class GoalProjection:
    can_afford: bool
    projected_date: Optional[date]
    shortfall: float
    surplus: float
    monthly_total: float = 0.0
    deadline: Optional[date] = None
    meets_deadline: Optional[bool] = None


@dataclass(frozen=True)
class Snapshot:
    obligations: tuple[Obligation, ...] = ()
    deposits: tuple[IncomeEvent, ...] = ()
    income_rules: tuple[RecurringIncomeRule, ...] = ()
    budgets: tuple[CategoryBudget, ...] = ()
    purchases: tuple[CategoryPurchase, ...] = ()
    income_sources: tuple[IncomeSource, ...] = ()
    goals: tuple[Goal, ...] = ()
    bank_balance: float = 0.0

    def find_obligation(self, obligation_id: str) -> Obligation | None:
        for ob in self.obligations:
            if ob.id == obligation_id:
                return ob
        return None

    def find_goal(self, goal_id: str) -> Goal | None:
        for goal in self.goals:
            if goal.id == goal_id:
                return goal
        return None


@dataclass(frozen=True)
class BucketResult:
    weeks: list[WeekWindow]
    deferred: list[Obligation] = field(default_factory=list)
    overdue: list[Obligation] = field(default_factory=list)


@dataclass(frozen=True)
class CashFlowReport:
    weeks: list[WeekWindow]
    deferred: list[Obligation] = field(default_factory=list)
    overdue: list[Obligation] = field(default_factory=list)

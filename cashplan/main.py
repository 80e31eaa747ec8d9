from cashplan.goals import project_goal
from cashplan.models import (
    Allocation, CategoryBudget, CategoryPurchase, Goal, IncomeSource, Obligation,
    RecurringIncomeRule, Snapshot,
)
from cashplan.projection import project_cash_flow
from cashplan.storage import save_snapshot, load_snapshot
from datetime import date

today = date(2025, 6, 4)

snapshot = Snapshot(
    obligations=(
        Obligation("rent", "Rent", amount=1200.0, due_day=1, priority="high"),
        Obligation("phone", "Phone", amount=60.0, due_day=31),
        Obligation("card", "Credit card", is_variable=True, statement_balance=840.0,
                   statement_minimum_due=35.0, due_day=12),
        Obligation("dentist", "Dentist", amount=150.0, due_date=date(2025, 6, 18)),
        Obligation("couch", "Couch", amount=400.0, deferred=True),
    ),
    income_rules=(
        RecurringIncomeRule("pay", 950.0, "week", start_date=date(2025, 5, 30), interval=2, day_of_week="friday"),
        RecurringIncomeRule("side", 300.0, "month", start_date=date(2025, 1, 1), last_business_day_of_month=True),
    ),
    budgets=(
        CategoryBudget("b1", "groceries", 120.0, effective_from=date(2025, 1, 1)),
    ),
    purchases=(
        CategoryPurchase("p1", "groceries", actual_amount=165.0, purchase_date=date(2025, 6, 3)),
    ),
    income_sources=(
        IncomeSource("tips", "Tips", cadence="daily_fixed", daily_pay=40.0, days_per_week=4),
    ),
    goals=(
        Goal("car", 2500.0, title="Car repair", due_month=date(2025, 9, 1),
             allocations=(Allocation("tips", "percentage", percentage=50),),
             use_bank_balance=True, bank_balance_amount=500.0),
    ),
    bank_balance=1800.0,
)

report = project_cash_flow(snapshot, reference_date=today, count=4)
print("Weekly projection from June 2025:")
for week in report.weeks:
    print(week.start_date, week.end_date, [b.obligation.name for b in week.bills],
          round(week.total_bills, 2), round(week.total_deposits, 2), round(week.carryover_balance, 2))
print("Deferred:", [ob.name for ob in report.deferred])

print(project_goal(snapshot.goals[0], snapshot.income_sources, today))

# Save test
save_snapshot(snapshot, "demo_snapshot")

# Confirm restore
restored = load_snapshot("demo_snapshot")
print("Same projection after loading:", project_cash_flow(restored, today, count=4) == report)

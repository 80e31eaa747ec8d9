from typing import Iterable, Optional

from cashplan.models import CategoryBudget, CategoryPurchase, WeekWindow


def active_budget(
        budgets: Iterable[CategoryBudget],
        category_id: str,
        window: WeekWindow,
) -> Optional[CategoryBudget]:
    """The budget covering the whole window; the latest effective_from wins."""
    candidates = [
        b for b in budgets
        if b.category_id == category_id
        and b.effective_from <= window.start_date
        and (b.effective_to is None or b.effective_to >= window.end_date)
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda b: b.effective_from)


def resolve_budget(budgets: Iterable[CategoryBudget], category_id: str, window: WeekWindow) -> float:
    budget = active_budget(budgets, category_id, window)
    return budget.amount if budget else 0.0


def actual_spend(purchases: Iterable[CategoryPurchase], category_id: str, window: WeekWindow) -> float:
    return sum(
        p.amount for p in purchases
        if p.category_id == category_id
        and p.purchase_date is not None
        and window.contains(p.purchase_date)
    )


def category_deduction(
        budgets: Iterable[CategoryBudget],
        purchases: Iterable[CategoryPurchase],
        category_id: str,
        window: WeekWindow,
) -> float:
    # whichever is larger, so overspending still shows up in the projection
    return max(
        resolve_budget(budgets, category_id, window),
        actual_spend(purchases, category_id, window),
    )


def week_expense_deduction(
        budgets: Iterable[CategoryBudget],
        purchases: Iterable[CategoryPurchase],
        window: WeekWindow,
) -> float:
    budgets = list(budgets)
    purchases = list(purchases)
    category_ids = {b.category_id for b in budgets} | {p.category_id for p in purchases}
    return sum(category_deduction(budgets, purchases, cid, window) for cid in sorted(category_ids))

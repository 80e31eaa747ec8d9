import json
import os
from pathlib import Path
from datetime import date
from typing import Any, Callable, Optional

from .models import (
    Allocation, CategoryBudget, CategoryPurchase, Goal, IncomeEvent, IncomeSource,
    Obligation, Payment, RecurringIncomeRule, Snapshot,
)


SAVES_DIR = Path(os.environ.get("CASHPLAN_SAVES_DIR", "saves"))
SNAPSHOT_VERSION = "1.0"


class EnhancedJSONEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, date):
            return obj.isoformat()
        return super().default(obj)


def parse_date(value: Any) -> Optional[date]:
    """ISO date or None; anything unparsable is treated as missing."""
    if isinstance(value, date):
        return value
    if not value or not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def list_save_files():
    return [f.stem for f in SAVES_DIR.glob("*.json")]


def snapshot_to_dict(snapshot: Snapshot) -> dict:
    return {
        "metadata": {
            "version": SNAPSHOT_VERSION,
            "created": date.today().isoformat(),
        },
        "bank_balance": snapshot.bank_balance,
        "bills": [
            {
                "id": ob.id,
                "name": ob.name,
                "amount": ob.amount,
                "priority": ob.priority,
                "due_date": ob.due_date,
                "due_day": ob.due_day,
                "deferred": ob.deferred,
                "is_variable": ob.is_variable,
                "statement_balance": ob.statement_balance,
                "statement_minimum_due": ob.statement_minimum_due,
                "updated_balance": ob.updated_balance,
                "start_month": ob.start_month,
                "end_month": ob.end_month,
                "category_id": ob.category_id,
                "payments": [
                    {"amount": p.amount, "payment_date": p.payment_date} for p in ob.payments
                ],
            } for ob in snapshot.obligations
        ],
        "deposits": [
            {
                "id": d.id,
                "amount": d.amount,
                "date": d.date,
                "name": d.name,
            } for d in snapshot.deposits
        ],
        "income_rules": [
            {
                "id": r.id,
                "amount": r.amount,
                "unit": r.unit,
                "interval": r.interval,
                "day_of_week": r.day_of_week,
                "day_of_month": r.day_of_month,
                "last_day_of_month": r.last_day_of_month,
                "last_business_day_of_month": r.last_business_day_of_month,
                "start_date": r.start_date,
                "end_date": r.end_date,
            } for r in snapshot.income_rules
        ],
        "budgets": [
            {
                "id": b.id,
                "category_id": b.category_id,
                "amount": b.amount,
                "effective_from": b.effective_from,
                "effective_to": b.effective_to,
            } for b in snapshot.budgets
        ],
        "purchases": [
            {
                "id": p.id,
                "category_id": p.category_id,
                "estimated_amount": p.estimated_amount,
                "actual_amount": p.actual_amount,
                "purchase_date": p.purchase_date,
            } for p in snapshot.purchases
        ],
        "income_sources": [
            {
                "id": s.id,
                "name": s.name,
                "cadence": s.cadence,
                "daily_pay": s.daily_pay,
                "daily_pay_by_weekday": dict(s.daily_pay_by_weekday) if s.daily_pay_by_weekday else None,
                "days_per_week": s.days_per_week,
                "project_amount": s.project_amount,
                "project_cadence": s.project_cadence,
            } for s in snapshot.income_sources
        ],
        "goals": [
            {
                "id": g.id,
                "title": g.title,
                "target_amount": g.target_amount,
                "due_date": g.due_date,
                "due_month": g.due_month,
                "due_week": g.due_week,
                "use_bank_balance": g.use_bank_balance,
                "bank_balance_amount": g.bank_balance_amount,
                "is_paid": g.is_paid,
                "allocations": [
                    {
                        "source_id": a.source_id,
                        "mode": a.mode,
                        "percentage": a.percentage,
                        "fixed_amount": a.fixed_amount,
                    } for a in g.allocations
                ],
            } for g in snapshot.goals
        ],
    }


def _load_payments(bill_data: dict) -> tuple[Payment, ...]:
    payments = []
    for p_data in bill_data.get("payments", []):
        payment_date = parse_date(p_data.get("payment_date"))
        if payment_date is None or p_data.get("amount") is None:
            print(f"Warning: Skipping payment without a valid date or amount on bill {bill_data.get('id')}")
            continue
        payments.append(Payment(amount=p_data["amount"], payment_date=payment_date))
    return tuple(payments)


def _required_date(record: dict, key: str) -> date:
    value = parse_date(record.get(key))
    if value is None:
        raise KeyError(key)
    return value


def _load_records(items: list, kind: str, build: Callable[[dict], Any]) -> tuple:
    """Build each record, skipping ones that lack a required field.

    RuleValidationError is not caught here: a record that is present but
    contradictory fails the whole load.
    """
    records = []
    for data in items:
        try:
            records.append(build(data))
        except KeyError as e:
            print(f"Warning: Skipping {kind} {data.get('id')}: missing {e}")
    return tuple(records)


def _bill_from_dict(b: dict) -> Obligation:
    return Obligation(
        id=str(b["id"]),
        name=b.get("name", ""),
        amount=b.get("amount"),
        priority=b.get("priority", "medium"),
        due_date=parse_date(b.get("due_date")),
        due_day=b.get("due_day"),
        deferred=bool(b.get("deferred", False)),
        is_variable=bool(b.get("is_variable", False)),
        statement_balance=b.get("statement_balance"),
        statement_minimum_due=b.get("statement_minimum_due"),
        updated_balance=b.get("updated_balance"),
        start_month=parse_date(b.get("start_month")),
        end_month=parse_date(b.get("end_month")),
        category_id=b.get("category_id"),
        payments=_load_payments(b),
    )


def _deposit_from_dict(d: dict) -> IncomeEvent:
    return IncomeEvent(
        id=str(d["id"]),
        amount=d["amount"],
        date=parse_date(d.get("date")),
        name=d.get("name", ""),
    )


def _rule_from_dict(r: dict) -> RecurringIncomeRule:
    return RecurringIncomeRule(
        id=str(r["id"]),
        amount=r["amount"],
        unit=r["unit"],
        interval=r.get("interval", 1),
        day_of_week=r.get("day_of_week"),
        day_of_month=r.get("day_of_month"),
        last_day_of_month=bool(r.get("last_day_of_month", False)),
        last_business_day_of_month=bool(r.get("last_business_day_of_month", False)),
        start_date=_required_date(r, "start_date"),
        end_date=parse_date(r.get("end_date")),
    )


def _budget_from_dict(b: dict) -> CategoryBudget:
    return CategoryBudget(
        id=str(b["id"]),
        category_id=str(b["category_id"]),
        amount=b["amount"],
        effective_from=_required_date(b, "effective_from"),
        effective_to=parse_date(b.get("effective_to")),
    )


def _purchase_from_dict(p: dict) -> CategoryPurchase:
    return CategoryPurchase(
        id=str(p["id"]),
        category_id=str(p["category_id"]),
        estimated_amount=p.get("estimated_amount"),
        actual_amount=p.get("actual_amount"),
        purchase_date=parse_date(p.get("purchase_date")),
    )


def _source_from_dict(s: dict) -> IncomeSource:
    return IncomeSource(
        id=str(s["id"]),
        name=s.get("name", ""),
        cadence=s.get("cadence", "daily_fixed"),
        daily_pay=s.get("daily_pay"),
        daily_pay_by_weekday=s.get("daily_pay_by_weekday"),
        days_per_week=s.get("days_per_week"),
        project_amount=s.get("project_amount"),
        project_cadence=s.get("project_cadence"),
    )


def _goal_from_dict(g: dict) -> Goal:
    return Goal(
        id=str(g["id"]),
        title=g.get("title", ""),
        target_amount=g["target_amount"],
        due_date=parse_date(g.get("due_date")),
        due_month=parse_date(g.get("due_month")),
        due_week=g.get("due_week"),
        use_bank_balance=bool(g.get("use_bank_balance", False)),
        bank_balance_amount=g.get("bank_balance_amount", 0.0),
        is_paid=bool(g.get("is_paid", False)),
        allocations=tuple(
            Allocation(
                source_id=str(a["source_id"]),
                mode=a.get("mode", "all"),
                percentage=a.get("percentage"),
                fixed_amount=a.get("fixed_amount"),
            ) for a in g.get("allocations", [])
        ),
    )


def snapshot_from_dict(data: dict) -> Snapshot:
    """Build a snapshot from decoded JSON.

    Missing or unparsable optional dates load as None, which sends bills to the
    deferred list and keeps deposits and purchases out of every week. Records
    missing a required field (an id, an amount, a rule's start date or a
    budget's effective_from) are skipped with a warning. Malformed rules raise
    RuleValidationError.
    """
    return Snapshot(
        obligations=_load_records(data.get("bills", []), "bill", _bill_from_dict),
        deposits=_load_records(data.get("deposits", []), "deposit", _deposit_from_dict),
        income_rules=_load_records(data.get("income_rules", []), "income rule", _rule_from_dict),
        budgets=_load_records(data.get("budgets", []), "budget", _budget_from_dict),
        purchases=_load_records(data.get("purchases", []), "purchase", _purchase_from_dict),
        income_sources=_load_records(data.get("income_sources", []), "income source", _source_from_dict),
        goals=_load_records(data.get("goals", []), "goal", _goal_from_dict),
        bank_balance=data.get("bank_balance", 0.0),
    )


def save_snapshot(snapshot: Snapshot, save_name="default"):
    try:
        json_str = json.dumps(snapshot_to_dict(snapshot), cls=EnhancedJSONEncoder, indent=2)
        SAVES_DIR.mkdir(parents=True, exist_ok=True)
        save_path = SAVES_DIR / f"{save_name}.json"
        save_path.write_text(json_str)
        print(f"✓ Saved {len(snapshot.obligations)} bills and {len(snapshot.deposits)} deposits to '{save_name}'")
        return True
    except OSError as e:
        print(f"Error saving data: {e}")
        return False


def load_snapshot(save_name="default") -> Optional[Snapshot]:
    filepath = SAVES_DIR / f"{save_name}.json"
    if not filepath.exists():
        print(f"Save file '{save_name}' not found")
        return None

    try:
        data = json.loads(filepath.read_text())
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error loading data: {e}")
        return None

    snapshot = snapshot_from_dict(data)
    print(f"✓ Loaded {len(snapshot.obligations)} bills, {len(snapshot.income_rules)} income rules")
    return snapshot

import cmd
from datetime import date
from typing import Optional
from dateutil.relativedelta import relativedelta
from cashplan.budgets import active_budget, actual_spend, category_deduction
from cashplan.goals import project_goal, remaining_bank_balance
from cashplan.models import RecurringIncomeRule, Snapshot
from cashplan.projection import project_cash_flow
from cashplan.recurrence import describe_rule, resolve_next_occurrence
from cashplan.storage import save_snapshot, load_snapshot, list_save_files
from cashplan.weeks import DEFAULT_WEEK_COUNT, build_weeks, current_amount_due, partition_obligations


def format_week_label(start: date, end: date) -> str:
    return f"{start.strftime('%b')} {start.day} - {end.strftime('%b')} {end.day}"


class CashPlanCLI(cmd.Cmd):
    prompt = "(cashplan) "

    def __init__(self, snapshot: Optional[Snapshot] = None):
        super().__init__()
        self.intro = "Welcome to Cash Plan. Type 'help' for commands."
        self.snapshot = snapshot or Snapshot()

    # ===== PROJECTIONS =====
    def do_weeks(self, arg):
        """Project the coming weeks: weeks [count] [--offset N] [--date YYYY-MM-DD | --next-month]"""
        try:
            args = self._parse_weeks_args(arg)
            report = project_cash_flow(
                self.snapshot,
                reference_date=args['date'],
                count=args['count'],
                offset_weeks=args['offset'],
                today=date.today(),
            )
        except ValueError as e:
            print(f"Invalid input: {e}")
            return

        for week in report.weeks:
            print(f"\n{' ' + format_week_label(week.start_date, week.end_date) + ' ':-^50}")
            for bill in week.bills:
                print(f"  {bill.due_date.isoformat()}  {bill.obligation.name or bill.obligation.id:<24} ${bill.amount:,.2f}")
            print(f"  Bills:     ${week.total_bills:,.2f}")
            print(f"  Income:    ${week.total_income:,.2f}")
            print(f"  Expenses:  ${week.expense_deduction:,.2f}")
            print(f"  Carryover: ${week.carryover_balance:,.2f}")
            print(f"  Available: ${week.total_deposits:,.2f}")
            print(f"  Left:      ${week.remainder:,.2f}")

        if report.overdue:
            print(f"\n{len(report.overdue)} overdue bill(s) not shown, see 'overdue'")
        if report.deferred:
            print(f"{len(report.deferred)} deferred bill(s) not shown, see 'deferred'")

    def do_deferred(self, arg):
        """List bills left out of the weekly schedule: deferred"""
        _, deferred, _ = partition_obligations(self.snapshot.obligations, date.today())
        if not deferred:
            print("No deferred bills")
            return
        print("\nDeferred bills:")
        for ob in deferred:
            print(f"  {ob.id}: {ob.name} ${current_amount_due(ob):,.2f}")

    def do_overdue(self, arg):
        """List bills whose due date has passed: overdue [YYYY-MM-DD]"""
        try:
            today = self._parse_date_args(arg)['date']
        except ValueError as e:
            print(f"Invalid input: {e}")
            return
        _, _, overdue = partition_obligations(self.snapshot.obligations, today)
        if not overdue:
            print("No overdue bills")
            return
        print("\nOverdue bills:")
        for ob in overdue:
            days = (today - ob.due_date).days
            print(f"  {ob.id}: {ob.name} ${current_amount_due(ob):,.2f} (due {ob.due_date}, {days} days ago)")

    def do_next(self, arg):
        """Next due date of a bill or income rule: next <id> [YYYY-MM-DD]"""
        args = arg.split()
        if not args:
            print("Usage: next <id> [YYYY-MM-DD]")
            return
        try:
            ref = self._parse_date_args(" ".join(args[1:]))['date']
        except ValueError as e:
            print(f"Invalid input: {e}")
            return

        rule = self.snapshot.find_obligation(args[0])
        if rule is None:
            rule = next((r for r in self.snapshot.income_rules if r.id == args[0]), None)
        if rule is None:
            print(f"Nothing found with id {args[0]}")
            return

        resolved = resolve_next_occurrence(rule, ref)
        label = describe_rule(rule) if isinstance(rule, RecurringIncomeRule) else (rule.name or rule.id)
        if resolved is None:
            print(f"{label}: no upcoming date")
        else:
            print(f"{label}: next on {resolved.isoformat()}")

    def do_budget(self, arg):
        """Budget for a category in the week containing a date: budget <category> [YYYY-MM-DD]"""
        args = arg.split()
        if not args:
            print("Usage: budget <category> [YYYY-MM-DD]")
            return
        try:
            ref = self._parse_date_args(" ".join(args[1:]))['date']
        except ValueError as e:
            print(f"Invalid input: {e}")
            return

        window = build_weeks(1, 0, ref)[0]
        budget = active_budget(self.snapshot.budgets, args[0], window)
        spent = actual_spend(self.snapshot.purchases, args[0], window)
        deduction = category_deduction(self.snapshot.budgets, self.snapshot.purchases, args[0], window)

        print(f"\nWeek {format_week_label(window.start_date, window.end_date)}")
        if budget:
            print(f"  Budget: ${budget.amount:,.2f} (since {budget.effective_from})")
        else:
            print("  Budget: none active")
        print(f"  Spent:  ${spent:,.2f}")
        print(f"  Counted against the week: ${deduction:,.2f}")

    def do_goal(self, arg):
        """Check whether a goal is affordable: goal <id> [YYYY-MM-DD]"""
        args = arg.split()
        if not args:
            for g in self.snapshot.goals:
                print(f"  {g.id}: {g.title} ${g.target_amount:,.2f}")
            print(f"  Bank balance left: ${remaining_bank_balance(self.snapshot.bank_balance, self.snapshot.goals):,.2f}")
            return
        try:
            today = self._parse_date_args(" ".join(args[1:]))['date']
        except ValueError as e:
            print(f"Invalid input: {e}")
            return

        goal = self.snapshot.find_goal(args[0])
        if goal is None:
            print(f"Goal not found: {args[0]}")
            return

        result = project_goal(goal, self.snapshot.income_sources, today)
        print(f"\nMonthly toward goal: ${result.monthly_total:,.2f}")
        if result.can_afford:
            print(f"✓ Affordable now, ${result.surplus:,.2f} to spare")
        elif result.projected_date:
            print(f"Short by ${result.shortfall:,.2f}; reachable around {result.projected_date}")
        else:
            print(f"Short by ${result.shortfall:,.2f}; no income is allocated to this goal")
        if result.deadline:
            status = "on time" if result.meets_deadline else "misses the deadline"
            print(f"Deadline {result.deadline}: {status}")

    # ===== DATA MANAGEMENT =====
    def do_save(self, arg):
        """Save current snapshot: save [name=default]"""
        name = arg.strip() or "default"
        save_snapshot(self.snapshot, name)

    def do_load(self, arg):
        """Load a saved snapshot: load [name]"""
        saves = list_save_files()
        if not saves:
            print("No save files available")
            return

        if not arg:
            print("Available saves:")
            for i, name in enumerate(saves, 1):
                print(f"{i}. {name}")
            try:
                choice = int(input("Select save: ")) - 1
                name = saves[choice]
            except (ValueError, IndexError):
                print("Invalid selection")
                return
        else:
            name = arg.strip()

        try:
            snapshot = load_snapshot(name)
        except ValueError as e:
            print(f"Invalid data in '{name}': {e}")
            return
        if snapshot is not None:
            self.snapshot = snapshot

    # ===== UTILITIES =====
    def do_exit(self, arg):
        """Exit the program"""
        print("Goodbye!")
        return True

    # ===== HELPERS =====
    @staticmethod
    def _parse_date_args(arg):
        """Parse an optional reference date, defaulting to today"""
        args = arg.split()
        result = {'date': date.today()}

        if args:
            try:
                result['date'] = date.fromisoformat(args[0])
            except ValueError:
                raise ValueError("Date must be in YYYY-MM-DD format")

        return result

    @staticmethod
    def _parse_weeks_args(arg):
        """Parse arguments for the weekly projection"""
        args = arg.split()
        result = {
            'count': DEFAULT_WEEK_COUNT,
            'offset': 0,
            'date': date.today(),
        }

        i = 0
        while i < len(args):
            if args[i] == '--offset':
                if i+1 >= len(args):
                    raise ValueError("Missing number of weeks after --offset")
                result['offset'] = int(args[i+1])
                i += 2
            elif args[i] == '--date':
                if i+1 >= len(args):
                    raise ValueError("Missing date after --date")
                result['date'] = date.fromisoformat(args[i+1])
                i += 2
            elif args[i] == '--next-month':
                result['date'] = date.today() + relativedelta(months=1, day=1)
                i += 1
            elif args[i].startswith('--'):
                raise ValueError(f"Unknown flag: {args[i]}")
            else:
                result['count'] = int(args[i])
                i += 1

        return result


def main():
    CashPlanCLI().cmdloop()


if __name__ == "__main__":
    main()

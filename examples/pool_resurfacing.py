"""
Pool Resurfacing Example - Budget reallocation across a fiscal year

This example demonstrates:
- Creating an FY2026 budget and parking a maintenance item in March
- Linking a deposit and a final invoice to the item
- Watching the planned amount follow the real spending
- Deleting the payments and getting the original plan back
"""

import tempfile
from datetime import date
from decimal import Decimal
from pathlib import Path

from clubfin import ClubFinance, SQLiteDocumentStore
from clubfin.budget.models import BudgetBucket, MonthlyBudget
from clubfin.fiscal.calendar import fiscal_month_name
from clubfin.transactions.models import TransactionInput

FY = 2026


def show_opex(club: ClubFinance, months: list[int]) -> None:
    budget = club.get_budget(FY)
    for month in months:
        name = fiscal_month_name(month, FY).month_name
        print(f"  {name:<9} OPEX ${budget.bucket(month, BudgetBucket.OPEX)}")


def pay(club: ClubFinance, item_id: str, on: date, amount: str, complete: bool = False) -> str:
    result = club.save_transaction(
        TransactionInput(
            date=on,
            amount=Decimal(amount),
            type="expense",
            expense_type="OPEX",
            description="Pool resurfacing",
            major_maintenance_item_id=item_id,
            mark_item_complete=complete,
        )
    )
    print(f"✓ Paid ${amount} on {on}: {result.transaction.id}")
    return result.transaction.id


def main() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        club = ClubFinance(SQLiteDocumentStore(Path(tmpdir) / "club.db"))

        club.create_budget(
            FY,
            monthly_budgets=[MonthlyBudget(opex=Decimal("1000")) for _ in range(12)],
            starting_balance=Decimal("25000"),
        )
        pool = club.add_maintenance_item(
            FY,
            "Pool resurfacing",
            Decimal("12000"),
            month=5,
            recurrence_years_min=7,
            recurrence_years_max=10,
        )
        print(f"✓ Planned {pool.name}: ${pool.budget_amount} in March")
        show_opex(club, [5, 6])

        print("\nPaying the deposit and the final invoice...")
        deposit = pay(club, pool.id, date(2026, 3, 10), "3000")
        final = pay(club, pool.id, date(2026, 4, 10), "9000", complete=True)
        show_opex(club, [5, 6])

        item = club.get_maintenance_item(pool.id)
        print(f"\nNext resurfacing due {item.next_due_date_min} - {item.next_due_date_max}")
        print(f"Expected cost: ${item.next_expected_cost}")

        print("\nDeleting both payments...")
        club.delete_transaction(final)
        club.delete_transaction(deposit)
        show_opex(club, [5, 6])


if __name__ == "__main__":
    main()

"""Annual budgets and the projections derived from them"""

from clubfin.budget.models import BudgetBucket, BudgetDocument, MonthlyBudget, budget_doc_id

__all__ = ["BudgetBucket", "BudgetDocument", "MonthlyBudget", "budget_doc_id"]

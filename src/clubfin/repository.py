"""
Finance Repository - Typed access to the document store collections

Maps the four collections to their pydantic models. The repository is
bound to whatever DocumentStore it is given: a backend for plain reads,
or a StoreTransaction so that every write of a save lands in one batch.
"""

from typing import Any

from clubfin.budget.models import BudgetDocument, budget_doc_id
from clubfin.kernel.store import DocumentStore
from clubfin.ledger.models import CapexProject, MaintenanceItem, TrackedItem
from clubfin.transactions.models import Transaction

TRANSACTIONS = "transactions"
MAJOR_MAINTENANCE = "major_maintenance"
CAPEX_PROJECTS = "capex_projects"
BUDGETS = "budgets"

ITEM_COLLECTIONS: dict[str, str] = {
    "maintenance": MAJOR_MAINTENANCE,
    "capex": CAPEX_PROJECTS,
}


def _dump(model: Any, **extra: Any) -> dict[str, Any]:
    return {**model.model_dump(mode="json"), **extra}


class FinanceRepository:
    """Typed get/save/delete/list over a DocumentStore"""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    # Transactions

    def get_transaction(self, transaction_id: str) -> Transaction | None:
        document = self.store.get(TRANSACTIONS, transaction_id)
        return Transaction.model_validate(document) if document else None

    def save_transaction(self, transaction: Transaction) -> None:
        self.store.set(TRANSACTIONS, transaction.id, _dump(transaction))

    def delete_transaction(self, transaction_id: str) -> None:
        self.store.delete(TRANSACTIONS, transaction_id)

    def list_transactions(self, fiscal_year: int | None = None) -> list[Transaction]:
        filters: dict[str, Any] = {}
        if fiscal_year is not None:
            filters["fiscal_year"] = fiscal_year
        documents = self.store.query(TRANSACTIONS, **filters)
        transactions = [Transaction.model_validate(doc) for doc in documents]
        return sorted(transactions, key=lambda txn: (txn.date, txn.id))

    def transactions_linked_to(self, kind: str, item_id: str) -> list[Transaction]:
        field = "major_maintenance_item_id" if kind == "maintenance" else "capex_project_id"
        documents = self.store.query(TRANSACTIONS, **{field: item_id})
        return sorted(
            (Transaction.model_validate(doc) for doc in documents),
            key=lambda txn: (txn.date, txn.id),
        )

    # Maintenance items and CAPEX projects

    def get_item(self, kind: str, item_id: str) -> TrackedItem | None:
        """Resolve an item by id across all fiscal years"""
        document = self.store.get(ITEM_COLLECTIONS[kind], item_id)
        if document is None:
            return None
        if kind == "maintenance":
            return MaintenanceItem.model_validate(document)
        return CapexProject.model_validate(document)

    def get_maintenance_item(self, item_id: str) -> MaintenanceItem | None:
        document = self.store.get(MAJOR_MAINTENANCE, item_id)
        return MaintenanceItem.model_validate(document) if document else None

    def get_capex_project(self, project_id: str) -> CapexProject | None:
        document = self.store.get(CAPEX_PROJECTS, project_id)
        return CapexProject.model_validate(document) if document else None

    def save_item(self, item: TrackedItem) -> None:
        self.store.set(ITEM_COLLECTIONS[item.item_kind], item.id, _dump(item))

    def delete_item(self, item: TrackedItem) -> None:
        self.store.delete(ITEM_COLLECTIONS[item.item_kind], item.id)

    def list_maintenance_items(self, fiscal_year: int | None = None) -> list[MaintenanceItem]:
        filters = {"fiscal_year": fiscal_year} if fiscal_year is not None else {}
        documents = self.store.query(MAJOR_MAINTENANCE, **filters)
        return sorted(
            (MaintenanceItem.model_validate(doc) for doc in documents),
            key=lambda item: (item.fiscal_year, item.month, item.name),
        )

    def list_capex_projects(self, fiscal_year: int | None = None) -> list[CapexProject]:
        filters = {"fiscal_year": fiscal_year} if fiscal_year is not None else {}
        documents = self.store.query(CAPEX_PROJECTS, **filters)
        return sorted(
            (CapexProject.model_validate(doc) for doc in documents),
            key=lambda project: (project.fiscal_year, project.month, project.name),
        )

    # Budgets

    def get_budget(self, fiscal_year: int) -> BudgetDocument | None:
        document = self.store.get(BUDGETS, budget_doc_id(fiscal_year))
        if document is None:
            return None
        document.pop("id", None)
        return BudgetDocument.model_validate(document)

    def save_budget(self, budget: BudgetDocument) -> None:
        # query() keys documents on "id", so budgets carry theirs in the body
        self.store.set(BUDGETS, budget.doc_id, _dump(budget, id=budget.doc_id))

    def list_budgets(self) -> list[BudgetDocument]:
        budgets = []
        for document in self.store.query(BUDGETS):
            document.pop("id", None)
            budgets.append(BudgetDocument.model_validate(document))
        return sorted(budgets, key=lambda budget: budget.fiscal_year)

"""
Tests for the document store backends and the unit of work

Both backends must behave the same, so most tests run against each.
"""

from pathlib import Path

import pytest

from clubfin.kernel.errors import StoreError
from clubfin.kernel.store import InMemoryDocumentStore, SQLiteDocumentStore, WriteOp


@pytest.fixture(params=["memory", "sqlite"])
def store(request, temp_db: Path):
    if request.param == "memory":
        return InMemoryDocumentStore()
    return SQLiteDocumentStore(temp_db)


# ========== Basic operations ==========


def test_set_and_get(store) -> None:
    store.set("budgets", "budget_2026", {"id": "budget_2026", "fiscal_year": 2026})
    assert store.get("budgets", "budget_2026") == {"id": "budget_2026", "fiscal_year": 2026}
    assert store.get("budgets", "budget_2027") is None


def test_merge_set(store) -> None:
    store.set("budgets", "b", {"id": "b", "starting_balance": "100", "notes": "x"})
    store.set("budgets", "b", {"starting_balance": "200"}, merge=True)
    assert store.get("budgets", "b") == {"id": "b", "starting_balance": "200", "notes": "x"}


def test_query_by_field(store) -> None:
    store.set("transactions", "t1", {"id": "t1", "fiscal_year": 2026})
    store.set("transactions", "t2", {"id": "t2", "fiscal_year": 2027})
    store.set("transactions", "t3", {"id": "t3", "fiscal_year": 2026})

    ids = sorted(doc["id"] for doc in store.query("transactions", fiscal_year=2026))
    assert ids == ["t1", "t3"]
    assert len(store.query("transactions")) == 3
    assert store.query("missing_collection") == []


def test_delete(store) -> None:
    store.set("transactions", "t1", {"id": "t1"})
    store.delete("transactions", "t1")
    assert store.get("transactions", "t1") is None
    assert store.count("transactions") == 0


def test_returned_documents_are_copies() -> None:
    store = InMemoryDocumentStore()
    store.set("budgets", "b", {"id": "b", "months": [1, 2]})
    document = store.get("budgets", "b")
    document["months"].append(3)
    assert store.get("budgets", "b") == {"id": "b", "months": [1, 2]}


def test_set_without_document_rejected(store) -> None:
    with pytest.raises(StoreError):
        store.batch_write([WriteOp(op="set", collection="budgets", doc_id="b")])


# ========== Unit of work ==========


def test_transaction_commits_all_writes(store) -> None:
    with store.transaction() as tx:
        tx.set("transactions", "t1", {"id": "t1"})
        tx.set("budgets", "b", {"id": "b"})
        # staged writes are visible inside the unit of work
        assert tx.get("transactions", "t1") == {"id": "t1"}
        assert store.get("transactions", "t1") is None

    assert store.get("transactions", "t1") == {"id": "t1"}
    assert store.get("budgets", "b") == {"id": "b"}


def test_transaction_rolls_back_on_error(store) -> None:
    store.set("budgets", "b", {"id": "b", "value": 1})

    with pytest.raises(RuntimeError):
        with store.transaction() as tx:
            tx.set("budgets", "b", {"id": "b", "value": 2})
            tx.set("transactions", "t1", {"id": "t1"})
            raise RuntimeError("boom")

    assert store.get("budgets", "b") == {"id": "b", "value": 1}
    assert store.get("transactions", "t1") is None


def test_transaction_query_sees_staged_changes(store) -> None:
    store.set("transactions", "t1", {"id": "t1", "fiscal_year": 2026})
    store.set("transactions", "t2", {"id": "t2", "fiscal_year": 2026})

    with store.transaction() as tx:
        tx.delete("transactions", "t1")
        tx.set("transactions", "t3", {"id": "t3", "fiscal_year": 2026})
        tx.set("transactions", "t2", {"id": "t2", "fiscal_year": 2027})
        ids = sorted(doc["id"] for doc in tx.query("transactions", fiscal_year=2026))

    assert ids == ["t3"]


def test_last_staged_write_wins(store) -> None:
    with store.transaction() as tx:
        tx.set("budgets", "b", {"id": "b", "value": 1})
        tx.set("budgets", "b", {"id": "b", "value": 2})
        assert len(tx.pending_ops) == 1

    assert store.get("budgets", "b") == {"id": "b", "value": 2}


def test_commit_twice_rejected() -> None:
    store = InMemoryDocumentStore()
    with store.transaction() as tx:
        tx.set("budgets", "b", {"id": "b"})
    with pytest.raises(StoreError):
        tx.commit()


# ========== SQLite specifics ==========


def test_sqlite_persists_across_instances(temp_db: Path) -> None:
    SQLiteDocumentStore(temp_db).set("budgets", "b", {"id": "b", "fiscal_year": 2026})
    reopened = SQLiteDocumentStore(temp_db)
    assert reopened.get("budgets", "b") == {"id": "b", "fiscal_year": 2026}


def test_sqlite_batch_is_atomic(temp_db: Path) -> None:
    store = SQLiteDocumentStore(temp_db)
    store.set("budgets", "b", {"id": "b", "value": 1})

    ops = [
        WriteOp(op="set", collection="budgets", doc_id="b", document={"id": "b", "value": 2}),
        WriteOp(op="set", collection="budgets", doc_id="bad"),
    ]
    with pytest.raises(StoreError):
        store.batch_write(ops)

    assert store.get("budgets", "b") == {"id": "b", "value": 1}

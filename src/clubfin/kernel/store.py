"""
Document Store - Collection-scoped JSON documents

The engine only needs a narrow document-store surface: get, query by field
equality, set (optionally merging), delete, and an atomic batch write.
Two backends are provided:

- InMemoryDocumentStore: for tests and scripting
- SQLiteDocumentStore: single-file persistence for the CLI and health server

transaction() wraps either backend in a unit of work. Reads see the writes
staged so far, and commit is a single batch_write, so a transaction, its
linked item and the budget documents it moves money in are saved together
or not at all.
"""

import copy
import json
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal, Protocol

from pydantic import BaseModel

from clubfin.kernel.errors import StoreError
from clubfin.kernel.logging import get_logger
from clubfin.kernel.metrics import store_writes_total
from clubfin.kernel.retry import retry_on_sqlite_lock

logger = get_logger(__name__)

Document = dict[str, Any]


class WriteOp(BaseModel):
    """One write inside a batch"""

    op: Literal["set", "delete"]
    collection: str
    doc_id: str
    document: Document | None = None
    merge: bool = False


class DocumentStore(Protocol):
    """Protocol shared by the store backends and StoreTransaction"""

    def get(self, collection: str, doc_id: str) -> Document | None: ...

    def query(self, collection: str, **equals: Any) -> list[Document]: ...

    def set(
        self, collection: str, doc_id: str, document: Document, merge: bool = False
    ) -> None: ...

    def delete(self, collection: str, doc_id: str) -> None: ...


def _matches(document: Document, equals: dict[str, Any]) -> bool:
    return all(document.get(field) == value for field, value in equals.items())


class StoreTransaction:
    """
    Unit of work over a store backend

    Writes are staged in memory keyed by (collection, doc_id); the last
    write to a key wins. Nothing reaches the backend until commit().
    """

    def __init__(self, base: "InMemoryDocumentStore | SQLiteDocumentStore") -> None:
        self._base = base
        # (collection, doc_id) -> document, or None for a staged delete
        self._staged: dict[tuple[str, str], Document | None] = {}
        self.committed = False

    def get(self, collection: str, doc_id: str) -> Document | None:
        key = (collection, doc_id)
        if key in self._staged:
            staged = self._staged[key]
            return copy.deepcopy(staged) if staged is not None else None
        return self._base.get(collection, doc_id)

    def query(self, collection: str, **equals: Any) -> list[Document]:
        results: dict[str, Document] = {}
        for document in self._base.query(collection, **equals):
            results[document["id"]] = document

        for (coll, doc_id), staged in self._staged.items():
            if coll != collection:
                continue
            results.pop(doc_id, None)
            if staged is not None and _matches(staged, equals):
                results[doc_id] = copy.deepcopy(staged)

        return list(results.values())

    def set(
        self, collection: str, doc_id: str, document: Document, merge: bool = False
    ) -> None:
        if merge:
            merged = self.get(collection, doc_id) or {}
            merged.update(document)
            document = merged
        self._staged[(collection, doc_id)] = copy.deepcopy(document)

    def delete(self, collection: str, doc_id: str) -> None:
        self._staged[(collection, doc_id)] = None

    @property
    def pending_ops(self) -> list[WriteOp]:
        ops: list[WriteOp] = []
        for (collection, doc_id), staged in self._staged.items():
            if staged is None:
                ops.append(WriteOp(op="delete", collection=collection, doc_id=doc_id))
            else:
                ops.append(
                    WriteOp(op="set", collection=collection, doc_id=doc_id, document=staged)
                )
        return ops

    def commit(self) -> None:
        """Write every staged change to the backend in one atomic batch"""
        if self.committed:
            raise StoreError("Transaction already committed")
        ops = self.pending_ops
        if ops:
            self._base.batch_write(ops)
        self.committed = True
        logger.debug("Store transaction committed", op_count=len(ops))


class InMemoryDocumentStore:
    """
    Dictionary-backed document store

    Documents are deep-copied on the way in and out, so callers can never
    mutate stored state by accident.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, Document]] = {}
        self._lock = threading.Lock()

    def get(self, collection: str, doc_id: str) -> Document | None:
        document = self._collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(document) if document is not None else None

    def query(self, collection: str, **equals: Any) -> list[Document]:
        return [
            copy.deepcopy(document)
            for document in self._collections.get(collection, {}).values()
            if _matches(document, equals)
        ]

    def set(
        self, collection: str, doc_id: str, document: Document, merge: bool = False
    ) -> None:
        self.batch_write(
            [WriteOp(op="set", collection=collection, doc_id=doc_id, document=document, merge=merge)]
        )

    def delete(self, collection: str, doc_id: str) -> None:
        self.batch_write([WriteOp(op="delete", collection=collection, doc_id=doc_id)])

    def batch_write(self, ops: list[WriteOp]) -> None:
        """Apply all ops to a copy, then swap it in (all or nothing)"""
        with self._lock:
            working = copy.deepcopy(self._collections)
            for op in ops:
                docs = working.setdefault(op.collection, {})
                if op.op == "delete":
                    docs.pop(op.doc_id, None)
                else:
                    if op.document is None:
                        raise StoreError(f"Set without document for {op.collection}/{op.doc_id}")
                    new_doc = copy.deepcopy(op.document)
                    if op.merge and op.doc_id in docs:
                        merged = docs[op.doc_id]
                        merged.update(new_doc)
                        new_doc = merged
                    docs[op.doc_id] = new_doc
            self._collections = working

        for op in ops:
            store_writes_total.labels(collection=op.collection, op=op.op).inc()

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        """Unit of work; committed only if the block exits without error"""
        tx = StoreTransaction(self)
        yield tx
        tx.commit()

    def count(self, collection: str) -> int:
        return len(self._collections.get(collection, {}))


class SQLiteDocumentStore:
    """
    SQLite-based document store

    Schema:
    - documents table: (collection, doc_id) primary key, JSON body,
      updated_at timestamp
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize document store with SQLite database

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        """Create tables if they don't exist"""
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    doc_id TEXT NOT NULL,
                    body_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (collection, doc_id)
                )
            """)
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections"""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def get(self, collection: str, doc_id: str) -> Document | None:
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT body_json FROM documents WHERE collection = ? AND doc_id = ?",
                (collection, doc_id),
            )
            row = cursor.fetchone()
            return json.loads(row["body_json"]) if row else None

    def query(self, collection: str, **equals: Any) -> list[Document]:
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT body_json FROM documents WHERE collection = ? ORDER BY doc_id",
                (collection,),
            )
            documents = [json.loads(row["body_json"]) for row in cursor.fetchall()]
        return [document for document in documents if _matches(document, equals)]

    def set(
        self, collection: str, doc_id: str, document: Document, merge: bool = False
    ) -> None:
        self.batch_write(
            [WriteOp(op="set", collection=collection, doc_id=doc_id, document=document, merge=merge)]
        )

    def delete(self, collection: str, doc_id: str) -> None:
        self.batch_write([WriteOp(op="delete", collection=collection, doc_id=doc_id)])

    @retry_on_sqlite_lock()
    def batch_write(self, ops: list[WriteOp]) -> None:
        """Apply all ops inside one SQLite transaction"""
        now = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")
                for op in ops:
                    if op.op == "delete":
                        conn.execute(
                            "DELETE FROM documents WHERE collection = ? AND doc_id = ?",
                            (op.collection, op.doc_id),
                        )
                        continue

                    if op.document is None:
                        raise StoreError(f"Set without document for {op.collection}/{op.doc_id}")
                    document = op.document
                    if op.merge:
                        cursor = conn.execute(
                            "SELECT body_json FROM documents WHERE collection = ? AND doc_id = ?",
                            (op.collection, op.doc_id),
                        )
                        row = cursor.fetchone()
                        if row:
                            document = {**json.loads(row["body_json"]), **op.document}

                    conn.execute(
                        """
                        INSERT INTO documents (collection, doc_id, body_json, updated_at)
                        VALUES (?, ?, ?, ?)
                        ON CONFLICT(collection, doc_id) DO UPDATE SET
                            body_json = excluded.body_json,
                            updated_at = excluded.updated_at
                    """,
                        (op.collection, op.doc_id, json.dumps(document), now),
                    )
                conn.commit()

            except sqlite3.OperationalError:
                conn.rollback()
                raise

            except StoreError:
                conn.rollback()
                raise

            except Exception as e:
                conn.rollback()
                raise StoreError(f"Batch write failed: {e}") from e

        for op in ops:
            store_writes_total.labels(collection=op.collection, op=op.op).inc()

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        """Unit of work; committed only if the block exits without error"""
        tx = StoreTransaction(self)
        yield tx
        tx.commit()

    def count(self, collection: str) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT COUNT(*) FROM documents WHERE collection = ?", (collection,)
            )
            return cursor.fetchone()[0]

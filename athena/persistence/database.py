"""
SQLite-backed document store.

Documents are kept as JSON text in a single ``documents`` table keyed by
(collection, id); predicates are evaluated on the decoded documents.
"""

import json
import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from ..core.enums import Collection
from ..core.exceptions import StoreError
from ..core.interfaces import ChangeCallback, Document, EntityStore, Predicate, matches_all
from .subscriptions import SubscriptionRegistry

logger = logging.getLogger(__name__)


class SQLiteEntityStore(EntityStore):
    """SQLite implementation of the entity store."""

    def __init__(self, database_path: str = "athena.db"):
        self._database_path = database_path
        self._lock = threading.RLock()
        self._subscriptions = SubscriptionRegistry()
        self._closed = False
        try:
            self._connection = sqlite3.connect(database_path, check_same_thread=False)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open database {database_path}: {str(e)}", error_code="STORE_UNAVAILABLE")
        self._initialize_database()

    def _initialize_database(self) -> None:
        """Initialize the database with the documents table."""
        with self._cursor() as cursor:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (collection, id)
                )
            """)

    @contextmanager
    def _cursor(self):
        """Yield a cursor inside a transaction; SQLite errors become StoreError."""
        with self._lock:
            if self._closed:
                raise StoreError(f"Database {self._database_path} is closed", error_code="STORE_CLOSED")
            try:
                cursor = self._connection.cursor()
                yield cursor
                self._connection.commit()
            except sqlite3.Error as e:
                self._connection.rollback()
                raise StoreError(f"Database error: {str(e)}", error_code="STORE_IO")

    def query(self, collection: Collection, predicates: Sequence[Predicate] = ()) -> List[Document]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT data FROM documents WHERE collection = ? ORDER BY rowid",
                (collection.value,),
            )
            rows = cursor.fetchall()

        documents = []
        for (data,) in rows:
            try:
                document = json.loads(data)
            except json.JSONDecodeError:
                logger.warning("Skipping malformed document in %s", collection.value)
                continue
            if matches_all(document, predicates):
                documents.append(document)
        return documents

    def subscribe(self, collection: Collection, predicates: Sequence[Predicate],
                  on_change: ChangeCallback) -> str:
        return self._subscriptions.add(collection, predicates, on_change)

    def unsubscribe(self, token: str) -> bool:
        return self._subscriptions.remove(token)

    def put(self, collection: Collection, document: Document) -> Document:
        stored = dict(document)
        stored["id"] = str(stored.get("id") or uuid.uuid4())
        try:
            data = json.dumps(stored, default=str)
        except (TypeError, ValueError) as e:
            raise StoreError(f"Document is not serializable: {str(e)}", error_code="STORE_ENCODE")

        with self._cursor() as cursor:
            before = self._fetch(cursor, collection, stored["id"])
            # Upsert keeps the rowid, so replaced documents keep their position.
            cursor.execute("""
                INSERT INTO documents (collection, id, data, updated_at) VALUES (?, ?, ?, ?)
                ON CONFLICT (collection, id) DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at
            """, (collection.value, stored["id"], data, datetime.now(timezone.utc).isoformat()))

        stored = json.loads(data)
        self._publish(collection, before, stored)
        return stored

    def delete(self, collection: Collection, document_id: str) -> bool:
        with self._cursor() as cursor:
            before = self._fetch(cursor, collection, document_id)
            cursor.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (collection.value, document_id),
            )
        if before is None:
            return False
        self._publish(collection, before, None)
        return True

    def close(self) -> None:
        with self._lock:
            if not self._closed:
                self._closed = True
                self._connection.close()

    @staticmethod
    def _fetch(cursor, collection: Collection, document_id: str) -> Optional[Document]:
        cursor.execute(
            "SELECT data FROM documents WHERE collection = ? AND id = ?",
            (collection.value, document_id),
        )
        row = cursor.fetchone()
        return json.loads(row[0]) if row else None

    def _publish(self, collection: Collection, before: Optional[Document], after: Optional[Document]) -> None:
        affected = self._subscriptions.affected(collection, before, after)
        self._subscriptions.deliver(affected, self.query)

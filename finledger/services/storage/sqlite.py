"""
SQLite Storage Implementation

DESIGN DECISION: SQLite is the embedded backend because:
1. The store is single-process and single-writer
2. No server setup required
3. One file is the whole store, easy to copy aside

TRADEOFFS:
- Records are stored as JSON documents, one table per collection, so
  queries filter in Python (fine for personal-finance volumes)
- No cross-collection transactions (bulk operations are step sequences)

AUTOINCREMENT keeps ids monotonic: sqlite never hands out an id again,
even after a collection is cleared.
"""

import sqlite3
from typing import Any, Optional, Sequence

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finledger.config import get_settings
from finledger.models.ledger import Collection, LedgerRecord
from finledger.services.storage.codec import (
    check_record_type,
    json_to_record,
    record_to_json,
)
from finledger.services.storage.interface import (
    ConflictError,
    ConnectionError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)


SCHEMA_VERSION = 1

# Retry "database is locked" and friends, nothing else
transient_retry = retry(
    retry=retry_if_exception_type(sqlite3.OperationalError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
    reraise=True,
)


def _schema_sql() -> str:
    statements = [
        f"""
        CREATE TABLE IF NOT EXISTS {collection.table_name} (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            document TEXT NOT NULL
        );
        """
        for collection in Collection
    ]
    return "\n".join(statements)


class SQLiteLedgerStorage(LedgerStorageInterface):
    """
    SQLite implementation of ledger storage.

    One table per collection; each row is (id, JSON document).
    """

    def __init__(self, database_path: Optional[str] = None):
        self._path = database_path or get_settings().store.database_path
        self._conn: Optional[sqlite3.Connection] = None

    @transient_retry
    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        if self._path != ":memory:":
            conn.execute("PRAGMA journal_mode=WAL")
        conn.executescript(_schema_sql())
        version = conn.execute("PRAGMA user_version").fetchone()[0]
        if version < SCHEMA_VERSION:
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        conn.commit()
        return conn

    def connect(self) -> sqlite3.Connection:
        """Open the database (once) and make sure every table exists."""
        if self._conn is None:
            try:
                self._conn = self._open()
            except sqlite3.Error as e:
                raise ConnectionError(f"Failed to open ledger database {self._path}: {e}")
        return self._conn

    @property
    def schema_version(self) -> int:
        return self.connect().execute("PRAGMA user_version").fetchone()[0]

    @transient_retry
    def _write(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        conn = self.connect()
        try:
            cursor = conn.execute(sql, params)
            conn.commit()
            return cursor
        except sqlite3.Error:
            conn.rollback()
            raise

    @transient_retry
    def _write_many(self, statements: list[tuple[str, Sequence[Any]]]) -> None:
        conn = self.connect()
        try:
            for sql, params in statements:
                conn.execute(sql, params)
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise

    def _read(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        return self.connect().execute(sql, params).fetchall()

    @staticmethod
    def _insert_statement(collection: Collection, record: LedgerRecord) -> tuple[str, Sequence[Any]]:
        document = record_to_json(record)
        if record.id is None:
            return f"INSERT INTO {collection.table_name} (document) VALUES (?)", (document,)
        return (
            f"INSERT INTO {collection.table_name} (id, document) VALUES (?, ?)",
            (record.id, document),
        )

    async def insert(self, collection: Collection, record: LedgerRecord) -> LedgerRecord:
        """Insert a record, letting sqlite assign the id when it has none."""
        check_record_type(collection, record)
        sql, params = self._insert_statement(collection, record)
        try:
            cursor = self._write(sql, params)
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"{collection.value} record {record.id} already exists: {e}")
        except sqlite3.Error as e:
            raise StorageError(f"Failed to insert into {collection.value}: {e}")
        return json_to_record(collection, cursor.lastrowid, params[-1])

    async def bulk_insert(
        self,
        collection: Collection,
        records: Sequence[LedgerRecord],
    ) -> int:
        """Insert many records in one transaction."""
        statements = []
        for record in records:
            check_record_type(collection, record)
            statements.append(self._insert_statement(collection, record))
        try:
            self._write_many(statements)
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"Duplicate id while bulk inserting {collection.value}: {e}")
        except sqlite3.Error as e:
            raise StorageError(f"Failed to bulk insert into {collection.value}: {e}")
        return len(statements)

    async def get(self, collection: Collection, record_id: int) -> Optional[LedgerRecord]:
        try:
            rows = self._read(
                f"SELECT id, document FROM {collection.table_name} WHERE id = ?",
                (record_id,),
            )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to get {collection.value} record: {e}")
        if not rows:
            return None
        return json_to_record(collection, rows[0]["id"], rows[0]["document"])

    async def replace(self, collection: Collection, record: LedgerRecord) -> LedgerRecord:
        check_record_type(collection, record)
        if record.id is None:
            raise NotFoundError(f"{collection.value} record has no id")
        document = record_to_json(record)
        try:
            cursor = self._write(
                f"UPDATE {collection.table_name} SET document = ? WHERE id = ?",
                (document, record.id),
            )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to update {collection.value} record: {e}")
        if cursor.rowcount == 0:
            raise NotFoundError(f"{collection.value} record not found: {record.id}")
        return json_to_record(collection, record.id, document)

    async def delete(self, collection: Collection, record_id: int) -> bool:
        try:
            cursor = self._write(
                f"DELETE FROM {collection.table_name} WHERE id = ?",
                (record_id,),
            )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to delete {collection.value} record: {e}")
        return cursor.rowcount > 0

    async def list_records(self, collection: Collection) -> list[LedgerRecord]:
        try:
            rows = self._read(
                f"SELECT id, document FROM {collection.table_name} ORDER BY id"
            )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to list {collection.value}: {e}")
        return [json_to_record(collection, row["id"], row["document"]) for row in rows]

    async def count(self, collection: Collection) -> int:
        try:
            rows = self._read(f"SELECT COUNT(*) AS n FROM {collection.table_name}")
        except sqlite3.Error as e:
            raise StorageError(f"Failed to count {collection.value}: {e}")
        return rows[0]["n"]

    async def clear(self, collection: Collection) -> int:
        try:
            cursor = self._write(f"DELETE FROM {collection.table_name}")
        except sqlite3.Error as e:
            raise StorageError(f"Failed to clear {collection.value}: {e}")
        return cursor.rowcount

    async def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

"""
Storage Backend Module

Document storage for ledger records: one JSON document per record, grouped
in named tables. In-memory storage backs the tests, SQLite backs
persistence. Monetary values are stored as Decimal strings.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterator, List, Optional, Any, Union
from decimal import Decimal
from datetime import datetime
import copy
import sqlite3
import json
import threading
from dataclasses import dataclass, asdict
from enum import Enum
from pathlib import Path
from contextlib import contextmanager


Document = Dict[str, Any]


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Document:
        """Flatten to JSON-ready values: ISO timestamps, Decimal strings, enum values"""
        result = asdict(self)
        for key, value in result.items():
            if isinstance(value, datetime):
                result[key] = value.isoformat()
            elif isinstance(value, Decimal):
                result[key] = str(value)
            elif isinstance(value, Enum):
                result[key] = value.value
        return result


class StorageInterface(ABC):
    """
    Tables of JSON documents keyed by record ID

    Backends return copies; mutating a loaded document never changes the
    stored one. ``load_all`` and ``find`` yield documents in write order.
    """

    @abstractmethod
    def save(self, table: str, record_id: str, data: Document) -> None:
        """Insert or replace a document"""

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Document]:
        """Document by ID, or None"""

    @abstractmethod
    def load_all(self, table: str) -> List[Document]:
        """Every document in a table"""

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Remove a document; False when it was not there"""

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Document]:
        """Documents whose fields equal every filter value"""

    @abstractmethod
    def count(self, table: str) -> int:
        pass

    @abstractmethod
    def clear_table(self, table: str) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def exists(self, table: str, record_id: str) -> bool:
        return self.load(table, record_id) is not None

    def delete_where(self, table: str, filters: Dict[str, Any]) -> int:
        """Delete every document matching filters, returning how many went"""
        return sum(1 for document in self.find(table, filters)
                   if self.delete(table, document['id']))

    def begin_transaction(self) -> None:
        pass

    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        pass

    @contextmanager
    def atomic(self):
        """Run the enclosed writes as one unit: all persist or none do"""
        self.begin_transaction()
        try:
            yield
            self.commit()
        except Exception:
            self.rollback()
            raise


def _matches(document: Document, filters: Dict[str, Any]) -> bool:
    return all(key in document and document[key] == value for key, value in filters.items())


class InMemoryStorage(StorageInterface):
    """Dictionary-backed storage for tests and throwaway runs"""

    def __init__(self):
        self._tables: Dict[str, Dict[str, Document]] = {}
        self._lock = threading.RLock()
        self._snapshot: Optional[Dict[str, Dict[str, Document]]] = None

    def _table(self, table: str) -> Dict[str, Document]:
        return self._tables.setdefault(table, {})

    def save(self, table: str, record_id: str, data: Document) -> None:
        # JSON round trip stores exactly what SQLite would
        document = json.loads(json.dumps(data, default=str))
        with self._lock:
            self._table(table)[record_id] = document

    def load(self, table: str, record_id: str) -> Optional[Document]:
        with self._lock:
            document = self._table(table).get(record_id)
            return copy.deepcopy(document) if document is not None else None

    def load_all(self, table: str) -> List[Document]:
        return self.find(table, {})

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            return self._table(table).pop(record_id, None) is not None

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            return record_id in self._table(table)

    def find(self, table: str, filters: Dict[str, Any]) -> List[Document]:
        with self._lock:
            return [copy.deepcopy(document) for document in self._table(table).values()
                    if _matches(document, filters)]

    def count(self, table: str) -> int:
        with self._lock:
            return len(self._table(table))

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._tables[table] = {}

    def begin_transaction(self) -> None:
        with self._lock:
            if self._snapshot is None:
                self._snapshot = copy.deepcopy(self._tables)

    def commit(self) -> None:
        with self._lock:
            self._snapshot = None

    def rollback(self) -> None:
        """Put back every table as it was at begin_transaction"""
        with self._lock:
            if self._snapshot is not None:
                self._tables = self._snapshot
                self._snapshot = None

    def close(self) -> None:
        pass


class SQLiteStorage(StorageInterface):
    """
    SQLite storage, one row per document

    Rows keep the JSON document in ``data``; equality filters run in SQL
    through ``json_extract``. Write order is the rowid order of first insert.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        # Writes open a transaction implicitly and stay pending until commit()
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False,
                                           isolation_level='DEFERRED')
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._in_transaction = False
        self._known_tables: set = set()

        if self.db_path != ":memory:":
            self._connection.execute("PRAGMA journal_mode = WAL")
            self._connection.execute("PRAGMA synchronous = NORMAL")

    def _ensure_table(self, table: str) -> None:
        if table in self._known_tables:
            return
        self._connection.execute(
            f"CREATE TABLE IF NOT EXISTS {table} ("
            "seq INTEGER PRIMARY KEY AUTOINCREMENT, "
            "id TEXT NOT NULL UNIQUE, "
            "data TEXT NOT NULL)"
        )
        self._known_tables.add(table)

    @contextmanager
    def _cursor(self, table: str, write: bool = False) -> Iterator[sqlite3.Cursor]:
        with self._lock:
            self._ensure_table(table)
            yield self._connection.cursor()
            if write and not self._in_transaction:
                self._connection.commit()

    def save(self, table: str, record_id: str, data: Document) -> None:
        document = json.dumps(data, default=str)
        with self._cursor(table, write=True) as cursor:
            # Upsert in place so the row keeps its position in write order
            cursor.execute(
                f"INSERT INTO {table} (id, data) VALUES (?, ?) "
                "ON CONFLICT(id) DO UPDATE SET data = excluded.data",
                (record_id, document)
            )

    def load(self, table: str, record_id: str) -> Optional[Document]:
        with self._cursor(table) as cursor:
            row = cursor.execute(f"SELECT data FROM {table} WHERE id = ?", (record_id,)).fetchone()
            return json.loads(row['data']) if row else None

    def load_all(self, table: str) -> List[Document]:
        return self.find(table, {})

    def delete(self, table: str, record_id: str) -> bool:
        with self._cursor(table, write=True) as cursor:
            return cursor.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,)).rowcount > 0

    def find(self, table: str, filters: Dict[str, Any]) -> List[Document]:
        where, params = self._where(filters)
        with self._cursor(table) as cursor:
            rows = cursor.execute(f"SELECT data FROM {table}{where} ORDER BY seq", params).fetchall()
            return [json.loads(row['data']) for row in rows]

    def delete_where(self, table: str, filters: Dict[str, Any]) -> int:
        where, params = self._where(filters)
        with self._cursor(table, write=True) as cursor:
            return cursor.execute(f"DELETE FROM {table}{where}", params).rowcount

    def count(self, table: str) -> int:
        with self._cursor(table) as cursor:
            return cursor.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    def clear_table(self, table: str) -> None:
        with self._cursor(table, write=True) as cursor:
            cursor.execute(f"DELETE FROM {table}")

    @staticmethod
    def _where(filters: Dict[str, Any]):
        if not filters:
            return "", ()
        clauses = " AND ".join("json_extract(data, ?) = ?" for _ in filters)
        params = []
        for key, value in filters.items():
            params.extend((f"$.{key}", value))
        return f" WHERE {clauses}", tuple(params)

    def begin_transaction(self) -> None:
        with self._lock:
            self._in_transaction = True

    def commit(self) -> None:
        with self._lock:
            if self._in_transaction:
                self._connection.commit()
                self._in_transaction = False

    def rollback(self) -> None:
        with self._lock:
            if self._in_transaction:
                self._connection.rollback()
                self._in_transaction = False
                # Tables created inside the transaction may be gone again
                self._known_tables.clear()

    def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(database_url: str) -> StorageInterface:
    """
    Build a storage backend from a database URL.

    ``memory://`` gives an in-memory store; ``sqlite:///path.db`` (or
    ``sqlite:///:memory:``) gives SQLite.
    """
    if database_url.startswith("memory://"):
        return InMemoryStorage()
    if database_url.startswith("sqlite:///"):
        return SQLiteStorage(database_url[len("sqlite:///"):] or ":memory:")
    raise ValueError(f"Unsupported database URL: {database_url}")

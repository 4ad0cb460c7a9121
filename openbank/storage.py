"""
Storage Backend Module

Provides abstract document-store interface and implementations for in-memory
(testing) and SQLite (persistence). Every backend supports an all-or-nothing
atomic unit; nested atomic() calls join the enclosing unit.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Sequence, Tuple, Union
from datetime import datetime
import sqlite3
import json
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from contextlib import contextmanager

from .errors import StoreUnavailable


_FIELD_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _check_identifier(name: str) -> str:
    """Table and field names are interpolated into SQL, so restrict them"""
    if not _FIELD_NAME.match(name):
        raise ValueError(f"Invalid identifier: {name!r}")
    return name


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: str
    created_at: datetime
    updated_at: datetime


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert or replace a record"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record by id"""
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records whose fields equal every filter value"""
        pass

    @abstractmethod
    def query(
        self,
        table: str,
        filters: Dict[str, Any],
        order_by: str,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Find matching records ordered by one field, optionally limited"""
        pass

    @abstractmethod
    def count(self, table: str) -> int:
        """Count records in table"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass

    def ensure_index(self, table: str, fields: Sequence[str]) -> None:
        """Declare a compound access path (default no-op)"""
        pass

    @abstractmethod
    @contextmanager
    def atomic(self):
        """Context manager for all-or-nothing units of writes"""
        yield


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation for testing"""

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()
        # (table, record_id, previous document or None) per write in the open unit
        self._undo_log: Optional[List[Tuple[str, str, Optional[Dict[str, Any]]]]] = None

    def _ensure_table(self, table: str) -> Dict[str, Dict[str, Any]]:
        if table not in self._data:
            self._data[table] = {}
        return self._data[table]

    @staticmethod
    def _copy(data: Dict[str, Any]) -> Dict[str, Any]:
        # Round-trip through JSON so callers never share mutable state with the store
        return json.loads(json.dumps(data, default=str))

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            rows = self._ensure_table(table)
            if self._undo_log is not None:
                previous = rows.get(record_id)
                self._undo_log.append((table, record_id, previous))
            rows[record_id] = self._copy(data)

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._ensure_table(table).get(record_id)
            if record is not None:
                return self._copy(record)
            return None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                self._copy(record)
                for record in self._ensure_table(table).values()
                if all(key in record and record[key] == value for key, value in filters.items())
            ]

    def query(
        self,
        table: str,
        filters: Dict[str, Any],
        order_by: str,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        results = self.find(table, filters)
        results.sort(key=lambda record: record.get(order_by), reverse=descending)
        if limit is not None:
            results = results[:limit]
        return results

    def count(self, table: str) -> int:
        with self._lock:
            return len(self._ensure_table(table))

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass

    @contextmanager
    def atomic(self):
        """
        Hold the store lock for the whole unit and undo every write on failure.
        Units are therefore serialized against all other store access.
        """
        with self._lock:
            if self._undo_log is not None:
                yield
                return

            self._undo_log = []
            try:
                yield
            except BaseException:
                self._restore(self._undo_log)
                raise
            finally:
                self._undo_log = None

    def _restore(self, undo_log: List[Tuple[str, str, Optional[Dict[str, Any]]]]) -> None:
        for table, record_id, previous in reversed(undo_log):
            if previous is None:
                self._data[table].pop(record_id, None)
            else:
                self._data[table][record_id] = previous


class SQLiteStorage(StorageInterface):
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:", timeout: float = 5.0):
        self.db_path = str(db_path)
        # Autocommit mode: transactions are opened explicitly with BEGIN IMMEDIATE
        self._connection = sqlite3.connect(
            self.db_path, timeout=timeout, check_same_thread=False, isolation_level=None
        )
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._in_transaction = False
        self._tables: set = set()

        # Enable WAL mode for better concurrent access
        if self.db_path != ":memory:":
            with self._lock, self._translate_errors():
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")

    @contextmanager
    def _translate_errors(self):
        """Surface infrastructure failures as the retryable StoreUnavailable"""
        try:
            yield
        except sqlite3.OperationalError as e:
            raise StoreUnavailable(f"Storage unavailable: {e}") from e
        except sqlite3.DatabaseError as e:
            if isinstance(e, sqlite3.IntegrityError):
                raise
            raise StoreUnavailable(f"Storage error: {e}") from e

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists with proper schema"""
        if table in self._tables:
            return
        _check_identifier(table)
        self._connection.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL
            )
        """)
        # A table created inside a unit that later rolls back must be recreated
        if not self._in_transaction:
            self._tables.add(table)

    def ensure_index(self, table: str, fields: Sequence[str]) -> None:
        """Create an expression index over JSON fields, in the given order"""
        with self._lock, self._translate_errors():
            self._ensure_table(table)
            columns = ", ".join(
                f"json_extract(data, '$.{_check_identifier(field)}')" for field in fields
            )
            index_name = f"idx_{table}_{'_'.join(fields)}"
            self._connection.execute(
                f"CREATE INDEX IF NOT EXISTS {index_name} ON {table}({columns})"
            )

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock, self._translate_errors():
            self._ensure_table(table)
            self._connection.execute(
                f"INSERT OR REPLACE INTO {table} (id, data) VALUES (?, ?)",
                (record_id, json.dumps(data, default=str))
            )

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock, self._translate_errors():
            self._ensure_table(table)
            row = self._connection.execute(
                f"SELECT data FROM {table} WHERE id = ?", (record_id,)
            ).fetchone()
            if row:
                return json.loads(row["data"])
            return None

    def _where(self, filters: Dict[str, Any]) -> Tuple[str, List[Any]]:
        if not filters:
            return "", []
        conditions = []
        params = []
        for key, value in filters.items():
            conditions.append(f"json_extract(data, '$.{_check_identifier(key)}') = ?")
            params.append(value)
        return "WHERE " + " AND ".join(conditions), params

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self._lock, self._translate_errors():
            self._ensure_table(table)
            where, params = self._where(filters)
            cursor = self._connection.execute(f"SELECT data FROM {table} {where}", params)
            return [json.loads(row["data"]) for row in cursor.fetchall()]

    def query(
        self,
        table: str,
        filters: Dict[str, Any],
        order_by: str,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        with self._lock, self._translate_errors():
            self._ensure_table(table)
            where, params = self._where(filters)
            direction = "DESC" if descending else "ASC"
            sql = (
                f"SELECT data FROM {table} {where} "
                f"ORDER BY json_extract(data, '$.{_check_identifier(order_by)}') {direction}"
            )
            if limit is not None:
                sql += " LIMIT ?"
                params.append(int(limit))
            cursor = self._connection.execute(sql, params)
            return [json.loads(row["data"]) for row in cursor.fetchall()]

    def count(self, table: str) -> int:
        with self._lock, self._translate_errors():
            self._ensure_table(table)
            cursor = self._connection.execute(f"SELECT COUNT(*) AS count FROM {table}")
            return cursor.fetchone()["count"]

    @contextmanager
    def atomic(self):
        """
        BEGIN IMMEDIATE takes the database write lock up front, so the reads
        inside the unit cannot go stale under another writer process.
        """
        with self._lock:
            if self._in_transaction:
                yield
                return

            with self._translate_errors():
                self._connection.execute("BEGIN IMMEDIATE")
            self._in_transaction = True
            try:
                yield
                with self._translate_errors():
                    self._connection.execute("COMMIT")
            except BaseException:
                if self._connection.in_transaction:
                    self._connection.execute("ROLLBACK")
                raise
            finally:
                self._in_transaction = False

    def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(database_url: str, timeout: float = 5.0) -> StorageInterface:
    """
    Build a backend from a URL

    Args:
        database_url: "memory://" or "sqlite:///<path>" ("sqlite://" alone is an in-memory database)
        timeout: Seconds to wait on a locked database before failing

    Returns:
        Storage backend
    """
    if database_url.startswith("memory://"):
        return InMemoryStorage()
    if database_url.startswith("sqlite://"):
        path = database_url[len("sqlite://"):]
        if path.startswith("/"):
            path = path[1:]
        return SQLiteStorage(path or ":memory:", timeout=timeout)
    raise ValueError(f"Unsupported database URL: {database_url}")

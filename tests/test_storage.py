"""
Tests for storage backends and atomic units
"""

import pytest
import sqlite3

from openbank.errors import StoreUnavailable
from openbank.storage import InMemoryStorage, SQLiteStorage, create_storage


class TestStorageBackends:
    """Behaviour shared by every backend"""

    def test_save_and_load(self, storage):
        storage.save("things", "a", {"id": "a", "name": "first", "n": 1})
        assert storage.load("things", "a") == {"id": "a", "name": "first", "n": 1}
        assert storage.load("things", "missing") is None

    def test_save_replaces(self, storage):
        storage.save("things", "a", {"id": "a", "n": 1})
        storage.save("things", "a", {"id": "a", "n": 2})
        assert storage.load("things", "a")["n"] == 2
        assert storage.count("things") == 1

    def test_loaded_documents_are_copies(self, storage):
        storage.save("things", "a", {"id": "a", "tags": ["x"]})
        loaded = storage.load("things", "a")
        loaded["tags"].append("y")
        assert storage.load("things", "a")["tags"] == ["x"]

    def test_find(self, storage):
        storage.save("things", "a", {"id": "a", "owner": "u1", "kind": "x"})
        storage.save("things", "b", {"id": "b", "owner": "u1", "kind": "y"})
        storage.save("things", "c", {"id": "c", "owner": "u2", "kind": "x"})
        assert {r["id"] for r in storage.find("things", {"owner": "u1"})} == {"a", "b"}
        assert [r["id"] for r in storage.find("things", {"owner": "u1", "kind": "x"})] == ["a"]
        assert storage.find("things", {"owner": "nobody"}) == []

    def test_query_orders_and_limits(self, storage):
        storage.ensure_index("things", ["owner", "seq"])
        for seq in [3, 1, 4, 2]:
            storage.save("things", f"r{seq}", {"id": f"r{seq}", "owner": "u1", "seq": seq})
        storage.save("things", "other", {"id": "other", "owner": "u2", "seq": 9})

        ascending = storage.query("things", {"owner": "u1"}, order_by="seq")
        assert [r["seq"] for r in ascending] == [1, 2, 3, 4]

        newest = storage.query("things", {"owner": "u1"}, order_by="seq", descending=True, limit=2)
        assert [r["seq"] for r in newest] == [4, 3]


class TestAtomicUnits:
    """All-or-nothing semantics"""

    def test_commit(self, storage):
        with storage.atomic():
            storage.save("things", "a", {"id": "a", "n": 1})
            storage.save("things", "b", {"id": "b", "n": 2})
        assert storage.count("things") == 2

    def test_rollback_restores_previous_documents(self, storage):
        storage.save("things", "a", {"id": "a", "n": 1})

        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("things", "a", {"id": "a", "n": 99})
                storage.save("things", "b", {"id": "b", "n": 2})
                raise RuntimeError("boom")

        assert storage.load("things", "a") == {"id": "a", "n": 1}
        assert storage.load("things", "b") is None

    def test_nested_units_join_outer(self, storage):
        storage.save("things", "a", {"id": "a", "n": 1})

        with pytest.raises(RuntimeError):
            with storage.atomic():
                with storage.atomic():
                    storage.save("things", "a", {"id": "a", "n": 2})
                storage.save("things", "b", {"id": "b"})
                raise RuntimeError("outer fails after inner finished")

        assert storage.load("things", "a")["n"] == 1
        assert storage.load("things", "b") is None

    def test_reads_inside_unit_see_own_writes(self, storage):
        with storage.atomic():
            storage.save("things", "a", {"id": "a", "owner": "u1"})
            assert storage.find("things", {"owner": "u1"})[0]["id"] == "a"


class TestSQLiteStorage:

    def test_invalid_identifier_rejected(self):
        storage = SQLiteStorage(":memory:")
        with pytest.raises(ValueError, match="Invalid identifier"):
            storage.save("things; DROP TABLE users", "a", {"id": "a"})
        with pytest.raises(ValueError, match="Invalid identifier"):
            storage.find("things", {"name') OR 1=1 --": "x"})
        storage.close()

    def test_persists_across_connections(self, tmp_path):
        path = tmp_path / "bank.db"
        first = SQLiteStorage(path)
        with first.atomic():
            first.save("users", "u1", {"id": "u1", "email": "a@b.co"})
        first.close()

        second = SQLiteStorage(path)
        assert second.load("users", "u1") == {"id": "u1", "email": "a@b.co"}
        second.close()

    def test_locked_database_is_store_unavailable(self, tmp_path):
        path = tmp_path / "bank.db"
        storage = SQLiteStorage(path, timeout=0.1)
        storage.save("users", "u1", {"id": "u1"})

        blocker = sqlite3.connect(str(path), isolation_level=None)
        blocker.execute("BEGIN IMMEDIATE")
        try:
            with pytest.raises(StoreUnavailable) as exc_info:
                with storage.atomic():
                    storage.save("users", "u2", {"id": "u2"})
            assert exc_info.value.retryable
        finally:
            blocker.execute("ROLLBACK")
            blocker.close()

        assert storage.load("users", "u2") is None
        storage.close()

    def test_closed_connection_is_store_unavailable(self):
        storage = SQLiteStorage(":memory:")
        storage._connection.close()
        with pytest.raises(StoreUnavailable):
            storage.save("users", "u1", {"id": "u1"})


class TestCreateStorage:

    def test_memory_url(self):
        assert isinstance(create_storage("memory://"), InMemoryStorage)

    def test_sqlite_urls(self, tmp_path):
        in_memory = create_storage("sqlite://")
        assert isinstance(in_memory, SQLiteStorage)
        assert in_memory.db_path == ":memory:"

        on_disk = create_storage(f"sqlite:///{tmp_path / 'x.db'}")
        assert on_disk.db_path.endswith("x.db")
        in_memory.close()
        on_disk.close()

    def test_unsupported_url(self):
        with pytest.raises(ValueError, match="Unsupported database URL"):
            create_storage("postgresql://localhost/bank")

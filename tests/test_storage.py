"""
Test suite for storage backends
"""

import pytest

from pawn_ledger.storage import InMemoryStorage, SQLiteStorage, create_storage


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    if request.param == "memory":
        backend = InMemoryStorage()
    else:
        backend = SQLiteStorage(tmp_path / "ledger.db")
    yield backend
    backend.close()


class TestStorageBackends:
    """Behaviour shared by every backend"""

    def test_save_and_load(self, storage):
        storage.save("particulars", "P1", {"id": "P1", "name": "Ravi", "total_cash": "10.50"})

        assert storage.load("particulars", "P1") == {"id": "P1", "name": "Ravi", "total_cash": "10.50"}
        assert storage.exists("particulars", "P1")
        assert storage.load("particulars", "missing") is None

    def test_loaded_records_are_copies(self, storage):
        storage.save("particulars", "P1", {"id": "P1", "name": "Ravi"})

        loaded = storage.load("particulars", "P1")
        loaded["name"] = "Changed"

        assert storage.load("particulars", "P1")["name"] == "Ravi"

    def test_overwrite_keeps_single_record(self, storage):
        storage.save("particulars", "P1", {"id": "P1", "name": "Ravi"})
        storage.save("particulars", "P1", {"id": "P1", "name": "Ravi Kumar"})

        assert storage.count("particulars") == 1
        assert storage.load("particulars", "P1")["name"] == "Ravi Kumar"

    def test_load_all_in_write_order(self, storage):
        for record_id in ("A", "B", "C"):
            storage.save("transactions", record_id, {"id": record_id})

        assert [r["id"] for r in storage.load_all("transactions")] == ["A", "B", "C"]

    def test_find_matches_every_filter(self, storage):
        storage.save("transactions", "T1", {"id": "T1", "particular_id": "P1", "transaction_type": "cash"})
        storage.save("transactions", "T2", {"id": "T2", "particular_id": "P1", "transaction_type": "metal"})
        storage.save("transactions", "T3", {"id": "T3", "particular_id": "P2", "transaction_type": "cash"})

        found = storage.find("transactions", {"particular_id": "P1", "transaction_type": "cash"})

        assert [r["id"] for r in found] == ["T1"]

    def test_delete(self, storage):
        storage.save("transactions", "T1", {"id": "T1"})

        assert storage.delete("transactions", "T1")
        assert not storage.delete("transactions", "T1")
        assert not storage.exists("transactions", "T1")

    def test_delete_where(self, storage):
        storage.save("transactions", "T1", {"id": "T1", "particular_id": "P1"})
        storage.save("transactions", "T2", {"id": "T2", "particular_id": "P1"})
        storage.save("transactions", "T3", {"id": "T3", "particular_id": "P2"})

        assert storage.delete_where("transactions", {"particular_id": "P1"}) == 2
        assert [r["id"] for r in storage.load_all("transactions")] == ["T3"]

    def test_clear_table(self, storage):
        storage.save("transactions", "T1", {"id": "T1"})
        storage.clear_table("transactions")

        assert storage.count("transactions") == 0

    def test_atomic_commits(self, storage):
        with storage.atomic():
            storage.save("particulars", "P1", {"id": "P1"})
            storage.save("transactions", "T1", {"id": "T1", "particular_id": "P1"})

        assert storage.exists("particulars", "P1")
        assert storage.exists("transactions", "T1")

    def test_atomic_rolls_back_on_error(self, storage):
        storage.save("particulars", "P1", {"id": "P1", "total_cash": "0"})

        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("transactions", "T1", {"id": "T1", "particular_id": "P1"})
                storage.save("particulars", "P1", {"id": "P1", "total_cash": "100"})
                raise RuntimeError("boom")

        assert not storage.exists("transactions", "T1")
        assert storage.load("particulars", "P1")["total_cash"] == "0"


class TestSQLitePersistence:
    """Data outlives the connection"""

    def test_reopen_database(self, tmp_path):
        path = tmp_path / "ledger.db"
        first = SQLiteStorage(path)
        first.save("particulars", "P1", {"id": "P1", "name": "Ravi"})
        first.close()

        second = SQLiteStorage(path)
        try:
            assert second.load("particulars", "P1") == {"id": "P1", "name": "Ravi"}
        finally:
            second.close()


class TestCreateStorage:
    """Backend selection from a database URL"""

    def test_memory_url(self):
        assert isinstance(create_storage("memory://"), InMemoryStorage)

    def test_sqlite_url(self, tmp_path):
        storage = create_storage(f"sqlite:///{tmp_path / 'ledger.db'}")
        try:
            assert isinstance(storage, SQLiteStorage)
            assert storage.db_path.endswith("ledger.db")
        finally:
            storage.close()

    def test_sqlite_memory_url(self):
        storage = create_storage("sqlite:///:memory:")
        try:
            assert storage.db_path == ":memory:"
        finally:
            storage.close()

    def test_unsupported_url(self):
        with pytest.raises(ValueError):
            create_storage("postgresql://localhost/ledger")

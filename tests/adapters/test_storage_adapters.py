"""Unit tests for the StoragePort implementations.

Both adapters must honour the same contract: a key that was never written
loads as None, a save replaces the whole collection, and clear drops every key.
"""

import pytest

from src.adapters.storage import DuckDBStorageAdapter, InMemoryStorageAdapter
from src.domain.ports import StorageError
from src.infrastructure.config_manager import StorageConfig


@pytest.fixture(params=["memory", "duckdb"])
def adapter(request):
    if request.param == "memory":
        instance = InMemoryStorageAdapter()
    else:
        instance = DuckDBStorageAdapter(db_path=":memory:")
    yield instance
    instance.close()


class TestStorageContract:
    """Behaviour shared by every adapter."""

    def test_unknown_key_loads_none(self, adapter):
        result = adapter.load("patients")
        assert result.is_success()
        assert result.value is None

    def test_save_then_load(self, adapter):
        documents = [{"id": "p-1", "name": [{"family": "Doe", "given": ["Jane"]}]}]
        result = adapter.save("patients", documents)

        assert result.is_success()
        assert result.value == 1
        assert adapter.load("patients").value == documents

    def test_empty_collection_is_not_none(self, adapter):
        adapter.save("logs", [])
        assert adapter.load("logs").value == []

    def test_save_replaces_collection(self, adapter):
        adapter.save("encounters", [{"id": "e-1"}, {"id": "e-2"}])
        adapter.save("encounters", [{"id": "e-3"}])
        assert adapter.load("encounters").value == [{"id": "e-3"}]

    def test_keys_are_independent(self, adapter):
        adapter.save("patients", [{"id": "p-1"}])
        adapter.save("logs", [{"id": "log-1"}])
        assert adapter.load("patients").value == [{"id": "p-1"}]
        assert adapter.load("logs").value == [{"id": "log-1"}]

    def test_clear_removes_every_key(self, adapter):
        adapter.save("patients", [{"id": "p-1"}])
        adapter.save("logs", [{"id": "log-1"}])

        assert adapter.clear().is_success()
        assert adapter.load("patients").value is None
        assert adapter.load("logs").value is None


class TestInMemoryStorageAdapter:

    def test_loaded_documents_are_copies(self):
        adapter = InMemoryStorageAdapter()
        adapter.save("patients", [{"id": "p-1", "telecom": []}])

        loaded = adapter.load("patients").value
        loaded[0]["telecom"].append({"system": "email"})

        assert adapter.load("patients").value == [{"id": "p-1", "telecom": []}]

    def test_saved_documents_are_copies(self):
        adapter = InMemoryStorageAdapter()
        documents = [{"id": "p-1"}]
        adapter.save("patients", documents)
        documents[0]["id"] = "p-2"

        assert adapter.load("patients").value == [{"id": "p-1"}]


class TestDuckDBStorageAdapter:
    """DuckDB-specific configuration and persistence."""

    def test_defaults_to_in_memory(self):
        adapter = DuckDBStorageAdapter()
        assert adapter.db_path == ":memory:"

    def test_connection_is_lazy(self, tmp_path):
        db_file = tmp_path / "intake.duckdb"
        adapter = DuckDBStorageAdapter(db_path=str(db_file))
        assert adapter._connection is None
        assert not db_file.exists()

    def test_storage_config_takes_precedence(self, tmp_path):
        config = StorageConfig(storage_type="duckdb", db_path=str(tmp_path / "a.duckdb"))
        adapter = DuckDBStorageAdapter(storage_config=config, db_path=str(tmp_path / "b.duckdb"))
        assert adapter.db_path == str(tmp_path / "a.duckdb")

    def test_rejects_other_storage_type(self):
        with pytest.raises(StorageError, match="does not match DuckDB adapter"):
            DuckDBStorageAdapter(storage_config=StorageConfig(storage_type="memory"))

    def test_rejects_missing_directory(self, tmp_path):
        with pytest.raises(StorageError, match="Database directory does not exist"):
            DuckDBStorageAdapter(db_path=str(tmp_path / "missing" / "intake.duckdb"))

    def test_persists_across_connections(self, tmp_path):
        db_path = str(tmp_path / "intake.duckdb")
        first = DuckDBStorageAdapter(db_path=db_path)
        first.save("patients", [{"id": "p-1234", "version": 2}])
        first.close()

        second = DuckDBStorageAdapter(db_path=db_path)
        try:
            assert second.load("patients").value == [{"id": "p-1234", "version": 2}]
        finally:
            second.close()

    def test_reopen_after_close(self):
        adapter = DuckDBStorageAdapter()
        adapter.save("patients", [{"id": "p-1"}])
        adapter.close()

        # A fresh in-memory database starts empty.
        assert adapter.load("patients").value is None
        adapter.close()

    def test_unserializable_documents_fail_as_result(self):
        adapter = DuckDBStorageAdapter()
        result = adapter.save("patients", [{"id": object()}])

        assert result.is_failure()
        assert result.error_type == "StorageError"
        assert "Failed to save collection 'patients'" in result.error
        adapter.close()

    def test_close_is_idempotent(self):
        adapter = DuckDBStorageAdapter()
        adapter.close()
        adapter.close()

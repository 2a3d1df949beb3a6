"""
Tests for the storage layer

Covers the document backends, LedgerStore load/save sequencing and the
all-or-nothing behaviour of transact.
"""

import json
import pytest
from decimal import Decimal

from economy_ledger.config import LedgerConfig
from economy_ledger.errors import PersistenceError
from economy_ledger.migrations import CURRENT_VERSION
from economy_ledger.storage import (
    InMemoryBackend, JSONFileBackend, LedgerState, LedgerStore, SQLiteBackend,
    StorageBackend, create_store
)


class TestBackends:
    """Document round trips for every backend"""

    def test_in_memory_backend(self):
        backend = InMemoryBackend()
        assert backend.read("world") is None
        backend.write("world", '{"version": "1.1.0"}')
        assert backend.read("world") == '{"version": "1.1.0"}'
        assert backend.read("other") is None

    def test_json_file_backend(self, tmp_path):
        backend = JSONFileBackend(tmp_path / "data")
        assert backend.read("campaign") is None

        backend.write("campaign", '{"a": 1}')
        assert backend.path_for("campaign").exists()
        assert backend.read("campaign") == '{"a": 1}'

        backend.write("campaign", '{"a": 2}')
        assert backend.read("campaign") == '{"a": 2}'
        # No temp files left behind
        assert [p.name for p in (tmp_path / "data").iterdir()] == ["campaign.json"]

    def test_sqlite_backend(self, tmp_path):
        backend = SQLiteBackend(tmp_path / "ledger.db")
        assert backend.read("world") is None
        backend.write("world", '{"x": 1}')
        backend.write("world", '{"x": 2}')
        assert backend.read("world") == '{"x": 2}'
        backend.close()

        reopened = SQLiteBackend(tmp_path / "ledger.db")
        assert reopened.read("world") == '{"x": 2}'
        reopened.close()


class TestLedgerStore:
    """Test load/save/transact"""

    def setup_method(self):
        self.backend = InMemoryBackend()
        self.store = LedgerStore(self.backend, world_id="test")

    def test_load_empty_world(self):
        state = self.store.load()
        assert state.version == CURRENT_VERSION
        assert state.economies == {}
        assert state.transactions == []

    def test_save_and_load(self):
        state = LedgerState.empty()
        state.economies["eco-1"] = {"id": "eco-1", "name": "Faerun"}
        self.store.save(state)

        loaded = self.store.load()
        assert loaded.economies["eco-1"]["name"] == "Faerun"
        assert json.loads(self.backend.read("test"))["version"] == CURRENT_VERSION

    def test_load_returns_fresh_copies(self):
        first = self.store.load()
        first.economies["eco-1"] = {"id": "eco-1"}
        assert self.store.load().economies == {}

    def test_transact_saves_result(self):
        def add_economy(state):
            state.economies["eco-1"] = {"id": "eco-1", "interest_rate": str(Decimal("2.5"))}
            return "done"

        assert self.store.transact(add_economy) == "done"
        assert self.store.load().economies["eco-1"]["interest_rate"] == "2.5"

    def test_transact_failure_saves_nothing(self):
        def failing(state):
            state.economies["eco-1"] = {"id": "eco-1"}
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            self.store.transact(failing)

        assert self.store.load().economies == {}
        assert self.backend.read("test") is None

    def test_update(self):
        def updater(state):
            state.banks["bank-1"] = {"id": "bank-1"}
            return state

        updated = self.store.update(updater)
        assert "bank-1" in updated.banks
        assert "bank-1" in self.store.load().banks

    def test_invalid_json_is_persistence_error(self):
        self.backend.write("test", "{not json")
        with pytest.raises(PersistenceError):
            self.store.load()

    def test_non_object_document_is_persistence_error(self):
        self.backend.write("test", "[1, 2, 3]")
        with pytest.raises(PersistenceError):
            self.store.load()

    def test_worlds_are_isolated(self):
        other = LedgerStore(self.backend, world_id="other")
        self.store.transact(lambda state: state.economies.update({"eco-1": {"id": "eco-1"}}))
        assert other.load().economies == {}

    def test_write_failure_propagates(self):
        class BrokenBackend(StorageBackend):
            def read(self, world_id):
                return None

            def write(self, world_id, document):
                raise PersistenceError("disk full")

        store = LedgerStore(BrokenBackend())
        with pytest.raises(PersistenceError):
            store.transact(lambda state: None)


class TestCreateStore:
    """Backend selection from configuration"""

    def test_memory_backend(self):
        store = create_store(LedgerConfig(storage_backend="memory", world_id="w1"))
        assert isinstance(store.backend, InMemoryBackend)
        assert store.world_id == "w1"

    def test_json_backend(self, tmp_path):
        store = create_store(LedgerConfig(storage_backend="json", storage_path=str(tmp_path)))
        assert isinstance(store.backend, JSONFileBackend)

    def test_sqlite_backend(self, tmp_path):
        store = create_store(LedgerConfig(storage_backend="sqlite", storage_path=str(tmp_path / "l.db")))
        assert isinstance(store.backend, SQLiteBackend)
        store.close()

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_store(LedgerConfig(storage_backend="postgres"))

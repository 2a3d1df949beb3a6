"""
Storage Backend Module

The full ledger state of a world is one JSON document. Backends only move that
document in and out of durable storage (memory, a JSON file, or SQLite);
LedgerStore owns the load/apply/save sequencing. All monetary values are
stored as Decimal strings and all timestamps as ISO-8601 strings.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union
from decimal import Decimal
from datetime import datetime, timezone
from enum import Enum
import sqlite3
import json
import os
import tempfile
import threading
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

from .errors import PersistenceError
from .logging_config import get_logger
from .migrations import CURRENT_VERSION, MigrationManager


T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _serialize(value: Any) -> Any:
    """Convert a record value into its JSON-compatible form"""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _serialize(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, dict):
        return {key: _serialize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize(item) for item in value]
    return value


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return _serialize(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StorageRecord':
        """Create instance from dictionary"""
        data = dict(data)
        data['created_at'] = parse_datetime(data.get('created_at'))
        data['updated_at'] = parse_datetime(data.get('updated_at'))
        return cls(**data)


@dataclass
class LedgerState:
    """
    Complete persisted state of one world.

    Entity tables are maps keyed by record id holding the records' dict form;
    exchange-rate overrides and transactions are ordered lists. Managers read
    records out with ``Model.from_dict`` and write them back with ``to_dict``.
    """
    version: str = CURRENT_VERSION
    economies: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    currencies: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    exchange_rates: List[Dict[str, Any]] = field(default_factory=list)
    banks: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    accounts: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    transactions: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def empty(cls) -> 'LedgerState':
        return cls()

    def to_document(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "economies": self.economies,
            "currencies": self.currencies,
            "exchange_rates": self.exchange_rates,
            "banks": self.banks,
            "accounts": self.accounts,
            "transactions": self.transactions,
        }

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> 'LedgerState':
        return cls(
            version=document.get("version", CURRENT_VERSION),
            economies=dict(document.get("economies") or {}),
            currencies=dict(document.get("currencies") or {}),
            exchange_rates=list(document.get("exchange_rates") or []),
            banks=dict(document.get("banks") or {}),
            accounts=dict(document.get("accounts") or {}),
            transactions=list(document.get("transactions") or []),
        )


class StorageBackend(ABC):
    """Abstract interface for durable document storage"""

    @abstractmethod
    def read(self, world_id: str) -> Optional[str]:
        """Return the stored JSON document for a world, or None"""
        pass

    @abstractmethod
    def write(self, world_id: str, document: str) -> None:
        """Replace the stored JSON document for a world"""
        pass

    def close(self) -> None:
        """Release backend resources (default no-op)"""
        pass


class InMemoryBackend(StorageBackend):
    """In-memory backend for testing"""

    def __init__(self):
        self._documents: Dict[str, str] = {}
        self._lock = threading.RLock()

    def read(self, world_id: str) -> Optional[str]:
        with self._lock:
            return self._documents.get(world_id)

    def write(self, world_id: str, document: str) -> None:
        with self._lock:
            self._documents[world_id] = document


class JSONFileBackend(StorageBackend):
    """One ``<world_id>.json`` file per world, replaced atomically on write"""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self._lock = threading.RLock()

    def path_for(self, world_id: str) -> Path:
        return self.directory / f"{world_id}.json"

    def read(self, world_id: str) -> Optional[str]:
        path = self.path_for(world_id)
        with self._lock:
            try:
                return path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None
            except OSError as e:
                raise PersistenceError(f"Cannot read {path}: {e}") from e

    def write(self, world_id: str, document: str) -> None:
        path = self.path_for(world_id)
        with self._lock:
            tmp_name = None
            try:
                self.directory.mkdir(parents=True, exist_ok=True)
                with tempfile.NamedTemporaryFile(
                    "w", encoding="utf-8", dir=self.directory,
                    prefix=f".{world_id}.", suffix=".tmp", delete=False
                ) as tmp:
                    tmp_name = tmp.name
                    tmp.write(document)
                    tmp.flush()
                    os.fsync(tmp.fileno())
                os.replace(tmp_name, path)
            except OSError as e:
                if tmp_name and os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise PersistenceError(f"Cannot write {path}: {e}") from e


class SQLiteBackend(StorageBackend):
    """SQLite backend holding one document row per world"""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self._lock = threading.RLock()
        try:
            self._connection = sqlite3.connect(self.db_path, check_same_thread=False)
            if self.db_path != ":memory:":
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
            self._connection.execute("""
                CREATE TABLE IF NOT EXISTS ledger_documents (
                    world_id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            self._connection.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open SQLite database {self.db_path}: {e}") from e

    def read(self, world_id: str) -> Optional[str]:
        with self._lock:
            try:
                cursor = self._connection.execute(
                    "SELECT data FROM ledger_documents WHERE world_id = ?", (world_id,)
                )
                row = cursor.fetchone()
            except sqlite3.Error as e:
                raise PersistenceError(f"Cannot read world {world_id}: {e}") from e
            return row[0] if row else None

    def write(self, world_id: str, document: str) -> None:
        with self._lock:
            try:
                self._connection.execute("""
                    INSERT OR REPLACE INTO ledger_documents (world_id, data, updated_at)
                    VALUES (?, ?, ?)
                """, (world_id, document, utcnow().isoformat()))
                self._connection.commit()
            except sqlite3.Error as e:
                self._connection.rollback()
                raise PersistenceError(f"Cannot write world {world_id}: {e}") from e

    def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


class LedgerStore:
    """
    Loads, updates and saves the ledger document of one world.

    Every mutation is "load latest, apply, save" under a process-local lock,
    so only one logical update is in flight per process. There is no
    cross-process locking: concurrent writers in different processes are
    last-writer-wins unless they route through a single writer.
    """

    def __init__(
        self,
        backend: StorageBackend,
        world_id: str = "default",
        migration_manager: Optional[MigrationManager] = None
    ):
        self.backend = backend
        self.world_id = world_id
        self.migrations = migration_manager or MigrationManager()
        self._lock = threading.RLock()
        self.logger = get_logger("economy_ledger.storage")

    def load(self) -> LedgerState:
        """Return a fresh copy of the stored state (empty state if none)"""
        raw = self.backend.read(self.world_id)
        if raw is None:
            return LedgerState.empty()

        try:
            document = json.loads(raw)
        except ValueError as e:
            raise PersistenceError(f"Stored document for world {self.world_id} is not valid JSON") from e

        if not isinstance(document, dict):
            raise PersistenceError(f"Stored document for world {self.world_id} is not an object")

        return LedgerState.from_document(self.migrations.migrate(document))

    def save(self, state: LedgerState) -> None:
        """Persist the whole state"""
        document = json.dumps(state.to_document(), default=str)
        self.backend.write(self.world_id, document)
        self.logger.debug(f"Saved world {self.world_id} ({len(document)} bytes)")

    def update(self, updater: Callable[[LedgerState], LedgerState]) -> LedgerState:
        """Read-modify-write: apply updater to the latest state and save its result"""
        with self._lock:
            updated = updater(self.load())
            self.save(updated)
            return updated

    def transact(self, operation: Callable[[LedgerState], T]) -> T:
        """
        Apply operation to a transient copy of the latest state and save it.

        The operation mutates the state in place and returns its own result.
        If it raises, nothing is saved and the exception propagates.
        """
        with self._lock:
            state = self.load()
            result = operation(state)
            self.save(state)
            return result

    def close(self) -> None:
        self.backend.close()


def create_store(config) -> LedgerStore:
    """Build a LedgerStore from a LedgerConfig"""
    backend_type = config.storage_backend.lower()

    if backend_type == "memory":
        backend: StorageBackend = InMemoryBackend()
    elif backend_type == "json":
        backend = JSONFileBackend(config.storage_path)
    elif backend_type == "sqlite":
        backend = SQLiteBackend(config.storage_path)
    else:
        raise ValueError(f"Unknown storage backend: {config.storage_backend}")

    return LedgerStore(backend, world_id=config.world_id)

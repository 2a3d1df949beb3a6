"""
Document Migration System

Forward migrations for the persisted ledger document, keyed on its
``version`` field. Each migration rewrites a document from one version to the
next; MigrationManager chains them until the document is current.

Version 1.0.0 is the format written by the earlier tabletop plugin:
camelCase keys, millisecond epoch timestamps and float amounts.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional
import logging

from .errors import PersistenceError


logger = logging.getLogger("economy_ledger.migrations")

CURRENT_VERSION = "1.1.0"


def _version_key(version: str):
    return tuple(int(part) for part in version.split("."))


def _timestamp(value: Any) -> Optional[str]:
    """Convert a millisecond epoch (or ISO string) into an ISO-8601 string"""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()


def _amount(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(Decimal(str(value)))


class Migration:
    """Represents a single document migration"""

    def __init__(self, from_version: str, to_version: str, name: str,
                 apply: Callable[[Dict[str, Any]], Dict[str, Any]]):
        self.from_version = from_version
        self.to_version = to_version
        self.name = name
        self.apply = apply

    def __str__(self) -> str:
        return f"Migration {self.from_version} -> {self.to_version}: {self.name}"

    def __repr__(self) -> str:
        return f"Migration(from_version='{self.from_version}', to_version='{self.to_version}')"


def _migrate_1_0_0(document: Dict[str, Any]) -> Dict[str, Any]:
    economies = {}
    for economy_id, eco in (document.get("economies") or {}).items():
        created = _timestamp(eco.get("createdAt"))
        economies[economy_id] = {
            "id": eco["id"],
            "name": eco.get("name", ""),
            "description": eco.get("description", ""),
            "base_currency_id": eco.get("baseCurrencyId"),
            "interest_rate": _amount(eco.get("interestRate", 0)),
            "growth_rate": _amount(eco.get("growthRate", 0)),
            "created_at": created,
            "updated_at": _timestamp(eco.get("updatedAt")) or created,
        }

    currencies = {}
    for currency_id, cur in (document.get("currencies") or {}).items():
        created = _timestamp(cur.get("createdAt"))
        currencies[currency_id] = {
            "id": cur["id"],
            "economy_id": cur["economyId"],
            "name": cur.get("name", ""),
            "abbreviation": cur.get("abbreviation", ""),
            "symbol": cur.get("symbol", ""),
            "base_value": _amount(cur.get("baseValue", 1)),
            "color": cur.get("color", ""),
            "created_at": created,
            "updated_at": created,
        }

    exchange_rates = [
        {
            "from_currency_id": rate["fromCurrencyId"],
            "to_currency_id": rate["toCurrencyId"],
            "rate": _amount(rate["rate"]),
            "updated_at": _timestamp(rate.get("updatedAt")),
        }
        for rate in document.get("exchangeRates") or []
    ]

    banks = {}
    for bank_id, bank in (document.get("banks") or {}).items():
        created = _timestamp(bank.get("createdAt"))
        interest_rate = bank.get("interestRate")
        fees = bank.get("fees") or {}
        banks[bank_id] = {
            "id": bank["id"],
            "economy_id": bank["economyId"],
            "name": bank.get("name", ""),
            "description": bank.get("description", ""),
            # -1 meant "use the economy's rate"
            "interest_rate": None if interest_rate in (None, -1) else _amount(interest_rate),
            "fees": {
                "withdrawal": _amount(fees.get("withdrawal", 0)),
                "transfer": _amount(fees.get("transfer", 0)),
                "exchange": _amount(fees.get("exchange", 0)),
            },
            "npc_actor_id": bank.get("npcActorId"),
            "created_at": created,
            "updated_at": _timestamp(bank.get("updatedAt")) or created,
        }

    accounts = {}
    for account_id, acc in (document.get("accounts") or {}).items():
        created = _timestamp(acc.get("createdAt"))
        accounts[account_id] = {
            "id": acc["id"],
            "bank_id": acc["bankId"],
            "currency_id": acc["currencyId"],
            "owner_id": acc["ownerId"],
            "owner_name": acc.get("ownerName", ""),
            "name": acc.get("name", "Main Account"),
            "balance": _amount(acc.get("balance", 0)),
            "is_active": acc.get("isActive", True),
            "created_at": created,
            "updated_at": _timestamp(acc.get("updatedAt")) or created,
        }

    transactions = [
        {
            "id": txn["id"],
            "account_id": txn["accountId"],
            "type": txn["type"],
            "amount": _amount(txn["amount"]),
            "currency_id": txn["currencyId"],
            "balance_after": _amount(txn.get("balanceAfter")),
            "description": txn.get("description", ""),
            "related_account_id": txn.get("relatedAccountId"),
            "related_transaction_id": txn.get("relatedTransactionId"),
            "created_by": txn.get("createdBy", "system"),
            "created_at": _timestamp(txn.get("createdAt")),
        }
        for txn in document.get("transactions") or []
    ]

    return {
        "version": "1.1.0",
        "economies": economies,
        "currencies": currencies,
        "exchange_rates": exchange_rates,
        "banks": banks,
        "accounts": accounts,
        "transactions": transactions,
    }


class MigrationManager:
    """Manages document migrations"""

    def __init__(self):
        self.migrations: Dict[str, Migration] = {}
        self._init_migrations()

    def _init_migrations(self) -> None:
        """Initialize built-in migrations"""
        self.add_migration(Migration(
            "1.0.0", "1.1.0", "Convert plugin document to snake_case with Decimal strings",
            _migrate_1_0_0
        ))

    def add_migration(self, migration: Migration) -> None:
        if migration.from_version in self.migrations:
            raise ValueError(f"Migration from version {migration.from_version} already exists")
        self.migrations[migration.from_version] = migration

    def pending_migrations(self, version: str) -> List[Migration]:
        """Migrations needed to bring a document at version up to date"""
        pending = []
        while version != CURRENT_VERSION:
            migration = self.migrations.get(version)
            if migration is None:
                break
            pending.append(migration)
            version = migration.to_version
        return pending

    def migrate(self, document: Dict[str, Any]) -> Dict[str, Any]:
        """
        Bring a document up to CURRENT_VERSION

        Raises:
            PersistenceError: If the version is unknown or newer than supported
        """
        version = document.get("version", "1.0.0")

        if _version_key(version) > _version_key(CURRENT_VERSION):
            raise PersistenceError(
                f"Document version {version} is newer than supported version {CURRENT_VERSION}"
            )

        for migration in self.pending_migrations(version):
            logger.info(f"Applying {migration}")
            document = migration.apply(document)
            version = migration.to_version

        if version != CURRENT_VERSION:
            raise PersistenceError(f"No migration path from document version {version}")

        return document

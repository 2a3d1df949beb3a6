"""
Tests for document migrations
"""

import json
import pytest
from decimal import Decimal

from economy_ledger.accounts import AccountLedger
from economy_ledger.banks import BankRegistry
from economy_ledger.errors import PersistenceError
from economy_ledger.migrations import CURRENT_VERSION, Migration, MigrationManager
from economy_ledger.storage import InMemoryBackend, LedgerStore
from economy_ledger.transactions import TransactionEngine, TransactionType


PLUGIN_DOCUMENT = {
    "version": "1.0.0",
    "economies": {
        "eco-1": {
            "id": "eco-1", "name": "Golarion", "description": "",
            "baseCurrencyId": "gp", "interestRate": 2, "growthRate": 0.5,
            "createdAt": 1700000000000, "updatedAt": 1700000000000
        }
    },
    "currencies": {
        "gp": {"id": "gp", "economyId": "eco-1", "name": "Gold", "abbreviation": "gp",
               "symbol": "", "baseValue": 1, "color": "#FFD700", "createdAt": 1700000000000},
        "sp": {"id": "sp", "economyId": "eco-1", "name": "Silver", "abbreviation": "sp",
               "symbol": "", "baseValue": 0.1, "color": "#C0C0C0", "createdAt": 1700000000000}
    },
    "exchangeRates": [],
    "banks": {
        "bank-1": {"id": "bank-1", "economyId": "eco-1", "name": "Iron Bank",
                   "description": "", "interestRate": -1,
                   "fees": {"withdrawal": 0, "transfer": 1, "exchange": 2},
                   "npcActorId": "actor-9", "createdAt": 1700000000000}
    },
    "accounts": {
        "acc-1": {"id": "acc-1", "bankId": "bank-1", "currencyId": "gp", "ownerId": "pc-1",
                  "ownerName": "Valeros", "name": "Main Account", "balance": 150.25,
                  "isActive": True, "createdAt": 1700000000000}
    },
    "transactions": [
        {"id": "t-1", "accountId": "acc-1", "type": "deposit", "amount": 200.25,
         "currencyId": "gp", "balanceAfter": 200.25, "description": "Deposit",
         "createdBy": "gm", "createdAt": 1700000001000},
        {"id": "t-2", "accountId": "acc-1", "type": "withdrawal", "amount": -50,
         "currencyId": "gp", "balanceAfter": 150.25, "description": "Withdrawal",
         "createdBy": "gm", "createdAt": 1700000002000}
    ]
}


class TestMigrationManager:
    """Test migration chaining and version checks"""

    def setup_method(self):
        self.manager = MigrationManager()

    def test_current_document_unchanged(self):
        document = {"version": CURRENT_VERSION, "economies": {}}
        assert self.manager.migrate(document) == document

    def test_pending_migrations(self):
        pending = self.manager.pending_migrations("1.0.0")
        assert [m.to_version for m in pending] == [CURRENT_VERSION]
        assert self.manager.pending_migrations(CURRENT_VERSION) == []

    def test_newer_version_rejected(self):
        with pytest.raises(PersistenceError):
            self.manager.migrate({"version": "9.0.0"})

    def test_unknown_version_rejected(self):
        with pytest.raises(PersistenceError):
            self.manager.migrate({"version": "0.5.0"})

    def test_duplicate_migration_rejected(self):
        with pytest.raises(ValueError):
            self.manager.add_migration(Migration("1.0.0", "1.1.0", "again", lambda d: d))

    def test_missing_version_treated_as_plugin_format(self):
        document = {k: v for k, v in PLUGIN_DOCUMENT.items() if k != "version"}
        migrated = self.manager.migrate(document)
        assert migrated["version"] == CURRENT_VERSION
        assert "acc-1" in migrated["accounts"]

    def test_plugin_document_conversion(self):
        migrated = self.manager.migrate(json.loads(json.dumps(PLUGIN_DOCUMENT)))

        economy = migrated["economies"]["eco-1"]
        assert economy["base_currency_id"] == "gp"
        assert Decimal(economy["growth_rate"]) == Decimal("0.5")
        assert economy["created_at"].startswith("2023-11-14")

        assert Decimal(migrated["currencies"]["sp"]["base_value"]) == Decimal("0.1")

        bank = migrated["banks"]["bank-1"]
        assert bank["interest_rate"] is None
        assert bank["npc_actor_id"] == "actor-9"
        assert Decimal(bank["fees"]["exchange"]) == Decimal("2")

        account = migrated["accounts"]["acc-1"]
        assert account["owner_id"] == "pc-1"
        assert account["balance"] == "150.25"

        assert [t["account_id"] for t in migrated["transactions"]] == ["acc-1", "acc-1"]


class TestMigratedStore:
    """A store opened on a plugin document works with the managers"""

    def setup_method(self):
        backend = InMemoryBackend()
        backend.write("default", json.dumps(PLUGIN_DOCUMENT))
        self.store = LedgerStore(backend)
        self.banks = BankRegistry(self.store)
        self.accounts = AccountLedger(self.store)
        self.engine = TransactionEngine(self.store)

    def test_records_load(self):
        account = self.accounts.get_account("acc-1")
        assert account.balance == Decimal("150.25")
        assert self.banks.get_bank_by_npc("actor-9").id == "bank-1"
        # -1 became "use the economy's rate"
        assert self.banks.effective_interest_rate("bank-1") == Decimal("2")

    def test_history_replays(self):
        assert self.engine.verify_balance("acc-1")
        history = self.engine.get_transactions("acc-1")
        assert history[0].type == TransactionType.WITHDRAWAL

    def test_first_write_upgrades_document(self):
        self.engine.deposit("acc-1", "10")
        assert json.loads(self.store.backend.read("default"))["version"] == CURRENT_VERSION
        assert self.accounts.get_account("acc-1").balance == Decimal("160.25")

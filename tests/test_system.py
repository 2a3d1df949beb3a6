"""
Tests for the ledger system facade and its configuration
"""

import json
import logging
import pytest
from decimal import Decimal

from economy_ledger.config import LedgerConfig
from economy_ledger.economy import CurrencySpec
from economy_ledger.errors import ErrorKind, OperationResult, PersistenceError
from economy_ledger.logging_config import JSONFormatter, log_action, setup_logging
from economy_ledger.storage import InMemoryBackend, LedgerStore, StorageBackend
from economy_ledger.system import LedgerSystem


class TestLedgerSystem:
    """Test execute dispatch and OperationResult mapping"""

    def setup_method(self):
        self.config = LedgerConfig(storage_backend="memory")
        self.system = LedgerSystem.from_config(self.config)

    def _economy(self):
        return self.system.execute(
            "create_economy", name="Faerun", description="",
            base_currency=CurrencySpec("Gold", "gp")
        ).data

    def test_success_result(self):
        result = self.system.execute("create_economy_from_preset", name="Faerun", description="", preset="dnd5e")
        assert result.success
        assert result.error_kind is None
        assert result.data.name == "Faerun"

    def test_failure_result(self):
        result = self.system.execute("get_account", account_id="missing")
        assert not result.success
        assert result.error_kind == ErrorKind.NOT_FOUND
        assert "missing" in result.error
        assert result.to_dict() == {
            "success": False, "error_kind": "not_found", "error": result.error
        }

    def test_full_flow(self):
        economy = self._economy()
        bank = self.system.execute("create_bank", economy_id=economy.id, name="Iron Bank").data
        account = self.system.execute(
            "create_account", bank_id=bank.id, currency_id=economy.base_currency_id,
            owner_id="pc-1", owner_name="Valeros"
        ).data

        assert self.system.execute("deposit", account_id=account.id, amount="10", initiator="gm").success
        failed = self.system.execute("withdraw", account_id=account.id, amount="11")
        assert failed.error_kind == ErrorKind.INSUFFICIENT_FUNDS

        balance, currency = self.system.execute("get_account_balance", account_id=account.id).data
        assert balance == Decimal("10")
        assert currency.abbreviation == "gp"

    def test_oversized_amounts_fail_cleanly(self):
        economy = self.system.execute(
            "create_economy_from_preset", name="Faerun", description="", preset="dnd5e"
        ).data
        gold = self.system.catalog.find_currency_by_abbreviation(economy.id, "gp")
        platinum = self.system.catalog.find_currency_by_abbreviation(economy.id, "pp")
        bank = self.system.execute("create_bank", economy_id=economy.id, name="Iron Bank").data
        gold_account = self.system.accounts.create_account(bank.id, gold.id, "pc-1", "Valeros")
        platinum_account = self.system.accounts.create_account(
            bank.id, platinum.id, "pc-1", "Valeros", name="Vault"
        )

        result = self.system.execute("deposit", account_id=gold_account.id, amount="1e25")
        assert result.error_kind == ErrorKind.INVALID_AMOUNT

        near_limit = "900000000000000000"
        assert self.system.execute("deposit", account_id=gold_account.id, amount=near_limit).success
        result = self.system.execute("deposit", account_id=gold_account.id, amount=near_limit)
        assert result.error_kind == ErrorKind.INVALID_AMOUNT

        result = self.system.execute(
            "transfer", from_account_id=gold_account.id, to_account_id=platinum_account.id, amount="1e25"
        )
        assert result.error_kind == ErrorKind.INVALID_AMOUNT
        assert self.system.engine.verify_balance(gold_account.id)

    def test_unknown_operation(self):
        with pytest.raises(ValueError):
            self.system.execute("print_money")

    def test_operations_listed(self):
        assert "transfer" in self.system.operations
        assert "deposit_from_wallet" in self.system.operations
        assert "delete_account" in self.system.operations
        assert "update_account" in self.system.operations

    def test_persistence_failure_propagates(self):
        class ReadOnlyBackend(StorageBackend):
            def read(self, world_id):
                return None

            def write(self, world_id, document):
                raise PersistenceError("read-only")

        system = LedgerSystem(LedgerStore(ReadOnlyBackend()), config=self.config)
        with pytest.raises(PersistenceError):
            system.execute("create_economy", name="A", description="", base_currency=CurrencySpec("Gold", "gp"))

    def test_events_follow_config(self):
        assert self.system.events is not None
        quiet = LedgerSystem(LedgerStore(InMemoryBackend()), config=LedgerConfig(enable_events=False))
        assert quiet.events is None

    def test_json_store_survives_restart(self, tmp_path):
        config = LedgerConfig(storage_backend="json", storage_path=str(tmp_path), world_id="campaign")
        first = LedgerSystem.from_config(config)
        economy = first.execute("create_economy_from_preset", name="Faerun", description="", preset="pf2e").data

        second = LedgerSystem.from_config(config)
        assert second.execute("get_economy", economy_id=economy.id).data.name == "Faerun"
        assert (tmp_path / "campaign.json").exists()


class TestConfig:
    """Test environment-based configuration"""

    def test_defaults(self):
        config = LedgerConfig()
        assert config.amount_precision == 4
        assert config.default_transaction_limit == 50
        assert config.default_all_transactions_limit == 100

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "sqlite")
        monkeypatch.setenv("LEDGER_AMOUNT_PRECISION", "2")
        config = LedgerConfig()
        assert config.storage_backend == "sqlite"
        assert config.amount_precision == 2


class TestLogging:
    """Test structured logging helpers"""

    def test_json_formatter(self):
        logger = logging.getLogger("economy_ledger.test_formatter")
        record = logger.makeRecord(logger.name, logging.INFO, __file__, 1, "Deposit recorded", (), None)
        record.user_id = "gm"
        record.action = "deposit"
        record.resource = "account:1"
        entry = json.loads(JSONFormatter().format(record))
        assert entry["message"] == "Deposit recorded"
        assert entry["level"] == "INFO"
        assert entry["user_id"] == "gm"
        assert entry["action"] == "deposit"

    def test_log_action_writes_json(self, tmp_path):
        log_file = tmp_path / "ledger.log"
        logger = setup_logging("INFO", logger_name="economy_ledger.test_file", log_file=str(log_file))
        log_action(logger, "info", "Created bank", action="create_bank", resource="bank:1",
                   extra={"economy_id": "eco-1"})
        log_action(logger, "debug", "Not written")
        for handler in logger.handlers:
            handler.flush()

        lines = log_file.read_text().splitlines()
        assert len(lines) == 1
        entry = json.loads(lines[0])
        assert entry["action"] == "create_bank"
        assert entry["extra"] == {"economy_id": "eco-1"}

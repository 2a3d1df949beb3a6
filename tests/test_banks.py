"""
Tests for the bank registry
"""

import pytest
from decimal import Decimal

from economy_ledger.accounts import AccountLedger
from economy_ledger.banks import BankRegistry, FeeKind, FeeSchedule
from economy_ledger.economy import CurrencySpec, EconomyCatalog
from economy_ledger.errors import ConflictError, InvalidAmountError, NotFoundError
from economy_ledger.storage import InMemoryBackend, LedgerStore


class TestFeeSchedule:
    """Test fee calculation"""

    def test_fee_for(self):
        fees = FeeSchedule(withdrawal=Decimal("1"), transfer=Decimal("0.5"), exchange=Decimal("2"))
        assert fees.fee_for(FeeKind.EXCHANGE, Decimal("200")) == Decimal("4")
        assert fees.fee_for(FeeKind.TRANSFER, Decimal("200")) == Decimal("1")
        assert fees.rate_for(FeeKind.WITHDRAWAL) == Decimal("1")

    def test_negative_fee_rejected(self):
        with pytest.raises(InvalidAmountError):
            FeeSchedule(withdrawal=Decimal("-1"))

    def test_from_dict(self):
        fees = FeeSchedule.from_dict({"exchange": "1.5"})
        assert fees.exchange == Decimal("1.5")
        assert fees.withdrawal == Decimal("0")


class TestBankRegistry:
    """Test bank lifecycle"""

    def setup_method(self):
        self.store = LedgerStore(InMemoryBackend())
        self.catalog = EconomyCatalog(self.store)
        self.banks = BankRegistry(self.store, default_exchange_fee="1")
        self.accounts = AccountLedger(self.store)
        self.economy = self.catalog.create_economy(
            "Faerun", "", CurrencySpec("Gold", "gp"), interest_rate="2"
        )

    def test_create_bank(self):
        bank = self.banks.create_bank(self.economy.id, "Iron Bank", "Dwarven vaults")
        assert bank.interest_rate is None
        assert bank.fees.exchange == Decimal("1")
        assert self.banks.get_bank(bank.id).name == "Iron Bank"

    def test_create_bank_unknown_economy(self):
        with pytest.raises(NotFoundError):
            self.banks.create_bank("missing", "Ghost Bank")

    def test_explicit_fees(self):
        bank = self.banks.create_bank(self.economy.id, "Iron Bank", fees={"exchange": "3"})
        assert self.banks.get_bank(bank.id).fees.exchange == Decimal("3")

    def test_effective_interest_rate(self):
        inherits = self.banks.create_bank(self.economy.id, "Iron Bank")
        overrides = self.banks.create_bank(self.economy.id, "Gold Bank", interest_rate="5")
        assert self.banks.effective_interest_rate(inherits.id) == Decimal("2")
        assert self.banks.effective_interest_rate(overrides.id) == Decimal("5")

        self.banks.update_bank(overrides.id, clear_interest_rate=True)
        assert self.banks.effective_interest_rate(overrides.id) == Decimal("2")

    def test_npc_binding(self):
        bank = self.banks.create_bank(self.economy.id, "Iron Bank", npc_actor_id="actor-1")
        assert self.banks.get_bank_by_npc("actor-1").id == bank.id

        with pytest.raises(ConflictError):
            self.banks.create_bank(self.economy.id, "Copycat", npc_actor_id="actor-1")

        self.banks.update_bank(bank.id, clear_npc=True)
        with pytest.raises(NotFoundError):
            self.banks.get_bank_by_npc("actor-1")

    def test_list_banks(self):
        other = self.catalog.create_economy("Eberron", "", CurrencySpec("Galifar", "gf"))
        self.banks.create_bank(self.economy.id, "Iron Bank")
        self.banks.create_bank(other.id, "House Kundarak")
        assert len(self.banks.list_banks()) == 2
        assert [b.name for b in self.banks.list_banks(other.id)] == ["House Kundarak"]

    def test_update_bank(self):
        bank = self.banks.create_bank(self.economy.id, "Iron Bank")
        updated = self.banks.update_bank(bank.id, name="Steel Bank", fees=FeeSchedule(withdrawal=Decimal("1")))
        assert updated.name == "Steel Bank"
        assert self.banks.get_bank(bank.id).fees.withdrawal == Decimal("1")

    def test_delete_bank(self):
        bank = self.banks.create_bank(self.economy.id, "Iron Bank")
        self.banks.delete_bank(bank.id)
        with pytest.raises(NotFoundError):
            self.banks.get_bank(bank.id)

    def test_delete_bank_with_accounts_rejected(self):
        bank = self.banks.create_bank(self.economy.id, "Iron Bank")
        account = self.accounts.create_account(bank.id, self.economy.base_currency_id, "pc-1", "Valeros")
        self.accounts.close_account(account.id)

        # Closed accounts still block deletion
        with pytest.raises(ConflictError):
            self.banks.delete_bank(bank.id)

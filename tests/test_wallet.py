"""
Tests for the character-wallet bridge
"""

import pytest
from decimal import Decimal

from economy_ledger.accounts import AccountLedger
from economy_ledger.banks import BankRegistry
from economy_ledger.economy import EconomyCatalog
from economy_ledger.errors import ConflictError, InactiveAccountError, InsufficientFundsError, WalletError
from economy_ledger.storage import InMemoryBackend, LedgerStore
from economy_ledger.transactions import TransactionEngine
from economy_ledger.wallet import InMemoryWallet, WalletBridge


class RefusingWallet(InMemoryWallet):
    """Wallet whose host refuses every credit"""

    def credit_wallet(self, owner_id, currency_code, amount):
        return False


class TestInMemoryWallet:

    def test_credit_and_debit(self):
        wallet = InMemoryWallet()
        wallet.set_balance("pc-1", "GP", Decimal("10"))
        assert wallet.read_wallet_balance("pc-1", "gp") == Decimal("10")
        assert wallet.debit_wallet("pc-1", "gp", Decimal("4"))
        assert not wallet.debit_wallet("pc-1", "gp", Decimal("7"))
        assert wallet.credit_wallet("pc-1", "gp", Decimal("1"))
        assert wallet.read_wallet_balance("pc-1", "gp") == Decimal("7")
        assert wallet.read_wallet_balance("pc-2", "gp") == Decimal("0")


class TestWalletBridge:
    """Test wallet deposits and withdrawals"""

    def setup_method(self):
        self.store = LedgerStore(InMemoryBackend())
        self.catalog = EconomyCatalog(self.store)
        self.banks = BankRegistry(self.store)
        self.accounts = AccountLedger(self.store)
        self.engine = TransactionEngine(self.store)

        economy = self.catalog.create_economy_from_preset("Faerun", "", "dnd5e")
        gold = self.catalog.find_currency_by_abbreviation(economy.id, "gp")
        bank = self.banks.create_bank(economy.id, "Iron Bank")
        self.account = self.accounts.create_account(bank.id, gold.id, "pc-1", "Valeros")

        self.wallet = InMemoryWallet()
        self.wallet.set_balance("pc-1", "gp", Decimal("50"))
        self.bridge = WalletBridge(self.wallet, self.engine, self.catalog, self.accounts)

    def balance(self):
        return self.accounts.get_account(self.account.id).balance

    def test_deposit_from_wallet(self):
        transaction = self.bridge.deposit_from_wallet("pc-1", self.account.id, "30")
        assert transaction.amount == Decimal("30")
        assert transaction.created_by == "pc-1"
        assert self.wallet.read_wallet_balance("pc-1", "gp") == Decimal("20")
        assert self.balance() == Decimal("30")

    def test_deposit_more_than_wallet_holds(self):
        with pytest.raises(InsufficientFundsError):
            self.bridge.deposit_from_wallet("pc-1", self.account.id, "51")
        assert self.wallet.read_wallet_balance("pc-1", "gp") == Decimal("50")
        assert self.balance() == Decimal("0")

    def test_failed_deposit_returns_coins(self):
        original_deposit = self.engine.deposit

        def close_then_deposit(*args, **kwargs):
            # Account closed between the wallet debit and the deposit
            self.accounts.close_account(self.account.id)
            return original_deposit(*args, **kwargs)

        self.engine.deposit = close_then_deposit
        with pytest.raises(InactiveAccountError):
            self.bridge.deposit_from_wallet("pc-1", self.account.id, "10")
        assert self.wallet.read_wallet_balance("pc-1", "gp") == Decimal("50")

    def test_withdraw_to_wallet(self):
        self.engine.deposit(self.account.id, "40")
        self.bridge.withdraw_to_wallet("pc-1", self.account.id, "15")
        assert self.balance() == Decimal("25")
        assert self.wallet.read_wallet_balance("pc-1", "gp") == Decimal("65")

    def test_refused_credit_rolls_back(self):
        bridge = WalletBridge(RefusingWallet(), self.engine, self.catalog, self.accounts)
        self.engine.deposit(self.account.id, "40")

        with pytest.raises(WalletError):
            bridge.withdraw_to_wallet("pc-1", self.account.id, "15")

        assert self.balance() == Decimal("40")
        history = self.engine.get_transactions(self.account.id)
        assert history[0].description.startswith("Rollback")
        assert self.engine.verify_balance(self.account.id)

    def test_owner_must_match(self):
        with pytest.raises(ConflictError):
            self.bridge.deposit_from_wallet("pc-2", self.account.id, "1")

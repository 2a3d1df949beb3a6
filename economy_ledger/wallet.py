"""
Character-Wallet Bridge

Moves money between an owner's wallet in the host application (the coins a
character carries) and a ledger account. The host's wallet is reached through
a WalletAdapter, and the wallet currency code is the abbreviation of the
account's currency.

The two sides live in different stores, so a movement is compensated rather
than atomic: if the second half fails, the first half is reversed. A crash
between the halves can still leave them out of step.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, Optional

from .accounts import AccountLedger
from .economy import EconomyCatalog
from .errors import ConflictError, InsufficientFundsError, LedgerError, WalletError
from .logging_config import get_logger, log_action
from .money import ZERO, AmountLike, require_positive
from .transactions import Transaction, TransactionEngine


class WalletAdapter(ABC):
    """Access to owner wallets held by the host application"""

    @abstractmethod
    def read_wallet_balance(self, owner_id: str, currency_code: str) -> Decimal:
        pass

    @abstractmethod
    def credit_wallet(self, owner_id: str, currency_code: str, amount: Decimal) -> bool:
        """Add amount to the wallet; False if the host refused"""
        pass

    @abstractmethod
    def debit_wallet(self, owner_id: str, currency_code: str, amount: Decimal) -> bool:
        """Remove amount from the wallet; False if the host refused"""
        pass


class InMemoryWallet(WalletAdapter):
    """Wallets kept in a dict, for tests and standalone use"""

    def __init__(self):
        self._wallets: Dict[str, Dict[str, Decimal]] = {}

    def set_balance(self, owner_id: str, currency_code: str, amount: Decimal) -> None:
        self._wallets.setdefault(owner_id, {})[currency_code.lower()] = Decimal(amount)

    def read_wallet_balance(self, owner_id: str, currency_code: str) -> Decimal:
        return self._wallets.get(owner_id, {}).get(currency_code.lower(), ZERO)

    def credit_wallet(self, owner_id: str, currency_code: str, amount: Decimal) -> bool:
        purse = self._wallets.setdefault(owner_id, {})
        purse[currency_code.lower()] = purse.get(currency_code.lower(), ZERO) + amount
        return True

    def debit_wallet(self, owner_id: str, currency_code: str, amount: Decimal) -> bool:
        balance = self.read_wallet_balance(owner_id, currency_code)
        if balance < amount:
            return False
        self._wallets[owner_id][currency_code.lower()] = balance - amount
        return True


class WalletBridge:
    """
    Deposits from and withdrawals to an owner's wallet
    """

    def __init__(
        self,
        adapter: WalletAdapter,
        engine: TransactionEngine,
        catalog: EconomyCatalog,
        accounts: AccountLedger
    ):
        self.adapter = adapter
        self.engine = engine
        self.catalog = catalog
        self.accounts = accounts
        self.logger = get_logger("economy_ledger.wallet")

    def _currency_code(self, owner_id: str, account_id: str) -> str:
        account = self.accounts.get_account(account_id)
        if account.owner_id != owner_id:
            raise ConflictError(f"Account {account_id} does not belong to owner {owner_id}")
        account.require_active()
        return self.catalog.get_currency(account.currency_id).abbreviation

    def deposit_from_wallet(
        self,
        owner_id: str,
        account_id: str,
        amount: AmountLike,
        initiator: Optional[str] = None
    ) -> Transaction:
        """
        Take amount out of the owner's wallet and deposit it into the account

        Raises:
            InsufficientFundsError: If the wallet holds less than amount
            WalletError: If the host refuses the wallet debit
        """
        value = require_positive(amount)
        initiator = initiator or owner_id
        code = self._currency_code(owner_id, account_id)

        held = self.adapter.read_wallet_balance(owner_id, code)
        if held < value:
            raise InsufficientFundsError(f"Wallet holds {held} {code}, requested {value}")
        if not self.adapter.debit_wallet(owner_id, code, value):
            raise WalletError(f"Wallet debit of {value} {code} was refused")

        try:
            transaction = self.engine.deposit(account_id, value, "Deposit from wallet", initiator)
        except LedgerError:
            if not self.adapter.credit_wallet(owner_id, code, value):
                self.logger.error(
                    f"Could not return {value} {code} to wallet of {owner_id} after failed deposit"
                )
            raise

        log_action(
            self.logger, "info", f"Moved {value} {code} from wallet to account {account_id}",
            user_id=initiator, action="deposit_from_wallet", resource=f"account:{account_id}"
        )
        return transaction

    def withdraw_to_wallet(
        self,
        owner_id: str,
        account_id: str,
        amount: AmountLike,
        initiator: Optional[str] = None
    ) -> Transaction:
        """
        Withdraw amount from the account and put it into the owner's wallet

        If the wallet credit fails the amount is deposited back with a
        "Rollback" description.

        Raises:
            WalletError: If the host refuses the wallet credit
        """
        value = require_positive(amount)
        initiator = initiator or owner_id
        code = self._currency_code(owner_id, account_id)

        transaction = self.engine.withdraw(account_id, value, "Withdrawal to wallet", initiator)

        try:
            credited = self.adapter.credit_wallet(owner_id, code, value)
        except Exception:
            self.engine.deposit(account_id, value, "Rollback: wallet credit failed", initiator)
            raise
        if not credited:
            self.engine.deposit(account_id, value, "Rollback: wallet credit failed", initiator)
            raise WalletError(f"Wallet credit of {value} {code} was refused")

        log_action(
            self.logger, "info", f"Moved {value} {code} from account {account_id} to wallet",
            user_id=initiator, action="withdraw_to_wallet", resource=f"account:{account_id}"
        )
        return transaction

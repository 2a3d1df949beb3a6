"""
Ledger System Facade

Wires the store, managers and event dispatcher for one world and offers a
single ``execute`` entry point that turns expected domain failures into
OperationResult values for host-side callers.
"""

from typing import Any, Callable, Dict, Optional

from .accounts import AccountLedger
from .banks import BankRegistry
from .config import LedgerConfig, get_config
from .economy import EconomyCatalog
from .errors import LedgerError, OperationResult, PersistenceError
from .events import EventDispatcher
from .logging_config import get_logger
from .storage import LedgerStore, create_store
from .transactions import TransactionEngine
from .wallet import InMemoryWallet, WalletAdapter, WalletBridge


class LedgerSystem:
    """Economy ledger with all components initialized"""

    def __init__(
        self,
        store: LedgerStore,
        config: Optional[LedgerConfig] = None,
        event_dispatcher: Optional[EventDispatcher] = None,
        wallet_adapter: Optional[WalletAdapter] = None
    ):
        self.config = config or get_config()
        self.store = store
        self.logger = get_logger("economy_ledger.system")

        if event_dispatcher is None and self.config.enable_events:
            event_dispatcher = EventDispatcher()
        self.events = event_dispatcher

        self.catalog = EconomyCatalog(store, event_dispatcher)
        self.banks = BankRegistry(
            store, event_dispatcher, default_exchange_fee=self.config.default_exchange_fee
        )
        self.accounts = AccountLedger(store, event_dispatcher)
        self.engine = TransactionEngine(
            store,
            event_dispatcher,
            amount_precision=self.config.amount_precision,
            default_limit=self.config.default_transaction_limit,
            default_all_limit=self.config.default_all_transactions_limit
        )
        self.wallet = WalletBridge(
            wallet_adapter or InMemoryWallet(), self.engine, self.catalog, self.accounts
        )

        self._operations: Dict[str, Callable[..., Any]] = {
            # Economies and currencies
            "create_economy": self.catalog.create_economy,
            "create_economy_from_preset": self.catalog.create_economy_from_preset,
            "get_economy": self.catalog.get_economy,
            "list_economies": self.catalog.list_economies,
            "update_economy": self.catalog.update_economy,
            "delete_economy": self.catalog.delete_economy,
            "create_currency": self.catalog.create_currency,
            "set_base_currency": self.catalog.set_base_currency,
            "get_currency": self.catalog.get_currency,
            "list_currencies": self.catalog.list_currencies,
            "find_currency_by_abbreviation": self.catalog.find_currency_by_abbreviation,
            "update_currency": self.catalog.update_currency,
            "delete_currency": self.catalog.delete_currency,
            "set_exchange_rate": self.catalog.set_exchange_rate,
            "remove_exchange_rate": self.catalog.remove_exchange_rate,
            "list_exchange_rates": self.catalog.list_exchange_rates,
            "get_exchange_rate": self.catalog.get_exchange_rate,
            "convert": self.catalog.convert,
            # Banks
            "create_bank": self.banks.create_bank,
            "get_bank": self.banks.get_bank,
            "list_banks": self.banks.list_banks,
            "get_bank_by_npc": self.banks.get_bank_by_npc,
            "update_bank": self.banks.update_bank,
            "delete_bank": self.banks.delete_bank,
            "effective_interest_rate": self.banks.effective_interest_rate,
            # Accounts
            "create_account": self.accounts.create_account,
            "get_account": self.accounts.get_account,
            "list_accounts": self.accounts.list_accounts,
            "get_accounts_by_owner": self.accounts.get_accounts_by_owner,
            "get_accounts_by_bank": self.accounts.get_accounts_by_bank,
            "get_account_balance": self.accounts.get_account_balance,
            "rename_account": self.accounts.rename_account,
            "update_owner_name": self.accounts.update_owner_name,
            "update_account": self.accounts.update_account,
            "close_account": self.accounts.close_account,
            "reopen_account": self.accounts.reopen_account,
            "delete_account": self.accounts.delete_account,
            # Transactions
            "deposit": self.engine.deposit,
            "withdraw": self.engine.withdraw,
            "transfer": self.engine.transfer,
            "exchange": self.engine.exchange,
            "charge_fee": self.engine.charge_fee,
            "post_interest": self.engine.post_interest,
            "post_interest_for_bank": self.engine.post_interest_for_bank,
            "get_transaction": self.engine.get_transaction,
            "get_transactions": self.engine.get_transactions,
            "get_all_transactions": self.engine.get_all_transactions,
            "replay_balance": self.engine.replay_balance,
            "verify_balance": self.engine.verify_balance,
            # Wallet
            "deposit_from_wallet": self.wallet.deposit_from_wallet,
            "withdraw_to_wallet": self.wallet.withdraw_to_wallet,
        }

    @classmethod
    def from_config(
        cls,
        config: Optional[LedgerConfig] = None,
        wallet_adapter: Optional[WalletAdapter] = None
    ) -> 'LedgerSystem':
        """Build a system whose store is selected by configuration"""
        config = config or get_config()
        return cls(create_store(config), config=config, wallet_adapter=wallet_adapter)

    @property
    def operations(self):
        return sorted(self._operations)

    def execute(self, operation: str, **params: Any) -> OperationResult:
        """
        Run a named operation

        Domain failures come back as a failed OperationResult. Persistence
        failures are raised so the caller can decide whether to retry.

        Raises:
            ValueError: If the operation name is unknown
            PersistenceError: If the store could not be read or written
        """
        handler = self._operations.get(operation)
        if handler is None:
            raise ValueError(f"Unknown operation: {operation}")

        try:
            return OperationResult.ok(handler(**params))
        except PersistenceError:
            self.logger.error(f"Persistence failure during {operation}")
            raise
        except LedgerError as e:
            self.logger.info(f"{operation} failed: [{e.kind.value}] {e.message}")
            return OperationResult.fail(e)

    def close(self) -> None:
        self.store.close()

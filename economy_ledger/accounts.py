"""
Account Management Module

Accounts bind an owner (an external actor such as a player character) to one
bank and one currency of that bank's economy. The balance lives on the account
record; the transaction history is the audit trail for it. Closing an account
is a soft delete so history is kept; deleting a zero-balance account removes
it and its history.
"""

from decimal import Decimal
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
import uuid

from .banks import load_bank
from .economy import Currency, load_currency
from .errors import ConflictError, InactiveAccountError, InvalidAmountError, NotFoundError
from .events import DomainEvent, EventDispatcher, EventPublisherMixin
from .logging_config import get_logger, log_action
from .money import ZERO, to_decimal
from .storage import LedgerState, LedgerStore, StorageRecord, utcnow


DEFAULT_ACCOUNT_NAME = "Main Account"


@dataclass
class Account(StorageRecord):
    """
    Balance-holding account of one owner at one bank, in one currency
    """
    bank_id: str
    currency_id: str
    owner_id: str
    owner_name: str
    name: str = DEFAULT_ACCOUNT_NAME
    balance: Decimal = ZERO
    is_active: bool = True

    def __post_init__(self):
        if not isinstance(self.balance, Decimal):
            self.balance = to_decimal(self.balance)
        if self.balance < ZERO:
            raise InvalidAmountError(f"Account balance cannot be negative: {self.balance}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        data = dict(data)
        data['balance'] = to_decimal(data.get('balance') or '0')
        return super().from_dict(data)

    def can_transact(self) -> bool:
        return self.is_active

    def require_active(self) -> None:
        if not self.is_active:
            raise InactiveAccountError(f"Account {self.id} ({self.name}) is inactive")


def load_account(state: LedgerState, account_id: str) -> Account:
    data = state.accounts.get(account_id)
    if data is None:
        raise NotFoundError("account", account_id)
    return Account.from_dict(data)


def _require_name_free(state: LedgerState, account: Account, name: str) -> None:
    for other_id, data in state.accounts.items():
        if (other_id != account.id and data['bank_id'] == account.bank_id
                and data['owner_id'] == account.owner_id
                and data['name'].lower() == name.lower()):
            raise ConflictError(f"{account.owner_name} already has an account named '{name}'")


def _set_owner_name(state: LedgerState, owner_id: str, owner_name: str) -> List[Account]:
    now = utcnow()
    updated = []
    for data in list(state.accounts.values()):
        if data['owner_id'] == owner_id and data['owner_name'] != owner_name:
            account = Account.from_dict(data)
            account.owner_name = owner_name
            account.updated_at = now
            state.accounts[account.id] = account.to_dict()
            updated.append(account)
    return updated


class AccountLedger(EventPublisherMixin):
    """
    Manages account lifecycle and owner/bank lookups
    """

    def __init__(self, store: LedgerStore, event_dispatcher: Optional[EventDispatcher] = None):
        self.store = store
        self._event_dispatcher = event_dispatcher
        self.logger = get_logger("economy_ledger.accounts")

    def create_account(
        self,
        bank_id: str,
        currency_id: str,
        owner_id: str,
        owner_name: str,
        name: str = DEFAULT_ACCOUNT_NAME
    ) -> Account:
        """
        Open an account with a zero balance

        An owner may hold several accounts at the same bank as long as their
        names differ.

        Raises:
            NotFoundError: If the bank or currency does not exist
            ConflictError: If the currency is not part of the bank's economy,
                or the owner already has an account with this name at the bank
        """
        def apply(state: LedgerState) -> Account:
            bank = load_bank(state, bank_id)
            currency = load_currency(state, currency_id)
            if currency.economy_id != bank.economy_id:
                raise ConflictError(
                    f"Currency {currency.abbreviation} does not belong to the economy of bank {bank.name}"
                )

            for data in state.accounts.values():
                if (data['bank_id'] == bank_id and data['owner_id'] == owner_id
                        and data['name'].lower() == name.lower()):
                    raise ConflictError(
                        f"{owner_name} already has an account named '{name}' at {bank.name}"
                    )

            now = utcnow()
            account = Account(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                bank_id=bank_id,
                currency_id=currency_id,
                owner_id=owner_id,
                owner_name=owner_name,
                name=name
            )
            state.accounts[account.id] = account.to_dict()
            return account

        account = self.store.transact(apply)
        log_action(
            self.logger, "info", f"Created account for {owner_name} at bank {bank_id}",
            user_id=owner_id, action="create_account", resource=f"account:{account.id}",
            extra={"currency_id": currency_id, "name": name}
        )
        self.publish_event(DomainEvent.ACCOUNT_CREATED, "account", account.id, account.to_dict())
        return account

    def get_account(self, account_id: str) -> Account:
        return load_account(self.store.load(), account_id)

    def list_accounts(
        self,
        bank_id: Optional[str] = None,
        owner_id: Optional[str] = None,
        include_inactive: bool = True
    ) -> List[Account]:
        accounts = [Account.from_dict(data) for data in self.store.load().accounts.values()]
        if bank_id is not None:
            accounts = [a for a in accounts if a.bank_id == bank_id]
        if owner_id is not None:
            accounts = [a for a in accounts if a.owner_id == owner_id]
        if not include_inactive:
            accounts = [a for a in accounts if a.is_active]
        return accounts

    def get_accounts_by_owner(self, owner_id: str) -> List[Account]:
        return self.list_accounts(owner_id=owner_id)

    def get_accounts_by_bank(self, bank_id: str) -> List[Account]:
        return self.list_accounts(bank_id=bank_id)

    def get_account_balance(self, account_id: str) -> Tuple[Decimal, Currency]:
        """Balance together with the account's currency"""
        state = self.store.load()
        account = load_account(state, account_id)
        return account.balance, load_currency(state, account.currency_id)

    def rename_account(self, account_id: str, name: str) -> Account:
        def apply(state: LedgerState) -> Account:
            account = load_account(state, account_id)
            _require_name_free(state, account, name)
            account.name = name
            account.updated_at = utcnow()
            state.accounts[account.id] = account.to_dict()
            return account

        account = self.store.transact(apply)
        self.publish_event(DomainEvent.ACCOUNT_UPDATED, "account", account.id, account.to_dict())
        return account

    def update_owner_name(self, owner_id: str, owner_name: str) -> int:
        """Refresh the cached owner name on all of an owner's accounts"""
        updated = self.store.transact(lambda state: _set_owner_name(state, owner_id, owner_name))
        for account in updated:
            self.publish_event(DomainEvent.ACCOUNT_UPDATED, "account", account.id, account.to_dict())
        return len(updated)

    def update_account(
        self,
        account_id: str,
        name: Optional[str] = None,
        owner_name: Optional[str] = None
    ) -> Account:
        """
        Rename an account and/or refresh its owner's name in one step

        The owner name is refreshed on every account of the owner. Nothing is
        changed if the new account name conflicts.
        """
        def apply(state: LedgerState) -> Tuple[Account, List[Account]]:
            account = load_account(state, account_id)
            if name is not None:
                _require_name_free(state, account, name)
                account.name = name
                account.updated_at = utcnow()
                state.accounts[account.id] = account.to_dict()
            renamed_owner = []
            if owner_name is not None:
                renamed_owner = _set_owner_name(state, account.owner_id, owner_name)
            return load_account(state, account_id), renamed_owner

        account, renamed_owner = self.store.transact(apply)
        changed = {a.id: a for a in renamed_owner}
        changed[account.id] = account
        for updated in changed.values():
            self.publish_event(DomainEvent.ACCOUNT_UPDATED, "account", updated.id, updated.to_dict())
        return account

    def close_account(self, account_id: str) -> Account:
        """
        Close (deactivate) an account; transaction history is kept

        Raises:
            ConflictError: If the balance is not exactly zero
            InactiveAccountError: If the account is already closed
        """
        def apply(state: LedgerState) -> Account:
            account = load_account(state, account_id)
            account.require_active()
            if account.balance != ZERO:
                raise ConflictError(
                    f"Cannot close account with non-zero balance: {account.balance}"
                )
            account.is_active = False
            account.updated_at = utcnow()
            state.accounts[account.id] = account.to_dict()
            return account

        account = self.store.transact(apply)
        log_action(
            self.logger, "info", f"Closed account {account_id}",
            user_id=account.owner_id, action="close_account", resource=f"account:{account_id}"
        )
        self.publish_event(DomainEvent.ACCOUNT_CLOSED, "account", account.id, account.to_dict())
        return account

    def reopen_account(self, account_id: str) -> Account:
        def apply(state: LedgerState) -> Account:
            account = load_account(state, account_id)
            if account.is_active:
                raise ConflictError(f"Account {account_id} is already active")
            account.is_active = True
            account.updated_at = utcnow()
            state.accounts[account.id] = account.to_dict()
            return account

        account = self.store.transact(apply)
        self.logger.info(f"Reopened account {account_id}")
        self.publish_event(DomainEvent.ACCOUNT_UPDATED, "account", account.id, account.to_dict())
        return account

    def delete_account(self, account_id: str) -> Dict[str, int]:
        """
        Remove an account together with its transaction history

        Transfer records on other accounts keep their related ids.

        Returns:
            Count of removed transactions

        Raises:
            ConflictError: If the balance is not exactly zero
        """
        def apply(state: LedgerState) -> Dict[str, int]:
            account = load_account(state, account_id)
            if account.balance != ZERO:
                raise ConflictError(
                    f"Cannot delete account with non-zero balance: {account.balance}"
                )
            transactions_before = len(state.transactions)
            state.transactions = [t for t in state.transactions if t['account_id'] != account_id]
            del state.accounts[account_id]
            return {"transactions": transactions_before - len(state.transactions)}

        removed = self.store.transact(apply)
        log_action(
            self.logger, "info", f"Deleted account {account_id}",
            action="delete_account", resource=f"account:{account_id}", extra=removed
        )
        self.publish_event(DomainEvent.ACCOUNT_DELETED, "account", account_id, removed)
        return removed

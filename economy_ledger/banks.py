"""
Bank Registry Module

Banks are institutions inside one economy. They host accounts, carry a fee
schedule (percentages for withdrawals, transfers and currency exchange) and
may override the economy's interest rate. A bank can be bound to an external
entity, typically the NPC that players talk to.
"""

from decimal import Decimal
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid

from .economy import load_economy
from .errors import ConflictError, NotFoundError
from .events import DomainEvent, EventDispatcher, EventPublisherMixin
from .logging_config import get_logger, log_action
from .money import ZERO, AmountLike, percentage_of, require_non_negative, to_decimal
from .storage import LedgerState, LedgerStore, StorageRecord, utcnow


class FeeKind(Enum):
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"
    EXCHANGE = "exchange"


@dataclass
class FeeSchedule:
    """Percentage fees (2 = 2%) charged by a bank"""
    withdrawal: Decimal = ZERO
    transfer: Decimal = ZERO
    exchange: Decimal = ZERO

    def __post_init__(self):
        for kind in FeeKind:
            value = require_non_negative(getattr(self, kind.value), f"{kind.value.capitalize()} fee")
            setattr(self, kind.value, value)

    def rate_for(self, kind: FeeKind) -> Decimal:
        return getattr(self, kind.value)

    def fee_for(self, kind: FeeKind, amount: Decimal) -> Decimal:
        """Fee owed on amount for the given kind of operation"""
        return percentage_of(amount, self.rate_for(kind))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'FeeSchedule':
        data = data or {}
        return cls(**{kind.value: to_decimal(data.get(kind.value) or '0') for kind in FeeKind})


@dataclass
class Bank(StorageRecord):
    """
    Financial institution within an economy

    ``interest_rate`` of None means the economy's rate applies.
    """
    economy_id: str
    name: str
    description: str = ""
    interest_rate: Optional[Decimal] = None
    fees: FeeSchedule = field(default_factory=FeeSchedule)
    npc_actor_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Bank':
        data = dict(data)
        rate = data.get('interest_rate')
        data['interest_rate'] = to_decimal(rate) if rate is not None else None
        data['fees'] = FeeSchedule.from_dict(data.get('fees'))
        return super().from_dict(data)


def load_bank(state: LedgerState, bank_id: str) -> Bank:
    data = state.banks.get(bank_id)
    if data is None:
        raise NotFoundError("bank", bank_id)
    return Bank.from_dict(data)


def effective_interest_rate(state: LedgerState, bank: Bank) -> Decimal:
    if bank.interest_rate is not None:
        return bank.interest_rate
    return load_economy(state, bank.economy_id).interest_rate


def _fee_schedule(fees: Any) -> FeeSchedule:
    if isinstance(fees, FeeSchedule):
        return fees
    return FeeSchedule.from_dict(fees)


class BankRegistry(EventPublisherMixin):
    """
    Manages banks and their fee/interest configuration
    """

    def __init__(
        self,
        store: LedgerStore,
        event_dispatcher: Optional[EventDispatcher] = None,
        default_exchange_fee: AmountLike = ZERO
    ):
        self.store = store
        self._event_dispatcher = event_dispatcher
        self.default_exchange_fee = to_decimal(default_exchange_fee)
        self.logger = get_logger("economy_ledger.banks")

    def create_bank(
        self,
        economy_id: str,
        name: str,
        description: str = "",
        interest_rate: Optional[AmountLike] = None,
        fees: Optional[Any] = None,
        npc_actor_id: Optional[str] = None
    ) -> Bank:
        """
        Create a bank in an economy

        Args:
            economy_id: Economy the bank operates in
            name: Bank name
            description: Free text
            interest_rate: Percentage override; None uses the economy's rate
            fees: FeeSchedule or dict of percentages; defaults to no fees
                except the configured default exchange fee
            npc_actor_id: External entity bound to the bank

        Raises:
            NotFoundError: If the economy does not exist
        """
        rate = require_non_negative(interest_rate, "Interest rate") if interest_rate is not None else None
        schedule = _fee_schedule(fees) if fees is not None else FeeSchedule(exchange=self.default_exchange_fee)

        def apply(state: LedgerState) -> Bank:
            load_economy(state, economy_id)
            if npc_actor_id:
                self._check_npc_free(state, npc_actor_id)

            now = utcnow()
            bank = Bank(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                economy_id=economy_id,
                name=name,
                description=description,
                interest_rate=rate,
                fees=schedule,
                npc_actor_id=npc_actor_id
            )
            state.banks[bank.id] = bank.to_dict()
            return bank

        bank = self.store.transact(apply)
        log_action(
            self.logger, "info", f"Created bank: {name}",
            action="create_bank", resource=f"bank:{bank.id}",
            extra={"economy_id": economy_id, "npc_actor_id": npc_actor_id}
        )
        self.publish_event(DomainEvent.BANK_CREATED, "bank", bank.id, bank.to_dict())
        return bank

    def _check_npc_free(self, state: LedgerState, npc_actor_id: str, exclude_id: Optional[str] = None) -> None:
        for bank_id, data in state.banks.items():
            if bank_id != exclude_id and data.get('npc_actor_id') == npc_actor_id:
                raise ConflictError(f"Actor {npc_actor_id} is already bound to bank {data['name']}")

    def get_bank(self, bank_id: str) -> Bank:
        return load_bank(self.store.load(), bank_id)

    def list_banks(self, economy_id: Optional[str] = None) -> List[Bank]:
        state = self.store.load()
        banks = [Bank.from_dict(data) for data in state.banks.values()]
        if economy_id is not None:
            banks = [b for b in banks if b.economy_id == economy_id]
        return banks

    def get_bank_by_npc(self, npc_actor_id: str) -> Bank:
        for bank in self.list_banks():
            if bank.npc_actor_id == npc_actor_id:
                return bank
        raise NotFoundError("bank", f"bound to actor {npc_actor_id}")

    def update_bank(
        self,
        bank_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        interest_rate: Optional[AmountLike] = None,
        clear_interest_rate: bool = False,
        fees: Optional[Any] = None,
        npc_actor_id: Optional[str] = None,
        clear_npc: bool = False
    ) -> Bank:
        """Update a bank; its economy cannot change"""
        def apply(state: LedgerState) -> Bank:
            bank = load_bank(state, bank_id)
            if name is not None:
                bank.name = name
            if description is not None:
                bank.description = description
            if clear_interest_rate:
                bank.interest_rate = None
            elif interest_rate is not None:
                bank.interest_rate = require_non_negative(interest_rate, "Interest rate")
            if fees is not None:
                bank.fees = _fee_schedule(fees)
            if clear_npc:
                bank.npc_actor_id = None
            elif npc_actor_id is not None:
                self._check_npc_free(state, npc_actor_id, exclude_id=bank.id)
                bank.npc_actor_id = npc_actor_id

            bank.updated_at = utcnow()
            state.banks[bank.id] = bank.to_dict()
            return bank

        bank = self.store.transact(apply)
        self.logger.info(f"Updated bank: {bank_id}")
        self.publish_event(DomainEvent.BANK_UPDATED, "bank", bank.id, bank.to_dict())
        return bank

    def delete_bank(self, bank_id: str) -> None:
        """
        Delete a bank that has no accounts

        Raises:
            ConflictError: If any account, active or closed, is held at the bank
        """
        def apply(state: LedgerState) -> None:
            bank = load_bank(state, bank_id)
            held = sum(1 for a in state.accounts.values() if a['bank_id'] == bank_id)
            if held:
                raise ConflictError(f"Cannot delete bank {bank.name}: {held} account(s) exist")
            del state.banks[bank_id]

        self.store.transact(apply)
        log_action(self.logger, "info", f"Deleted bank: {bank_id}",
                   action="delete_bank", resource=f"bank:{bank_id}")
        self.publish_event(DomainEvent.BANK_DELETED, "bank", bank_id, {})

    def effective_interest_rate(self, bank_id: str) -> Decimal:
        """Interest percentage that applies at a bank"""
        state = self.store.load()
        return effective_interest_rate(state, load_bank(state, bank_id))

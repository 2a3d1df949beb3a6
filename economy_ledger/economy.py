"""
Economy Catalog Module

Economies are named monetary systems (a kingdom, a faction, a region). Each
has one or more currencies whose ``base_value`` expresses their worth relative
to the economy's base currency (base_value 1). Exchange rates are derived from
base values within an economy, or taken from explicit overrides.
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
import uuid

from .errors import ConflictError, InvalidAmountError, NotConvertibleError, NotFoundError
from .events import DomainEvent, EventDispatcher, EventPublisherMixin
from .logging_config import get_logger, log_action
from .money import ONE, ZERO, AmountLike, require_non_negative, require_positive, to_decimal
from .storage import LedgerState, LedgerStore, StorageRecord, parse_datetime, utcnow


@dataclass
class Economy(StorageRecord):
    """A monetary system; interest and growth rates are percentages (5 = 5%)"""
    name: str
    description: str
    base_currency_id: Optional[str]
    interest_rate: Decimal = ZERO
    growth_rate: Decimal = ZERO

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Economy':
        data = dict(data)
        data['interest_rate'] = to_decimal(data.get('interest_rate') or '0')
        data['growth_rate'] = to_decimal(data.get('growth_rate') or '0')
        return super().from_dict(data)


@dataclass
class Currency(StorageRecord):
    """A currency of one economy"""
    economy_id: str
    name: str
    abbreviation: str
    symbol: str
    base_value: Decimal
    color: str = ""

    def __post_init__(self):
        if not isinstance(self.base_value, Decimal):
            self.base_value = to_decimal(self.base_value)
        if self.base_value <= ZERO:
            raise InvalidAmountError(f"Currency base value must be positive, got {self.base_value}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Currency':
        data = dict(data)
        data['base_value'] = to_decimal(data['base_value'])
        return super().from_dict(data)


@dataclass
class ExchangeRate:
    """Explicit rate override: how many ``to`` units one ``from`` unit buys"""
    from_currency_id: str
    to_currency_id: str
    rate: Decimal
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from_currency_id": self.from_currency_id,
            "to_currency_id": self.to_currency_id,
            "rate": str(self.rate),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExchangeRate':
        return cls(
            from_currency_id=data['from_currency_id'],
            to_currency_id=data['to_currency_id'],
            rate=to_decimal(data['rate']),
            updated_at=parse_datetime(data.get('updated_at')) or utcnow(),
        )


@dataclass(frozen=True)
class CurrencySpec:
    """Description of a currency to be created"""
    name: str
    abbreviation: str
    symbol: str = ""
    base_value: Decimal = ONE
    color: str = ""


DND5E_CURRENCIES: Tuple[CurrencySpec, ...] = (
    CurrencySpec("Platinum", "pp", "⬜", Decimal('10'), "#E5E4E2"),
    CurrencySpec("Gold", "gp", "🪙", Decimal('1'), "#FFD700"),
    CurrencySpec("Electrum", "ep", "⚪", Decimal('0.5'), "#C0C0C0"),
    CurrencySpec("Silver", "sp", "🔘", Decimal('0.1'), "#C0C0C0"),
    CurrencySpec("Copper", "cp", "🟤", Decimal('0.01'), "#B87333"),
)

PATHFINDER_CURRENCIES: Tuple[CurrencySpec, ...] = (
    CurrencySpec("Platinum", "pp", "⬜", Decimal('10'), "#E5E4E2"),
    CurrencySpec("Gold", "gp", "🪙", Decimal('1'), "#FFD700"),
    CurrencySpec("Silver", "sp", "🔘", Decimal('0.1'), "#C0C0C0"),
    CurrencySpec("Copper", "cp", "🟤", Decimal('0.01'), "#B87333"),
)

CURRENCY_PRESETS: Dict[str, Tuple[CurrencySpec, ...]] = {
    "dnd5e": DND5E_CURRENCIES,
    "pf2e": PATHFINDER_CURRENCIES,
}


# State helpers shared with the bank, account and transaction modules. They
# work on the transient state inside a LedgerStore.transact call.

def load_economy(state: LedgerState, economy_id: str) -> Economy:
    data = state.economies.get(economy_id)
    if data is None:
        raise NotFoundError("economy", economy_id)
    return Economy.from_dict(data)


def load_currency(state: LedgerState, currency_id: str) -> Currency:
    data = state.currencies.get(currency_id)
    if data is None:
        raise NotFoundError("currency", currency_id)
    return Currency.from_dict(data)


def economy_currencies(state: LedgerState, economy_id: str) -> List[Currency]:
    return [
        Currency.from_dict(data) for data in state.currencies.values()
        if data['economy_id'] == economy_id
    ]


def find_rate_override(state: LedgerState, from_currency_id: str, to_currency_id: str) -> Optional[ExchangeRate]:
    for data in state.exchange_rates:
        if data['from_currency_id'] == from_currency_id and data['to_currency_id'] == to_currency_id:
            return ExchangeRate.from_dict(data)
    return None


def resolve_exchange_rate(state: LedgerState, from_currency_id: str, to_currency_id: str) -> Decimal:
    """
    Rate from one currency to another: identity, explicit override, or the
    ratio of base values when both belong to the same economy.

    Raises:
        NotFoundError: If either currency is unknown
        NotConvertibleError: If no rate can be derived
    """
    from_currency = load_currency(state, from_currency_id)
    to_currency = load_currency(state, to_currency_id)

    if from_currency.id == to_currency.id:
        return ONE

    override = find_rate_override(state, from_currency.id, to_currency.id)
    if override is not None:
        return override.rate

    if from_currency.economy_id != to_currency.economy_id:
        raise NotConvertibleError(
            f"Cannot convert {from_currency.abbreviation} to {to_currency.abbreviation}: "
            "currencies belong to different economies and no exchange rate is set"
        )

    return from_currency.base_value / to_currency.base_value


class EconomyCatalog(EventPublisherMixin):
    """
    Manages economies, their currencies and exchange-rate overrides
    """

    def __init__(self, store: LedgerStore, event_dispatcher: Optional[EventDispatcher] = None):
        self.store = store
        self._event_dispatcher = event_dispatcher
        self.logger = get_logger("economy_ledger.economy")

    # ============ ECONOMIES ============

    def create_economy(
        self,
        name: str,
        description: str,
        base_currency: CurrencySpec,
        interest_rate: AmountLike = ZERO,
        growth_rate: AmountLike = ZERO
    ) -> Economy:
        """
        Create an economy together with its base currency

        The base currency always gets base_value 1, whatever base_value was given.
        """
        economy, currencies = self._create_economy_with(
            name, description, [base_currency], base_currency, interest_rate, growth_rate
        )
        return economy

    def create_economy_from_preset(self, name: str, description: str, preset: str) -> Economy:
        """Create an economy with a preset currency set ("dnd5e", "pf2e")"""
        specs = CURRENCY_PRESETS.get(preset.lower())
        if specs is None:
            raise NotFoundError("currency preset", preset)

        base_spec = next(spec for spec in specs if spec.base_value == ONE)
        economy, currencies = self._create_economy_with(name, description, list(specs), base_spec)
        return economy

    def _create_economy_with(
        self,
        name: str,
        description: str,
        specs: List[CurrencySpec],
        base_spec: CurrencySpec,
        interest_rate: AmountLike = ZERO,
        growth_rate: AmountLike = ZERO
    ) -> Tuple[Economy, List[Currency]]:
        now = utcnow()
        economy = Economy(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=name,
            description=description,
            base_currency_id=None,
            interest_rate=require_non_negative(interest_rate, "Interest rate"),
            growth_rate=to_decimal(growth_rate)
        )

        currencies = []
        seen = set()
        for spec in specs:
            key = spec.abbreviation.lower()
            if key in seen:
                raise ConflictError(f"Duplicate currency abbreviation '{spec.abbreviation}'")
            seen.add(key)

            is_base = spec is base_spec
            currency = Currency(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                economy_id=economy.id,
                name=spec.name,
                abbreviation=spec.abbreviation,
                symbol=spec.symbol,
                base_value=ONE if is_base else spec.base_value,
                color=spec.color
            )
            if is_base:
                economy.base_currency_id = currency.id
            currencies.append(currency)

        def apply(state: LedgerState) -> None:
            state.economies[economy.id] = economy.to_dict()
            for currency in currencies:
                state.currencies[currency.id] = currency.to_dict()

        self.store.transact(apply)

        log_action(
            self.logger, "info", f"Created economy: {name}",
            action="create_economy", resource=f"economy:{economy.id}",
            extra={"currencies": [c.abbreviation for c in currencies],
                   "base_currency_id": economy.base_currency_id}
        )
        self.publish_event(DomainEvent.ECONOMY_CREATED, "economy", economy.id, economy.to_dict())
        for currency in currencies:
            self.publish_event(DomainEvent.CURRENCY_CREATED, "currency", currency.id, currency.to_dict())

        return economy, currencies

    def get_economy(self, economy_id: str) -> Economy:
        return load_economy(self.store.load(), economy_id)

    def list_economies(self) -> List[Economy]:
        state = self.store.load()
        return [Economy.from_dict(data) for data in state.economies.values()]

    def update_economy(
        self,
        economy_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        interest_rate: Optional[AmountLike] = None,
        growth_rate: Optional[AmountLike] = None
    ) -> Economy:
        """Update an economy's descriptive fields and rates"""
        def apply(state: LedgerState) -> Economy:
            economy = load_economy(state, economy_id)
            if name is not None:
                economy.name = name
            if description is not None:
                economy.description = description
            if interest_rate is not None:
                economy.interest_rate = require_non_negative(interest_rate, "Interest rate")
            if growth_rate is not None:
                economy.growth_rate = to_decimal(growth_rate)
            economy.updated_at = utcnow()
            state.economies[economy.id] = economy.to_dict()
            return economy

        economy = self.store.transact(apply)
        self.logger.info(f"Updated economy: {economy_id}")
        self.publish_event(DomainEvent.ECONOMY_UPDATED, "economy", economy.id, economy.to_dict())
        return economy

    def delete_economy(self, economy_id: str) -> Dict[str, int]:
        """
        Delete an economy and everything that depends on it: currencies,
        exchange-rate overrides, banks, accounts and their transactions.

        Returns:
            Count of removed records per kind
        """
        def apply(state: LedgerState) -> Dict[str, int]:
            load_economy(state, economy_id)

            currency_ids = {cid for cid, c in state.currencies.items() if c['economy_id'] == economy_id}
            bank_ids = {bid for bid, b in state.banks.items() if b['economy_id'] == economy_id}
            account_ids = {
                aid for aid, a in state.accounts.items()
                if a['bank_id'] in bank_ids or a['currency_id'] in currency_ids
            }

            transactions_before = len(state.transactions)
            rates_before = len(state.exchange_rates)

            state.transactions = [t for t in state.transactions if t['account_id'] not in account_ids]
            state.exchange_rates = [
                r for r in state.exchange_rates
                if r['from_currency_id'] not in currency_ids and r['to_currency_id'] not in currency_ids
            ]
            for account_id in account_ids:
                del state.accounts[account_id]
            for bank_id in bank_ids:
                del state.banks[bank_id]
            for currency_id in currency_ids:
                del state.currencies[currency_id]
            del state.economies[economy_id]

            return {
                "currencies": len(currency_ids),
                "banks": len(bank_ids),
                "accounts": len(account_ids),
                "transactions": transactions_before - len(state.transactions),
                "exchange_rates": rates_before - len(state.exchange_rates),
            }

        removed = self.store.transact(apply)
        log_action(
            self.logger, "info", f"Deleted economy: {economy_id}",
            action="delete_economy", resource=f"economy:{economy_id}", extra=removed
        )
        self.publish_event(DomainEvent.ECONOMY_DELETED, "economy", economy_id, removed)
        return removed

    # ============ CURRENCIES ============

    def create_currency(
        self,
        economy_id: str,
        name: str,
        abbreviation: str,
        symbol: str = "",
        base_value: AmountLike = ONE,
        color: str = ""
    ) -> Currency:
        """
        Add a currency to an economy

        A base_value of 1 does not make the currency the base; use
        set_base_currency for that.

        Raises:
            InvalidAmountError: If base_value is not positive
            ConflictError: If the abbreviation is already used in the economy
            NotFoundError: If the economy does not exist
        """
        value = require_positive(base_value, "Currency base value")

        def apply(state: LedgerState) -> Currency:
            load_economy(state, economy_id)
            self._check_abbreviation_free(state, economy_id, abbreviation)

            now = utcnow()
            currency = Currency(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                economy_id=economy_id,
                name=name,
                abbreviation=abbreviation,
                symbol=symbol,
                base_value=value,
                color=color
            )
            state.currencies[currency.id] = currency.to_dict()
            return currency

        currency = self.store.transact(apply)
        log_action(
            self.logger, "info", f"Added currency {name} to economy {economy_id}",
            action="create_currency", resource=f"currency:{currency.id}",
            extra={"abbreviation": abbreviation, "base_value": str(value)}
        )
        self.publish_event(DomainEvent.CURRENCY_CREATED, "currency", currency.id, currency.to_dict())
        return currency

    def _check_abbreviation_free(self, state: LedgerState, economy_id: str, abbreviation: str,
                                 exclude_id: Optional[str] = None) -> None:
        if not abbreviation:
            raise ConflictError("Currency abbreviation cannot be empty")
        for currency in economy_currencies(state, economy_id):
            if currency.id != exclude_id and currency.abbreviation.lower() == abbreviation.lower():
                raise ConflictError(
                    f"Currency abbreviation '{abbreviation}' already used in economy {economy_id}"
                )

    def set_base_currency(self, economy_id: str, currency_id: str) -> Economy:
        """
        Make a currency the economy's base currency.

        The new base gets base_value 1 and every other currency of the economy
        is divided by the new base's old base_value, so relative values (and
        therefore derived exchange rates) do not change.
        """
        def apply(state: LedgerState) -> Economy:
            economy = load_economy(state, economy_id)
            new_base = load_currency(state, currency_id)
            if new_base.economy_id != economy_id:
                raise ConflictError(f"Currency {currency_id} does not belong to economy {economy_id}")

            divisor = new_base.base_value
            now = utcnow()
            for currency in economy_currencies(state, economy_id):
                currency.base_value = ONE if currency.id == currency_id else currency.base_value / divisor
                currency.updated_at = now
                state.currencies[currency.id] = currency.to_dict()

            economy.base_currency_id = currency_id
            economy.updated_at = now
            state.economies[economy.id] = economy.to_dict()
            return economy

        economy = self.store.transact(apply)
        log_action(
            self.logger, "info", f"Base currency of economy {economy_id} set to {currency_id}",
            action="set_base_currency", resource=f"economy:{economy_id}"
        )
        self.publish_event(DomainEvent.ECONOMY_UPDATED, "economy", economy.id, economy.to_dict())
        return economy

    def get_currency(self, currency_id: str) -> Currency:
        return load_currency(self.store.load(), currency_id)

    def list_currencies(self, economy_id: Optional[str] = None) -> List[Currency]:
        state = self.store.load()
        if economy_id is not None:
            load_economy(state, economy_id)
            return economy_currencies(state, economy_id)
        return [Currency.from_dict(data) for data in state.currencies.values()]

    def find_currency_by_abbreviation(self, economy_id: str, abbreviation: str) -> Currency:
        state = self.store.load()
        for currency in economy_currencies(state, economy_id):
            if currency.abbreviation.lower() == abbreviation.lower():
                return currency
        raise NotFoundError("currency", f"'{abbreviation}' in economy {economy_id}")

    def update_currency(
        self,
        currency_id: str,
        name: Optional[str] = None,
        abbreviation: Optional[str] = None,
        symbol: Optional[str] = None,
        color: Optional[str] = None,
        base_value: Optional[AmountLike] = None
    ) -> Currency:
        """Update a currency; the base currency's base_value is fixed at 1"""
        def apply(state: LedgerState) -> Currency:
            currency = load_currency(state, currency_id)
            economy = load_economy(state, currency.economy_id)

            if abbreviation is not None:
                self._check_abbreviation_free(state, currency.economy_id, abbreviation, exclude_id=currency.id)
                currency.abbreviation = abbreviation
            if base_value is not None:
                value = require_positive(base_value, "Currency base value")
                if economy.base_currency_id == currency.id and value != ONE:
                    raise ConflictError("The base currency's base value must stay 1")
                currency.base_value = value
            if name is not None:
                currency.name = name
            if symbol is not None:
                currency.symbol = symbol
            if color is not None:
                currency.color = color

            currency.updated_at = utcnow()
            state.currencies[currency.id] = currency.to_dict()
            return currency

        currency = self.store.transact(apply)
        self.logger.info(f"Updated currency {currency_id}")
        self.publish_event(DomainEvent.CURRENCY_UPDATED, "currency", currency.id, currency.to_dict())
        return currency

    def delete_currency(self, currency_id: str) -> None:
        """
        Remove a currency and any exchange-rate overrides that mention it

        Raises:
            ConflictError: If an account uses the currency, or it is the base
        """
        def apply(state: LedgerState) -> None:
            currency = load_currency(state, currency_id)
            economy = load_economy(state, currency.economy_id)

            in_use = sum(1 for a in state.accounts.values() if a['currency_id'] == currency_id)
            if in_use:
                raise ConflictError(
                    f"Cannot delete currency {currency.abbreviation}: {in_use} account(s) use it"
                )
            if economy.base_currency_id == currency_id:
                raise ConflictError(
                    f"Cannot delete {currency.abbreviation}: it is the base currency of {economy.name}"
                )

            state.exchange_rates = [
                r for r in state.exchange_rates
                if r['from_currency_id'] != currency_id and r['to_currency_id'] != currency_id
            ]
            del state.currencies[currency_id]

        self.store.transact(apply)
        self.logger.info(f"Removed currency {currency_id}")
        self.publish_event(DomainEvent.CURRENCY_DELETED, "currency", currency_id, {})

    # ============ EXCHANGE RATES ============

    def set_exchange_rate(self, from_currency_id: str, to_currency_id: str, rate: AmountLike) -> ExchangeRate:
        """Set (or replace) an explicit one-way rate override"""
        value = require_positive(rate, "Exchange rate")
        if from_currency_id == to_currency_id:
            raise ConflictError("Cannot set an exchange rate from a currency to itself")

        def apply(state: LedgerState) -> ExchangeRate:
            load_currency(state, from_currency_id)
            load_currency(state, to_currency_id)
            override = ExchangeRate(from_currency_id, to_currency_id, value, utcnow())
            state.exchange_rates = [
                r for r in state.exchange_rates
                if not (r['from_currency_id'] == from_currency_id and r['to_currency_id'] == to_currency_id)
            ]
            state.exchange_rates.append(override.to_dict())
            return override

        override = self.store.transact(apply)
        log_action(
            self.logger, "info", f"Exchange rate {from_currency_id} -> {to_currency_id} set to {value}",
            action="set_exchange_rate", resource=f"currency:{from_currency_id}"
        )
        self.publish_event(DomainEvent.EXCHANGE_RATE_CHANGED, "currency", from_currency_id, override.to_dict())
        return override

    def remove_exchange_rate(self, from_currency_id: str, to_currency_id: str) -> None:
        def apply(state: LedgerState) -> None:
            if find_rate_override(state, from_currency_id, to_currency_id) is None:
                raise NotFoundError("exchange rate", f"{from_currency_id} -> {to_currency_id}")
            state.exchange_rates = [
                r for r in state.exchange_rates
                if not (r['from_currency_id'] == from_currency_id and r['to_currency_id'] == to_currency_id)
            ]

        self.store.transact(apply)
        self.logger.info(f"Removed exchange rate {from_currency_id} -> {to_currency_id}")
        self.publish_event(DomainEvent.EXCHANGE_RATE_CHANGED, "currency", from_currency_id,
                           {"from_currency_id": from_currency_id, "to_currency_id": to_currency_id,
                            "rate": None})

    def list_exchange_rates(self) -> List[ExchangeRate]:
        return [ExchangeRate.from_dict(data) for data in self.store.load().exchange_rates]

    def get_exchange_rate(self, from_currency_id: str, to_currency_id: str) -> Decimal:
        return resolve_exchange_rate(self.store.load(), from_currency_id, to_currency_id)

    def convert(self, amount: AmountLike, from_currency_id: str, to_currency_id: str) -> Decimal:
        """Convert an amount between currencies (no fees, no rounding)"""
        return to_decimal(amount) * self.get_exchange_rate(from_currency_id, to_currency_id)

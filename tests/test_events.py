"""
Tests for the change-notification channel
"""

import pytest
from decimal import Decimal
from unittest.mock import Mock

from economy_ledger.accounts import AccountLedger
from economy_ledger.banks import BankRegistry
from economy_ledger.economy import EconomyCatalog
from economy_ledger.errors import InsufficientFundsError
from economy_ledger.events import DomainEvent, EventDispatcher, EventPayload
from economy_ledger.storage import InMemoryBackend, LedgerStore
from economy_ledger.transactions import TransactionEngine


class TestEventPayload:
    """Test EventPayload creation and serialization"""

    def test_event_payload_serialization(self):
        original = EventPayload(
            event_type=DomainEvent.ACCOUNT_CREATED,
            entity_type="account",
            entity_id="acc-456",
            data={"balance": "0"}
        )
        restored = EventPayload.from_dict(original.to_dict())
        assert restored.event_type == DomainEvent.ACCOUNT_CREATED
        assert restored.entity_id == "acc-456"
        assert restored.timestamp == original.timestamp
        assert restored.event_id == original.event_id


class TestEventDispatcher:
    """Test subscription management"""

    def setup_method(self):
        self.dispatcher = EventDispatcher()

    def _event(self, event_type=DomainEvent.BANK_CREATED):
        return EventPayload(event_type=event_type, entity_type="bank", entity_id="b", data={})

    def test_subscribe_and_publish(self):
        handler = Mock()
        self.dispatcher.subscribe(DomainEvent.BANK_CREATED, handler)
        event = self._event()
        self.dispatcher.publish(event)
        self.dispatcher.publish(self._event(DomainEvent.BANK_DELETED))
        handler.assert_called_once_with(event)

    def test_global_handler(self):
        handler = Mock()
        self.dispatcher.subscribe_all(handler)
        self.dispatcher.publish(self._event())
        self.dispatcher.publish(self._event(DomainEvent.BANK_DELETED))
        assert handler.call_count == 2

    def test_unsubscribe(self):
        handler = Mock()
        self.dispatcher.subscribe(DomainEvent.BANK_CREATED, handler)
        self.dispatcher.subscribe_all(handler)
        assert self.dispatcher.get_handler_count() == 2

        self.dispatcher.unsubscribe(DomainEvent.BANK_CREATED, handler)
        self.dispatcher.unsubscribe_all(handler)
        self.dispatcher.publish(self._event())
        handler.assert_not_called()
        assert self.dispatcher.get_handler_count() == 0

    def test_failing_handler_does_not_stop_others(self):
        failing = Mock(side_effect=RuntimeError("boom"))
        healthy = Mock()
        self.dispatcher.subscribe(DomainEvent.BANK_CREATED, failing)
        self.dispatcher.subscribe(DomainEvent.BANK_CREATED, healthy)
        self.dispatcher.publish(self._event())
        healthy.assert_called_once()

    def test_clear(self):
        self.dispatcher.subscribe(DomainEvent.BANK_CREATED, Mock())
        self.dispatcher.clear()
        assert self.dispatcher.get_handler_count(DomainEvent.BANK_CREATED) == 0


class TestManagerEvents:
    """Managers publish after each committed update"""

    def setup_method(self):
        self.dispatcher = EventDispatcher()
        self.received = []
        self.dispatcher.subscribe_all(self.received.append)

        store = LedgerStore(InMemoryBackend())
        self.catalog = EconomyCatalog(store, self.dispatcher)
        self.banks = BankRegistry(store, self.dispatcher)
        self.accounts = AccountLedger(store, self.dispatcher)
        self.engine = TransactionEngine(store, self.dispatcher)

        economy = self.catalog.create_economy_from_preset("Faerun", "", "pf2e")
        bank = self.banks.create_bank(economy.id, "Iron Bank")
        self.account = self.accounts.create_account(bank.id, economy.base_currency_id, "pc-1", "Valeros")

    def types(self):
        return [event.event_type for event in self.received]

    def test_creation_events(self):
        types = self.types()
        assert types[0] == DomainEvent.ECONOMY_CREATED
        assert types.count(DomainEvent.CURRENCY_CREATED) == 4
        assert DomainEvent.BANK_CREATED in types
        assert types[-1] == DomainEvent.ACCOUNT_CREATED

    def test_transaction_event(self):
        self.received.clear()
        transaction = self.engine.deposit(self.account.id, "5")
        assert self.types() == [DomainEvent.TRANSACTION_RECORDED]
        assert self.received[0].entity_id == transaction.id
        assert self.received[0].data["balance_after"] == "5"

    def test_no_event_on_failure(self):
        self.received.clear()
        with pytest.raises(InsufficientFundsError):
            self.engine.withdraw(self.account.id, "5")
        assert self.received == []

"""
Event System Module

Change-notification channel for host clients. Managers publish an event after
each committed update; hosts subscribe instead of polling the store or
mutating shared state directly.
"""

from enum import Enum
from typing import Callable, Dict, List, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone
import uuid
import logging
from threading import RLock


class DomainEvent(Enum):
    """Domain events that can occur in the ledger"""

    ECONOMY_CREATED = "economy.created"
    ECONOMY_UPDATED = "economy.updated"
    ECONOMY_DELETED = "economy.deleted"

    CURRENCY_CREATED = "currency.created"
    CURRENCY_UPDATED = "currency.updated"
    CURRENCY_DELETED = "currency.deleted"
    EXCHANGE_RATE_CHANGED = "currency.exchange_rate_changed"

    BANK_CREATED = "bank.created"
    BANK_UPDATED = "bank.updated"
    BANK_DELETED = "bank.deleted"

    ACCOUNT_CREATED = "account.created"
    ACCOUNT_UPDATED = "account.updated"
    ACCOUNT_CLOSED = "account.closed"
    ACCOUNT_DELETED = "account.deleted"

    TRANSACTION_RECORDED = "transaction.recorded"


@dataclass
class EventPayload:
    """Payload for domain events"""
    event_type: DomainEvent
    entity_type: str
    entity_id: str
    data: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'data': self.data,
            'timestamp': self.timestamp.isoformat(),
            'event_id': self.event_id
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EventPayload':
        """Create from dictionary"""
        return cls(
            event_type=DomainEvent(data['event_type']),
            entity_type=data['entity_type'],
            entity_id=data['entity_id'],
            data=data['data'],
            timestamp=datetime.fromisoformat(data['timestamp']) if isinstance(data['timestamp'], str) else data['timestamp'],
            event_id=data['event_id']
        )


class EventDispatcher:
    """Central event dispatcher, publish/subscribe"""

    def __init__(self):
        self._handlers: Dict[DomainEvent, List[Callable]] = {}
        self._global_handlers: List[Callable] = []
        self._lock = RLock()
        self.logger = logging.getLogger("economy_ledger.events")

    def subscribe(self, event_type: DomainEvent, handler: Callable) -> None:
        """Subscribe to a specific event type"""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
            self.logger.debug(f"Subscribed handler {_handler_name(handler)} to {event_type.value}")

    def subscribe_all(self, handler: Callable) -> None:
        """Subscribe to ALL events"""
        with self._lock:
            self._global_handlers.append(handler)
            self.logger.debug(f"Subscribed global handler {_handler_name(handler)}")

    def unsubscribe(self, event_type: DomainEvent, handler: Callable) -> None:
        """Unsubscribe from a specific event type"""
        with self._lock:
            try:
                self._handlers.get(event_type, []).remove(handler)
            except ValueError:
                self.logger.warning(f"Handler {_handler_name(handler)} was not subscribed to {event_type.value}")

    def unsubscribe_all(self, handler: Callable) -> None:
        """Remove a global handler"""
        with self._lock:
            try:
                self._global_handlers.remove(handler)
            except ValueError:
                self.logger.warning(f"Global handler {_handler_name(handler)} was not subscribed")

    def publish(self, event: EventPayload) -> None:
        """
        Publish event to all subscribers.

        Events are published after the update has been persisted, so a failing
        handler cannot undo it; handler errors are logged with traceback.
        """
        with self._lock:
            handlers = list(self._handlers.get(event.event_type, [])) + list(self._global_handlers)

        self.logger.debug(f"Publishing event {event.event_type.value} for {event.entity_type}:{event.entity_id}")

        for handler in handlers:
            try:
                handler(event)
            except Exception:
                self.logger.exception(
                    f"Error in event handler {_handler_name(handler)} for {event.event_type.value}"
                )

    def clear(self) -> None:
        """Clear all handlers"""
        with self._lock:
            self._handlers.clear()
            self._global_handlers.clear()

    def get_handler_count(self, event_type: Optional[DomainEvent] = None) -> int:
        """Get count of handlers for a specific event type or all"""
        with self._lock:
            if event_type:
                return len(self._handlers.get(event_type, []))
            total = sum(len(handlers) for handlers in self._handlers.values())
            return total + len(self._global_handlers)


def _handler_name(handler: Callable) -> str:
    return getattr(handler, "__name__", repr(handler))


class EventPublisherMixin:
    """Gives managers an optional dispatcher and a publish helper"""

    _event_dispatcher: Optional[EventDispatcher] = None

    def publish_event(self, event_type: DomainEvent, entity_type: str, entity_id: str,
                      data: Dict[str, Any]) -> None:
        if self._event_dispatcher is None:
            return
        self._event_dispatcher.publish(EventPayload(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            data=data
        ))

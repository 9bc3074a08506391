"""In-memory event bus implementation."""

from __future__ import annotations

from typing import Dict, List, Type

import structlog

from shared.domain.bus import IEventBus, IEventHandler
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


class UnknownEventType(LookupError):
    """No event class with that name has been subscribed to the bus."""


class InMemoryEventBus(IEventBus):
    """In-process event bus.

    Keeps a name -> class registry of every subscribed event type so the
    outbox relay can rebuild events from stored rows.
    """

    def __init__(self) -> None:
        self._handlers: Dict[Type[DomainEvent], List[IEventHandler]] = {}
        self._event_types: Dict[str, Type[DomainEvent]] = {}

    def subscribe(self, event_class: Type[DomainEvent], handler: IEventHandler) -> None:
        self._event_types[event_class.__name__] = event_class
        handlers = self._handlers.setdefault(event_class, [])
        if handler not in handlers:
            handlers.append(handler)

    def publish(self, event: DomainEvent) -> None:
        handlers = self._handlers.get(type(event), [])
        logger.debug(
            "event_bus.publish",
            event_name=event.event_name,
            handler_count=len(handlers),
        )
        for handler in handlers:
            handler.handle(event)

    def resolve(self, event_name: str) -> Type[DomainEvent]:
        try:
            return self._event_types[event_name]
        except KeyError:
            raise UnknownEventType(event_name) from None


# Global bus instance (singleton)

event_bus = InMemoryEventBus()

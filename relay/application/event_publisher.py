"""
Event Publisher

Dispatches file lifecycle events (created, downloaded, evicted, healed)
to the handlers subscribed to them.
"""

import logging
from threading import Lock
from typing import Callable, Dict, List, Type

from relay.domain.events import DomainEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], None]


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


class EventPublisher:
    """
    Synchronous in-process event bus.

    A handler subscribed to an event class also receives the events of its
    subclasses, so a DomainEvent subscription sees everything. A failing
    handler is logged and skipped; the registry operation that published
    the event is unaffected.
    """

    def __init__(self):
        self._handlers: Dict[Type[DomainEvent], List[EventHandler]] = {}
        self._lock = Lock()

    def subscribe(self, event_type: Type[DomainEvent], handler: EventHandler) -> None:
        """
        Example:
            publisher.subscribe(FileEvictedEvent, handle_file_evicted)
        """
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"{_handler_name(handler)} subscribed to {event_type.__name__}")

    def publish(self, event: DomainEvent) -> None:
        """Call every matching handler in the calling thread, oldest subscription first."""
        with self._lock:
            handlers = [
                handler
                for klass in type(event).__mro__
                for handler in self._handlers.get(klass, ())
            ]

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Event handler {_handler_name(handler)} failed on "
                    f"{type(event).__name__}: {e}",
                    exc_info=True,
                )

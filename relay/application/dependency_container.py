"""
Dependency Injection Container

Holds the relay's long-lived services for the API routes, the reaper and
the Celery tasks, and shuts them down in reverse order of registration.
"""

import logging
import threading
from typing import Any, Dict, Iterable, List, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class DependencyNotFoundError(Exception):
    """Raised when attempting to resolve an unregistered dependency."""
    pass


class DependencyContainer:
    """
    Registry of service instances keyed by interface, filled once at startup.
    """

    def __init__(self):
        self._services: Dict[Type, Any] = {}
        self._order: List[Type] = []
        self._lock = threading.Lock()
        self._closed = False

    def register_singleton(self, interface: Type[T], implementation: T) -> None:
        """
        Register the single instance served for `interface`.

        Example:
            container.register_singleton(FileRegistry, registry)
        """
        with self._lock:
            if interface not in self._services:
                self._order.append(interface)
            self._services[interface] = implementation
            logger.debug(f"Registered {interface.__name__}")

    def resolve(self, interface: Type[T]) -> T:
        """
        Resolve a registered service.

        Raises:
            DependencyNotFoundError: If the interface is not registered
        """
        with self._lock:
            try:
                return self._services[interface]
            except KeyError:
                raise DependencyNotFoundError(
                    f"No registration found for type: {interface.__name__}"
                ) from None

    def close(self) -> None:
        """
        Close every registered service that has a ``close`` method.

        Services are closed newest first so that a service is never closed
        before the services built on top of it. Safe to call more than once.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            services = [self._services[interface] for interface in reversed(self._order)]

        for service in services:
            close = getattr(service, "close", None)
            if not callable(close):
                continue
            try:
                close()
            except Exception as e:
                logger.error(f"Failed to close {type(service).__name__}: {e}")

    def subscribe_event_handlers(self, event_publisher, handlers: Iterable = None) -> None:
        """
        Subscribe infrastructure event handlers to every domain event.

        Args:
            event_publisher: EventPublisher to subscribe the handlers to
            handlers: Handler instances exposing ``handle(event)``.
                      Defaults to a LoggingEventHandler on the "relay.events" logger.
        """
        from relay.domain.events import DomainEvent
        from relay.infrastructure.event_handlers import LoggingEventHandler

        if handlers is None:
            handlers = [LoggingEventHandler(logging.getLogger("relay.events"))]

        for handler in handlers:
            event_publisher.subscribe(DomainEvent, handler.handle)
            logger.debug(f"Subscribed {type(handler).__name__} to domain events")

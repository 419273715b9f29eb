"""Event Bus - pub/sub for decoded push events.

Consumers subscribe by event type (or to everything) and are called
with each DomainEvent. One bus per event client; nothing is global.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Coroutine
from typing import Any

from .protocol.events import DomainEvent, EventType

logger = logging.getLogger(__name__)

WILDCARD = "*"

# Type for event callbacks
EventCallback = Callable[[DomainEvent], Coroutine[Any, Any, None]]


class EventBus:
    """Event bus with wildcard subscription support.

    Subscriber failures are logged and never reach the publisher, so
    one broken consumer cannot stall the socket reader.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[EventCallback]] = {}

    async def publish(self, event: DomainEvent) -> None:
        """Publish event to all subscribers of its type, then to wildcard subscribers."""
        # Copies, subscribers may unsubscribe while being notified
        specific_subs = list(self._subscriptions.get(event.type, []))
        wildcard_subs = list(self._subscriptions.get(WILDCARD, []))

        for callback in specific_subs:
            try:
                await callback(event)
            except Exception:
                logger.exception(f"Error in subscriber for {event.type}")

        for callback in wildcard_subs:
            try:
                await callback(event)
            except Exception:
                logger.exception(f"Error in wildcard subscriber for {event.type}")

    def subscribe(self, event_type: EventType | str, callback: EventCallback) -> Callable[[], None]:
        """Subscribe to a specific event type.

        Returns:
            Unsubscribe function
        """
        key = event_type.value if isinstance(event_type, EventType) else event_type
        return self._subscribe(key, callback)

    def subscribe_all(self, callback: EventCallback) -> Callable[[], None]:
        """Subscribe to ALL events.

        Returns:
            Unsubscribe function
        """
        return self._subscribe(WILDCARD, callback)

    def _subscribe(self, key: str, callback: EventCallback) -> Callable[[], None]:
        self._subscriptions.setdefault(key, []).append(callback)

        def unsubscribe() -> None:
            if key in self._subscriptions and callback in self._subscriptions[key]:
                self._subscriptions[key].remove(callback)

        return unsubscribe

    async def stream(self) -> AsyncIterator[DomainEvent]:
        """Yield all events as they are published.

        Usage:
            async for event in bus.stream():
                print(event.type, event.args)
        """
        queue: asyncio.Queue[DomainEvent] = asyncio.Queue()

        async def on_event(event: DomainEvent) -> None:
            await queue.put(event)

        unsubscribe = self.subscribe_all(on_event)

        try:
            while True:
                yield await queue.get()
        finally:
            unsubscribe()

    def clear(self) -> None:
        """Drop all subscriptions."""
        self._subscriptions = {}

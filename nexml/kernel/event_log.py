"""
Event Log for the NexML Marketplace

Append-only record of committed state changes, with optional async
subscribers. Events are appended while the catalog transaction is held,
so log order is commit order; subscribers are notified after the
transaction is released.
"""

import asyncio
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Callable, Coroutine
from uuid import uuid4

import structlog

from ..models.events import EventType, MarketEvent

logger = structlog.get_logger(__name__)


# Type alias for event handlers
EventHandler = Callable[[MarketEvent], Coroutine[Any, Any, None]]


@dataclass
class Subscription:
    """Represents an event subscription."""
    id: str
    handler: EventHandler
    event_types: frozenset[str]

    def matches(self, event: MarketEvent) -> bool:
        return event.type in self.event_types


class EventLog:
    """
    Append-only event channel.

    ``max_events`` bounds the events retained in memory (oldest dropped
    first); sequence numbers keep counting regardless.
    """

    def __init__(self, max_events: int = 0):
        self._events: deque[MarketEvent] = deque(maxlen=max_events or None)
        self._sequence = 0
        self._subscriptions: dict[str, Subscription] = {}
        self._dead_letters: list[tuple[MarketEvent, Exception]] = []

    # =========================================================================
    # Recording
    # =========================================================================

    def append(self, event_type: EventType, caller: str, **payload: Any) -> MarketEvent:
        """Record an event. Call only once the state change has been committed."""
        event = MarketEvent(
            sequence=self._sequence,
            type=event_type,
            caller=caller,
            payload=payload,
        )
        self._sequence += 1
        self._events.append(event)

        logger.debug(
            "event_recorded",
            event_id=event.id,
            event_type=event.type,
            sequence=event.sequence,
        )
        return event

    def events(self, event_type: EventType | None = None) -> list[MarketEvent]:
        """Retained events, oldest first, optionally filtered by type."""
        if event_type is None:
            return list(self._events)
        return [e for e in self._events if e.type == event_type]

    def last(self, event_type: EventType | None = None) -> MarketEvent | None:
        """Most recent event, optionally of a given type."""
        for event in reversed(self._events):
            if event_type is None or event.type == event_type:
                return event
        return None

    def __len__(self) -> int:
        return len(self._events)

    @property
    def total_recorded(self) -> int:
        return self._sequence

    @property
    def dead_letters(self) -> list[tuple[MarketEvent, Exception]]:
        return list(self._dead_letters)

    # =========================================================================
    # Subscription Management
    # =========================================================================

    def subscribe(
        self,
        handler: EventHandler,
        event_types: Iterable[EventType] | None = None,
    ) -> str:
        """
        Subscribe to events.

        Args:
            handler: Async function called with each matching event
            event_types: Types to receive (None = all)

        Returns:
            Subscription ID for unsubscribing
        """
        sub_id = str(uuid4())
        # Events store the enum value, so match on values
        source = event_types if event_types is not None else EventType
        types = frozenset(EventType(t).value for t in source)
        self._subscriptions[sub_id] = Subscription(id=sub_id, handler=handler, event_types=types)

        logger.info(
            "event_subscription_created",
            subscription_id=sub_id,
            event_types=sorted(types),
        )
        return sub_id

    def unsubscribe(self, subscription_id: str) -> bool:
        if self._subscriptions.pop(subscription_id, None) is None:
            return False
        logger.info("event_subscription_removed", subscription_id=subscription_id)
        return True

    # =========================================================================
    # Delivery
    # =========================================================================

    async def deliver(self, event: MarketEvent) -> None:
        """
        Notify matching subscribers.

        A failing handler is logged and its event dead-lettered; the state
        change the event describes is already committed and stays so.
        """
        subscriptions = [s for s in self._subscriptions.values() if s.matches(event)]
        if not subscriptions:
            return

        results = await asyncio.gather(
            *(s.handler(event) for s in subscriptions),
            return_exceptions=True,
        )
        for subscription, result in zip(subscriptions, results):
            if isinstance(result, Exception):
                self._dead_letters.append((event, result))
                logger.error(
                    "event_delivery_failed",
                    subscription_id=subscription.id,
                    event_id=event.id,
                    event_type=event.type,
                    error=str(result),
                )

"""
In-process event dispatcher.

Fans events out to handlers registered per event type (or for every event).
Handlers may be sync or async. A failing handler is logged and the remaining
handlers still run: the transition it reports has already committed.
"""

import asyncio
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List, Optional, Union

from common.core.otel_exporter import get_logger
from packages.subscriptions.models.domain.events import (
    SubscriptionEvent,
    SubscriptionEventType,
)
from packages.subscriptions.providers.events.interface import SubscriptionEventSink

logger = get_logger(__name__)

EventHandler = Callable[[SubscriptionEvent], Union[None, Awaitable[None]]]


class EventDispatcher(SubscriptionEventSink):
    def __init__(self):
        self._handlers: Dict[Optional[SubscriptionEventType], List[EventHandler]] = (
            defaultdict(list)
        )

    def subscribe(
        self,
        event_type: Optional[SubscriptionEventType],
        handler: EventHandler,
    ) -> None:
        """Register ``handler`` for ``event_type``; None means every event."""
        self._handlers[event_type].append(handler)

    def unsubscribe(
        self,
        event_type: Optional[SubscriptionEventType],
        handler: EventHandler,
    ) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def handlers_for(self, event_type: SubscriptionEventType) -> List[EventHandler]:
        return list(self._handlers.get(event_type, [])) + list(
            self._handlers.get(None, [])
        )

    async def publish(self, event: SubscriptionEvent) -> None:
        for handler in self.handlers_for(event.event_type):
            try:
                result = handler(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.exception(
                    f"Handler {getattr(handler, '__name__', handler)!r} failed for {event.event_type.value}: {e}",
                    extra={"subscription_id": event.subscription_id},
                )

"""
Interface for subscription event sinks.

The engine publishes one event per committed transition. Where the event
goes (log, in-process handlers, a queue) is up to the sink.
"""

from abc import ABC, abstractmethod

from packages.subscriptions.models.domain.events import SubscriptionEvent


class SubscriptionEventSink(ABC):
    """Abstract interface for event sinks."""

    @abstractmethod
    async def publish(self, event: SubscriptionEvent) -> None:
        """
        Deliver a single event.

        Called after the transition's transaction has committed. Must not
        raise for delivery problems of individual listeners.
        """
        pass

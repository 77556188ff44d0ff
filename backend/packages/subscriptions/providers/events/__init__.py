"""Event sinks - where subscription domain events are delivered."""

from packages.subscriptions.providers.events.interface import SubscriptionEventSink
from packages.subscriptions.providers.events.dispatcher import EventDispatcher
from packages.subscriptions.providers.events.logging_sink import LoggingEventSink
from packages.subscriptions.providers.events.factory import (
    get_event_sink,
    set_event_sink,
)

__all__ = [
    "SubscriptionEventSink",
    "EventDispatcher",
    "LoggingEventSink",
    "get_event_sink",
    "set_event_sink",
]

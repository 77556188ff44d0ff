"""
Factory for getting the event sink instance.
"""

from typing import Optional

from common.core.config import settings
from common.core.constants import EventSinkType
from common.core.otel_exporter import get_logger
from packages.subscriptions.providers.events.dispatcher import EventDispatcher
from packages.subscriptions.providers.events.interface import SubscriptionEventSink
from packages.subscriptions.providers.events.logging_sink import LoggingEventSink

logger = get_logger(__name__)

_event_sink: Optional[SubscriptionEventSink] = None


def get_event_sink() -> SubscriptionEventSink:
    """
    Get the configured event sink.

    ``logging`` (default) only records events; ``dispatcher`` returns a
    shared ``EventDispatcher`` that application code subscribes handlers to.
    """
    global _event_sink

    if _event_sink is None:
        if settings.event_sink == EventSinkType.DISPATCHER:
            _event_sink = EventDispatcher()
        else:
            _event_sink = LoggingEventSink()
        logger.info(f"Initialized {settings.event_sink.value} event sink")

    return _event_sink


def set_event_sink(sink: Optional[SubscriptionEventSink]) -> None:
    """Install a specific sink (None restores lazy selection from settings)."""
    global _event_sink
    _event_sink = sink

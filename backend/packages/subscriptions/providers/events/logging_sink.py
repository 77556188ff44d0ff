"""
Logging event sink.

Default sink: every event becomes one structured log line.
"""

from common.core.otel_exporter import get_logger
from packages.subscriptions.models.domain.events import SubscriptionEvent
from packages.subscriptions.providers.events.interface import SubscriptionEventSink

logger = get_logger(__name__)


class LoggingEventSink(SubscriptionEventSink):
    async def publish(self, event: SubscriptionEvent) -> None:
        logger.info(
            f"Subscription event {event.event_type.value} for subscription {event.subscription_id}",
            extra={"event": event.model_dump(mode="json")},
        )

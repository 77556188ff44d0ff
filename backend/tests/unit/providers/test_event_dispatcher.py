from unittest.mock import patch

import pytest

from common.core.constants import EventSinkType
from packages.subscriptions.models.domain.events import (
    SubscriptionCancelled,
    SubscriptionEventType,
    SubscriptionRenewed,
)
from packages.subscriptions.providers.events import (
    EventDispatcher,
    LoggingEventSink,
    get_event_sink,
    set_event_sink,
)


def _cancelled(subscription_id=1):
    return SubscriptionCancelled(
        subscription_id=subscription_id,
        subscriber_type="team",
        subscriber_id="42",
        immediately=False,
    )


def _renewed(subscription_id=1):
    return SubscriptionRenewed(
        subscription_id=subscription_id, subscriber_type="team", subscriber_id="42"
    )


class TestEventDispatcher:
    @pytest.fixture
    def dispatcher(self):
        return EventDispatcher()

    async def test_routes_by_event_type(self, dispatcher):
        cancelled, renewed = [], []
        dispatcher.subscribe(SubscriptionEventType.CANCELLED, cancelled.append)
        dispatcher.subscribe(SubscriptionEventType.RENEWED, renewed.append)

        await dispatcher.publish(_cancelled())

        assert len(cancelled) == 1
        assert renewed == []

    async def test_wildcard_handler_sees_everything(self, dispatcher):
        seen = []
        dispatcher.subscribe(None, seen.append)

        await dispatcher.publish(_cancelled())
        await dispatcher.publish(_renewed())

        assert [e.event_type for e in seen] == [
            SubscriptionEventType.CANCELLED,
            SubscriptionEventType.RENEWED,
        ]

    async def test_async_handler_is_awaited(self, dispatcher):
        seen = []

        async def handler(event):
            seen.append(event.subscription_id)

        dispatcher.subscribe(SubscriptionEventType.CANCELLED, handler)
        await dispatcher.publish(_cancelled(subscription_id=7))

        assert seen == [7]

    async def test_failing_handler_does_not_stop_others(self, dispatcher):
        seen = []

        def broken(event):
            raise RuntimeError("listener bug")

        dispatcher.subscribe(SubscriptionEventType.CANCELLED, broken)
        dispatcher.subscribe(SubscriptionEventType.CANCELLED, seen.append)

        await dispatcher.publish(_cancelled())

        assert len(seen) == 1

    async def test_unsubscribe(self, dispatcher):
        seen = []
        dispatcher.subscribe(SubscriptionEventType.CANCELLED, seen.append)
        dispatcher.unsubscribe(SubscriptionEventType.CANCELLED, seen.append)
        # unknown handler is ignored
        dispatcher.unsubscribe(SubscriptionEventType.RENEWED, seen.append)

        await dispatcher.publish(_cancelled())

        assert seen == []


class TestEventSinkFactory:
    async def test_logging_sink_publishes(self):
        # nothing to assert beyond not raising
        await LoggingEventSink().publish(_cancelled())

    def test_default_is_logging_sink(self):
        set_event_sink(None)
        with patch("packages.subscriptions.providers.events.factory.settings") as s:
            s.event_sink = EventSinkType.LOGGING
            sink = get_event_sink()

        assert isinstance(sink, LoggingEventSink)
        assert get_event_sink() is sink

    def test_dispatcher_sink(self):
        set_event_sink(None)
        with patch("packages.subscriptions.providers.events.factory.settings") as s:
            s.event_sink = EventSinkType.DISPATCHER
            sink = get_event_sink()

        assert isinstance(sink, EventDispatcher)

    def test_set_event_sink_overrides(self):
        dispatcher = EventDispatcher()
        set_event_sink(dispatcher)

        assert get_event_sink() is dispatcher

"""Request-scoped dependencies shared by the subscription routes."""

from fastapi import HTTPException, Path

from packages.subscriptions.concerns.has_subscriptions import HasSubscriptions
from packages.subscriptions.models.domain.subscriber import SubscriberRef
from packages.subscriptions.models.domain.subscription import Subscription


class PathSubscriber(HasSubscriptions):
    """Subscription owner addressed by ``/subscribers/{type}/{id}``."""

    def __init__(self, ref: SubscriberRef):
        self.ref = ref

    def subscriber_ref(self) -> SubscriberRef:
        return self.ref


def get_subscriber(
    subscriber_type: str = Path(..., min_length=1, max_length=100),
    subscriber_id: str = Path(..., min_length=1, max_length=255),
) -> PathSubscriber:
    return PathSubscriber(SubscriberRef(type=subscriber_type, id=subscriber_id))


async def require_active_subscription(subscriber: PathSubscriber) -> Subscription:
    subscription = await subscriber.active_subscription()
    if not subscription:
        raise HTTPException(status_code=404, detail="No active subscription")
    return subscription

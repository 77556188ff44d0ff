"""
Subscription API routes.

Lifecycle endpoints for one subscriber, addressed by its polymorphic
``(type, id)`` pair.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from packages.subscriptions.models.schemas.subscriptions import (
    CancelSubscriptionRequest,
    CreateSubscriptionRequest,
    HistoryEntryResponse,
    HistoryResponse,
    SubscriptionResponse,
    SwitchPlanRequest,
)
from packages.subscriptions.routes.dependencies import (
    PathSubscriber,
    get_subscriber,
    require_active_subscription,
)

router = APIRouter(prefix="/subscribers/{subscriber_type}/{subscriber_id}")


@router.get("/subscriptions", response_model=List[SubscriptionResponse])
async def list_subscriptions(subscriber: PathSubscriber = Depends(get_subscriber)):
    """All subscriptions of the subscriber, newest first."""
    subscriptions = await subscriber.subscriptions()
    return [SubscriptionResponse.from_subscription(s) for s in subscriptions]


@router.post(
    "/subscriptions",
    response_model=SubscriptionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_subscription(
    request: CreateSubscriptionRequest,
    subscriber: PathSubscriber = Depends(get_subscriber),
):
    subscription = await subscriber.subscribe_to(
        request.plan,
        with_trial=request.with_trial,
        trial_days=request.trial_days,
        metadata=request.metadata,
    )
    return SubscriptionResponse.from_subscription(subscription)


@router.get("/subscription", response_model=SubscriptionResponse)
async def get_active_subscription(subscriber: PathSubscriber = Depends(get_subscriber)):
    subscription = await require_active_subscription(subscriber)
    return SubscriptionResponse.from_subscription(subscription)


@router.post("/subscription/cancel", response_model=SubscriptionResponse)
async def cancel_subscription(
    request: CancelSubscriptionRequest,
    subscriber: PathSubscriber = Depends(get_subscriber),
):
    """
    Cancel the active subscription.

    By default access continues until the end of the current term.
    """
    await require_active_subscription(subscriber)
    subscription = await subscriber.cancel_subscription(immediately=request.immediately)
    return SubscriptionResponse.from_subscription(subscription)


@router.post("/subscription/resume", response_model=SubscriptionResponse)
async def resume_subscription(subscriber: PathSubscriber = Depends(get_subscriber)):
    subscription = await subscriber.resume_subscription()
    if not subscription:
        raise HTTPException(status_code=404, detail="No subscription to resume")
    return SubscriptionResponse.from_subscription(subscription)


@router.post("/subscription/switch", response_model=SubscriptionResponse)
async def switch_plan(
    request: SwitchPlanRequest,
    subscriber: PathSubscriber = Depends(get_subscriber),
):
    await require_active_subscription(subscriber)
    subscription = await subscriber.switch_plan(
        request.plan, change_type=request.change_type, prorate=request.prorate
    )
    return SubscriptionResponse.from_subscription(subscription)


@router.get("/subscription/history", response_model=HistoryResponse)
async def get_subscription_history(
    subscriber: PathSubscriber = Depends(get_subscriber),
):
    subscription = await require_active_subscription(subscriber)
    entries = await subscriber.subscription_history()
    return HistoryResponse(
        subscription_id=subscription.id,
        entries=[HistoryEntryResponse.from_history(entry) for entry in entries],
    )


@router.get("/features/{feature}")
async def check_feature(
    feature: str, subscriber: PathSubscriber = Depends(get_subscriber)
):
    """Feature gate for the subscriber's current plan."""
    return {
        "feature": feature,
        "allowed": await subscriber.can_use_feature(feature),
        "value": await subscriber.get_feature_value(feature),
        "limit": await subscriber.get_feature_limit(feature),
    }

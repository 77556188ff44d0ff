"""
Usage API routes.

Per-feature counters of the subscriber's active subscription.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from packages.subscriptions.models.domain.usage import UsageSummary
from packages.subscriptions.models.schemas.subscriptions import (
    RecordUsageRequest,
    ResetUsageResponse,
    UsageListResponse,
)
from packages.subscriptions.routes.dependencies import (
    PathSubscriber,
    get_subscriber,
    require_active_subscription,
)

router = APIRouter(prefix="/subscribers/{subscriber_type}/{subscriber_id}")


@router.get("/subscription/usage", response_model=UsageListResponse)
async def list_usage(subscriber: PathSubscriber = Depends(get_subscriber)):
    subscription = await require_active_subscription(subscriber)
    usage_service = subscriber.subscription_service().usage_service
    usages = await usage_service.list_usages(subscription)
    return UsageListResponse(
        subscription_id=subscription.id,
        usage=[UsageSummary.from_usage(usage) for usage in usages],
    )


@router.get("/subscription/usage/{feature}", response_model=UsageSummary)
async def get_usage(feature: str, subscriber: PathSubscriber = Depends(get_subscriber)):
    subscription = await require_active_subscription(subscriber)
    usage_service = subscriber.subscription_service().usage_service
    usage = await usage_service.get_usage(subscription, feature)
    return UsageSummary.from_usage(usage)


@router.post("/subscription/usage/{feature}", response_model=UsageSummary)
async def record_usage(
    feature: str,
    request: RecordUsageRequest,
    subscriber: PathSubscriber = Depends(get_subscriber),
):
    """
    Write usage for ``feature``.

    Going over the limit is allowed; the response reports ``exceeded`` and a
    UsageLimitExceeded event is published on the write that crosses it.
    """
    await require_active_subscription(subscriber)
    if request.mode == "set":
        usage = await subscriber.set_usage(feature, request.amount)
    elif request.mode == "decrement":
        usage = await subscriber.decrement_usage(feature, request.amount)
    else:
        usage = await subscriber.increment_usage(feature, request.amount)
    return UsageSummary.from_usage(usage)


@router.delete("/subscription/usage", response_model=ResetUsageResponse)
async def reset_usage(
    feature: Optional[str] = Query(default=None),
    subscriber: PathSubscriber = Depends(get_subscriber),
):
    subscription = await require_active_subscription(subscriber)
    count = await subscriber.reset_usage(feature)
    return ResetUsageResponse(subscription_id=subscription.id, reset=count)

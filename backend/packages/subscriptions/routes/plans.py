"""
Plans API routes.

Public catalog of plans available for new subscriptions.
"""

from fastapi import APIRouter

from packages.subscriptions.models.schemas.subscriptions import (
    PlanResponse,
    PlansResponse,
)
from packages.subscriptions.services.plan_service import PlanService

router = APIRouter()


@router.get("", response_model=PlansResponse)
async def get_plans():
    """Active plans ordered by sort order, then price."""
    plans = await PlanService().list_active()
    return PlansResponse(plans=[PlanResponse.from_plan(plan) for plan in plans])


@router.get("/{slug}", response_model=PlanResponse)
async def get_plan(slug: str):
    plan = await PlanService().get_by_slug(slug)
    return PlanResponse.from_plan(plan)

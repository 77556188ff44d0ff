"""Service for managing the plan catalog."""

from typing import List, Optional

from common.core.exceptions import NotFoundError, ValidationError
from common.core.otel_exporter import trace_span, get_logger
from common.db.context import readonly
from packages.subscriptions.models.domain.plan import (
    Plan,
    PlanCreateModel,
    PlanUpdateModel,
)
from packages.subscriptions.repositories.plan_repository import PlanRepository

logger = get_logger(__name__)


class PlanService:
    """
    Administrative access to plans.

    Changing or deactivating a plan never touches existing subscriptions:
    they keep the price and features captured when they subscribed.
    """

    def __init__(self, plan_repo: Optional[PlanRepository] = None):
        self.plan_repo = plan_repo or PlanRepository()

    @trace_span
    async def create(self, data: PlanCreateModel) -> Plan:
        if await self.plan_repo.get_by_slug(data.slug):
            raise ValidationError(f"Plan slug {data.slug!r} is already taken")

        plan = await self.plan_repo.create(data)
        logger.info(
            f"Created plan {plan.slug}",
            extra={"plan_id": plan.id, "price": str(plan.price)},
        )
        return plan

    @trace_span
    async def update(self, plan_id: int, data: PlanUpdateModel) -> Plan:
        await self.get(plan_id)
        plan = await self.plan_repo.update(plan_id, data)
        logger.info(f"Updated plan {plan.slug}", extra={"plan_id": plan.id})
        return plan

    @trace_span
    async def deactivate(self, plan_id: int) -> Plan:
        """Hide the plan from the catalog and from new subscriptions."""
        return await self.update(plan_id, PlanUpdateModel(is_active=False))

    @trace_span
    @readonly
    async def get(self, plan_id: int) -> Plan:
        plan = await self.plan_repo.get(plan_id)
        if not plan:
            raise NotFoundError(f"Plan {plan_id} not found")
        return plan

    @trace_span
    @readonly
    async def get_by_slug(self, slug: str) -> Plan:
        plan = await self.plan_repo.get_by_slug(slug)
        if not plan:
            raise NotFoundError(f"Plan {slug!r} not found")
        return plan

    @trace_span
    @readonly
    async def list_active(self) -> List[Plan]:
        return await self.plan_repo.list_active()

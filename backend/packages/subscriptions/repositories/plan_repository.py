"""
Repository for the plan catalog.
"""

from typing import List, Optional
from sqlalchemy import select

from common.repositories.base import BaseRepository
from packages.subscriptions.models.database.plan import PlanEntity
from packages.subscriptions.models.domain.plan import Plan
from common.core.otel_exporter import trace_span


class PlanRepository(BaseRepository[PlanEntity, Plan]):
    """Repository for catalog plans."""

    def __init__(self):
        super().__init__(PlanEntity, Plan)

    @trace_span
    async def get_by_slug(self, slug: str) -> Optional[Plan]:
        async with self._get_session() as session:
            result = await session.execute(
                select(PlanEntity).where(PlanEntity.slug == slug)
            )
            db_plan = result.scalar_one_or_none()
            return self._entity_to_domain(db_plan) if db_plan else None

    @trace_span
    async def list_active(self) -> List[Plan]:
        """Active plans in catalog order (sort_order, then price)."""
        async with self._get_session() as session:
            result = await session.execute(
                select(PlanEntity)
                .where(PlanEntity.is_active.is_(True))
                .order_by(PlanEntity.sort_order, PlanEntity.price, PlanEntity.id)
            )
            return self._entities_to_domain(result.scalars().all())

"""
Repository for the append-only subscription history.
"""

from typing import List
from sqlalchemy import select

from common.repositories.base import BaseRepository
from packages.subscriptions.models.database.history import SubscriptionHistoryEntity
from packages.subscriptions.models.domain.history import (
    SubscriptionHistory,
    SubscriptionHistoryCreateModel,
)
from common.core.otel_exporter import trace_span


class SubscriptionHistoryRepository(
    BaseRepository[SubscriptionHistoryEntity, SubscriptionHistory]
):
    """Insert and read only."""

    def __init__(self):
        super().__init__(SubscriptionHistoryEntity, SubscriptionHistory)

    @trace_span
    async def append(self, entry: SubscriptionHistoryCreateModel) -> SubscriptionHistory:
        return await self.create(entry)

    @trace_span
    async def list_for_subscription(self, subscription_id: int) -> List[SubscriptionHistory]:
        """Oldest first."""
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionHistoryEntity)
                .where(SubscriptionHistoryEntity.subscription_id == subscription_id)
                .order_by(
                    SubscriptionHistoryEntity.created_at, SubscriptionHistoryEntity.id
                )
            )
            return self._entities_to_domain(result.scalars().all())

"""
Repository for feature usage counters.

Counter changes are single UPDATE statements evaluated by the database
(``used = used + :amount``), so two writers incrementing the same row can
never lose an update, with or without an enclosing transaction.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from sqlalchemy import case, select, update
from sqlalchemy.exc import IntegrityError

from common.core.exceptions import NotFoundError
from common.repositories.base import BaseRepository
from packages.subscriptions.models.database.usage import UsageEntity
from packages.subscriptions.models.domain.usage import Usage
from common.core.otel_exporter import get_logger, trace_span

logger = get_logger(__name__)

ZERO = Decimal("0")


class UsageRepository(BaseRepository[UsageEntity, Usage]):
    """Repository for per-feature usage counters."""

    def __init__(self):
        super().__init__(UsageEntity, Usage)

    async def _apply(self, session, usage_id: int, values: dict) -> Usage:
        result = await session.execute(
            update(UsageEntity)
            .where(UsageEntity.id == usage_id)
            .values(values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Usage {usage_id} not found")
        refreshed = await session.execute(
            select(UsageEntity)
            .where(UsageEntity.id == usage_id)
            .execution_options(populate_existing=True)
        )
        return self._entity_to_domain(refreshed.scalar_one())

    @trace_span
    async def get_by_feature(self, subscription_id: int, feature: str) -> Optional[Usage]:
        async with self._get_session() as session:
            result = await session.execute(
                select(UsageEntity).where(
                    UsageEntity.subscription_id == subscription_id,
                    UsageEntity.feature == feature,
                )
            )
            db_usage = result.scalar_one_or_none()
            return self._entity_to_domain(db_usage) if db_usage else None

    @trace_span
    async def list_for_subscription(self, subscription_id: int) -> List[Usage]:
        async with self._get_session() as session:
            result = await session.execute(
                select(UsageEntity)
                .where(UsageEntity.subscription_id == subscription_id)
                .order_by(UsageEntity.feature)
            )
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def get_or_create(
        self,
        subscription_id: int,
        feature: str,
        limit: Optional[Decimal],
        valid_until: Optional[datetime] = None,
    ) -> Usage:
        """
        Fetch the counter, creating it on first access.

        ``limit`` and ``valid_until`` are only used when the row is created.
        A concurrent creator losing the unique-constraint race re-reads the
        winner's row.
        """
        existing = await self.get_by_feature(subscription_id, feature)
        if existing:
            return existing

        async with self._get_session() as session:
            db_usage = UsageEntity(
                subscription_id=subscription_id,
                feature=feature,
                used=ZERO,
                limit=limit,
                valid_until=valid_until,
            )
            try:
                async with session.begin_nested():
                    session.add(db_usage)
                    await session.flush()
            except IntegrityError:
                logger.info(
                    f"Usage row for {feature} created concurrently, re-reading",
                    extra={"subscription_id": subscription_id, "feature": feature},
                )
                result = await session.execute(
                    select(UsageEntity).where(
                        UsageEntity.subscription_id == subscription_id,
                        UsageEntity.feature == feature,
                    )
                )
                return self._entity_to_domain(result.scalar_one())

            await session.refresh(db_usage)
            return self._entity_to_domain(db_usage)

    @trace_span
    async def increment(self, usage_id: int, amount: Decimal) -> Usage:
        async with self._get_session() as session:
            return await self._apply(
                session, usage_id, {"used": UsageEntity.used + amount}
            )

    @trace_span
    async def decrement(self, usage_id: int, amount: Decimal) -> Usage:
        """Subtract ``amount``; the counter is clamped at zero."""
        remaining = UsageEntity.used - amount
        async with self._get_session() as session:
            return await self._apply(
                session,
                usage_id,
                {"used": case((remaining < 0, ZERO), else_=remaining)},
            )

    @trace_span
    async def set_used(self, usage_id: int, amount: Decimal) -> Usage:
        async with self._get_session() as session:
            return await self._apply(session, usage_id, {"used": amount})

    @trace_span
    async def reset(
        self, subscription_id: int, now: datetime, feature: Optional[str] = None
    ) -> int:
        """Zero one counter (or all of them) for a subscription. Limits are kept."""
        query = update(UsageEntity).where(
            UsageEntity.subscription_id == subscription_id
        )
        if feature is not None:
            query = query.where(UsageEntity.feature == feature)

        async with self._get_session() as session:
            result = await session.execute(
                query.values(used=ZERO, reset_at=now).execution_options(
                    synchronize_session=False
                )
            )
            return result.rowcount

    @trace_span
    async def sync_limits(
        self,
        subscription_id: int,
        limits: Dict[str, Optional[Decimal]],
        valid_until: Optional[datetime],
    ) -> int:
        """
        Re-seed limits of existing counters after a plan change.

        Counters for features missing from ``limits`` become unlimited.
        """
        updated = 0
        async with self._get_session() as session:
            result = await session.execute(
                select(UsageEntity.id, UsageEntity.feature).where(
                    UsageEntity.subscription_id == subscription_id
                )
            )
            for usage_id, feature in result.all():
                await session.execute(
                    update(UsageEntity)
                    .where(UsageEntity.id == usage_id)
                    .values(limit=limits.get(feature), valid_until=valid_until)
                    .execution_options(synchronize_session=False)
                )
                updated += 1
        return updated

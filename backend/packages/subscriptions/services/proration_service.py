"""
Proration for mid-period plan changes.

Amounts are advisory: the engine computes them and records them in history,
charging or refunding is left to whoever integrates payments. Positive
results are owed by the subscriber, negative results are owed to them.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from common.core.config import settings
from common.core.constants import ProrationDayBasis
from common.core.otel_exporter import get_logger, trace_span
from common.core.time_utils import utc_now
from packages.subscriptions.models.domain.plan import Plan
from packages.subscriptions.models.domain.subscription import Subscription

logger = get_logger(__name__)

ZERO = Decimal("0")


class ProrationService:
    """Credit/charge calculator. Pure: no I/O, no clock unless ``now`` is omitted."""

    def __init__(
        self,
        enabled: Optional[bool] = None,
        rounding: Optional[int] = None,
        day_basis: Optional[ProrationDayBasis] = None,
    ):
        self.enabled = settings.proration_enabled if enabled is None else enabled
        self.rounding = settings.proration_rounding if rounding is None else rounding
        self.day_basis = day_basis or settings.proration_day_basis

    def _round(self, amount: Decimal) -> Decimal:
        return amount.quantize(Decimal(1).scaleb(-self.rounding), rounding=ROUND_HALF_UP)

    @trace_span
    def calculate(
        self,
        subscription: Subscription,
        new_plan: Plan,
        effective_date: Optional[datetime] = None,
    ) -> Decimal:
        """
        Net amount for switching ``subscription`` to ``new_plan`` on
        ``effective_date``: charge for the new plan over the rest of the
        current term minus credit for the unused part of the current one.
        """
        if not self.enabled:
            return self._round(ZERO)
        if subscription.is_lifetime() or new_plan.is_lifetime():
            return self._round(ZERO)

        effective_date = effective_date or utc_now()
        credit = self.calculate_credit(subscription, effective_date)
        charge = ZERO
        if subscription.ends_at is not None:
            charge = self.calculate_charge(
                new_plan,
                effective_date,
                subscription.ends_at,
                anchor=subscription.starts_at,
            )

        amount = self._round(charge - credit)
        logger.debug(
            f"Proration for subscription {subscription.id} -> plan {new_plan.id}: {amount}",
            extra={
                "subscription_id": subscription.id,
                "credit": str(credit),
                "charge": str(charge),
            },
        )
        return amount

    def calculate_credit(
        self, subscription: Subscription, effective_date: Optional[datetime] = None
    ) -> Decimal:
        """Value of the unused remainder of the current term."""
        effective_date = effective_date or utc_now()
        if subscription.ends_at is None or effective_date >= subscription.ends_at:
            return ZERO

        total_days = (subscription.ends_at - subscription.starts_at).days
        if total_days <= 0:
            return ZERO

        remaining_days = (subscription.ends_at - effective_date).days
        if remaining_days <= 0:
            return ZERO

        return subscription.price / Decimal(total_days) * Decimal(remaining_days)

    def period_days(self, plan: Plan, anchor: Optional[datetime] = None) -> int:
        """
        Day count the plan's daily rate is based on.

        Calendar basis measures one real term of the plan starting at
        ``anchor`` (January is 31 days, February 28 or 29); nominal basis
        uses the period's fixed length.
        """
        if plan.is_lifetime():
            return 0
        if self.day_basis == ProrationDayBasis.CALENDAR and anchor is not None:
            return (plan.calculate_next_billing_date(anchor) - anchor).days
        return plan.billing_period.days() * plan.billing_interval

    def calculate_charge(
        self,
        plan: Plan,
        from_date: datetime,
        to_date: datetime,
        anchor: Optional[datetime] = None,
    ) -> Decimal:
        """Cost of ``plan`` for the span [from_date, to_date]."""
        days = (to_date - from_date).days
        if days <= 0:
            return ZERO

        period_days = self.period_days(plan, anchor)
        if period_days <= 0:
            return plan.price

        return plan.price / Decimal(period_days) * Decimal(days)

    def should_prorate(self, from_plan: Plan, to_plan: Plan) -> bool:
        if not self.enabled:
            return False
        if from_plan.is_lifetime() and to_plan.is_lifetime():
            return False
        if from_plan.is_free() and to_plan.is_free():
            return False
        return True

    def calculate_refund(
        self, subscription: Subscription, cancel_date: Optional[datetime] = None
    ) -> Decimal:
        """Refund due when cancelling on ``cancel_date``; never negative."""
        return self._round(max(ZERO, self.calculate_credit(subscription, cancel_date)))

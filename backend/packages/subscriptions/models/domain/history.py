"""
Append-only audit trail of subscription plan changes.
"""

from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from common.core.time_utils import UTCDateTime
from packages.subscriptions.models.domain.enums import HistoryEventType


class SubscriptionHistory(BaseModel):
    id: int
    subscription_id: int
    from_plan_id: Optional[int] = None
    to_plan_id: Optional[int] = None
    event_type: HistoryEventType
    proration_amount: Decimal = Decimal("0")
    history_metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[UTCDateTime] = None

    class Config:
        from_attributes = True

    @field_validator("history_metadata", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return value or {}


class SubscriptionHistoryCreateModel(BaseModel):
    subscription_id: int
    from_plan_id: Optional[int] = None
    to_plan_id: Optional[int] = None
    event_type: HistoryEventType
    proration_amount: Decimal = Decimal("0")
    history_metadata: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        use_enum_values = True

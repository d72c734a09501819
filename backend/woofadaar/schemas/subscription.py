from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from woofadaar.models.subscription import SubscriptionStatus


class SubscriptionCreate(BaseModel):
    user_id: UUID
    plan_code: str = Field(..., min_length=1, max_length=255)
    status: SubscriptionStatus = SubscriptionStatus.PENDING
    trial_ends_at: datetime | None = None

from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, String, func

from woofadaar.core.database import Base
from woofadaar.models.shared import UUIDType, generate_uuid


class SubscriptionStatus(str, Enum):
    PENDING = "pending"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    EXPIRED = "expired"


# Statuses that mean the user has held a paid (or trialing) subscription.
PAID_SUBSCRIPTION_STATUSES = (
    SubscriptionStatus.TRIALING.value,
    SubscriptionStatus.ACTIVE.value,
    SubscriptionStatus.PAST_DUE.value,
    SubscriptionStatus.CANCELED.value,
)


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(
        UUIDType,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    plan_code = Column(String(255), nullable=False, index=True)
    status = Column(
        String(20), nullable=False, default=SubscriptionStatus.PENDING.value, index=True
    )
    trial_ends_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

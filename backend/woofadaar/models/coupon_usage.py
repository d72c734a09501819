"""CouponUsage model: the append-only ledger of coupon redemptions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String

from woofadaar.core.database import Base
from woofadaar.models.shared import UUIDType, generate_uuid, utc_now


class CouponUsage(Base):
    """One row per successful coupon application."""

    __tablename__ = "coupon_usages"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    coupon_id = Column(
        UUIDType, ForeignKey("coupons.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    user_id = Column(
        UUIDType, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    order_id = Column(String(255), nullable=True, unique=True)
    subscription_id = Column(String(255), nullable=True, index=True)
    plan_id = Column(String(255), nullable=True)

    original_amount = Column(Numeric(12, 2), nullable=False)
    discount_amount = Column(Numeric(12, 2), nullable=False)
    final_amount = Column(Numeric(12, 2), nullable=False)
    trial_extension_days = Column(Integer, nullable=False, default=0)

    used_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)

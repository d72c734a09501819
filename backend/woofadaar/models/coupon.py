"""Coupon model for promotional discounts."""

from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)

from woofadaar.core.database import Base
from woofadaar.models.shared import UUIDType, generate_uuid


class CouponType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FREE_TRIAL_EXTENSION = "free_trial_extension"


class CouponStatus(str, Enum):
    ACTIVE = "active"
    TERMINATED = "terminated"


class CouponRejection(str, Enum):
    """Why a coupon cannot be used. Returned as data, never raised."""

    USER_NOT_FOUND = "user_not_found"
    COUPON_NOT_FOUND = "coupon_not_found"
    COUPON_NOT_YET_ACTIVE = "coupon_not_yet_active"
    COUPON_EXPIRED = "coupon_expired"
    BELOW_MINIMUM_ORDER = "below_minimum_order"
    PLAN_NOT_ELIGIBLE = "plan_not_eligible"
    GLOBAL_LIMIT_REACHED = "global_limit_reached"
    USER_LIMIT_REACHED = "user_limit_reached"
    NOT_FIRST_TIME_USER = "not_first_time_user"
    ORDER_ALREADY_DISCOUNTED = "order_already_discounted"


class Coupon(Base):
    """Coupon model for promotional discounts.

    Coupons are never deleted; terminating one sets ``status`` to
    ``terminated``. ``times_redeemed`` mirrors the number of rows in the usage
    ledger and is only ever changed by the conditional increment in
    ``CouponRepository.try_increment_redemptions``.
    """

    __tablename__ = "coupons"
    __table_args__ = (
        CheckConstraint(
            "usage_limit IS NULL OR times_redeemed <= usage_limit",
            name="ck_coupons_times_redeemed_within_limit",
        ),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    code = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    coupon_type = Column(String(30), nullable=False, index=True)
    value = Column(Numeric(12, 2), nullable=False)
    minimum_order_amount = Column(Numeric(12, 2), nullable=True)
    maximum_discount_amount = Column(Numeric(12, 2), nullable=True)

    usage_limit = Column(Integer, nullable=True)
    usage_limit_per_user = Column(Integer, nullable=True)
    times_redeemed = Column(Integer, nullable=False, default=0)

    valid_from = Column(DateTime(timezone=True), nullable=False, index=True)
    valid_until = Column(DateTime(timezone=True), nullable=False, index=True)

    applicable_plans = Column(JSON, nullable=True)
    first_time_users_only = Column(Boolean, nullable=False, default=False)
    eligible_user_id = Column(
        UUIDType, ForeignKey("users.id", ondelete="RESTRICT"), nullable=True, index=True
    )

    status = Column(String(20), nullable=False, default=CouponStatus.ACTIVE.value, index=True)
    created_by = Column(String(255), nullable=False, index=True)
    coupon_metadata = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

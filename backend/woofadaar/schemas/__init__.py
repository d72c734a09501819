from woofadaar.schemas.coupon import (
    ApplyCouponRequest,
    CouponAnalyticsResponse,
    CouponApplicationResponse,
    CouponCreate,
    CouponResponse,
    CouponUpdate,
    CouponUsageResponse,
    CouponValidationResponse,
    ReferralCouponRequest,
    ValidateCouponRequest,
)
from woofadaar.schemas.order import OrderCreate
from woofadaar.schemas.subscription import SubscriptionCreate
from woofadaar.schemas.user import UserCreate

__all__ = [
    "ApplyCouponRequest",
    "CouponAnalyticsResponse",
    "CouponApplicationResponse",
    "CouponCreate",
    "CouponResponse",
    "CouponUpdate",
    "CouponUsageResponse",
    "CouponValidationResponse",
    "OrderCreate",
    "ReferralCouponRequest",
    "SubscriptionCreate",
    "UserCreate",
    "ValidateCouponRequest",
]

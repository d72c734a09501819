from woofadaar.models.coupon import Coupon, CouponRejection, CouponStatus, CouponType
from woofadaar.models.coupon_usage import CouponUsage
from woofadaar.models.order import Order, OrderStatus
from woofadaar.models.subscription import Subscription, SubscriptionStatus
from woofadaar.models.user import User

__all__ = [
    "Coupon",
    "CouponRejection",
    "CouponStatus",
    "CouponType",
    "CouponUsage",
    "Order",
    "OrderStatus",
    "Subscription",
    "SubscriptionStatus",
    "User",
]

from woofadaar.repositories.coupon_repository import CouponRepository
from woofadaar.repositories.coupon_usage_repository import CouponUsageRepository
from woofadaar.repositories.order_repository import OrderRepository
from woofadaar.repositories.subscription_repository import SubscriptionRepository
from woofadaar.repositories.user_repository import UserRepository

__all__ = [
    "CouponRepository",
    "CouponUsageRepository",
    "OrderRepository",
    "SubscriptionRepository",
    "UserRepository",
]

"""CouponUsage repository for data access."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from woofadaar.core.sorting import apply_order_by
from woofadaar.models.coupon_usage import CouponUsage


class CouponUsageRepository:
    """Repository for the CouponUsage ledger.

    The ledger is append-only: there are no update or delete methods.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_order_id(self, order_id: str) -> CouponUsage | None:
        """Get the usage recorded for an order, if any."""
        return self.db.query(CouponUsage).filter(CouponUsage.order_id == order_id).first()

    def get_all_by_coupon_id(
        self,
        coupon_id: UUID,
        skip: int = 0,
        limit: int = 100,
        order_by: str | None = None,
    ) -> list[CouponUsage]:
        """Get usage rows for a coupon, newest first by default."""
        query = self.db.query(CouponUsage).filter(CouponUsage.coupon_id == coupon_id)
        query = apply_order_by(query, CouponUsage, order_by, default_field="used_at")
        return query.offset(skip).limit(limit).all()

    def count_by_coupon_id(self, coupon_id: UUID) -> int:
        """Count usage rows for a coupon."""
        return (
            self.db.query(func.count(CouponUsage.id))
            .filter(CouponUsage.coupon_id == coupon_id)
            .scalar()
            or 0
        )

    def count_by_coupon_and_user(self, coupon_id: UUID, user_id: UUID) -> int:
        """Count usage rows for a coupon by a single user."""
        return (
            self.db.query(func.count(CouponUsage.id))
            .filter(CouponUsage.coupon_id == coupon_id, CouponUsage.user_id == user_id)
            .scalar()
            or 0
        )

    def counts_by_user(self, user_id: UUID) -> dict[UUID, int]:
        """Map coupon_id -> number of usages for a user."""
        rows = (
            self.db.query(CouponUsage.coupon_id, func.count(CouponUsage.id))
            .filter(CouponUsage.user_id == user_id)
            .group_by(CouponUsage.coupon_id)
            .all()
        )
        return {coupon_id: int(count) for coupon_id, count in rows}

    def count_unique_users(self, coupon_id: UUID) -> int:
        """Count distinct users who redeemed a coupon."""
        return (
            self.db.query(func.count(func.distinct(CouponUsage.user_id)))
            .filter(CouponUsage.coupon_id == coupon_id)
            .scalar()
            or 0
        )

    def total_discount(self, coupon_id: UUID) -> Decimal:
        """Sum of discounts granted by a coupon."""
        total = (
            self.db.query(func.sum(CouponUsage.discount_amount))
            .filter(CouponUsage.coupon_id == coupon_id)
            .scalar()
        )
        return Decimal(str(total)) if total is not None else Decimal("0")

    def record(
        self,
        *,
        coupon_id: UUID,
        user_id: UUID,
        original_amount: Decimal,
        discount_amount: Decimal,
        final_amount: Decimal,
        trial_extension_days: int = 0,
        order_id: str | None = None,
        subscription_id: str | None = None,
        plan_id: str | None = None,
    ) -> CouponUsage:
        """Add a usage row and flush it. The caller owns the transaction."""
        usage = CouponUsage(
            coupon_id=coupon_id,
            user_id=user_id,
            order_id=order_id,
            subscription_id=subscription_id,
            plan_id=plan_id,
            original_amount=original_amount,
            discount_amount=discount_amount,
            final_amount=final_amount,
            trial_extension_days=trial_extension_days,
        )
        self.db.add(usage)
        self.db.flush()
        return usage

"""Coupon repository for data access."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from woofadaar.core.sorting import apply_order_by
from woofadaar.models.coupon import Coupon, CouponStatus
from woofadaar.schemas.coupon import CouponCreate, CouponUpdate, normalize_code

SORTABLE_FIELDS = ("code", "name", "valid_from", "valid_until", "times_redeemed", "created_at")


class CouponRepository:
    """Repository for Coupon model."""

    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        status: CouponStatus | None = None,
        order_by: str | None = None,
    ) -> list[Coupon]:
        """Get all coupons with optional filters."""
        query = self.db.query(Coupon)

        if status:
            query = query.filter(Coupon.status == status.value)

        query = apply_order_by(query, Coupon, order_by, allowed_fields=SORTABLE_FIELDS)
        return query.offset(skip).limit(limit).all()

    def count(self, status: CouponStatus | None = None) -> int:
        """Count coupons with an optional status filter."""
        query = self.db.query(Coupon)
        if status:
            query = query.filter(Coupon.status == status.value)
        return query.count()

    def get_by_code(self, code: str) -> Coupon | None:
        """Get a coupon by code, case-insensitively."""
        return self.db.query(Coupon).filter(Coupon.code == normalize_code(code)).first()

    def get_redeemable(self, now: datetime) -> list[Coupon]:
        """Active coupons inside their validity window that are not globally exhausted.

        Ordered soonest-expiring first.
        """
        return (
            self.db.query(Coupon)
            .filter(
                Coupon.status == CouponStatus.ACTIVE.value,
                Coupon.valid_from <= now,
                Coupon.valid_until >= now,
                or_(Coupon.usage_limit.is_(None), Coupon.times_redeemed < Coupon.usage_limit),
            )
            .order_by(Coupon.valid_until.asc(), Coupon.code.asc())
            .all()
        )

    def create(self, data: CouponCreate, created_by: str) -> Coupon:
        """Create a new coupon.

        ``usage_limit_per_user`` defaults to one redemption per user.
        """
        coupon = Coupon(
            code=data.code,
            name=data.name,
            description=data.description,
            coupon_type=data.coupon_type.value,
            value=data.value,
            minimum_order_amount=data.minimum_order_amount,
            maximum_discount_amount=data.maximum_discount_amount,
            usage_limit=data.usage_limit,
            usage_limit_per_user=(
                data.usage_limit_per_user if data.usage_limit_per_user is not None else 1
            ),
            times_redeemed=0,
            valid_from=data.valid_from,
            valid_until=data.valid_until,
            applicable_plans=data.applicable_plans or None,
            first_time_users_only=data.first_time_users_only,
            eligible_user_id=data.eligible_user_id,
            status=CouponStatus.ACTIVE.value,
            created_by=created_by,
            coupon_metadata=data.coupon_metadata,
        )
        self.db.add(coupon)
        self.db.commit()
        self.db.refresh(coupon)
        return coupon

    def update(self, code: str, data: CouponUpdate) -> Coupon | None:
        """Update the editable fields of a coupon by code."""
        coupon = self.get_by_code(code)
        if not coupon:
            return None

        update_data = data.model_dump(exclude_unset=True)

        if "status" in update_data and update_data["status"]:
            update_data["status"] = update_data["status"].value

        for key, value in update_data.items():
            setattr(coupon, key, value)

        self.db.commit()
        self.db.refresh(coupon)
        return coupon

    def terminate(self, code: str) -> Coupon | None:
        """Terminate a coupon by code."""
        coupon = self.get_by_code(code)
        if not coupon:
            return None

        coupon.status = CouponStatus.TERMINATED.value  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(coupon)
        return coupon

    def try_increment_redemptions(self, coupon_id: UUID) -> bool:
        """Atomically bump ``times_redeemed`` unless the global cap is reached.

        Issues a single conditional UPDATE, which also takes the row lock for
        the remainder of the caller's transaction. Does not commit.

        Returns:
            True when a redemption slot was taken, False when the coupon is
            exhausted or no longer active.
        """
        updated = (
            self.db.query(Coupon)
            .filter(
                Coupon.id == coupon_id,
                Coupon.status == CouponStatus.ACTIVE.value,
                or_(Coupon.usage_limit.is_(None), Coupon.times_redeemed < Coupon.usage_limit),
            )
            .update(
                {Coupon.times_redeemed: Coupon.times_redeemed + 1},
                synchronize_session=False,
            )
        )
        return bool(updated)

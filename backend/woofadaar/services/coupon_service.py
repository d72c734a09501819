"""Coupon engine: validation, application and availability of promotional codes."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from woofadaar.core.config import settings
from woofadaar.models.coupon import Coupon, CouponRejection, CouponStatus
from woofadaar.models.coupon_usage import CouponUsage
from woofadaar.models.shared import as_utc, utc_now
from woofadaar.repositories.coupon_repository import CouponRepository
from woofadaar.repositories.coupon_usage_repository import CouponUsageRepository
from woofadaar.repositories.order_repository import OrderRepository
from woofadaar.repositories.subscription_repository import SubscriptionRepository
from woofadaar.repositories.user_repository import UserRepository
from woofadaar.schemas.coupon import normalize_code
from woofadaar.services.discount_calculator import calculate_discount, quantize_amount

logger = logging.getLogger(__name__)


class CouponPersistenceError(Exception):
    """Raised when the usage ledger could not be written."""


@dataclass
class ValidationResult:
    """Result of validating a coupon against an order."""

    valid: bool
    message: str
    discount_amount: Decimal
    final_amount: Decimal
    trial_extension_days: int = 0
    reason: CouponRejection | None = None
    coupon: Coupon | None = None


@dataclass
class ApplicationResult:
    """Result of applying a coupon and recording its usage."""

    success: bool
    message: str
    reason: CouponRejection | None = None
    usage: CouponUsage | None = None
    replayed: bool = False


class CouponService:
    """Service for validating and redeeming coupons.

    ``clock`` returns the current UTC time; tests pin it to exercise the
    validity window boundaries.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock
        self.coupon_repo = CouponRepository(db)
        self.usage_repo = CouponUsageRepository(db)
        self.user_repo = UserRepository(db)
        self.subscription_repo = SubscriptionRepository(db)
        self.order_repo = OrderRepository(db)

    def validate_coupon(
        self,
        code: str,
        user_id: UUID,
        order_amount: Decimal,
        plan_id: str | None = None,
    ) -> ValidationResult:
        """Check whether ``code`` can be used by ``user_id`` on an order.

        Read-only: nothing is recorded, so repeated calls with the same input
        return the same result until a coupon is applied.

        Args:
            code: Coupon code, matched case-insensitively.
            user_id: The user redeeming the coupon.
            order_amount: Order total before discount.
            plan_id: Plan code being purchased, if any.

        Returns:
            A ValidationResult with the computed amounts on success, or the
            rejection reason and a user-facing message on failure.
        """
        return self._validate(code, user_id, Decimal(str(order_amount)), plan_id, self.clock())

    def apply_coupon(
        self,
        code: str,
        user_id: UUID,
        order_amount: Decimal,
        order_id: str | None = None,
        subscription_id: str | None = None,
        plan_id: str | None = None,
    ) -> ApplicationResult:
        """Validate a coupon and record its usage in one transaction.

        The global cap is enforced by a conditional increment of
        ``coupons.times_redeemed``; the per-user cap is re-counted after that
        increment has locked the coupon row. Any rejection rolls the
        transaction back, so a failed application leaves no ledger row.

        A retried call carrying an ``order_id`` that already has a usage row
        returns that row instead of redeeming the coupon a second time.

        Raises:
            CouponPersistenceError: If the database write fails.
        """
        order_amount = Decimal(str(order_amount))

        if order_id:
            existing = self.usage_repo.get_by_order_id(order_id)
            if existing is not None:
                return self._replay(existing, code, user_id)

        now = self.clock()
        validation = self._validate(code, user_id, order_amount, plan_id, now)
        if not validation.valid or validation.coupon is None:
            return ApplicationResult(
                success=False, message=validation.message, reason=validation.reason
            )

        coupon = validation.coupon
        coupon_id: UUID = coupon.id  # type: ignore[assignment]
        per_user_limit = coupon.usage_limit_per_user

        try:
            if not self.coupon_repo.try_increment_redemptions(coupon_id):
                self.db.rollback()
                logger.warning(
                    "Coupon %s lost a redemption race for user %s", coupon.code, user_id
                )
                return self._rejection_after_race(code, user_id, order_amount, plan_id)

            if per_user_limit is not None:
                used = self.usage_repo.count_by_coupon_and_user(coupon_id, user_id)
                if used >= per_user_limit:
                    self.db.rollback()
                    return ApplicationResult(
                        success=False,
                        message=_user_limit_message(per_user_limit),
                        reason=CouponRejection.USER_LIMIT_REACHED,
                    )

            usage = self.usage_repo.record(
                coupon_id=coupon_id,
                user_id=user_id,
                original_amount=quantize_amount(order_amount),
                discount_amount=validation.discount_amount,
                final_amount=validation.final_amount,
                trial_extension_days=validation.trial_extension_days,
                order_id=order_id,
                subscription_id=subscription_id,
                plan_id=plan_id,
            )
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if order_id:
                existing = self.usage_repo.get_by_order_id(order_id)
                if existing is not None:
                    return self._replay(existing, code, user_id)
            logger.exception("Failed to record usage of coupon %s", code)
            raise CouponPersistenceError("Failed to record coupon usage") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to record usage of coupon %s", code)
            raise CouponPersistenceError("Failed to record coupon usage") from exc

        self.db.refresh(usage)
        logger.info(
            "Applied coupon %s for user %s: discount %s on %s",
            normalize_code(code),
            user_id,
            usage.discount_amount,
            usage.original_amount,
        )
        return ApplicationResult(success=True, message=_applied_message(usage), usage=usage)

    def get_user_available_coupons(
        self,
        user_id: UUID,
        plan_id: str | None = None,
        order_amount: Decimal | None = None,
    ) -> list[Coupon]:
        """List the coupons ``user_id`` could redeem right now.

        Plan-restricted coupons are only listed when ``plan_id`` matches, and
        the minimum order is only checked when ``order_amount`` is given.
        Ordered soonest-expiring first.
        """
        if self.user_repo.get_by_id(user_id) is None:
            return []

        amount = Decimal(str(order_amount)) if order_amount is not None else None
        user_counts = self.usage_repo.counts_by_user(user_id)
        first_time: bool | None = None
        available: list[Coupon] = []

        for coupon in self.coupon_repo.get_redeemable(self.clock()):
            if coupon.eligible_user_id is not None and coupon.eligible_user_id != user_id:
                continue
            if coupon.applicable_plans and plan_id not in coupon.applicable_plans:
                continue
            if (
                amount is not None
                and coupon.minimum_order_amount is not None
                and amount < coupon.minimum_order_amount
            ):
                continue
            if (
                coupon.usage_limit_per_user is not None
                and user_counts.get(coupon.id, 0) >= coupon.usage_limit_per_user  # type: ignore[call-overload]
            ):
                continue
            if coupon.first_time_users_only:
                if first_time is None:
                    first_time = self.is_first_time_user(user_id)
                if not first_time:
                    continue
            available.append(coupon)

        return available

    def is_first_time_user(self, user_id: UUID) -> bool:
        """A user with no paid subscription and no paid order."""
        return not (
            self.subscription_repo.has_paid_subscription(user_id)
            or self.order_repo.has_paid_order(user_id)
        )

    def _validate(
        self,
        code: str,
        user_id: UUID,
        order_amount: Decimal,
        plan_id: str | None,
        now: datetime,
    ) -> ValidationResult:
        if self.user_repo.get_by_id(user_id) is None:
            return self._reject(order_amount, CouponRejection.USER_NOT_FOUND, "User not found")

        coupon = self.coupon_repo.get_by_code(code)
        if (
            coupon is None
            or coupon.status != CouponStatus.ACTIVE.value
            or (coupon.eligible_user_id is not None and coupon.eligible_user_id != user_id)
        ):
            return self._reject(
                order_amount, CouponRejection.COUPON_NOT_FOUND, "Invalid coupon code"
            )

        if now < as_utc(coupon.valid_from):  # type: ignore[arg-type]
            return self._reject(
                order_amount,
                CouponRejection.COUPON_NOT_YET_ACTIVE,
                f"Coupon is not valid until {as_utc(coupon.valid_from):%d %b %Y}",  # type: ignore[arg-type]
            )
        if now > as_utc(coupon.valid_until):  # type: ignore[arg-type]
            return self._reject(order_amount, CouponRejection.COUPON_EXPIRED, "Coupon has expired")

        minimum = coupon.minimum_order_amount
        if minimum is not None and order_amount < minimum:
            return self._reject(
                order_amount,
                CouponRejection.BELOW_MINIMUM_ORDER,
                f"Minimum order amount is {settings.CURRENCY_SYMBOL}{quantize_amount(minimum)}",  # type: ignore[arg-type]
            )

        if coupon.applicable_plans and plan_id not in coupon.applicable_plans:
            return self._reject(
                order_amount,
                CouponRejection.PLAN_NOT_ELIGIBLE,
                "Coupon not applicable to selected plan",
            )

        if coupon.usage_limit is not None:
            total = self.usage_repo.count_by_coupon_id(coupon.id)  # type: ignore[arg-type]
            if total >= coupon.usage_limit:
                return self._reject(
                    order_amount,
                    CouponRejection.GLOBAL_LIMIT_REACHED,
                    "Coupon usage limit exceeded",
                )

        if coupon.usage_limit_per_user is not None:
            used = self.usage_repo.count_by_coupon_and_user(coupon.id, user_id)  # type: ignore[arg-type]
            if used >= coupon.usage_limit_per_user:
                return self._reject(
                    order_amount,
                    CouponRejection.USER_LIMIT_REACHED,
                    _user_limit_message(coupon.usage_limit_per_user),  # type: ignore[arg-type]
                )

        if coupon.first_time_users_only and not self.is_first_time_user(user_id):
            return self._reject(
                order_amount,
                CouponRejection.NOT_FIRST_TIME_USER,
                "Coupon only valid for first-time users",
            )

        discount = calculate_discount(
            coupon.coupon_type,  # type: ignore[arg-type]
            coupon.value,  # type: ignore[arg-type]
            order_amount,
            coupon.maximum_discount_amount,  # type: ignore[arg-type]
        )
        return ValidationResult(
            valid=True,
            message="Coupon applied successfully",
            discount_amount=discount.discount_amount,
            final_amount=discount.final_amount,
            trial_extension_days=discount.trial_extension_days,
            coupon=coupon,
        )

    def _reject(
        self, order_amount: Decimal, reason: CouponRejection, message: str
    ) -> ValidationResult:
        logger.info("Coupon rejected (%s): %s", reason.value, message)
        return ValidationResult(
            valid=False,
            message=message,
            discount_amount=Decimal("0.00"),
            final_amount=quantize_amount(order_amount),
            reason=reason,
        )

    def _rejection_after_race(
        self, code: str, user_id: UUID, order_amount: Decimal, plan_id: str | None
    ) -> ApplicationResult:
        # The guard only fails when the coupon was exhausted, terminated or
        # edited concurrently; re-validating names the rule that now fails.
        validation = self._validate(code, user_id, order_amount, plan_id, self.clock())
        if validation.valid:
            return ApplicationResult(
                success=False,
                message="Coupon usage limit exceeded",
                reason=CouponRejection.GLOBAL_LIMIT_REACHED,
            )
        return ApplicationResult(
            success=False, message=validation.message, reason=validation.reason
        )

    def _replay(self, usage: CouponUsage, code: str, user_id: UUID) -> ApplicationResult:
        coupon = self.coupon_repo.get_by_code(code)
        if coupon is None or usage.coupon_id != coupon.id or usage.user_id != user_id:
            return ApplicationResult(
                success=False,
                message="A coupon has already been applied to this order",
                reason=CouponRejection.ORDER_ALREADY_DISCOUNTED,
            )
        return ApplicationResult(
            success=True, message=_applied_message(usage), usage=usage, replayed=True
        )


def _user_limit_message(limit: int) -> str:
    if limit == 1:
        return "You have already used this coupon"
    return f"You have already used this coupon {limit} times"


def _applied_message(usage: CouponUsage) -> str:
    if usage.trial_extension_days:
        return f"Coupon applied! {usage.trial_extension_days} extra trial days added"
    return f"Coupon applied! You saved {settings.CURRENCY_SYMBOL}{usage.discount_amount}"

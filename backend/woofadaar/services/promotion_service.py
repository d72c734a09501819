"""Coupon administration: admin creates and updates, referral rewards and campaign codes."""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from woofadaar.core.config import settings
from woofadaar.models.coupon import Coupon, CouponType
from woofadaar.models.shared import as_utc, utc_now
from woofadaar.repositories.coupon_repository import CouponRepository
from woofadaar.repositories.user_repository import UserRepository
from woofadaar.schemas.coupon import CouponCreate, CouponUpdate

logger = logging.getLogger(__name__)

REFERRAL_CODE_PREFIX = "REFERRAL_REWARD"
SYSTEM_CREATOR = "system"

DEFAULT_COUPONS: tuple[dict, ...] = (
    {
        "code": "WELCOME50",
        "name": "New User Welcome",
        "description": "50% off first month for new users",
        "coupon_type": CouponType.PERCENTAGE,
        "value": Decimal("50"),
        "first_time_users_only": True,
    },
    {
        "code": "YEARLY25",
        "name": "Annual Plan Discount",
        "description": "Additional 25% off yearly subscriptions",
        "coupon_type": CouponType.PERCENTAGE,
        "value": Decimal("25"),
        "applicable_plans": ["premium_yearly", "family_yearly"],
    },
    {
        "code": "DIWALI2024",
        "name": "Diwali Special",
        "description": "Diwali special - 30% off all plans",
        "coupon_type": CouponType.PERCENTAGE,
        "value": Decimal("30"),
    },
)


class CouponAlreadyExistsError(ValueError):
    """Raised when a coupon code is already taken."""


class CouponUpdateError(ValueError):
    """Raised when an update would break the coupon's limits or window."""


class PromotionService:
    """Creates and maintains coupons for admins and the system."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock
        self.coupon_repo = CouponRepository(db)
        self.user_repo = UserRepository(db)

    def create_coupon(self, data: CouponCreate, created_by: str) -> Coupon:
        """Create a coupon after checking the code is free.

        Raises:
            CouponAlreadyExistsError: If the code is taken.
        """
        if self.coupon_repo.get_by_code(data.code):
            raise CouponAlreadyExistsError(f"Coupon code '{data.code}' already exists")
        coupon = self.coupon_repo.create(data, created_by)
        logger.info("Coupon %s created by %s", coupon.code, created_by)
        return coupon

    def update_coupon(self, code: str, data: CouponUpdate, updated_by: str) -> Coupon | None:
        """Apply an admin update to a coupon. Returns None if the code is unknown.

        Raises:
            CouponUpdateError: If ``usage_limit`` would drop below
                ``times_redeemed`` (including through a redemption committed
                while the update was in flight) or the window would be empty.
        """
        coupon = self.coupon_repo.get_by_code(code)
        if coupon is None:
            return None

        if data.usage_limit is not None and data.usage_limit < coupon.times_redeemed:
            raise CouponUpdateError("usage_limit cannot be lower than times_redeemed")

        valid_from = data.valid_from or as_utc(coupon.valid_from)  # type: ignore[arg-type]
        valid_until = data.valid_until or as_utc(coupon.valid_until)  # type: ignore[arg-type]
        if valid_from >= valid_until:
            raise CouponUpdateError("valid_from must be before valid_until")

        try:
            updated = self.coupon_repo.update(code, data)
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning(
                "Update of coupon %s by %s conflicted with a redemption", code, updated_by
            )
            raise CouponUpdateError("usage_limit cannot be lower than times_redeemed") from exc

        logger.info("Coupon %s updated by %s", coupon.code, updated_by)
        return updated

    def create_referral_coupon(self, user_id: UUID, amount: Decimal | None = None) -> Coupon:
        """Mint a single-use fixed amount coupon only ``user_id`` can redeem.

        Raises:
            ValueError: If the user does not exist.
            CouponAlreadyExistsError: If the user already has a referral coupon.
        """
        if self.user_repo.get_by_id(user_id) is None:
            raise ValueError(f"User {user_id} not found")

        reward = amount if amount is not None else settings.REFERRAL_REWARD_AMOUNT
        now = self.clock()
        data = CouponCreate(
            code=f"{REFERRAL_CODE_PREFIX}_{str(user_id)[-6:]}",
            name="Referral Reward",
            description=f"{settings.CURRENCY_SYMBOL}{reward} off your next subscription",
            coupon_type=CouponType.FIXED_AMOUNT,
            value=reward,
            usage_limit=1,
            usage_limit_per_user=1,
            valid_from=now,
            valid_until=now + timedelta(days=settings.REFERRAL_COUPON_VALIDITY_DAYS),
            eligible_user_id=user_id,
            coupon_metadata={
                "personal_coupon": True,
                "eligible_user": str(user_id),
                "created_for": "referral_reward",
            },
        )
        return self.create_coupon(data, SYSTEM_CREATOR)

    def seed_default_coupons(self, created_by: str = SYSTEM_CREATOR) -> list[Coupon]:
        """Create any missing default campaign coupons, valid for one year.

        Existing codes are left untouched. Returns the coupons created.
        """
        now = self.clock()
        created: list[Coupon] = []
        for template in DEFAULT_COUPONS:
            if self.coupon_repo.get_by_code(template["code"]):
                continue
            data = CouponCreate(**template, valid_from=now, valid_until=now + timedelta(days=365))
            created.append(self.create_coupon(data, created_by))
        return created

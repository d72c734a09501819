"""Tests for CouponService validation, application and availability."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import SQLAlchemyError

from woofadaar.models.coupon import Coupon, CouponRejection, CouponStatus, CouponType
from woofadaar.models.coupon_usage import CouponUsage
from woofadaar.models.order import OrderStatus
from woofadaar.models.subscription import SubscriptionStatus
from woofadaar.repositories.order_repository import OrderRepository
from woofadaar.repositories.subscription_repository import SubscriptionRepository
from woofadaar.repositories.user_repository import UserRepository
from woofadaar.schemas.order import OrderCreate
from woofadaar.schemas.subscription import SubscriptionCreate
from woofadaar.schemas.user import UserCreate
from woofadaar.services.coupon_service import CouponPersistenceError, CouponService


@pytest.fixture
def service(db_session):
    return CouponService(db_session)


def _usage_rows(db_session, coupon) -> int:
    return db_session.query(CouponUsage).filter(CouponUsage.coupon_id == coupon.id).count()


def _create_users(db_session, count: int):
    repo = UserRepository(db_session)
    return [
        repo.create(UserCreate(email=f"pup{i}@woofadaar.in", name=f"Pup Parent {i}"))
        for i in range(count)
    ]


class TestValidateCoupon:
    def test_percentage_discount_capped_at_maximum(self, service, user, make_coupon):
        """20% of 1000 is 200 but the cap holds it at 100."""
        make_coupon("SAVE20", value=Decimal("20"), maximum_discount_amount=Decimal("100"))

        result = service.validate_coupon("SAVE20", user.id, Decimal("1000"))

        assert result.valid is True
        assert result.reason is None
        assert result.discount_amount == Decimal("100.00")
        assert result.final_amount == Decimal("900.00")
        assert result.message == "Coupon applied successfully"
        assert result.coupon.code == "SAVE20"

    def test_fixed_amount_never_exceeds_order(self, service, user, make_coupon):
        make_coupon("FLAT50", coupon_type=CouponType.FIXED_AMOUNT, value=Decimal("50"))

        result = service.validate_coupon("FLAT50", user.id, Decimal("30"))

        assert result.valid is True
        assert result.discount_amount == Decimal("30.00")
        assert result.final_amount == Decimal("0.00")

    def test_code_is_case_insensitive(self, service, user, make_coupon):
        make_coupon("SAVE20")

        result = service.validate_coupon("  save20 ", user.id, Decimal("500"))

        assert result.valid is True
        assert result.discount_amount == Decimal("100.00")

    def test_trial_extension_grants_days_not_money(self, service, user, make_coupon):
        make_coupon(
            "TRIAL14", coupon_type=CouponType.FREE_TRIAL_EXTENSION, value=Decimal("14")
        )

        result = service.validate_coupon("TRIAL14", user.id, Decimal("299"))

        assert result.valid is True
        assert result.discount_amount == Decimal("0.00")
        assert result.final_amount == Decimal("299.00")
        assert result.trial_extension_days == 14

    def test_unknown_user_rejected(self, service, make_coupon):
        make_coupon("SAVE20")

        result = service.validate_coupon("SAVE20", uuid4(), Decimal("500"))

        assert result.valid is False
        assert result.reason == CouponRejection.USER_NOT_FOUND
        assert result.message == "User not found"

    def test_unknown_code_rejected(self, service, user):
        result = service.validate_coupon("NOPE", user.id, Decimal("500"))

        assert result.valid is False
        assert result.reason == CouponRejection.COUPON_NOT_FOUND
        assert result.message == "Invalid coupon code"
        assert result.discount_amount == Decimal("0.00")
        assert result.final_amount == Decimal("500.00")

    def test_terminated_coupon_rejected_as_unknown(self, service, user, make_coupon, db_session):
        coupon = make_coupon("SAVE20")
        coupon.status = CouponStatus.TERMINATED.value
        db_session.commit()

        result = service.validate_coupon("SAVE20", user.id, Decimal("500"))

        assert result.reason == CouponRejection.COUPON_NOT_FOUND

    def test_personal_coupon_hidden_from_other_users(
        self, service, user, other_user, make_coupon
    ):
        make_coupon("MINE", eligible_user_id=user.id)

        assert service.validate_coupon("MINE", user.id, Decimal("500")).valid is True
        result = service.validate_coupon("MINE", other_user.id, Decimal("500"))
        assert result.reason == CouponRejection.COUPON_NOT_FOUND

    def test_not_yet_active(self, db_session, user, make_coupon):
        start = datetime(2026, 11, 1, tzinfo=UTC)
        make_coupon("FUTURE", valid_from=start, valid_until=start + timedelta(days=10))
        service = CouponService(db_session, clock=lambda: start - timedelta(microseconds=1))

        result = service.validate_coupon("FUTURE", user.id, Decimal("500"))

        assert result.reason == CouponRejection.COUPON_NOT_YET_ACTIVE
        assert result.message == "Coupon is not valid until 01 Nov 2026"

    def test_valid_at_start_instant(self, db_session, user, make_coupon):
        start = datetime(2026, 11, 1, tzinfo=UTC)
        make_coupon("FUTURE", valid_from=start, valid_until=start + timedelta(days=10))
        service = CouponService(db_session, clock=lambda: start)

        assert service.validate_coupon("FUTURE", user.id, Decimal("500")).valid is True

    def test_valid_at_expiry_instant(self, db_session, user, make_coupon):
        """The end of the window is inclusive."""
        end = datetime(2026, 12, 31, 23, 59, 59, 500000, tzinfo=UTC)
        make_coupon("NYE", valid_from=end - timedelta(days=30), valid_until=end)
        service = CouponService(db_session, clock=lambda: end)

        assert service.validate_coupon("NYE", user.id, Decimal("500")).valid is True

    def test_expired_one_microsecond_after_window(self, db_session, user, make_coupon):
        end = datetime(2026, 12, 31, 23, 59, 59, 500000, tzinfo=UTC)
        make_coupon("NYE", valid_from=end - timedelta(days=30), valid_until=end)
        service = CouponService(db_session, clock=lambda: end + timedelta(microseconds=1))

        result = service.validate_coupon("NYE", user.id, Decimal("500"))

        assert result.reason == CouponRejection.COUPON_EXPIRED
        assert result.message == "Coupon has expired"

    def test_below_minimum_order(self, service, user, make_coupon):
        make_coupon("BIG", minimum_order_amount=Decimal("999"))

        result = service.validate_coupon("BIG", user.id, Decimal("998.99"))

        assert result.reason == CouponRejection.BELOW_MINIMUM_ORDER
        assert result.message == "Minimum order amount is ₹999.00"

    def test_minimum_order_is_inclusive(self, service, user, make_coupon):
        make_coupon("BIG", minimum_order_amount=Decimal("999"))

        assert service.validate_coupon("BIG", user.id, Decimal("999")).valid is True

    def test_plan_restriction(self, service, user, make_coupon):
        make_coupon("YEARLY25", applicable_plans=["premium_yearly", "family_yearly"])

        ok = service.validate_coupon("YEARLY25", user.id, Decimal("1000"), "family_yearly")
        wrong = service.validate_coupon("YEARLY25", user.id, Decimal("1000"), "premium_monthly")

        assert ok.valid is True
        assert wrong.reason == CouponRejection.PLAN_NOT_ELIGIBLE
        assert wrong.message == "Coupon not applicable to selected plan"

    def test_plan_restricted_coupon_requires_plan(self, service, user, make_coupon):
        make_coupon("YEARLY25", applicable_plans=["premium_yearly"])

        result = service.validate_coupon("YEARLY25", user.id, Decimal("1000"))

        assert result.reason == CouponRejection.PLAN_NOT_ELIGIBLE

    def test_first_time_user_rejected_after_completed_order(
        self, service, user, make_coupon, db_session
    ):
        make_coupon("WELCOME50", value=Decimal("50"), first_time_users_only=True)
        OrderRepository(db_session).create(
            OrderCreate(user_id=user.id, amount=Decimal("499"), status=OrderStatus.COMPLETED)
        )

        result = service.validate_coupon("WELCOME50", user.id, Decimal("500"))

        assert result.reason == CouponRejection.NOT_FIRST_TIME_USER
        assert result.message == "Coupon only valid for first-time users"

    def test_first_time_user_ignores_failed_orders_and_pending_subscriptions(
        self, service, user, make_coupon, db_session
    ):
        make_coupon("WELCOME50", value=Decimal("50"), first_time_users_only=True)
        OrderRepository(db_session).create(
            OrderCreate(user_id=user.id, amount=Decimal("499"), status=OrderStatus.FAILED)
        )
        SubscriptionRepository(db_session).create(
            SubscriptionCreate(user_id=user.id, plan_code="premium_monthly")
        )

        result = service.validate_coupon("WELCOME50", user.id, Decimal("500"))

        assert result.valid is True
        assert result.discount_amount == Decimal("250.00")

    def test_trialing_subscription_is_not_first_time(self, service, user, db_session):
        SubscriptionRepository(db_session).create(
            SubscriptionCreate(
                user_id=user.id,
                plan_code="premium_monthly",
                status=SubscriptionStatus.TRIALING,
            )
        )

        assert service.is_first_time_user(user.id) is False

    def test_validation_is_repeatable(self, service, user, make_coupon, db_session):
        coupon = make_coupon("SAVE20", usage_limit=1)

        first = service.validate_coupon("SAVE20", user.id, Decimal("400"))
        second = service.validate_coupon("SAVE20", user.id, Decimal("400"))

        assert first == second
        assert _usage_rows(db_session, coupon) == 0
        db_session.refresh(coupon)
        assert coupon.times_redeemed == 0


class TestApplyCoupon:
    def test_records_usage(self, service, user, make_coupon, db_session):
        coupon = make_coupon("SAVE20", maximum_discount_amount=Decimal("100"))

        result = service.apply_coupon(
            "SAVE20",
            user.id,
            Decimal("1000"),
            order_id="ord_1",
            subscription_id="sub_1",
            plan_id="premium_monthly",
        )

        assert result.success is True
        assert result.replayed is False
        assert result.message == "Coupon applied! You saved ₹100.00"
        usage = result.usage
        assert usage.coupon_id == coupon.id
        assert usage.user_id == user.id
        assert usage.order_id == "ord_1"
        assert usage.subscription_id == "sub_1"
        assert usage.plan_id == "premium_monthly"
        assert usage.original_amount == Decimal("1000.00")
        assert usage.discount_amount == Decimal("100.00")
        assert usage.final_amount == Decimal("900.00")
        assert usage.used_at is not None
        db_session.refresh(coupon)
        assert coupon.times_redeemed == 1

    def test_trial_extension_message(self, service, user, make_coupon):
        make_coupon(
            "TRIAL14", coupon_type=CouponType.FREE_TRIAL_EXTENSION, value=Decimal("14")
        )

        result = service.apply_coupon("TRIAL14", user.id, Decimal("299"))

        assert result.success is True
        assert result.usage.trial_extension_days == 14
        assert result.message == "Coupon applied! 14 extra trial days added"

    def test_second_use_hits_user_limit(self, service, user, make_coupon, db_session):
        coupon = make_coupon("SAVE20")

        first = service.apply_coupon("SAVE20", user.id, Decimal("500"))
        second = service.apply_coupon("SAVE20", user.id, Decimal("500"))

        assert first.success is True
        assert second.success is False
        assert second.reason == CouponRejection.USER_LIMIT_REACHED
        assert second.message == "You have already used this coupon"
        assert _usage_rows(db_session, coupon) == 1

    def test_user_limit_above_one(self, service, user, make_coupon):
        make_coupon("TWICE", usage_limit_per_user=2)

        results = [service.apply_coupon("TWICE", user.id, Decimal("500")) for _ in range(3)]

        assert [r.success for r in results] == [True, True, False]
        assert results[2].message == "You have already used this coupon 2 times"

    def test_global_limit_sequential(self, service, make_coupon, db_session):
        coupon = make_coupon("LIMITED", usage_limit=3)
        users = _create_users(db_session, 4)

        results = [service.apply_coupon("LIMITED", u.id, Decimal("500")) for u in users]

        assert [r.success for r in results] == [True, True, True, False]
        assert results[3].reason == CouponRejection.GLOBAL_LIMIT_REACHED
        assert results[3].message == "Coupon usage limit exceeded"
        assert _usage_rows(db_session, coupon) == 3
        db_session.refresh(coupon)
        assert coupon.times_redeemed == 3

    def test_rejection_records_nothing(self, service, user, make_coupon, db_session):
        coupon = make_coupon("BIG", minimum_order_amount=Decimal("999"))

        result = service.apply_coupon("BIG", user.id, Decimal("10"), order_id="ord_small")

        assert result.success is False
        assert result.reason == CouponRejection.BELOW_MINIMUM_ORDER
        assert result.usage is None
        assert _usage_rows(db_session, coupon) == 0

    def test_counter_exhausted_between_validation_and_write(
        self, service, user, make_coupon, db_session
    ):
        """A slot taken after validation surfaces as the global limit."""
        coupon = make_coupon("LAST", usage_limit=1)
        coupon.times_redeemed = 1
        db_session.commit()

        result = service.apply_coupon("LAST", user.id, Decimal("500"))

        assert result.success is False
        assert result.reason == CouponRejection.GLOBAL_LIMIT_REACHED
        assert _usage_rows(db_session, coupon) == 0

    def test_terminated_between_validation_and_write(self, service, user, make_coupon, db_session):
        coupon = make_coupon("SAVE20")

        def terminate_then_fail(coupon_id):
            db_session.query(Coupon).filter(Coupon.id == coupon_id).update(
                {Coupon.status: CouponStatus.TERMINATED.value}
            )
            db_session.commit()
            return False

        with patch.object(
            service.coupon_repo, "try_increment_redemptions", side_effect=terminate_then_fail
        ):
            result = service.apply_coupon("SAVE20", user.id, Decimal("500"))

        assert result.success is False
        assert result.reason == CouponRejection.COUPON_NOT_FOUND
        assert _usage_rows(db_session, coupon) == 0

    def test_persistence_failure_rolls_back(self, service, user, make_coupon, db_session):
        coupon = make_coupon("SAVE20", usage_limit=5)

        with (
            patch.object(service.usage_repo, "record", side_effect=SQLAlchemyError("disk full")),
            pytest.raises(CouponPersistenceError),
        ):
            service.apply_coupon("SAVE20", user.id, Decimal("500"))

        assert _usage_rows(db_session, coupon) == 0
        db_session.refresh(coupon)
        assert coupon.times_redeemed == 0

    def test_failed_apply_can_be_retried(self, service, user, make_coupon, db_session):
        make_coupon("SAVE20")

        with (
            patch.object(service.usage_repo, "record", side_effect=SQLAlchemyError("timeout")),
            pytest.raises(CouponPersistenceError),
        ):
            service.apply_coupon("SAVE20", user.id, Decimal("500"))

        result = service.apply_coupon("SAVE20", user.id, Decimal("500"))
        assert result.success is True


class TestOrderReplay:
    def test_same_order_is_replayed(self, service, user, make_coupon, db_session):
        coupon = make_coupon("SAVE20")

        first = service.apply_coupon("SAVE20", user.id, Decimal("500"), order_id="ord_42")
        retry = service.apply_coupon("save20", user.id, Decimal("500"), order_id="ord_42")

        assert first.success is True
        assert retry.success is True
        assert retry.replayed is True
        assert retry.usage.id == first.usage.id
        assert _usage_rows(db_session, coupon) == 1
        db_session.refresh(coupon)
        assert coupon.times_redeemed == 1

    def test_order_already_discounted_by_other_coupon(self, service, user, make_coupon):
        make_coupon("SAVE20")
        make_coupon("FLAT50", coupon_type=CouponType.FIXED_AMOUNT, value=Decimal("50"))
        service.apply_coupon("SAVE20", user.id, Decimal("500"), order_id="ord_42")

        result = service.apply_coupon("FLAT50", user.id, Decimal("500"), order_id="ord_42")

        assert result.success is False
        assert result.reason == CouponRejection.ORDER_ALREADY_DISCOUNTED
        assert result.message == "A coupon has already been applied to this order"

    def test_order_claimed_by_other_user(self, service, user, other_user, make_coupon):
        make_coupon("SAVE20")
        service.apply_coupon("SAVE20", user.id, Decimal("500"), order_id="ord_42")

        result = service.apply_coupon("SAVE20", other_user.id, Decimal("500"), order_id="ord_42")

        assert result.reason == CouponRejection.ORDER_ALREADY_DISCOUNTED

    def test_distinct_orders_are_independent(self, service, user, make_coupon):
        make_coupon("TWICE", usage_limit_per_user=2)

        first = service.apply_coupon("TWICE", user.id, Decimal("500"), order_id="ord_1")
        second = service.apply_coupon("TWICE", user.id, Decimal("500"), order_id="ord_2")

        assert first.success and second.success
        assert first.usage.id != second.usage.id


class TestAvailableCoupons:
    def test_unknown_user_gets_nothing(self, service, make_coupon):
        make_coupon("SAVE20")

        assert service.get_user_available_coupons(uuid4()) == []

    def test_filters_and_orders_by_expiry(
        self, service, user, other_user, make_coupon, db_session
    ):
        now = datetime.now(UTC)
        make_coupon("LATER", valid_until=now + timedelta(days=60))
        make_coupon("SOON", valid_until=now + timedelta(days=5))
        make_coupon("MINE", eligible_user_id=user.id)
        make_coupon("THEIRS", eligible_user_id=other_user.id)
        make_coupon("YEARLY25", applicable_plans=["premium_yearly"])
        make_coupon(
            "EXPIRED", valid_from=now - timedelta(days=10), valid_until=now - timedelta(days=1)
        )
        make_coupon(
            "FUTURE", valid_from=now + timedelta(days=1), valid_until=now + timedelta(days=10)
        )
        ended = make_coupon("ENDED")
        ended.status = CouponStatus.TERMINATED.value
        db_session.commit()

        codes = [c.code for c in service.get_user_available_coupons(user.id)]

        assert codes == ["SOON", "MINE", "LATER"]

    def test_plan_filter(self, service, user, make_coupon):
        make_coupon("YEARLY25", applicable_plans=["premium_yearly"])
        make_coupon("ANYPLAN")

        available = service.get_user_available_coupons(user.id, plan_id="premium_yearly")
        codes = {c.code for c in available}

        assert codes == {"YEARLY25", "ANYPLAN"}

    def test_minimum_order_only_checked_with_amount(self, service, user, make_coupon):
        make_coupon("BIG", minimum_order_amount=Decimal("999"))

        assert [c.code for c in service.get_user_available_coupons(user.id)] == ["BIG"]
        assert service.get_user_available_coupons(user.id, order_amount=Decimal("500")) == []

    def test_excludes_used_and_exhausted(self, service, user, other_user, make_coupon):
        make_coupon("USED")
        make_coupon("SOLDOUT", usage_limit=1)
        service.apply_coupon("USED", user.id, Decimal("500"))
        service.apply_coupon("SOLDOUT", other_user.id, Decimal("500"))

        assert service.get_user_available_coupons(user.id) == []

    def test_excludes_first_time_coupons_for_returning_users(
        self, service, user, make_coupon, db_session
    ):
        make_coupon("WELCOME50", first_time_users_only=True)
        assert [c.code for c in service.get_user_available_coupons(user.id)] == ["WELCOME50"]

        OrderRepository(db_session).create(
            OrderCreate(user_id=user.id, amount=Decimal("499"), status=OrderStatus.REFUNDED)
        )

        assert service.get_user_available_coupons(user.id) == []

"""Coupon, coupon usage and coupon engine schemas."""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Self
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from woofadaar.models.coupon import CouponRejection, CouponStatus, CouponType


# Largest amount a Numeric(12,2) column holds.
MAX_AMOUNT = Decimal("9999999999.99")

NON_NULLABLE_UPDATE_FIELDS = ("name", "valid_from", "valid_until", "status")


def normalize_code(code: str) -> str:
    """Coupon codes are matched case-insensitively and stored upper-cased."""
    return code.strip().upper()


def _to_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=255)
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    coupon_type: CouponType
    value: Decimal = Field(..., gt=0, le=MAX_AMOUNT, decimal_places=2)
    minimum_order_amount: Decimal | None = Field(
        default=None, ge=0, le=MAX_AMOUNT, decimal_places=2
    )
    maximum_discount_amount: Decimal | None = Field(
        default=None, gt=0, le=MAX_AMOUNT, decimal_places=2
    )
    usage_limit: int | None = Field(default=None, ge=1)
    usage_limit_per_user: int | None = Field(default=None, ge=1)
    valid_from: datetime
    valid_until: datetime
    applicable_plans: list[str] | None = None
    first_time_users_only: bool = False
    eligible_user_id: UUID | None = None
    coupon_metadata: dict[str, Any] | None = None

    @field_validator("code")
    @classmethod
    def normalize_coupon_code(cls, v: str) -> str:
        code = normalize_code(v)
        if not code:
            raise ValueError("code must not be blank")
        return code

    @field_validator("valid_from", "valid_until")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return _to_utc(v)  # type: ignore[return-value]

    @model_validator(mode="after")
    def validate_window(self) -> Self:
        """Validate valid_from is strictly before valid_until."""
        if self.valid_from >= self.valid_until:
            msg = "valid_from must be before valid_until"
            raise ValueError(msg)
        return self

    @model_validator(mode="after")
    def validate_value_for_type(self) -> Self:
        """Validate value against the coupon type."""
        if self.coupon_type == CouponType.PERCENTAGE and self.value > 100:
            msg = "percentage value must be between 0 and 100"
            raise ValueError(msg)
        if (
            self.coupon_type == CouponType.FREE_TRIAL_EXTENSION
            and self.value != self.value.to_integral_value()
        ):
            msg = "free_trial_extension value must be a whole number of days"
            raise ValueError(msg)
        return self


class CouponUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    minimum_order_amount: Decimal | None = Field(
        default=None, ge=0, le=MAX_AMOUNT, decimal_places=2
    )
    maximum_discount_amount: Decimal | None = Field(
        default=None, gt=0, le=MAX_AMOUNT, decimal_places=2
    )
    usage_limit: int | None = Field(default=None, ge=1)
    usage_limit_per_user: int | None = Field(default=None, ge=1)
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    status: CouponStatus | None = None

    @field_validator("valid_from", "valid_until")
    @classmethod
    def normalize_timezone(cls, v: datetime | None) -> datetime | None:
        return _to_utc(v)

    @field_validator("status")
    @classmethod
    def only_terminate(cls, v: CouponStatus | None) -> CouponStatus | None:
        if v is not None and v != CouponStatus.TERMINATED:
            raise ValueError("a coupon can only be moved to the terminated status")
        return v

    @model_validator(mode="after")
    def reject_cleared_required_fields(self) -> Self:
        """Required columns may be omitted but not set to null."""
        for field in NON_NULLABLE_UPDATE_FIELDS:
            if field in self.model_fields_set and getattr(self, field) is None:
                msg = f"{field} cannot be null"
                raise ValueError(msg)
        return self


class CouponResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    name: str
    description: str | None = None
    coupon_type: str
    value: Decimal
    minimum_order_amount: Decimal | None = None
    maximum_discount_amount: Decimal | None = None
    usage_limit: int | None = None
    usage_limit_per_user: int | None = None
    times_redeemed: int
    valid_from: datetime
    valid_until: datetime
    applicable_plans: list[str] | None = None
    first_time_users_only: bool
    eligible_user_id: UUID | None = None
    status: str
    created_by: str
    coupon_metadata: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime


class ValidateCouponRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=255)
    order_amount: Decimal = Field(..., gt=0, le=MAX_AMOUNT, decimal_places=2)
    plan_id: str | None = Field(default=None, max_length=255)


class ApplyCouponRequest(ValidateCouponRequest):
    order_id: str | None = Field(default=None, min_length=1, max_length=255)
    subscription_id: str | None = Field(default=None, min_length=1, max_length=255)


class CouponValidationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    valid: bool
    reason: CouponRejection | None = None
    message: str
    discount_amount: Decimal
    final_amount: Decimal
    trial_extension_days: int = 0
    coupon: CouponResponse | None = None


class CouponUsageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    coupon_id: UUID
    user_id: UUID
    order_id: str | None = None
    subscription_id: str | None = None
    plan_id: str | None = None
    original_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    trial_extension_days: int
    used_at: datetime


class CouponApplicationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool
    replayed: bool = False
    reason: CouponRejection | None = None
    message: str
    usage: CouponUsageResponse | None = None


class CouponAnalyticsResponse(BaseModel):
    """Analytics data for a coupon."""

    times_redeemed: int
    unique_users: int
    total_discount_amount: Decimal
    remaining_uses: int | None = None


class ReferralCouponRequest(BaseModel):
    """Request body for minting a referral reward coupon."""

    user_id: UUID
    amount: Decimal | None = Field(default=None, gt=0, le=MAX_AMOUNT, decimal_places=2)

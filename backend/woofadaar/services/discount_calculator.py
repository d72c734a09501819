"""Discount arithmetic for the three coupon types."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from woofadaar.models.coupon import CouponType

CENTS = Decimal("0.01")


def quantize_amount(amount: Decimal) -> Decimal:
    """Round a currency amount to paise."""
    return Decimal(str(amount)).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass
class Discount:
    """Outcome of applying a coupon to an order amount."""

    discount_amount: Decimal
    final_amount: Decimal
    trial_extension_days: int = 0


def calculate_discount(
    coupon_type: CouponType | str,
    value: Decimal,
    order_amount: Decimal,
    maximum_discount_amount: Decimal | None = None,
) -> Discount:
    """Compute the discount a coupon grants on ``order_amount``.

    Percentage discounts are rounded to paise before capping. Fixed amounts
    never exceed the order. Trial extensions grant no money off and report
    the extra days instead. The final amount never drops below zero.
    """
    coupon_type = CouponType(coupon_type)
    value = Decimal(str(value))
    order_amount = quantize_amount(order_amount)
    trial_days = 0

    if coupon_type == CouponType.PERCENTAGE:
        discount = quantize_amount(order_amount * value / Decimal(100))
    elif coupon_type == CouponType.FIXED_AMOUNT:
        discount = min(quantize_amount(value), order_amount)
    else:
        discount = Decimal("0")
        trial_days = int(value)

    if maximum_discount_amount is not None:
        cap = quantize_amount(maximum_discount_amount)
        if discount > cap:
            discount = cap

    discount = max(discount, Decimal("0"))
    final_amount = max(order_amount - discount, Decimal("0"))

    return Discount(
        discount_amount=quantize_amount(discount),
        final_amount=quantize_amount(final_amount),
        trial_extension_days=trial_days,
    )

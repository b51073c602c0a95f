"""Coupon Evaluator — validity and discount for a coupon against a cart total.

``evaluate`` is pure: it reads a coupon snapshot and never touches the usage
counter. Checks run in a fixed order and stop at the first failure: active
flag, expiry, usage limit, minimum purchase.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from protean.utils.globals import current_domain

from marketplace.coupon.coupon import Coupon, DiscountType
from marketplace.utils.money import round_money, to_decimal


@dataclass(frozen=True)
class CouponEvaluation:
    valid: bool
    reason: str | None = None
    discount: float = 0.0


def evaluate(coupon: Coupon, cart_total: float, now: datetime | None = None) -> CouponEvaluation:
    if not coupon.is_active:
        return CouponEvaluation(valid=False, reason=f"Coupon {coupon.code} is not active")
    if coupon.is_expired(now):
        return CouponEvaluation(valid=False, reason=f"Coupon {coupon.code} has expired")
    if coupon.is_usage_limit_reached():
        return CouponEvaluation(valid=False, reason=f"Coupon {coupon.code} has reached its usage limit")

    total = to_decimal(cart_total)
    minimum = to_decimal(coupon.min_purchase_amount)
    if total < minimum:
        return CouponEvaluation(
            valid=False,
            reason=f"Minimum purchase amount of {round_money(minimum):.2f} is required for coupon {coupon.code}",
        )

    if coupon.discount_type == DiscountType.PERCENTAGE.value:
        discount = total * to_decimal(coupon.discount_value) / Decimal(100)
    else:
        discount = to_decimal(coupon.discount_value)

    discount = max(Decimal(0), min(discount, total))
    return CouponEvaluation(valid=True, discount=round_money(discount))


def check_coupon(code: str, cart_total: float) -> CouponEvaluation:
    """Look a coupon up by code and evaluate it; unknown codes are reported, not raised."""
    coupon = current_domain.repository_for(Coupon).find_by_code(code)
    if coupon is None:
        return CouponEvaluation(valid=False, reason=f"Coupon {code} does not exist")
    return evaluate(coupon, cart_total)

"""Coupon aggregate — discount codes with expiry, minimum spend and usage caps.

Coupons are administered elsewhere; the fulfillment core reads them to price
an order and bumps ``times_used`` inside the order-creation transaction.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String

from marketplace.domain import marketplace


class DiscountType(Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"


def _as_aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=UTC)


@marketplace.aggregate
class Coupon:
    code = String(required=True, max_length=50, unique=True)
    description = String(max_length=255)
    discount_type = String(required=True, choices=DiscountType)
    discount_value = Float(required=True, min_value=0.0)
    expiry_date = DateTime(required=True)
    min_purchase_amount = Float(default=0.0, min_value=0.0)
    is_active = Boolean(default=True)
    usage_limit = Integer(min_value=0)  # None means unlimited
    times_used = Integer(default=0, min_value=0)

    @invariant.post
    def usage_cannot_exceed_limit(self):
        if self.usage_limit is not None and (self.times_used or 0) > self.usage_limit:
            raise ValidationError({"times_used": ["Coupon usage cannot exceed its usage limit"]})

    @invariant.post
    def percentage_cannot_exceed_hundred(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and self.discount_value > 100:
            raise ValidationError({"discount_value": ["Percentage discount cannot exceed 100"]})

    @classmethod
    def create(cls, code, discount_type, discount_value, expiry_date, **kwargs):
        return cls(
            code=code.strip().upper(),
            discount_type=discount_type,
            discount_value=discount_value,
            expiry_date=expiry_date,
            **kwargs,
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(UTC)
        return _as_aware(self.expiry_date) < _as_aware(now)

    def is_usage_limit_reached(self) -> bool:
        return self.usage_limit is not None and (self.times_used or 0) >= self.usage_limit

    def increment_usage(self) -> None:
        if self.is_usage_limit_reached():
            raise ValidationError({"coupon_code": [f"Coupon {self.code} has reached its usage limit"]})
        self.times_used = (self.times_used or 0) + 1


@marketplace.repository(part_of=Coupon)
class CouponRepository:
    def find_by_code(self, code: str) -> Coupon | None:
        if not code:
            return None
        return self._dao.query.filter(code=code.strip().upper()).all().first

"""Application tests for looking up and checking coupons by code."""

from protean import current_domain

from marketplace.coupon.coupon import Coupon
from marketplace.coupon.evaluator import check_coupon


class TestCheckCoupon:
    def test_unknown_code_reported(self):
        result = check_coupon("NOPE", 50.0)
        assert result.valid is False
        assert result.reason == "Coupon NOPE does not exist"
        assert result.discount == 0.0

    def test_valid_code_is_case_insensitive(self, make_coupon):
        make_coupon(code="SAVE10", discount_value=10.0)
        result = check_coupon(" save10 ", 80.0)
        assert result.valid is True
        assert result.discount == 8.0

    def test_check_does_not_consume_usage(self, make_coupon):
        make_coupon(code="ONCE", usage_limit=1)
        check_coupon("ONCE", 20.0)
        check_coupon("ONCE", 20.0)
        assert check_coupon("ONCE", 20.0).valid is True
        assert current_domain.repository_for(Coupon).find_by_code("ONCE").times_used == 0

    def test_minimum_purchase_reported(self, make_coupon):
        make_coupon(code="BIG", discount_type="FIXED_AMOUNT", discount_value=15.0, min_purchase_amount=100.0)
        result = check_coupon("BIG", 99.99)
        assert result.valid is False
        assert "Minimum purchase amount of 100.00" in result.reason

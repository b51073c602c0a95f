"""Tests for Order placement — snapshots, amounts and invariants."""

import pytest
from protean.exceptions import ValidationError

from marketplace.order.events import OrderPlaced
from marketplace.order.order import Order, OrderStatus, PaymentStatus

ADDRESS = {"street": "1 Main St", "city": "Springfield", "zip_code": "62701", "country": "US"}


def _items(*lines):
    return [
        {
            "product_id": f"prod-{i}",
            "product_name": f"Product {i}",
            "seller_id": f"seller-{i}",
            "quantity": quantity,
            "price_at_purchase": price,
        }
        for i, (quantity, price) in enumerate(lines, start=1)
    ]


class TestPlaceOrder:
    def test_new_order_awaits_payment(self):
        order = Order.place("cust-001", _items((2, 10.0)), ADDRESS)
        assert order.status == OrderStatus.PENDING_PAYMENT.value
        assert order.payment_status == PaymentStatus.PENDING.value
        assert order.stock_restored is False

    def test_amounts(self):
        order = Order.place(
            "cust-001",
            _items((2, 10.0), (1, 5.55)),
            ADDRESS,
            shipping_fee=4.99,
            discount_amount=3.0,
        )
        assert order.items[0].item_total == 20.0
        assert order.total_amount == 25.55
        assert order.discount_amount == 3.0
        assert order.final_amount == 27.54

    def test_billing_defaults_to_shipping(self):
        order = Order.place("cust-001", _items((1, 10.0)), ADDRESS)
        assert order.billing_address.street == ADDRESS["street"]
        assert order.billing_address.zip_code == ADDRESS["zip_code"]

    def test_separate_billing_address(self):
        billing = dict(ADDRESS, street="9 Billing Rd")
        order = Order.place("cust-001", _items((1, 10.0)), ADDRESS, billing_address=billing)
        assert order.billing_address.street == "9 Billing Rd"
        assert order.shipping_address.street == "1 Main St"

    def test_raises_order_placed(self):
        order = Order.place("cust-001", _items((1, 10.0)), ADDRESS, coupon_code="SAVE10")
        event = order._events[-1]
        assert isinstance(event, OrderPlaced)
        assert event.item_count == 1
        assert event.coupon_code == "SAVE10"

    def test_empty_order_rejected(self):
        with pytest.raises(ValidationError):
            Order.place("cust-001", [], ADDRESS)

    def test_address_requires_street(self):
        with pytest.raises(ValidationError):
            Order.place("cust-001", _items((1, 10.0)), {"city": "X", "zip_code": "1", "country": "US"})


class TestOrderInvariants:
    def test_discount_cannot_exceed_total(self):
        with pytest.raises(ValidationError) as exc:
            Order.place("cust-001", _items((1, 10.0)), ADDRESS, discount_amount=10.01)
        assert "discount_amount" in exc.value.messages

    def test_full_discount_leaves_only_shipping(self):
        order = Order.place("cust-001", _items((1, 10.0)), ADDRESS, discount_amount=10.0, shipping_fee=2.5)
        assert order.final_amount == 2.5

    def test_final_amount_never_negative(self):
        order = Order.place("cust-001", _items((1, 0.0)), ADDRESS)
        assert order.final_amount == 0.0


class TestOrderQueries:
    def test_ownership(self):
        order = Order.place("cust-001", _items((1, 10.0)), ADDRESS)
        assert order.is_owned_by("cust-001")
        assert not order.is_owned_by("cust-002")

    def test_seller_ids(self):
        order = Order.place("cust-001", _items((1, 10.0), (1, 2.0)), ADDRESS)
        assert order.seller_ids == {"seller-1", "seller-2"}

    def test_seller_refs_delimit_each_seller(self):
        order = Order.place("cust-001", _items((1, 10.0), (1, 2.0)), ADDRESS)
        assert order.seller_refs == "|seller-1|seller-2|"

"""Tests for who may act on an order."""

import pytest

from marketplace.errors import Forbidden
from marketplace.order.access import (
    ActorRole,
    ensure_owner,
    ensure_staff_can_manage,
    ensure_status_allowed_for,
)
from marketplace.order.order import Order, OrderStatus

ADDRESS = {"street": "1 Main St", "city": "Springfield", "zip_code": "62701", "country": "US"}


@pytest.fixture()
def order():
    return Order.place(
        "cust-001",
        [
            {
                "product_id": "prod-001",
                "product_name": "Desk Lamp",
                "seller_id": "seller-001",
                "quantity": 1,
                "price_at_purchase": 10.0,
            }
        ],
        ADDRESS,
    )


class TestOwnership:
    def test_owner_allowed(self, order):
        ensure_owner(order, "cust-001")

    def test_other_customer_forbidden(self, order):
        with pytest.raises(Forbidden):
            ensure_owner(order, "cust-999")


class TestStaff:
    def test_admin_manages_any_order(self, order):
        ensure_staff_can_manage(order, "admin-001", ActorRole.ADMIN)

    def test_seller_of_an_item_allowed(self, order):
        ensure_staff_can_manage(order, "seller-001", ActorRole.SELLER)

    def test_unrelated_seller_forbidden(self, order):
        with pytest.raises(Forbidden):
            ensure_staff_can_manage(order, "seller-999", ActorRole.SELLER)

    def test_customer_is_not_staff(self, order):
        with pytest.raises(Forbidden):
            ensure_staff_can_manage(order, "cust-001", ActorRole.CUSTOMER)

    @pytest.mark.parametrize("status", [OrderStatus.PROCESSING, OrderStatus.SHIPPED])
    def test_seller_settable_statuses(self, status):
        ensure_status_allowed_for(ActorRole.SELLER, status)

    @pytest.mark.parametrize(
        "status", [OrderStatus.DELIVERED, OrderStatus.CANCELLED_BY_SELLER, OrderStatus.RETURN_APPROVED]
    )
    def test_seller_restricted_statuses(self, status):
        with pytest.raises(Forbidden):
            ensure_status_allowed_for(ActorRole.SELLER, status)

    def test_admin_may_set_any_status(self):
        ensure_status_allowed_for(ActorRole.ADMIN, OrderStatus.CANCELLED_BY_ADMIN)

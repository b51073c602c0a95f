"""Application tests for customer cancellation and stock restitution."""

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError

from marketplace.catalogue.product import Product
from marketplace.errors import Forbidden
from marketplace.order.cancellation import CancelOrder
from marketplace.order.order import OrderStatus, PaymentStatus
from marketplace.order.restitution import restore_stock_for
from marketplace.webhook.receiver import receive_webhook


def _cancel(order_id, requester_id="cust-001"):
    return current_domain.process(CancelOrder(order_id=order_id, requester_id=requester_id), asynchronous=False)


class TestCancelOrder:
    def test_cancel_pending_order_restores_stock(self, make_product, place_order, load_order, stock_of):
        product = make_product(stock=5)
        order_id = place_order(lines=[{"product_id": product.id, "quantity": 3}])
        assert stock_of(product.id) == 2

        assert _cancel(order_id) == OrderStatus.CANCELLED_BY_CUSTOMER.value

        order = load_order(order_id)
        assert order.status == OrderStatus.CANCELLED_BY_CUSTOMER.value
        assert order.payment_status == PaymentStatus.PENDING.value
        assert order.stock_restored is True
        assert stock_of(product.id) == 5

    def test_cancel_paid_order_marks_refunded(
        self, gateway, make_product, place_order, load_order, stock_of, checkout_completed
    ):
        product = make_product(stock=5)
        order_id = place_order(lines=[{"product_id": product.id, "quantity": 1}])
        payload = checkout_completed(order_id)
        receive_webhook(payload, gateway.sign(payload))
        assert load_order(order_id).status == OrderStatus.PROCESSING.value

        _cancel(order_id)

        order = load_order(order_id)
        assert order.payment_status == PaymentStatus.REFUNDED.value
        assert stock_of(product.id) == 5

    def test_second_cancel_rejected_without_double_restore(self, make_product, place_order, stock_of):
        product = make_product(stock=5)
        order_id = place_order(lines=[{"product_id": product.id, "quantity": 2}])
        _cancel(order_id)

        with pytest.raises(ValidationError) as exc:
            _cancel(order_id)

        assert "CANCELLED_BY_CUSTOMER" in str(exc.value.messages)
        assert stock_of(product.id) == 5

    def test_other_customer_forbidden(self, make_product, place_order, load_order, stock_of):
        product = make_product(stock=5)
        order_id = place_order(lines=[{"product_id": product.id, "quantity": 2}])
        with pytest.raises(Forbidden):
            _cancel(order_id, requester_id="cust-999")
        assert load_order(order_id).status == OrderStatus.PENDING_PAYMENT.value
        assert stock_of(product.id) == 3

    def test_unknown_order(self):
        with pytest.raises(ObjectNotFoundError):
            _cancel("no-such-order")

    def test_notifies_customer(self, notifier, make_product, place_order):
        product = make_product()
        order_id = place_order(lines=[{"product_id": product.id, "quantity": 1}])
        _cancel(order_id)
        assert "cancelled" in notifier.sent_to("cust-001")[-1]["message"]

    def test_notification_failure_does_not_block_cancel(self, notifier, make_product, place_order, load_order):
        product = make_product()
        order_id = place_order(lines=[{"product_id": product.id, "quantity": 1}])
        notifier.configure(should_succeed=False)
        _cancel(order_id)
        assert load_order(order_id).status == OrderStatus.CANCELLED_BY_CUSTOMER.value


class TestRestitution:
    def test_deleted_product_is_skipped(self, make_product, place_order, load_order, stock_of):
        kept = make_product(stock=5)
        gone = make_product(name="Discontinued", stock=5)
        order_id = place_order(lines=[{"product_id": kept.id, "quantity": 1}, {"product_id": gone.id, "quantity": 1}])

        repo = current_domain.repository_for(Product)
        repo._dao.delete(repo.get(gone.id))

        _cancel(order_id)

        assert stock_of(kept.id) == 5
        assert load_order(order_id).stock_restored is True

    def test_restore_runs_once(self, make_product, place_order, load_order, stock_of):
        product = make_product(stock=5)
        order_id = place_order(lines=[{"product_id": product.id, "quantity": 2}])
        order = load_order(order_id)
        order.cancel()

        assert restore_stock_for(order) == 1
        assert restore_stock_for(order) == 0
        assert stock_of(product.id) == 5

"""Webhook reconciliation — commands that apply gateway events to orders.

Each decoded gateway event becomes one command, and each command runs in its
own unit of work. Handlers are idempotent: a replayed event finds either the
order already past the state it would move it to, or an existing Payment row
for the same gateway transaction, and returns ``"duplicate"`` without writing.
"""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.cart.cart import Cart
from marketplace.domain import marketplace
from marketplace.notification import notify_quietly
from marketplace.order.order import Order, OrderStatus
from marketplace.payment.payment import Payment, PaymentRecordStatus
from marketplace.utils.money import round_money

logger = structlog.get_logger(__name__)

PROCESSED = "processed"
DUPLICATE = "duplicate"
IGNORED = "ignored"


@marketplace.command(part_of="Order")
class ConfirmCheckout:
    order_id = Identifier(required=True)
    session_id = String(required=True, max_length=255)
    payment_intent_id = String(max_length=255)
    amount = Float(default=0.0)
    currency = String(max_length=3)
    gateway_response = Text()


@marketplace.command(part_of="Order")
class RecordFailedPayment:
    order_id = Identifier(required=True)
    payment_intent_id = String(required=True, max_length=255)
    reason = String(max_length=500)
    amount = Float(default=0.0)
    currency = String(max_length=3)
    gateway_response = Text()


@marketplace.command(part_of="Order")
class RecordChargeRefund:
    order_id = Identifier(required=True)
    charge_id = String(required=True, max_length=255)
    amount_refunded = Float(default=0.0)
    currency = String(max_length=3)
    gateway_response = Text()


def _clear_cart_quietly(customer_id) -> None:
    """Empty the buyer's cart after a confirmed payment; failures are only logged."""
    try:
        repo = current_domain.repository_for(Cart)
        cart = repo.find_for_customer(customer_id)
        if cart is not None and cart.clear():
            repo.add(cart)
    except Exception:
        logger.exception("Cart could not be cleared after payment", customer_id=str(customer_id))


@marketplace.command_handler(part_of=Order)
class ReconcilePaymentHandler:
    @handle(ConfirmCheckout)
    def confirm_checkout(self, command):
        order_repo = current_domain.repository_for(Order)
        payment_repo = current_domain.repository_for(Payment)
        order = order_repo.get(command.order_id)
        transaction_id = command.payment_intent_id or command.session_id

        if order.is_duplicate_payment_confirmation or payment_repo.find_by_transaction(
            transaction_id, PaymentRecordStatus.COMPLETED
        ):
            logger.info(
                "Duplicate checkout confirmation ignored",
                order_id=str(order.id),
                status=order.status,
                payment_status=order.payment_status,
            )
            return DUPLICATE

        amount = round_money(command.amount or order.final_amount)
        if abs(amount - order.final_amount) >= 0.01:
            logger.warning(
                "Captured amount differs from order total",
                order_id=str(order.id),
                captured=amount,
                expected=order.final_amount,
            )

        if order.status == OrderStatus.PENDING_PAYMENT.value:
            order.confirm_payment(amount, gateway_transaction_id=transaction_id)
        else:
            # Staff moved the order on (or cancelled it) before the money arrived
            order.record_late_payment(amount, gateway_transaction_id=transaction_id)
            logger.warning(
                "Payment captured for order no longer awaiting payment",
                order_id=str(order.id),
                status=order.status,
                amount=amount,
            )

        order_repo.add(order)
        payment_repo.add(
            Payment.record(
                order_id=order.id,
                customer_id=order.customer_id,
                amount=amount,
                currency=command.currency or order.currency,
                status=PaymentRecordStatus.COMPLETED,
                gateway_transaction_id=transaction_id,
                gateway_response=command.gateway_response,
            )
        )

        if order.is_cancelled:
            return PROCESSED

        _clear_cart_quietly(order.customer_id)
        notify_quietly(
            order.customer_id,
            f"Payment received for order #{order.id}. Your order is confirmed and being processed.",
            link=f"/orders/{order.id}",
        )
        logger.info("Order payment confirmed", order_id=str(order.id), amount=amount)
        return PROCESSED

    @handle(RecordFailedPayment)
    def record_failed_payment(self, command):
        order_repo = current_domain.repository_for(Order)
        payment_repo = current_domain.repository_for(Payment)
        order = order_repo.get(command.order_id)

        if order.status != OrderStatus.PENDING_PAYMENT.value:
            logger.info(
                "Payment failure ignored for order no longer awaiting payment",
                order_id=str(order.id),
                status=order.status,
            )
            return IGNORED

        if payment_repo.find_by_transaction(command.payment_intent_id, PaymentRecordStatus.FAILED):
            return DUPLICATE

        reason = command.reason or "Payment failed"
        order.record_payment_failure(reason)
        order_repo.add(order)
        payment_repo.add(
            Payment.record(
                order_id=order.id,
                customer_id=order.customer_id,
                amount=round_money(command.amount or order.final_amount),
                currency=command.currency or order.currency,
                status=PaymentRecordStatus.FAILED,
                gateway_transaction_id=command.payment_intent_id,
                failure_reason=reason,
                gateway_response=command.gateway_response,
            )
        )

        logger.info("Order payment failed", order_id=str(order.id), reason=reason)
        notify_quietly(
            order.customer_id,
            f"Payment for order #{order.id} failed: {reason}. You can retry the payment from your order page.",
            link=f"/orders/{order.id}",
        )
        return PROCESSED

    @handle(RecordChargeRefund)
    def record_charge_refund(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        payment_repo = current_domain.repository_for(Payment)

        if payment_repo.find_by_transaction(command.charge_id, PaymentRecordStatus.REFUNDED):
            return DUPLICATE

        payment_repo.add(
            Payment.record(
                order_id=order.id,
                customer_id=order.customer_id,
                amount=round_money(command.amount_refunded),
                currency=command.currency or order.currency,
                status=PaymentRecordStatus.REFUNDED,
                gateway_transaction_id=command.charge_id,
                gateway_response=command.gateway_response,
            )
        )
        logger.info(
            "Charge refund recorded",
            order_id=str(order.id),
            charge_id=command.charge_id,
            amount_refunded=command.amount_refunded,
        )
        return PROCESSED

"""Payment Session Adapter — creates a hosted checkout session for an order.

The order is read and checked first, then the gateway is called once with no
unit of work open, and only afterwards is the session id stored through a
short ``RecordCheckoutSession`` command. A gateway failure leaves the order
untouched and surfaces as a generic ``PaymentSessionError``.
"""

from dataclasses import dataclass

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.config import get_settings
from marketplace.domain import marketplace
from marketplace.errors import PaymentSessionError
from marketplace.gateway import get_gateway
from marketplace.gateway.port import GatewayError
from marketplace.order.access import ensure_owner
from marketplace.order.order import Order, OrderStatus, PaymentStatus
from marketplace.utils.money import to_minor_units

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    checkout_url: str


@marketplace.command(part_of="Order")
class RecordCheckoutSession:
    order_id = Identifier(required=True)
    checkout_session_id = String(required=True, max_length=255)


@marketplace.command_handler(part_of=Order)
class RecordCheckoutSessionHandler:
    @handle(RecordCheckoutSession)
    def record_checkout_session(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_checkout_session(command.checkout_session_id)
        repo.add(order)


def _ensure_payable(order: Order) -> None:
    if order.payment_status == PaymentStatus.COMPLETED.value:
        raise ValidationError({"payment_status": [f"Order {order.id} has already been paid"]})
    if order.is_cancelled:
        raise ValidationError({"status": [f"Order {order.id} has been cancelled ({order.status})"]})
    if order.status != OrderStatus.PENDING_PAYMENT.value:
        raise ValidationError({"status": [f"Order {order.id} is not awaiting payment (status {order.status})"]})
    if not order.items:
        raise ValidationError({"items": [f"Order {order.id} has no items"]})


def create_checkout_session(
    order_id,
    requester_id,
    success_url: str | None = None,
    cancel_url: str | None = None,
) -> CheckoutSession:
    settings = get_settings()
    order = current_domain.repository_for(Order).get(order_id)
    ensure_owner(order, requester_id)
    _ensure_payable(order)

    currency = (order.currency or settings.currency).lower()
    amount_minor_units = to_minor_units(order.final_amount, currency)
    metadata = {"order_id": str(order.id), "customer_id": str(order.customer_id)}

    try:
        session = get_gateway().create_session(
            amount_minor_units=amount_minor_units,
            currency=currency,
            success_url=success_url or settings.checkout_success_url,
            cancel_url=cancel_url or settings.checkout_cancel_url,
            metadata=metadata,
            description=f"Order #{order.id}",
        )
    except GatewayError as exc:
        logger.error("Checkout session creation failed", order_id=str(order.id), error=str(exc))
        raise PaymentSessionError() from exc

    current_domain.process(
        RecordCheckoutSession(order_id=str(order.id), checkout_session_id=session.session_id),
        asynchronous=False,
    )

    logger.info(
        "Checkout session created",
        order_id=str(order.id),
        session_id=session.session_id,
        amount_minor_units=amount_minor_units,
        currency=currency,
    )
    return CheckoutSession(session_id=session.session_id, checkout_url=session.url)

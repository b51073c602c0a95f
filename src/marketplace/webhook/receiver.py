"""Webhook receiver: verify, decode, then dispatch one reconciliation command.

Only a bad signature or an undecodable body is reported back to the gateway
as a failure. Anything that goes wrong after that is logged and the event is
still acknowledged, so the gateway does not keep redelivering an event that
can never succeed.
"""

import json
from dataclasses import dataclass

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.gateway import get_gateway
from marketplace.utils.logging import add_context, remove_context
from marketplace.webhook.events import (
    ChargeRefunded,
    CheckoutCompleted,
    PaymentFailed,
    UnhandledEvent,
    decode_event,
)
from marketplace.webhook.reconciliation import (
    IGNORED,
    ConfirmCheckout,
    RecordChargeRefund,
    RecordFailedPayment,
)

logger = structlog.get_logger(__name__)

ERROR = "error"


@dataclass(frozen=True)
class WebhookReceipt:
    status: str
    event_type: str
    order_id: str | None = None


def _command_for(event):
    if isinstance(event, CheckoutCompleted):
        return ConfirmCheckout(
            order_id=event.order_id,
            session_id=event.session_id,
            payment_intent_id=event.payment_intent_id,
            amount=event.amount,
            currency=event.currency,
            gateway_response=json.dumps(event.raw),
        )
    if isinstance(event, PaymentFailed):
        return RecordFailedPayment(
            order_id=event.order_id,
            payment_intent_id=event.payment_intent_id,
            reason=event.reason,
            amount=event.amount,
            currency=event.currency,
            gateway_response=json.dumps(event.raw),
        )
    if isinstance(event, ChargeRefunded):
        return RecordChargeRefund(
            order_id=event.order_id,
            charge_id=event.charge_id,
            amount_refunded=event.amount_refunded,
            currency=event.currency,
            gateway_response=json.dumps(event.raw),
        )
    return None


def receive_webhook(payload: bytes, signature: str | None) -> WebhookReceipt:
    """Process one raw gateway callback.

    Raises:
        WebhookSignatureError: the signature does not match the raw body.
        WebhookPayloadError: the body is not a recognisable gateway event.
    """
    get_gateway().verify_webhook(payload, signature or "")
    event = decode_event(payload)

    add_context(event_id=event.event_id, event_type=event.event_type)
    try:
        if isinstance(event, UnhandledEvent):
            logger.info("Unhandled webhook event type acknowledged")
            return WebhookReceipt(status=IGNORED, event_type=event.event_type, order_id=event.order_id)

        if not event.order_id:
            logger.warning("Webhook event carries no order id")
            return WebhookReceipt(status=IGNORED, event_type=event.event_type)

        try:
            status = current_domain.process(_command_for(event), asynchronous=False)
        except ObjectNotFoundError:
            logger.warning("Webhook event references an unknown order", order_id=event.order_id)
            return WebhookReceipt(status=IGNORED, event_type=event.event_type, order_id=event.order_id)
        except Exception:
            logger.exception("Webhook event processing failed", order_id=event.order_id)
            return WebhookReceipt(status=ERROR, event_type=event.event_type, order_id=event.order_id)

        logger.info("Webhook event reconciled", order_id=event.order_id, result=status)
        return WebhookReceipt(status=status, event_type=event.event_type, order_id=event.order_id)
    finally:
        remove_context("event_id", "event_type")

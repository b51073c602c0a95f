"""Gateway webhook events, decoded into a closed set of variants.

The gateway sends Stripe-shaped JSON: ``{"id", "type", "data": {"object": {...}}}``.
Only three event types drive the order; every other type decodes to
``UnhandledEvent`` and is acknowledged without effect.
"""

import json
from dataclasses import dataclass, field

from marketplace.errors import WebhookPayloadError
from marketplace.utils.money import from_minor_units

CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_FAILED = "payment_intent.payment_failed"
CHARGE_REFUNDED = "charge.refunded"


@dataclass(frozen=True)
class CheckoutCompleted:
    event_id: str
    order_id: str | None
    session_id: str
    payment_intent_id: str | None
    amount: float
    currency: str
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    event_type = CHECKOUT_COMPLETED


@dataclass(frozen=True)
class PaymentFailed:
    event_id: str
    order_id: str | None
    payment_intent_id: str
    reason: str
    amount: float
    currency: str
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    event_type = PAYMENT_FAILED


@dataclass(frozen=True)
class ChargeRefunded:
    event_id: str
    order_id: str | None
    charge_id: str
    payment_intent_id: str | None
    amount_refunded: float
    currency: str
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    event_type = CHARGE_REFUNDED


@dataclass(frozen=True)
class UnhandledEvent:
    event_id: str
    event_type: str
    order_id: str | None = None


WebhookEvent = CheckoutCompleted | PaymentFailed | ChargeRefunded | UnhandledEvent


def _object(obj: dict, key: str) -> dict:
    """A nested JSON object, or an empty dict when the field is absent."""
    value = obj.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise WebhookPayloadError(f"Field '{key}' must be a JSON object")
    return value


def _metadata_order_id(obj: dict) -> str | None:
    """Order id from the object's metadata, else from its expanded payment intent."""
    metadata = _object(obj, "metadata")
    if metadata.get("order_id"):
        return str(metadata["order_id"])

    intent = obj.get("payment_intent")
    if isinstance(intent, dict):
        intent_metadata = _object(intent, "metadata")
        if intent_metadata.get("order_id"):
            return str(intent_metadata["order_id"])
    return None


def _intent_id(value) -> str | None:
    if isinstance(value, dict):
        return value.get("id")
    return value


def _amount(obj: dict, key: str, currency: str) -> float:
    value = obj.get(key)
    if value is None:
        return 0.0
    if not isinstance(value, int) or isinstance(value, bool):
        raise WebhookPayloadError(f"Field '{key}' must be an integer amount in minor units")
    return from_minor_units(value, currency)


def decode_event(payload: bytes) -> WebhookEvent:
    """Parse a raw webhook body into one of the event variants.

    Raises ``WebhookPayloadError`` when the body is not JSON or lacks the
    envelope fields every gateway event carries.
    """
    try:
        envelope = json.loads(payload)
    except (ValueError, UnicodeDecodeError) as exc:
        raise WebhookPayloadError("Webhook body is not valid JSON") from exc

    if not isinstance(envelope, dict):
        raise WebhookPayloadError("Webhook body must be a JSON object")

    event_id = envelope.get("id")
    event_type = envelope.get("type")
    if not isinstance(event_id, str) or not isinstance(event_type, str):
        raise WebhookPayloadError("Webhook event is missing 'id' or 'type'")

    data = envelope.get("data")
    obj = data.get("object") if isinstance(data, dict) else None
    if not isinstance(obj, dict):
        raise WebhookPayloadError("Webhook event is missing 'data.object'")

    order_id = _metadata_order_id(obj)
    currency = str(obj.get("currency") or "usd").lower()

    if event_type == CHECKOUT_COMPLETED:
        if not obj.get("id"):
            raise WebhookPayloadError("Checkout session object has no id")
        return CheckoutCompleted(
            event_id=event_id,
            order_id=order_id,
            session_id=obj["id"],
            payment_intent_id=_intent_id(obj.get("payment_intent")),
            amount=_amount(obj, "amount_total", currency),
            currency=currency,
            raw=obj,
        )

    if event_type == PAYMENT_FAILED:
        if not obj.get("id"):
            raise WebhookPayloadError("Payment intent object has no id")
        error = _object(obj, "last_payment_error")
        return PaymentFailed(
            event_id=event_id,
            order_id=order_id,
            payment_intent_id=obj["id"],
            reason=error.get("message") or "Payment failed",
            amount=_amount(obj, "amount", currency),
            currency=currency,
            raw=obj,
        )

    if event_type == CHARGE_REFUNDED:
        if not obj.get("id"):
            raise WebhookPayloadError("Charge object has no id")
        return ChargeRefunded(
            event_id=event_id,
            order_id=order_id,
            charge_id=obj["id"],
            payment_intent_id=_intent_id(obj.get("payment_intent")),
            amount_refunded=_amount(obj, "amount_refunded", currency),
            currency=currency,
            raw=obj,
        )

    return UnhandledEvent(event_id=event_id, event_type=event_type, order_id=order_id)

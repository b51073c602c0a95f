"""Stripe payment gateway adapter (stripe-python SDK).

Creates hosted Checkout Sessions and verifies webhook signatures with the
endpoint's signing secret. The SDK module is injected so tests can pass a
stand-in; signature checks always use the real SDK implementation.
"""

import stripe
import structlog

from marketplace.gateway.port import GatewayError, GatewaySession, PaymentGateway
from marketplace.gateway.signature import verify_signature

logger = structlog.get_logger(__name__)


class StripeGateway(PaymentGateway):
    """Production Stripe gateway adapter."""

    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        timeout_seconds: float = 10.0,
        tolerance_seconds: int = 300,
        stripe_client=stripe,
    ) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.tolerance_seconds = tolerance_seconds
        self._stripe = stripe_client
        # Outbound calls never hang past the timeout; retries stay with the caller
        self._stripe.default_http_client = stripe.RequestsClient(timeout=timeout_seconds)
        self._stripe.max_network_retries = 0

    def create_session(
        self,
        amount_minor_units: int,
        currency: str,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
        description: str | None = None,
    ) -> GatewaySession:
        try:
            session = self._stripe.checkout.Session.create(
                api_key=self.api_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": currency,
                            "unit_amount": amount_minor_units,
                            "product_data": {"name": description or "Marketplace order"},
                        },
                        "quantity": 1,
                    }
                ],
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
                payment_intent_data={"metadata": metadata},
            )
        except stripe.StripeError as exc:
            logger.error(
                "Stripe checkout session creation failed",
                error=str(exc),
                error_type=type(exc).__name__,
                order_id=metadata.get("order_id"),
            )
            raise GatewayError(str(exc)) from exc

        return GatewaySession(session_id=session.id, url=session.url)

    def verify_webhook(self, payload: bytes, signature: str) -> None:
        verify_signature(payload, signature, self.webhook_secret, self.tolerance_seconds)

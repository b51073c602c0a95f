"""Configurable fake payment gateway for development and testing.

Creates checkout sessions without any external call. Webhook payloads are
signed and verified in Stripe's format with the fake's own secret; tests
use ``sign()`` to produce headers for the payloads they post.
"""

from uuid import uuid4

from marketplace.gateway.port import GatewayError, GatewaySession, PaymentGateway
from marketplace.gateway.signature import signature_header, verify_signature


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, webhook_secret: str = "whsec_test_secret", tolerance_seconds: int = 300) -> None:
        self.webhook_secret = webhook_secret
        self.tolerance_seconds = tolerance_seconds
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_session(
        self,
        amount_minor_units: int,
        currency: str,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
        description: str | None = None,
    ) -> GatewaySession:
        self.calls.append(
            {
                "method": "create_session",
                "amount_minor_units": amount_minor_units,
                "currency": currency,
                "success_url": success_url,
                "cancel_url": cancel_url,
                "metadata": dict(metadata),
                "description": description,
            }
        )

        if not self.should_succeed:
            raise GatewayError(self.failure_reason)

        session_id = f"cs_test_{uuid4().hex[:24]}"
        return GatewaySession(session_id=session_id, url=f"https://checkout.fake-gateway.test/pay/{session_id}")

    def sign(self, payload: bytes, timestamp: int | None = None) -> str:
        """Build a signature header for ``payload`` with this gateway's secret."""
        return signature_header(payload, self.webhook_secret, timestamp)

    def verify_webhook(self, payload: bytes, signature: str) -> None:
        verify_signature(payload, signature, self.webhook_secret, self.tolerance_seconds)

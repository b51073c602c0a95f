"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement, so
the checkout and webhook code can run against FakeGateway in development and
tests and StripeGateway in production without changes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class GatewaySession:
    """A hosted checkout session created at the gateway."""

    session_id: str
    url: str


class GatewayError(Exception):
    """The gateway was unreachable or rejected the request."""


class PaymentGateway(ABC):
    @abstractmethod
    def create_session(
        self,
        amount_minor_units: int,
        currency: str,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
        description: str | None = None,
    ) -> GatewaySession:
        """Create a hosted checkout session for a single payment.

        ``metadata`` must be echoed back by the gateway on every webhook event
        for this payment; it is how events are mapped back to orders.
        Raises ``GatewayError`` on failure.
        """
        ...

    @abstractmethod
    def verify_webhook(self, payload: bytes, signature: str) -> None:
        """Check the signature header against the raw request body.

        Raises ``WebhookSignatureError`` when the payload is not authentic.
        """
        ...

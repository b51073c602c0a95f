"""Error taxonomy for the fulfillment core.

Missing records surface as Protean's ``ObjectNotFoundError`` and business
rule violations as Protean's ``ValidationError``; the classes below cover the
remaining kinds. ``api/errors.py`` maps each of them to an HTTP status.
"""

from protean.exceptions import ValidationError


class MarketplaceError(Exception):
    """Base class for errors that are not business-rule validation failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Forbidden(MarketplaceError):
    """The caller does not own (or may not act on) the target resource."""


class StockConflict(MarketplaceError):
    """A concurrent writer changed the product's stock between read and write."""

    def __init__(self, product_id: str, attempts: int) -> None:
        super().__init__(f"Stock for product {product_id} changed concurrently, please retry")
        self.product_id = product_id
        self.attempts = attempts


class InsufficientStock(ValidationError):
    """Requested quantity exceeds the product's available stock."""

    def __init__(self, product_name: str, requested: int, available: int) -> None:
        super().__init__(
            {"stock": [f"Insufficient stock for product {product_name}: requested {requested}, available {available}"]}
        )
        self.product_name = product_name
        self.requested = requested
        self.available = available


class PaymentSessionError(MarketplaceError):
    """The payment gateway could not create a checkout session."""

    def __init__(self, message: str = "Payment session could not be created. Please try again later.") -> None:
        super().__init__(message)


class WebhookSignatureError(MarketplaceError):
    """The webhook signature does not match the payload."""

    def __init__(self, message: str = "Invalid webhook signature") -> None:
        super().__init__(message)


class WebhookPayloadError(MarketplaceError):
    """The webhook body could not be decoded into a gateway event."""

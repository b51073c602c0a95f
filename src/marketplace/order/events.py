"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from marketplace.domain import marketplace


@marketplace.event(part_of="Order")
class OrderPlaced:
    """An order was created with its stock reserved, awaiting payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of item snapshots
    item_count = Integer(required=True)
    total_amount = Float(required=True)
    discount_amount = Float(default=0.0)
    shipping_fee = Float(default=0.0)
    final_amount = Float(required=True)
    currency = String(max_length=3, required=True)
    coupon_code = String(max_length=50)
    placed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class CheckoutSessionRecorded:
    __version__ = 1

    order_id = Identifier(required=True)
    checkout_session_id = String(required=True, max_length=255)


@marketplace.event(part_of="Order")
class OrderPaid:
    """The gateway confirmed payment and the order moved into processing."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    amount = Float(required=True)
    gateway_transaction_id = String(max_length=255)
    paid_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class LatePaymentCaptured:
    """Payment was confirmed for an order that had already left PENDING_PAYMENT."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    order_status = String(required=True, max_length=50)
    amount = Float(required=True)
    gateway_transaction_id = String(max_length=255)


@marketplace.event(part_of="Order")
class OrderPaymentFailed:
    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    reason = String(max_length=500)
    failed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    previous_status = String(required=True, max_length=50)
    status = String(required=True, max_length=50)
    payment_status = String(required=True, max_length=50)
    cancelled_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True, max_length=50)
    new_status = String(required=True, max_length=50)
    changed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class TrackingNumberAdded:
    __version__ = 1

    order_id = Identifier(required=True)
    tracking_number = String(required=True, max_length=100)
    status = String(required=True, max_length=50)


@marketplace.event(part_of="Order")
class OrderStockRestored:
    """Reserved stock for every line of a cancelled order was returned."""

    __version__ = 1

    order_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {product_id, quantity}

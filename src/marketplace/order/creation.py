"""Order placement — commands and handler.

Placing an order is one unit of work: validate every line, reserve stock
line by line in request order, price the lines from the reserved products,
apply the coupon, and persist the order together with the coupon's usage
bump. If anything fails after a reservation was made, the reservations made
so far are released before the error propagates, and the unit of work rolls
back everything else.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.cart.cart import Cart
from marketplace.catalogue.product import Product
from marketplace.config import get_settings
from marketplace.coupon.coupon import Coupon
from marketplace.coupon.evaluator import evaluate
from marketplace.domain import marketplace
from marketplace.order.order import Order, PaymentMethod
from marketplace.stock.ledger import StockLedger
from marketplace.utils.money import round_money, to_decimal

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class PlaceOrder:
    """Place an order for an explicit list of products."""

    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {product_id, quantity}
    shipping_address = Text(required=True)  # JSON: address dict
    billing_address = Text()  # JSON: address dict, defaults to shipping
    payment_method = String(max_length=50, default=PaymentMethod.CARD.value)
    coupon_code = String(max_length=50)


@marketplace.command(part_of="Order")
class CheckoutCart:
    """Place an order for everything in the customer's cart."""

    customer_id = Identifier(required=True)
    shipping_address = Text(required=True)
    billing_address = Text()
    payment_method = String(max_length=50, default=PaymentMethod.CARD.value)
    coupon_code = String(max_length=50)


def _loads(value):
    return json.loads(value) if isinstance(value, str) else value


def _merge_lines(lines) -> list[tuple[str, int]]:
    """Collapse repeated products into one line, keeping first-seen order."""
    if not lines:
        raise ValidationError({"items": ["An order needs at least one item"]})

    merged: dict[str, int] = {}
    for line in lines:
        product_id = str(line["product_id"])
        quantity = int(line["quantity"])
        if quantity < 1:
            raise ValidationError({"quantity": [f"Quantity for product {product_id} must be at least 1"]})
        merged[product_id] = merged.get(product_id, 0) + quantity
    return list(merged.items())


def _release(ledger: StockLedger, reserved: list[tuple[str, int]]) -> None:
    for product_id, quantity in reversed(reserved):
        try:
            ledger.restore(product_id, quantity)
        except Exception:
            logger.exception("Failed to release reservation", product_id=product_id, quantity=quantity)


def place_order(customer_id, lines, shipping_address, billing_address=None, payment_method=None, coupon_code=None):
    """Reserve stock, price and persist an order. Must run inside a unit of work."""
    settings = get_settings()
    products = current_domain.repository_for(Product)
    coupons = current_domain.repository_for(Coupon)
    ledger = StockLedger()

    merged = _merge_lines(lines)

    # Validate everything before the first write
    for product_id, quantity in merged:
        product = products.get(product_id)
        product.ensure_purchasable()
        product.ensure_in_stock(quantity)

    coupon = None
    if coupon_code:
        coupon = coupons.find_by_code(coupon_code)
        if coupon is None:
            raise ValidationError({"coupon_code": [f"Coupon {coupon_code} does not exist"]})

    reserved: list[tuple[str, int]] = []
    try:
        items_data = []
        for product_id, quantity in merged:
            product = ledger.reserve(product_id, quantity)
            reserved.append((product_id, quantity))
            items_data.append(
                {
                    "product_id": str(product.id),
                    "product_name": product.name,
                    "seller_id": str(product.seller_id) if product.seller_id else None,
                    "quantity": quantity,
                    "price_at_purchase": product.price,
                }
            )

        total = round_money(sum(to_decimal(round_money(d["price_at_purchase"])) * d["quantity"] for d in items_data))

        discount = 0.0
        if coupon is not None:
            evaluation = evaluate(coupon, total)
            if not evaluation.valid:
                raise ValidationError({"coupon_code": [evaluation.reason]})
            discount = evaluation.discount

        order = Order.place(
            customer_id=customer_id,
            items_data=items_data,
            shipping_address=shipping_address,
            billing_address=billing_address,
            payment_method=payment_method or PaymentMethod.CARD.value,
            shipping_fee=settings.shipping_fee,
            currency=settings.currency,
            discount_amount=discount,
            coupon_id=str(coupon.id) if coupon is not None else None,
            coupon_code=coupon.code if coupon is not None else None,
        )

        if coupon is not None:
            coupon.increment_usage()
            coupons.add(coupon)

        current_domain.repository_for(Order).add(order)
    except Exception:
        if reserved:
            logger.warning("Order placement failed, releasing reservations", customer_id=str(customer_id))
            _release(ledger, reserved)
        raise

    logger.info(
        "Order placed",
        order_id=str(order.id),
        customer_id=str(customer_id),
        lines=len(items_data),
        total_amount=order.total_amount,
        discount_amount=order.discount_amount,
        final_amount=order.final_amount,
        coupon_code=order.coupon_code,
    )
    return order


@marketplace.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place(self, command):
        order = place_order(
            customer_id=command.customer_id,
            lines=_loads(command.items),
            shipping_address=_loads(command.shipping_address),
            billing_address=_loads(command.billing_address) if command.billing_address else None,
            payment_method=command.payment_method,
            coupon_code=command.coupon_code,
        )
        return str(order.id)

    @handle(CheckoutCart)
    def checkout_cart(self, command):
        cart = current_domain.repository_for(Cart).find_for_customer(command.customer_id)
        if cart is None or not cart.items:
            raise ValidationError({"cart": ["Cart is empty"]})

        order = place_order(
            customer_id=command.customer_id,
            lines=[{"product_id": item.product_id, "quantity": item.quantity} for item in cart.items],
            shipping_address=_loads(command.shipping_address),
            billing_address=_loads(command.billing_address) if command.billing_address else None,
            payment_method=command.payment_method,
            coupon_code=command.coupon_code,
        )
        return str(order.id)

"""Read-side view of a customer's cart, priced at live catalogue prices."""

from dataclasses import dataclass, field

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.cart.cart import Cart
from marketplace.catalogue.product import Product
from marketplace.utils.money import round_money

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CartLine:
    product_id: str
    product_name: str
    quantity: int
    unit_price: float
    line_total: float
    available: bool


@dataclass(frozen=True)
class CartSummary:
    cart_id: str
    customer_id: str
    lines: list[CartLine] = field(default_factory=list)
    subtotal: float = 0.0

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)


def cart_summary(customer_id) -> CartSummary:
    """Build the cart view, creating the cart on first access like every other cart operation."""
    cart = current_domain.repository_for(Cart).for_customer(customer_id)
    products = current_domain.repository_for(Product)

    lines = []
    for item in cart.items:
        try:
            product = products.get(item.product_id)
        except ObjectNotFoundError:
            logger.info("Cart references a deleted product", cart_id=str(cart.id), product_id=str(item.product_id))
            lines.append(CartLine(str(item.product_id), "", item.quantity, 0.0, 0.0, False))
            continue

        lines.append(
            CartLine(
                product_id=str(product.id),
                product_name=product.name,
                quantity=item.quantity,
                unit_price=product.price,
                line_total=round_money(product.price * item.quantity),
                available=product.is_purchasable and product.stock >= item.quantity,
            )
        )

    return CartSummary(
        cart_id=str(cart.id),
        customer_id=str(cart.customer_id),
        lines=lines,
        subtotal=round_money(sum(line.line_total for line in lines)),
    )

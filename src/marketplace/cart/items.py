"""Cart item management — commands and handler.

Every mutation that raises a line's quantity re-checks the total for that
product against live stock and rejects products that are inactive or not yet
approved. Removing and clearing never look at the catalogue.
"""

from protean import handle
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from marketplace.cart.cart import Cart
from marketplace.catalogue.product import Product
from marketplace.domain import marketplace
from marketplace.errors import InsufficientStock
from marketplace.stock.ledger import StockLedger


@marketplace.command(part_of="Cart")
class AddToCart:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@marketplace.command(part_of="Cart")
class UpdateCartItemQuantity:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@marketplace.command(part_of="Cart")
class RemoveFromCart:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)


@marketplace.command(part_of="Cart")
class ClearCart:
    customer_id = Identifier(required=True)


def _ensure_can_hold(product_id, quantity):
    """Check that ``quantity`` units of the product could be bought right now."""
    product = current_domain.repository_for(Product).get(product_id)
    product.ensure_purchasable()

    available = StockLedger().available(product_id)
    if quantity > available:
        raise InsufficientStock(product.name, quantity, available)


@marketplace.command_handler(part_of=Cart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.for_customer(command.customer_id)

        _ensure_can_hold(command.product_id, cart.quantity_of(command.product_id) + command.quantity)

        cart.add_item(product_id=command.product_id, quantity=command.quantity)
        repo.add(cart)
        return str(cart.id)

    @handle(UpdateCartItemQuantity)
    def update_cart_item_quantity(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.for_customer(command.customer_id)

        cart.update_item_quantity(product_id=command.product_id, new_quantity=command.quantity)
        _ensure_can_hold(command.product_id, command.quantity)
        repo.add(cart)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.for_customer(command.customer_id)
        cart.remove_item(product_id=command.product_id)
        repo.add(cart)

    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.for_customer(command.customer_id)
        removed = cart.clear()
        repo.add(cart)
        return removed

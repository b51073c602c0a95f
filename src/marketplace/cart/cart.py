"""Cart aggregate — one per customer, created on first access and never deleted.

The cart only records intent. It validates quantities against live stock when
items change but never reserves anything; stock is committed when an order
is placed.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer

from marketplace.cart.events import CartCleared, CartItemAdded, CartItemQuantityUpdated, CartItemRemoved
from marketplace.domain import marketplace


@marketplace.entity(part_of="Cart")
class CartItem:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    added_at = DateTime()


@marketplace.aggregate
class Cart:
    customer_id = Identifier(required=True, unique=True)
    items = HasMany(CartItem)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def one_line_per_product(self):
        product_ids = [str(item.product_id) for item in self.items]
        if len(product_ids) != len(set(product_ids)):
            raise ValidationError({"items": ["A product can appear only once in a cart"]})

    @classmethod
    def create(cls, customer_id):
        now = datetime.now(UTC)
        return cls(customer_id=customer_id, created_at=now, updated_at=now)

    def item_for(self, product_id) -> CartItem | None:
        return next((i for i in self.items if str(i.product_id) == str(product_id)), None)

    def quantity_of(self, product_id) -> int:
        item = self.item_for(product_id)
        return item.quantity if item else 0

    def add_item(self, product_id, quantity):
        """Add a product, summing with the existing line if there is one."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        now = datetime.now(UTC)
        existing = self.item_for(product_id)
        if existing:
            existing.quantity += quantity
        else:
            self.add_items(CartItem(product_id=product_id, quantity=quantity, added_at=now))
        self.updated_at = now

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                customer_id=str(self.customer_id),
                product_id=str(product_id),
                quantity=quantity,
            )
        )

    def update_item_quantity(self, product_id, new_quantity):
        if new_quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        item = self.item_for(product_id)
        if item is None:
            raise ObjectNotFoundError(f"Product {product_id} is not in the cart")

        previous_quantity = item.quantity
        item.quantity = new_quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartItemQuantityUpdated(
                cart_id=str(self.id),
                customer_id=str(self.customer_id),
                product_id=str(product_id),
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
            )
        )

    def remove_item(self, product_id):
        item = self.item_for(product_id)
        if item is None:
            raise ObjectNotFoundError(f"Product {product_id} is not in the cart")

        self.remove_items(item)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartItemRemoved(
                cart_id=str(self.id),
                customer_id=str(self.customer_id),
                product_id=str(product_id),
            )
        )

    def clear(self) -> int:
        """Empty the cart. Clearing an empty cart changes nothing."""
        removed = len(self.items)
        if not removed:
            return 0

        for item in list(self.items):
            self.remove_items(item)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartCleared(
                cart_id=str(self.id),
                customer_id=str(self.customer_id),
                items_removed=removed,
            )
        )
        return removed


@marketplace.repository(part_of=Cart)
class CartRepository:
    def find_for_customer(self, customer_id) -> Cart | None:
        return self._dao.query.filter(customer_id=str(customer_id)).all().first

    def for_customer(self, customer_id) -> Cart:
        """Return the customer's cart, creating (and persisting) it on first access."""
        cart = self.find_for_customer(customer_id)
        if cart is None:
            cart = Cart.create(customer_id=customer_id)
            self.add(cart)
        return cart

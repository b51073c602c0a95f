"""Product record as seen by the fulfillment core.

Products are created and edited by the catalogue service; this context only
reads their sale attributes and mutates ``stock``. Every stock write goes
through ``ProductRepository.compare_and_swap_stock``.

The ``version`` field is a stock token owned by this context. It catches a
writer that committed between the ledger's read and its write. Writers whose
transactions are still open at the same time are caught on commit by
Protean's aggregate ``_version`` check, which raises ``ExpectedVersionError``;
the API reports that as a 409 like ``StockConflict``.
"""

from protean.exceptions import ValidationError
from protean.fields import Boolean, Float, Identifier, Integer, String

from marketplace.domain import marketplace
from marketplace.errors import InsufficientStock


@marketplace.aggregate
class Product:
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    stock = Integer(default=0, min_value=0)
    version = Integer(default=0)
    seller_id = Identifier()
    is_active = Boolean(default=True)
    is_approved = Boolean(default=True)

    @property
    def is_purchasable(self) -> bool:
        return bool(self.is_active and self.is_approved)

    def ensure_purchasable(self) -> None:
        """Reject products that are switched off or still awaiting approval."""
        if not self.is_active:
            raise ValidationError({"product_id": [f"Product {self.name} is not available for sale"]})
        if not self.is_approved:
            raise ValidationError({"product_id": [f"Product {self.name} is not approved for sale"]})

    def ensure_in_stock(self, quantity: int) -> None:
        if quantity > self.stock:
            raise InsufficientStock(self.name, quantity, self.stock)


@marketplace.repository(part_of=Product)
class ProductRepository:
    def compare_and_swap_stock(self, product_id: str, expected_version: int, new_stock: int) -> bool:
        """Write ``new_stock`` only if the product is still at ``expected_version``.

        Returns False when another writer committed first; the caller owns the
        retry decision. The version moves forward on every successful write.
        The read and the write share the caller's Unit of Work, so a writer that
        commits in between is only detected by Protean when this one commits.
        """
        if new_stock < 0:
            raise ValidationError({"stock": ["Stock cannot become negative"]})

        current = self.get(product_id)
        if current.version != expected_version:
            return False

        current.stock = new_stock
        current.version = expected_version + 1
        self.add(current)
        return True

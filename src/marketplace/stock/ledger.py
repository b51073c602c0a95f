"""Stock Ledger — the single read-modify-write path for Product.stock.

Orders reserve stock at creation time and cancellations restore it. Both go
through this ledger, which reads the product, computes the new level and
writes it with a compare-and-swap on the product's version. A stale version
is retried a bounded number of times and then surfaces as ``StockConflict``.
"""

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from marketplace.catalogue.product import Product
from marketplace.config import get_settings
from marketplace.errors import InsufficientStock, StockConflict

logger = structlog.get_logger(__name__)


def _check_quantity(quantity: int) -> None:
    if quantity is None or quantity < 1:
        raise ValidationError({"quantity": ["Quantity must be at least 1"]})


class StockLedger:
    def __init__(self, max_attempts: int | None = None) -> None:
        self.max_attempts = max_attempts or get_settings().stock_conflict_max_attempts

    @property
    def _products(self):
        return current_domain.repository_for(Product)

    def available(self, product_id: str) -> int:
        """Current stock level, read fresh from the store."""
        return self._products.get(product_id).stock

    def reserve(self, product_id: str, quantity: int) -> Product:
        """Take ``quantity`` units out of stock and return the product as read.

        Raises ``InsufficientStock`` when the product cannot cover the request
        and ``StockConflict`` when every attempt lost a race to another writer.
        """
        _check_quantity(quantity)

        for attempt in range(1, self.max_attempts + 1):
            product = self._products.get(product_id)
            if product.stock < quantity:
                raise InsufficientStock(product.name, quantity, product.stock)

            remaining = product.stock - quantity
            if self._products.compare_and_swap_stock(product.id, product.version, remaining):
                logger.debug(
                    "Stock reserved",
                    product_id=str(product_id),
                    quantity=quantity,
                    remaining=remaining,
                )
                return product

            logger.warning(
                "Stock write conflict on reserve",
                product_id=str(product_id),
                attempt=attempt,
                max_attempts=self.max_attempts,
            )

        raise StockConflict(str(product_id), self.max_attempts)

    def restore(self, product_id: str, quantity: int) -> Product | None:
        """Put ``quantity`` units back. Missing products are skipped with a warning."""
        _check_quantity(quantity)

        for attempt in range(1, self.max_attempts + 1):
            try:
                product = self._products.get(product_id)
            except ObjectNotFoundError:
                logger.warning(
                    "Skipping stock restore for missing product",
                    product_id=str(product_id),
                    quantity=quantity,
                )
                return None

            level = product.stock + quantity
            if self._products.compare_and_swap_stock(product.id, product.version, level):
                logger.debug(
                    "Stock restored",
                    product_id=str(product_id),
                    quantity=quantity,
                    level=level,
                )
                return product

            logger.warning(
                "Stock write conflict on restore",
                product_id=str(product_id),
                attempt=attempt,
                max_attempts=self.max_attempts,
            )

        raise StockConflict(str(product_id), self.max_attempts)

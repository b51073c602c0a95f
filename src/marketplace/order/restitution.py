"""Stock restitution for cancelled orders."""

import structlog

from marketplace.order.order import Order
from marketplace.stock.ledger import StockLedger

logger = structlog.get_logger(__name__)


def restore_stock_for(order: Order, ledger: StockLedger | None = None) -> int:
    """Return every line's quantity to stock, at most once per order.

    The ``stock_restored`` flag is set on the order in the same unit of work
    as the stock writes, so whichever cancellation path runs first wins and
    later calls do nothing. Returns the number of lines restored.
    """
    if order.stock_restored:
        logger.info("Stock already restored for order", order_id=str(order.id))
        return 0

    ledger = ledger or StockLedger()
    restored = 0
    for item in order.items:
        if not item.product_id:
            logger.warning("Order line has no product reference", order_id=str(order.id), item_id=str(item.id))
            continue
        if ledger.restore(item.product_id, item.quantity) is not None:
            restored += 1

    order.mark_stock_restored()
    logger.info("Stock restored for order", order_id=str(order.id), lines=restored)
    return restored

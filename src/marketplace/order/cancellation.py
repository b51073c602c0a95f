"""Customer cancellation — command and handler."""

import structlog
from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.notification import notify_quietly
from marketplace.order.access import ensure_owner
from marketplace.order.order import Order, OrderStatus
from marketplace.order.restitution import restore_stock_for

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    requester_id = Identifier(required=True)


@marketplace.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        ensure_owner(order, command.requester_id)

        if order.cancel(OrderStatus.CANCELLED_BY_CUSTOMER):
            restore_stock_for(order)
        repo.add(order)

        logger.info(
            "Order cancelled by customer",
            order_id=str(order.id),
            customer_id=str(order.customer_id),
            payment_status=order.payment_status,
        )
        notify_quietly(
            order.customer_id,
            f"Your order #{order.id} has been cancelled.",
            link=f"/orders/{order.id}",
        )
        return order.status

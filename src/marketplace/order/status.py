"""Staff-driven order updates — status changes and tracking numbers.

Admins may move an order along any valid transition; sellers may only mark
orders that contain their products as PROCESSING or SHIPPED. Moving into a
cancelled status restores stock exactly like a customer cancellation.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.notification import notify_quietly
from marketplace.order.access import ActorRole, ensure_staff_can_manage, ensure_status_allowed_for
from marketplace.order.order import CANCELLED_STATUSES, Order, OrderStatus
from marketplace.order.restitution import restore_stock_for

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    new_status = String(required=True, max_length=50, choices=OrderStatus)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20, choices=ActorRole)


@marketplace.command(part_of="Order")
class AddTrackingNumber:
    order_id = Identifier(required=True)
    tracking_number = String(required=True, max_length=100)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20, choices=ActorRole)


def _status_message(order: Order) -> str | None:
    status = OrderStatus(order.status)
    if status == OrderStatus.SHIPPED:
        if order.tracking_number:
            return f"Your order #{order.id} has shipped! Tracking number: {order.tracking_number}"
        return f"Your order #{order.id} has shipped!"
    if status == OrderStatus.DELIVERED:
        return f"Your order #{order.id} has been delivered."
    if status in CANCELLED_STATUSES:
        return f"Your order #{order.id} has been cancelled."
    return None


@marketplace.command_handler(part_of=Order)
class ManageOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        role = ActorRole(command.actor_role)
        new_status = OrderStatus(command.new_status)

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        ensure_staff_can_manage(order, command.actor_id, role)
        ensure_status_allowed_for(role, new_status)

        previous = order.status
        if not order.update_status(new_status):
            logger.warning("Order already in requested status", order_id=str(order.id), status=previous)
            return order.status

        if new_status in CANCELLED_STATUSES:
            restore_stock_for(order)
        if new_status == OrderStatus.SHIPPED and not order.tracking_number:
            logger.warning("Order marked as shipped without a tracking number", order_id=str(order.id))
        repo.add(order)

        logger.info(
            "Order status updated",
            order_id=str(order.id),
            previous_status=previous,
            new_status=order.status,
            actor_id=str(command.actor_id),
            actor_role=role.value,
        )

        message = _status_message(order)
        if message:
            notify_quietly(order.customer_id, message, link=f"/orders/{order.id}")
        return order.status

    @handle(AddTrackingNumber)
    def add_tracking_number(self, command):
        role = ActorRole(command.actor_role)

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        ensure_staff_can_manage(order, command.actor_id, role)

        advanced = order.add_tracking_number(command.tracking_number)
        repo.add(order)

        logger.info(
            "Tracking number added",
            order_id=str(order.id),
            tracking_number=order.tracking_number,
            advanced_to_shipped=advanced,
        )
        if advanced:
            notify_quietly(order.customer_id, _status_message(order), link=f"/orders/{order.id}")
        return order.status

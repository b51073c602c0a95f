"""Who may act on an order.

The caller's identity and role are resolved once at the HTTP boundary and
passed in explicitly; nothing here looks up a "current user".
"""

from enum import Enum

from marketplace.errors import Forbidden
from marketplace.order.order import Order, OrderStatus


class ActorRole(Enum):
    CUSTOMER = "CUSTOMER"
    SELLER = "SELLER"
    ADMIN = "ADMIN"


# Statuses a seller may set on orders containing their products
SELLER_SETTABLE_STATUSES = frozenset({OrderStatus.PROCESSING, OrderStatus.SHIPPED})


def ensure_owner(order: Order, customer_id) -> None:
    if not order.is_owned_by(customer_id):
        raise Forbidden(f"Order {order.id} does not belong to the requesting customer")


def ensure_staff_can_manage(order: Order, actor_id, role: ActorRole) -> None:
    """Admins may manage any order; sellers only orders that contain their products."""
    if role == ActorRole.ADMIN:
        return
    if role == ActorRole.SELLER and str(actor_id) in order.seller_ids:
        return
    raise Forbidden(f"Not permitted to manage order {order.id}")


def ensure_status_allowed_for(role: ActorRole, new_status: OrderStatus) -> None:
    if role == ActorRole.ADMIN:
        return
    if new_status not in SELLER_SETTABLE_STATUSES:
        raise Forbidden(f"Sellers cannot set order status to {new_status.value}")

"""Paged order listings for buyers and staff, newest first."""

from dataclasses import dataclass, field

from protean.utils.globals import current_domain

from marketplace.errors import Forbidden
from marketplace.order.access import ActorRole
from marketplace.order.order import Order, OrderStatus

CUSTOMER_PAGE_SIZE = 10
STAFF_PAGE_SIZE = 20


@dataclass(frozen=True)
class OrderPage:
    orders: list[Order] = field(default_factory=list)
    total: int = 0
    offset: int = 0
    limit: int = CUSTOMER_PAGE_SIZE


def _page(offset, limit, **criteria) -> OrderPage:
    result = current_domain.repository_for(Order).search(offset=offset, limit=limit, **criteria)
    return OrderPage(orders=list(result.items), total=result.total, offset=offset, limit=limit)


def list_customer_orders(
    customer_id,
    status: OrderStatus | None = None,
    offset: int = 0,
    limit: int = CUSTOMER_PAGE_SIZE,
) -> OrderPage:
    return _page(offset, limit, customer_id=customer_id, status=status)


def list_managed_orders(
    actor_id,
    role: ActorRole,
    status: OrderStatus | None = None,
    customer_id=None,
    offset: int = 0,
    limit: int = STAFF_PAGE_SIZE,
) -> OrderPage:
    """Orders a staff member manages: every order for admins, orders with their products for sellers."""
    if role == ActorRole.ADMIN:
        return _page(offset, limit, customer_id=customer_id, status=status)
    if role == ActorRole.SELLER:
        return _page(offset, limit, customer_id=customer_id, seller_id=actor_id, status=status)
    raise Forbidden("Only staff may list orders they manage")

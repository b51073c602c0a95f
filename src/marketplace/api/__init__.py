"""Marketplace API package."""

from marketplace.api.errors import register_error_handlers
from marketplace.api.routes import cart_router, coupon_router, order_router, payment_router

__all__ = ["cart_router", "order_router", "payment_router", "coupon_router", "register_error_handlers"]

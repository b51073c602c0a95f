"""Marketplace bounded context — order fulfillment core.

Carts, orders with stock reservation and coupon discounting, payment
sessions and the webhook-driven reconciliation of gateway payments with
order state. Product and Coupon records are owned elsewhere but their
stock and usage counters are mutated here.
"""

import structlog
from protean.domain import Domain

marketplace = Domain(name="marketplace")

logger = structlog.get_logger(__name__)

"""Order aggregate — the order and payment state machines.

An order is created once per checkout with its item snapshots, amounts and
address snapshots fixed. After that only the status fields move, along the
transition tables below. Stock restitution on cancellation is tracked with
``stock_restored`` so it happens at most once, whichever path cancels.

Order status:
    PENDING_PAYMENT → PROCESSING → SHIPPED → DELIVERED
    PENDING_PAYMENT | PROCESSING → CANCELLED_BY_CUSTOMER | CANCELLED_BY_SELLER | CANCELLED_BY_ADMIN
    DELIVERED → RETURN_REQUESTED → RETURN_APPROVED | RETURN_REJECTED

Payment status:
    PENDING → COMPLETED | FAILED
    FAILED → COMPLETED (a retried checkout succeeded)
    COMPLETED → REFUNDED | PARTIALLY_REFUNDED → REFUNDED
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from marketplace.domain import marketplace
from marketplace.order.events import (
    CheckoutSessionRecorded,
    LatePaymentCaptured,
    OrderCancelled,
    OrderPaid,
    OrderPaymentFailed,
    OrderPlaced,
    OrderStatusChanged,
    OrderStockRestored,
    TrackingNumberAdded,
)
from marketplace.utils.money import round_money, to_decimal


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED_BY_CUSTOMER = "CANCELLED_BY_CUSTOMER"
    CANCELLED_BY_SELLER = "CANCELLED_BY_SELLER"
    CANCELLED_BY_ADMIN = "CANCELLED_BY_ADMIN"
    RETURN_REQUESTED = "RETURN_REQUESTED"
    RETURN_APPROVED = "RETURN_APPROVED"
    RETURN_REJECTED = "RETURN_REJECTED"


class PaymentStatus(Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"


class PaymentMethod(Enum):
    CARD = "CARD"


CANCELLED_STATUSES = frozenset(
    {
        OrderStatus.CANCELLED_BY_CUSTOMER,
        OrderStatus.CANCELLED_BY_SELLER,
        OrderStatus.CANCELLED_BY_ADMIN,
    }
)

CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING_PAYMENT, OrderStatus.PROCESSING})

TRACKABLE_STATUSES = frozenset({OrderStatus.PROCESSING, OrderStatus.SHIPPED})

_VALID_TRANSITIONS = {
    OrderStatus.PENDING_PAYMENT: {OrderStatus.PROCESSING, *CANCELLED_STATUSES},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, *CANCELLED_STATUSES},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.RETURN_REQUESTED},
    OrderStatus.RETURN_REQUESTED: {OrderStatus.RETURN_APPROVED, OrderStatus.RETURN_REJECTED},
    OrderStatus.RETURN_APPROVED: set(),  # Terminal
    OrderStatus.RETURN_REJECTED: set(),  # Terminal
    OrderStatus.CANCELLED_BY_CUSTOMER: set(),  # Terminal
    OrderStatus.CANCELLED_BY_SELLER: set(),  # Terminal
    OrderStatus.CANCELLED_BY_ADMIN: set(),  # Terminal
}

_VALID_PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.FAILED: {PaymentStatus.COMPLETED},
    PaymentStatus.COMPLETED: {PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED},
    PaymentStatus.PARTIALLY_REFUNDED: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),  # Terminal
}

# Payment states holding captured money that a cancellation hands back
_REFUNDABLE_PAYMENT_STATUSES = frozenset({PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED})


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@marketplace.value_object(part_of="Order")
class Address:
    """Shipping or billing address captured when the order is placed.

    The snapshot is never edited afterwards, whatever happens to the
    customer's saved addresses.
    """

    address_title = String(max_length=100)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    zip_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)
    phone_number = String(max_length=30)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="Order")
class OrderItem:
    """A purchased line with the product's price frozen at order time.

    ``product_id`` may point at a product that has since been deleted; the
    name, seller and price snapshots keep the line meaningful.
    """

    product_id = Identifier()
    product_name = String(required=True, max_length=255)
    seller_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    price_at_purchase = Float(required=True, min_value=0.0)
    item_total = Float(required=True, min_value=0.0)


def _seller_refs(items) -> str:
    sellers = sorted({str(item.seller_id) for item in items if item.seller_id})
    return "|" + "".join(f"{seller}|" for seller in sellers)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@marketplace.aggregate
class Order:
    customer_id = Identifier(required=True)
    status = String(
        max_length=50,
        choices=OrderStatus,
        default=OrderStatus.PENDING_PAYMENT.value,
    )
    payment_status = String(
        max_length=50,
        choices=PaymentStatus,
        default=PaymentStatus.PENDING.value,
    )
    payment_method = String(max_length=50, default=PaymentMethod.CARD.value)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    total_amount = Float(default=0.0, min_value=0.0)
    discount_amount = Float(default=0.0, min_value=0.0)
    shipping_fee = Float(default=0.0, min_value=0.0)
    final_amount = Float(default=0.0, min_value=0.0)
    currency = String(max_length=3, default="usd")
    coupon_id = Identifier()
    coupon_code = String(max_length=50)
    tracking_number = String(max_length=100)
    checkout_session_id = String(max_length=255)
    stock_restored = Boolean(default=False)
    # "|seller-a|seller-b|", so orders can be found by seller without a join
    seller_refs = String(max_length=2000, default="|")
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def discount_cannot_exceed_total(self):
        if (self.discount_amount or 0.0) > (self.total_amount or 0.0):
            raise ValidationError({"discount_amount": ["Discount cannot exceed the order total"]})

    @invariant.post
    def final_amount_must_match_components(self):
        expected = max(
            to_decimal(self.total_amount) - to_decimal(self.discount_amount) + to_decimal(self.shipping_fee),
            0,
        )
        if abs(to_decimal(self.final_amount) - expected) > to_decimal("0.01"):
            raise ValidationError({"final_amount": ["Final amount must equal total - discount + shipping"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        customer_id,
        items_data,
        shipping_address,
        billing_address=None,
        payment_method=PaymentMethod.CARD.value,
        shipping_fee=0.0,
        currency="usd",
        discount_amount=0.0,
        coupon_id=None,
        coupon_code=None,
    ):
        """Create an order awaiting payment.

        Args:
            customer_id: The buyer.
            items_data: List of dicts with product_id, product_name, seller_id,
                quantity and price_at_purchase.
            shipping_address: Dict of address fields.
            billing_address: Dict of address fields; defaults to the shipping address.
            discount_amount: Already evaluated coupon discount, at most the item total.
        """
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})

        items = [
            OrderItem(
                product_id=data.get("product_id"),
                product_name=data["product_name"],
                seller_id=data.get("seller_id"),
                quantity=data["quantity"],
                price_at_purchase=round_money(data["price_at_purchase"]),
                item_total=round_money(to_decimal(data["price_at_purchase"]) * data["quantity"]),
            )
            for data in items_data
        ]
        total = round_money(sum(to_decimal(item.item_total) for item in items))
        discount = round_money(discount_amount or 0.0)
        fee = round_money(shipping_fee or 0.0)
        final = round_money(max(to_decimal(total) - to_decimal(discount) + to_decimal(fee), 0))

        now = datetime.now(UTC)
        order = cls(
            customer_id=customer_id,
            status=OrderStatus.PENDING_PAYMENT.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=payment_method,
            items=items,
            shipping_address=Address(**shipping_address),
            billing_address=Address(**(billing_address or shipping_address)),
            total_amount=total,
            discount_amount=discount,
            shipping_fee=fee,
            final_amount=final,
            currency=currency,
            coupon_id=coupon_id,
            coupon_code=coupon_code,
            seller_refs=_seller_refs(items),
            created_at=now,
            updated_at=now,
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                customer_id=str(customer_id),
                items=json.dumps(order.item_snapshots()),
                item_count=len(items),
                total_amount=total,
                discount_amount=discount,
                shipping_fee=fee,
                final_amount=final,
                currency=currency,
                coupon_code=coupon_code,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def is_owned_by(self, customer_id) -> bool:
        return str(self.customer_id) == str(customer_id)

    @property
    def is_cancelled(self) -> bool:
        return OrderStatus(self.status) in CANCELLED_STATUSES

    @property
    def seller_ids(self) -> set[str]:
        return {str(item.seller_id) for item in self.items if item.seller_id}

    @property
    def is_duplicate_payment_confirmation(self) -> bool:
        """A completed payment on an order that has already left PENDING_PAYMENT was applied before."""
        return (
            self.payment_status == PaymentStatus.COMPLETED.value
            and self.status != OrderStatus.PENDING_PAYMENT.value
        )

    def item_snapshots(self) -> list[dict]:
        return [
            {
                "product_id": str(item.product_id) if item.product_id else None,
                "product_name": item.product_name,
                "quantity": item.quantity,
                "price_at_purchase": item.price_at_purchase,
                "item_total": item.item_total,
            }
            for item in self.items
        ]

    # -------------------------------------------------------------------
    # Transition helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def _assert_payment_can_transition(self, target_status: PaymentStatus) -> None:
        current = PaymentStatus(self.payment_status)
        if target_status not in _VALID_PAYMENT_TRANSITIONS.get(current, set()):
            raise ValidationError(
                {"payment_status": [f"Cannot transition payment from {current.value} to {target_status.value}"]}
            )

    def _change_status(self, target_status: OrderStatus, now: datetime) -> None:
        previous = self.status
        self.status = target_status.value
        self.updated_at = now
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=previous,
                new_status=target_status.value,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def record_checkout_session(self, checkout_session_id):
        if OrderStatus(self.status) != OrderStatus.PENDING_PAYMENT:
            raise ValidationError(
                {"status": [f"Checkout sessions can only be recorded for orders in PENDING_PAYMENT, not {self.status}"]}
            )
        self.checkout_session_id = checkout_session_id
        self.updated_at = datetime.now(UTC)
        self.raise_(
            CheckoutSessionRecorded(
                order_id=str(self.id),
                checkout_session_id=checkout_session_id,
            )
        )

    def confirm_payment(self, amount, gateway_transaction_id=None):
        """Apply a successful gateway payment: PENDING_PAYMENT → PROCESSING, payment → COMPLETED."""
        self._assert_can_transition(OrderStatus.PROCESSING)
        self._assert_payment_can_transition(PaymentStatus.COMPLETED)

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.COMPLETED.value
        self._change_status(OrderStatus.PROCESSING, now)

        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                amount=amount,
                gateway_transaction_id=gateway_transaction_id,
                paid_at=now,
            )
        )

    def record_late_payment(self, amount, gateway_transaction_id=None):
        """Record money captured after the order left PENDING_PAYMENT. The order status stays put."""
        self._assert_payment_can_transition(PaymentStatus.COMPLETED)
        self.payment_status = PaymentStatus.COMPLETED.value
        self.updated_at = datetime.now(UTC)
        self.raise_(
            LatePaymentCaptured(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                order_status=self.status,
                amount=amount,
                gateway_transaction_id=gateway_transaction_id,
            )
        )

    def record_payment_failure(self, reason):
        """Mark the payment FAILED. Only orders still awaiting payment are affected."""
        if OrderStatus(self.status) != OrderStatus.PENDING_PAYMENT:
            raise ValidationError(
                {"status": [f"Payment failures only apply to orders in PENDING_PAYMENT, not {self.status}"]}
            )

        now = datetime.now(UTC)
        if self.payment_status != PaymentStatus.FAILED.value:
            self._assert_payment_can_transition(PaymentStatus.FAILED)
            self.payment_status = PaymentStatus.FAILED.value
        self.updated_at = now

        self.raise_(
            OrderPaymentFailed(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                reason=reason,
                failed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(self, cancelled_status: OrderStatus = OrderStatus.CANCELLED_BY_CUSTOMER):
        """Move the order into a cancelled status.

        Captured payments are marked REFUNDED; payments that were never
        captured keep their status. Returns True if stock still has to be
        restored for this order.
        """
        if cancelled_status not in CANCELLED_STATUSES:
            raise ValidationError({"status": [f"{cancelled_status.value} is not a cancellation status"]})

        current = OrderStatus(self.status)
        if current not in CANCELLABLE_STATUSES:
            raise ValidationError(
                {
                    "status": [
                        f"Order cannot be cancelled while in {current.value} status. "
                        f"Cancellation is only allowed from: "
                        f"{', '.join(sorted(s.value for s in CANCELLABLE_STATUSES))}"
                    ]
                }
            )

        now = datetime.now(UTC)
        if PaymentStatus(self.payment_status) in _REFUNDABLE_PAYMENT_STATUSES:
            self.payment_status = PaymentStatus.REFUNDED.value
        self._change_status(cancelled_status, now)

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                previous_status=current.value,
                status=cancelled_status.value,
                payment_status=self.payment_status,
                cancelled_at=now,
            )
        )
        return not self.stock_restored

    def mark_stock_restored(self):
        if self.stock_restored:
            raise ValidationError({"stock_restored": ["Stock for this order has already been restored"]})
        self.stock_restored = True
        self.raise_(
            OrderStockRestored(
                order_id=str(self.id),
                items=json.dumps(
                    [{"product_id": str(i.product_id) if i.product_id else None, "quantity": i.quantity} for i in self.items]
                ),
            )
        )

    # -------------------------------------------------------------------
    # Staff status updates and shipping
    # -------------------------------------------------------------------
    def update_status(self, new_status: OrderStatus) -> bool:
        """Apply a status change requested by staff.

        Returns True when the status actually changed. Cancellation statuses go
        through ``cancel``; reaching DELIVERED completes a still-pending payment.
        """
        if OrderStatus(self.status) == new_status:
            return False

        if new_status in CANCELLED_STATUSES:
            self.cancel(new_status)
            return True

        self._assert_can_transition(new_status)
        now = datetime.now(UTC)
        if new_status == OrderStatus.DELIVERED and self.payment_status == PaymentStatus.PENDING.value:
            self.payment_status = PaymentStatus.COMPLETED.value
        self._change_status(new_status, now)
        return True

    def add_tracking_number(self, tracking_number) -> bool:
        """Attach a tracking number. Returns True if the order was advanced to SHIPPED."""
        current = OrderStatus(self.status)
        if current not in TRACKABLE_STATUSES:
            raise ValidationError(
                {"status": [f"Tracking numbers can only be added to PROCESSING or SHIPPED orders, not {current.value}"]}
            )
        if not tracking_number or not tracking_number.strip():
            raise ValidationError({"tracking_number": ["Tracking number is required"]})

        now = datetime.now(UTC)
        self.tracking_number = tracking_number.strip()
        self.updated_at = now

        advanced = current == OrderStatus.PROCESSING
        if advanced:
            self._change_status(OrderStatus.SHIPPED, now)

        self.raise_(
            TrackingNumberAdded(
                order_id=str(self.id),
                tracking_number=self.tracking_number,
                status=self.status,
            )
        )
        return advanced


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------
@marketplace.repository(part_of=Order)
class OrderRepository:
    def search(
        self,
        customer_id=None,
        seller_id=None,
        status: OrderStatus | None = None,
        offset: int = 0,
        limit: int = 20,
    ):
        """Orders newest first, optionally narrowed by buyer, seller and status.

        Returns Protean's ResultSet, so callers get ``items`` for the page and
        ``total`` for the whole match.
        """
        criteria = {}
        if customer_id:
            criteria["customer_id"] = str(customer_id)
        if seller_id:
            criteria["seller_refs__contains"] = f"|{seller_id}|"
        if status is not None:
            criteria["status"] = status.value

        query = self._dao.query
        if criteria:
            query = query.filter(**criteria)
        return query.order_by("-created_at").offset(offset).limit(limit).all()

"""FastAPI routes for the marketplace — cart, orders, payments and coupons.

The caller is identified by the ``X-User-Id`` header (and ``X-User-Role`` on
staff routes) and passed explicitly into every command.
"""

import json
from dataclasses import asdict

from fastapi import APIRouter, Header, Query, Request
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from marketplace.api.schemas import (
    AddToCartRequest,
    AddTrackingNumberRequest,
    AddressSchema,
    CartLineResponse,
    CartResponse,
    CheckoutCartRequest,
    CheckoutSessionResponse,
    ClearCartResponse,
    CouponValidationResponse,
    CreateCheckoutSessionRequest,
    OrderIdResponse,
    OrderItemResponse,
    OrderPageResponse,
    OrderResponse,
    PlaceOrderRequest,
    StatusResponse,
    UpdateCartQuantityRequest,
    UpdateOrderStatusRequest,
    WebhookResponse,
)
from marketplace.cart.items import AddToCart, ClearCart, RemoveFromCart, UpdateCartItemQuantity
from marketplace.cart.view import cart_summary
from marketplace.coupon.evaluator import check_coupon
from marketplace.order.access import ActorRole, ensure_owner, ensure_staff_can_manage
from marketplace.order.cancellation import CancelOrder
from marketplace.order.creation import CheckoutCart, PlaceOrder
from marketplace.order.listing import (
    CUSTOMER_PAGE_SIZE,
    STAFF_PAGE_SIZE,
    OrderPage,
    list_customer_orders,
    list_managed_orders,
)
from marketplace.order.order import Order, OrderStatus
from marketplace.order.status import AddTrackingNumber, UpdateOrderStatus
from marketplace.payment.session import create_checkout_session
from marketplace.webhook.receiver import receive_webhook


def _role(value: str) -> ActorRole:
    try:
        return ActorRole(value.upper())
    except ValueError:
        raise ValidationError({"role": [f"Unknown role {value}"]}) from None


def _order_status(value: str) -> OrderStatus:
    try:
        return OrderStatus(value.upper())
    except ValueError:
        raise ValidationError({"status": [f"Unknown order status {value}"]}) from None


def _optional_status(value: str | None) -> OrderStatus | None:
    return _order_status(value) if value else None


def _address_json(address: AddressSchema | None) -> str | None:
    return json.dumps(address.model_dump()) if address is not None else None


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        order_id=str(order.id),
        customer_id=str(order.customer_id),
        status=order.status,
        payment_status=order.payment_status,
        payment_method=order.payment_method,
        items=[
            OrderItemResponse(
                product_id=str(item.product_id) if item.product_id else None,
                product_name=item.product_name,
                seller_id=str(item.seller_id) if item.seller_id else None,
                quantity=item.quantity,
                price_at_purchase=item.price_at_purchase,
                item_total=item.item_total,
            )
            for item in order.items
        ],
        shipping_address=AddressSchema(**order.shipping_address.to_dict()),
        billing_address=AddressSchema(**order.billing_address.to_dict()),
        total_amount=order.total_amount,
        discount_amount=order.discount_amount,
        shipping_fee=order.shipping_fee,
        final_amount=order.final_amount,
        currency=order.currency,
        coupon_code=order.coupon_code,
        tracking_number=order.tracking_number,
        created_at=order.created_at,
    )


def _page_response(page: OrderPage) -> OrderPageResponse:
    return OrderPageResponse(
        items=[_order_response(order) for order in page.orders],
        total=page.total,
        offset=page.offset,
        limit=page.limit,
    )


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=CartResponse)
async def get_cart(x_user_id: str = Header()) -> CartResponse:
    summary = cart_summary(x_user_id)
    return CartResponse(
        cart_id=summary.cart_id,
        customer_id=summary.customer_id,
        items=[CartLineResponse(**asdict(line)) for line in summary.lines],
        item_count=summary.item_count,
        subtotal=summary.subtotal,
    )


@cart_router.post("/items", status_code=201, response_model=StatusResponse)
async def add_cart_item(body: AddToCartRequest, x_user_id: str = Header()) -> StatusResponse:
    command = AddToCart(
        customer_id=x_user_id,
        product_id=body.product_id,
        quantity=body.quantity,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@cart_router.put("/items/{product_id}", response_model=StatusResponse)
async def update_cart_item(
    product_id: str, body: UpdateCartQuantityRequest, x_user_id: str = Header()
) -> StatusResponse:
    command = UpdateCartItemQuantity(
        customer_id=x_user_id,
        product_id=product_id,
        quantity=body.quantity,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@cart_router.delete("/items/{product_id}", response_model=StatusResponse)
async def remove_cart_item(product_id: str, x_user_id: str = Header()) -> StatusResponse:
    command = RemoveFromCart(customer_id=x_user_id, product_id=product_id)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@cart_router.delete("", response_model=ClearCartResponse)
async def clear_cart(x_user_id: str = Header()) -> ClearCartResponse:
    removed = current_domain.process(ClearCart(customer_id=x_user_id), asynchronous=False)
    return ClearCartResponse(removed=removed)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderIdResponse)
async def place_order(body: PlaceOrderRequest, x_user_id: str = Header()) -> OrderIdResponse:
    command = PlaceOrder(
        customer_id=x_user_id,
        items=json.dumps([line.model_dump() for line in body.items]),
        shipping_address=_address_json(body.shipping_address),
        billing_address=_address_json(body.billing_address),
        payment_method=body.payment_method,
        coupon_code=body.coupon_code,
    )
    order_id = current_domain.process(command, asynchronous=False)
    return OrderIdResponse(order_id=order_id)


@order_router.post("/checkout", status_code=201, response_model=OrderIdResponse)
async def checkout_cart(body: CheckoutCartRequest, x_user_id: str = Header()) -> OrderIdResponse:
    """Place an order for the current contents of the caller's cart.

    The cart is emptied once the payment is confirmed, not here.
    """
    command = CheckoutCart(
        customer_id=x_user_id,
        shipping_address=_address_json(body.shipping_address),
        billing_address=_address_json(body.billing_address),
        payment_method=body.payment_method,
        coupon_code=body.coupon_code,
    )
    order_id = current_domain.process(command, asynchronous=False)
    return OrderIdResponse(order_id=order_id)


@order_router.get("", response_model=OrderPageResponse)
async def list_my_orders(
    x_user_id: str = Header(),
    status: str | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=CUSTOMER_PAGE_SIZE, ge=1, le=100),
) -> OrderPageResponse:
    page = list_customer_orders(x_user_id, status=_optional_status(status), offset=offset, limit=limit)
    return _page_response(page)


@order_router.get("/managed", response_model=OrderPageResponse)
async def list_managed(
    x_user_id: str = Header(),
    x_user_role: str = Header(),
    status: str | None = Query(default=None),
    customer_id: str | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=STAFF_PAGE_SIZE, ge=1, le=100),
) -> OrderPageResponse:
    """Orders the caller manages: all of them for admins, those with the seller's products for sellers."""
    page = list_managed_orders(
        x_user_id,
        _role(x_user_role),
        status=_optional_status(status),
        customer_id=customer_id,
        offset=offset,
        limit=limit,
    )
    return _page_response(page)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    x_user_id: str = Header(),
    x_user_role: str = Header(default=ActorRole.CUSTOMER.value),
) -> OrderResponse:
    order = current_domain.repository_for(Order).get(order_id)
    role = _role(x_user_role)
    if role == ActorRole.CUSTOMER:
        ensure_owner(order, x_user_id)
    else:
        ensure_staff_can_manage(order, x_user_id, role)
    return _order_response(order)


@order_router.post("/{order_id}/cancel", response_model=StatusResponse)
async def cancel_order(order_id: str, x_user_id: str = Header()) -> StatusResponse:
    command = CancelOrder(order_id=order_id, requester_id=x_user_id)
    status = current_domain.process(command, asynchronous=False)
    return StatusResponse(status=status)


@order_router.put("/{order_id}/status", response_model=StatusResponse)
async def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    x_user_id: str = Header(),
    x_user_role: str = Header(),
) -> StatusResponse:
    command = UpdateOrderStatus(
        order_id=order_id,
        new_status=_order_status(body.status).value,
        actor_id=x_user_id,
        actor_role=_role(x_user_role).value,
    )
    status = current_domain.process(command, asynchronous=False)
    return StatusResponse(status=status)


@order_router.put("/{order_id}/tracking", response_model=StatusResponse)
async def add_tracking_number(
    order_id: str,
    body: AddTrackingNumberRequest,
    x_user_id: str = Header(),
    x_user_role: str = Header(),
) -> StatusResponse:
    command = AddTrackingNumber(
        order_id=order_id,
        tracking_number=body.tracking_number,
        actor_id=x_user_id,
        actor_role=_role(x_user_role).value,
    )
    status = current_domain.process(command, asynchronous=False)
    return StatusResponse(status=status)


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/checkout-session", status_code=201, response_model=CheckoutSessionResponse)
async def create_payment_session(
    body: CreateCheckoutSessionRequest, x_user_id: str = Header()
) -> CheckoutSessionResponse:
    session = create_checkout_session(
        order_id=body.order_id,
        requester_id=x_user_id,
        success_url=body.success_url,
        cancel_url=body.cancel_url,
    )
    return CheckoutSessionResponse(session_id=session.session_id, checkout_url=session.checkout_url)


@payment_router.post("/webhook", response_model=WebhookResponse)
async def payment_webhook(request: Request, stripe_signature: str = Header(default="")) -> WebhookResponse:
    """Receive a gateway callback.

    The signature is checked against the raw body, so the body is read as
    bytes rather than parsed into a schema.
    """
    payload = await request.body()
    receipt = receive_webhook(payload, stripe_signature)
    return WebhookResponse(status=receipt.status)


# ---------------------------------------------------------------------------
# Coupon Router
# ---------------------------------------------------------------------------
coupon_router = APIRouter(prefix="/coupons", tags=["coupons"])


@coupon_router.get("/{code}/validation", response_model=CouponValidationResponse)
async def validate_coupon(code: str, cart_total: float = Query(ge=0)) -> CouponValidationResponse:
    evaluation = check_coupon(code, cart_total)
    return CouponValidationResponse(
        code=code.upper(),
        valid=evaluation.valid,
        reason=evaluation.reason,
        discount=evaluation.discount,
    )

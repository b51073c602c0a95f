"""Pydantic request/response schemas for the marketplace API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    address_title: str | None = None
    street: str
    city: str
    state: str | None = None
    zip_code: str
    country: str
    phone_number: str | None = None


class OrderLineSchema(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)


class StatusResponse(BaseModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1, default=1)


class UpdateCartQuantityRequest(BaseModel):
    quantity: int = Field(ge=1)


class CartLineResponse(BaseModel):
    product_id: str
    product_name: str
    quantity: int
    unit_price: float
    line_total: float
    available: bool


class CartResponse(BaseModel):
    cart_id: str
    customer_id: str
    items: list[CartLineResponse]
    item_count: int
    subtotal: float


class ClearCartResponse(BaseModel):
    removed: int


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    items: list[OrderLineSchema] = Field(min_length=1)
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    payment_method: str = "CARD"
    coupon_code: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [{"product_id": "prod-001", "quantity": 2}],
                    "shipping_address": {
                        "street": "123 Main St",
                        "city": "Springfield",
                        "zip_code": "62701",
                        "country": "US",
                    },
                    "coupon_code": "WELCOME10",
                }
            ]
        }
    }


class CheckoutCartRequest(BaseModel):
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    payment_method: str = "CARD"
    coupon_code: str | None = None


class OrderIdResponse(BaseModel):
    order_id: str


class UpdateOrderStatusRequest(BaseModel):
    status: str


class AddTrackingNumberRequest(BaseModel):
    tracking_number: str = Field(min_length=1, max_length=100)


class OrderItemResponse(BaseModel):
    product_id: str | None
    product_name: str
    seller_id: str | None
    quantity: int
    price_at_purchase: float
    item_total: float


class OrderResponse(BaseModel):
    order_id: str
    customer_id: str
    status: str
    payment_status: str
    payment_method: str
    items: list[OrderItemResponse]
    shipping_address: AddressSchema
    billing_address: AddressSchema
    total_amount: float
    discount_amount: float
    shipping_fee: float
    final_amount: float
    currency: str
    coupon_code: str | None = None
    tracking_number: str | None = None
    created_at: datetime | None = None


class OrderPageResponse(BaseModel):
    items: list[OrderResponse]
    total: int
    offset: int
    limit: int


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
class CreateCheckoutSessionRequest(BaseModel):
    order_id: str
    success_url: str | None = None
    cancel_url: str | None = None


class CheckoutSessionResponse(BaseModel):
    session_id: str
    checkout_url: str


class WebhookResponse(BaseModel):
    status: str


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
class CouponValidationResponse(BaseModel):
    code: str
    valid: bool
    reason: str | None = None
    discount: float = 0.0

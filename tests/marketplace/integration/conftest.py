import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from marketplace.api import (
    cart_router,
    coupon_router,
    order_router,
    payment_router,
    register_error_handlers,
)


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(cart_router)
    app.include_router(order_router)
    app.include_router(payment_router)
    app.include_router(coupon_router)
    register_error_handlers(app)
    return TestClient(app)


@pytest.fixture()
def customer():
    return {"X-User-Id": "cust-001"}

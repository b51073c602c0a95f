import json
from datetime import UTC, datetime, timedelta

import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def marketplace_bed():
    from marketplace.domain import marketplace
    from marketplace.utils.db import drop_db, setup_db

    bed = DomainFixture(marketplace)
    bed.setup()
    setup_db(marketplace)
    yield bed
    drop_db(marketplace)
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(marketplace_bed):
    with marketplace_bed.domain_context():
        yield

        from protean import current_domain

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

        # Drain event stores
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def _settings():
    from marketplace.config import reset_settings

    reset_settings()
    yield
    reset_settings()


@pytest.fixture(autouse=True)
def notifier():
    """Every test records notifications in memory instead of persisting them."""
    from marketplace.notification import reset_notifier, set_notifier
    from marketplace.notification.fake_adapter import RecordingNotifier

    recording = RecordingNotifier()
    set_notifier(recording)
    yield recording
    reset_notifier()


@pytest.fixture(autouse=True)
def gateway():
    from marketplace.gateway import reset_gateway, set_gateway
    from marketplace.gateway.fake_adapter import FakeGateway

    fake = FakeGateway()
    set_gateway(fake)
    yield fake
    reset_gateway()


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------
ADDRESS = {
    "street": "12 Market Street",
    "city": "Springfield",
    "state": "IL",
    "zip_code": "62701",
    "country": "US",
}


def _make_product(name="Desk Lamp", price=25.0, stock=10, seller_id="seller-001", **kwargs):
    from protean import current_domain

    from marketplace.catalogue.product import Product

    product = Product(name=name, price=price, stock=stock, seller_id=seller_id, **kwargs)
    current_domain.repository_for(Product).add(product)
    return product


def _make_coupon(code="SAVE10", discount_type="PERCENTAGE", discount_value=10.0, **kwargs):
    from protean import current_domain

    from marketplace.coupon.coupon import Coupon

    kwargs.setdefault("expiry_date", datetime.now(UTC) + timedelta(days=30))
    coupon = Coupon.create(code=code, discount_type=discount_type, discount_value=discount_value, **kwargs)
    current_domain.repository_for(Coupon).add(coupon)
    return coupon


def _stock_of(product_id) -> int:
    from protean import current_domain

    from marketplace.catalogue.product import Product

    return current_domain.repository_for(Product).get(product_id).stock


def _place_order(customer_id="cust-001", lines=None, coupon_code=None, **kwargs):
    from protean import current_domain

    from marketplace.order.creation import PlaceOrder

    return current_domain.process(
        PlaceOrder(
            customer_id=customer_id,
            items=json.dumps(lines or []),
            shipping_address=json.dumps(kwargs.pop("shipping_address", ADDRESS)),
            coupon_code=coupon_code,
            **kwargs,
        ),
        asynchronous=False,
    )


def _load_order(order_id):
    from protean import current_domain

    from marketplace.order.order import Order

    return current_domain.repository_for(Order).get(order_id)


@pytest.fixture()
def address():
    return dict(ADDRESS)


@pytest.fixture()
def make_product():
    """Persist a purchasable product; keyword arguments override the defaults."""
    return _make_product


@pytest.fixture()
def make_coupon():
    """Persist a coupon valid for the next 30 days unless ``expiry_date`` is given."""
    return _make_coupon


@pytest.fixture()
def stock_of():
    return _stock_of


@pytest.fixture()
def place_order():
    """Place an order through the command bus and return its id."""
    return _place_order


@pytest.fixture()
def load_order():
    return _load_order


# ---------------------------------------------------------------------------
# Gateway event payloads (Stripe-shaped)
# ---------------------------------------------------------------------------
def _checkout_completed(order_id, event_id="evt_checkout_001", session_id="cs_test_001", **extra):
    obj = {
        "id": session_id,
        "object": "checkout.session",
        "payment_intent": "pi_test_001",
        "currency": "usd",
        "metadata": {"order_id": order_id, "customer_id": "cust-001"},
    }
    obj.update(extra)
    return json.dumps({"id": event_id, "type": "checkout.session.completed", "data": {"object": obj}}).encode()


def _payment_failed(order_id, event_id="evt_failed_001", intent_id="pi_test_001", message="Your card was declined."):
    obj = {
        "id": intent_id,
        "object": "payment_intent",
        "amount": 5000,
        "currency": "usd",
        "metadata": {"order_id": order_id},
        "last_payment_error": {"message": message},
    }
    return json.dumps({"id": event_id, "type": "payment_intent.payment_failed", "data": {"object": obj}}).encode()


def _charge_refunded(order_id, event_id="evt_refund_001", charge_id="ch_test_001", amount_refunded=5000):
    obj = {
        "id": charge_id,
        "object": "charge",
        "amount_refunded": amount_refunded,
        "currency": "usd",
        "payment_intent": {"id": "pi_test_001", "metadata": {"order_id": order_id}},
        "metadata": {},
    }
    return json.dumps({"id": event_id, "type": "charge.refunded", "data": {"object": obj}}).encode()


@pytest.fixture()
def checkout_completed():
    return _checkout_completed


@pytest.fixture()
def payment_failed():
    return _payment_failed


@pytest.fixture()
def charge_refunded():
    return _charge_refunded

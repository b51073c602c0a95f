"""Integration tests for checkout sessions, the gateway webhook and coupon checks."""

import pytest


@pytest.fixture()
def order_id(make_product, place_order):
    product = make_product(price=30.0, stock=5)
    return place_order(lines=[{"product_id": product.id, "quantity": 1}])


def _post_webhook(client, payload, signature):
    return client.post(
        "/payments/webhook",
        content=payload,
        headers={"Stripe-Signature": signature, "Content-Type": "application/json"},
    )


class TestCheckoutSessionAPI:
    def test_returns_201_with_checkout_url(self, client, customer, gateway, order_id, load_order):
        response = client.post("/payments/checkout-session", json={"order_id": order_id}, headers=customer)

        assert response.status_code == 201
        body = response.json()
        assert body["checkout_url"].endswith(body["session_id"])
        assert load_order(order_id).checkout_session_id == body["session_id"]
        assert gateway.calls[-1]["amount_minor_units"] == 3000

    def test_gateway_failure_is_502(self, client, customer, gateway, order_id):
        gateway.configure(should_succeed=False, failure_reason="Invalid API key sk_live_abc")

        response = client.post("/payments/checkout-session", json={"order_id": order_id}, headers=customer)

        assert response.status_code == 502
        assert "sk_live" not in response.text

    def test_not_owner_is_403(self, client, order_id):
        response = client.post(
            "/payments/checkout-session", json={"order_id": order_id}, headers={"X-User-Id": "cust-999"}
        )
        assert response.status_code == 403

    def test_unknown_order_is_404(self, client, customer):
        response = client.post("/payments/checkout-session", json={"order_id": "nope"}, headers=customer)
        assert response.status_code == 404


class TestWebhookAPI:
    def test_confirms_then_reports_duplicate(self, client, gateway, order_id, load_order, checkout_completed):
        payload = checkout_completed(order_id)
        signature = gateway.sign(payload)

        first = _post_webhook(client, payload, signature)
        second = _post_webhook(client, payload, signature)

        assert first.status_code == 200
        assert first.json() == {"status": "processed"}
        assert second.status_code == 200
        assert second.json() == {"status": "duplicate"}
        assert load_order(order_id).status == "PROCESSING"

    def test_bad_signature_is_400(self, client, order_id, load_order, checkout_completed):
        response = _post_webhook(client, checkout_completed(order_id), "t=1,v1=forged")
        assert response.status_code == 400
        assert load_order(order_id).status == "PENDING_PAYMENT"

    def test_missing_signature_is_400(self, client, order_id, checkout_completed):
        response = client.post("/payments/webhook", content=checkout_completed(order_id))
        assert response.status_code == 400

    def test_undecodable_body_is_400(self, client, gateway):
        payload = b'{"type": "checkout.session.completed"}'
        response = _post_webhook(client, payload, gateway.sign(payload))
        assert response.status_code == 400

    def test_non_object_metadata_is_400(self, client, gateway, order_id, checkout_completed):
        payload = checkout_completed(order_id, metadata="order-1")
        response = _post_webhook(client, payload, gateway.sign(payload))
        assert response.status_code == 400

    def test_unknown_order_is_acknowledged(self, client, gateway, checkout_completed):
        payload = checkout_completed("no-such-order")
        response = _post_webhook(client, payload, gateway.sign(payload))
        assert response.status_code == 200
        assert response.json() == {"status": "ignored"}


class TestCouponValidationAPI:
    def test_valid_coupon(self, client, make_coupon):
        make_coupon(code="SAVE10", discount_value=10.0)
        response = client.get("/coupons/save10/validation", params={"cart_total": 50})
        assert response.status_code == 200
        assert response.json() == {"code": "SAVE10", "valid": True, "reason": None, "discount": 5.0}

    def test_unknown_coupon_is_reported(self, client):
        response = client.get("/coupons/NOPE/validation", params={"cart_total": 50})
        assert response.status_code == 200
        assert response.json()["valid"] is False

    def test_negative_total_is_422(self, client):
        response = client.get("/coupons/SAVE10/validation", params={"cart_total": -1})
        assert response.status_code == 422

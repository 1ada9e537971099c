import hashlib
import hmac
import time

import pytest
from jose import jwt
from sqlmodel import Session, select

from cod_intake.core.config import get_settings
from cod_intake.core.shopify_client import DraftOrder, ShopifyAdminClient
from cod_intake.models.shop import FormSettings

SHOP = "test-store.myshopify.com"


def merchant_headers(shop: str = SHOP) -> dict[str, str]:
    settings = get_settings()
    token = jwt.encode(
        {"dest": f"https://{shop}", "aud": settings.SHOPIFY_API_KEY, "exp": int(time.time()) + 60},
        settings.SHOPIFY_API_SECRET,
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}


def signed_proxy_params(shop: str = SHOP) -> dict[str, str]:
    params = {"shop": shop, "path_prefix": "/apps/cod", "timestamp": "1700000000"}
    message = "".join(sorted(f"{k}={v}" for k, v in params.items()))
    params["signature"] = hmac.new(
        get_settings().SHOPIFY_API_SECRET.encode(), message.encode(), hashlib.sha256
    ).hexdigest()
    return params


@pytest.fixture
def fake_draft_orders(monkeypatch):
    created = []

    def create_draft_order(self, draft_input):
        created.append((self.shop_domain, draft_input))
        return DraftOrder(
            id="gid://shopify/DraftOrder/77",
            name="#D77",
            invoice_url="https://test-store.myshopify.com/invoices/xyz",
        )

    monkeypatch.setattr(ShopifyAdminClient, "create_draft_order", create_draft_order)
    return created


def test_health(client):
    assert client.get("/").json()["status"] == "ok"


class TestCreateOrderEndpoint:
    def test_success(self, client, submission_data):
        response = client.post("/api/orders", json=submission_data())

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["orderName"] == "COD-1001"
        assert body["message"] == "Order placed successfully!"
        assert body["orderId"]

    def test_validation_error_envelope(self, client, submission_data):
        response = client.post("/api/orders", json=submission_data(customerName=""))

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Customer name is required"}

    def test_unknown_shop(self, client, submission_data):
        response = client.post("/api/orders", json=submission_data(shop="nope.myshopify.com"))

        assert response.status_code == 404
        assert response.json()["error"] == "Shop not found or app not installed"

    def test_malformed_body_uses_envelope(self, client, submission_data):
        response = client.post("/api/orders", json=submission_data(quantity="lots"))

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_cors_preflight(self, client):
        response = client.options(
            "/api/orders",
            headers={
                "Origin": "https://some-storefront.com",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "content-type",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"


class TestMerchantEndpoints:
    def test_list_requires_token(self, client):
        response = client.get("/api/orders")

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Authentication required"}

    def test_bad_token_uses_envelope(self, client):
        response = client.get("/api/orders", headers={"Authorization": "Bearer nonsense"})

        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_list_and_update_status(self, client, submission_data):
        created = client.post("/api/orders", json=submission_data()).json()

        listed = client.get("/api/orders", headers=merchant_headers())
        assert listed.status_code == 200
        assert [o["order_name"] for o in listed.json()] == ["COD-1001"]

        response = client.patch(
            f"/api/orders/{created['orderId']}/status",
            json={"status": "confirmed"},
            headers=merchant_headers(),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"

        filtered = client.get("/api/orders?status=pending", headers=merchant_headers())
        assert filtered.json() == []

    def test_invalid_transition(self, client, submission_data):
        created = client.post("/api/orders", json=submission_data()).json()

        response = client.patch(
            f"/api/orders/{created['orderId']}/status",
            json={"status": "delivered"},
            headers=merchant_headers(),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid status transition: pending -> delivered"

    def test_unknown_status_value(self, client, submission_data):
        created = client.post("/api/orders", json=submission_data()).json()

        response = client.patch(
            f"/api/orders/{created['orderId']}/status",
            json={"status": "lost"},
            headers=merchant_headers(),
        )

        assert response.status_code == 400


class TestCustomerLookupEndpoint:
    def test_returning_customer_is_found(self, client, submission_data):
        client.post("/api/orders", json=submission_data())

        response = client.get("/api/customers/by-phone", params={"phone": "9876543210", "shop": SHOP})

        assert response.status_code == 200
        body = response.json()
        assert body["found"] is True
        assert body["name"] == "Asha Patel"
        assert body["zipcode"] == "400001"

    def test_not_found_omits_fields(self, client):
        response = client.get("/api/customers/by-phone", params={"phone": "9876543210", "shop": SHOP})

        assert response.json() == {"found": False}

    def test_missing_phone(self, client):
        response = client.get("/api/customers/by-phone", params={"shop": SHOP})

        assert response.status_code == 400
        assert response.json() == {"found": False, "error": "Phone and shop are required"}


class TestPartialCodEndpoint:
    def test_checkout_via_session_token(self, client, submission_data, fake_draft_orders):
        payload = submission_data(advanceAmount=200, shippingPrice=50)

        response = client.post("/api/partial-cod/checkout", json=payload, headers=merchant_headers())

        assert response.status_code == 200
        body = response.json()
        assert body["checkoutUrl"] == "https://test-store.myshopify.com/invoices/xyz"
        assert body["orderName"] == "COD-1001"
        assert body["remainingAmount"] == 850
        assert fake_draft_orders[0][0] == SHOP

    def test_unauthenticated(self, client, submission_data, fake_draft_orders):
        response = client.post("/api/partial-cod/checkout", json=submission_data(advanceAmount=200))

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Authentication failed"}
        assert fake_draft_orders == []


class TestAppProxy:
    def test_liveness(self, client):
        response = client.get("/api/proxy/anything", params={"shop": SHOP})

        assert response.json() == {"success": True, "message": "COD app proxy is working", "shop": SHOP}

    def test_customer_lookup(self, client, submission_data):
        client.post("/api/orders", json=submission_data())

        response = client.get(
            "/api/proxy/customer-by-phone",
            params={"shop": SHOP, "phone": "+91 98765-43210"},
        )

        assert response.json()["name"] == "Asha Patel"

    def test_standard_order(self, client, submission_data, fake_draft_orders):
        response = client.post("/api/proxy/create-order", json=submission_data())

        assert response.status_code == 200
        assert response.json()["orderName"] == "COD-1001"
        assert fake_draft_orders == []

    def test_partial_order_by_payment_method(self, client, submission_data, fake_draft_orders):
        payload = submission_data(paymentMethod="partial_cod", advanceAmount=200)

        response = client.post("/api/proxy/submit", params=signed_proxy_params(), json=payload)

        assert response.status_code == 200
        body = response.json()
        assert body["draftOrderName"] == "#D77"
        assert body["advanceAmount"] == 200
        assert body["remainingAmount"] == 800

    def test_partial_order_by_path(self, client, submission_data, fake_draft_orders):
        payload = submission_data(advanceAmount=200, shippingPrice=100)

        response = client.post(
            "/api/proxy/partial-cod/create-checkout",
            params=signed_proxy_params(),
            json=payload,
        )

        assert response.status_code == 200
        assert response.json()["remainingAmount"] == 900

    def test_partial_order_rejected_when_switched_off(self, client, engine, submission_data, fake_draft_orders):
        with Session(engine) as session:
            settings = session.exec(select(FormSettings)).one()
            settings.partial_cod_enabled = False
            session.add(settings)
            session.commit()

        payload = submission_data(paymentMethod="partial_cod", advanceAmount=200)
        response = client.post("/api/proxy/submit", params=signed_proxy_params(), json=payload)

        assert response.status_code == 403
        assert response.json() == {"success": False, "error": "Partial COD is not enabled for this shop"}
        assert fake_draft_orders == []

import base64
import hashlib
import hmac
import json

import pytest
from sqlmodel import Session, select

from cod_intake.core.auth import verify_webhook_hmac
from cod_intake.core.config import get_settings
from cod_intake.models.order import OrderLog
from cod_intake.models.shop import Shop
from cod_intake.repositories.shop_repo import ShopRepository
from cod_intake.schemas.webhook import ShopifyOrderPayload
from cod_intake.services.webhook_service import WebhookService

SHOP = "test-store.myshopify.com"


def sign(body: bytes, secret: str | None = None) -> str:
    secret = secret or get_settings().SHOPIFY_API_SECRET
    return base64.b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()


def webhook_headers(body: bytes, topic: str, shop: str = SHOP) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "X-Shopify-Hmac-Sha256": sign(body),
        "X-Shopify-Shop-Domain": shop,
        "X-Shopify-Topic": topic,
    }


def paid_order_payload(**overrides) -> dict:
    payload = {
        "id": 5550001,
        "name": "#1042",
        "note_attributes": [
            {"name": "partial_cod", "value": "true"},
            {"name": "advance_amount", "value": "200"},
            {"name": "remaining_amount", "value": "900"},
            {"name": "total_order_value", "value": "1100"},
            {"name": "original_product_id", "value": "gid://shopify/Product/111"},
            {"name": "original_variant_id", "value": "gid://shopify/ProductVariant/222"},
            {"name": "original_quantity", "value": "2"},
            {"name": "original_price", "value": "500"},
            {"name": "customer_name", "value": "Asha Patel"},
            {"name": "customer_address", "value": "12 Lane St, Mumbai, MH 400001"},
            {"name": "customer_city", "value": "Mumbai"},
            {"name": "customer_state", "value": "Maharashtra"},
            {"name": "customer_zipcode", "value": "400001"},
        ],
        "customer": {"first_name": "Asha", "last_name": "Patel", "phone": "+919876543210"},
        "line_items": [{"title": "Advance Payment - Cotton Kurta", "variant_id": 999}],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def webhook_service(order_repo, sequencer):
    return WebhookService(ShopRepository(), order_repo, sequencer, currency="INR", scan_window=50)


@pytest.fixture
def checkout_order(session, shop, sequencer):
    """A partial COD order logged when the advance checkout was created."""
    order = OrderLog(
        shop_domain=SHOP,
        order_name="",
        customer_name="Asha Patel",
        customer_phone="+91 98765-43210",
        customer_address="12 Lane St, Mumbai, MH 400001",
        product_id="gid://shopify/Product/111",
        product_title="Cotton Kurta",
        variant_id="gid://shopify/ProductVariant/222",
        quantity=2,
        total_price=1100,
        is_partial_cod=True,
        advance_amount=200,
        remaining_amount=900,
        draft_order_id="gid://shopify/DraftOrder/77",
    )
    return sequencer.insert_with_name(session, order)


class TestSignature:
    def test_valid(self):
        body = b'{"id": 1}'
        assert verify_webhook_hmac(body, sign(body, "s3cret"), "s3cret") is True

    def test_tampered_body(self):
        assert verify_webhook_hmac(b'{"id": 2}', sign(b'{"id": 1}', "s3cret"), "s3cret") is False

    @pytest.mark.parametrize("header,secret", [("", "s3cret"), ("abc", "")])
    def test_missing_parts(self, header, secret):
        assert verify_webhook_hmac(b"{}", header, secret) is False


class TestReconcilePaidOrder:
    def test_marks_checkout_order_paid(self, session, webhook_service, checkout_order):
        payload = ShopifyOrderPayload.model_validate(paid_order_payload())

        order = webhook_service.reconcile_paid_order(session, SHOP, payload)

        assert order.id == checkout_order.id
        assert order.order_name == "COD-1001"
        assert order.advance_paid is True
        assert order.shopify_order_id == "5550001"
        assert order.shopify_order_name == "#1042"
        assert len(session.exec(select(OrderLog)).all()) == 1

    def test_redelivery_is_a_noop(self, session, webhook_service, checkout_order):
        payload = ShopifyOrderPayload.model_validate(paid_order_payload())

        first = webhook_service.reconcile_paid_order(session, SHOP, payload)
        second = webhook_service.reconcile_paid_order(session, SHOP, payload)

        assert first.id == second.id == checkout_order.id
        assert len(session.exec(select(OrderLog)).all()) == 1

    def test_other_customer_is_not_matched(self, session, webhook_service, checkout_order):
        payload = ShopifyOrderPayload.model_validate(
            paid_order_payload(customer={"phone": "+91 91234 56789"})
        )

        order = webhook_service.reconcile_paid_order(session, SHOP, payload)

        assert order.id != checkout_order.id
        assert order.order_name == "COD-1002"
        session.refresh(checkout_order)
        assert checkout_order.advance_paid is False

    def test_numeric_variant_id_matches_gid(self, session, webhook_service, checkout_order):
        attributes = [
            a for a in paid_order_payload()["note_attributes"] if a["name"] != "original_variant_id"
        ]
        payload = ShopifyOrderPayload.model_validate(
            paid_order_payload(
                note_attributes=attributes,
                line_items=[{"title": "Cotton Kurta", "variant_id": 222}],
            )
        )

        order = webhook_service.reconcile_paid_order(session, SHOP, payload)

        assert order.id == checkout_order.id

    def test_unmatched_order_is_logged_from_payload(self, session, shop, webhook_service):
        payload = ShopifyOrderPayload.model_validate(paid_order_payload())

        order = webhook_service.reconcile_paid_order(session, SHOP, payload)

        assert order.order_name == "COD-1001"
        assert order.is_partial_cod is True
        assert order.advance_paid is True
        assert order.customer_name == "Asha Patel"
        assert order.customer_phone == "+919876543210"
        assert (order.city, order.state, order.pincode) == ("Mumbai", "Maharashtra", "400001")
        assert order.variant_id == "gid://shopify/ProductVariant/222"
        assert order.quantity == 2
        assert order.total_price == 1100
        assert (order.advance_amount, order.remaining_amount) == (200, 900)

    def test_sparse_payload_falls_back_to_platform_fields(self, session, shop, webhook_service):
        payload = ShopifyOrderPayload.model_validate(
            {
                "id": 7,
                "name": "#7",
                "note_attributes": [{"name": "partial_cod", "value": "true"}],
                "shipping_address": {
                    "name": "Ravi Kumar",
                    "address1": "4 MG Road",
                    "city": "Pune",
                    "province": "Maharashtra",
                    "zip": "411001",
                    "phone": "9123456789",
                },
                "line_items": [{"title": "Advance Payment", "product_id": 111, "variant_id": 222}],
            }
        )

        order = webhook_service.reconcile_paid_order(session, SHOP, payload)

        assert order.customer_name == "Ravi Kumar"
        assert order.customer_phone == "9123456789"
        assert order.customer_address == "4 MG Road"
        assert order.product_id == "111"
        assert order.variant_id == "222"
        assert order.quantity == 1
        assert order.total_price == 0

    def test_non_partial_order_is_skipped(self, session, shop, webhook_service):
        payload = ShopifyOrderPayload.model_validate(paid_order_payload(note_attributes=[]))

        assert webhook_service.reconcile_paid_order(session, SHOP, payload) is None
        assert session.exec(select(OrderLog)).all() == []


class TestUninstall:
    def test_stamps_shop(self, session, shop, webhook_service):
        assert webhook_service.app_uninstalled(session, SHOP) is True

        session.refresh(shop)
        assert shop.uninstalled_at is not None
        assert ShopRepository().get_installed(session, SHOP) is None

    def test_unknown_shop(self, session, webhook_service):
        assert webhook_service.app_uninstalled(session, "nobody.myshopify.com") is False


class TestWebhookEndpoints:
    def test_uninstall(self, client, engine):
        body = b"{}"
        response = client.post(
            "/webhooks/app/uninstalled",
            content=body,
            headers=webhook_headers(body, "app/uninstalled"),
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}
        with Session(engine) as session:
            shop = session.exec(select(Shop).where(Shop.shop_domain == SHOP)).one()
            assert shop.uninstalled_at is not None

    def test_orders_create(self, client, engine):
        body = json.dumps(paid_order_payload()).encode()
        response = client.post(
            "/webhooks/orders/create",
            content=body,
            headers=webhook_headers(body, "orders/create"),
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "orderName": "COD-1001"}
        with Session(engine) as session:
            [order] = session.exec(select(OrderLog)).all()
            assert order.advance_paid is True

    def test_orders_create_skips_regular_orders(self, client):
        body = json.dumps({"id": 9, "name": "#9"}).encode()
        response = client.post(
            "/webhooks/orders/create",
            content=body,
            headers=webhook_headers(body, "orders/create"),
        )

        assert response.json() == {"success": True, "skipped": True}

    def test_bad_signature(self, client):
        body = b"{}"
        headers = webhook_headers(body, "app/uninstalled")
        headers["X-Shopify-Hmac-Sha256"] = sign(body, "wrong-secret")

        response = client.post("/webhooks/app/uninstalled", content=body, headers=headers)

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Invalid webhook signature"}

    def test_missing_shop_header(self, client):
        body = b"{}"
        headers = webhook_headers(body, "app/uninstalled")
        del headers["X-Shopify-Shop-Domain"]

        response = client.post("/webhooks/app/uninstalled", content=body, headers=headers)

        assert response.status_code == 401

    def test_non_object_body(self, client):
        body = b"[1, 2]"
        response = client.post(
            "/webhooks/orders/create",
            content=body,
            headers=webhook_headers(body, "orders/create"),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid webhook payload"

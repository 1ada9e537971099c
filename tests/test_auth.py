import hashlib
import hmac
import time
from urllib.parse import urlencode

import pytest
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt
from starlette.requests import Request

from cod_intake.core.auth import (
    authenticate_shopify_admin,
    decode_session_token,
    require_merchant,
    shop_from_claims,
    verify_app_proxy_signature,
)
from cod_intake.core.config import get_settings
from cod_intake.core.errors import AuthenticationFailed

SHOP = "test-store.myshopify.com"
ACCESS_TOKEN = "shpat_test_token"


def sign_query(params: dict[str, str], secret: str | None = None) -> list[tuple[str, str]]:
    secret = secret or get_settings().SHOPIFY_API_SECRET
    message = "".join(sorted(f"{k}={v}" for k, v in params.items()))
    signature = hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()
    return list(params.items()) + [("signature", signature)]


def session_token(shop: str = SHOP, **claims) -> str:
    settings = get_settings()
    payload = {
        "iss": f"https://{shop}/admin",
        "dest": f"https://{shop}",
        "aud": settings.SHOPIFY_API_KEY,
        "sub": "42",
        "exp": int(time.time()) + 60,
        "nbf": int(time.time()) - 5,
    }
    payload.update(claims)
    return jwt.encode(payload, settings.SHOPIFY_API_SECRET, algorithm="HS256")


def make_request(query: list[tuple[str, str]] | None = None, token: str | None = None) -> Request:
    headers = []
    if token:
        headers.append((b"authorization", f"Bearer {token}".encode()))
    return Request(
        {
            "type": "http",
            "method": "POST",
            "path": "/api/partial-cod/checkout",
            "query_string": urlencode(query or []).encode(),
            "headers": headers,
        }
    )


class TestAppProxySignature:
    def test_valid_signature(self):
        params = sign_query({"shop": SHOP, "path_prefix": "/apps/cod", "timestamp": "1700000000"})
        assert verify_app_proxy_signature(params, get_settings().SHOPIFY_API_SECRET)

    def test_tampered_parameter(self):
        params = sign_query({"shop": SHOP, "timestamp": "1700000000"})
        params[0] = ("shop", "evil.myshopify.com")
        assert not verify_app_proxy_signature(params, get_settings().SHOPIFY_API_SECRET)

    def test_repeated_keys_are_joined(self):
        secret = "s3cret"
        message = "ids=1,2shop=" + SHOP
        signature = hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()
        params = [("shop", SHOP), ("ids", "1"), ("ids", "2"), ("signature", signature)]
        assert verify_app_proxy_signature(params, secret)

    def test_missing_signature_or_secret(self):
        assert not verify_app_proxy_signature([("shop", SHOP)], "s3cret")
        assert not verify_app_proxy_signature(sign_query({"shop": SHOP}), "")


class TestSessionToken:
    def test_decodes_and_extracts_shop(self):
        claims = decode_session_token(session_token())
        assert shop_from_claims(claims) == SHOP

    def test_wrong_audience(self):
        with pytest.raises(AuthenticationFailed):
            decode_session_token(session_token(aud="someone-else"))

    def test_expired(self):
        with pytest.raises(AuthenticationFailed, match="Invalid or expired token"):
            decode_session_token(session_token(exp=int(time.time()) - 60))

    def test_wrong_secret(self):
        token = jwt.encode({"dest": f"https://{SHOP}", "aud": get_settings().SHOPIFY_API_KEY}, "nope")
        with pytest.raises(AuthenticationFailed):
            decode_session_token(token)

    def test_missing_dest(self):
        with pytest.raises(AuthenticationFailed, match="Token missing dest"):
            shop_from_claims({})


class TestAuthenticateShopifyAdmin:
    def test_app_proxy_path(self, session, shop):
        request = make_request(query=sign_query({"shop": SHOP, "timestamp": "1700000000"}))

        client = authenticate_shopify_admin(request, session)

        assert client.shop_domain == SHOP
        assert client.access_token == ACCESS_TOKEN

    def test_falls_back_to_session_token(self, session, shop):
        request = make_request(token=session_token())

        client = authenticate_shopify_admin(request, session)

        assert client.shop_domain == SHOP

    def test_bad_signature_then_good_token(self, session, shop):
        query = [("shop", SHOP), ("signature", "deadbeef")]
        request = make_request(query=query, token=session_token())

        assert authenticate_shopify_admin(request, session).shop_domain == SHOP

    def test_both_paths_fail(self, session, shop):
        with pytest.raises(AuthenticationFailed, match="Authentication failed"):
            authenticate_shopify_admin(make_request(), session)

    def test_unknown_shop_is_rejected(self, session, shop):
        request = make_request(token=session_token(shop="other.myshopify.com"))
        with pytest.raises(AuthenticationFailed):
            authenticate_shopify_admin(request, session)


class TestRequireMerchant:
    def test_valid_token(self, session, shop):
        credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=session_token())
        assert require_merchant(credentials, session) == SHOP

    def test_missing_credentials(self, session):
        with pytest.raises(AuthenticationFailed, match="Authentication required"):
            require_merchant(None, session)

    def test_invalid_token(self, session, shop):
        credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials="not-a-jwt")
        with pytest.raises(AuthenticationFailed, match="Invalid or expired token"):
            require_merchant(credentials, session)

    def test_uninstalled_shop(self, session):
        credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=session_token())
        with pytest.raises(AuthenticationFailed, match="Shop not installed"):
            require_merchant(credentials, session)

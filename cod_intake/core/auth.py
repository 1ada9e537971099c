# cod_intake/core/auth.py
import base64
import hashlib
import hmac
import json
import logging
from typing import Any, Iterable
from urllib.parse import urlparse

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session

from cod_intake.core.config import get_settings
from cod_intake.core.errors import AuthenticationFailed, OrderValidationError
from cod_intake.core.shopify_client import ShopifyAdminClient
from cod_intake.database import get_session
from cod_intake.repositories.shop_repo import ShopRepository
from cod_intake.schemas.webhook import WebhookDelivery

settings = get_settings()
logger = logging.getLogger(__name__)

# HTTP Bearer scheme:
# - auto_error=False => storefront requests carry no Authorization header,
#   the app proxy signature is tried instead.
bearer_scheme = HTTPBearer(auto_error=False)

shop_repo = ShopRepository()


def verify_app_proxy_signature(
    params: Iterable[tuple[str, str]],
    secret: str,
) -> bool:
    """
    Verify the ``signature`` Shopify appends to app proxy requests.

    The message is every other query parameter as ``key=value`` (repeated
    keys joined with ","), sorted and concatenated without separators,
    signed with HMAC-SHA256 using the app secret.
    """
    if not secret:
        return False

    grouped: dict[str, list[str]] = {}
    signature = None
    for key, value in params:
        if key == "signature":
            signature = value
            continue
        grouped.setdefault(key, []).append(value)

    if not signature:
        return False

    message = "".join(sorted(f"{key}={','.join(values)}" for key, values in grouped.items()))
    expected = hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


def decode_session_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Shopify admin session token (JWT).

    Verification:
      - signature (HS256 using SHOPIFY_API_SECRET)
      - expiration time (exp)
      - audience must be our SHOPIFY_API_KEY

    Raises:
        AuthenticationFailed: if token is invalid/expired.
    """
    if not settings.SHOPIFY_API_SECRET:
        raise AuthenticationFailed()
    try:
        return jwt.decode(
            token,
            settings.SHOPIFY_API_SECRET,
            algorithms=["HS256"],
            audience=settings.SHOPIFY_API_KEY,
        )
    except JWTError:
        raise AuthenticationFailed("Invalid or expired token")


def shop_from_claims(claims: dict[str, Any]) -> str:
    """'https://my-store.myshopify.com' in ``dest`` -> 'my-store.myshopify.com'"""
    dest = claims.get("dest") or ""
    shop = urlparse(dest).netloc
    if not shop:
        raise AuthenticationFailed("Token missing dest")
    return shop


def _client_for(session: Session, shop_domain: str) -> ShopifyAdminClient:
    shop = shop_repo.get_installed(session, shop_domain)
    if shop is None or not shop.access_token:
        raise AuthenticationFailed()
    return ShopifyAdminClient(shop.shop_domain, shop.access_token)


def _authenticate_app_proxy(request: Request, session: Session) -> ShopifyAdminClient:
    if not verify_app_proxy_signature(
        request.query_params.multi_items(),
        settings.SHOPIFY_API_SECRET,
    ):
        raise AuthenticationFailed("Invalid app proxy signature")
    shop_domain = request.query_params.get("shop")
    if not shop_domain:
        raise AuthenticationFailed("App proxy request missing shop")
    return _client_for(session, shop_domain)


def _authenticate_session_token(request: Request, session: Session) -> ShopifyAdminClient:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise AuthenticationFailed("Missing session token")
    claims = decode_session_token(token)
    return _client_for(session, shop_from_claims(claims))


def authenticate_shopify_admin(request: Request, session: Session) -> ShopifyAdminClient:
    """
    Obtain an Admin API client for the shop behind this request.

    Credential paths, in order:
      1. storefront app proxy (signed query string)
      2. merchant admin session token (Bearer JWT)

    Raises:
        AuthenticationFailed: if both paths fail.
    """
    try:
        return _authenticate_app_proxy(request, session)
    except AuthenticationFailed as proxy_error:
        logger.info("App proxy auth failed (%s), trying session token", proxy_error.message)

    try:
        return _authenticate_session_token(request, session)
    except AuthenticationFailed as admin_error:
        logger.warning("Session token auth also failed: %s", admin_error.message)
        raise AuthenticationFailed()


def require_merchant(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> str:
    """
    Enforce a valid merchant session token.

    Returns:
        The shop domain the token was issued for.

    Raises:
        AuthenticationFailed (401): if the token is missing/invalid or the
            shop is not installed.
    """
    if credentials is None:
        raise AuthenticationFailed("Authentication required")

    shop_domain = shop_from_claims(decode_session_token(credentials.credentials))

    if shop_repo.get_installed(session, shop_domain) is None:
        raise AuthenticationFailed("Shop not installed")
    return shop_domain


def verify_webhook_hmac(body: bytes, hmac_header: str, secret: str) -> bool:
    """
    Verify ``X-Shopify-Hmac-Sha256``: base64 of HMAC-SHA256 over the raw
    request body, keyed with the app secret.
    """
    if not secret or not hmac_header:
        return False
    digest = hmac.new(secret.encode(), body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode()
    return hmac.compare_digest(expected, hmac_header)


async def verify_shopify_webhook(request: Request) -> WebhookDelivery:
    """
    Dependency for webhook endpoints: verify the signature before the body
    is trusted.

    Raises:
        AuthenticationFailed: bad/missing signature or shop header.
        OrderValidationError: body is not a JSON object.
    """
    body = await request.body()
    if not verify_webhook_hmac(
        body,
        request.headers.get("X-Shopify-Hmac-Sha256", ""),
        settings.SHOPIFY_API_SECRET,
    ):
        raise AuthenticationFailed("Invalid webhook signature")

    shop_domain = request.headers.get("X-Shopify-Shop-Domain", "")
    if not shop_domain:
        raise AuthenticationFailed("Webhook missing shop")

    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        raise OrderValidationError("Invalid webhook payload")
    if not isinstance(payload, dict):
        raise OrderValidationError("Invalid webhook payload")

    return WebhookDelivery(
        shop_domain=shop_domain,
        topic=request.headers.get("X-Shopify-Topic", ""),
        payload=payload,
    )

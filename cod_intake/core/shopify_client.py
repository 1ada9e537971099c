# cod_intake/core/shopify_client.py
import logging
from typing import Any

import requests
from sqlmodel import SQLModel

from cod_intake.core.config import get_settings
from cod_intake.core.errors import ExternalPlatformError

settings = get_settings()
logger = logging.getLogger(__name__)

DRAFT_ORDER_CREATE = """
mutation draftOrderCreate($input: DraftOrderInput!) {
    draftOrderCreate(input: $input) {
        draftOrder {
            id
            name
            invoiceUrl
            status
        }
        userErrors {
            field
            message
        }
    }
}
"""


class DraftOrder(SQLModel):
    id: str
    name: str
    invoice_url: str
    status: str | None = None


class ShopifyAdminClient:
    """
    Minimal Admin GraphQL client for one shop.

    Only draft order creation is needed: the draft hosts the checkout where
    the partial COD advance is paid.
    """

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: str | None = None,
        timeout: float | None = None,
    ):
        self.shop_domain = shop_domain
        self.access_token = access_token
        self.api_version = api_version or settings.SHOPIFY_API_VERSION
        self.timeout = timeout or settings.SHOPIFY_HTTP_TIMEOUT

    @property
    def graphql_url(self) -> str:
        return f"https://{self.shop_domain}/admin/api/{self.api_version}/graphql.json"

    def graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """
        POST a GraphQL document and return the decoded body.

        Raises:
            ExternalPlatformError: transport failure, non-2xx status, or
                top-level GraphQL errors.
        """
        try:
            response = requests.post(
                self.graphql_url,
                json={"query": query, "variables": variables},
                headers={
                    "X-Shopify-Access-Token": self.access_token,
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as exc:
            logger.error("Shopify request to %s failed: %s", self.shop_domain, exc)
            raise ExternalPlatformError("Could not reach Shopify") from exc
        except ValueError as exc:
            raise ExternalPlatformError("Invalid response from Shopify") from exc

        errors = body.get("errors")
        if errors:
            if isinstance(errors, list):
                message = ", ".join(str(e.get("message", e)) for e in errors)
            else:
                message = str(errors)
            raise ExternalPlatformError(message)

        return body

    def create_draft_order(self, draft_input: dict[str, Any]) -> DraftOrder:
        """
        Create a draft order and return its id, name and invoice URL.

        Raises:
            ExternalPlatformError: the platform rejected the draft
                (user_error=True, messages joined with ", ") or returned
                nothing.
        """
        body = self.graphql(DRAFT_ORDER_CREATE, {"input": draft_input})
        result = (body.get("data") or {}).get("draftOrderCreate") or {}

        user_errors = result.get("userErrors") or []
        if user_errors:
            message = ", ".join(e.get("message", "") for e in user_errors)
            logger.warning("Draft order rejected for %s: %s", self.shop_domain, message)
            raise ExternalPlatformError(message, user_error=True)

        draft = result.get("draftOrder")
        if not draft:
            raise ExternalPlatformError("Failed to create draft order")

        return DraftOrder(
            id=draft["id"],
            name=draft["name"],
            invoice_url=draft["invoiceUrl"],
            status=draft.get("status"),
        )

# cod_intake/schemas/order.py
import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from sqlmodel import SQLModel

OrderStatus = Literal[
    "pending",
    "confirmed",
    "shipped",
    "delivered",
    "returned",
    "cancelled",
]


class StorefrontModel(BaseModel):
    """
    Base for payloads exchanged with the storefront widget.

    The widget speaks camelCase (customerName, variantId, ...); Python code
    uses snake_case attribute names.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class OrderSubmission(StorefrontModel):
    """
    Raw "buy now, pay on delivery" form submission.

    Everything is accepted leniently here (free text, optional numbers) so
    the validation gate can report a single human-readable message instead
    of a schema error dump. Immutable once received.
    """

    model_config = ConfigDict(frozen=True)

    shop: str = ""

    customer_name: str = ""
    customer_phone: str = ""
    customer_address: str = ""
    customer_email: str = ""
    customer_city: str = ""
    customer_state: str = ""
    customer_zipcode: str = ""
    notes: str = ""

    product_id: str = ""
    variant_id: str = ""
    product_title: str = ""
    quantity: int | None = None
    price: float | None = None

    shipping_label: str = ""
    shipping_price: float = 0

    # Partial COD only
    payment_method: str = ""
    advance_amount: float | None = None

    @field_validator(
        "shop",
        "customer_name",
        "customer_phone",
        "customer_address",
        "customer_email",
        "customer_city",
        "customer_state",
        "customer_zipcode",
        "notes",
        "product_id",
        "variant_id",
        "product_title",
        "shipping_label",
        "payment_method",
        mode="before",
    )
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        # widget sends ids as numbers and omitted fields as null
        if v is None:
            return ""
        return str(v)

    @field_validator("shipping_price", mode="before")
    @classmethod
    def default_shipping(cls, v: Any) -> Any:
        if v is None or v == "":
            return 0
        return v

    @field_validator("quantity", "price", "advance_amount", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if v == "":
            return None
        return v

    @property
    def wants_partial_cod(self) -> bool:
        return self.payment_method == "partial_cod" or (
            self.advance_amount is not None and self.advance_amount > 0
        )


class OrderCreated(StorefrontModel):
    """
    Acknowledgement returned to the storefront after a COD order is stored.
    """

    success: bool = True
    order_id: uuid.UUID
    order_name: str
    message: str = "Order placed successfully!"


class OrderRead(SQLModel):
    """
    Merchant dashboard view of an order.
    """

    id: uuid.UUID
    shop_domain: str
    order_name: str
    customer_name: str
    customer_phone: str
    customer_address: str
    customer_email: str
    city: str
    state: str
    pincode: str
    notes: str
    product_id: str
    product_title: str
    variant_id: str
    quantity: int
    total_price: float
    shipping_price: float
    currency: str
    status: OrderStatus
    is_partial_cod: bool
    advance_amount: float | None
    remaining_amount: float | None
    draft_order_id: str | None
    draft_order_name: str | None
    advance_paid: bool
    shopify_order_id: str | None
    shopify_order_name: str | None
    created_at: datetime
    updated_at: datetime


class OrderStatusUpdate(SQLModel):
    """
    Merchant payload to change order status.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus


class PartialCodSplit(StorefrontModel):
    """
    How a partial COD sale is divided between online advance and delivery.
    """

    total_order_value: float
    advance_amount: float
    remaining_amount: float


class PartialCheckoutResult(StorefrontModel):
    """
    Returned to the storefront; the widget redirects to checkout_url so the
    customer can pay the advance.
    """

    success: bool = True
    checkout_url: str
    draft_order_id: str
    draft_order_name: str
    order_id: uuid.UUID
    order_name: str
    total_order_value: float
    advance_amount: float
    remaining_amount: float

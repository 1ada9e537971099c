# cod_intake/schemas/webhook.py
from typing import Any

from pydantic import Field, field_validator
from sqlmodel import SQLModel


class WebhookDelivery(SQLModel):
    """
    A verified webhook: who sent it, which topic, and the decoded body.
    """

    shop_domain: str
    topic: str
    payload: dict[str, Any]


class NoteAttribute(SQLModel):
    name: str
    value: str = ""

    @field_validator("value", mode="before")
    @classmethod
    def coerce_value(cls, v: Any) -> str:
        return "" if v is None else str(v)


class WebhookCustomer(SQLModel):
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None


class WebhookAddress(SQLModel):
    name: str | None = None
    address1: str | None = None
    address2: str | None = None
    city: str | None = None
    province: str | None = None
    zip: str | None = None
    phone: str | None = None


class WebhookLineItem(SQLModel):
    title: str | None = None
    product_id: int | str | None = None
    variant_id: int | str | None = None


class ShopifyOrderPayload(SQLModel):
    """
    The parts of an orders/create payload that reconciliation reads.

    The draft order's customAttributes arrive here as note_attributes.
    """

    id: int | str | None = None
    name: str = ""
    note: str | None = None
    note_attributes: list[NoteAttribute] = Field(default_factory=list)
    customer: WebhookCustomer | None = None
    shipping_address: WebhookAddress | None = None
    line_items: list[WebhookLineItem] = Field(default_factory=list)

    def attribute(self, key: str) -> str:
        for attr in self.note_attributes:
            if attr.name == key:
                return attr.value
        return ""

    @property
    def is_partial_cod(self) -> bool:
        return self.attribute("partial_cod") == "true"

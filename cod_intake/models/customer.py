# cod_intake/models/customer.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class Customer(SQLModel, table=True):
    """
    Autofill directory of returning customers.

    One row per (shop_domain, phone), overwritten on every order that
    carries a phone number (last write wins). Not a source of truth for
    anything other than autofill.
    """

    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("shop_domain", "phone", name="uq_customers_shop_phone"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
    )

    shop_domain: str = Field(index=True, max_length=255)
    phone: str = Field(max_length=50)

    name: str = Field(default="")
    address: str = Field(default="")
    city: str = Field(default="")
    state: str = Field(default="")
    zipcode: str = Field(default="")
    email: str = Field(default="")

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
    )

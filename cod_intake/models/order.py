# cod_intake/models/order.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class OrderLog(SQLModel, table=True):
    """
    COD order captured from the storefront form.

    This is the primary order record; rows are never deleted, only moved
    through the status lifecycle:

      pending -> confirmed -> shipped -> delivered
      pending -> cancelled
      pending | confirmed | shipped -> returned
    """

    __tablename__ = "order_logs"
    __table_args__ = (
        UniqueConstraint("shop_domain", "order_name", name="uq_order_logs_shop_order_name"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    shop_domain: str = Field(index=True, max_length=255)

    # e.g. COD-1001, assigned by the order sequencer
    order_name: str = Field(max_length=255)

    customer_name: str = Field(default="")
    customer_phone: str = Field(default="", index=True, max_length=50)
    customer_address: str = Field(default="")
    customer_email: str = Field(default="")
    city: str = Field(default="")
    state: str = Field(default="")
    pincode: str = Field(default="")
    notes: str = Field(default="")

    product_id: str = Field(max_length=255)
    product_title: str = Field(default="", max_length=255)
    variant_id: str = Field(default="", max_length=255)
    quantity: int = Field(default=1, gt=0)

    total_price: float = Field(
        description="Order value (unit price * quantity, plus shipping for partial COD)",
    )
    shipping_label: str = Field(default="")
    shipping_price: float = Field(default=0)
    currency: str = Field(default="INR", max_length=10)

    # pending | confirmed | shipped | delivered | returned | cancelled
    status: str = Field(
        default="pending",
        index=True,
        description="Order status lifecycle",
    )

    # Partial COD tracking
    is_partial_cod: bool = Field(default=False, index=True)
    advance_amount: float | None = Field(
        default=None,
        description="Amount collected online via the draft order checkout",
    )
    remaining_amount: float | None = Field(
        default=None,
        description="Amount to collect on delivery",
    )
    draft_order_id: str | None = None
    draft_order_name: str | None = None
    checkout_url: str | None = None

    # Set by the orders/create webhook once the advance checkout is paid
    advance_paid: bool = Field(default=False)
    shopify_order_id: str | None = Field(default=None, max_length=255)
    shopify_order_name: str | None = Field(default=None, max_length=255)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
        description="Creation timestamp (UTC)",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class ShopOrderCounter(SQLModel, table=True):
    """
    Per-shop order number sequence.

    next_number is handed out with an atomic UPDATE ... RETURNING so two
    concurrent submissions never read the same value.
    """

    __tablename__ = "shop_order_counters"

    shop_domain: str = Field(primary_key=True, max_length=255)
    next_number: int

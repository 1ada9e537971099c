# cod_intake/models/shop.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field

DEFAULT_REQUIRED_FIELDS = ["name", "phone", "address"]


class Shop(SQLModel, table=True):
    """
    Merchant store that installed the app.

    The offline access token saved at install time is what the draft-order
    client authenticates with once a request has been verified.
    """

    __tablename__ = "shops"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
    )

    shop_domain: str = Field(
        unique=True,
        index=True,
        max_length=255,
        description="e.g. my-store.myshopify.com",
    )

    access_token: str = Field(
        description="Offline Admin API access token",
    )
    scope: str | None = None

    installed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    uninstalled_at: datetime | None = Field(
        default=None,
        description="Set by the app/uninstalled webhook",
    )


class FormSettings(SQLModel, table=True):
    """
    Per-shop COD form configuration.

    Only the fields the intake pipeline reads are mirrored here; styling
    lives with the storefront widget.
    """

    __tablename__ = "form_settings"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
    )

    shop_domain: str = Field(
        unique=True,
        index=True,
        max_length=255,
    )

    enabled: bool = Field(default=False)

    # subset of {"name", "phone", "address"}
    required_fields: list[str] = Field(
        default_factory=lambda: list(DEFAULT_REQUIRED_FIELDS),
        sa_column=Column(JSON, nullable=False),
    )

    max_quantity: int = Field(default=10)

    partial_cod_enabled: bool = Field(default=False)
    partial_cod_advance_amount: float = Field(
        default=100,
        description="Fixed advance the customer pays online",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

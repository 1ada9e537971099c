# cod_intake/schemas/shop.py
from sqlmodel import SQLModel, Field

from cod_intake.models.shop import DEFAULT_REQUIRED_FIELDS, FormSettings

DEFAULT_MAX_QUANTITY = 10


class ValidationPolicy(SQLModel):
    """
    Per-shop submission rules, derived from the shop's form settings.
    """

    required_fields: frozenset[str] = Field(
        default_factory=lambda: frozenset(DEFAULT_REQUIRED_FIELDS),
    )
    max_quantity: int = DEFAULT_MAX_QUANTITY

    partial_cod_enabled: bool = False
    # advance the widget must send; None accepts any positive amount
    partial_cod_advance_amount: float | None = None

    @classmethod
    def from_form_settings(cls, settings: FormSettings | None) -> "ValidationPolicy":
        """
        Missing settings, an empty required list or a zero max quantity fall
        back to the defaults (name/phone/address required, max 10).
        """
        if settings is None:
            return cls()

        required = settings.required_fields or DEFAULT_REQUIRED_FIELDS
        return cls(
            required_fields=frozenset(required),
            max_quantity=settings.max_quantity or DEFAULT_MAX_QUANTITY,
            partial_cod_enabled=settings.partial_cod_enabled,
            partial_cod_advance_amount=settings.partial_cod_advance_amount or None,
        )

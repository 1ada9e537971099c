# cod_intake/schemas/pricing.py
from pydantic import Field

from cod_intake.schemas.order import StorefrontModel


class PriceCalculation(StorefrontModel):
    """
    Bundle price breakdown. Monetary fields and the percent are rounded to
    2 decimals; discount_percent is 0-100.
    """

    original: float
    discounted: float
    savings: float
    discount_percent: float


class BundleOffer(StorefrontModel):
    """
    One quantity tier of a bundle ("Buy 2, save 10%").
    """

    quantity: int = Field(ge=0)
    discount_percent: float | None = Field(default=None, ge=0, le=100)
    discount_fixed: float | None = Field(default=None, ge=0)
    price: float | None = None  # pre-calculated price from older offer configs


class BundleOfferPrice(BundleOffer, PriceCalculation):
    price_per_unit: float = 0
    formatted_original: str = ""
    formatted_discounted: str = ""


class BundlePriceRequest(StorefrontModel):
    base_price: float = Field(ge=0)
    offers: list[BundleOffer]
    currency_symbol: str = "₹"

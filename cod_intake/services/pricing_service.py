# cod_intake/services/pricing_service.py
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from cod_intake.schemas.pricing import BundleOffer, BundleOfferPrice, PriceCalculation

_CENTS = Decimal("0.01")


def round_money(value: float) -> float:
    """Round half-up to 2 decimals (2.675 -> 2.68, unlike round())."""
    return float(Decimal(repr(value)).quantize(_CENTS, rounding=ROUND_HALF_UP))


def calculate_bundle_price(
    base_price: float,
    quantity: int,
    discount_percent: float | None = None,
    discount_fixed: float | None = None,
) -> PriceCalculation:
    """
    Price a bundle of ``quantity`` units.

    - A positive percent discount takes that share off the original,
      at most 100%.
    - A positive fixed discount overrides the percent one; it is capped at
      the original amount and the effective percent is back-computed.

    Zero price or quantity gives an all-zero result. Never raises.
    """
    original = (base_price or 0) * (quantity or 0)

    discounted = original
    savings = 0.0
    effective_percent = 0.0

    if discount_percent and discount_percent > 0:
        # more than 100% off is capped at the full amount
        effective_percent = min(discount_percent, 100)
        savings = original * (effective_percent / 100)
        discounted = original - savings

    if discount_fixed and discount_fixed > 0:
        savings = min(discount_fixed, original)
        discounted = original - savings
        effective_percent = (savings / original) * 100 if original else 0.0

    if original <= 0:
        return PriceCalculation(original=0, discounted=0, savings=0, discount_percent=0)

    return PriceCalculation(
        original=round_money(original),
        discounted=round_money(discounted),
        savings=round_money(savings),
        discount_percent=round_money(effective_percent),
    )


def calculate_price_per_unit(total_price: float, quantity: int) -> float:
    if quantity == 0:
        return 0.0
    return round_money(total_price / quantity)


def calculate_offer_prices(
    base_price: float,
    offers: Iterable[BundleOffer],
    currency_symbol: str = "₹",
) -> list[BundleOfferPrice]:
    """Attach a price breakdown, per-unit price and display strings to every bundle offer tier."""
    priced: list[BundleOfferPrice] = []
    for offer in offers:
        calc = calculate_bundle_price(
            base_price,
            offer.quantity,
            offer.discount_percent,
            offer.discount_fixed,
        )
        # the effective discount_percent replaces the configured one
        priced.append(
            BundleOfferPrice(
                **{**offer.model_dump(), **calc.model_dump()},
                price_per_unit=calculate_price_per_unit(calc.discounted, offer.quantity),
                formatted_original=format_price(calc.original, currency_symbol),
                formatted_discounted=format_price(calc.discounted, currency_symbol),
            )
        )
    return priced


def format_price(price: float, currency_symbol: str = "₹") -> str:
    """
    Format with Indian digit grouping and at most two decimals:
    1234567.5 -> "₹12,34,567.5"
    """
    amount = Decimal(repr(price)).quantize(_CENTS, rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    whole, _, fraction = f"{abs(amount):.2f}".partition(".")
    fraction = fraction.rstrip("0")

    # last three digits, then groups of two
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])

    text = f"{whole}.{fraction}" if fraction else whole
    return f"{sign}{currency_symbol}{text}"

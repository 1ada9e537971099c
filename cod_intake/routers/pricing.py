# cod_intake/routers/pricing.py
from fastapi import APIRouter

from cod_intake.schemas.pricing import BundleOfferPrice, BundlePriceRequest
from cod_intake.services.pricing_service import calculate_offer_prices

router = APIRouter(prefix="/pricing", tags=["Pricing"])


@router.post("/bundle", response_model=list[BundleOfferPrice])
def price_bundle_offers(payload: BundlePriceRequest):
    """
    Price every quantity tier of a bundle offer for the storefront widget.
    """
    return calculate_offer_prices(payload.base_price, payload.offers, payload.currency_symbol)

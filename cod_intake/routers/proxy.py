# cod_intake/routers/proxy.py
import logging

from fastapi import APIRouter, Depends, Request
from sqlmodel import Session

from cod_intake.database import get_session
from cod_intake.routers.customers import lookup_response
from cod_intake.routers.orders import service as order_service
from cod_intake.routers.partial_cod import service as partial_cod_service
from cod_intake.schemas.order import OrderCreated, OrderSubmission

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/proxy", tags=["App Proxy"])

PARTIAL_COD_PATH_MARKERS = ("partial-cod", "create-checkout")


def is_partial_cod_request(path: str, payload: OrderSubmission) -> bool:
    """
    A request is partial COD if its path says so, or the payload asks for
    it (paymentMethod == "partial_cod" or a positive advanceAmount).
    """
    return any(marker in path for marker in PARTIAL_COD_PATH_MARKERS) or payload.wants_partial_cod


@router.get("/{path:path}")
def proxy_get(
    path: str,
    shop: str = "",
    phone: str = "",
    session: Session = Depends(get_session),
):
    """
    Storefront GETs through the app proxy.

    ``.../customer-by-phone`` runs the autofill lookup; anything else is a
    liveness check.
    """
    if path.endswith("customer-by-phone") and phone and shop:
        return lookup_response(session, phone, shop)

    return {"success": True, "message": "COD app proxy is working", "shop": shop}


@router.post("/{path:path}")
def proxy_post(
    path: str,
    payload: OrderSubmission,
    request: Request,
    session: Session = Depends(get_session),
):
    """
    Storefront order submissions through the app proxy, dispatched to
    partial COD checkout or a regular COD order.
    """
    if is_partial_cod_request(path, payload):
        logger.info("Proxy %s routed to partial COD for %s", path, payload.shop)
        result = partial_cod_service.create_partial_checkout(session, request, payload)
        return result.model_dump(by_alias=True, mode="json")

    order = order_service.create_order(session, payload)
    return OrderCreated(order_id=order.id, order_name=order.order_name).model_dump(
        by_alias=True,
        mode="json",
    )

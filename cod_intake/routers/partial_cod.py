# cod_intake/routers/partial_cod.py
from fastapi import APIRouter, Depends, Request
from sqlmodel import Session

from cod_intake.core.auth import authenticate_shopify_admin
from cod_intake.database import get_session
from cod_intake.routers.orders import region, service as order_service
from cod_intake.schemas.order import OrderSubmission, PartialCheckoutResult
from cod_intake.services.partial_cod_service import PartialCodService

router = APIRouter(prefix="/partial-cod", tags=["Partial COD"])

service = PartialCodService(order_service, region, authenticate_shopify_admin)


@router.post("/checkout", response_model=PartialCheckoutResult)
def create_checkout(
    payload: OrderSubmission,
    request: Request,
    session: Session = Depends(get_session),
):
    """
    Create the advance-payment checkout for a partial COD order.

    The storefront redirects the customer to ``checkoutUrl``; the
    ``remainingAmount`` is collected on delivery.
    """
    return service.create_partial_checkout(session, request, payload)

# cod_intake/routers/customers.py
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlmodel import Session

from cod_intake.core.errors import OrderValidationError
from cod_intake.database import get_session
from cod_intake.routers.orders import customer_service
from cod_intake.schemas.customer import CustomerLookupResult

router = APIRouter(prefix="/customers", tags=["Customers"])


def lookup_response(session: Session, phone: str, shop: str) -> JSONResponse:
    """Shared by this router and the app proxy; omits fields that are None."""
    try:
        result = customer_service.lookup(session, phone, shop)
    except OrderValidationError as exc:
        return JSONResponse(
            status_code=400,
            content={"found": False, "error": exc.message},
        )
    return JSONResponse(content=result.model_dump(exclude_none=True))


@router.get(
    "/by-phone",
    response_model=CustomerLookupResult,
    response_model_exclude_none=True,
)
def customer_by_phone(
    phone: str = "",
    shop: str = "",
    session: Session = Depends(get_session),
):
    """
    Autofill lookup for a returning customer.

    Always answers found/not-found; store problems degrade to not-found.
    """
    return lookup_response(session, phone, shop)

# cod_intake/routers/orders.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from cod_intake.core.auth import require_merchant
from cod_intake.core.config import get_settings
from cod_intake.database import get_session
from cod_intake.repositories.customer_repo import CustomerRepository
from cod_intake.repositories.order_repo import OrderRepository
from cod_intake.repositories.shop_repo import ShopRepository
from cod_intake.schemas.order import (
    OrderCreated,
    OrderRead,
    OrderStatus,
    OrderStatusUpdate,
    OrderSubmission,
)
from cod_intake.schemas.address import RegionDefaults
from cod_intake.services.customer_service import CustomerService
from cod_intake.services.order_service import OrderService
from cod_intake.services.sequence_service import OrderSequencer

settings = get_settings()

router = APIRouter(prefix="/orders", tags=["Orders"])

order_repo = OrderRepository()
shop_repo = ShopRepository()
customer_repo = CustomerRepository()
region = RegionDefaults.from_settings(settings)
customer_service = CustomerService(customer_repo, order_repo, settings.CUSTOMER_SCAN_WINDOW)
sequencer = OrderSequencer(
    order_repo,
    prefix=settings.ORDER_NAME_PREFIX,
    base=settings.ORDER_NUMBER_BASE,
    max_attempts=settings.ORDER_NAME_MAX_ATTEMPTS,
)
service = OrderService(
    order_repo,
    shop_repo,
    customer_service,
    sequencer,
    region,
    currency=settings.DEFAULT_CURRENCY,
)


# -------- Storefront endpoints --------


@router.post("", response_model=OrderCreated)
def create_order(
    payload: OrderSubmission,
    session: Session = Depends(get_session),
):
    """
    Capture a COD order from the storefront form.

    No authentication: the widget runs on the merchant's public storefront.
    """
    order = service.create_order(session, payload)
    return OrderCreated(order_id=order.id, order_name=order.order_name)


# -------- Merchant endpoints --------


@router.get("", response_model=list[OrderRead])
def list_orders(
    session: Session = Depends(get_session),
    shop_domain: str = Depends(require_merchant),
    status: OrderStatus | None = None,
    skip: int = 0,
    limit: int = 50,
):
    """
    List the merchant's orders, newest first, optionally by status.
    """
    return service.list_orders(session, shop_domain, status, skip, limit)


@router.patch("/{order_id}/status", response_model=OrderRead)
def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    session: Session = Depends(get_session),
    shop_domain: str = Depends(require_merchant),
):
    """
    Update order status with the lifecycle state machine.

      pending   -> confirmed, cancelled, returned

      confirmed -> shipped, returned

      shipped   -> delivered, returned

      delivered / cancelled / returned -> (no change)

    """
    return service.update_status(session, shop_domain, order_id, payload.status)

# cod_intake/routers/webhooks.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from cod_intake.core.auth import verify_shopify_webhook
from cod_intake.core.config import get_settings
from cod_intake.database import get_session
from cod_intake.routers.orders import order_repo, sequencer, shop_repo
from cod_intake.schemas.webhook import ShopifyOrderPayload, WebhookDelivery
from cod_intake.services.webhook_service import WebhookService

settings = get_settings()

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

service = WebhookService(
    shop_repo,
    order_repo,
    sequencer,
    currency=settings.DEFAULT_CURRENCY,
    scan_window=settings.CUSTOMER_SCAN_WINDOW,
)


@router.post("/app/uninstalled")
def app_uninstalled(
    delivery: WebhookDelivery = Depends(verify_shopify_webhook),
    session: Session = Depends(get_session),
):
    """Keep the shop's orders but stop serving it."""
    service.app_uninstalled(session, delivery.shop_domain)
    return {"success": True}


@router.post("/orders/create")
def orders_create(
    delivery: WebhookDelivery = Depends(verify_shopify_webhook),
    session: Session = Depends(get_session),
):
    """
    A platform order was created. For partial COD orders this means the
    advance checkout was paid.
    """
    payload = ShopifyOrderPayload.model_validate(delivery.payload)
    order = service.reconcile_paid_order(session, delivery.shop_domain, payload)
    if order is None:
        return {"success": True, "skipped": True}
    return {"success": True, "orderName": order.order_name}

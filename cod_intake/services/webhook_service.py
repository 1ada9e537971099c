# cod_intake/services/webhook_service.py
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from cod_intake.core.errors import StoreFailure
from cod_intake.models.order import OrderLog
from cod_intake.repositories.order_repo import OrderRepository
from cod_intake.repositories.shop_repo import ShopRepository
from cod_intake.schemas.webhook import (
    ShopifyOrderPayload,
    WebhookAddress,
    WebhookCustomer,
    WebhookLineItem,
)
from cod_intake.services.customer_service import normalize_phone, phones_match
from cod_intake.services.sequence_service import OrderSequencer

logger = logging.getLogger(__name__)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _same_variant(stored: str, incoming: str) -> bool:
    """Variant ids may arrive as GIDs or as bare numeric ids."""
    return stored.rsplit("/", 1)[-1] == incoming.rsplit("/", 1)[-1]


def _to_float(value: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _to_int(value: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class WebhookService:
    """
    Handles platform webhooks.

    Responsibilities:
      - app/uninstalled: stamp the shop as uninstalled (data is kept)
      - orders/create: when the advance checkout of a partial COD order is
        paid, mark the matching order log entry as paid, or log a new
        entry when no checkout entry can be found

    Store failures propagate so the platform redelivers the webhook.
    """

    def __init__(
        self,
        shop_repo: ShopRepository,
        order_repo: OrderRepository,
        sequencer: OrderSequencer,
        currency: str = "INR",
        scan_window: int = 50,
    ):
        self.shop_repo = shop_repo
        self.order_repo = order_repo
        self.sequencer = sequencer
        self.currency = currency
        self.scan_window = scan_window

    def app_uninstalled(self, session: Session, shop_domain: str) -> bool:
        """Returns False when the shop was never installed here."""
        try:
            shop = self.shop_repo.mark_uninstalled(session, shop_domain)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Could not mark %s uninstalled: %s", shop_domain, exc)
            raise StoreFailure("Failed to record uninstall") from exc

        if shop is None:
            logger.info("Uninstall webhook for unknown shop %s", shop_domain)
            return False

        logger.info("Marked %s as uninstalled", shop_domain)
        return True

    def reconcile_paid_order(
        self,
        session: Session,
        shop_domain: str,
        payload: ShopifyOrderPayload,
    ) -> OrderLog | None:
        """
        Record that a partial COD advance was paid.

        Orders without the ``partial_cod`` note attribute are ignored
        (returns None). Redelivery of the same platform order is a no-op.
        """
        if not payload.is_partial_cod:
            logger.info("Order %s for %s is not partial COD, skipping", payload.name, shop_domain)
            return None

        customer = payload.customer or WebhookCustomer()
        shipping = payload.shipping_address or WebhookAddress()
        line = payload.line_items[0] if payload.line_items else WebhookLineItem()
        platform_order_id = _text(payload.id)
        phone = customer.phone or shipping.phone or ""
        variant_id = payload.attribute("original_variant_id") or _text(line.variant_id)

        try:
            order = self._find_checkout_order(session, shop_domain, platform_order_id, phone, variant_id)
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Could not search partial COD orders for %s: %s", shop_domain, exc)
            raise StoreFailure() from exc

        if order is not None and order.advance_paid:
            return order

        if order is not None:
            order.advance_paid = True
            order.shopify_order_id = platform_order_id
            order.shopify_order_name = payload.name
            order.updated_at = datetime.now(timezone.utc)
            try:
                self.order_repo.update_order(session, order)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("Could not mark %s advance paid: %s", order.order_name, exc)
                raise StoreFailure() from exc
            logger.info(
                "Advance for %s paid via %s (%s)",
                order.order_name,
                payload.name,
                shop_domain,
            )
            return order

        logger.info("No checkout entry for %s on %s, logging from webhook", payload.name, shop_domain)
        order = self._order_from_payload(shop_domain, payload, customer, shipping, line, phone, variant_id)
        return self.sequencer.insert_with_name(session, order)

    # ---- internal helpers ----

    def _find_checkout_order(
        self,
        session: Session,
        shop_domain: str,
        platform_order_id: str,
        phone: str,
        variant_id: str,
    ) -> OrderLog | None:
        if platform_order_id:
            existing = self.order_repo.get_by_shopify_order_id(session, shop_domain, platform_order_id)
            if existing is not None:
                return existing

        normalized = normalize_phone(phone)
        for row in self.order_repo.recent_unpaid_partial(session, shop_domain, self.scan_window):
            if variant_id and not _same_variant(row.variant_id, variant_id):
                continue
            if normalized and not phones_match(row.customer_phone, normalized):
                continue
            return row
        return None

    def _order_from_payload(
        self,
        shop_domain: str,
        payload: ShopifyOrderPayload,
        customer: WebhookCustomer,
        shipping: WebhookAddress,
        line: WebhookLineItem,
        phone: str,
        variant_id: str,
    ) -> OrderLog:
        attr = payload.attribute
        quantity = _to_int(attr("original_quantity")) or 1
        price = _to_float(attr("original_price"))
        full_name = f"{customer.first_name or ''} {customer.last_name or ''}".strip()
        street = f"{shipping.address1 or ''} {shipping.address2 or ''}".strip()

        return OrderLog(
            shop_domain=shop_domain,
            order_name="",
            customer_name=attr("customer_name") or full_name or shipping.name or "Customer",
            customer_phone=phone,
            customer_address=attr("customer_address") or street,
            customer_email=customer.email or "",
            city=attr("customer_city") or shipping.city or "",
            state=attr("customer_state") or shipping.province or "",
            pincode=attr("customer_zipcode") or shipping.zip or "",
            notes=payload.note or "",
            product_id=attr("original_product_id") or _text(line.product_id),
            product_title=line.title or "Advance Payment",
            variant_id=variant_id,
            quantity=quantity,
            total_price=_to_float(attr("total_order_value")) or price * quantity,
            currency=self.currency,
            status="pending",
            is_partial_cod=True,
            advance_amount=_to_float(attr("advance_amount")),
            remaining_amount=_to_float(attr("remaining_amount")),
            advance_paid=True,
            shopify_order_id=_text(payload.id) or None,
            shopify_order_name=payload.name or None,
        )

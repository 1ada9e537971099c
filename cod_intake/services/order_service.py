# cod_intake/services/order_service.py
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from cod_intake.core.errors import (
    FormDisabledError,
    InvalidStatusTransitionError,
    OrderNotFoundError,
    OrderValidationError,
    ShopNotFoundError,
    StoreFailure,
)
from cod_intake.models.order import OrderLog
from cod_intake.models.shop import FormSettings
from cod_intake.repositories.order_repo import OrderRepository
from cod_intake.repositories.shop_repo import ShopRepository
from cod_intake.schemas.address import RegionDefaults
from cod_intake.schemas.order import OrderSubmission
from cod_intake.schemas.shop import ValidationPolicy
from cod_intake.services.address_service import parse_address
from cod_intake.services.customer_service import CustomerService
from cod_intake.services.sequence_service import OrderSequencer
from cod_intake.services.validation import validate_submission

logger = logging.getLogger(__name__)

# Merchant-driven lifecycle; delivered / cancelled / returned are terminal
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"confirmed", "cancelled", "returned"},
    "confirmed": {"shipped", "returned"},
    "shipped": {"delivered", "returned"},
    "delivered": set(),
    "cancelled": set(),
    "returned": set(),
}


class OrderService:
    """
    Business logic for standard COD orders.

    Responsibilities:
      - check the shop is installed and its COD form enabled
      - validate the submission against the shop's policy
      - enrich city/state/pincode from the free-text address
      - remember the customer for autofill (best-effort)
      - persist the order under a sequenced name, status 'pending'
      - merchant status transitions and listing
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        shop_repo: ShopRepository,
        customer_service: CustomerService,
        sequencer: OrderSequencer,
        region: RegionDefaults,
        currency: str = "INR",
    ):
        self.order_repo = order_repo
        self.shop_repo = shop_repo
        self.customer_service = customer_service
        self.sequencer = sequencer
        self.region = region
        self.currency = currency

    # -------- Storefront operations --------

    def load_policy(self, session: Session, shop_domain: str) -> ValidationPolicy:
        """
        Resolve the shop's validation policy.

        Raises:
            OrderValidationError: no shop given.
            ShopNotFoundError: unknown or uninstalled shop.
            FormDisabledError: COD form switched off.
            StoreFailure: shop data could not be read.
        """
        if not shop_domain:
            raise OrderValidationError("Shop domain is required")

        try:
            shop = self.shop_repo.get_installed(session, shop_domain)
            form_settings: FormSettings | None = None
            if shop is not None:
                form_settings = self.shop_repo.get_form_settings(session, shop_domain)
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Could not load shop %s: %s", shop_domain, exc)
            raise StoreFailure() from exc

        if shop is None:
            raise ShopNotFoundError(shop_domain)
        if form_settings is None or not form_settings.enabled:
            raise FormDisabledError(shop_domain)

        return ValidationPolicy.from_form_settings(form_settings)

    def check_submission(self, session: Session, submission: OrderSubmission) -> ValidationPolicy:
        """Validate against the shop's policy and return that policy."""
        policy = self.load_policy(session, submission.shop)
        error = validate_submission(submission, policy)
        if error:
            raise OrderValidationError(error)
        return policy

    def create_order(self, session: Session, submission: OrderSubmission) -> OrderLog:
        """
        Capture a standard COD order.

        Steps:
          1. Shop / form checks and validation (fail-fast).
          2. Parse the address to fill missing city/state/pincode.
          3. Upsert the customer directory (never blocks the order).
          4. Insert the order with the next order name, status 'pending'.

        Raises:
            OrderValidationError / ShopNotFoundError / FormDisabledError
            StoreFailure: the order could not be persisted.
        """
        logger.info("Order received for %s: %s", submission.shop, submission.product_title)
        self.check_submission(session, submission)

        city = submission.customer_city
        state = submission.customer_state
        pincode = submission.customer_zipcode
        if submission.customer_address.strip():
            parsed = parse_address(submission.customer_address, self.region)
            city = city or parsed.city
            state = state or parsed.province
            pincode = pincode or parsed.postal_code

        self.customer_service.remember_customer(session, submission, city, state, pincode)

        order = OrderLog(
            shop_domain=submission.shop,
            order_name="",
            customer_name=submission.customer_name.strip(),
            customer_phone=submission.customer_phone.strip(),
            customer_address=submission.customer_address.strip(),
            customer_email=submission.customer_email.strip(),
            city=city,
            state=state,
            pincode=pincode,
            notes=submission.notes,
            product_id=submission.product_id,
            product_title=submission.product_title,
            variant_id=submission.variant_id,
            quantity=submission.quantity,
            total_price=submission.price * submission.quantity,
            shipping_label=submission.shipping_label,
            shipping_price=submission.shipping_price,
            currency=self.currency,
            status="pending",
        )
        order = self.sequencer.insert_with_name(session, order)

        logger.info("Order %s created for %s", order.order_name, order.shop_domain)
        return order

    # -------- Merchant operations --------

    def list_orders(
        self,
        session: Session,
        shop_domain: str,
        status: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderLog]:
        return self.order_repo.list_for_shop(session, shop_domain, status, skip, limit)

    def update_status(
        self,
        session: Session,
        shop_domain: str,
        order_id: uuid.UUID,
        new_status: str,
    ) -> OrderLog:
        """
        Move an order along its lifecycle:

          pending   -> confirmed, cancelled, returned
          confirmed -> shipped, returned
          shipped   -> delivered, returned
          delivered / cancelled / returned -> (terminal)

        Setting the current status again is a no-op.
        """
        order = self.order_repo.get_by_id(session, order_id)
        if not order or order.shop_domain != shop_domain:
            raise OrderNotFoundError(order_id)

        current = order.status
        if current == new_status:
            return order

        if new_status not in ALLOWED_TRANSITIONS.get(current, set()):
            raise InvalidStatusTransitionError(current, new_status)

        order.status = new_status
        order.updated_at = datetime.now(timezone.utc)
        try:
            self.order_repo.update_order(session, order)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Could not update order %s: %s", order_id, exc)
            raise StoreFailure("Failed to update order status") from exc

        session.refresh(order)
        logger.info("Order %s moved %s -> %s", order.order_name, current, new_status)
        return order

# cod_intake/services/partial_cod_service.py
import logging
from typing import Any, Callable

from fastapi import Request
from sqlmodel import Session

from cod_intake.core.errors import (
    AuthenticationFailed,
    FormDisabledError,
    OrderValidationError,
    StoreFailure,
)
from cod_intake.core.shopify_client import DraftOrder, ShopifyAdminClient
from cod_intake.models.order import OrderLog
from cod_intake.schemas.address import RegionDefaults
from cod_intake.schemas.order import (
    OrderSubmission,
    PartialCheckoutResult,
    PartialCodSplit,
)
from cod_intake.schemas.shop import ValidationPolicy
from cod_intake.services.address_service import parse_address
from cod_intake.services.order_service import OrderService
from cod_intake.services.pricing_service import round_money

logger = logging.getLogger(__name__)

Authenticator = Callable[[Request, Session], ShopifyAdminClient]

PARTIAL_COD_TAGS = ["partial-cod", "advance-payment"]


def split_partial_payment(
    unit_price: float,
    quantity: int,
    advance_amount: float,
    shipping_price: float = 0,
) -> PartialCodSplit:
    """
    Divide an order between the online advance and the COD remainder.

        total     = unit_price * quantity + shipping_price
        remaining = total - advance

    Raises:
        OrderValidationError: an advance that is negative, rounds to zero,
            or is larger than the order total (negative remainder).
    """
    total = round_money(unit_price * quantity + (shipping_price or 0))
    advance = round_money(advance_amount)
    if advance < 0:
        raise OrderValidationError("Advance amount cannot be negative")
    if advance == 0:
        raise OrderValidationError("Advance amount must be greater than zero")

    remaining = round_money(total - advance)
    if remaining < 0:
        raise OrderValidationError("Advance amount cannot exceed the order total")

    return PartialCodSplit(
        total_order_value=total,
        advance_amount=advance,
        remaining_amount=remaining,
    )


def _format_amount(value: float) -> str:
    return f"{value:.2f}"


class PartialCodService:
    """
    Partial COD: collect a fixed advance online, the rest on delivery.

    The advance is charged through a platform draft order whose single line
    item is priced at the advance. The original product, quantity and the
    remainder ride along as custom attributes so the delivery-side amount
    can be reconciled against the draft later.
    """

    def __init__(
        self,
        order_service: OrderService,
        region: RegionDefaults,
        authenticator: Authenticator,
    ):
        self.order_service = order_service
        self.region = region
        self.authenticator = authenticator

    def create_partial_checkout(
        self,
        session: Session,
        request: Request,
        submission: OrderSubmission,
    ) -> PartialCheckoutResult:
        """
        Create the advance-payment checkout for a partial COD order.

        Steps:
          1. Required fields, shop/form checks, validation, and the
             shop's partial COD toggle and configured advance.
          2. Split total into advance + remaining (rejects negative remainder).
          3. Authenticate against the platform (proxy, then admin).
          4. Create the draft order.
          5. Remember the customer and log the order as partial COD.

        Raises:
            OrderValidationError, ShopNotFoundError
            FormDisabledError: COD form or partial COD switched off.
            AuthenticationFailed: both credential paths failed, or they
                resolved to a different shop.
            ExternalPlatformError: draft order rejected.
            StoreFailure: draft created but the order log could not be saved.
        """
        if not submission.shop or not submission.product_id or not submission.advance_amount:
            raise OrderValidationError("Missing required fields")

        policy = self.order_service.check_submission(session, submission)
        self._check_partial_policy(submission, policy)

        split = split_partial_payment(
            submission.price,
            submission.quantity,
            submission.advance_amount,
            submission.shipping_price,
        )
        logger.info(
            "Partial COD for %s: total=%s advance=%s remaining=%s",
            submission.shop,
            split.total_order_value,
            split.advance_amount,
            split.remaining_amount,
        )

        client = self.authenticator(request, session)
        if client.shop_domain != submission.shop:
            logger.warning(
                "Authenticated shop %s does not match submission shop %s",
                client.shop_domain,
                submission.shop,
            )
            raise AuthenticationFailed()

        draft = client.create_draft_order(self.build_draft_order_input(submission, split))
        logger.info("Draft order %s created for %s", draft.name, submission.shop)

        order = self._log_order(session, submission, split, draft)

        return PartialCheckoutResult(
            checkout_url=draft.invoice_url,
            draft_order_id=draft.id,
            draft_order_name=draft.name,
            order_id=order.id,
            order_name=order.order_name,
            total_order_value=split.total_order_value,
            advance_amount=split.advance_amount,
            remaining_amount=split.remaining_amount,
        )

    def _check_partial_policy(self, submission: OrderSubmission, policy: ValidationPolicy) -> None:
        if not policy.partial_cod_enabled:
            raise FormDisabledError(submission.shop, "Partial COD is not enabled for this shop")

        expected = policy.partial_cod_advance_amount
        if expected is not None and round_money(submission.advance_amount) != round_money(expected):
            logger.warning(
                "Advance %s for %s does not match configured %s",
                submission.advance_amount,
                submission.shop,
                expected,
            )
            raise OrderValidationError("Advance amount does not match the shop's partial COD settings")

    def build_draft_order_input(
        self,
        submission: OrderSubmission,
        split: PartialCodSplit,
    ) -> dict[str, Any]:
        """
        DraftOrderInput for the advance payment.

        Address fields the customer left blank come from the address parser
        (and, through it, the region defaults).
        """
        parsed = parse_address(submission.customer_address, self.region)
        name_parts = submission.customer_name.split()
        first_name = name_parts[0] if name_parts else "Customer"
        last_name = " ".join(name_parts[1:])

        address = {
            "firstName": first_name,
            "lastName": last_name,
            "address1": parsed.address1,
            "city": submission.customer_city or parsed.city,
            "province": submission.customer_state or parsed.province,
            "zip": submission.customer_zipcode or parsed.postal_code,
            "countryCode": self.region.country_code,
            "phone": submission.customer_phone,
        }

        remaining = _format_amount(split.remaining_amount)
        advance = _format_amount(split.advance_amount)
        draft_input: dict[str, Any] = {
            "note": (
                f"PARTIAL COD ORDER | Advance: {advance} | Remaining (COD): {remaining} | "
                f"Original Product: {submission.product_title} (Qty: {submission.quantity})"
            ),
            "tags": list(PARTIAL_COD_TAGS),
            "customAttributes": [
                {"key": "partial_cod", "value": "true"},
                {"key": "advance_amount", "value": advance},
                {"key": "remaining_amount", "value": remaining},
                {"key": "total_order_value", "value": _format_amount(split.total_order_value)},
                {"key": "original_product_id", "value": submission.product_id},
                {"key": "original_variant_id", "value": submission.variant_id},
                {"key": "original_quantity", "value": str(submission.quantity)},
                {"key": "original_price", "value": str(submission.price)},
                {"key": "customer_name", "value": submission.customer_name},
                {"key": "customer_address", "value": submission.customer_address},
                {"key": "customer_city", "value": address["city"]},
                {"key": "customer_state", "value": address["province"]},
                {"key": "customer_zipcode", "value": address["zip"]},
            ],
            "lineItems": [
                {
                    "title": f"Advance Payment for {submission.product_title}",
                    "quantity": 1,
                    "originalUnitPrice": split.advance_amount,
                    "requiresShipping": False,
                    "taxable": False,
                }
            ],
            "shippingAddress": address,
            "billingAddress": dict(address),
        }
        if submission.customer_email:
            draft_input["email"] = submission.customer_email
        if submission.customer_phone:
            draft_input["phone"] = submission.customer_phone
        return draft_input

    def _log_order(
        self,
        session: Session,
        submission: OrderSubmission,
        split: PartialCodSplit,
        draft: DraftOrder,
    ) -> OrderLog:
        address = parse_address(submission.customer_address, self.region)
        city = submission.customer_city or address.city
        state = submission.customer_state or address.province
        pincode = submission.customer_zipcode or address.postal_code

        self.order_service.customer_service.remember_customer(
            session, submission, city, state, pincode
        )

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
            total_price=split.total_order_value,
            shipping_label=submission.shipping_label,
            shipping_price=submission.shipping_price,
            currency=self.order_service.currency,
            status="pending",
            is_partial_cod=True,
            advance_amount=split.advance_amount,
            remaining_amount=split.remaining_amount,
            draft_order_id=draft.id,
            draft_order_name=draft.name,
            checkout_url=draft.invoice_url,
        )
        try:
            return self.order_service.sequencer.insert_with_name(session, order)
        except StoreFailure:
            logger.error(
                "Draft order %s created but order log failed for %s; reconcile manually",
                draft.id,
                submission.shop,
            )
            raise

# cod_intake/services/customer_service.py
import logging
import re
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from cod_intake.core.errors import OrderValidationError
from cod_intake.models.customer import Customer
from cod_intake.models.order import OrderLog
from cod_intake.repositories.customer_repo import CustomerRepository
from cod_intake.repositories.order_repo import OrderRepository
from cod_intake.schemas.customer import CustomerMatch, CustomerLookupResult
from cod_intake.schemas.order import OrderSubmission

logger = logging.getLogger(__name__)

_PHONE_PUNCTUATION = re.compile(r"[\s\-()+]")
_DIGITS = re.compile(r"^[0-9]{8,15}$")


def normalize_phone(phone: str) -> str:
    """'+91 98765-43210' -> '919876543210'"""
    return _PHONE_PUNCTUATION.sub("", phone or "")


def is_valid_phone(phone: str) -> bool:
    return bool(_DIGITS.match(normalize_phone(phone)))


def phones_match(stored: str, normalized: str) -> bool:
    """
    Compare a stored phone with an already-normalized query.

    A national number matches its international form, so "9876543210"
    matches "+91 98765-43210": the shorter must be the tail of the longer,
    with at most a 3-digit country code in front.
    """
    candidate = normalize_phone(stored)
    if not candidate or not normalized:
        return False
    if candidate == normalized:
        return True

    shorter, longer = sorted((candidate, normalized), key=len)
    return (
        len(shorter) >= 8
        and len(longer) - len(shorter) <= 3
        and longer.endswith(shorter)
    )


def _match_from_customer(row: Customer) -> CustomerMatch:
    return CustomerMatch(
        name=row.name or "",
        address=row.address or "",
        city=row.city or "",
        state=row.state or "",
        zipcode=row.zipcode or "",
        email=row.email or "",
    )


def _match_from_order(row: OrderLog) -> CustomerMatch:
    return CustomerMatch(
        name=row.customer_name or "",
        address=row.customer_address or "",
        city=row.city or "",
        state=row.state or "",
        zipcode=row.pincode or "",
        email=row.customer_email or "",
    )


class LookupStrategy(Protocol):
    name: str

    def find_by_phone(
        self,
        session: Session,
        shop_domain: str,
        phone: str,
        normalized: str,
    ) -> CustomerMatch | None: ...


class DirectoryExactLookup:
    name = "directory-exact"

    def __init__(self, repo: CustomerRepository):
        self.repo = repo

    def find_by_phone(self, session, shop_domain, phone, normalized):
        row = self.repo.latest_by_phone(session, shop_domain, phone)
        return _match_from_customer(row) if row else None


class OrderHistoryExactLookup:
    name = "orders-exact"

    def __init__(self, repo: OrderRepository):
        self.repo = repo

    def find_by_phone(self, session, shop_domain, phone, normalized):
        row = self.repo.latest_by_phone(session, shop_domain, phone)
        return _match_from_order(row) if row else None


class DirectoryNormalizedScan:
    """Compare punctuation-stripped phones over the most recently updated rows."""

    name = "directory-normalized"

    def __init__(self, repo: CustomerRepository, window: int):
        self.repo = repo
        self.window = window

    def find_by_phone(self, session, shop_domain, phone, normalized):
        for row in self.repo.recent_for_shop(session, shop_domain, self.window):
            if phones_match(row.phone, normalized):
                return _match_from_customer(row)
        return None


class OrderHistoryNormalizedScan:
    """Compare punctuation-stripped phones over the most recent orders."""

    name = "orders-normalized"

    def __init__(self, repo: OrderRepository, window: int):
        self.repo = repo
        self.window = window

    def find_by_phone(self, session, shop_domain, phone, normalized):
        for row in self.repo.recent_for_shop(session, shop_domain, self.window):
            if phones_match(row.customer_phone, normalized):
                return _match_from_order(row)
        return None


class CustomerService:
    """
    Returning-customer recognition for checkout autofill.

    Responsibilities:
      - resolve a phone number to the customer's last known details,
        trying each lookup strategy in priority order
      - keep the customer directory up to date from incoming orders

    Lookups favour availability: a failing store is a miss, never an error.
    Results are for autofill only, never for authorization.
    """

    def __init__(
        self,
        customer_repo: CustomerRepository,
        order_repo: OrderRepository,
        scan_window: int = 50,
        strategies: list[LookupStrategy] | None = None,
    ):
        self.customer_repo = customer_repo
        self.strategies: list[LookupStrategy] = strategies or [
            DirectoryExactLookup(customer_repo),
            OrderHistoryExactLookup(order_repo),
            DirectoryNormalizedScan(customer_repo, scan_window),
            OrderHistoryNormalizedScan(order_repo, scan_window),
        ]

    def lookup(
        self,
        session: Session,
        phone: str,
        shop_domain: str,
    ) -> CustomerLookupResult:
        """
        Find the customer behind ``phone`` for ``shop_domain``.

        Raises:
            OrderValidationError: phone/shop missing or phone not 8-15 digits.
        """
        if not phone or not shop_domain:
            raise OrderValidationError("Phone and shop are required")
        if not is_valid_phone(phone):
            raise OrderValidationError("Invalid phone number format")

        normalized = normalize_phone(phone)

        for strategy in self.strategies:
            try:
                match = strategy.find_by_phone(session, shop_domain, phone, normalized)
            except SQLAlchemyError:
                session.rollback()
                logger.warning(
                    "Customer lookup strategy %s failed for %s",
                    strategy.name,
                    shop_domain,
                    exc_info=True,
                )
                continue

            if match is not None:
                logger.info("Customer found for %s via %s", shop_domain, strategy.name)
                return CustomerLookupResult.from_match(match)

        return CustomerLookupResult.from_match(None)

    def remember_customer(
        self,
        session: Session,
        submission: OrderSubmission,
        city: str = "",
        state: str = "",
        zipcode: str = "",
    ) -> None:
        """
        Upsert the submitting customer into the directory.

        Best-effort: failures are logged and swallowed so they never block
        the order itself.
        """
        phone = submission.customer_phone.strip()
        if not phone:
            return

        customer = Customer(
            shop_domain=submission.shop,
            phone=phone,
            name=submission.customer_name,
            address=submission.customer_address,
            city=submission.customer_city or city,
            state=submission.customer_state or state,
            zipcode=submission.customer_zipcode or zipcode,
            email=submission.customer_email,
        )
        try:
            self.customer_repo.upsert(session, customer)
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.warning("Could not save customer for %s", submission.shop, exc_info=True)

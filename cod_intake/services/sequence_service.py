# cod_intake/services/sequence_service.py
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from cod_intake.core.errors import StoreFailure
from cod_intake.models.order import OrderLog
from cod_intake.repositories.order_repo import OrderRepository

logger = logging.getLogger(__name__)

# Attempts to win the race when two requests create a shop's counter row
SEED_ATTEMPTS = 3


class OrderSequencer:
    """
    Hands out human-readable order names (COD-1001, COD-1002, ...) per shop.

    Numbers come from an atomic fetch-and-increment on the shop's counter
    row; the first order of a shop seeds the counter with
    ``base + count(existing orders)``. The (shop, order_name) unique
    constraint backs this up: a colliding insert is rolled back and retried
    with a fresh number.
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        prefix: str = "COD-",
        base: int = 1001,
        max_attempts: int = 5,
    ):
        self.order_repo = order_repo
        self.prefix = prefix
        self.base = base
        self.max_attempts = max_attempts

    def next_order_name(self, session: Session, shop_domain: str) -> str:
        """Reserve the next order name for the shop."""
        return f"{self.prefix}{self._next_number(session, shop_domain)}"

    def insert_with_name(self, session: Session, order: OrderLog) -> OrderLog:
        """
        Assign a name to ``order`` and persist it, retrying on name
        collisions.

        Every retry uses a number above the one that collided, even when
        neither the counter nor the order count can be read.

        Raises:
            StoreFailure: the store rejected the insert or every attempt
                collided.
        """
        last_number: int | None = None
        for attempt in range(1, self.max_attempts + 1):
            number = self._next_number(session, order.shop_domain)
            if last_number is not None and number <= last_number:
                number = last_number + 1
            last_number = number

            order.order_name = f"{self.prefix}{number}"
            try:
                self.order_repo.create_order(session, order)
                session.commit()
                session.refresh(order)
                return order
            except IntegrityError:
                session.rollback()
                logger.warning(
                    "Order name %s already taken for %s (attempt %d/%d)",
                    order.order_name,
                    order.shop_domain,
                    attempt,
                    self.max_attempts,
                )
                self._resync_counter(session, order.shop_domain)
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("Failed to store order for %s: %s", order.shop_domain, exc)
                raise StoreFailure() from exc

        logger.error("Gave up naming order for %s after %d attempts", order.shop_domain, self.max_attempts)
        raise StoreFailure()

    # ---- internal helpers ----

    def _next_number(self, session: Session, shop_domain: str) -> int:
        """
        Counter value if the counter works, else base + existing order
        count (or just base when counting fails too).
        """
        try:
            number = self._fetch_and_increment(session, shop_domain)
        except SQLAlchemyError:
            session.rollback()
            logger.warning(
                "Order counter unavailable for %s, falling back to order count",
                shop_domain,
                exc_info=True,
            )
            number = None

        if number is None:
            number = self._count_floor(session, shop_domain)
        return number

    def _fetch_and_increment(self, session: Session, shop_domain: str) -> int | None:
        for _ in range(SEED_ATTEMPTS):
            number = self.order_repo.increment_counter(session, shop_domain)
            if number is not None:
                session.commit()
                return number

            number = self._count_floor(session, shop_domain)
            try:
                self.order_repo.create_counter(session, shop_domain, number + 1)
                session.commit()
                return number
            except IntegrityError:
                # another request seeded the counter first; take the next value
                session.rollback()

        logger.warning("Could not seed order counter for %s", shop_domain)
        return None

    def _count_floor(self, session: Session, shop_domain: str) -> int:
        try:
            return self.base + self.order_repo.count_for_shop(session, shop_domain)
        except SQLAlchemyError:
            session.rollback()
            logger.warning("Could not count orders for %s, using base number", shop_domain)
            return self.base

    def _resync_counter(self, session: Session, shop_domain: str) -> None:
        try:
            floor = self.base + self.order_repo.count_for_shop(session, shop_domain)
            self.order_repo.raise_counter_floor(session, shop_domain, floor)
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.warning("Could not resync order counter for %s", shop_domain)

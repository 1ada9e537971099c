# cod_intake/repositories/order_repo.py
import uuid

from sqlalchemy import func, update
from sqlmodel import Session, select

from cod_intake.models.order import OrderLog, ShopOrderCounter


class OrderRepository:
    """
    Data access layer for order_logs and the per-shop order counter.

    NOTE:
      - No commits here; the sequencer and services decide transaction
        boundaries.
    """

    # ---- Orders ----

    def list_for_shop(
        self,
        session: Session,
        shop_domain: str,
        status: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderLog]:
        stmt = select(OrderLog).where(OrderLog.shop_domain == shop_domain)
        if status:
            stmt = stmt.where(OrderLog.status == status)
        stmt = stmt.order_by(OrderLog.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def count_for_shop(self, session: Session, shop_domain: str) -> int:
        stmt = select(func.count()).select_from(OrderLog).where(
            OrderLog.shop_domain == shop_domain
        )
        return session.exec(stmt).one()

    def get_by_id(self, session: Session, order_id: uuid.UUID) -> OrderLog | None:
        return session.get(OrderLog, order_id)

    def latest_by_phone(
        self,
        session: Session,
        shop_domain: str,
        phone: str,
    ) -> OrderLog | None:
        stmt = (
            select(OrderLog)
            .where(OrderLog.shop_domain == shop_domain, OrderLog.customer_phone == phone)
            .order_by(OrderLog.created_at.desc())
            .limit(1)
        )
        return session.exec(stmt).first()

    def recent_for_shop(
        self,
        session: Session,
        shop_domain: str,
        limit: int,
    ) -> list[OrderLog]:
        return self.list_for_shop(session, shop_domain, limit=limit)

    def get_by_shopify_order_id(
        self,
        session: Session,
        shop_domain: str,
        shopify_order_id: str,
    ) -> OrderLog | None:
        stmt = select(OrderLog).where(
            OrderLog.shop_domain == shop_domain,
            OrderLog.shopify_order_id == shopify_order_id,
        )
        return session.exec(stmt).first()

    def recent_unpaid_partial(
        self,
        session: Session,
        shop_domain: str,
        limit: int,
    ) -> list[OrderLog]:
        """Newest partial COD orders whose advance has not been matched to a paid order."""
        stmt = (
            select(OrderLog)
            .where(
                OrderLog.shop_domain == shop_domain,
                OrderLog.is_partial_cod == True,  # noqa: E712
                OrderLog.advance_paid == False,  # noqa: E712
            )
            .order_by(OrderLog.created_at.desc())
            .limit(limit)
        )
        return session.exec(stmt).all()

    def create_order(self, session: Session, order: OrderLog) -> OrderLog:
        """
        Insert an OrderLog without committing, but flush so constraint
        violations surface here.
        """
        session.add(order)
        session.flush()
        return order

    def update_order(self, session: Session, order: OrderLog) -> OrderLog:
        session.add(order)
        session.flush()
        session.refresh(order)
        return order

    # ---- Order counter ----

    def increment_counter(self, session: Session, shop_domain: str) -> int | None:
        """
        Atomically bump the shop's counter and return the value it held
        before the bump, or None when the shop has no counter row yet.
        """
        stmt = (
            update(ShopOrderCounter)
            .where(ShopOrderCounter.shop_domain == shop_domain)
            .values(next_number=ShopOrderCounter.next_number + 1)
            .returning(ShopOrderCounter.next_number)
            .execution_options(synchronize_session=False)
        )
        bumped = session.execute(stmt).scalar_one_or_none()
        if bumped is None:
            return None
        return bumped - 1

    def create_counter(
        self,
        session: Session,
        shop_domain: str,
        next_number: int,
    ) -> ShopOrderCounter:
        counter = ShopOrderCounter(shop_domain=shop_domain, next_number=next_number)
        session.add(counter)
        session.flush()
        return counter

    def raise_counter_floor(
        self,
        session: Session,
        shop_domain: str,
        floor: int,
    ) -> None:
        """Move the counter forward to at least ``floor`` (never backwards)."""
        stmt = (
            update(ShopOrderCounter)
            .where(
                ShopOrderCounter.shop_domain == shop_domain,
                ShopOrderCounter.next_number < floor,
            )
            .values(next_number=floor)
            .execution_options(synchronize_session=False)
        )
        session.execute(stmt)

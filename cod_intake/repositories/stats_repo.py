# cod_intake/repositories/stats_repo.py
from datetime import datetime

from sqlalchemy import func
from sqlmodel import Session, select

from cod_intake.models.order import OrderLog

# Orders that never turned into money
NON_REVENUE_STATUSES = ("cancelled", "returned")


class StatsRepository:
    """
    Read-only aggregated queries for the merchant dashboard, scoped per shop.
    """

    def count_orders(
        self,
        session: Session,
        shop_domain: str,
        since: datetime | None = None,
    ) -> int:
        stmt = select(func.count()).select_from(OrderLog).where(
            OrderLog.shop_domain == shop_domain
        )
        if since is not None:
            stmt = stmt.where(OrderLog.created_at >= since)
        value = session.exec(stmt).one()
        return int(value or 0)

    def revenue(
        self,
        session: Session,
        shop_domain: str,
        since: datetime | None = None,
    ) -> float:
        """
        Sum of total_price, excluding cancelled and returned orders.
        """
        stmt = select(func.coalesce(func.sum(OrderLog.total_price), 0.0)).where(
            OrderLog.shop_domain == shop_domain,
            OrderLog.status.not_in(NON_REVENUE_STATUSES),
        )
        if since is not None:
            stmt = stmt.where(OrderLog.created_at >= since)
        value = session.exec(stmt).one()
        return float(value or 0.0)

    def counts_by_status(self, session: Session, shop_domain: str) -> list[tuple]:
        stmt = (
            select(OrderLog.status, func.count(OrderLog.id))
            .where(OrderLog.shop_domain == shop_domain)
            .group_by(OrderLog.status)
        )
        return list(session.exec(stmt).all())

    def latest_orders(
        self,
        session: Session,
        shop_domain: str,
        limit: int = 10,
    ) -> list[OrderLog]:
        stmt = (
            select(OrderLog)
            .where(OrderLog.shop_domain == shop_domain)
            .order_by(OrderLog.created_at.desc())
            .limit(limit)
        )
        return list(session.exec(stmt).all())

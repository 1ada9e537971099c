# cod_intake/services/stats_service.py
from datetime import datetime, timedelta, timezone

from sqlmodel import Session

from cod_intake.repositories.stats_repo import StatsRepository
from cod_intake.schemas.order import OrderRead
from cod_intake.schemas.stats import OrderStats


class StatsService:
    """
    Orchestrates the merchant dashboard statistics.
    """

    def __init__(self, repo: StatsRepository):
        self.repo = repo

    def get_order_stats(
        self,
        session: Session,
        shop_domain: str,
        now: datetime | None = None,
        recent_n_orders: int = 10,
    ) -> OrderStats:
        # "Today" starts at midnight UTC
        now = now or datetime.now(timezone.utc)
        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_start = now - timedelta(days=7)

        orders_by_status: dict[str, int] = {}
        for status_value, count in self.repo.counts_by_status(session, shop_domain):
            key = status_value or "pending"
            orders_by_status[key] = orders_by_status.get(key, 0) + int(count or 0)

        recent = self.repo.latest_orders(session, shop_domain, limit=recent_n_orders)

        return OrderStats(
            total_orders=self.repo.count_orders(session, shop_domain),
            pending_orders=orders_by_status.get("pending", 0),
            today_orders=self.repo.count_orders(session, shop_domain, since=today_start),
            week_orders=self.repo.count_orders(session, shop_domain, since=week_start),
            total_revenue=self.repo.revenue(session, shop_domain),
            today_revenue=self.repo.revenue(session, shop_domain, since=today_start),
            orders_by_status=orders_by_status,
            recent_orders=[OrderRead.model_validate(o) for o in recent],
        )

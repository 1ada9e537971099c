# cod_intake/schemas/stats.py
from pydantic import ConfigDict
from sqlmodel import SQLModel

from cod_intake.schemas.order import OrderRead


class OrderStats(SQLModel):
    """
    Merchant dashboard summary for one shop.

    Revenue excludes cancelled and returned orders.
    """
    model_config = ConfigDict(extra="forbid")

    total_orders: int
    pending_orders: int
    today_orders: int
    week_orders: int
    total_revenue: float
    today_revenue: float
    orders_by_status: dict[str, int]
    recent_orders: list[OrderRead]

# cod_intake/routers/stats.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from cod_intake.core.auth import require_merchant
from cod_intake.database import get_session
from cod_intake.repositories.stats_repo import StatsRepository
from cod_intake.schemas.stats import OrderStats
from cod_intake.services.stats_service import StatsService

router = APIRouter(prefix="/stats", tags=["Stats"])

repo = StatsRepository()
service = StatsService(repo)


@router.get("", response_model=OrderStats)
def get_order_stats(
    shop_domain: str = Depends(require_merchant),
    session: Session = Depends(get_session),
):
    """
    Order counts, revenue and the 10 newest orders for the merchant's shop.
    """
    return service.get_order_stats(session, shop_domain)

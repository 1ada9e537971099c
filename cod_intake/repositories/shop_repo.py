# cod_intake/repositories/shop_repo.py
from datetime import datetime, timezone

from sqlmodel import Session, select

from cod_intake.models.shop import FormSettings, Shop


class ShopRepository:
    """
    Data access layer for installed shops and their form settings.
    """

    def get_by_domain(self, session: Session, shop_domain: str) -> Shop | None:
        stmt = select(Shop).where(Shop.shop_domain == shop_domain)
        return session.exec(stmt).first()

    def get_installed(self, session: Session, shop_domain: str) -> Shop | None:
        """Return the shop only if the app is still installed."""
        shop = self.get_by_domain(session, shop_domain)
        if shop is None or shop.uninstalled_at is not None:
            return None
        return shop

    def get_form_settings(
        self,
        session: Session,
        shop_domain: str,
    ) -> FormSettings | None:
        stmt = select(FormSettings).where(FormSettings.shop_domain == shop_domain)
        return session.exec(stmt).first()

    def mark_uninstalled(
        self,
        session: Session,
        shop_domain: str,
        when: datetime | None = None,
    ) -> Shop | None:
        """
        Stamp uninstalled_at, keeping the shop's data. Does not commit.
        """
        shop = self.get_by_domain(session, shop_domain)
        if shop is None:
            return None
        shop.uninstalled_at = when or datetime.now(timezone.utc)
        session.add(shop)
        session.flush()
        return shop

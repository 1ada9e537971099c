# cod_intake/repositories/customer_repo.py
from datetime import datetime, timezone

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel import Session, select

from cod_intake.models.customer import Customer

# Dialects with native INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

_UPSERT_COLUMNS = ("name", "address", "city", "state", "zipcode", "email", "updated_at")


class CustomerRepository:
    """
    Data access layer for the autofill customer directory.
    """

    def latest_by_phone(
        self,
        session: Session,
        shop_domain: str,
        phone: str,
    ) -> Customer | None:
        stmt = (
            select(Customer)
            .where(Customer.shop_domain == shop_domain, Customer.phone == phone)
            .order_by(Customer.updated_at.desc())
            .limit(1)
        )
        return session.exec(stmt).first()

    def recent_for_shop(
        self,
        session: Session,
        shop_domain: str,
        limit: int,
    ) -> list[Customer]:
        stmt = (
            select(Customer)
            .where(Customer.shop_domain == shop_domain)
            .order_by(Customer.updated_at.desc())
            .limit(limit)
        )
        return session.exec(stmt).all()

    def upsert(self, session: Session, customer: Customer) -> None:
        """
        Insert or overwrite the directory row for (shop_domain, phone).

        Last write wins. Does not commit.
        """
        customer.updated_at = datetime.now(timezone.utc)
        insert = _UPSERT_INSERTS.get(session.get_bind().dialect.name)

        if insert is None:
            existing = self.latest_by_phone(session, customer.shop_domain, customer.phone)
            if existing is None:
                session.add(customer)
            else:
                for column in _UPSERT_COLUMNS:
                    setattr(existing, column, getattr(customer, column))
                session.add(existing)
            session.flush()
            return

        values = customer.model_dump()
        stmt = insert(Customer).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["shop_domain", "phone"],
            set_={column: stmt.excluded[column] for column in _UPSERT_COLUMNS},
        )
        session.execute(stmt)

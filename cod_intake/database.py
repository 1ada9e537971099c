# cod_intake/database.py
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

from cod_intake.core.config import get_settings

settings = get_settings()


def build_engine(db_url: str) -> Engine:
    """
    Build the SQLAlchemy engine for the record store.

    Supabase Postgres (via pooler):
      - sslmode=require   : enforce SSL when running in the cloud
      - pool_size=1       : keep only 1 connection to the Supabase pooler
      - max_overflow=0    : do not open extra connections beyond the pool
      - connect_timeout / statement_timeout: no store call blocks forever

    SQLite (tests / local dev):
      - connections are shared across worker threads
      - writers wait up to DB_STATEMENT_TIMEOUT_MS for the file lock
    """
    if db_url.startswith("sqlite"):
        return create_engine(
            db_url,
            echo=False,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.DB_STATEMENT_TIMEOUT_MS / 1000,
            },
        )

    # Append sslmode=require if it is not already present
    if "sslmode=" not in db_url:
        if "?" in db_url:
            db_url = db_url + "&sslmode=require"
        else:
            db_url = db_url + "?sslmode=require"

    return create_engine(
        db_url,
        echo=False,        # set to True if you want to debug SQL queries
        pool_pre_ping=True,
        pool_size=1,
        max_overflow=0,
        pool_timeout=settings.DB_CONNECT_TIMEOUT,
        connect_args={
            "connect_timeout": settings.DB_CONNECT_TIMEOUT,
            "options": f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}",
        },
    )


engine = build_engine(settings.DATABASE_URL)


def create_db_and_tables(bind: Engine | None = None) -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(bind or engine)


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(engine) as session:
        yield session

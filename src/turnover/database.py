"""SQLAlchemy engine and session setup."""

from __future__ import annotations

from typing import Callable

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from turnover.config import get_database_url

SessionFactory = Callable[[], Session]


class Base(DeclarativeBase):
    pass


def make_engine(url: str) -> Engine:
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    # SQLite needs check_same_thread off: durable writes run on a worker thread
    return create_engine(url, echo=False, connect_args=connect_args)


engine = make_engine(get_database_url())

SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


def get_session() -> Session:
    """Create a new database session."""
    return SessionLocal()


def init_db(bind: Engine | None = None) -> None:
    """Create all tables. Import models first so they register with Base."""
    # Import all models to ensure they are registered
    import turnover.models.cleaning_status  # noqa: F401
    import turnover.models.property  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)

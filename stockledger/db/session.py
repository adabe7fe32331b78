"""SQLAlchemy engine, session factory and the declarative ``Base``."""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from ..core.config import settings

Base = declarative_base()


def build_engine(url: str, **kwargs) -> Engine:
    """Create an engine, applying the SQLite threading and lock-wait options."""

    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        # FastAPI runs sync handlers in a threadpool, so connections move between threads.
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", settings.DB_BUSY_TIMEOUT)
        kwargs["connect_args"] = connect_args
    return create_engine(url, **kwargs)


engine = build_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """FastAPI dependency that yields a session and guarantees cleanup."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

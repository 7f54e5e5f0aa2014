"""
Database engine and session factory.

The store layer opens one short-lived session per operation, so the
session factory is what gets passed around, never a live session.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def build_engine(database_url: str):
    """Create an engine, with the SQLite specifics the app needs."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # Single shared connection so every session sees the same data
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


def build_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine) -> None:
    """Create all tables registered on Base."""
    # Import models to ensure they're registered with Base
    from cloaker_app import models  # noqa: F401

    Base.metadata.create_all(bind=engine)

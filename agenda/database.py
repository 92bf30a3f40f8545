"""Database engine setup.

Production Pattern:
- One engine per database URL, created on first use
- Automatic table creation via init_database()
- Connections usable from worker threads (store calls run in asyncio.to_thread)
- Proper engine lifecycle management
"""
from typing import Optional
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from agenda import config
from agenda.api.database_models import Base


# Global engine (initialized on first use)
_engine: Optional[Engine] = None


def create_db_engine(database_url: str) -> Engine:
    """
    Create an engine for ``database_url``.

    SQLite connections are shared across threads. An in-memory SQLite
    database lives in a single shared connection, otherwise every thread
    would see its own empty database.

    Args:
        database_url: SQLAlchemy connection string

    Returns:
        Engine with tables created
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, **kwargs)
    else:
        engine = create_engine(
            database_url,
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,  # Connection acquisition timeout
        )

    init_database(engine)
    return engine


def get_engine() -> Engine:
    """
    Get or create the engine for config.DATABASE_URL.

    Returns:
        Engine instance
    """
    global _engine

    if _engine is None:
        _engine = create_db_engine(config.DATABASE_URL)

    return _engine


def make_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to ``engine``."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_database(engine: Engine) -> None:
    """
    Create all tables.

    Safe to call multiple times (idempotent).
    """
    Base.metadata.create_all(engine)


def close_engine() -> None:
    """
    Dispose of the global engine.

    Call this during application shutdown to gracefully close
    all database connections.
    """
    global _engine

    if _engine is not None:
        _engine.dispose()
        _engine = None

"""Engine and session management for the client-local keyed store."""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .core.config import settings

# Create base class for models
Base = declarative_base()


def create_local_engine(url: Optional[str] = None) -> Engine:
    """Create the engine backing the local store and ensure its tables exist.

    In-memory SQLite URLs share one connection so every session sees the
    same database.
    """
    url = url or settings.local_store_url

    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)
    else:
        engine = create_engine(url, pool_pre_ping=True)

    # Register models on Base before creating tables.
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to *engine*."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)

from __future__ import annotations

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from metalineage.config import IN_MEMORY_DB_URL

from .models import Base


def get_engine(db_url: Optional[str] = None) -> Engine:
    """Create an engine for the given URL (defaults to a private in-memory SQLite database)."""
    url = db_url or IN_MEMORY_DB_URL
    if url.endswith(":memory:"):
        # one shared connection, otherwise every checkout sees an empty database
        return create_engine(
            url,
            future=True,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, future=True, echo=False)


def create_db(engine: Optional[Engine] = None) -> Engine:
    """Create tables if they do not exist and return the engine."""
    engine = engine or get_engine()
    Base.metadata.create_all(engine)
    return engine


def get_session(engine: Optional[Engine] = None) -> Session:
    """Return a new session bound to the given or default engine."""
    engine = engine or get_engine()
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    return SessionLocal()

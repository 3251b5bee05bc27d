import logging
from functools import lru_cache
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .config import settings
from .models import Base


@lru_cache(maxsize=None)
def get_engine(database_url: str = "") -> Engine:
    """Create (once per URL) the engine for the configured database."""
    url = database_url or settings.database_url
    return create_engine(url, pool_pre_ping=True)


def get_session_factory(engine: Engine = None) -> sessionmaker:
    return sessionmaker(bind=engine or get_engine(), autoflush=False)


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding one session per request."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def init_db(engine: Engine = None) -> None:
    """Create all tables that do not exist yet."""
    bind = engine or get_engine()
    Base.metadata.create_all(bind=bind)
    logging.info("Database tables initialized")

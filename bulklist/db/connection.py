"""Database engine and session management for the listing store."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from bulklist.config import settings

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None


def make_engine(database_url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """Create an engine; SQLite connections may be shared across threads."""
    url = database_url or settings.database_url
    connect_args: Dict[str, Any] = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    return create_engine(
        url,
        connect_args=connect_args,
        echo=settings.sql_echo if echo is None else echo,
        pool_pre_ping=True,
    )


def get_engine() -> Engine:
    """Shared engine built from settings on first use."""
    global _engine
    if _engine is None:
        _engine = make_engine()
    return _engine


def init_db(engine: Optional[Engine] = None) -> None:
    """Create the listing tables if they do not exist."""
    from bulklist.models import Listing  # noqa: F401

    engine = engine or get_engine()
    SQLModel.metadata.create_all(engine)
    logger.info(f"Initialized listing store at {engine.url}")


@contextmanager
def get_db_context(engine: Optional[Engine] = None) -> Generator[Session, None, None]:
    """Session context manager for code outside request handling."""
    with Session(engine or get_engine()) as session:
        yield session

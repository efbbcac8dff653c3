"""Database configuration and session management."""

from __future__ import annotations

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> Engine:
    """Create an engine for ``database_url``.

    SQLite connections are shared across threads because change-feed
    callbacks and request handlers may run on different threads.
    """

    connect_args: dict[str, object] = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)


def initialize_database(bind: Engine) -> None:
    """Ensure all ORM models have corresponding database tables."""

    from care_alerts.infrastructure import models  # noqa: F401  # ensure models are imported

    Base.metadata.create_all(bind=bind, checkfirst=True)
    logger.debug("Database tables ensured on %s", bind.url)


def build_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create the tables behind ``database_url`` and return a session factory for it."""

    engine = build_engine(database_url)
    initialize_database(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)

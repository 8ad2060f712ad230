# src/studiq/infrastructure/db/base.py
"""
Database engine setup and session management.
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

log = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """The base class for all SQLAlchemy ORM models in this application."""
    pass


def create_db_engine(database_url: str) -> Engine:
    """
    Builds an engine for `database_url`.
    SQLite needs `check_same_thread=False` because the API serves requests from
    a thread pool; an in-memory SQLite database must also share one connection
    or every new connection would see an empty database.
    """
    kwargs = {}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
        kwargs["pool_recycle"] = 3600
    return create_engine(database_url, **kwargs)


def create_tables(engine: Engine) -> None:
    """Creates all tables defined in models.py."""
    # Imported for its side effect of registering the models on Base.metadata
    from studiq.infrastructure.db import models  # noqa: F401

    log.info("Creating database tables if they do not exist...")
    try:
        Base.metadata.create_all(engine)
        log.info("Database tables checked/created successfully.")
    except Exception as e:
        log.critical(f"Failed to create database tables: {e}", exc_info=True)
        raise


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.
    This handles session creation, commit, rollback, and closing.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception as e:
        log.error(f"Session {id(session)} rollback due to exception: {e}")
        session.rollback()
        raise
    finally:
        session.close()

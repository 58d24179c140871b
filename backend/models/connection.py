"""
Database Connection Manager

Engine and session factories for the configured database (SQLite by
default, Postgres via POSTGRES_URL or DATABASE_URL).
"""

import os
import logging
from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from dotenv import load_dotenv

from .database import Base

load_dotenv()

logger = logging.getLogger(__name__)


def get_database_url() -> str:
    """Get database URL from environment."""
    url = os.getenv("POSTGRES_URL") or os.getenv("DATABASE_URL")
    if not url:
        # Default to SQLite for development
        return "sqlite:///./sharpline.db"

    # Hosted Postgres often uses postgres:// but SQLAlchemy requires postgresql://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)

    return url


def create_db_engine(url: str) -> Engine:
    """Create an engine with settings appropriate for the database type."""
    kwargs = {
        "echo": os.getenv("DEBUG", "false").lower() == "true",
    }

    if url.startswith("sqlite"):
        # API handlers and the scheduler run on other threads
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url == "sqlite://":
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
        kwargs["pool_size"] = 5
        kwargs["max_overflow"] = 10

    return create_engine(url, **kwargs)


def create_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


engine = create_db_engine(get_database_url())

# Session factory
SessionLocal = create_session_factory(engine)


def init_db(bind: Engine = None):
    """Create all database tables."""
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables created successfully")


def drop_db(bind: Engine = None):
    """Drop all database tables (use with caution!)."""
    Base.metadata.drop_all(bind=bind or engine)
    logger.info("Database tables dropped")


@contextmanager
def get_session(factory: sessionmaker = None) -> Session:
    """Get a database session with automatic cleanup."""
    session = (factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

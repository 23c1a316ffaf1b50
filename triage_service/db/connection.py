"""
Database connection and session management for the triage queue service.

Uses SQLAlchemy; SQLite for local runs and tests, any SQLAlchemy URL otherwise.
Nothing is connected at import time.
"""
import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.pool import StaticPool

from triage_service.core.config import Config

logger = logging.getLogger(__name__)

# Create declarative base for ORM models
Base = declarative_base()


def create_db_engine(database_url: str) -> Engine:
    """Create an engine for the given URL."""
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=Config.DEBUG
        )

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    else:
        engine = create_engine(
            database_url,
            pool_pre_ping=True,
            echo=Config.DEBUG
        )
    return engine


def init_db(database_url: str) -> sessionmaker:
    """Create the engine and tables, returning a session factory."""
    logger.info(f"Initializing database: {database_url}")

    engine = create_db_engine(database_url)
    Base.metadata.create_all(bind=engine)

    logger.info("Database initialized successfully")
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Session that commits on success and rolls back on error."""
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

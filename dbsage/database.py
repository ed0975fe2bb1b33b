"""
Records store configuration and session management.
Uses SQLAlchemy 2.x; the engine is created lazily from
``settings.records_database_url`` (SQLite by default).
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from dbsage.config import settings
from dbsage.logging_config import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy Base for ORM models."""
    pass


_engine: Engine | None = None
_session_local: sessionmaker | None = None


def get_engine() -> Engine:
    """Get or create the records engine lazily."""
    global _engine
    if _engine is None:
        _engine = create_engine(
            settings.records_database_url,
            pool_pre_ping=True,
            echo=False,
        )
    return _engine


def get_session_local() -> sessionmaker:
    """Get or create the session factory lazily."""
    global _session_local
    if _session_local is None:
        _session_local = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=get_engine(),
        )
    return _session_local


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Records store session; commits on success, rolls back on error.
    
    Yields:
        SQLAlchemy Session
        
    Example:
        with get_session() as db:
            record = create_record(db, request)
    """
    db = get_session_local()()
    try:
        logger.debug("database_session_created")
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error("database_session_error", error=str(e), exc_info=True)
        raise
    finally:
        db.close()
        logger.debug("database_session_closed")


def init_db(engine: Engine | None = None) -> None:
    """Create the records tables if they do not exist."""
    # Registers the models on Base.metadata
    import dbsage.models  # noqa: F401

    logger.info("initializing_database_tables")
    Base.metadata.create_all(bind=engine or get_engine())
    logger.info("database_tables_created")

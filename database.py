"""
Database connection and session management for CareSync
"""

import logging
from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker, Session
from contextlib import contextmanager
from typing import Generator

from config import settings


logger = logging.getLogger(__name__)


def build_engine(url: str, echo: bool = False):
    """
    Create an engine for the given URL.
    SQLite has no row locks (FOR UPDATE is not emitted), so every
    transaction starts with BEGIN IMMEDIATE and takes the database write
    lock up front; with the busy timeout, concurrent writers queue instead
    of failing.
    """
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.SQLITE_BUSY_TIMEOUT,
            },
            echo=echo
        )

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            # let SQLAlchemy, not the driver, issue BEGIN
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    # PostgreSQL or other databases
    return create_engine(
        url,
        echo=echo,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)

# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# Base class for ORM models
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI routes to get database session.
    Automatically closes session after request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database session.
    Use this outside of FastAPI request handling.

    Usage:
        with get_db_context() as db:
            db.query(Item).all()
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def transaction(session: Session) -> Generator[Session, None, None]:
    """
    Unit of work on an existing session.
    Commits when the block finishes, rolls back everything on any error.
    """
    try:
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise


def init_db() -> None:
    """
    Initialize database tables.
    Creates all tables defined in models.
    """
    # Import models to register them with Base
    import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info(f"Database initialized at: {settings.DATABASE_URL}")


class DatabaseHealthCheck:
    """Database health check utilities"""

    @staticmethod
    def is_connected() -> bool:
        """Check if database is connected"""
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.warning("Database health check failed", exc_info=True)
            return False


__all__ = [
    "engine",
    "build_engine",
    "SessionLocal",
    "Base",
    "get_db",
    "get_db_context",
    "transaction",
    "init_db",
    "DatabaseHealthCheck",
]

"""
Database connection management with connection pooling.

This module provides a production-ready database connection pool
that can handle high concurrency and scale horizontally.
"""
from sqlalchemy import create_engine, event, text
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool
from core.config import settings
from core.exceptions import InternalError
import logging

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url

# Dialects with an INSERT ... ON CONFLICT construct (see upsert_insert)
UPSERT_DIALECTS = ("postgresql", "sqlite")


def _engine_options(url: str) -> dict:
    options = {
        "pool_pre_ping": True,  # Verify connections before using
        "echo": settings.DEBUG,  # Log SQL queries in debug mode
    }
    if url.startswith("sqlite"):
        # SQLite connections are shared across FastAPI's threadpool workers
        options["connect_args"] = {"check_same_thread": False}
        return options
    options.update(
        poolclass=QueuePool,
        pool_size=settings.DB_POOL_SIZE,  # Number of connections to maintain
        max_overflow=settings.DB_MAX_OVERFLOW,  # Additional connections beyond pool_size
        pool_timeout=settings.DB_POOL_TIMEOUT,  # Seconds to wait for connection
        pool_recycle=settings.DB_POOL_RECYCLE,  # Recycle connections after this many seconds
    )
    return options


# Create engine with connection pooling
engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

if engine.dialect.name not in UPSERT_DIALECTS:
    raise RuntimeError(
        f"Unsupported database dialect {engine.dialect.name!r}; expected one of {UPSERT_DIALECTS}"
    )

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,  # Prevent lazy loading issues
)

Base = declarative_base()


@event.listens_for(engine, "checkout")
def receive_checkout(dbapi_conn, connection_record, connection_proxy):
    """Log when connection is checked out from pool."""
    logger.debug("Connection checked out from pool")


@event.listens_for(engine, "checkin")
def receive_checkin(dbapi_conn, connection_record):
    """Log when connection is returned to pool."""
    logger.debug("Connection returned to pool")


def get_db() -> Session:
    """
    Dependency for FastAPI to get database session.

    Commits when the request handler returns normally, rolls back on any
    exception. Domain errors (HTTPException subclasses) are not logged here;
    the exception handlers in main.py own that.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        # Only log actual database errors, not HTTP exceptions
        from fastapi import HTTPException
        if not isinstance(e, HTTPException):
            logger.error(f"Database transaction error: {e}")
        raise
    finally:
        db.close()


def upsert_insert(db: Session, model):
    """
    INSERT construct for the session's dialect that supports ON CONFLICT.

    Used for "update if the key exists, else insert" writes that must stay a
    single statement, so two concurrent callers converge on one row.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    logger.error(f"ON CONFLICT upsert not supported for dialect: {dialect}")
    raise InternalError()


def get_db_sync() -> Session:
    """
    Synchronous database session getter for use in scripts and startup hooks.

    Note: This does NOT auto-commit or auto-rollback.
    Caller must manage transactions explicitly.
    """
    return SessionLocal()


def check_db_connection() -> bool:
    """
    Check if database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False

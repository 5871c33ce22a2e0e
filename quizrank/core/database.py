"""
Database configuration and session management
"""

import logging
from contextlib import contextmanager
from typing import Callable, Generator, Optional

import sentry_sdk
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from quizrank.core.config import settings

logger = logging.getLogger(__name__)

# Create Base class for models
Base = declarative_base()

SessionFactory = Callable[[], Session]


def build_engine(url: Optional[str] = None) -> Engine:
    """Create an engine for the configured (or given) database URL"""
    url = url or settings.get_database_url()
    connect_args = {}
    if url.startswith("sqlite"):
        # Sessions are opened from threadpool workers
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(
        url,
        pool_pre_ping=settings.DB_POOL_PRE_PING,
        echo=settings.DB_ECHO,
        connect_args=connect_args,
    )


engine = build_engine()

# Create SessionLocal class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def make_session_factory(bind: Engine) -> sessionmaker:
    """Session factory bound to ``bind`` with the application's session options"""
    return sessionmaker(autocommit=False, autoflush=False, bind=bind, expire_on_commit=False)


def init_db(bind: Optional[Engine] = None) -> None:
    """Initialize database, create tables if they don't exist"""
    bind = bind or engine
    try:
        # Import all models here to ensure they're registered
        from quizrank import models  # noqa: F401

        Base.metadata.create_all(bind=bind)
        logger.info("Database tables created successfully")

        with bind.connect() as conn:
            if conn.execute(text("SELECT 1")).scalar() == 1:
                logger.info("Database connection successful")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        if settings.SENTRY_DSN:
            sentry_sdk.capture_exception(e)
        raise


@contextmanager
def session_scope(factory: SessionFactory) -> Generator[Session, None, None]:
    """
    Context manager for a unit of work outside the request dependency
    Commits on success, rolls back on any error
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


class DatabaseHealthCheck:
    """Database health check utility"""

    @staticmethod
    def check_connection(bind: Optional[Engine] = None) -> dict:
        bind = bind or engine
        try:
            with bind.connect() as conn:
                conn.execute(text("SELECT 1"))
            return {"status": "healthy"}
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return {"status": "unhealthy", "error": str(e)}

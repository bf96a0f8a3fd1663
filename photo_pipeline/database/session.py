"""
Database engine and session factory for the job store.

The job store opens one short session per operation, and a dispatcher
invocation runs up to batch_size workers at once, so the pool is sized
from DATABASE_POOL_SIZE (default 5, the default batch size).

Usage:
    from photo_pipeline.database.session import get_session_factory

    store = EnhancementJobStore(get_session_factory())
"""

import os
import logging
from typing import Any, Dict

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

logger = logging.getLogger(__name__)

_engine = None
_SessionLocal = None


def _get_database_url() -> str:
    """DATABASE_URL with Render/Heroku-style postgres:// rewritten for SQLAlchemy."""
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL environment variable is not set")

    if database_url.startswith("postgres://"):
        database_url = "postgresql://" + database_url[len("postgres://"):]
    return database_url


def _engine_options(database_url: str) -> Dict[str, Any]:
    if database_url.startswith("sqlite"):
        # Local runs only; SQLite ignores pool sizing.
        return {"connect_args": {"check_same_thread": False}}

    pool_size = int(os.getenv("DATABASE_POOL_SIZE", "5"))
    return {
        "pool_size": pool_size,
        "max_overflow": pool_size,
        "pool_pre_ping": True,   # Serverless hosts drop idle connections
        "pool_recycle": 1800,
    }


def get_engine() -> Engine:
    """Create the engine on first use and return the singleton."""
    global _engine
    if _engine is None:
        try:
            database_url = _get_database_url()
        except ValueError as e:
            logger.error("Job store database not configured", extra={"error": str(e)})
            raise
        _engine = create_engine(database_url, **_engine_options(database_url))
        logger.info("Job store engine created", extra={"dialect": _engine.dialect.name})
    return _engine


def get_session_factory() -> sessionmaker:
    """
    Session factory bound to the engine singleton.

    expire_on_commit is off so records returned by the store stay readable
    after their transaction closes.
    """
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=get_engine(),
        )
    return _SessionLocal


def reset_engine() -> None:
    """Dispose the engine singleton (used at shutdown and between tests)."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None

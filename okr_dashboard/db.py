# okr_dashboard/db.py
"""
Shared SQLAlchemy engine for the OKR store.

OKRDataLoader and ScoreQueries both resolve their engine lazily through
get_db_engine(), so one QueuePool serves every read and matrix save.
"""

import logging
import threading

from sqlalchemy import create_engine
from sqlalchemy.pool import QueuePool

from .config import config

logger = logging.getLogger(__name__)

_engine = None
_engine_lock = threading.Lock()


def get_db_engine():
    """
    The process-wide engine, created on first use.

    Raises:
        ValueError: DB_CONFIG is incomplete
    """
    global _engine

    if _engine is None:
        with _engine_lock:
            if _engine is None:
                _engine = _create_engine()
    return _engine


def _create_engine():
    if not config.is_db_configured():
        logger.error("❌ OKR store is not configured")
        raise ValueError("OKR store is not configured: set DB_HOST, DB_USER and DB_PASSWORD")

    database = config.database
    pool_size = config.get_app_setting("DB_POOL_SIZE", 5)
    pool_recycle = config.get_app_setting("DB_POOL_RECYCLE", 3600)

    logger.info(f"🔌 Connecting to {database.url(masked=True)} (pool_size={pool_size})")

    return create_engine(
        database.url(),
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=10,
        pool_recycle=pool_recycle,
        pool_pre_ping=True,
    )


__all__ = ['get_db_engine']

import logging
from .mysql import (
    Base,
    AsyncSessionLocal,
    init_mysql_db,
    close_mysql_db,
    get_async_session,
)

logger = logging.getLogger(__name__)


async def init_databases():
    """Initialize the relational store"""
    try:
        # 모델 메타데이터 등록
        import wakili.models  # noqa: F401

        await init_mysql_db()
        logger.info("All databases initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


async def close_databases():
    """Close all database connections"""
    try:
        await close_mysql_db()
        logger.info("All database connections closed")
    except Exception as e:
        logger.error(f"Error closing database connections: {e}")


__all__ = [
    "Base",
    "AsyncSessionLocal",
    "init_databases",
    "close_databases",
    "get_async_session",
]

from typing import AsyncGenerator
import logging
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import DateTime
from sqlalchemy.dialects import mysql
from wakili.core.config import settings

# Base class for SQLAlchemy models
Base = declarative_base()

# MySQL DATETIME은 기본 정밀도가 초 단위이므로 마이크로초(fsp=6)까지 저장
PreciseDateTime = DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql")

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    """드라이버별 엔진 옵션 (SQLite는 커넥션 풀 옵션을 받지 않음)"""
    options = {"echo": settings.debug}
    if not url.startswith("sqlite"):
        options.update(
            pool_size=10,
            max_overflow=20,
            pool_recycle=3600,  # Recycle connections after 1 hour
            pool_pre_ping=True,  # Validate connections before use
        )
    return options


# Database engine with connection pooling
engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session error: {e}")
            raise


async def init_mysql_db():
    """Initialize MySQL database"""
    try:
        async with engine.begin() as conn:
            # Create all tables
            await conn.run_sync(Base.metadata.create_all)
        logger.info("MySQL database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize MySQL database: {e}")
        raise


async def close_mysql_db():
    """Close MySQL database connections"""
    await engine.dispose()
    logger.info("MySQL database connections closed")

"""
SQLAlchemy 비동기 엔진과 세션

운영은 MySQL(aiomysql), 로컬/테스트는 SQLite(aiosqlite) URL을 사용합니다.
"""

from typing import AsyncGenerator
import logging
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base
from sqlalchemy import DateTime, text
from sqlalchemy.dialects import mysql
from app.core.config import settings

Base = declarative_base()

# MySQL DATETIME은 기본적으로 초 단위로 잘리므로, 읽음/활동 시각처럼 서로 비교하는 컬럼은 마이크로초까지 저장
PreciseDateTime = DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql")

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    """MySQL은 연결 풀 옵션을 지정하고 SQLite는 기본 풀 사용"""
    options = {"echo": settings.debug}
    if not url.startswith("sqlite"):
        options.update(
            pool_size=10,
            max_overflow=20,
            pool_recycle=3600,  # MySQL wait_timeout보다 짧게
            pool_pre_ping=True,
        )
    return options


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

# 상태 변경 후에도 응답을 만들 수 있도록 commit 시 만료하지 않음
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """요청 단위 세션 (예외 시 롤백)"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Database session error: {e}")
            raise


async def init_mysql_db():
    """모델 테이블 생성 (이미 있으면 건너뜀)"""
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Database tables ready ({engine.url.get_backend_name()})")


async def check_mysql_connection() -> bool:
    try:
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            return result.scalar() == 1
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database connection check failed: {e}")
        return False


async def close_mysql_db():
    await engine.dispose()
    logger.info("Database connections closed")

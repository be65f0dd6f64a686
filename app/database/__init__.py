"""
데이터베이스 연결 수명 관리

MySQL(SQLAlchemy)은 항상, Redis는 cache_backend가 redis일 때만 연결합니다.
"""

from app.core.config import settings
from app.core.logging import get_logger
from .mysql import init_mysql_db, close_mysql_db, check_mysql_connection, get_async_session
from .redis import init_redis, close_redis, health_check as redis_health_check

logger = get_logger(__name__)


def _uses_redis() -> bool:
    return settings.cache_backend == "redis"


async def init_databases():
    await init_mysql_db()
    if _uses_redis():
        await init_redis()
    logger.info(f"Databases initialized (redis={'on' if _uses_redis() else 'off'})")


async def close_databases():
    # 한쪽 종료가 실패해도 다른 쪽은 닫음
    try:
        if _uses_redis():
            await close_redis()
    finally:
        await close_mysql_db()


async def check_database_health() -> dict:
    """{"mysql": bool, "redis": bool, "overall": bool} (redis를 쓰지 않으면 redis는 True)"""
    mysql_ok = await check_mysql_connection()
    redis_ok = True
    if _uses_redis():
        redis_ok = (await redis_health_check())["status"] == "healthy"

    return {"mysql": mysql_ok, "redis": redis_ok, "overall": mysql_ok and redis_ok}


__all__ = [
    "init_databases",
    "close_databases",
    "check_database_health",
    "get_async_session",
]

"""
Redis 연결

cache_backend가 redis일 때 읽지 않은 메시지 수 캐시가 사용하는 클라이언트를 관리합니다.
클라이언트는 처음 요청될 때 만들어지고 close_redis()까지 재사용됩니다.
"""

import time
from typing import Optional
import redis.asyncio as redis

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

_client: Optional[redis.Redis] = None


def create_redis_client(url: Optional[str] = None) -> redis.Redis:
    """설정값으로 연결 풀을 가진 클라이언트 생성 (값은 str로 디코딩)"""
    return redis.from_url(
        url or settings.redis_url,
        max_connections=settings.redis_max_connections,
        retry_on_timeout=settings.redis_retry_on_timeout,
        socket_keepalive=settings.redis_socket_keepalive,
        socket_keepalive_options=settings.redis_socket_keepalive_options,
        decode_responses=True
    )


async def init_redis() -> redis.Redis:
    global _client

    client = create_redis_client()
    try:
        await client.ping()
    except redis.RedisError as e:
        logger.error(f"Redis connection failed ({settings.redis_url}): {e}")
        await client.aclose()
        raise

    _client = client
    logger.info(f"Redis client ready (max {settings.redis_max_connections} connections)")
    return client


async def close_redis():
    global _client

    if _client is None:
        return
    try:
        await _client.aclose()
        logger.info("Redis client closed")
    except redis.RedisError as e:
        logger.error(f"Error closing Redis client: {e}")
    finally:
        _client = None


async def get_redis() -> redis.Redis:
    if _client is None:
        return await init_redis()
    return _client


async def health_check() -> dict:
    """PING 왕복 시간으로 상태 확인"""
    try:
        client = await get_redis()
        started = time.perf_counter()
        await client.ping()
        return {
            "status": "healthy",
            "ping_ms": round((time.perf_counter() - started) * 1000, 2)
        }
    except (redis.RedisError, OSError) as e:
        logger.error(f"Redis health check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}

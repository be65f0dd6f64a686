"""
읽지 않은 메시지 수 캐시

Redis(운영) 또는 프로세스 메모리(로컬/테스트) 위에서 동작하는 단순 key-value 캐시입니다.
캐시는 보조 저장소일 뿐이므로 모든 실패는 로그만 남기고 miss/no-op으로 처리합니다.

키마다 세대(generation) 번호가 있고 evict 때마다 올라갑니다. 값을 계산하기 전에 읽어 둔
세대를 put에 넘기면, 계산하는 동안 evict가 있었을 때 오래된 값을 다시 쓰지 않습니다.
"""

import time
from typing import Dict, Optional, Tuple

from redis.exceptions import WatchError

from app.core.config import settings
from app.core.logging import get_logger, log_cache_event

logger = get_logger(__name__)

UNREAD_COUNT_KEY_PREFIX = "unread_count"
GENERATION_TTL_SECONDS = 86400


def unread_count_key(user_id: int, swap_request_id: int) -> str:
    """(사용자, 교환 요청)별 읽지 않은 메시지 수 캐시 키"""
    return f"{UNREAD_COUNT_KEY_PREFIX}:{user_id}:{swap_request_id}"


def generation_key(key: str) -> str:
    return f"{key}:gen"


def _as_generation(raw) -> int:
    return int(raw) if raw is not None else 0


class Cache:
    """캐시 계약: get / generation / put / evict"""

    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def generation(self, key: str) -> int:
        raise NotImplementedError

    async def put(self, key: str, value: str, ttl: int, generation: Optional[int] = None) -> None:
        """generation이 주어지면 키의 현재 세대가 같을 때만 기록"""
        raise NotImplementedError

    async def evict(self, key: str) -> None:
        raise NotImplementedError


class RedisCache(Cache):
    """redis.asyncio 기반 캐시 (SETEX / GET / DEL, 세대 키는 INCR + WATCH)"""

    def __init__(self, client=None):
        self._client = client

    async def _get_client(self):
        if self._client is None:
            from app.database.redis import get_redis
            self._client = await get_redis()
        return self._client

    async def get(self, key: str) -> Optional[str]:
        try:
            client = await self._get_client()
            value = await client.get(key)
            log_cache_event(logger, "hit" if value is not None else "miss", key)
            return value
        except Exception as e:
            logger.error(f"Failed to get cache {key}: {e}")
            return None

    async def generation(self, key: str) -> int:
        # 읽지 못하면 -1: 이후 put은 어떤 세대와도 맞지 않아 기록되지 않음
        try:
            client = await self._get_client()
            return _as_generation(await client.get(generation_key(key)))
        except Exception as e:
            logger.error(f"Failed to get cache generation {key}: {e}")
            return -1

    async def put(self, key: str, value: str, ttl: int, generation: Optional[int] = None) -> None:
        try:
            client = await self._get_client()
            if generation is None:
                await client.setex(key, ttl, value)
                log_cache_event(logger, "put", key, ttl=ttl)
                return

            async with client.pipeline(transaction=True) as pipe:
                await pipe.watch(generation_key(key))
                current = _as_generation(await pipe.get(generation_key(key)))
                if current != generation:
                    log_cache_event(logger, "stale_put_skipped", key, generation=generation, current=current)
                    return
                pipe.multi()
                pipe.setex(key, ttl, value)
                await pipe.execute()
            log_cache_event(logger, "put", key, ttl=ttl, generation=generation)
        except WatchError:
            log_cache_event(logger, "stale_put_skipped", key, generation=generation)
        except Exception as e:
            logger.error(f"Failed to set cache {key}: {e}")

    async def evict(self, key: str) -> None:
        try:
            client = await self._get_client()
            async with client.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                pipe.incr(generation_key(key))
                pipe.expire(generation_key(key), GENERATION_TTL_SECONDS)
                await pipe.execute()
            log_cache_event(logger, "evict", key)
        except Exception as e:
            logger.error(f"Failed to delete cache {key}: {e}")


class InMemoryCache(Cache):
    """프로세스 메모리 캐시 (항목별 만료 시각과 세대 보관)"""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}
        self._generations: Dict[str, int] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            log_cache_event(logger, "miss", key)
            return None

        value, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            log_cache_event(logger, "expired", key)
            return None

        log_cache_event(logger, "hit", key)
        return value

    async def generation(self, key: str) -> int:
        return self._generations.get(key, 0)

    async def put(self, key: str, value: str, ttl: int, generation: Optional[int] = None) -> None:
        if generation is not None and generation != self._generations.get(key, 0):
            log_cache_event(logger, "stale_put_skipped", key, generation=generation)
            return
        self._entries[key] = (value, self._clock() + ttl)
        log_cache_event(logger, "put", key, ttl=ttl)

    async def evict(self, key: str) -> None:
        self._entries.pop(key, None)
        self._generations[key] = self._generations.get(key, 0) + 1
        log_cache_event(logger, "evict", key)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._clock() < entry[1]

    def __len__(self) -> int:
        return len(self._entries)


def create_cache(backend: Optional[str] = None) -> Cache:
    """설정된 백엔드에 맞는 캐시 생성"""
    backend = (backend or settings.cache_backend).lower()
    if backend == "redis":
        return RedisCache()
    if backend == "memory":
        return InMemoryCache()
    raise ValueError(f"Unsupported cache backend: {backend}")

"""Redis cache with an in-process fallback"""
import logging
import time

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class CacheService:
    """Only what the chat pipeline needs: one-shot key claims with a TTL"""

    def __init__(self):
        self._redis: redis.Redis | None = None
        self._connected = False
        self._memory: dict[str, float] = {}

    async def connect(self, redis_url: str) -> bool:
        """Connect to Redis; stay on the memory cache when that fails"""
        if not redis_url:
            logger.info("REDIS_URL not set, using memory cache")
            return False
        try:
            self._redis = redis.from_url(redis_url, decode_responses=True)
            await self._redis.ping()
            self._connected = True
            logger.info("Redis connected successfully")
            return True
        except (redis.RedisError, OSError) as e:
            logger.warning(f"Redis connection failed: {e}, using memory cache")
            self._redis = None
            return False

    async def disconnect(self) -> None:
        if self._redis:
            await self._redis.aclose()
        self._redis = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def claim(self, key: str, ttl: int) -> bool:
        """Atomically mark ``key`` as taken; False when someone already holds it"""
        if self._connected and self._redis:
            try:
                return bool(await self._redis.set(key, "1", nx=True, ex=int(ttl)))
            except redis.RedisError as e:
                logger.error(f"Redis claim error: {e}")

        now = time.time()
        expires_at = self._memory.get(key)
        if expires_at is not None and expires_at > now:
            return False
        if len(self._memory) > 10000:
            self._memory = {k: v for k, v in self._memory.items() if v > now}
        self._memory[key] = now + int(ttl)
        return True


cache_service = CacheService()

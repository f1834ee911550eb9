from typing import Optional
import logging
import asyncio
import uuid
import redis.asyncio as redis
from redis.asyncio import Redis

logger = logging.getLogger(__name__)


class RedisManager:
    """Redis connection manager and utilities"""

    def __init__(self):
        self._redis_client: Optional[Redis] = None
        self._is_connected = False

    async def connect(self, redis_url: str) -> None:
        """Establish Redis connection"""
        try:
            self._redis_client = redis.from_url(
                redis_url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=20,
                retry_on_timeout=True,
                socket_timeout=5,
                socket_connect_timeout=5,
                health_check_interval=30
            )

            await self._redis_client.ping()
            self._is_connected = True
            logger.info("Redis connection established")

        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            self._is_connected = False
            raise

    async def disconnect(self) -> None:
        """Close Redis connection"""
        if self._redis_client:
            await self._redis_client.aclose()
            self._is_connected = False
            logger.info("Redis connection closed")

    @property
    def is_connected(self) -> bool:
        return self._is_connected and self._redis_client is not None

    @property
    def client(self) -> Redis:
        """Get Redis client"""
        if not self.is_connected:
            raise RuntimeError("Redis is not connected")
        return self._redis_client

    async def is_healthy(self) -> bool:
        """Check Redis health"""
        try:
            if self._redis_client:
                await self._redis_client.ping()
                return True
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
        return False


# Global Redis manager instance
redis_manager = RedisManager()


class LockService:
    """Service for distributed locks"""

    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(self, redis_client: Redis):
        self.redis = redis_client

    async def acquire_lock(
        self,
        lock_key: str,
        timeout: int = 30,
        retry_delay: float = 0.1,
        max_retries: int = 1
    ) -> Optional[str]:
        """Acquire distributed lock, returning its token or None when held elsewhere"""
        lock_value = str(uuid.uuid4())
        lock_key_full = f"lock:{lock_key}"

        for attempt in range(max_retries):
            acquired = await self.redis.set(
                lock_key_full,
                lock_value,
                ex=timeout,
                nx=True
            )
            if acquired:
                return lock_value

            if attempt + 1 < max_retries:
                await asyncio.sleep(retry_delay)

        return None

    async def release_lock(self, lock_key: str, lock_value: str) -> bool:
        """Release distributed lock if this caller still owns it"""
        try:
            result = await self.redis.eval(self.RELEASE_SCRIPT, 1, f"lock:{lock_key}", lock_value)
            return result > 0
        except Exception as e:
            logger.error(f"Lock release error: {e}")
            return False


lock_service: Optional[LockService] = None


async def init_redis_services(redis_url: str) -> None:
    """Connect Redis and build the lock service"""
    global lock_service

    await redis_manager.connect(redis_url)
    lock_service = LockService(redis_manager.client)

    logger.info("Redis services initialized")


async def close_redis_services() -> None:
    """Close Redis services"""
    global lock_service

    lock_service = None
    await redis_manager.disconnect()
    logger.info("Redis services closed")


def get_lock_service() -> Optional[LockService]:
    return lock_service

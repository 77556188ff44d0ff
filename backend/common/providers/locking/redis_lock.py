import uuid
from typing import Optional
import redis.asyncio as redis
from redis.exceptions import RedisError

from common.core.config import settings
from .interface import DistributedLockInterface
from common.core.otel_exporter import get_logger

logger = get_logger(__name__)

# Atomic check-and-delete: only the owner's token may release
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

# Atomic check-and-expire
_EXTEND_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("expire", KEYS[1], ARGV[2])
else
    return 0
end
"""


class RedisLock(DistributedLockInterface):
    """Redis lock: SET NX EX to acquire, Lua scripts to release and extend."""

    def __init__(self, client: Optional[redis.Redis] = None):
        self._client = client
        self._lock_prefix = f"{settings.app_name}:lock:"

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.Redis.from_url(
                settings.redis_connection_url, decode_responses=True
            )
        return self._client

    async def disconnect(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Redis lock provider disconnected")

    def _key(self, resource_key: str) -> str:
        return f"{self._lock_prefix}{resource_key}"

    async def acquire_lock(
        self, resource_key: str, timeout_seconds: int = 30
    ) -> Optional[str]:
        lock_token = str(uuid.uuid4())

        try:
            acquired = await self._get_client().set(
                self._key(resource_key),
                lock_token,
                nx=True,
                ex=timeout_seconds,
            )
        except RedisError as e:
            logger.error(f"Error acquiring lock for {resource_key}: {e}")
            return None

        if acquired:
            logger.debug(f"Acquired lock for {resource_key}")
            return lock_token
        logger.debug(f"Lock for {resource_key} already held")
        return None

    async def release_lock(self, resource_key: str, lock_token: str) -> bool:
        try:
            result = await self._get_client().eval(
                _RELEASE_SCRIPT, 1, self._key(resource_key), lock_token
            )
        except RedisError as e:
            logger.error(f"Error releasing lock for {resource_key}: {e}")
            return False

        if not result:
            logger.warning(
                f"Cannot release lock for {resource_key} - token mismatch or lock expired"
            )
        return bool(result)

    async def extend_lock(
        self, resource_key: str, lock_token: str, additional_seconds: int
    ) -> bool:
        try:
            result = await self._get_client().eval(
                _EXTEND_SCRIPT,
                1,
                self._key(resource_key),
                lock_token,
                additional_seconds,
            )
        except RedisError as e:
            logger.error(f"Error extending lock for {resource_key}: {e}")
            return False

        if not result:
            logger.warning(
                f"Cannot extend lock for {resource_key} - token mismatch or lock expired"
            )
        return bool(result)

    async def is_locked(self, resource_key: str) -> bool:
        try:
            return bool(await self._get_client().exists(self._key(resource_key)))
        except RedisError as e:
            logger.error(f"Error checking lock for {resource_key}: {e}")
            return False

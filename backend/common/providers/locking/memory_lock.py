import asyncio
import time
import uuid
from typing import Dict, Optional, Tuple

from common.core.otel_exporter import get_logger
from .interface import DistributedLockInterface

logger = get_logger(__name__)


class MemoryLock(DistributedLockInterface):
    """
    In-process lock table with TTLs.

    Only excludes callers inside the same process; use ``RedisLock`` when
    several sweep processes may run at once.
    """

    def __init__(self):
        # resource_key -> (token, monotonic expiry)
        self._locks: Dict[str, Tuple[str, float]] = {}
        self._guard = asyncio.Lock()

    def _live_entry(self, resource_key: str) -> Optional[Tuple[str, float]]:
        entry = self._locks.get(resource_key)
        if entry and entry[1] <= time.monotonic():
            del self._locks[resource_key]
            return None
        return entry

    async def acquire_lock(
        self, resource_key: str, timeout_seconds: int = 30
    ) -> Optional[str]:
        async with self._guard:
            if self._live_entry(resource_key):
                return None
            token = str(uuid.uuid4())
            self._locks[resource_key] = (token, time.monotonic() + timeout_seconds)
            logger.debug(f"Acquired in-memory lock for {resource_key}")
            return token

    async def release_lock(self, resource_key: str, lock_token: str) -> bool:
        async with self._guard:
            entry = self._live_entry(resource_key)
            if not entry or entry[0] != lock_token:
                return False
            del self._locks[resource_key]
            return True

    async def extend_lock(
        self, resource_key: str, lock_token: str, additional_seconds: int
    ) -> bool:
        async with self._guard:
            entry = self._live_entry(resource_key)
            if not entry or entry[0] != lock_token:
                return False
            self._locks[resource_key] = (
                lock_token,
                time.monotonic() + additional_seconds,
            )
            return True

    async def is_locked(self, resource_key: str) -> bool:
        async with self._guard:
            return self._live_entry(resource_key) is not None

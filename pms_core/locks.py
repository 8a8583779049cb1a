"""
Per-Property Locks
==================

Single-writer serialization around every availability check + block insert
for a property. Two callers racing for overlapping dates queue on the same
key, so the second one re-checks availability after the first has written
its hold.

- RedisPropertyLock: distributed, shared by every API process and worker
- LocalPropertyLock: one asyncio.Lock per property, single process only
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional
from uuid import UUID

import redis.asyncio as aioredis
import structlog

from .config import LockBackend, settings
from .errors import Unavailable

logger = structlog.get_logger(__name__)


class PropertyLock(ABC):
    """Mutual exclusion keyed by property id."""

    @abstractmethod
    def hold(self, property_id: UUID):
        """Async context manager held for the duration of a check + write."""


class LocalPropertyLock(PropertyLock):
    """Entries live only while someone holds or waits on the property."""

    def __init__(self):
        self._locks: Dict[UUID, asyncio.Lock] = {}
        self._users: Dict[UUID, int] = {}

    @asynccontextmanager
    async def hold(self, property_id: UUID) -> AsyncIterator[None]:
        lock = self._locks.setdefault(property_id, asyncio.Lock())
        self._users[property_id] = self._users.get(property_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[property_id] -= 1
            if not self._users[property_id]:
                del self._users[property_id]
                del self._locks[property_id]


class RedisPropertyLock(PropertyLock):
    def __init__(
        self,
        redis: Optional[aioredis.Redis] = None,
        timeout: int = None,
        blocking_timeout: float = None,
        key_prefix: str = "booking:lock",
    ):
        self._redis = redis
        self.timeout = timeout or settings.LOCK_TIMEOUT_SECONDS
        self.blocking_timeout = (
            settings.LOCK_BLOCKING_TIMEOUT_SECONDS if blocking_timeout is None else blocking_timeout
        )
        self.key_prefix = key_prefix

    def get_redis(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = aioredis.from_url(settings.REDIS_URL)
        return self._redis

    @asynccontextmanager
    async def hold(self, property_id: UUID) -> AsyncIterator[None]:
        lock_key = f"{self.key_prefix}:{property_id}"
        lock = self.get_redis().lock(lock_key, timeout=self.timeout)

        if not await lock.acquire(blocking_timeout=self.blocking_timeout):
            logger.warning("Property lock busy", property_id=str(property_id))
            raise Unavailable(
                "Another booking is being processed for this property. Please try again."
            )

        try:
            yield
        finally:
            await lock.release()


_property_lock: Optional[PropertyLock] = None


def get_property_lock() -> PropertyLock:
    """Process-wide lock selected by ``LOCK_BACKEND``."""
    global _property_lock
    if _property_lock is None:
        if settings.LOCK_BACKEND == LockBackend.LOCAL:
            _property_lock = LocalPropertyLock()
        else:
            _property_lock = RedisPropertyLock()
    return _property_lock


def set_property_lock(lock: Optional[PropertyLock]) -> None:
    global _property_lock
    _property_lock = lock

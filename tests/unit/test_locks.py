"""Tests for per-property locks."""

import asyncio
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from pms_core.errors import Unavailable
from pms_core.locks import LocalPropertyLock, RedisPropertyLock


@pytest.mark.unit
@pytest.mark.asyncio
async def test_local_lock_serializes_and_forgets_released_properties():
    lock = LocalPropertyLock()
    property_id = uuid4()
    order = []
    first_inside = asyncio.Event()

    async def first():
        async with lock.hold(property_id):
            order.append("first in")
            first_inside.set()
            await asyncio.sleep(0.01)
            order.append("first out")

    async def second():
        await first_inside.wait()
        async with lock.hold(property_id):
            order.append("second in")

    task = asyncio.gather(first(), second())
    await first_inside.wait()
    await asyncio.sleep(0)
    assert property_id in lock._locks

    await task

    assert order == ["first in", "first out", "second in"]
    assert lock._locks == {}
    assert lock._users == {}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_local_lock_entry_is_released_on_error():
    lock = LocalPropertyLock()

    with pytest.raises(Unavailable):
        async with lock.hold(uuid4()):
            raise Unavailable("taken")

    assert lock._locks == {}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_redis_lock_busy_raises_unavailable():
    redis_lock = MagicMock()
    redis_lock.acquire = AsyncMock(return_value=False)
    redis = MagicMock()
    redis.lock.return_value = redis_lock
    property_id = uuid4()

    with pytest.raises(Unavailable):
        async with RedisPropertyLock(redis=redis, timeout=30, blocking_timeout=0).hold(property_id):
            pytest.fail("lock should not be granted")

    redis.lock.assert_called_once_with(f"booking:lock:{property_id}", timeout=30)
    redis_lock.acquire.assert_awaited_once_with(blocking_timeout=0)

"""Shared pytest fixtures and configuration."""

import os

# Set test environment variables before the settings singleton is built
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOCK_BACKEND", "local")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
import pytest_asyncio

from pms_core.database import configure_engine, create_all, dispose_engine, get_async_session
from pms_core.dispatch import set_dispatcher
from pms_core.locks import LocalPropertyLock, set_property_lock

from tests.utils.helpers import RecordingDispatcher


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh SQLite database per test."""
    engine = configure_engine(f"sqlite+aiosqlite:///{tmp_path / 'pms-test.db'}", echo=False)
    await create_all()
    yield engine
    await dispose_engine()


@pytest_asyncio.fixture
async def session(engine):
    async with get_async_session() as session:
        yield session


@pytest.fixture(autouse=True)
def property_lock():
    """In-process lock so tests never need Redis."""
    lock = LocalPropertyLock()
    set_property_lock(lock)
    yield lock
    set_property_lock(None)


@pytest.fixture(autouse=True)
def dispatcher():
    """Record enqueued tasks instead of sending them to the broker."""
    recorder = RecordingDispatcher()
    set_dispatcher(recorder)
    yield recorder
    set_dispatcher(None)


@pytest.fixture
def no_retry_delay(monkeypatch):
    """Retry platform calls immediately."""
    monkeypatch.setattr("channel_manager.sync_engine.calculate_retry_delay", lambda retries: 0)

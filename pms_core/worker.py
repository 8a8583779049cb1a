"""
Celery Worker
=============

Task queue for every fire-and-forget trigger (platform sync, external
booking ingestion, loyalty accrual) and the periodic expiry reaper.

Run with:
    celery -A pms_core.worker worker --beat --loglevel=info
"""

import asyncio
from typing import Any, Awaitable, Callable

from celery import Celery
from celery.signals import worker_process_init

from .config import settings
from .database import dispose_engine
from .logging import configure_logging

celery = Celery(
    "pms",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=[
        "booking_engine.loyalty",
        "booking_engine.reaper",
        "channel_manager.ingestion",
        "channel_manager.sync_engine",
    ],
)

celery.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes max per task
    task_soft_time_limit=240,
    worker_prefetch_multiplier=1,
    task_acks_late=True,  # Ack after task completes (at-least-once)
    task_reject_on_worker_lost=True,
)

celery.conf.beat_schedule = {
    "reap-expired-holds": {
        "task": "booking_engine.reap_expired_holds",
        "schedule": float(settings.REAPER_INTERVAL_SECONDS),
    },
}


@worker_process_init.connect
def _init_worker_logging(**kwargs) -> None:
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)


def run_async(func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
    """Run a coroutine function from a sync Celery task.

    Each task gets a fresh event loop, so pooled connections bound to the
    previous loop are disposed before returning.
    """
    async def runner():
        try:
            return await func(*args, **kwargs)
        finally:
            await dispose_engine()

    return asyncio.run(runner())

"""
Task Dispatch
=============

The seam services enqueue background work through. Production uses Celery;
tests swap in a recording dispatcher with ``set_dispatcher``.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

import structlog

logger = structlog.get_logger(__name__)


class TaskDispatcher(ABC):

    @abstractmethod
    def schedule_booking_sync(self, booking_id: UUID) -> None:
        """Push the booking's dates to every connected platform."""

    @abstractmethod
    def schedule_loyalty_points(self, user_id: UUID, points: int, booking_amount: Decimal) -> None:
        """Credit loyalty points to the guest."""

    @abstractmethod
    def schedule_external_ingestion(self, booking_data: Dict[str, Any]) -> None:
        """Ingest a booking notification from an external platform."""


class CeleryDispatcher(TaskDispatcher):
    """Enqueue onto the Celery broker.

    Enqueue failures are logged and swallowed: the triggering operation has
    already committed and must not fail because the broker is down.
    """

    def schedule_booking_sync(self, booking_id: UUID) -> None:
        from channel_manager.sync_engine import sync_booking_task

        try:
            sync_booking_task.delay(str(booking_id))
        except Exception as e:
            logger.error("Failed to enqueue booking sync", booking_id=str(booking_id), error=str(e))

    def schedule_loyalty_points(self, user_id: UUID, points: int, booking_amount: Decimal) -> None:
        from booking_engine.loyalty import add_loyalty_points_task

        try:
            add_loyalty_points_task.delay(str(user_id), points, str(booking_amount))
        except Exception as e:
            logger.error("Failed to enqueue loyalty points", user_id=str(user_id), error=str(e))

    def schedule_external_ingestion(self, booking_data: Dict[str, Any]) -> None:
        from channel_manager.ingestion import ingest_external_booking_task

        ingest_external_booking_task.delay(booking_data)


_dispatcher: Optional[TaskDispatcher] = None


def get_dispatcher() -> TaskDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = CeleryDispatcher()
    return _dispatcher


def set_dispatcher(dispatcher: Optional[TaskDispatcher]) -> None:
    global _dispatcher
    _dispatcher = dispatcher

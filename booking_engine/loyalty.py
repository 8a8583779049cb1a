"""
Loyalty Accrual
===============

Fire-and-forget call to the loyalty ledger: one point per
LOYALTY_POINTS_DIVISOR currency units of the booking total. The ledger is
an external service; its failures are logged and never reach the booking.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

import httpx
import structlog

from pms_core.config import settings
from pms_core.worker import celery, run_async

logger = structlog.get_logger(__name__)


async def add_loyalty_points(
    user_id: UUID,
    points: int,
    booking_amount: Decimal,
    client: Optional[httpx.AsyncClient] = None,
) -> bool:
    """
    POST the accrual to the ledger service.

    Returns:
        True if the ledger accepted the call, False if it was skipped or failed
    """
    if points <= 0:
        return False

    if not settings.LOYALTY_SERVICE_URL:
        logger.info(
            "Loyalty service not configured, skipping accrual",
            user_id=str(user_id),
            points=points,
        )
        return False

    payload = {
        "user_id": str(user_id),
        "points": points,
        "booking_amount": str(booking_amount),
    }
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=settings.PLATFORM_CALL_TIMEOUT_SECONDS)

    try:
        response = await client.post(f"{settings.LOYALTY_SERVICE_URL}/points", json=payload)
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(
            "Loyalty accrual failed",
            user_id=str(user_id),
            points=points,
            error=str(e),
        )
        return False
    finally:
        if owns_client:
            await client.aclose()

    logger.info("Loyalty points added", user_id=str(user_id), points=points)
    return True


@celery.task(name="booking_engine.add_loyalty_points")
def add_loyalty_points_task(user_id: str, points: int, booking_amount: str) -> bool:
    return run_async(add_loyalty_points, UUID(user_id), points, Decimal(booking_amount))

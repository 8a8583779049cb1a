"""
Expiry Reaper
=============

Periodic sweep (Celery beat, every REAPER_INTERVAL_SECONDS) deleting
temporary holds whose ``expires_at`` has passed, which frees the range for
new bookings.

What happens to the booking that owned an expired hold is governed by
``EXPIRED_HOLD_POLICY``:
- ignore:          the booking stays pending (abandoned, cleaned up elsewhere)
- cancel_pending:  bookings still pending with payment pending are cancelled
"""

from datetime import datetime
from typing import Dict, Optional

import structlog
from prometheus_client import Counter
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from pms_core.config import ExpiredHoldPolicy, settings
from pms_core.database import get_async_session, utcnow
from pms_core.enums import BookingStatus, PaymentStatus
from pms_core.models import Booking, DateBlock
from pms_core.worker import celery, run_async

logger = structlog.get_logger(__name__)

HOLDS_REAPED = Counter(
    "pms_holds_reaped_total",
    "Expired temporary holds deleted by the reaper"
)

BOOKINGS_AUTO_CANCELLED = Counter(
    "pms_bookings_auto_cancelled_total",
    "Pending bookings cancelled after their hold expired"
)


async def _reap(
    session: AsyncSession,
    now: datetime,
    policy: ExpiredHoldPolicy,
) -> Dict[str, int]:
    result = await session.execute(
        select(DateBlock).where(
            and_(
                DateBlock.is_temporary.is_(True),
                DateBlock.expires_at < now,
            )
        )
    )
    expired = list(result.scalars().all())

    cancelled = 0
    for block in expired:
        if policy == ExpiredHoldPolicy.CANCEL_PENDING and block.booking_id is not None:
            # Fresh row lock; a payment may have committed since the sweep began
            booking = await session.get(
                Booking,
                block.booking_id,
                with_for_update=True,
                populate_existing=True,
            )
            if (
                booking is not None
                and booking.status == BookingStatus.PENDING.value
                and booking.payment_status == PaymentStatus.PENDING.value
            ):
                booking.status = BookingStatus.CANCELLED.value
                cancelled += 1
                logger.info(
                    "Pending booking cancelled after hold expiry",
                    booking_id=str(booking.id),
                    property_id=str(booking.property_id),
                )
        await session.delete(block)

    await session.commit()
    return {"deleted": len(expired), "cancelled": cancelled}


async def reap_expired_holds(
    session: Optional[AsyncSession] = None,
    now: Optional[datetime] = None,
    policy: Optional[ExpiredHoldPolicy] = None,
) -> Dict[str, int]:
    """
    Delete every temporary block with ``expires_at`` before ``now``.

    Args:
        session: Session to use; a new one is opened when omitted
        now: Sweep time (naive UTC); defaults to the current time
        policy: Overrides ``settings.EXPIRED_HOLD_POLICY``

    Returns:
        Counts of deleted holds and cancelled bookings
    """
    now = now or utcnow()
    policy = policy or settings.EXPIRED_HOLD_POLICY

    if session is None:
        async with get_async_session() as session:
            stats = await _reap(session, now, policy)
    else:
        stats = await _reap(session, now, policy)

    HOLDS_REAPED.inc(stats["deleted"])
    BOOKINGS_AUTO_CANCELLED.inc(stats["cancelled"])
    if stats["deleted"]:
        logger.info("Expired holds reaped", policy=policy.value, **stats)
    return stats


@celery.task(name="booking_engine.reap_expired_holds")
def reap_expired_holds_task() -> dict:
    """Beat entry point for the expiry sweep."""
    return run_async(reap_expired_holds)

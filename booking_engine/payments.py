"""
Payment Confirmation
====================

Called once the payment gateway reports success. The core does not verify
the transaction itself.

Any payment event confirms the booking; a partial amount leaves the payment
status at ``partial``. The temporary hold is swapped for a permanent
``booked`` block in the same transaction, so the range is never left
unprotected between the two writes.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from pms_core.enums import BlockReason, BookingStatus, PaymentStatus
from pms_core.errors import InvalidTransition
from pms_core.locks import PropertyLock, get_property_lock
from pms_core.models import Booking, DateBlock

from .availability import insert_block, lock_property_row
from .bookings import get_booking

logger = structlog.get_logger(__name__)


async def _booking_holds(session: AsyncSession, booking: Booking):
    """sync_lock holds written for this booking."""
    result = await session.execute(
        select(DateBlock).where(
            and_(
                DateBlock.property_id == booking.property_id,
                DateBlock.reason == BlockReason.SYNC_LOCK.value,
                DateBlock.is_temporary.is_(True),
                DateBlock.booking_id == booking.id,
            )
        )
    )
    return list(result.scalars().all())


async def _booked_block(session: AsyncSession, booking: Booking) -> Optional[DateBlock]:
    result = await session.execute(
        select(DateBlock).where(
            and_(
                DateBlock.booking_id == booking.id,
                DateBlock.reason == BlockReason.BOOKED.value,
            )
        )
    )
    return result.scalars().first()


async def confirm_payment(
    session: AsyncSession,
    booking_id: UUID,
    transaction_id: str,
    amount_paid: Decimal,
    lock: Optional[PropertyLock] = None,
) -> Booking:
    """
    Record a payment and promote the booking's hold to a permanent block.

    Repeating the call for an already-confirmed booking updates the payment
    record without writing a second block.

    Raises:
        NotFound: Booking does not exist
        InvalidTransition: Booking is cancelled or completed
        Unavailable: The hold expired and another block now overlaps the range
    """
    booking = await get_booking(session, booking_id)
    lock = lock or get_property_lock()
    amount_paid = Decimal(amount_paid)

    async with lock.hold(booking.property_id):
        try:
            await lock_property_row(session, booking.property_id)

            # Status may have changed while we waited for the lock
            await session.refresh(booking, with_for_update=True)
            if booking.status in (BookingStatus.CANCELLED.value, BookingStatus.COMPLETED.value):
                raise InvalidTransition(f"Cannot confirm payment for a {booking.status} booking")
            is_full_payment = amount_paid >= booking.total

            holds = await _booking_holds(session, booking)
            for hold in holds:
                await session.delete(hold)
            await session.flush()

            if await _booked_block(session, booking) is None:
                await insert_block(
                    session,
                    property_id=booking.property_id,
                    start_date=booking.check_in,
                    end_date=booking.check_out,
                    reason=BlockReason.BOOKED,
                    is_temporary=False,
                    platform=booking.platform,
                    booking_id=booking.id,
                )

            booking.payment_status = (
                PaymentStatus.PAID.value if is_full_payment else PaymentStatus.PARTIAL.value
            )
            booking.amount_paid = amount_paid
            booking.transaction_id = transaction_id
            booking.status = BookingStatus.CONFIRMED.value
            await session.commit()

        except Exception:
            await session.rollback()
            raise

    logger.info(
        "Payment confirmed",
        booking_id=str(booking_id),
        transaction_id=transaction_id,
        amount_paid=str(amount_paid),
        payment_status=booking.payment_status,
        holds_released=len(holds),
    )
    return booking

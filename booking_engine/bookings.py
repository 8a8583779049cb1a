"""
Booking Lifecycle
=================

Flow for a direct booking:
1. Verify the range is free (Availability Checker)
2. Load the property (rates)
3. Price the stay
4. Write a temporary sync_lock hold expiring after HOLD_TTL_MINUTES
5. Persist the booking as pending / payment pending / sync pending
6. Enqueue cross-platform sync and loyalty accrual

Steps 1-5 run in one transaction while the property lock is held, so a
concurrent attempt for an overlapping range sees the hold and fails with
Unavailable instead of writing a second one. Step 6 happens after commit
and never fails the booking.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID, uuid4

import structlog
from prometheus_client import Counter
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pms_core.config import settings
from pms_core.database import utcnow
from pms_core.dispatch import TaskDispatcher, get_dispatcher
from pms_core.enums import (
    BlockReason,
    BookingStatus,
    PaymentStatus,
    PaymentType,
    Platform,
    SyncStatus,
)
from pms_core.errors import InvalidTransition, NotFound, Unavailable
from pms_core.locks import PropertyLock, get_property_lock
from pms_core.models import Booking

from .availability import check_availability, insert_block, lock_property_row, validate_range
from .pricing import amount_to_pay, calculate_price_breakdown, loyalty_points_for
from .properties import require_host_property, require_user
from .schemas import GuestCounts, GuestDetails

logger = structlog.get_logger(__name__)

BOOKINGS_CREATED = Counter(
    "pms_bookings_created_total",
    "Bookings created",
    ["platform"]
)

# Host-driven status changes
ALLOWED_TRANSITIONS: Dict[BookingStatus, set] = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED, BookingStatus.COMPLETED},
    BookingStatus.CANCELLED: set(),
    BookingStatus.COMPLETED: set(),
}


@dataclass(frozen=True)
class BookingCreated:
    booking_id: UUID
    amount_to_pay: Decimal
    hold_expires_at: datetime


async def get_booking(session: AsyncSession, booking_id: UUID) -> Booking:
    booking = await session.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    return booking


async def create_booking(
    session: AsyncSession,
    user_id: Optional[UUID],
    *,
    property_id: UUID,
    check_in: date,
    check_out: date,
    guests: GuestCounts,
    guest_details: GuestDetails,
    payment_method: str,
    payment_type: PaymentType,
    lock: Optional[PropertyLock] = None,
    dispatcher: Optional[TaskDispatcher] = None,
) -> BookingCreated:
    """
    Create a pending direct booking holding its dates until payment arrives.

    Raises:
        Unauthenticated: No caller identity
        InvalidRequest: check_out is not after check_in
        Unavailable: The range overlaps an existing block (or the lock is busy)
        NotFound: Property does not exist
    """
    guest_id = require_user(user_id)
    validate_range(check_in, check_out, allow_same_day=False)
    lock = lock or get_property_lock()
    dispatcher = dispatcher or get_dispatcher()

    async with lock.hold(property_id):
        try:
            # 1. Availability
            availability = await check_availability(session, property_id, check_in, check_out)
            if not availability.available:
                raise Unavailable(
                    "Property is not available for selected dates",
                    conflicts=availability.conflicts,
                )

            # 2. Property
            property = await lock_property_row(session, property_id)
            if property is None:
                raise NotFound("Property not found")

            # 3. Pricing
            price = calculate_price_breakdown(property, check_in, check_out)
            due = amount_to_pay(price.total, payment_type)

            # 4. Temporary hold
            booking_id = uuid4()
            hold_expires_at = utcnow() + timedelta(minutes=settings.HOLD_TTL_MINUTES)
            await insert_block(
                session,
                property_id=property_id,
                start_date=check_in,
                end_date=check_out,
                reason=BlockReason.SYNC_LOCK,
                is_temporary=True,
                expires_at=hold_expires_at,
                booking_id=booking_id,
            )

            # 5. Booking record
            booking = Booking(
                id=booking_id,
                property_id=property_id,
                guest_id=guest_id,
                check_in=check_in,
                check_out=check_out,
                adults=guests.adults,
                children=guests.children,
                pets=guests.pets,
                subtotal=price.subtotal,
                cleaning_fee=price.cleaning_fee,
                service_fee=price.service_fee,
                total=price.total,
                currency=price.currency,
                payment_status=PaymentStatus.PENDING.value,
                payment_method=payment_method,
                amount_paid=Decimal("0"),
                status=BookingStatus.PENDING.value,
                platform=Platform.DIRECT.value,
                guest_name=guest_details.name,
                guest_email=guest_details.email,
                guest_phone=guest_details.phone,
                special_requests=guest_details.special_requests,
                sync_status=SyncStatus.PENDING.value,
            )
            session.add(booking)
            await session.commit()

        except Exception:
            await session.rollback()
            raise

    logger.info(
        "Booking created",
        booking_id=str(booking_id),
        property_id=str(property_id),
        check_in=check_in.isoformat(),
        check_out=check_out.isoformat(),
        total=str(price.total),
        amount_to_pay=str(due),
    )
    BOOKINGS_CREATED.labels(platform=Platform.DIRECT.value).inc()

    # 6. Fire-and-forget follow-ups
    dispatcher.schedule_booking_sync(booking_id)
    dispatcher.schedule_loyalty_points(guest_id, loyalty_points_for(price.total), price.total)

    return BookingCreated(
        booking_id=booking_id,
        amount_to_pay=due,
        hold_expires_at=hold_expires_at,
    )


async def update_booking_status(
    session: AsyncSession,
    user_id: Optional[UUID],
    booking_id: UUID,
    status: BookingStatus,
    lock: Optional[PropertyLock] = None,
) -> Booking:
    """
    Host confirms, cancels or completes a booking.

    Cancellation is a status change; the booking record is never removed.
    The transition is checked against the row as re-read under the property
    lock, so it cannot overwrite a concurrent payment or reaper cancel.

    Raises:
        InvalidTransition: The change is not allowed from the current status
    """
    require_user(user_id)
    booking = await get_booking(session, booking_id)
    await require_host_property(session, user_id, booking.property_id)
    lock = lock or get_property_lock()

    async with lock.hold(booking.property_id):
        try:
            await session.refresh(booking, with_for_update=True)
            current = BookingStatus(booking.status)
            if status not in ALLOWED_TRANSITIONS[current]:
                raise InvalidTransition(
                    f"Cannot change booking status from {current.value} to {status.value}"
                )

            booking.status = status.value
            await session.commit()

        except Exception:
            await session.rollback()
            raise

    logger.info(
        "Booking status updated",
        booking_id=str(booking_id),
        from_status=current.value,
        to_status=status.value,
    )
    return booking


async def get_user_bookings(session: AsyncSession, user_id: Optional[UUID]) -> List[Booking]:
    """Caller's bookings, newest first."""
    guest_id = require_user(user_id)
    result = await session.execute(
        select(Booking)
        .where(Booking.guest_id == guest_id)
        .order_by(Booking.created_at.desc())
    )
    return list(result.scalars().all())

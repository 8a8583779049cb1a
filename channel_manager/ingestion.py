"""
External-Booking Ingestion
==========================

Inbound sync (Channels -> PMS-Core): turn a "booking created" notification
from Airbnb, Agoda or Booking.com into a local booking plus a permanent
``booked`` block, then fan the dates out to the other platforms.

Idempotent: a second notification for the same (platform, platform booking
id) is a no-op, whether caught by the lookup or by the unique constraint.
The platform owns the reservation, so there is no hold phase; the block is
still written through the availability gate under the property lock, and a
conflicting range is recorded as a failed ``availability_check`` for the
host instead of a booking.
"""

from datetime import date
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

import structlog
from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.availability import insert_block, lock_property_row
from booking_engine.bookings import BOOKINGS_CREATED
from booking_engine.pricing import calculate_price_breakdown
from pms_core.database import get_async_session
from pms_core.dispatch import TaskDispatcher, get_dispatcher
from pms_core.enums import (
    BlockReason,
    BookingStatus,
    ExternalPlatform,
    PaymentStatus,
    PropertyStatus,
    SyncAction,
    SyncLogStatus,
    SyncStatus,
)
from pms_core.errors import Unavailable
from pms_core.locks import PropertyLock, get_property_lock
from pms_core.models import Booking, Property, PropertyPlatformLink
from pms_core.worker import celery, run_async

from .schemas import ExternalBookingPayload, ExternalGuestDetails
from .sync_engine import log_sync_activity

logger = structlog.get_logger(__name__)

EXTERNAL_PAYMENT_METHOD = "external"
DEFAULT_EXTERNAL_ADULTS = 2


async def find_property_by_platform_id(
    session: AsyncSession,
    platform: ExternalPlatform,
    platform_property_id: str,
) -> Optional[Property]:
    """Active property connected to the given external listing."""
    result = await session.execute(
        select(Property)
        .join(PropertyPlatformLink, PropertyPlatformLink.property_id == Property.id)
        .where(
            and_(
                PropertyPlatformLink.platform == platform.value,
                PropertyPlatformLink.external_id == platform_property_id,
                Property.status == PropertyStatus.ACTIVE.value,
            )
        )
    )
    return result.scalars().first()


async def find_external_booking(
    session: AsyncSession,
    platform: ExternalPlatform,
    platform_booking_id: str,
) -> Optional[Booking]:
    result = await session.execute(
        select(Booking).where(
            and_(
                Booking.platform == platform.value,
                Booking.platform_booking_id == platform_booking_id,
            )
        )
    )
    return result.scalars().first()


async def _ingest(
    session: AsyncSession,
    platform: ExternalPlatform,
    platform_booking_id: str,
    platform_property_id: str,
    check_in: date,
    check_out: date,
    guest_details: ExternalGuestDetails,
    lock: PropertyLock,
    dispatcher: TaskDispatcher,
) -> Dict[str, Any]:
    property = await find_property_by_platform_id(session, platform, platform_property_id)
    if property is None:
        # Nothing to log against without a property id
        logger.warning(
            "No property connected to external listing",
            channel=platform.value,
            listing_id=platform_property_id,
        )
        return {"status": "unmapped"}
    property_id = property.id

    existing = await find_external_booking(session, platform, platform_booking_id)
    if existing is not None:
        logger.info(
            "Booking already imported",
            channel=platform.value,
            channel_booking_id=platform_booking_id,
        )
        return {"status": "duplicate", "booking_id": str(existing.id)}

    if check_out <= check_in:
        await log_sync_activity(
            session,
            property_id=property_id,
            platform=platform.value,
            action=SyncAction.AVAILABILITY_CHECK,
            status=SyncLogStatus.FAILED,
            details=f"Rejected {platform.value} booking {platform_booking_id}",
            error=f"Invalid date range: {check_in.isoformat()} to {check_out.isoformat()}",
        )
        await session.commit()
        return {"status": "rejected"}

    booking_id = uuid4()
    async with lock.hold(property_id):
        try:
            await lock_property_row(session, property_id)
            price = calculate_price_breakdown(property, check_in, check_out)

            await insert_block(
                session,
                property_id=property_id,
                start_date=check_in,
                end_date=check_out,
                reason=BlockReason.BOOKED,
                platform=platform.value,
                booking_id=booking_id,
            )

            session.add(Booking(
                id=booking_id,
                property_id=property_id,
                guest_id=None,
                check_in=check_in,
                check_out=check_out,
                adults=DEFAULT_EXTERNAL_ADULTS,
                children=0,
                pets=0,
                subtotal=price.subtotal,
                cleaning_fee=price.cleaning_fee,
                service_fee=price.service_fee,
                total=price.total,
                currency=price.currency,
                payment_status=PaymentStatus.PAID.value,
                payment_method=EXTERNAL_PAYMENT_METHOD,
                amount_paid=price.total,
                status=BookingStatus.CONFIRMED.value,
                platform=platform.value,
                platform_booking_id=platform_booking_id,
                guest_name=guest_details.name,
                guest_email=guest_details.email,
                guest_phone=guest_details.phone,
                sync_status=SyncStatus.SYNCED.value,
            ))
            await log_sync_activity(
                session,
                property_id=property_id,
                booking_id=booking_id,
                platform=platform.value,
                action=SyncAction.BOOKING_SYNC,
                status=SyncLogStatus.SUCCESS,
                details=f"Imported {platform.value} booking {platform_booking_id}",
            )
            await session.commit()

        except Unavailable as e:
            await session.rollback()
            await log_sync_activity(
                session,
                property_id=property_id,
                platform=platform.value,
                action=SyncAction.AVAILABILITY_CHECK,
                status=SyncLogStatus.FAILED,
                details=f"Rejected {platform.value} booking {platform_booking_id}: dates overlap",
                error=f"{e.message} ({check_in.isoformat()} to {check_out.isoformat()})",
            )
            await session.commit()
            logger.warning(
                "External booking overlaps existing block",
                channel=platform.value,
                channel_booking_id=platform_booking_id,
                property_id=str(property_id),
                conflicts=len(e.conflicts),
            )
            return {"status": "unavailable"}

        except IntegrityError:
            await session.rollback()
            # Duplicate prevented by UNIQUE(platform, platform_booking_id)
            logger.info(
                "Duplicate booking prevented by DB constraint",
                channel_booking_id=platform_booking_id
            )
            return {"status": "duplicate"}

        except Exception:
            await session.rollback()
            raise

    logger.info(
        "Booking imported successfully",
        booking_id=str(booking_id),
        channel=platform.value,
        channel_booking_id=platform_booking_id,
        property_id=str(property_id),
    )
    BOOKINGS_CREATED.labels(platform=platform.value).inc()

    # Fan-out: sync to the OTHER channels (the sync engine skips the source)
    dispatcher.schedule_booking_sync(booking_id)

    return {"status": "created", "booking_id": str(booking_id)}


async def ingest_external_booking(
    platform: ExternalPlatform,
    platform_booking_id: str,
    platform_property_id: str,
    check_in: date,
    check_out: date,
    guest_details: ExternalGuestDetails,
    session: Optional[AsyncSession] = None,
    lock: Optional[PropertyLock] = None,
    dispatcher: Optional[TaskDispatcher] = None,
) -> Dict[str, Any]:
    """
    Import a booking made on an external platform.

    Returns:
        ``status`` is one of created, duplicate, unmapped, unavailable, rejected;
        ``booking_id`` is set for created and duplicate
    """
    lock = lock or get_property_lock()
    dispatcher = dispatcher or get_dispatcher()
    args = (platform, platform_booking_id, platform_property_id, check_in, check_out, guest_details)

    if session is None:
        async with get_async_session() as session:
            return await _ingest(session, *args, lock=lock, dispatcher=dispatcher)
    return await _ingest(session, *args, lock=lock, dispatcher=dispatcher)


@celery.task(name="channel_manager.ingest_external_booking")
def ingest_external_booking_task(booking_data: dict) -> dict:
    """
    Celery entry point for webhook notifications.
    This task is idempotent - duplicate imports are safely ignored.
    """
    data = ExternalBookingPayload.model_validate(booking_data)
    return run_async(
        ingest_external_booking,
        data.platform,
        data.platform_booking_id,
        data.platform_property_id,
        data.check_in,
        data.check_out,
        data.guest_details,
    )

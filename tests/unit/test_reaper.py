"""Tests for the expired-hold reaper."""

from datetime import date, datetime
from uuid import uuid4

import pytest
from freezegun import freeze_time
from sqlalchemy import select, update

from booking_engine.availability import check_availability
from booking_engine.bookings import create_booking
from booking_engine.reaper import reap_expired_holds
from pms_core.config import ExpiredHoldPolicy
from pms_core.database import get_async_session
from pms_core.enums import BlockReason, BookingStatus, PaymentStatus, PaymentType
from pms_core.models import Booking, DateBlock

from tests.utils.factories import add_block, create_guest_counts, create_guest_details, make_property


async def held_booking(session, property_id, check_in, check_out):
    with freeze_time("2024-05-01 10:00:00", real_asyncio=True):
        created = await create_booking(
            session,
            uuid4(),
            property_id=property_id,
            check_in=check_in,
            check_out=check_out,
            guests=create_guest_counts(),
            guest_details=create_guest_details(),
            payment_method="card",
            payment_type=PaymentType.FULL,
        )
    return created.booking_id


@pytest.mark.unit
@pytest.mark.asyncio
async def test_expired_hold_frees_the_range(session):
    property = await make_property(session)
    await held_booking(session, property.id, date(2024, 7, 1), date(2024, 7, 5))

    before = await check_availability(session, property.id, date(2024, 7, 1), date(2024, 7, 5))
    assert before.available is False

    stats = await reap_expired_holds(session, now=datetime(2024, 5, 1, 10, 16))

    assert stats == {"deleted": 1, "cancelled": 0}
    after = await check_availability(session, property.id, date(2024, 7, 1), date(2024, 7, 5))
    assert after.available is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unexpired_holds_and_permanent_blocks_are_kept(session):
    property = await make_property(session)
    await held_booking(session, property.id, date(2024, 7, 1), date(2024, 7, 5))
    await add_block(session, property.id, date(2024, 8, 1), date(2024, 8, 3), reason=BlockReason.OWNER_BLOCK)

    stats = await reap_expired_holds(session, now=datetime(2024, 5, 1, 10, 14))

    assert stats["deleted"] == 0
    result = await session.execute(select(DateBlock).where(DateBlock.property_id == property.id))
    assert len(result.scalars().all()) == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_ignore_policy_leaves_booking_pending(session):
    property = await make_property(session)
    booking_id = await held_booking(session, property.id, date(2024, 7, 1), date(2024, 7, 5))

    await reap_expired_holds(session, now=datetime(2024, 5, 2), policy=ExpiredHoldPolicy.IGNORE)

    booking = await session.get(Booking, booking_id)
    assert booking.status == BookingStatus.PENDING.value


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_pending_policy_cancels_unpaid_booking(session):
    property = await make_property(session)
    booking_id = await held_booking(session, property.id, date(2024, 7, 1), date(2024, 7, 5))

    stats = await reap_expired_holds(
        session, now=datetime(2024, 5, 2), policy=ExpiredHoldPolicy.CANCEL_PENDING
    )

    assert stats == {"deleted": 1, "cancelled": 1}
    booking = await session.get(Booking, booking_id)
    assert booking.status == BookingStatus.CANCELLED.value


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_pending_policy_rereads_booking_before_cancelling(session):
    property = await make_property(session)
    booking_id = await held_booking(session, property.id, date(2024, 7, 1), date(2024, 7, 5))
    assert (await session.get(Booking, booking_id)).status == BookingStatus.PENDING.value

    # Payment commits elsewhere after this session last saw the booking
    async with get_async_session() as other:
        await other.execute(
            update(Booking)
            .where(Booking.id == booking_id)
            .values(status=BookingStatus.CONFIRMED.value, payment_status=PaymentStatus.PAID.value)
        )
        await other.commit()

    stats = await reap_expired_holds(
        session, now=datetime(2024, 5, 2), policy=ExpiredHoldPolicy.CANCEL_PENDING
    )

    assert stats == {"deleted": 1, "cancelled": 0}
    async with get_async_session() as fresh:
        booking = await fresh.get(Booking, booking_id)
        assert booking.status == BookingStatus.CONFIRMED.value
        assert booking.payment_status == PaymentStatus.PAID.value


@pytest.mark.unit
@pytest.mark.asyncio
async def test_reaper_opens_its_own_session(engine, session):
    property = await make_property(session)
    await add_block(
        session,
        property.id,
        date(2024, 7, 1),
        date(2024, 7, 2),
        reason=BlockReason.SYNC_LOCK,
        is_temporary=True,
        expires_at=datetime(2024, 1, 1),
    )

    stats = await reap_expired_holds(now=datetime(2024, 1, 2))

    assert stats["deleted"] == 1

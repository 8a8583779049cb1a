"""Tests for external-booking ingestion."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from channel_manager.ingestion import ingest_external_booking, ingest_external_booking_task
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
from pms_core.models import Booking, DateBlock, SyncLog

from tests.utils.factories import add_block, create_external_guest, make_property


async def ingest(session, listing_id, booking_ref="HMABC123", check_in=date(2024, 7, 1), check_out=date(2024, 7, 4)):
    return await ingest_external_booking(
        ExternalPlatform.AIRBNB,
        booking_ref,
        listing_id,
        check_in,
        check_out,
        create_external_guest(),
        session=session,
    )


async def rows(session, model, **filters):
    query = select(model)
    for column, value in filters.items():
        query = query.where(getattr(model, column) == value)
    result = await session.execute(query)
    return list(result.scalars().all())


@pytest.mark.unit
@pytest.mark.asyncio
async def test_ingest_creates_confirmed_booking_and_booked_block(session, dispatcher):
    property = await make_property(session, platform_ids={ExternalPlatform.AIRBNB: "air-1"})

    result = await ingest(session, "air-1")

    assert result["status"] == "created"
    [booking] = await rows(session, Booking)
    assert str(booking.id) == result["booking_id"]
    assert booking.platform == ExternalPlatform.AIRBNB.value
    assert booking.platform_booking_id == "HMABC123"
    assert booking.status == BookingStatus.CONFIRMED.value
    assert booking.payment_status == PaymentStatus.PAID.value
    assert booking.payment_method == "external"
    assert booking.guest_id is None
    assert booking.adults == 2
    assert booking.total == Decimal("15800")
    assert booking.amount_paid == Decimal("15800")
    assert booking.sync_status == SyncStatus.SYNCED.value

    [block] = await rows(session, DateBlock, property_id=property.id)
    assert block.reason == BlockReason.BOOKED.value
    assert block.platform == ExternalPlatform.AIRBNB.value
    assert block.booking_id == booking.id

    [entry] = await rows(session, SyncLog, booking_id=booking.id)
    assert entry.action == SyncAction.BOOKING_SYNC.value
    assert entry.status == SyncLogStatus.SUCCESS.value

    assert dispatcher.booking_syncs == [booking.id]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_repeated_notification_is_a_no_op(session, dispatcher):
    await make_property(session, platform_ids={ExternalPlatform.AIRBNB: "air-1"})

    first = await ingest(session, "air-1")
    second = await ingest(session, "air-1")

    assert second == {"status": "duplicate", "booking_id": first["booking_id"]}
    assert len(await rows(session, Booking)) == 1
    assert len(await rows(session, DateBlock)) == 1
    assert len(dispatcher.booking_syncs) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unmapped_listing_is_ignored(session, dispatcher):
    await make_property(session, platform_ids={ExternalPlatform.AIRBNB: "air-1"})

    result = await ingest(session, "air-unknown")

    assert result == {"status": "unmapped"}
    assert await rows(session, Booking) == []
    assert dispatcher.booking_syncs == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_inactive_property_is_not_matched(session):
    await make_property(
        session,
        status=PropertyStatus.INACTIVE,
        platform_ids={ExternalPlatform.AIRBNB: "air-1"},
    )

    result = await ingest(session, "air-1")

    assert result == {"status": "unmapped"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_overlapping_external_booking_is_logged_not_booked(session, dispatcher):
    property = await make_property(session, platform_ids={ExternalPlatform.AIRBNB: "air-1"})
    property_id = property.id
    await add_block(session, property_id, date(2024, 7, 2), date(2024, 7, 3), reason=BlockReason.OWNER_BLOCK)

    result = await ingest(session, "air-1")

    assert result == {"status": "unavailable"}
    assert await rows(session, Booking) == []
    assert len(await rows(session, DateBlock, property_id=property_id)) == 1

    [entry] = await rows(session, SyncLog, property_id=property_id)
    assert entry.action == SyncAction.AVAILABILITY_CHECK.value
    assert entry.status == SyncLogStatus.FAILED.value
    assert "HMABC123" in entry.details
    assert dispatcher.booking_syncs == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_inverted_range_is_rejected(session):
    property = await make_property(session, platform_ids={ExternalPlatform.AIRBNB: "air-1"})

    result = await ingest(session, "air-1", check_in=date(2024, 7, 4), check_out=date(2024, 7, 1))

    assert result == {"status": "rejected"}
    [entry] = await rows(session, SyncLog, property_id=property.id)
    assert entry.status == SyncLogStatus.FAILED.value


@pytest.mark.unit
@pytest.mark.asyncio
async def test_same_reference_on_another_platform_is_a_new_booking(session):
    await make_property(
        session,
        platform_ids={ExternalPlatform.AIRBNB: "air-1", ExternalPlatform.AGODA: "ag-1"},
    )

    await ingest(session, "air-1", booking_ref="R-1", check_in=date(2024, 7, 1), check_out=date(2024, 7, 2))
    result = await ingest_external_booking(
        ExternalPlatform.AGODA,
        "R-1",
        "ag-1",
        date(2024, 7, 10),
        date(2024, 7, 12),
        create_external_guest(),
        session=session,
    )

    assert result["status"] == "created"
    assert len(await rows(session, Booking)) == 2


@pytest.mark.unit
def test_ingestion_task_validates_payload(monkeypatch):
    captured = {}

    def fake_run_async(func, *args, **kwargs):
        captured["func"] = func
        captured["args"] = args
        return {"status": "created"}

    monkeypatch.setattr("channel_manager.ingestion.run_async", fake_run_async)

    result = ingest_external_booking_task({
        "platform": "agoda",
        "platform_booking_id": "AG-77",
        "platform_property_id": "ag-1",
        "check_in": "2024-07-01",
        "check_out": "2024-07-03",
        "guest_details": {"name": "Asha Rao", "email": "asha@example.com", "phone": ""},
    })

    assert result == {"status": "created"}
    assert captured["func"] is ingest_external_booking
    platform, booking_ref, listing_id, check_in, check_out, guest = captured["args"]
    assert platform == ExternalPlatform.AGODA
    assert (booking_ref, listing_id) == ("AG-77", "ag-1")
    assert (check_in, check_out) == (date(2024, 7, 1), date(2024, 7, 3))
    assert guest.name == "Asha Rao"

"""Test data factories using Faker."""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Optional
from uuid import UUID, uuid4

from faker import Faker

from booking_engine.properties import create_property
from booking_engine.schemas import GuestCounts, GuestDetails
from channel_manager.schemas import ExternalGuestDetails
from pms_core.enums import BlockReason, ExternalPlatform, PropertyStatus
from pms_core.models import DateBlock, Property

fake = Faker()


def create_guest_details() -> GuestDetails:
    """Create valid guest contact details."""
    return GuestDetails(
        name=fake.name(),
        email=fake.email(),
        phone=fake.numerify("+91 ##########"),
        special_requests=fake.sentence(nb_words=6),
    )


def create_external_guest() -> ExternalGuestDetails:
    return ExternalGuestDetails(name=fake.name(), email=fake.email(), phone="")


def create_guest_counts(adults: int = 2) -> GuestCounts:
    return GuestCounts(adults=adults, children=0, pets=0)


async def make_property(
    session,
    host_id: Optional[UUID] = None,
    base_price: Decimal = Decimal("5000"),
    cleaning_fee: Decimal = Decimal("500"),
    service_fee: Decimal = Decimal("300"),
    status: PropertyStatus = PropertyStatus.ACTIVE,
    platform_ids: Optional[Dict[ExternalPlatform, str]] = None,
) -> Property:
    """Create and commit a property owned by ``host_id`` (random when omitted)."""
    return await create_property(
        session,
        host_id or uuid4(),
        title=fake.sentence(nb_words=3),
        base_price=base_price,
        cleaning_fee=cleaning_fee,
        service_fee=service_fee,
        status=status,
        platform_ids=platform_ids,
    )


def connected_platform_ids() -> Dict[ExternalPlatform, str]:
    """External listing ids for all three platforms."""
    return {
        ExternalPlatform.AIRBNB: f"air-{fake.random_int(min=10000, max=99999)}",
        ExternalPlatform.AGODA: f"ag-{fake.random_int(min=10000, max=99999)}",
        ExternalPlatform.BOOKING: f"bk-{fake.random_int(min=10000, max=99999)}",
    }


async def add_block(
    session,
    property_id: UUID,
    start_date: date,
    end_date: date,
    reason: BlockReason = BlockReason.MAINTENANCE,
    is_temporary: bool = False,
    expires_at: Optional[datetime] = None,
    booking_id: Optional[UUID] = None,
) -> DateBlock:
    """Write a block directly, bypassing the availability gate."""
    block = DateBlock(
        property_id=property_id,
        start_date=start_date,
        end_date=end_date,
        reason=reason.value,
        is_temporary=is_temporary,
        expires_at=expires_at,
        booking_id=booking_id,
    )
    session.add(block)
    await session.commit()
    return block

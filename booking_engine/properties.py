"""
Property Operations
===================

The slice of property management the booking core depends on: creation,
pricing, status and host ownership checks. Listing content (descriptions,
images, amenities) lives elsewhere.
"""

from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from pms_core.enums import BookingStatus, ExternalPlatform, PropertyStatus
from pms_core.errors import InvalidTransition, NotFound, Unauthenticated, Unauthorized
from pms_core.models import Booking, DateBlock, Property, PropertyPlatformLink

logger = structlog.get_logger(__name__)


def require_user(user_id: Optional[UUID]) -> UUID:
    if user_id is None:
        raise Unauthenticated()
    return user_id


async def get_property(session: AsyncSession, property_id: UUID) -> Property:
    property = await session.get(Property, property_id)
    if property is None:
        raise NotFound("Property not found")
    return property


async def require_host_property(
    session: AsyncSession,
    user_id: Optional[UUID],
    property_id: UUID,
) -> Property:
    """Load a property the caller hosts.

    Raises:
        Unauthenticated: No caller identity
        NotFound: Property does not exist
        Unauthorized: Caller is not the property's host
    """
    user_id = require_user(user_id)
    property = await get_property(session, property_id)
    if property.host_id != user_id:
        raise Unauthorized("Not authorized to manage this property")
    return property


async def get_host_properties(session: AsyncSession, host_id: UUID) -> List[Property]:
    result = await session.execute(
        select(Property).where(Property.host_id == host_id).order_by(Property.created_at)
    )
    return list(result.scalars().all())


async def create_property(
    session: AsyncSession,
    user_id: Optional[UUID],
    *,
    title: str,
    base_price: Decimal,
    cleaning_fee: Decimal = Decimal("0"),
    service_fee: Decimal = Decimal("0"),
    currency: str = "INR",
    status: PropertyStatus = PropertyStatus.ACTIVE,
    platform_ids: Optional[Dict[ExternalPlatform, str]] = None,
) -> Property:
    host_id = require_user(user_id)

    property = Property(
        host_id=host_id,
        title=title,
        base_price=base_price,
        cleaning_fee=cleaning_fee,
        service_fee=service_fee,
        currency=currency,
        status=status.value,
    )
    for platform, external_id in (platform_ids or {}).items():
        property.platform_links.append(
            PropertyPlatformLink(platform=platform.value, external_id=external_id)
        )

    session.add(property)
    await session.commit()

    logger.info("Property created", property_id=str(property.id), host_id=str(host_id))
    return property


async def update_pricing(
    session: AsyncSession,
    user_id: Optional[UUID],
    property_id: UUID,
    *,
    base_price: Decimal,
    cleaning_fee: Decimal,
    service_fee: Decimal,
) -> Property:
    property = await require_host_property(session, user_id, property_id)
    property.base_price = base_price
    property.cleaning_fee = cleaning_fee
    property.service_fee = service_fee
    await session.commit()
    return property


async def set_property_status(
    session: AsyncSession,
    user_id: Optional[UUID],
    property_id: UUID,
    status: PropertyStatus,
) -> Property:
    property = await require_host_property(session, user_id, property_id)
    property.status = status.value
    await session.commit()

    logger.info("Property status changed", property_id=str(property_id), status=status.value)
    return property


async def delete_property(session: AsyncSession, user_id: Optional[UUID], property_id: UUID) -> None:
    """Delete a property that has no active bookings.

    Raises:
        InvalidTransition: If any non-cancelled booking references the property
    """
    property = await require_host_property(session, user_id, property_id)

    result = await session.execute(
        select(Booking.id).where(
            and_(
                Booking.property_id == property_id,
                Booking.status != BookingStatus.CANCELLED.value,
            )
        ).limit(1)
    )
    if result.first() is not None:
        raise InvalidTransition("Cannot delete property with active bookings")

    await session.execute(delete(DateBlock).where(DateBlock.property_id == property_id))
    await session.delete(property)
    await session.commit()
    logger.info("Property deleted", property_id=str(property_id))

"""
Platform Connections
====================

Host-managed links between a property and its external listings, and the
host's view of the sync audit trail.
"""

from typing import Dict, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.properties import get_host_properties, require_host_property, require_user
from pms_core.enums import ExternalPlatform, SyncAction, SyncLogStatus
from pms_core.errors import InvalidTransition, NotFound
from pms_core.models import Property, PropertyPlatformLink, SyncLog

from .sync_engine import log_sync_activity

logger = structlog.get_logger(__name__)

DEFAULT_SYNC_LOG_LIMIT = 50


async def connect_platform(
    session: AsyncSession,
    user_id: Optional[UUID],
    property_id: UUID,
    platform: ExternalPlatform,
    external_id: str,
) -> Property:
    """
    Link a property to its listing on a platform, replacing any earlier link
    for the same platform.

    Raises:
        InvalidTransition: The listing is already linked to another property
    """
    property = await require_host_property(session, user_id, property_id)

    result = await session.execute(
        select(PropertyPlatformLink).where(
            and_(
                PropertyPlatformLink.platform == platform.value,
                PropertyPlatformLink.external_id == external_id,
                PropertyPlatformLink.property_id != property_id,
            )
        )
    )
    if result.scalars().first() is not None:
        raise InvalidTransition(f"{platform.value} listing {external_id} is linked to another property")

    link = next((pl for pl in property.platform_links if pl.platform == platform.value), None)
    if link is None:
        property.platform_links.append(
            PropertyPlatformLink(platform=platform.value, external_id=external_id)
        )
    else:
        link.external_id = external_id

    await log_sync_activity(
        session,
        property_id=property_id,
        platform=platform.value,
        action=SyncAction.CALENDAR_UPDATE,
        status=SyncLogStatus.SUCCESS,
        details=f"Connected to {platform.value} listing {external_id}",
    )
    await session.commit()

    logger.info(
        "Platform connected",
        property_id=str(property_id),
        channel=platform.value,
        listing_id=external_id,
    )
    return property


async def disconnect_platform(
    session: AsyncSession,
    user_id: Optional[UUID],
    property_id: UUID,
    platform: ExternalPlatform,
) -> Property:
    property = await require_host_property(session, user_id, property_id)

    link = next((pl for pl in property.platform_links if pl.platform == platform.value), None)
    if link is None:
        raise NotFound(f"Property is not connected to {platform.value}")

    property.platform_links.remove(link)
    await log_sync_activity(
        session,
        property_id=property_id,
        platform=platform.value,
        action=SyncAction.CALENDAR_UPDATE,
        status=SyncLogStatus.SUCCESS,
        details=f"Disconnected from {platform.value}",
    )
    await session.commit()

    logger.info("Platform disconnected", property_id=str(property_id), channel=platform.value)
    return property


async def get_platform_connections(session: AsyncSession, user_id: Optional[UUID]) -> List[Dict]:
    """Per platform: whether any of the host's properties is connected, and the last sync."""
    host_id = require_user(user_id)
    properties = await get_host_properties(session, host_id)
    property_ids = [p.id for p in properties]

    last_sync: Dict[str, object] = {}
    if property_ids:
        result = await session.execute(
            select(SyncLog.platform, func.max(SyncLog.created_at))
            .where(SyncLog.property_id.in_(property_ids))
            .group_by(SyncLog.platform)
        )
        last_sync = {platform: created_at for platform, created_at in result.all()}

    connections = []
    for platform in ExternalPlatform:
        count = sum(1 for p in properties if platform in p.platform_ids)
        connections.append({
            "platform": platform,
            "connected": count > 0,
            "property_count": count,
            "last_sync": last_sync.get(platform.value),
        })
    return connections


async def get_sync_logs(
    session: AsyncSession,
    user_id: Optional[UUID],
    limit: int = DEFAULT_SYNC_LOG_LIMIT,
) -> List[SyncLog]:
    """Newest-first audit entries for every property the caller hosts."""
    host_id = require_user(user_id)
    result = await session.execute(
        select(SyncLog)
        .join(Property, Property.id == SyncLog.property_id)
        .where(Property.host_id == host_id)
        .order_by(SyncLog.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())

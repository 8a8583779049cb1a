"""
Channel Manager - API Routes
============================

Platform connections, host-triggered resync and the sync audit trail.
"""

from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.schemas import PropertyResponse
from pms_core.database import get_db
from pms_core.dependencies import get_current_user_id
from pms_core.enums import ExternalPlatform

from . import connections
from .schemas import (
    BookingSyncReport,
    ConnectPlatformRequest,
    PlatformConnectionResponse,
    SyncLogResponse,
)
from .sync_engine import get_booking_sync_report, sync_property

router = APIRouter(prefix="/api/v1", tags=["Channel Manager"])


@router.post("/properties/{property_id}/platforms", response_model=PropertyResponse)
async def connect_platform(
    property_id: UUID,
    request: ConnectPlatformRequest,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id),
) -> PropertyResponse:
    property = await connections.connect_platform(
        db, user_id, property_id, request.platform, request.external_id
    )
    return PropertyResponse.from_property(property)


@router.delete(
    "/properties/{property_id}/platforms/{platform}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def disconnect_platform(
    property_id: UUID,
    platform: ExternalPlatform,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id),
) -> None:
    await connections.disconnect_platform(db, user_id, property_id, platform)


@router.post("/properties/{property_id}/sync")
async def resync_property(
    property_id: UUID,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id),
) -> Dict[str, str]:
    """
    Push every active booking of the property to its connected platforms.

    Runs inline; the response carries the per-platform outcome.
    """
    return await sync_property(db, user_id, property_id)


@router.get("/platforms/connections", response_model=List[PlatformConnectionResponse])
async def get_platform_connections(
    db: AsyncSession = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id),
) -> List[PlatformConnectionResponse]:
    result = await connections.get_platform_connections(db, user_id)
    return [PlatformConnectionResponse(**c) for c in result]


@router.get("/sync-logs", response_model=List[SyncLogResponse])
async def get_sync_logs(
    limit: int = Query(connections.DEFAULT_SYNC_LOG_LIMIT, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id),
) -> List[SyncLogResponse]:
    logs = await connections.get_sync_logs(db, user_id, limit)
    return [SyncLogResponse.model_validate(entry) for entry in logs]


@router.get("/bookings/{booking_id}/sync-report", response_model=BookingSyncReport)
async def booking_sync_report(
    booking_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> BookingSyncReport:
    """Per-platform sync outcome with a strict aggregate."""
    report = await get_booking_sync_report(db, booking_id)
    return BookingSyncReport(**report)

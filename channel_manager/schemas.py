"""
Channel Manager Schemas
=======================
"""

from datetime import date, datetime
from typing import Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pms_core.enums import ExternalPlatform, SyncStatus


class ExternalGuestDetails(BaseModel):
    """Guest contact as sent by a platform; email may be masked or empty."""
    name: str
    email: str = ""
    phone: str = ""


class ExternalBookingPayload(BaseModel):
    """Arguments of the ingestion task, as they travel through the broker."""
    platform: ExternalPlatform
    platform_booking_id: str = Field(min_length=1)
    platform_property_id: str = Field(min_length=1)
    check_in: date
    check_out: date
    guest_details: ExternalGuestDetails


class ConnectPlatformRequest(BaseModel):
    platform: ExternalPlatform
    external_id: str = Field(min_length=1, max_length=100)

    @field_validator("external_id")
    @classmethod
    def strip_external_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("External listing id must not be blank")
        return v


class PlatformConnectionResponse(BaseModel):
    platform: ExternalPlatform
    connected: bool
    property_count: int
    last_sync: Optional[datetime] = None


class SyncLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    property_id: UUID
    booking_id: Optional[UUID] = None
    platform: str
    action: str
    status: str
    details: str
    error: Optional[str] = None
    created_at: datetime


class PlatformSyncOutcome(BaseModel):
    status: str
    error: Optional[str] = None
    last_attempt_at: Optional[datetime] = None


class BookingSyncReport(BaseModel):
    booking_id: UUID
    sync_status: SyncStatus
    strict_status: SyncStatus
    platforms: Dict[ExternalPlatform, PlatformSyncOutcome]


class WebhookResponse(BaseModel):
    status: str
    message: Optional[str] = None
    event_id: Optional[str] = None

"""
Request / Response Schemas
==========================

Pydantic models for the booking engine routes. Services accept the nested
value objects (GuestDetails, GuestCounts) directly.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from pms_core.enums import (
    BlockReason,
    BookingStatus,
    ExternalPlatform,
    PaymentType,
    PropertyStatus,
)


# ----- Value objects -----

class GuestCounts(BaseModel):
    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)
    pets: int = Field(default=0, ge=0)


class GuestDetails(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    phone: str = Field(default="", max_length=50)
    special_requests: Optional[str] = Field(default=None, max_length=1000)


# ----- Availability -----

class AvailabilityCheckRequest(BaseModel):
    property_id: UUID
    check_in: date
    check_out: date

    @field_validator("check_out")
    @classmethod
    def check_out_after_check_in(cls, v: date, info) -> date:
        check_in = info.data.get("check_in")
        if check_in and v <= check_in:
            raise ValueError("Check-out must be after check-in")
        return v


class DateBlockResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    property_id: UUID
    start_date: date
    end_date: date
    reason: BlockReason
    is_temporary: bool
    expires_at: Optional[datetime] = None
    platform: Optional[str] = None
    booking_id: Optional[UUID] = None


class AvailabilityCheckResponse(BaseModel):
    available: bool
    conflicts: List[DateBlockResponse]


# ----- Booking creation -----

class BookingCreateRequest(BaseModel):
    property_id: UUID
    check_in: date
    check_out: date
    guests: GuestCounts = Field(default_factory=GuestCounts)
    guest_details: GuestDetails
    payment_method: str = Field(min_length=1, max_length=50)
    payment_type: PaymentType = PaymentType.FULL

    @field_validator("check_out")
    @classmethod
    def check_out_after_check_in(cls, v: date, info) -> date:
        check_in = info.data.get("check_in")
        if check_in and v <= check_in:
            raise ValueError("Check-out must be after check-in")
        return v


class BookingCreatedResponse(BaseModel):
    booking_id: UUID
    amount_to_pay: Decimal
    hold_expires_at: datetime


# ----- Payment confirmation -----

class PaymentConfirmRequest(BaseModel):
    transaction_id: str = Field(min_length=1, max_length=100)
    amount_paid: Decimal = Field(ge=0)


# ----- Booking details -----

class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    property_id: UUID
    guest_id: Optional[UUID] = None
    check_in: date
    check_out: date
    adults: int
    children: int
    pets: int
    subtotal: Decimal
    cleaning_fee: Decimal
    service_fee: Decimal
    total: Decimal
    currency: str
    payment_status: str
    payment_method: str
    amount_paid: Decimal
    transaction_id: Optional[str] = None
    status: str
    platform: str
    platform_booking_id: Optional[str] = None
    guest_name: str
    guest_email: str
    guest_phone: str
    sync_status: str
    created_at: datetime


class BookingStatusUpdateRequest(BaseModel):
    status: BookingStatus


# ----- Properties -----

class PropertyCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    base_price: Decimal = Field(ge=0)
    cleaning_fee: Decimal = Field(default=Decimal("0"), ge=0)
    service_fee: Decimal = Field(default=Decimal("0"), ge=0)
    currency: str = Field(default="INR", min_length=3, max_length=3)
    status: PropertyStatus = PropertyStatus.ACTIVE
    platform_ids: Dict[ExternalPlatform, str] = Field(default_factory=dict)


class PricingUpdateRequest(BaseModel):
    base_price: Decimal = Field(ge=0)
    cleaning_fee: Decimal = Field(ge=0)
    service_fee: Decimal = Field(ge=0)


class PropertyStatusRequest(BaseModel):
    status: PropertyStatus


class PropertyResponse(BaseModel):
    id: UUID
    host_id: UUID
    title: str
    base_price: Decimal
    cleaning_fee: Decimal
    service_fee: Decimal
    currency: str
    status: str
    platform_ids: Dict[ExternalPlatform, str]

    @classmethod
    def from_property(cls, property) -> "PropertyResponse":
        return cls(
            id=property.id,
            host_id=property.host_id,
            title=property.title,
            base_price=property.base_price,
            cleaning_fee=property.cleaning_fee,
            service_fee=property.service_fee,
            currency=property.currency,
            status=property.status,
            platform_ids=property.platform_ids,
        )


# ----- Host calendar -----

class BlockDatesRequest(BaseModel):
    start_date: date
    end_date: date
    reason: BlockReason

    @field_validator("reason")
    @classmethod
    def manual_reason_only(cls, v: BlockReason) -> BlockReason:
        if v not in (BlockReason.MAINTENANCE, BlockReason.OWNER_BLOCK):
            raise ValueError("Hosts can only block dates for maintenance or owner use")
        return v

    @field_validator("end_date")
    @classmethod
    def end_not_before_start(cls, v: date, info) -> date:
        start = info.data.get("start_date")
        if start and v < start:
            raise ValueError("End date must not be before start date")
        return v


class BulkBlockDatesRequest(BlockDatesRequest):
    property_ids: List[UUID] = Field(min_length=1)


class CalendarResponse(BaseModel):
    property_id: UUID
    month: int
    year: int
    blocks: List[DateBlockResponse]
    bookings: List[BookingResponse]

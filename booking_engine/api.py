"""
Booking Engine - API Routes
===========================

Availability, booking lifecycle, payment confirmation, properties and the
host calendar. Services raise PMSError subclasses; ``pms_core.app`` maps
them to HTTP status codes.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from pms_core.database import get_db
from pms_core.dependencies import get_current_user_id

from . import blocks, bookings, payments, properties
from .availability import check_availability as check_range
from .schemas import (
    AvailabilityCheckRequest,
    AvailabilityCheckResponse,
    BlockDatesRequest,
    BookingCreateRequest,
    BookingCreatedResponse,
    BookingResponse,
    BookingStatusUpdateRequest,
    BulkBlockDatesRequest,
    CalendarResponse,
    DateBlockResponse,
    PaymentConfirmRequest,
    PricingUpdateRequest,
    PropertyCreateRequest,
    PropertyResponse,
    PropertyStatusRequest,
)

router = APIRouter(prefix="/api/v1", tags=["Booking Engine"])


# =============================================================================
# AVAILABILITY
# =============================================================================

@router.post("/bookings/check-availability", response_model=AvailabilityCheckResponse)
async def check_availability(
    request: AvailabilityCheckRequest,
    db: AsyncSession = Depends(get_db),
) -> AvailabilityCheckResponse:
    """
    Check whether a range is free for a property.

    Read-only; returns the conflicting blocks for display.
    """
    result = await check_range(db, request.property_id, request.check_in, request.check_out)
    return AvailabilityCheckResponse(
        available=result.available,
        conflicts=[DateBlockResponse.model_validate(block) for block in result.conflicts],
    )


# =============================================================================
# BOOKINGS
# =============================================================================

@router.post(
    "/bookings",
    response_model=BookingCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_booking(
    request: BookingCreateRequest,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id),
) -> BookingCreatedResponse:
    """
    Create a pending booking and hold its dates until payment arrives.

    Sync to external platforms and loyalty accrual are enqueued, not awaited.
    """
    created = await bookings.create_booking(
        db,
        user_id,
        property_id=request.property_id,
        check_in=request.check_in,
        check_out=request.check_out,
        guests=request.guests,
        guest_details=request.guest_details,
        payment_method=request.payment_method,
        payment_type=request.payment_type,
    )
    return BookingCreatedResponse(
        booking_id=created.booking_id,
        amount_to_pay=created.amount_to_pay,
        hold_expires_at=created.hold_expires_at,
    )


@router.post("/bookings/{booking_id}/confirm-payment", response_model=BookingResponse)
async def confirm_payment(
    booking_id: UUID,
    request: PaymentConfirmRequest,
    db: AsyncSession = Depends(get_db),
) -> BookingResponse:
    """
    Payment event from the gateway: confirm the booking and make its block
    permanent. The transaction is not re-verified here.
    """
    booking = await payments.confirm_payment(
        db, booking_id, request.transaction_id, request.amount_paid
    )
    return BookingResponse.model_validate(booking)


@router.get("/bookings/me", response_model=List[BookingResponse])
async def get_my_bookings(
    db: AsyncSession = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id),
) -> List[BookingResponse]:
    result = await bookings.get_user_bookings(db, user_id)
    return [BookingResponse.model_validate(b) for b in result]


@router.patch("/bookings/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: UUID,
    request: BookingStatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id),
) -> BookingResponse:
    booking = await bookings.update_booking_status(db, user_id, booking_id, request.status)
    return BookingResponse.model_validate(booking)


# =============================================================================
# PROPERTIES
# =============================================================================

@router.post(
    "/properties",
    response_model=PropertyResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_property(
    request: PropertyCreateRequest,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id),
) -> PropertyResponse:
    property = await properties.create_property(
        db,
        user_id,
        title=request.title,
        base_price=request.base_price,
        cleaning_fee=request.cleaning_fee,
        service_fee=request.service_fee,
        currency=request.currency,
        status=request.status,
        platform_ids=request.platform_ids,
    )
    return PropertyResponse.from_property(property)


@router.get("/properties/{property_id}", response_model=PropertyResponse)
async def get_property(
    property_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> PropertyResponse:
    property = await properties.get_property(db, property_id)
    return PropertyResponse.from_property(property)


@router.put("/properties/{property_id}/pricing", response_model=PropertyResponse)
async def update_pricing(
    property_id: UUID,
    request: PricingUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id),
) -> PropertyResponse:
    property = await properties.update_pricing(
        db,
        user_id,
        property_id,
        base_price=request.base_price,
        cleaning_fee=request.cleaning_fee,
        service_fee=request.service_fee,
    )
    return PropertyResponse.from_property(property)


@router.patch("/properties/{property_id}/status", response_model=PropertyResponse)
async def set_property_status(
    property_id: UUID,
    request: PropertyStatusRequest,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id),
) -> PropertyResponse:
    property = await properties.set_property_status(db, user_id, property_id, request.status)
    return PropertyResponse.from_property(property)


@router.delete("/properties/{property_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_property(
    property_id: UUID,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id),
) -> None:
    """Delete a property. Refused while it has non-cancelled bookings."""
    await properties.delete_property(db, user_id, property_id)


# =============================================================================
# HOST CALENDAR
# =============================================================================

@router.post(
    "/properties/{property_id}/blocks",
    response_model=DateBlockResponse,
    status_code=status.HTTP_201_CREATED,
)
async def block_dates(
    property_id: UUID,
    request: BlockDatesRequest,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id),
) -> DateBlockResponse:
    block = await blocks.block_dates(
        db, user_id, property_id, request.start_date, request.end_date, request.reason
    )
    return DateBlockResponse.model_validate(block)


@router.post(
    "/blocks/bulk",
    response_model=List[DateBlockResponse],
    status_code=status.HTTP_201_CREATED,
)
async def bulk_block_dates(
    request: BulkBlockDatesRequest,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id),
) -> List[DateBlockResponse]:
    """Block one range across several properties; all or nothing."""
    result = await blocks.bulk_block_dates(
        db, user_id, request.property_ids, request.start_date, request.end_date, request.reason
    )
    return [DateBlockResponse.model_validate(block) for block in result]


@router.delete("/blocks/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unblock_dates(
    block_id: UUID,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id),
) -> None:
    """Remove a manual block. Booked blocks cannot be removed."""
    await blocks.unblock_dates(db, user_id, block_id)


@router.get("/properties/{property_id}/calendar", response_model=CalendarResponse)
async def get_property_calendar(
    property_id: UUID,
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000, le=2100),
    db: AsyncSession = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id),
) -> CalendarResponse:
    result = await blocks.get_property_calendar(db, user_id, property_id, month, year)
    return CalendarResponse(
        property_id=property_id,
        month=month,
        year=year,
        blocks=[DateBlockResponse.model_validate(b) for b in result["blocks"]],
        bookings=[BookingResponse.model_validate(b) for b in result["bookings"]],
    )

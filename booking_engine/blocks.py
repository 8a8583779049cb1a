"""
Host Calendar
=============

Manual date blocks (maintenance, owner use) and the monthly calendar view.

Manual blocks go through the same availability gate as bookings, under the
same property lock, so a host cannot block over a held or booked range.
``booked`` blocks are never removed here; they belong to a booking.
"""

import calendar
from contextlib import AsyncExitStack
from datetime import date
from typing import Dict, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from pms_core.enums import BlockReason, BookingStatus
from pms_core.errors import InvalidRequest, InvalidTransition, NotFound
from pms_core.locks import PropertyLock, get_property_lock
from pms_core.models import Booking, DateBlock

from .availability import insert_block, lock_property_row, validate_range
from .properties import require_host_property

logger = structlog.get_logger(__name__)

MANUAL_REASONS = (BlockReason.MAINTENANCE, BlockReason.OWNER_BLOCK)


def _require_manual_reason(reason: BlockReason) -> None:
    if reason not in MANUAL_REASONS:
        raise InvalidRequest(f"Cannot block dates manually with reason '{reason.value}'")


async def block_dates(
    session: AsyncSession,
    user_id: Optional[UUID],
    property_id: UUID,
    start_date: date,
    end_date: date,
    reason: BlockReason,
    lock: Optional[PropertyLock] = None,
) -> DateBlock:
    """
    Block a range on a property the caller hosts.

    Raises:
        Unauthorized: Caller does not host the property
        Unavailable: The range overlaps an existing block
    """
    _require_manual_reason(reason)
    validate_range(start_date, end_date)
    await require_host_property(session, user_id, property_id)
    lock = lock or get_property_lock()

    async with lock.hold(property_id):
        try:
            await lock_property_row(session, property_id)
            block = await insert_block(
                session,
                property_id=property_id,
                start_date=start_date,
                end_date=end_date,
                reason=reason,
            )
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    return block


async def bulk_block_dates(
    session: AsyncSession,
    user_id: Optional[UUID],
    property_ids: List[UUID],
    start_date: date,
    end_date: date,
    reason: BlockReason,
    lock: Optional[PropertyLock] = None,
) -> List[DateBlock]:
    """
    Block the same range on several properties. All or nothing: ownership of
    every property is verified first, and a conflict on any one of them
    rolls back the blocks written for the others.
    """
    _require_manual_reason(reason)
    validate_range(start_date, end_date)
    # Locks are always taken in sorted order
    property_ids = sorted(set(property_ids), key=str)
    for property_id in property_ids:
        await require_host_property(session, user_id, property_id)

    lock = lock or get_property_lock()
    blocks: List[DateBlock] = []
    async with AsyncExitStack() as held:
        for property_id in property_ids:
            await held.enter_async_context(lock.hold(property_id))
        try:
            for property_id in property_ids:
                await lock_property_row(session, property_id)
                blocks.append(
                    await insert_block(
                        session,
                        property_id=property_id,
                        start_date=start_date,
                        end_date=end_date,
                        reason=reason,
                    )
                )
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    logger.info(
        "Bulk dates blocked",
        property_count=len(property_ids),
        start_date=start_date.isoformat(),
        end_date=end_date.isoformat(),
        reason=reason.value,
    )
    return blocks


async def unblock_dates(session: AsyncSession, user_id: Optional[UUID], block_id: UUID) -> None:
    """
    Remove a manual block.

    Raises:
        NotFound: Block does not exist
        Unauthorized: Caller does not host the block's property
        InvalidTransition: The block is a ``booked`` block
    """
    block = await session.get(DateBlock, block_id)
    if block is None:
        raise NotFound("Block not found")

    await require_host_property(session, user_id, block.property_id)

    if block.reason == BlockReason.BOOKED.value:
        raise InvalidTransition("Cannot unblock booked dates")

    await session.delete(block)
    await session.commit()

    logger.info(
        "Dates unblocked",
        block_id=str(block_id),
        property_id=str(block.property_id),
        reason=block.reason,
    )


def month_bounds(month: int, year: int) -> tuple:
    if not 1 <= month <= 12:
        raise InvalidRequest(f"Invalid month: {month}")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


async def get_property_calendar(
    session: AsyncSession,
    user_id: Optional[UUID],
    property_id: UUID,
    month: int,
    year: int,
) -> Dict[str, list]:
    """Blocks and non-cancelled bookings that touch the given month."""
    await require_host_property(session, user_id, property_id)
    first_day, last_day = month_bounds(month, year)

    blocks = await session.execute(
        select(DateBlock)
        .where(
            and_(
                DateBlock.property_id == property_id,
                DateBlock.start_date <= last_day,
                DateBlock.end_date >= first_day,
            )
        )
        .order_by(DateBlock.start_date)
    )
    bookings = await session.execute(
        select(Booking)
        .where(
            and_(
                Booking.property_id == property_id,
                Booking.status != BookingStatus.CANCELLED.value,
                Booking.check_in <= last_day,
                Booking.check_out >= first_day,
            )
        )
        .order_by(Booking.check_in)
    )

    return {
        "blocks": list(blocks.scalars().all()),
        "bookings": list(bookings.scalars().all()),
    }

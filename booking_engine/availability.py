"""
Date-Range Store & Availability Checker
=======================================

Blocks are inclusive ``[start_date, end_date]`` ranges at calendar-day
granularity. An incoming range ``[check_in, check_out]`` conflicts with an
existing block when the block contains check_in, contains check_out, or is
fully contained by the incoming range. The third case is what single-point
containment checks miss.

Every insert of a block goes through ``insert_block`` while the caller holds
the property lock, so no two non-temporary blocks for a property overlap.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

import structlog
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from pms_core.enums import BlockReason
from pms_core.errors import InvalidRequest, Unavailable
from pms_core.models import DateBlock, Property

logger = structlog.get_logger(__name__)


@dataclass
class AvailabilityResult:
    available: bool
    conflicts: List[DateBlock] = field(default_factory=list)


def ranges_overlap(start: date, end: date, check_in: date, check_out: date) -> bool:
    """Whether block ``[start, end]`` conflicts with ``[check_in, check_out]``."""
    return (
        (start <= check_in <= end)
        or (start <= check_out <= end)
        or (check_in <= start and end <= check_out)
    )


def _overlap_clause(check_in: date, check_out: date):
    return or_(
        and_(DateBlock.start_date <= check_in, DateBlock.end_date >= check_in),
        and_(DateBlock.start_date <= check_out, DateBlock.end_date >= check_out),
        and_(DateBlock.start_date >= check_in, DateBlock.end_date <= check_out),
    )


def validate_range(start: date, end: date, allow_same_day: bool = True) -> None:
    if end < start or (not allow_same_day and end == start):
        raise InvalidRequest(f"Invalid date range: {start.isoformat()} to {end.isoformat()}")


async def find_conflicts(
    session: AsyncSession,
    property_id: UUID,
    check_in: date,
    check_out: date,
) -> List[DateBlock]:
    """All blocks (temporary or permanent, any reason) overlapping the range."""
    result = await session.execute(
        select(DateBlock)
        .where(
            and_(
                DateBlock.property_id == property_id,
                _overlap_clause(check_in, check_out),
            )
        )
        .order_by(DateBlock.start_date)
    )
    return list(result.scalars().all())


async def check_availability(
    session: AsyncSession,
    property_id: UUID,
    check_in: date,
    check_out: date,
) -> AvailabilityResult:
    """Read-only availability check; returns the conflicting blocks."""
    conflicts = await find_conflicts(session, property_id, check_in, check_out)
    return AvailabilityResult(available=not conflicts, conflicts=conflicts)


async def lock_property_row(session: AsyncSession, property_id: UUID) -> Optional[Property]:
    """Re-read the property ``FOR UPDATE`` so writers in other processes queue in the database."""
    result = await session.execute(
        select(Property).where(Property.id == property_id).with_for_update()
    )
    return result.scalar_one_or_none()


async def insert_block(
    session: AsyncSession,
    *,
    property_id: UUID,
    start_date: date,
    end_date: date,
    reason: BlockReason,
    is_temporary: bool = False,
    expires_at: Optional[datetime] = None,
    platform: Optional[str] = None,
    booking_id: Optional[UUID] = None,
) -> DateBlock:
    """Add a block after re-checking the range inside the current transaction.

    The caller must hold the property lock and commit (or roll back).

    Raises:
        Unavailable: If any existing block overlaps the range
    """
    availability = await check_availability(session, property_id, start_date, end_date)
    if not availability.available:
        raise Unavailable(
            "Property is not available for selected dates",
            conflicts=availability.conflicts,
        )

    block = DateBlock(
        property_id=property_id,
        start_date=start_date,
        end_date=end_date,
        reason=reason.value,
        is_temporary=is_temporary,
        expires_at=expires_at if is_temporary else None,
        platform=platform,
        booking_id=booking_id,
    )
    session.add(block)
    await session.flush()

    logger.info(
        "Date block written",
        property_id=str(property_id),
        block_id=str(block.id),
        reason=reason.value,
        start_date=start_date.isoformat(),
        end_date=end_date.isoformat(),
        temporary=is_temporary,
    )
    return block

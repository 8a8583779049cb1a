"""
Channel Manager Sync Engine
===========================

Outbound sync (PMS-Core -> Channels): after a booking is created or
ingested, block its dates on every platform the property is connected to.

Each platform is attempted independently. A failure on one is logged and
never stops the others, and never reaches whoever created the booking.
Once every platform has been attempted the booking's ``sync_status`` is
set to ``synced`` (attempted to completion, not "all succeeded"); the
per-platform outcome lives in the sync log, see ``get_booking_sync_report``.

The task is safe to run more than once for the same booking: platforms
that already have a ``success`` entry for it are skipped, so a re-run
only retries the platforms that failed.
"""

import asyncio
import random
from typing import Dict, List, Optional, Set
from uuid import UUID

import structlog
from prometheus_client import Counter, Histogram
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.bookings import get_booking
from booking_engine.properties import require_host_property
from pms_core.config import settings
from pms_core.database import get_async_session
from pms_core.enums import (
    BookingStatus,
    ExternalPlatform,
    SyncAction,
    SyncLogStatus,
    SyncStatus,
)
from pms_core.errors import ExternalSyncFailure
from pms_core.models import Booking, Property, SyncLog
from pms_core.worker import celery, run_async

from .platform_adapters import (
    AdapterFactory,
    AuthenticationError,
    ChannelAdapter,
    ChannelAdapterError,
    RateLimitError,
    ResourceNotFoundError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

# =============================================================================
# PROMETHEUS METRICS
# =============================================================================

PLATFORM_SYNC_ATTEMPTS = Counter(
    "channel_platform_sync_total",
    "Per-platform booking sync outcomes",
    ["channel_type", "outcome"]  # outcome: success, failed, skipped
)

PLATFORM_CALL_LATENCY = Histogram(
    "channel_platform_call_seconds",
    "Latency of outbound platform calls",
    ["channel_type"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Errors a retry will not fix
NON_RETRYABLE_ERRORS = (AuthenticationError, ResourceNotFoundError, ValidationError)


# =============================================================================
# SYNC LOGGING
# =============================================================================

async def log_sync_activity(
    session: AsyncSession,
    *,
    property_id: UUID,
    platform: str,
    action: SyncAction,
    status: SyncLogStatus,
    details: str,
    error: Optional[str] = None,
    booking_id: Optional[UUID] = None,
) -> SyncLog:
    """Append an audit entry. The caller commits."""
    entry = SyncLog(
        property_id=property_id,
        booking_id=booking_id,
        platform=platform,
        action=action.value,
        status=status.value,
        details=details,
        error=error,
    )
    session.add(entry)
    await session.flush()
    return entry


async def _successful_platforms(session: AsyncSession, booking_id: UUID) -> Set[str]:
    result = await session.execute(
        select(SyncLog.platform).where(
            and_(
                SyncLog.booking_id == booking_id,
                SyncLog.action == SyncAction.BOOKING_SYNC.value,
                SyncLog.status == SyncLogStatus.SUCCESS.value,
            )
        )
    )
    return set(result.scalars().all())


# =============================================================================
# PLATFORM CALLS
# =============================================================================

def calculate_retry_delay(retries: int) -> float:
    """Calculate exponential backoff with jitter."""
    base_delays = [2, 4, 8, 16, 32]
    base = base_delays[min(retries, len(base_delays) - 1)]
    jitter = random.uniform(0, base / 2)
    return base + jitter


async def push_block(
    adapter: ChannelAdapter,
    listing_id: str,
    booking: Booking,
    timeout: Optional[float] = None,
    max_attempts: Optional[int] = None,
) -> int:
    """
    Block the booking's dates on one platform, bounded and retried.

    Returns:
        Number of attempts used

    Raises:
        ExternalSyncFailure: Once attempts are exhausted or the error is not retryable
    """
    platform = adapter.channel_type.value
    timeout = timeout or settings.PLATFORM_CALL_TIMEOUT_SECONDS
    max_attempts = max(1, max_attempts or settings.PLATFORM_MAX_ATTEMPTS)

    attempt = 0
    while True:
        delay = None
        try:
            with PLATFORM_CALL_LATENCY.labels(channel_type=platform).time():
                await asyncio.wait_for(
                    adapter.block_dates(
                        listing_id,
                        booking.check_in,
                        booking.check_out,
                        booking_reference=str(booking.id),
                    ),
                    timeout=timeout,
                )
            return attempt + 1

        except asyncio.TimeoutError:
            error = f"Timed out after {timeout}s"
        except NON_RETRYABLE_ERRORS as e:
            raise ExternalSyncFailure(platform, e.message)
        except ChannelAdapterError as e:
            error = e.message
            if isinstance(e, RateLimitError) and e.retry_after:
                delay = float(e.retry_after)

        attempt += 1
        if attempt >= max_attempts:
            raise ExternalSyncFailure(platform, error)

        if delay is None:
            delay = calculate_retry_delay(attempt - 1)
        logger.warning(
            "Platform call failed, retrying",
            channel=platform,
            attempt=attempt,
            delay=round(delay, 2),
            error=error,
        )
        await asyncio.sleep(delay)


# =============================================================================
# OUTBOUND SYNC (PMS-Core -> Channels)
# =============================================================================

async def _sync_booking(
    session: AsyncSession,
    booking_id: UUID,
    adapter_factory: AdapterFactory,
) -> Dict[str, list]:
    results: Dict[str, list] = {"success": [], "failed": [], "skipped": []}

    booking = await session.get(Booking, booking_id)
    if booking is None:
        logger.info("Booking gone before sync ran", booking_id=str(booking_id))
        return results

    property = await session.get(Property, booking.property_id)
    if property is None:
        logger.info("Property gone before sync ran", booking_id=str(booking_id))
        return results

    connections = property.platform_ids
    already_synced = await _successful_platforms(session, booking_id)

    for platform in ExternalPlatform:
        listing_id = connections.get(platform)
        if listing_id is None:
            continue

        # Skip the source channel (it already knows about this booking)
        if booking.platform == platform.value:
            results["skipped"].append({"channel": platform.value, "reason": "source_channel"})
            PLATFORM_SYNC_ATTEMPTS.labels(channel_type=platform.value, outcome="skipped").inc()
            continue

        if platform.value in already_synced:
            results["skipped"].append({"channel": platform.value, "reason": "already_synced"})
            PLATFORM_SYNC_ATTEMPTS.labels(channel_type=platform.value, outcome="skipped").inc()
            continue

        try:
            async with adapter_factory.create_adapter(platform) as adapter:
                attempts = await push_block(adapter, listing_id, booking)

        except Exception as e:
            failure = e if isinstance(e, ExternalSyncFailure) else ExternalSyncFailure(platform.value, str(e))
            await log_sync_activity(
                session,
                property_id=property.id,
                booking_id=booking.id,
                platform=platform.value,
                action=SyncAction.BOOKING_SYNC,
                status=SyncLogStatus.FAILED,
                details=f"Failed to sync booking {booking.id} to {platform.value}",
                error=failure.message,
            )
            await session.commit()
            results["failed"].append({"channel": platform.value, "error": failure.message})
            PLATFORM_SYNC_ATTEMPTS.labels(channel_type=platform.value, outcome="failed").inc()
            logger.error(
                "Booking sync failed",
                channel=platform.value,
                booking_id=str(booking.id),
                error=failure.message,
            )
            continue

        await log_sync_activity(
            session,
            property_id=property.id,
            booking_id=booking.id,
            platform=platform.value,
            action=SyncAction.BOOKING_SYNC,
            status=SyncLogStatus.SUCCESS,
            details=f"Booking {booking.id} synced to {platform.value}",
        )
        await session.commit()
        results["success"].append(platform.value)
        PLATFORM_SYNC_ATTEMPTS.labels(channel_type=platform.value, outcome="success").inc()
        logger.info(
            "Booking synced",
            channel=platform.value,
            booking_id=str(booking.id),
            listing_id=listing_id,
            attempts=attempts,
        )

    booking.sync_status = SyncStatus.SYNCED.value
    await session.commit()
    return results


async def sync_booking_across_platforms(
    booking_id: UUID,
    adapter_factory: Optional[AdapterFactory] = None,
    session: Optional[AsyncSession] = None,
) -> Dict[str, list]:
    """
    Push a booking's dates to every connected platform.

    No-op when the booking or its property no longer exists.

    Returns:
        Channels grouped into success / failed / skipped
    """
    adapter_factory = adapter_factory or AdapterFactory()

    if session is None:
        async with get_async_session() as session:
            return await _sync_booking(session, booking_id, adapter_factory)
    return await _sync_booking(session, booking_id, adapter_factory)


@celery.task(name="channel_manager.sync_booking")
def sync_booking_task(booking_id: str) -> dict:
    """Celery entry point, enqueued after booking creation and ingestion."""
    return run_async(sync_booking_across_platforms, UUID(booking_id))


# =============================================================================
# HOST-TRIGGERED RESYNC
# =============================================================================

async def sync_property(
    session: AsyncSession,
    user_id: Optional[UUID],
    property_id: UUID,
    adapter_factory: Optional[AdapterFactory] = None,
) -> Dict[str, str]:
    """
    Re-push every non-cancelled booking of a property to each connected
    platform other than the one it came from, logging one
    ``calendar_update`` entry per platform.

    Returns:
        Per-platform outcome (success / failed)
    """
    property = await require_host_property(session, user_id, property_id)
    adapter_factory = adapter_factory or AdapterFactory()

    result = await session.execute(
        select(Booking)
        .where(
            and_(
                Booking.property_id == property_id,
                Booking.status != BookingStatus.CANCELLED.value,
            )
        )
        .order_by(Booking.check_in)
    )
    bookings: List[Booking] = list(result.scalars().all())

    outcomes: Dict[str, str] = {}
    for platform, listing_id in property.platform_ids.items():
        # A platform already holds the bookings that originated on it
        outbound = [b for b in bookings if b.platform != platform.value]
        try:
            async with adapter_factory.create_adapter(platform) as adapter:
                for booking in outbound:
                    await push_block(adapter, listing_id, booking)
        except Exception as e:
            message = e.message if isinstance(e, ExternalSyncFailure) else str(e)
            await log_sync_activity(
                session,
                property_id=property_id,
                platform=platform.value,
                action=SyncAction.CALENDAR_UPDATE,
                status=SyncLogStatus.FAILED,
                details=f"Calendar resync to {platform.value} failed",
                error=message,
            )
            outcomes[platform.value] = SyncLogStatus.FAILED.value
        else:
            await log_sync_activity(
                session,
                property_id=property_id,
                platform=platform.value,
                action=SyncAction.CALENDAR_UPDATE,
                status=SyncLogStatus.SUCCESS,
                details=f"Synced {len(outbound)} bookings to {platform.value}",
            )
            outcomes[platform.value] = SyncLogStatus.SUCCESS.value
        await session.commit()

    logger.info("Property resynced", property_id=str(property_id), outcomes=outcomes)
    return outcomes


# =============================================================================
# REPORTING
# =============================================================================

async def get_booking_sync_report(session: AsyncSession, booking_id: UUID) -> dict:
    """
    Per-platform latest ``booking_sync`` outcome for a booking, plus a strict
    aggregate: ``synced`` only if every target platform succeeded, ``failed``
    if any latest outcome failed, ``pending`` otherwise.

    Target platforms are the property's current connections minus the
    booking's origin platform. With no targets the strict status mirrors the
    booking's own ``sync_status``.
    """
    booking = await get_booking(session, booking_id)
    property = await session.get(Property, booking.property_id)
    connected = set(property.platform_ids) if property is not None else set()

    result = await session.execute(
        select(SyncLog)
        .where(
            and_(
                SyncLog.booking_id == booking_id,
                SyncLog.action == SyncAction.BOOKING_SYNC.value,
            )
        )
        .order_by(SyncLog.created_at)
    )
    latest: Dict[ExternalPlatform, SyncLog] = {}
    for entry in result.scalars().all():
        latest[ExternalPlatform(entry.platform)] = entry

    targets = {p for p in connected | set(latest) if p.value != booking.platform}

    platforms = {}
    for platform in sorted(targets, key=lambda p: p.value):
        entry = latest.get(platform)
        platforms[platform] = {
            "status": entry.status if entry else SyncLogStatus.PENDING.value,
            "error": entry.error if entry else None,
            "last_attempt_at": entry.created_at if entry else None,
        }

    statuses = {outcome["status"] for outcome in platforms.values()}
    if not platforms:
        strict = SyncStatus(booking.sync_status)
    elif SyncLogStatus.FAILED.value in statuses:
        strict = SyncStatus.FAILED
    elif statuses == {SyncLogStatus.SUCCESS.value}:
        strict = SyncStatus.SYNCED
    else:
        strict = SyncStatus.PENDING

    return {
        "booking_id": booking.id,
        "sync_status": SyncStatus(booking.sync_status),
        "strict_status": strict,
        "platforms": platforms,
    }

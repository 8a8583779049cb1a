"""Domain enumerations shared by the booking engine and the channel manager."""

from enum import Enum


class Platform(str, Enum):
    """Channel a booking originated on."""
    DIRECT = "direct"
    AIRBNB = "airbnb"
    AGODA = "agoda"
    BOOKING = "booking"


class ExternalPlatform(str, Enum):
    """Channels the sync engine pushes blocks to."""
    AIRBNB = "airbnb"
    AGODA = "agoda"
    BOOKING = "booking"


class PropertyStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


class BlockReason(str, Enum):
    BOOKED = "booked"
    MAINTENANCE = "maintenance"
    OWNER_BLOCK = "owner_block"
    SYNC_LOCK = "sync_lock"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    REFUNDED = "refunded"


class PaymentType(str, Enum):
    FULL = "full"
    PARTIAL = "partial"


class SyncStatus(str, Enum):
    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"


class SyncAction(str, Enum):
    AVAILABILITY_CHECK = "availability_check"
    BOOKING_SYNC = "booking_sync"
    CALENDAR_UPDATE = "calendar_update"
    PRICE_UPDATE = "price_update"


class SyncLogStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"

"""
ORM Models
==========

Tables:
- properties               listing + pricing, owned by one host
- property_platform_links  property -> {platform: external listing id}
- date_blocks              blocked / booked / held date ranges per property
- bookings                 direct and channel bookings
- sync_logs                append-only audit trail of platform sync activity
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .database import utcnow
from .enums import (
    BookingStatus,
    ExternalPlatform,
    PaymentStatus,
    Platform,
    PropertyStatus,
    SyncStatus,
)

Money = Numeric(12, 2)


class Base(DeclarativeBase):
    pass


class Property(Base):
    __tablename__ = "properties"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    host_id: Mapped[UUID] = mapped_column(Uuid, index=True)
    title: Mapped[str] = mapped_column(String(200))
    base_price: Mapped[Decimal] = mapped_column(Money)
    cleaning_fee: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    service_fee: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), default="INR")
    status: Mapped[str] = mapped_column(String(20), default=PropertyStatus.ACTIVE.value, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    platform_links: Mapped[List["PropertyPlatformLink"]] = relationship(
        back_populates="property",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def platform_ids(self) -> Dict[ExternalPlatform, str]:
        """External listing id per connected platform; absent platforms are not keys."""
        return {
            ExternalPlatform(link.platform): link.external_id
            for link in self.platform_links
        }


class PropertyPlatformLink(Base):
    __tablename__ = "property_platform_links"
    __table_args__ = (
        UniqueConstraint("property_id", "platform", name="uq_property_platform"),
        UniqueConstraint("platform", "external_id", name="uq_platform_external_id"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    property_id: Mapped[UUID] = mapped_column(ForeignKey("properties.id", ondelete="CASCADE"))
    platform: Mapped[str] = mapped_column(String(20))
    external_id: Mapped[str] = mapped_column(String(100))
    connected_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    property: Mapped[Property] = relationship(back_populates="platform_links")


class DateBlock(Base):
    """Inclusive [start_date, end_date] range; temporary blocks carry expires_at."""

    __tablename__ = "date_blocks"
    __table_args__ = (
        Index("ix_date_blocks_property_dates", "property_id", "start_date", "end_date"),
        Index("ix_date_blocks_temporary", "is_temporary", "expires_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    property_id: Mapped[UUID] = mapped_column(ForeignKey("properties.id", ondelete="CASCADE"))
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date)
    reason: Mapped[str] = mapped_column(String(20))
    is_temporary: Mapped[bool] = mapped_column(Boolean, default=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    platform: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    booking_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        UniqueConstraint("platform", "platform_booking_id", name="uq_platform_booking"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    # Plain reference: cancelled bookings outlive a deleted property.
    property_id: Mapped[UUID] = mapped_column(Uuid, index=True)
    guest_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True, index=True)
    check_in: Mapped[date] = mapped_column(Date)
    check_out: Mapped[date] = mapped_column(Date)

    adults: Mapped[int] = mapped_column(Integer, default=1)
    children: Mapped[int] = mapped_column(Integer, default=0)
    pets: Mapped[int] = mapped_column(Integer, default=0)

    subtotal: Mapped[Decimal] = mapped_column(Money)
    cleaning_fee: Mapped[Decimal] = mapped_column(Money)
    service_fee: Mapped[Decimal] = mapped_column(Money)
    total: Mapped[Decimal] = mapped_column(Money)
    currency: Mapped[str] = mapped_column(String(3))

    payment_status: Mapped[str] = mapped_column(String(20), default=PaymentStatus.PENDING.value)
    payment_method: Mapped[str] = mapped_column(String(50))
    amount_paid: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    transaction_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    status: Mapped[str] = mapped_column(String(20), default=BookingStatus.PENDING.value, index=True)
    platform: Mapped[str] = mapped_column(String(20), default=Platform.DIRECT.value)
    platform_booking_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    guest_name: Mapped[str] = mapped_column(String(200))
    guest_email: Mapped[str] = mapped_column(String(200))
    guest_phone: Mapped[str] = mapped_column(String(50), default="")
    special_requests: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    sync_status: Mapped[str] = mapped_column(String(20), default=SyncStatus.PENDING.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class SyncLog(Base):
    __tablename__ = "sync_logs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    property_id: Mapped[UUID] = mapped_column(Uuid, index=True)
    booking_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True, index=True)
    platform: Mapped[str] = mapped_column(String(20), index=True)
    action: Mapped[str] = mapped_column(String(30))
    status: Mapped[str] = mapped_column(String(20), index=True)
    details: Mapped[str] = mapped_column(Text)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

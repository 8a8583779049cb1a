"""
Platform Adapters
=================

One adapter per external channel, created through ``AdapterFactory``.
"""

from typing import Dict, Optional, Type

import httpx

from pms_core.config import settings
from pms_core.enums import ExternalPlatform

from .agoda_adapter import AgodaAdapter
from .airbnb_adapter import AirbnbAdapter
from .base_adapter import (
    AuthenticationError,
    ChannelAdapter,
    ChannelAdapterError,
    ExternalBookingNotification,
    RateLimitError,
    ResourceNotFoundError,
    ValidationError,
)
from .booking_com_adapter import BookingComAdapter

__all__ = [
    "AdapterFactory",
    "AgodaAdapter",
    "AirbnbAdapter",
    "AuthenticationError",
    "BookingComAdapter",
    "ChannelAdapter",
    "ChannelAdapterError",
    "ExternalBookingNotification",
    "RateLimitError",
    "ResourceNotFoundError",
    "ValidationError",
]


class AdapterFactory:
    """Factory for creating platform-specific adapters."""

    adapters: Dict[ExternalPlatform, Type[ChannelAdapter]] = {
        ExternalPlatform.AIRBNB: AirbnbAdapter,
        ExternalPlatform.AGODA: AgodaAdapter,
        ExternalPlatform.BOOKING: BookingComAdapter,
    }

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    def create_adapter(self, platform: ExternalPlatform) -> ChannelAdapter:
        """Create an adapter configured from settings for the given platform."""
        adapter_class = self.adapters.get(platform)
        if not adapter_class:
            raise ValueError(f"Unknown channel type: {platform}")

        prefix = self.settings_prefix(platform)
        return adapter_class(
            access_token=getattr(settings, f"{prefix}_ACCESS_TOKEN"),
            base_url=getattr(settings, f"{prefix}_API_URL"),
            timeout=settings.PLATFORM_CALL_TIMEOUT_SECONDS,
            transport=self.transport,
        )

    @staticmethod
    def settings_prefix(platform: ExternalPlatform) -> str:
        return "BOOKING_COM" if platform == ExternalPlatform.BOOKING else platform.value.upper()

    @classmethod
    def webhook_secret(cls, platform: ExternalPlatform) -> Optional[str]:
        return getattr(settings, f"{cls.settings_prefix(platform)}_WEBHOOK_SECRET")

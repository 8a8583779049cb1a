"""Test helpers: recording dispatcher, scripted platform adapters, signatures."""

import hashlib
import hmac
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from channel_manager.platform_adapters import ChannelAdapter, ExternalBookingNotification
from pms_core.dispatch import TaskDispatcher
from pms_core.enums import ExternalPlatform


class RecordingDispatcher(TaskDispatcher):
    """Collects enqueued work instead of sending it to Celery."""

    def __init__(self):
        self.booking_syncs: List[UUID] = []
        self.loyalty: List[tuple] = []
        self.ingestions: List[Dict[str, Any]] = []

    def schedule_booking_sync(self, booking_id: UUID) -> None:
        self.booking_syncs.append(booking_id)

    def schedule_loyalty_points(self, user_id: UUID, points: int, booking_amount: Decimal) -> None:
        self.loyalty.append((user_id, points, booking_amount))

    def schedule_external_ingestion(self, booking_data: Dict[str, Any]) -> None:
        self.ingestions.append(booking_data)


class ScriptedAdapter(ChannelAdapter):
    """Adapter whose block_dates raises the scripted errors in order, then succeeds."""

    def __init__(self, platform: ExternalPlatform, failures: Optional[List[Exception]] = None):
        super().__init__(access_token="test-token")
        self._platform = platform
        self.failures = list(failures or [])
        self.calls: List[tuple] = []

    @property
    def channel_type(self) -> ExternalPlatform:
        return self._platform

    @property
    def default_base_url(self) -> str:
        return "https://platform.test"

    async def block_dates(
        self,
        listing_id: str,
        start_date: date,
        end_date: date,
        booking_reference: Optional[str] = None
    ) -> None:
        self.calls.append((listing_id, start_date, end_date, booking_reference))
        if self.failures:
            raise self.failures.pop(0)

    def parse_booking_notification(self, payload: Dict[str, Any]) -> ExternalBookingNotification:
        raise NotImplementedError


class ScriptedAdapterFactory:
    """Hands out one ScriptedAdapter per platform; failures are shared across calls."""

    def __init__(self, failures: Optional[Dict[ExternalPlatform, List[Exception]]] = None):
        self.failures = failures or {}
        self.adapters: Dict[ExternalPlatform, ScriptedAdapter] = {}

    def create_adapter(self, platform: ExternalPlatform) -> ScriptedAdapter:
        adapter = self.adapters.get(platform)
        if adapter is None:
            adapter = ScriptedAdapter(platform, self.failures.get(platform))
            self.adapters[platform] = adapter
        return adapter

    def calls_for(self, platform: ExternalPlatform) -> List[tuple]:
        adapter = self.adapters.get(platform)
        return adapter.calls if adapter else []


def sign_payload(secret: str, body: bytes) -> str:
    """HMAC-SHA256 hex digest as the platforms send it."""
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()

"""
Agoda Channel Adapter
=====================

Platform adapter for the Agoda supply API (JSON).
"""

from datetime import date
from typing import Any, Dict, Optional

from pms_core.enums import ExternalPlatform

from .base_adapter import ChannelAdapter, ExternalBookingNotification


class AgodaAdapter(ChannelAdapter):
    """
    Adapter for the Agoda supply API.

    Endpoints:
    - POST /properties/{id}/availability - Close or open dates
    """

    @property
    def channel_type(self) -> ExternalPlatform:
        return ExternalPlatform.AGODA

    @property
    def default_base_url(self) -> str:
        return "https://supply.agoda.com/api/v1"

    async def block_dates(
        self,
        listing_id: str,
        start_date: date,
        end_date: date,
        booking_reference: Optional[str] = None
    ) -> None:
        endpoint = f"/properties/{listing_id}/availability"
        self._log_request(
            "POST",
            endpoint,
            start_date=str(start_date),
            end_date=str(end_date)
        )

        payload = {
            "date_from": start_date.isoformat(),
            "date_to": end_date.isoformat(),
            "closed": True,
        }
        if booking_reference:
            payload["reference"] = booking_reference

        response = await self._make_request(
            method="POST",
            endpoint=endpoint,
            json=payload
        )

        self._log_response(response, records_updated=1)

    def parse_booking_notification(self, payload: Dict[str, Any]) -> ExternalBookingNotification:
        customer = payload.get("customer") or {}

        return ExternalBookingNotification(
            platform=self.channel_type,
            platform_booking_id=str(self._require(payload, "booking_id")),
            platform_property_id=str(self._require(payload, "property_id")),
            check_in=self._parse_date(self._require(payload, "arrival")),
            check_out=self._parse_date(self._require(payload, "departure")),
            guest_name=customer.get("name") or "Agoda Guest",
            guest_email=customer.get("email", ""),
            guest_phone=customer.get("phone") or "",
        )

"""
Airbnb Channel Adapter
======================

Platform adapter for Airbnb API integration.

Rate Limit: 10 requests/second per host
Auth: Bearer token
"""

from datetime import date
from typing import Any, Dict, Optional

from pms_core.enums import ExternalPlatform

from .base_adapter import ChannelAdapter, ExternalBookingNotification


class AirbnbAdapter(ChannelAdapter):
    """
    Adapter for Airbnb API.

    Endpoints:
    - PUT /listings/{id}/calendar - Update availability

    Webhooks:
    - reservation.created
    """

    @property
    def channel_type(self) -> ExternalPlatform:
        return ExternalPlatform.AIRBNB

    @property
    def default_base_url(self) -> str:
        return "https://api.airbnb.com/v2"

    # =========================================================================
    # AVAILABILITY MANAGEMENT
    # =========================================================================

    async def block_dates(
        self,
        listing_id: str,
        start_date: date,
        end_date: date,
        booking_reference: Optional[str] = None
    ) -> None:
        """
        Close a range on the Airbnb calendar.

        Uses the PUT /calendar endpoint with ``available: false``.
        """
        endpoint = f"/listings/{listing_id}/calendar"
        self._log_request(
            "PUT",
            endpoint,
            start_date=str(start_date),
            end_date=str(end_date)
        )

        payload = {
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "available": False,
        }
        if booking_reference:
            payload["notes"] = f"PMS booking {booking_reference}"

        response = await self._make_request(
            method="PUT",
            endpoint=endpoint,
            json=payload
        )

        self._log_response(response, records_updated=1)

    # =========================================================================
    # WEBHOOK HANDLING
    # =========================================================================

    def parse_booking_notification(self, payload: Dict[str, Any]) -> ExternalBookingNotification:
        """
        Map an Airbnb ``reservation.created`` webhook.

        The reservation sits under ``reservation``; older payloads send it
        at the top level.
        """
        reservation = payload.get("reservation", payload)
        guest = reservation.get("guest") or {}
        name = " ".join(
            part for part in (guest.get("first_name", ""), guest.get("last_name", "")) if part
        )

        return ExternalBookingNotification(
            platform=self.channel_type,
            platform_booking_id=str(self._require(reservation, "confirmation_code")),
            platform_property_id=str(self._require(reservation, "listing_id")),
            check_in=self._parse_date(self._require(reservation, "start_date")),
            check_out=self._parse_date(self._require(reservation, "end_date")),
            guest_name=name or "Airbnb Guest",
            guest_email=guest.get("email", ""),
            guest_phone=guest.get("phone") or "",
        )

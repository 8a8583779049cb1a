"""
Booking.com Channel Adapter
===========================

Platform adapter for Booking.com Connectivity API.

Booking.com takes availability updates as OTA XML
(OTA_HotelAvailNotifRQ) and pushes reservation notifications as JSON.
"""

import xml.etree.ElementTree as ET
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

import httpx
import structlog

from pms_core.enums import ExternalPlatform

from .base_adapter import ChannelAdapter, ChannelAdapterError, ExternalBookingNotification

logger = structlog.get_logger(__name__)

OTA_NAMESPACE = "http://www.opentravel.org/OTA/2003/05"


class BookingComAdapter(ChannelAdapter):
    """
    Adapter for Booking.com Connectivity API.

    Key Endpoints:
    - POST /availability - Update room availability (XML)
    """

    @property
    def channel_type(self) -> ExternalPlatform:
        return ExternalPlatform.BOOKING

    @property
    def default_base_url(self) -> str:
        return "https://supply-xml.booking.com/json"

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
        Close a range using OTA_HotelAvailNotifRQ with BookingLimit 0.
        """
        self._log_request(
            "POST",
            "/availability",
            start_date=str(start_date),
            end_date=str(end_date)
        )

        xml_request = self._build_availability_xml(
            hotel_code=listing_id,
            start_date=start_date,
            end_date=end_date,
        )

        response = await self._make_request(
            method="POST",
            endpoint="/availability",
            content=xml_request,
            headers={"Content-Type": "application/xml"},
        )

        self._validate_xml_response(response)
        self._log_response(response, records_updated=1)

    def _build_availability_xml(
        self,
        hotel_code: str,
        start_date: date,
        end_date: date,
    ) -> str:
        """Build OTA_HotelAvailNotifRQ XML closing the range."""
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

        return f"""<?xml version="1.0" encoding="UTF-8"?>
<OTA_HotelAvailNotifRQ xmlns="{OTA_NAMESPACE}"
                       Version="1.0"
                       TimeStamp="{timestamp}">
    <AvailStatusMessages HotelCode="{hotel_code}">
        <AvailStatusMessage>
            <StatusApplicationControl Start="{start_date.isoformat()}"
                                       End="{end_date.isoformat()}"
                                       InvTypeCode="ROOM"
                                       RatePlanCode="DEFAULT"/>
            <BookingLimit>0</BookingLimit>
        </AvailStatusMessage>
    </AvailStatusMessages>
</OTA_HotelAvailNotifRQ>"""

    def _validate_xml_response(self, response: httpx.Response) -> None:
        """Raise on OTA errors embedded in a 200 response."""
        if not response.text.strip():
            return

        try:
            root = ET.fromstring(response.text)
        except ET.ParseError as e:
            logger.error("Failed to parse XML response", error=str(e))
            raise ChannelAdapterError(
                f"Booking.com returned invalid XML: {e}",
                status_code=response.status_code,
                response_body=response.text
            )

        ns = {"ota": OTA_NAMESPACE}
        errors = root.findall(".//ota:Error", ns)
        if errors:
            error_msgs = [e.get("ShortText", "Unknown error") for e in errors]
            raise ChannelAdapterError(
                f"Booking.com OTA errors: {', '.join(error_msgs)}",
                status_code=response.status_code,
                response_body=response.text
            )

        for warning in root.findall(".//ota:Warning", ns):
            logger.warning(
                "Booking.com API warning",
                warning=warning.get("ShortText")
            )

    # =========================================================================
    # WEBHOOK HANDLING
    # =========================================================================

    def parse_booking_notification(self, payload: Dict[str, Any]) -> ExternalBookingNotification:
        """Map a Booking.com reservation push notification."""
        booker = payload.get("booker") or {}
        name = " ".join(
            part for part in (booker.get("first_name", ""), booker.get("last_name", "")) if part
        )

        return ExternalBookingNotification(
            platform=self.channel_type,
            platform_booking_id=str(self._require(payload, "reservation_id")),
            platform_property_id=str(self._require(payload, "hotel_id")),
            check_in=self._parse_date(self._require(payload, "checkin")),
            check_out=self._parse_date(self._require(payload, "checkout")),
            guest_name=name or "Booking.com Guest",
            guest_email=booker.get("email", ""),
            guest_phone=booker.get("telephone") or "",
        )

"""Tests for the platform adapters (outbound requests and inbound notifications)."""

import json
from datetime import date

import httpx
import pytest

from channel_manager.platform_adapters import (
    AdapterFactory,
    AgodaAdapter,
    AirbnbAdapter,
    AuthenticationError,
    BookingComAdapter,
    ChannelAdapterError,
    RateLimitError,
    ResourceNotFoundError,
    ValidationError,
)
from pms_core.config import settings
from pms_core.enums import ExternalPlatform

from tests.utils.helpers import sign_payload


class RecordingTransport:
    """httpx.MockTransport that remembers every request."""

    def __init__(self, status_code=200, text="", headers=None):
        self.requests = []
        self.status_code = status_code
        self.text = text
        self.headers = headers or {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, text=self.text, headers=self.headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


# ===== OUTBOUND =====

@pytest.mark.unit
@pytest.mark.asyncio
async def test_airbnb_closes_calendar_range():
    recorder = RecordingTransport(text="{}")
    async with AirbnbAdapter("token-1", base_url="https://airbnb.test", transport=recorder.transport) as adapter:
        await adapter.block_dates("L-42", date(2024, 7, 1), date(2024, 7, 4), booking_reference="b-1")

    [request] = recorder.requests
    assert request.method == "PUT"
    assert request.url == "https://airbnb.test/listings/L-42/calendar"
    assert request.headers["Authorization"] == "Bearer token-1"
    assert json.loads(request.content) == {
        "start_date": "2024-07-01",
        "end_date": "2024-07-04",
        "available": False,
        "notes": "PMS booking b-1",
    }


@pytest.mark.unit
@pytest.mark.asyncio
async def test_agoda_closes_availability():
    recorder = RecordingTransport(text="{}")
    async with AgodaAdapter("token-2", base_url="https://agoda.test", transport=recorder.transport) as adapter:
        await adapter.block_dates("P-7", date(2024, 7, 1), date(2024, 7, 4))

    [request] = recorder.requests
    assert request.method == "POST"
    assert request.url.path == "/properties/P-7/availability"
    assert json.loads(request.content) == {
        "date_from": "2024-07-01",
        "date_to": "2024-07-04",
        "closed": True,
    }


@pytest.mark.unit
@pytest.mark.asyncio
async def test_booking_com_sends_ota_xml():
    recorder = RecordingTransport(text="")
    async with BookingComAdapter("token-3", base_url="https://booking.test", transport=recorder.transport) as adapter:
        await adapter.block_dates("H-9", date(2024, 7, 1), date(2024, 7, 4))

    [request] = recorder.requests
    body = request.content.decode()
    assert request.headers["Content-Type"] == "application/xml"
    assert "<OTA_HotelAvailNotifRQ" in body
    assert 'HotelCode="H-9"' in body
    assert 'Start="2024-07-01"' in body
    assert "<BookingLimit>0</BookingLimit>" in body


@pytest.mark.unit
@pytest.mark.asyncio
async def test_booking_com_ota_error_in_200_response():
    error_body = (
        '<OTA_HotelAvailNotifRS xmlns="http://www.opentravel.org/OTA/2003/05">'
        '<Errors><Error ShortText="Unknown hotel"/></Errors>'
        "</OTA_HotelAvailNotifRS>"
    )
    recorder = RecordingTransport(text=error_body)
    async with BookingComAdapter("token-3", transport=recorder.transport) as adapter:
        with pytest.raises(ChannelAdapterError, match="Unknown hotel"):
            await adapter.block_dates("H-9", date(2024, 7, 1), date(2024, 7, 4))


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status_code, error_class",
    [
        (401, AuthenticationError),
        (403, AuthenticationError),
        (404, ResourceNotFoundError),
        (400, ValidationError),
        (500, ChannelAdapterError),
    ],
)
async def test_http_errors_are_translated(status_code, error_class):
    recorder = RecordingTransport(status_code=status_code, text="nope")
    async with AirbnbAdapter("token", transport=recorder.transport) as adapter:
        with pytest.raises(error_class) as exc_info:
            await adapter.block_dates("L-1", date(2024, 7, 1), date(2024, 7, 2))

    assert exc_info.value.status_code == status_code


@pytest.mark.unit
@pytest.mark.asyncio
async def test_rate_limit_carries_retry_after():
    recorder = RecordingTransport(status_code=429, headers={"Retry-After": "7"})
    async with AgodaAdapter("token", transport=recorder.transport) as adapter:
        with pytest.raises(RateLimitError) as exc_info:
            await adapter.block_dates("P-1", date(2024, 7, 1), date(2024, 7, 2))

    assert exc_info.value.retry_after == 7


@pytest.mark.unit
@pytest.mark.asyncio
async def test_connection_errors_become_adapter_errors():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with AirbnbAdapter("token", transport=httpx.MockTransport(refuse)) as adapter:
        with pytest.raises(ChannelAdapterError, match="Request failed"):
            await adapter.block_dates("L-1", date(2024, 7, 1), date(2024, 7, 2))


@pytest.mark.unit
def test_factory_builds_adapters_from_settings(monkeypatch):
    monkeypatch.setattr(settings, "BOOKING_COM_ACCESS_TOKEN", "bk-token")
    monkeypatch.setattr(settings, "BOOKING_COM_API_URL", "https://booking.test")

    adapter = AdapterFactory().create_adapter(ExternalPlatform.BOOKING)

    assert isinstance(adapter, BookingComAdapter)
    assert adapter.access_token == "bk-token"
    assert adapter.base_url == "https://booking.test"


# ===== INBOUND =====

@pytest.mark.unit
def test_parse_airbnb_reservation():
    notification = AirbnbAdapter("token").parse_booking_notification({
        "event": "reservation.created",
        "reservation": {
            "confirmation_code": "HMABC123",
            "listing_id": 98765,
            "start_date": "2024-07-01",
            "end_date": "2024-07-04",
            "guest": {"first_name": "Asha", "last_name": "Rao", "email": "asha@example.com"},
        },
    })

    assert notification.platform == ExternalPlatform.AIRBNB
    assert notification.platform_booking_id == "HMABC123"
    assert notification.platform_property_id == "98765"
    assert (notification.check_in, notification.check_out) == (date(2024, 7, 1), date(2024, 7, 4))
    assert notification.guest_name == "Asha Rao"
    assert notification.to_task_payload()["guest_details"] == {
        "name": "Asha Rao",
        "email": "asha@example.com",
        "phone": "",
    }


@pytest.mark.unit
def test_parse_agoda_booking():
    notification = AgodaAdapter("token").parse_booking_notification({
        "booking_id": "AG-1",
        "property_id": "P-7",
        "arrival": "2024-07-01",
        "departure": "2024-07-03",
        "customer": {"name": "Li Wei", "email": "li@example.com", "phone": "+65 5555"},
    })

    assert notification.platform_booking_id == "AG-1"
    assert notification.guest_phone == "+65 5555"


@pytest.mark.unit
def test_parse_booking_com_reservation():
    notification = BookingComAdapter("token").parse_booking_notification({
        "reservation_id": 4455,
        "hotel_id": "H-9",
        "checkin": "2024-07-01T14:00:00",
        "checkout": "2024-07-03",
        "booker": {"first_name": "Marta", "last_name": "Silva", "telephone": "+351 1"},
    })

    assert notification.platform_booking_id == "4455"
    assert notification.check_in == date(2024, 7, 1)
    assert notification.guest_name == "Marta Silva"
    assert notification.guest_email == ""


@pytest.mark.unit
@pytest.mark.parametrize(
    "payload",
    [
        {"reservation": {"listing_id": 1, "start_date": "2024-07-01", "end_date": "2024-07-02"}},
        {"reservation": {"confirmation_code": "X", "listing_id": 1, "start_date": "soon", "end_date": "2024-07-02"}},
    ],
)
def test_malformed_notifications_raise_validation_error(payload):
    with pytest.raises(ValidationError):
        AirbnbAdapter("token").parse_booking_notification(payload)


@pytest.mark.unit
def test_webhook_signature_verification():
    body = b'{"booking_id": "AG-1"}'
    adapter = AgodaAdapter("token")

    assert adapter.verify_webhook_signature(body, sign_payload("s3cret", body), "s3cret")
    assert not adapter.verify_webhook_signature(body, sign_payload("other", body), "s3cret")

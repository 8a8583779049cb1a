"""
Base Channel Adapter
====================

Abstract base class defining the interface for all channel platform adapters.
The sync engine only needs one outbound operation ("block these dates on
listing X"); inbound, each adapter maps its platform's booking notification
into an ``ExternalBookingNotification``.
"""

import hashlib
import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional

import httpx
import structlog

from pms_core.enums import ExternalPlatform

logger = structlog.get_logger(__name__)


@dataclass
class ExternalBookingNotification:
    """Standardized "booking created" notification from any platform."""
    platform: ExternalPlatform
    platform_booking_id: str
    platform_property_id: str
    check_in: date
    check_out: date
    guest_name: str
    guest_email: str
    guest_phone: str = ""

    def to_task_payload(self) -> Dict[str, Any]:
        """JSON-safe form for the ingestion task."""
        return {
            "platform": self.platform.value,
            "platform_booking_id": self.platform_booking_id,
            "platform_property_id": self.platform_property_id,
            "check_in": self.check_in.isoformat(),
            "check_out": self.check_out.isoformat(),
            "guest_details": {
                "name": self.guest_name,
                "email": self.guest_email,
                "phone": self.guest_phone,
            },
        }


class ChannelAdapterError(Exception):
    """Any failure talking to a platform; retryable unless a subclass says otherwise."""
    def __init__(self, message: str, status_code: Optional[int] = None, response_body: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)


class AuthenticationError(ChannelAdapterError):
    """Token rejected or lacking scope (401, 403)."""


class RateLimitError(ChannelAdapterError):
    """Platform throttled us (429)."""
    def __init__(self, message: str, retry_after: Optional[int] = None):
        super().__init__(message, 429)
        self.retry_after = retry_after


class ResourceNotFoundError(ChannelAdapterError):
    """Listing unknown to the platform (404)."""


class ValidationError(ChannelAdapterError):
    """Request or notification payload rejected as malformed (400)."""


STATUS_ERRORS = {
    400: (ValidationError, None),
    401: (AuthenticationError, "Authentication failed, token may be expired"),
    403: (AuthenticationError, "Access forbidden, token lacks calendar scope"),
    404: (ResourceNotFoundError, "Listing not found on platform"),
}


class ChannelAdapter(ABC):
    """
    Abstract base class for all channel platform adapters.

    Adapters handle:
    - Platform-specific request formats for blocking dates
    - Error translation into the ChannelAdapterError family
    - Mapping inbound booking notifications to the PMS shape
    """

    def __init__(
        self,
        access_token: str,
        base_url: Optional[str] = None,
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the adapter.

        Args:
            access_token: API token for the platform
            base_url: Overrides the platform's default API URL
            timeout: HTTP request timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.access_token = access_token
        self._base_url = base_url
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    @abstractmethod
    def channel_type(self) -> ExternalPlatform:
        """Return the platform this adapter talks to."""
        pass

    @property
    @abstractmethod
    def default_base_url(self) -> str:
        pass

    @property
    def base_url(self) -> str:
        return self._base_url or self.default_base_url

    @property
    def headers(self) -> Dict[str, str]:
        """Return default headers for API requests."""
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json"
        }

    async def get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self.headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # =========================================================================
    # ABSTRACT METHODS - Must be implemented by each adapter
    # =========================================================================

    @abstractmethod
    async def block_dates(
        self,
        listing_id: str,
        start_date: date,
        end_date: date,
        booking_reference: Optional[str] = None
    ) -> None:
        """
        Mark a date range unavailable on the platform.

        Args:
            listing_id: Platform-specific listing ID
            start_date: First blocked date
            end_date: Last blocked date (inclusive)
            booking_reference: PMS booking id, passed along where the platform accepts one

        Raises:
            ChannelAdapterError: On API errors
            AuthenticationError: On auth failures
            RateLimitError: On rate limit exceeded
        """
        pass

    @abstractmethod
    def parse_booking_notification(self, payload: Dict[str, Any]) -> ExternalBookingNotification:
        """
        Map a platform webhook payload to the standardized notification.

        Raises:
            ValidationError: If required fields are missing or malformed
        """
        pass

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: str,
        secret: str
    ) -> bool:
        """
        Verify an HMAC-SHA256 webhook signature (hex digest).

        All three platforms sign the raw request body this way.
        """
        expected = hmac.new(
            secret.encode(),
            payload,
            hashlib.sha256
        ).hexdigest()

        return hmac.compare_digest(expected, signature)

    # =========================================================================
    # HELPER METHODS - Shared across adapters
    # =========================================================================

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        json: Optional[Dict] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Send a request and translate failures into ChannelAdapterError.

        Transport problems (DNS, refused connection, read timeout) surface as
        a plain ChannelAdapterError so the sync engine retries them.
        """
        client = await self.get_client()

        try:
            response = await client.request(method, endpoint, json=json, **kwargs)
        except httpx.RequestError as e:
            logger.error(
                "Platform request failed",
                channel=self.channel_type.value,
                endpoint=endpoint,
                error=str(e)
            )
            raise ChannelAdapterError(f"Request failed: {e}")

        if response.is_error:
            self._raise_for_status(response, endpoint)
        return response

    def _raise_for_status(self, response: httpx.Response, endpoint: str) -> None:
        code = response.status_code
        logger.warning(
            "Platform rejected request",
            channel=self.channel_type.value,
            endpoint=endpoint,
            status_code=code
        )

        if code == 429:
            header = response.headers.get("Retry-After", "")
            raise RateLimitError(
                f"{self.channel_type.value} rate limit hit",
                retry_after=int(header) if header.isdigit() else None
            )

        error_class, message = STATUS_ERRORS.get(code, (ChannelAdapterError, None))
        raise error_class(
            message or f"{self.channel_type.value} returned HTTP {code}",
            status_code=code,
            response_body=response.text
        )

    def _log_request(self, method: str, endpoint: str, **kwargs):
        logger.info(
            "Platform request",
            channel=self.channel_type.value,
            method=method,
            endpoint=endpoint,
            **kwargs
        )

    def _log_response(self, response: httpx.Response, **kwargs):
        logger.info(
            "Platform response",
            channel=self.channel_type.value,
            status_code=response.status_code,
            **kwargs
        )

    @staticmethod
    def _require(payload: Dict[str, Any], *keys: str) -> Any:
        """Walk nested keys, raising ValidationError when one is missing."""
        value: Any = payload
        for key in keys:
            if not isinstance(value, dict) or value.get(key) in (None, ""):
                raise ValidationError(f"Missing field in notification: {'.'.join(keys)}")
            value = value[key]
        return value

    @staticmethod
    def _parse_date(value: Any) -> date:
        try:
            return date.fromisoformat(str(value)[:10])
        except ValueError:
            raise ValidationError(f"Invalid date in notification: {value}")

"""
Webhook Handlers
================

FastAPI endpoint for "booking created" notifications from the external
platforms. Handles signature verification, payload mapping and handing the
booking to the ingestion task; ingestion itself is idempotent.

Endpoints:
- POST /api/v1/webhooks/airbnb
- POST /api/v1/webhooks/agoda
- POST /api/v1/webhooks/booking
"""

import json
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import APIRouter, Header, HTTPException, Request
from prometheus_client import Counter, Histogram

from pms_core.dispatch import get_dispatcher
from pms_core.enums import ExternalPlatform

from .platform_adapters import AdapterFactory, ValidationError
from .schemas import WebhookResponse

logger = structlog.get_logger(__name__)

# =============================================================================
# PROMETHEUS METRICS
# =============================================================================

WEBHOOK_RECEIVED = Counter(
    "channel_webhook_received_total",
    "Total webhooks received",
    ["channel_type"]
)

WEBHOOK_PROCESSED = Counter(
    "channel_webhook_processed_total",
    "Total webhooks processed",
    ["channel_type", "status"]  # status: accepted, invalid_signature, invalid_payload, error
)

WEBHOOK_LATENCY = Histogram(
    "channel_webhook_processing_seconds",
    "Webhook processing latency",
    ["channel_type"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/api/v1/webhooks",
    tags=["Channel Webhooks"]
)


# =============================================================================
# WEBHOOK ENDPOINT
# =============================================================================

@router.post("/{platform}", response_model=WebhookResponse, status_code=202)
async def platform_webhook(
    platform: ExternalPlatform,
    request: Request,
    x_signature: Optional[str] = Header(None, alias="X-Signature"),
) -> WebhookResponse:
    """
    Handle a platform's booking notification.

    When a webhook secret is configured for the platform, the raw body must
    carry a valid HMAC-SHA256 hex digest in ``X-Signature``.
    """
    start_time = datetime.now(timezone.utc)
    channel = platform.value
    payload = await request.body()
    WEBHOOK_RECEIVED.labels(channel_type=channel).inc()

    adapter = AdapterFactory().create_adapter(platform)

    # Verify signature
    secret = AdapterFactory.webhook_secret(platform)
    if secret:
        if not x_signature or not adapter.verify_webhook_signature(payload, x_signature, secret):
            logger.warning("Invalid webhook signature", channel=channel)
            WEBHOOK_PROCESSED.labels(channel_type=channel, status="invalid_signature").inc()
            raise HTTPException(status_code=401, detail="Invalid signature")

    # Parse payload
    try:
        data = json.loads(payload)
        if not isinstance(data, dict):
            raise ValueError("Payload must be a JSON object")
        notification = adapter.parse_booking_notification(data)
    except (ValueError, ValidationError) as e:
        WEBHOOK_PROCESSED.labels(channel_type=channel, status="invalid_payload").inc()
        raise HTTPException(status_code=400, detail=f"Invalid payload: {e}")

    logger.info(
        "Received booking webhook",
        channel=channel,
        channel_booking_id=notification.platform_booking_id,
        listing_id=notification.platform_property_id,
    )

    # Queue import task
    try:
        get_dispatcher().schedule_external_ingestion(notification.to_task_payload())
    except Exception as e:
        logger.error(
            "Error queueing webhook booking",
            error=str(e),
            channel=channel,
        )
        WEBHOOK_PROCESSED.labels(channel_type=channel, status="error").inc()
        raise HTTPException(status_code=503, detail="Processing error")

    WEBHOOK_PROCESSED.labels(channel_type=channel, status="accepted").inc()

    # Record latency
    latency = (datetime.now(timezone.utc) - start_time).total_seconds()
    WEBHOOK_LATENCY.labels(channel_type=channel).observe(latency)

    return WebhookResponse(
        status="accepted",
        event_id=notification.platform_booking_id,
    )

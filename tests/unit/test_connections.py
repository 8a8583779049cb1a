"""Tests for platform connections and the sync log view."""

from uuid import uuid4

import pytest

from channel_manager.connections import (
    connect_platform,
    disconnect_platform,
    get_platform_connections,
    get_sync_logs,
)
from pms_core.enums import ExternalPlatform
from pms_core.errors import InvalidTransition, NotFound, Unauthorized

from tests.utils.factories import make_property


@pytest.mark.unit
@pytest.mark.asyncio
async def test_connect_and_replace_listing(session):
    host_id = uuid4()
    property = await make_property(session, host_id=host_id)

    await connect_platform(session, host_id, property.id, ExternalPlatform.AIRBNB, "air-1")
    property = await connect_platform(session, host_id, property.id, ExternalPlatform.AIRBNB, "air-2")

    assert property.platform_ids == {ExternalPlatform.AIRBNB: "air-2"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_listing_cannot_be_linked_twice(session):
    host_id = uuid4()
    await make_property(session, host_id=host_id, platform_ids={ExternalPlatform.AGODA: "ag-1"})
    other = await make_property(session, host_id=host_id)

    with pytest.raises(InvalidTransition):
        await connect_platform(session, host_id, other.id, ExternalPlatform.AGODA, "ag-1")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_only_the_host_connects(session):
    property = await make_property(session)

    with pytest.raises(Unauthorized):
        await connect_platform(session, uuid4(), property.id, ExternalPlatform.AIRBNB, "air-1")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_disconnect(session):
    host_id = uuid4()
    property = await make_property(session, host_id=host_id, platform_ids={ExternalPlatform.BOOKING: "bk-1"})

    property = await disconnect_platform(session, host_id, property.id, ExternalPlatform.BOOKING)
    assert property.platform_ids == {}

    with pytest.raises(NotFound):
        await disconnect_platform(session, host_id, property.id, ExternalPlatform.BOOKING)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_connection_summary_and_logs(session):
    host_id = uuid4()
    first = await make_property(session, host_id=host_id)
    second = await make_property(session, host_id=host_id)
    await connect_platform(session, host_id, first.id, ExternalPlatform.AIRBNB, "air-1")
    await connect_platform(session, host_id, second.id, ExternalPlatform.AIRBNB, "air-2")
    await connect_platform(session, host_id, second.id, ExternalPlatform.AGODA, "ag-2")

    connections = {c["platform"]: c for c in await get_platform_connections(session, host_id)}

    assert connections[ExternalPlatform.AIRBNB]["property_count"] == 2
    assert connections[ExternalPlatform.AGODA]["property_count"] == 1
    assert connections[ExternalPlatform.BOOKING]["connected"] is False
    assert connections[ExternalPlatform.BOOKING]["last_sync"] is None
    assert connections[ExternalPlatform.AIRBNB]["last_sync"] is not None

    logs = await get_sync_logs(session, host_id, limit=2)
    assert len(logs) == 2
    assert logs[0].created_at >= logs[1].created_at

    assert await get_sync_logs(session, uuid4()) == []

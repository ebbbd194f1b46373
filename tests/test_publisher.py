"""Event Publisher tests — fan-out, pruning, and outcomes.

Learn: the publisher is tested in isolation with FakeChannels; the
HTTP-level tests (test_orders_api) cover the routes calling it.
"""

import asyncio
import json
from datetime import datetime, timezone

import pytest
from structlog.testing import capture_logs

from foodiii.realtime.publisher import (
    OrderEventPublisher,
    PublishOutcome,
    build_order_projection,
)
from foodiii.realtime.registry import ConnectionRegistry

ORDER = {
    "_id": "1",
    "orderNumber": "ORD-1",
    "status": "pending",
    "totalAmount": 250,
    "items": [{"name": "Masala Dosa", "quantity": 2, "price": 125}],
}


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def publisher(registry):
    return OrderEventPublisher(registry)


def _messages(channel):
    return [json.loads(f) for f in channel.frames]


# ═══════════════════════════════════════════════════════════
# Delivery
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_created_reaches_registered_connection(registry, publisher, fake_channel_cls):
    a = fake_channel_cls()
    registry.register("A", a)

    result = await publisher.publish("created", ORDER)

    assert result.outcome is PublishOutcome.DELIVERED
    assert result.delivered == ["A"]
    [msg] = _messages(a)
    assert msg["type"] == "order:update"
    assert msg["data"]["event"] == "created"
    assert msg["data"]["order"]["status"] == "pending"
    assert msg["data"]["order"]["_id"] == "1"
    assert msg["data"]["order"]["orderNumber"] == "ORD-1"
    assert msg["data"]["order"]["totalAmount"] == 250


@pytest.mark.asyncio
async def test_closed_connection_pruned_and_skipped(registry, publisher, fake_channel_cls):
    a = fake_channel_cls(is_open=False)
    b = fake_channel_cls()
    registry.register("A", a)
    registry.register("B", b)

    result = await publisher.publish("status-updated", {**ORDER, "status": "shipped"})

    assert a.frames == []
    assert len(b.frames) == 1
    assert "A" not in registry
    assert "B" in registry
    assert result.pruned == ["A"]
    assert result.delivered == ["B"]


@pytest.mark.asyncio
async def test_send_failure_recorded_and_unregistered(registry, publisher, fake_channel_cls):
    registry.register("A", fake_channel_cls(fail_with=ConnectionResetError("reset")))
    b = fake_channel_cls()
    registry.register("B", b)

    result = await publisher.publish("created", ORDER)

    assert result.failed == {"A": "reset"}
    assert result.delivered == ["B"]
    assert not result.ok
    assert "A" not in registry


@pytest.mark.asyncio
async def test_events_arrive_in_publish_order(registry, publisher, fake_channel_cls):
    a = fake_channel_cls()
    registry.register("A", a)

    for status in ("pending", "processing", "shipped"):
        await publisher.publish("status-updated", {**ORDER, "status": status})

    assert [m["data"]["order"]["status"] for m in _messages(a)] == [
        "pending",
        "processing",
        "shipped",
    ]


# ═══════════════════════════════════════════════════════════
# No-op outcomes
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_no_subscribers_is_logged_noop(registry, publisher, fake_channel_cls):
    with capture_logs() as logs:
        result = await publisher.publish("created", ORDER)

    assert result.outcome is PublishOutcome.NO_SUBSCRIBERS
    assert any(
        e["event"] == "foodiii.realtime.no_subscribers" and e["log_level"] == "warning"
        for e in logs
    )

    # A dashboard that connects afterwards doesn't get the dropped event
    late = fake_channel_cls()
    registry.register("late", late)
    assert late.frames == []


@pytest.mark.asyncio
async def test_transport_not_ready_is_logged_noop():
    publisher = OrderEventPublisher(None)
    with capture_logs() as logs:
        result = await publisher.publish("created", ORDER)

    assert result.outcome is PublishOutcome.TRANSPORT_NOT_READY
    assert any(
        e["event"] == "foodiii.realtime.transport_not_ready" and e["log_level"] == "error"
        for e in logs
    )


@pytest.mark.asyncio
async def test_unknown_event_kind_rejected(publisher):
    with pytest.raises(ValueError):
        await publisher.publish("deleted", ORDER)


# ═══════════════════════════════════════════════════════════
# Projection
# ═══════════════════════════════════════════════════════════


class OrderRow:
    """Attribute-style record, like an ORM Order."""

    def __init__(self, **kw):
        self.__dict__.update(kw)


def test_projection_from_orm_style_record():
    created = datetime(2026, 10, 19, 12, 30, tzinfo=timezone.utc)
    row = OrderRow(
        id="6f1c",
        order_number="ORD-20261019-ABC123",
        status="processing",
        total_amount=412.5,
        created_at=created,
        updated_at=created,
        items=[{"name": "Thali"}],
    )

    wire = build_order_projection(row).to_wire()

    assert wire["_id"] == "6f1c"
    assert wire["orderNumber"] == "ORD-20261019-ABC123"
    assert wire["status"] == "processing"
    assert wire["totalAmount"] == 412.5
    assert wire["createdAt"] == created.isoformat()
    assert wire["items"] == [{"name": "Thali"}]
    assert wire["eventTime"]


@pytest.mark.asyncio
async def test_projection_reflects_status_at_call_time(registry, publisher, fake_channel_cls):
    """The projection is built when publish() runs, from the record as it is then."""
    a = fake_channel_cls()
    registry.register("A", a)
    row = OrderRow(
        id="1", order_number="ORD-1", status="pending", total_amount=250,
        created_at=None, updated_at=None, items=[],
    )

    await publisher.publish("created", row)
    row.status = "delivered"
    await publisher.publish("status-updated", row)
    row.status = "cancelled"

    statuses = [m["data"]["order"]["status"] for m in _messages(a)]
    assert statuses == ["pending", "delivered"]


def test_projection_is_frozen():
    projection = build_order_projection(ORDER)
    with pytest.raises(Exception):
        projection.status = "cancelled"


# ═══════════════════════════════════════════════════════════
# Background dispatch
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_dispatch_returns_before_delivery(registry, publisher, fake_channel_cls):
    a = fake_channel_cls()
    registry.register("A", a)

    task = publisher.dispatch("created", ORDER)
    assert a.frames == []
    assert publisher.pending == 1

    result = await task
    assert result.delivered == ["A"]
    assert len(a.frames) == 1
    await publisher.drain()
    assert publisher.pending == 0


@pytest.mark.asyncio
async def test_dispatch_snapshots_the_row(registry, publisher, fake_channel_cls):
    a = fake_channel_cls()
    registry.register("A", a)
    row = OrderRow(
        id="1", order_number="ORD-1", status="pending", total_amount=250,
        created_at=None, updated_at=None, items=[],
    )

    publisher.dispatch("created", row)
    row.status = "cancelled"
    await publisher.drain()

    [msg] = _messages(a)
    assert msg["data"]["order"]["status"] == "pending"


@pytest.mark.asyncio
async def test_dispatched_events_keep_their_order(registry, publisher):
    """A slow first send doesn't let a later event overtake it."""

    class SlowFirst:
        is_open = True

        def __init__(self):
            self.frames = []

        async def send_text(self, data):
            if not self.frames:
                await asyncio.sleep(0.02)
            self.frames.append(data)

    slow = SlowFirst()
    registry.register("A", slow)

    for status in ("processing", "shipped", "delivered"):
        publisher.dispatch("status-updated", {**ORDER, "status": status})
    await publisher.drain()

    assert [m["data"]["order"]["status"] for m in _messages(slow)] == [
        "processing",
        "shipped",
        "delivered",
    ]


@pytest.mark.asyncio
async def test_dispatch_rejects_unknown_event_up_front(publisher):
    with pytest.raises(ValueError):
        publisher.dispatch("deleted", ORDER)
    assert publisher.pending == 0


@pytest.mark.asyncio
async def test_dispatch_without_subscribers_logs_once():
    publisher = OrderEventPublisher(ConnectionRegistry())
    with capture_logs() as logs:
        result = await publisher.dispatch("created", ORDER)

    assert result.outcome is PublishOutcome.NO_SUBSCRIBERS
    [entry] = [e for e in logs if e["event"] == "foodiii.realtime.no_subscribers"]
    assert entry["order_event"] == "created"

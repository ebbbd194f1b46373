"""Order API tests — placing orders, admin workflow, and live notification.

Learn: the notification tests register a FakeChannel in the app's
Connection Registry (what /ws/admin does for a real dashboard) and check
what the routes pushed to it.
"""

import asyncio
import json
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from structlog.testing import capture_logs

from foodiii.main import app


def _order_body(**overrides):
    body = {
        "items": [
            {"name": "Chicken Biryani", "quantity": 2, "price": 170.0, "size": "half"},
            {"name": "Gulab Jamun", "quantity": 1, "price": 60.25},
        ],
        "delivery_address": "12 MG Road, Pune",
    }
    body.update(overrides)
    return body


@pytest.fixture
async def placed_order(client, user_headers):
    r = await client.post("/api/v1/orders", json=_order_body(), headers=user_headers)
    assert r.status_code == 201
    await app.state.publisher.drain()
    return r.json()


# ═══════════════════════════════════════════════════════════
# Placing orders
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_place_order(placed_order, customer):
    assert placed_order["status"] == "pending"
    assert placed_order["total_amount"] == 400.25
    assert placed_order["email"] == "asha@foodiii.test"
    assert placed_order["user_id"] == str(customer.id)
    assert placed_order["order_number"].startswith("ORD-")
    assert len(placed_order["items"]) == 2


@pytest.mark.asyncio
async def test_place_order_defaults_from_profile(client, user_headers):
    r = await client.post(
        "/api/v1/orders",
        json=_order_body(delivery_address=""),
        headers=user_headers,
    )
    order = r.json()
    assert order["delivery_address"] == "12 MG Road, Pune"
    assert order["mobile_no"] == "9876543210"


@pytest.mark.asyncio
async def test_place_order_requires_auth(client):
    r = await client.post("/api/v1/orders", json=_order_body())
    assert r.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"items": []},
        {"items": [{"name": "Naan", "quantity": 0, "price": 30}]},
        {"items": [{"name": "Naan", "quantity": 1, "price": -1}]},
    ],
)
async def test_place_order_validation(client, user_headers, body):
    r = await client.post("/api/v1/orders", json=body, headers=user_headers)
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_my_orders_newest_first(client, user_headers, admin_headers):
    first = (await client.post("/api/v1/orders", json=_order_body(), headers=user_headers)).json()
    second = (await client.post("/api/v1/orders", json=_order_body(), headers=user_headers)).json()
    # Someone else's order doesn't show up
    await client.post("/api/v1/orders", json=_order_body(), headers=admin_headers)

    r = await client.get("/api/v1/orders/mine", headers=user_headers)
    assert r.status_code == 200
    assert [o["id"] for o in r.json()] == [second["id"], first["id"]]


# ═══════════════════════════════════════════════════════════
# Admin listing and stats
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_admin_list_paginates(client, user_headers, admin_headers):
    for _ in range(3):
        await client.post("/api/v1/orders", json=_order_body(), headers=user_headers)

    r = await client.get(
        "/api/v1/admin/orders", params={"page": 1, "limit": 2}, headers=admin_headers
    )
    assert r.status_code == 200
    page = r.json()
    assert page["total"] == 3
    assert page["total_pages"] == 2
    assert page["current_page"] == 1
    assert len(page["data"]) == 2

    r = await client.get(
        "/api/v1/admin/orders", params={"page": 2, "limit": 2}, headers=admin_headers
    )
    assert len(r.json()["data"]) == 1


@pytest.mark.asyncio
async def test_admin_list_filters_by_status(client, admin_headers, placed_order, user_headers):
    await client.post("/api/v1/orders", json=_order_body(), headers=user_headers)
    await client.put(
        f"/api/v1/admin/orders/{placed_order['id']}/status",
        json={"status": "shipped"},
        headers=admin_headers,
    )

    r = await client.get(
        "/api/v1/admin/orders", params={"status": "shipped"}, headers=admin_headers
    )
    page = r.json()
    assert page["total"] == 1
    assert page["data"][0]["id"] == placed_order["id"]


@pytest.mark.asyncio
async def test_admin_list_filters_by_date(client, admin_headers, placed_order):
    tomorrow = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
    yesterday = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()

    r = await client.get(
        "/api/v1/admin/orders", params={"start_date": tomorrow}, headers=admin_headers
    )
    assert r.json()["total"] == 0

    r = await client.get(
        "/api/v1/admin/orders",
        params={"start_date": yesterday, "end_date": tomorrow},
        headers=admin_headers,
    )
    assert r.json()["total"] == 1


@pytest.mark.asyncio
async def test_order_stats(client, admin_headers, user_headers):
    orders = []
    for _ in range(3):
        r = await client.post("/api/v1/orders", json=_order_body(), headers=user_headers)
        orders.append(r.json())
    await client.put(
        f"/api/v1/admin/orders/{orders[0]['id']}/status",
        json={"status": "delivered"},
        headers=admin_headers,
    )

    r = await client.get("/api/v1/admin/orders/stats", headers=admin_headers)
    assert r.status_code == 200
    stats = r.json()
    assert stats["total_orders"] == 3
    assert stats["total_revenue"] == pytest.approx(3 * 400.25)
    by_status = {s["status"]: s for s in stats["statuses"]}
    assert by_status["pending"]["count"] == 2
    assert by_status["delivered"]["amount"] == pytest.approx(400.25)


@pytest.mark.asyncio
async def test_order_stats_empty(client, admin_headers):
    r = await client.get("/api/v1/admin/orders/stats", headers=admin_headers)
    assert r.json() == {"total_orders": 0, "total_revenue": 0, "statuses": []}


@pytest.mark.asyncio
async def test_get_order(client, admin_headers, placed_order):
    r = await client.get(f"/api/v1/admin/orders/{placed_order['id']}", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["order_number"] == placed_order["order_number"]

    r = await client.get(f"/api/v1/admin/orders/{uuid.uuid4()}", headers=admin_headers)
    assert r.status_code == 404


# ═══════════════════════════════════════════════════════════
# Status updates
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_update_status(client, admin_headers, placed_order):
    r = await client.put(
        f"/api/v1/admin/orders/{placed_order['id']}/status",
        json={"status": "processing"},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert r.json()["status"] == "processing"


@pytest.mark.asyncio
async def test_any_status_may_follow_any_other(client, admin_headers, placed_order):
    url = f"/api/v1/admin/orders/{placed_order['id']}/status"
    for status in ("delivered", "pending", "cancelled", "shipped"):
        r = await client.put(url, json={"status": status}, headers=admin_headers)
        assert r.status_code == 200
        assert r.json()["status"] == status


@pytest.mark.asyncio
async def test_update_status_invalid(client, admin_headers, placed_order):
    r = await client.put(
        f"/api/v1/admin/orders/{placed_order['id']}/status",
        json={"status": "teleported"},
        headers=admin_headers,
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_update_status_missing_order(client, admin_headers):
    r = await client.put(
        f"/api/v1/admin/orders/{uuid.uuid4()}/status",
        json={"status": "shipped"},
        headers=admin_headers,
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_update_status_requires_admin(client, user_headers, placed_order):
    r = await client.put(
        f"/api/v1/admin/orders/{placed_order['id']}/status",
        json={"status": "shipped"},
        headers=user_headers,
    )
    assert r.status_code == 403


# ═══════════════════════════════════════════════════════════
# Live notification
# ═══════════════════════════════════════════════════════════


def _frames(channel):
    return [json.loads(f) for f in channel.frames]


async def _delivered():
    """Wait for the background pushes the last request dispatched."""
    await app.state.publisher.drain()


@pytest.mark.asyncio
async def test_new_order_pushed_to_dashboards(client, user_headers, fake_channel_cls):
    dash = fake_channel_cls()
    app.state.registry.register("dash-1", dash)

    r = await client.post("/api/v1/orders", json=_order_body(), headers=user_headers)
    order = r.json()
    await _delivered()

    [frame] = _frames(dash)
    assert frame["type"] == "order:update"
    assert frame["data"]["event"] == "created"
    pushed = frame["data"]["order"]
    assert pushed["_id"] == order["id"]
    assert pushed["orderNumber"] == order["order_number"]
    assert pushed["status"] == "pending"
    assert pushed["totalAmount"] == 400.25
    assert "eventTime" in pushed


@pytest.mark.asyncio
async def test_status_change_pushed_with_persisted_status(
    client, admin_headers, placed_order, fake_channel_cls
):
    dash = fake_channel_cls()
    app.state.registry.register("dash-1", dash)

    await client.put(
        f"/api/v1/admin/orders/{placed_order['id']}/status",
        json={"status": "shipped"},
        headers=admin_headers,
    )
    await _delivered()

    [frame] = _frames(dash)
    assert frame["data"]["event"] == "status-updated"
    assert frame["data"]["order"]["_id"] == placed_order["id"]
    assert frame["data"]["order"]["status"] == "shipped"


@pytest.mark.asyncio
async def test_rapid_status_changes_arrive_in_order(
    client, admin_headers, placed_order, fake_channel_cls
):
    dash = fake_channel_cls()
    app.state.registry.register("dash-1", dash)

    url = f"/api/v1/admin/orders/{placed_order['id']}/status"
    for status in ("processing", "shipped", "delivered"):
        await client.put(url, json={"status": status}, headers=admin_headers)
    await _delivered()

    assert [f["data"]["order"]["status"] for f in _frames(dash)] == [
        "processing",
        "shipped",
        "delivered",
    ]


@pytest.mark.asyncio
async def test_rejected_status_change_not_pushed(
    client, admin_headers, placed_order, fake_channel_cls
):
    dash = fake_channel_cls()
    app.state.registry.register("dash-1", dash)

    await client.put(
        f"/api/v1/admin/orders/{placed_order['id']}/status",
        json={"status": "teleported"},
        headers=admin_headers,
    )
    await _delivered()
    assert dash.frames == []


@pytest.mark.asyncio
async def test_order_placed_without_dashboards(client, user_headers):
    """Nobody watching: the order still succeeds, the drop is logged."""
    with capture_logs() as logs:
        r = await client.post("/api/v1/orders", json=_order_body(), headers=user_headers)
        await _delivered()
    assert r.status_code == 201

    events = [e["event"] for e in logs]
    assert "foodiii.realtime.no_subscribers" in events
    notified = next(e for e in logs if e["event"] == "foodiii.orders.notified")
    assert notified["outcome"] == "no_subscribers"
    assert notified["order_event"] == "created"
    assert notified["order_id"] == r.json()["id"]


@pytest.mark.asyncio
async def test_broken_dashboard_does_not_fail_order(client, user_headers, fake_channel_cls):
    broken = fake_channel_cls(fail_with=ConnectionResetError("peer gone"))
    healthy = fake_channel_cls()
    app.state.registry.register("broken", broken)
    app.state.registry.register("healthy", healthy)

    r = await client.post("/api/v1/orders", json=_order_body(), headers=user_headers)
    assert r.status_code == 201
    await _delivered()
    assert len(healthy.frames) == 1
    assert "broken" not in app.state.registry


class StalledChannel:
    """A dashboard whose socket accepts nothing until released."""

    def __init__(self):
        self.is_open = True
        self.release = asyncio.Event()
        self.frames: list[str] = []

    async def send_text(self, data: str) -> None:
        await self.release.wait()
        self.frames.append(data)


@pytest.mark.asyncio
async def test_stalled_dashboard_does_not_delay_response(client, user_headers):
    stalled = StalledChannel()
    app.state.registry.register("stalled", stalled)

    r = await asyncio.wait_for(
        client.post("/api/v1/orders", json=_order_body(), headers=user_headers),
        timeout=5,
    )

    assert r.status_code == 201
    assert stalled.frames == []
    assert app.state.publisher.pending == 1

    stalled.release.set()
    await _delivered()
    assert len(stalled.frames) == 1
    assert app.state.publisher.pending == 0

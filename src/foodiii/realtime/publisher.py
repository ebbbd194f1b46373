"""Event Publisher — turns a persisted order change into an admin push.

Routes hand the fresh row to dispatch() after the database commit and
return their response without waiting for delivery:

    publisher.dispatch(ORDER_CREATED, order)

dispatch() takes the projection right away and runs publish() on a
tracked task. Tasks run one after another, so each dashboard sees events
in the order they were dispatched. drain() waits for what's in flight
(used at shutdown and in tests).

Delivery is best-effort. publish() never raises for delivery problems;
what happened is returned as a PublishResult for the caller to log:

- transport_not_ready: no registry was wired in (socket layer never set up)
- no_subscribers: nobody connected; the event is dropped, not buffered
- delivered: sent to every live connection; closed ones were pruned
"""

import asyncio
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field

from foodiii.events.types import ORDER_EVENTS, ORDER_UPDATE
from foodiii.realtime.protocol import encode, iso_now
from foodiii.realtime.registry import ConnectionRegistry

logger = structlog.get_logger()


# ═══════════════════════════════════════════════════════════
# Order projection
# ═══════════════════════════════════════════════════════════


class OrderProjection(BaseModel):
    """Read-only snapshot of an order as dashboards see it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(alias="_id")
    order_number: Optional[str] = Field(None, alias="orderNumber")
    status: str
    total_amount: float = Field(0, alias="totalAmount")
    created_at: Optional[str] = Field(None, alias="createdAt")
    updated_at: Optional[str] = Field(None, alias="updatedAt")
    items: list[Any] = Field(default_factory=list)
    event_time: str = Field(alias="eventTime")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def _read(record: Any, attr: str, key: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(key, record.get(attr))
    return getattr(record, attr, None)


def _iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def build_order_projection(record: Any) -> OrderProjection:
    """Project an Order row (or an equivalent mapping) for the wire.

    Always built from the record as it is now; nothing is cached. An
    existing projection is passed through unchanged.
    """
    if isinstance(record, OrderProjection):
        return record
    record_id = _read(record, "id", "_id")
    total = _read(record, "total_amount", "totalAmount")
    return OrderProjection(
        id=str(record_id),
        order_number=_read(record, "order_number", "orderNumber"),
        status=_read(record, "status", "status"),
        total_amount=float(total or 0),
        created_at=_iso(_read(record, "created_at", "createdAt")),
        updated_at=_iso(_read(record, "updated_at", "updatedAt")),
        items=list(_read(record, "items", "items") or []),
        event_time=iso_now(),
    )


# ═══════════════════════════════════════════════════════════
# Publisher
# ═══════════════════════════════════════════════════════════


class PublishOutcome(str, enum.Enum):
    DELIVERED = "delivered"
    NO_SUBSCRIBERS = "no_subscribers"
    TRANSPORT_NOT_READY = "transport_not_ready"


@dataclass(frozen=True)
class PublishResult:
    event: str
    outcome: PublishOutcome
    delivered: list[str] = field(default_factory=list)
    pruned: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.outcome is PublishOutcome.DELIVERED and not self.failed


def _on_this_loop(task: asyncio.Task) -> bool:
    return task.get_loop() is asyncio.get_running_loop()


class OrderEventPublisher:
    """Fans order events out to every registered admin connection."""

    def __init__(self, registry: Optional[ConnectionRegistry]):
        self.registry = registry
        self._pending: set[asyncio.Task] = set()
        self._tail: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return len(self._pending)

    def dispatch(self, event: str, order: Any) -> "asyncio.Task[PublishResult]":
        """Publish on a background task and return it.

        The projection is taken before returning, so the caller may let go
        of the row (and its session) right away. Raises ValueError for an
        unknown event.
        """
        if event not in ORDER_EVENTS:
            raise ValueError(f"Unknown order event: {event!r}")

        projection = build_order_projection(order)
        task = asyncio.create_task(self._publish_after(self._tail, event, projection))
        self._tail = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _publish_after(
        self, previous: Optional[asyncio.Task], event: str, projection: OrderProjection
    ) -> PublishResult:
        if previous is not None and _on_this_loop(previous) and not previous.done():
            await asyncio.wait([previous])
        return await self.publish(event, projection)

    async def drain(self) -> None:
        """Wait for every dispatched publish on this loop to finish."""
        while True:
            pending = [t for t in self._pending if _on_this_loop(t) and not t.done()]
            if not pending:
                return
            await asyncio.wait(pending)

    async def publish(self, event: str, order: Any) -> PublishResult:
        if event not in ORDER_EVENTS:
            raise ValueError(f"Unknown order event: {event!r}")

        if self.registry is None:
            logger.error("foodiii.realtime.transport_not_ready", order_event=event)
            return PublishResult(event, PublishOutcome.TRANSPORT_NOT_READY)

        if len(self.registry) == 0:
            logger.warning("foodiii.realtime.no_subscribers", order_event=event)
            return PublishResult(event, PublishOutcome.NO_SUBSCRIBERS)

        projection = build_order_projection(order)
        frame = encode(ORDER_UPDATE, {"event": event, "order": projection.to_wire()})

        # Snapshot first, then prune and emit. Never mutate mid-iteration.
        live, stale = self.registry.partition_live()
        for connection_id in stale:
            self.registry.unregister(connection_id)
            logger.info(
                "foodiii.realtime.pruned_stale",
                connection_id=connection_id,
            )

        delivered: list[str] = []
        failed: dict[str, str] = {}
        for connection_id, channel in live:
            try:
                await channel.send_text(frame)
            except Exception as e:
                failed[connection_id] = str(e) or type(e).__name__
                self.registry.unregister(connection_id)
            else:
                delivered.append(connection_id)

        logger.info(
            "foodiii.realtime.published",
            order_event=event,
            order_id=projection.id,
            order_number=projection.order_number,
            delivered=len(delivered),
            pruned=len(stale),
            failed=len(failed),
        )
        return PublishResult(
            event,
            PublishOutcome.DELIVERED,
            delivered=delivered,
            pruned=stale,
            failed=failed,
        )

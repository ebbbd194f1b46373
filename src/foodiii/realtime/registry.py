"""Connection Registry — live admin dashboard connections.

Maps a server-assigned connection id to a channel that can send text
frames. An entry is added when a dashboard sends `admin-connect` and
removed on disconnect, or by the publisher when it finds the channel
closed.

The registry is owned by the application (created in create_app and kept
on app.state). All mutation happens on the event loop, so no locking.
It's empty after every restart; dashboards re-identify on reconnect.
"""

from typing import Callable, Iterator, Protocol

import structlog
from starlette.websockets import WebSocket, WebSocketState

logger = structlog.get_logger()


class Channel(Protocol):
    """Anything the publisher can push a frame to."""

    @property
    def is_open(self) -> bool: ...

    async def send_text(self, data: str) -> None: ...


class WebSocketChannel:
    """Adapts a Starlette WebSocket to the Channel protocol."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_text(self, data: str) -> None:
        await self.websocket.send_text(data)


class ConnectionRegistry:
    """Insertion-ordered map of connection id → channel."""

    def __init__(self):
        self._entries: dict[str, Channel] = {}

    def register(self, connection_id: str, channel: Channel) -> None:
        """Add or replace an entry. It receives the next publish."""
        replaced = connection_id in self._entries
        self._entries[connection_id] = channel
        logger.info(
            "foodiii.realtime.registered",
            connection_id=connection_id,
            replaced=replaced,
            connections=len(self._entries),
        )

    def unregister(self, connection_id: str) -> bool:
        """Remove an entry. Idempotent; returns whether anything was removed."""
        removed = self._entries.pop(connection_id, None) is not None
        if removed:
            logger.info(
                "foodiii.realtime.unregistered",
                connection_id=connection_id,
                connections=len(self._entries),
            )
        return removed

    def for_each(self, visit: Callable[[str, Channel], None]) -> None:
        """Call visit(connection_id, channel) for every entry.

        Iterates over a snapshot, so visit may unregister entries. A failing
        visitor is logged and iteration continues.
        """
        for connection_id, channel in self.snapshot():
            try:
                visit(connection_id, channel)
            except Exception as e:
                logger.error(
                    "foodiii.realtime.visit_failed",
                    connection_id=connection_id,
                    error=str(e),
                )

    def snapshot(self) -> list[tuple[str, Channel]]:
        return list(self._entries.items())

    def partition_live(
        self,
    ) -> tuple[list[tuple[str, Channel]], list[str]]:
        """Split a snapshot into (live entries, ids of closed channels)."""
        live: list[tuple[str, Channel]] = []
        stale: list[str] = []
        for connection_id, channel in self.snapshot():
            if channel.is_open:
                live.append((connection_id, channel))
            else:
                stale.append(connection_id)
        return live, stale

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

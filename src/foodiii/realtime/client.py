"""Dashboard Client — the admin side of /ws/admin.

Keeps one WebSocket open to the server, identifies itself as an admin
dashboard, and maintains a local view of recent orders from the
`order:update` frames it receives.

    client = DashboardClient("ws://localhost:7000/ws/admin?token=...")
    client.on_order_event(lambda event, order: print(event, order["_id"]))
    await client.connect()
    await client.wait_stopped()

Reconnects use exponential backoff. After max_reconnect_attempts failed
retries the client gives up (gave_up=True) and stays disconnected until
connect() is called again. Nothing missed while disconnected is replayed;
call load_orders() with a fresh listing to resync.
"""

import asyncio
import enum
import time
import uuid
from typing import Any, Awaitable, Callable, Optional

import structlog
import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from foodiii.events.types import (
    ADMIN_CLIENT_TYPE,
    ADMIN_CONNECT,
    CONNECTION_STATUS,
    ORDER_CREATED,
    ORDER_STATUS_UPDATED,
    ORDER_UPDATE,
    PING,
    PONG,
)
from foodiii.realtime.protocol import MalformedMessageError, decode, encode, iso_now

logger = structlog.get_logger()

Connector = Callable[[str], Awaitable[Any]]
ConnectionListener = Callable[[bool], None]
OrderListener = Callable[[str, dict[str, Any]], None]

CLIENT_VERSION = "1.0.0"


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def backoff_delay(attempt: int, base: float = 1.0, maximum: float = 30.0) -> float:
    """Delay before retry number `attempt` (0-based): min(base·2^n, maximum)."""
    return min(base * (2 ** attempt), maximum)


class DashboardClient:
    def __init__(
        self,
        url: str,
        *,
        connector: Optional[Connector] = None,
        max_reconnect_attempts: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        identify_delay: float = 0.1,
        ping_interval: float = 30.0,
        auto_reconnect: bool = True,
    ):
        self.url = url
        self._connector: Connector = connector or websockets.connect
        self.max_reconnect_attempts = max_reconnect_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.identify_delay = identify_delay
        self.ping_interval = ping_interval
        self.auto_reconnect = auto_reconnect

        self.client_id = uuid.uuid4().hex
        self.state = ConnectionState.DISCONNECTED
        self.reconnect_attempts = 0
        self.gave_up = False
        self.server_client_id: Optional[str] = None
        self.last_latency_ms: Optional[float] = None

        self.orders: list[dict[str, Any]] = []
        self.unread_count = 0

        self._transport: Any = None
        self._tasks: list[asyncio.Task] = []
        self._reconnect_task: Optional[asyncio.Task] = None
        self._connection_listeners: list[ConnectionListener] = []
        self._order_listeners: list[OrderListener] = []
        self._closing = False
        self._lock = asyncio.Lock()
        self._stopped = asyncio.Event()

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    # ─── Subscriptions ──────────────────────────────────────

    def on_connection_change(self, callback: ConnectionListener) -> Callable[[], None]:
        """Subscribe to connected/disconnected changes.

        The callback runs immediately with the current value, then only
        when it changes. Returns an unsubscribe function.
        """
        self._connection_listeners.append(callback)
        callback(self.connected)

        def unsubscribe() -> None:
            if callback in self._connection_listeners:
                self._connection_listeners.remove(callback)

        return unsubscribe

    def on_order_event(self, callback: OrderListener) -> Callable[[], None]:
        self._order_listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._order_listeners:
                self._order_listeners.remove(callback)

        return unsubscribe

    def _set_state(self, state: ConnectionState) -> None:
        was_connected = self.connected
        self.state = state
        if self.connected == was_connected:
            return
        logger.info("foodiii.client.connection_changed", connected=self.connected)
        for callback in list(self._connection_listeners):
            try:
                callback(self.connected)
            except Exception as e:
                logger.error("foodiii.client.listener_failed", error=str(e))

    # ─── Connection lifecycle ───────────────────────────────

    async def connect(self) -> bool:
        """Open the connection, retrying with backoff. Returns True once connected."""
        async with self._lock:
            if self._transport is not None and self.connected:
                return True

            self._closing = False
            self.gave_up = False
            self.reconnect_attempts = 0
            self._stopped.clear()
            self._set_state(ConnectionState.CONNECTING)

            while True:
                try:
                    transport = await self._connector(self.url)
                except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                    logger.warning(
                        "foodiii.client.connect_failed",
                        url=self.url,
                        attempt=self.reconnect_attempts,
                        error=str(e),
                    )
                    if self._closing:
                        return self._stop_connecting()
                    if self.reconnect_attempts >= self.max_reconnect_attempts:
                        self.gave_up = True
                        logger.error(
                            "foodiii.client.gave_up",
                            attempts=self.reconnect_attempts,
                        )
                        return self._stop_connecting()

                    delay = backoff_delay(
                        self.reconnect_attempts, self.base_delay, self.max_delay
                    )
                    self.reconnect_attempts += 1
                    logger.info(
                        "foodiii.client.retry_scheduled",
                        attempt=self.reconnect_attempts,
                        delay=delay,
                    )
                    await asyncio.sleep(delay)
                    if self._closing:
                        return self._stop_connecting()
                    continue

                if self._closing:
                    # disconnect() ran while the connector was pending
                    await self._close_quietly(transport)
                    return self._stop_connecting()
                break

            self._on_open(transport)
            return True

    def _stop_connecting(self) -> bool:
        self._set_state(ConnectionState.DISCONNECTED)
        self._stopped.set()
        return False

    @staticmethod
    async def _close_quietly(transport: Any) -> None:
        try:
            await transport.close()
        except (ConnectionClosed, OSError):
            pass

    def _on_open(self, transport: Any) -> None:
        self._transport = transport
        self.reconnect_attempts = 0
        self.orders = []
        self.unread_count = 0
        self.server_client_id = None
        self._set_state(ConnectionState.CONNECTED)
        logger.info("foodiii.client.connected", url=self.url)

        self._tasks = [
            asyncio.create_task(self._identify_later()),
            asyncio.create_task(self._ping_loop()),
            asyncio.create_task(self._read_loop(transport)),
        ]

    async def _identify_later(self) -> None:
        await asyncio.sleep(self.identify_delay)
        await self._send(ADMIN_CONNECT, {
            "clientType": ADMIN_CLIENT_TYPE,
            "clientId": self.client_id,
            "timestamp": iso_now(),
            "version": CLIENT_VERSION,
        })

    async def _ping_loop(self) -> None:
        while True:
            await asyncio.sleep(self.ping_interval)
            await self._send(PING, {"time": int(time.time() * 1000)})

    async def _send(self, message_type: str, data: dict[str, Any]) -> None:
        transport = self._transport
        if transport is None:
            return
        try:
            await transport.send(encode(message_type, data))
        except (ConnectionClosed, OSError) as e:
            logger.warning("foodiii.client.send_failed", type=message_type, error=str(e))

    async def _read_loop(self, transport: Any) -> None:
        try:
            async for raw in transport:
                try:
                    self.handle_message(raw)
                except Exception as e:
                    logger.error(
                        "foodiii.client.handler_failed",
                        error=str(e) or type(e).__name__,
                    )
        except ConnectionClosed as e:
            logger.info("foodiii.client.transport_closed", code=getattr(e, "code", None))
        finally:
            await self._on_close(transport)

    async def _on_close(self, transport: Any) -> None:
        if transport is not self._transport:
            return
        self._transport = None
        self._cancel_tasks(keep=asyncio.current_task())
        self._set_state(ConnectionState.DISCONNECTED)

        if self._closing or not self.auto_reconnect:
            self._stopped.set()
            return

        logger.info("foodiii.client.reconnecting")
        self._reconnect_task = asyncio.create_task(self.connect())

    def _cancel_tasks(self, keep: Optional[asyncio.Task] = None) -> None:
        for task in self._tasks:
            if task is not keep and not task.done():
                task.cancel()
        self._tasks = []

    async def disconnect(self) -> None:
        """Close the connection for good. No reconnect follows.

        Also stops a connect() that is still retrying.
        """
        self._closing = True
        reconnect = self._reconnect_task
        self._reconnect_task = None
        if (
            reconnect is not None
            and not reconnect.done()
            and reconnect is not asyncio.current_task()
        ):
            reconnect.cancel()
        transport = self._transport
        self._transport = None
        self._cancel_tasks()
        if transport is not None:
            await self._close_quietly(transport)
        self._set_state(ConnectionState.DISCONNECTED)
        self._stopped.set()
        logger.info("foodiii.client.disconnected")

    async def wait_stopped(self) -> None:
        """Block until the client is disconnected for good (closed or gave up)."""
        await self._stopped.wait()

    # ─── Inbound frames ─────────────────────────────────────

    def handle_message(self, raw: str | bytes) -> None:
        try:
            message_type, data = decode(raw)
        except MalformedMessageError as e:
            logger.warning("foodiii.client.malformed_frame", error=str(e))
            return

        if message_type == ORDER_UPDATE:
            self._handle_order_update(data)
        elif message_type == PONG:
            sent = data.get("time")
            if isinstance(sent, (int, float)):
                self.last_latency_ms = time.time() * 1000 - sent
            logger.debug("foodiii.client.pong", latency_ms=self.last_latency_ms)
        elif message_type == CONNECTION_STATUS:
            self.server_client_id = data.get("clientId")
            logger.info(
                "foodiii.client.identified",
                server_client_id=self.server_client_id,
                clients=data.get("clientsCount"),
            )
        else:
            logger.debug("foodiii.client.ignored_frame", type=message_type)

    def _handle_order_update(self, data: dict[str, Any]) -> None:
        event = data.get("event")
        order = data.get("order")
        if not isinstance(order, dict) or not order.get("_id"):
            logger.warning("foodiii.client.invalid_order_event", order_event=event)
            return

        if event == ORDER_CREATED:
            self.orders.insert(0, order)
            self.unread_count += 1
        elif event == ORDER_STATUS_UPDATED:
            for existing in self.orders:
                if existing.get("_id") == order["_id"]:
                    existing["status"] = order.get("status")
                    break
        else:
            logger.warning("foodiii.client.unknown_order_event", order_event=event)
            return

        for callback in list(self._order_listeners):
            try:
                callback(event, order)
            except Exception as e:
                logger.error("foodiii.client.listener_failed", error=str(e))

    # ─── Local view ─────────────────────────────────────────

    def reset_unread(self) -> None:
        self.unread_count = 0

    def load_orders(self, orders: list[dict[str, Any]]) -> None:
        """Replace the local view with a full listing."""
        self.orders = list(orders)

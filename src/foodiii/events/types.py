"""Event and message name constants.

Centralizing the names prevents typos between the server, the
Dashboard Client and the tests.
"""

# ─── Order events (the `event` field of an order:update) ──

ORDER_CREATED = "created"
ORDER_STATUS_UPDATED = "status-updated"

ORDER_EVENTS = frozenset({ORDER_CREATED, ORDER_STATUS_UPDATED})

# ─── WebSocket message types ─────────────────────────────

ADMIN_CONNECT = "admin-connect"        # client → server
CONNECTION_STATUS = "connection-status"  # server → client
PING = "ping"                          # client → server
PONG = "pong"                          # server → client
ORDER_UPDATE = "order:update"          # server → client

ADMIN_CLIENT_TYPE = "admin-dashboard"

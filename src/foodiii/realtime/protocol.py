"""Wire format for the admin WebSocket.

Every frame is a JSON text message: {"type": "<name>", "data": {...}}.
Both the server endpoint and the Dashboard Client use these helpers.
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional


class MalformedMessageError(ValueError):
    """Raised when an inbound frame isn't a valid envelope."""


def encode(message_type: str, data: Optional[dict[str, Any]] = None) -> str:
    return json.dumps({"type": message_type, "data": data or {}}, default=str)


def decode(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    """Parse a frame into (type, data).

    Raises MalformedMessageError for invalid JSON, a non-object body,
    a missing/non-string type, or non-object data.
    """
    try:
        msg = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
        raise MalformedMessageError(f"Invalid JSON: {e}") from e

    if not isinstance(msg, dict):
        raise MalformedMessageError("Frame must be a JSON object")

    message_type = msg.get("type")
    if not isinstance(message_type, str) or not message_type:
        raise MalformedMessageError("Frame is missing a type")

    data = msg.get("data") or {}
    if not isinstance(data, dict):
        raise MalformedMessageError("Frame data must be an object")

    return message_type, data


def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()

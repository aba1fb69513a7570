"""Wire-level helpers for Phoenix-style realtime frames."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from .errors import RealtimeClientError

PHOENIX_TOPIC = "phoenix"
TOPIC_PREFIX = "realtime:"
VSN = "1.0.0"
DEFAULT_VERSION = "realtime-core/0.1.0"
DEFAULT_TIMEOUT_MS = 10_000
WS_CLOSE_NORMAL = 1000

HeartbeatStatus = Literal["sent", "ok", "error", "timeout", "disconnected"]
RemoveChannelResponse = Literal["ok", "timed out", "error"]


class ConnectionState(str, Enum):
    """Transport connection states."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class ChannelState(str, Enum):
    """Channel lifecycle states."""

    CLOSED = "closed"
    ERRORED = "errored"
    JOINED = "joined"
    JOINING = "joining"
    LEAVING = "leaving"


class ChannelEvent(str, Enum):
    """Reserved channel event names."""

    CLOSE = "phx_close"
    ERROR = "phx_error"
    JOIN = "phx_join"
    REPLY = "phx_reply"
    LEAVE = "phx_leave"
    ACCESS_TOKEN = "access_token"
    HEARTBEAT = "heartbeat"


@dataclass(frozen=True)
class RealtimeMessage:
    """A single protocol frame."""

    topic: str
    event: str
    payload: dict[str, Any] = field(default_factory=dict)
    ref: str | None = None
    join_ref: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-serializable form of the frame."""
        return {
            "topic": self.topic,
            "event": self.event,
            "payload": self.payload,
            "ref": self.ref,
            "join_ref": self.join_ref,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RealtimeMessage:
        try:
            topic = data["topic"]
            event = data["event"]
        except KeyError as err:
            raise RealtimeClientError(f"Frame is missing {err.args[0]!r}") from err
        payload = data.get("payload")
        return cls(
            topic=topic,
            event=event,
            payload=payload if isinstance(payload, dict) else {},
            ref=data.get("ref"),
            join_ref=data.get("join_ref"),
        )


def build_heartbeat(ref: str) -> RealtimeMessage:
    """Build a liveness probe on the reserved control topic."""
    return RealtimeMessage(
        topic=PHOENIX_TOPIC,
        event=ChannelEvent.HEARTBEAT.value,
        payload={},
        ref=ref,
    )


def encode_message(message: RealtimeMessage) -> str:
    """Encode a frame with the JSON serializer of protocol version 1.0.0."""
    return json.dumps(message.to_dict())


def decode_message(raw: str | dict[str, Any]) -> RealtimeMessage:
    """Decode a JSON text frame into a RealtimeMessage."""
    if isinstance(raw, dict):
        return RealtimeMessage.from_dict(raw)
    try:
        data = json.loads(raw)
    except ValueError as err:
        raise RealtimeClientError("Frame is not valid JSON") from err
    if not isinstance(data, dict):
        raise RealtimeClientError("Frame is not a JSON object")
    return RealtimeMessage.from_dict(data)

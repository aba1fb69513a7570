"""Client error types for the realtime session layer."""

from __future__ import annotations


class RealtimeClientError(Exception):
    """Base error for realtime client failures."""


class RealtimeConfigError(RealtimeClientError):
    """Client was constructed with an invalid configuration."""


class RealtimeTimeout(RealtimeClientError):
    """Timeout while communicating with the server."""


class RealtimeConnectionError(RealtimeClientError):
    """Network connection to the server failed."""


class RealtimeHandshakeError(RealtimeClientError):
    """WebSocket handshake failed."""


class RealtimePushError(RealtimeClientError):
    """A message was pushed on a channel that has not joined yet."""

    def __init__(self, topic: str, event: str) -> None:
        super().__init__(
            f"tried to push '{event}' to '{topic}' before joining. "
            "Use channel.subscribe() before pushing events"
        )
        self.topic = topic
        self.event = event

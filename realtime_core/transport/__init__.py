"""Transport layer for the realtime client.

This package contains all IO, wire framing, and channel protocol handling.

Components:
- base: Protocol classes the session layer depends on
- ws: WebSocket connection management
- ws_client: WebSocket message iteration
- socket: PhoenixSocket, the default transport
- channel: PhoenixChannel, the default channel primitive
- push: ref-correlated request/reply
- presence: PhoenixPresence, the default presence feed
"""

from .base import ChannelHandle, PresenceHandle, Transport
from .channel import PhoenixChannel
from .presence import PhoenixPresence
from .push import Push, PushReply
from .socket import PhoenixSocket
from .ws import connect_websocket
from .ws_client import RealtimeWsClient, RealtimeWsMessage, RealtimeWsMessageType

__all__ = [
    "ChannelHandle",
    "PhoenixChannel",
    "PhoenixPresence",
    "PhoenixSocket",
    "PresenceHandle",
    "Push",
    "PushReply",
    "RealtimeWsClient",
    "RealtimeWsMessage",
    "RealtimeWsMessageType",
    "Transport",
    "connect_websocket",
]

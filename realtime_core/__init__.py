"""Client-side session layer for multiplexed Phoenix-style realtime channels."""

__version__ = "0.1.0"

from .auth import AuthSynchronizer
from .channel import RealtimeChannel, SubscribeStatus
from .client import RealtimeClient
from .errors import (
    RealtimeClientError,
    RealtimeConfigError,
    RealtimeConnectionError,
    RealtimeHandshakeError,
    RealtimePushError,
    RealtimeTimeout,
)
from .heartbeat import HeartbeatMonitor
from .presence import (
    PresenceJoinEvent,
    PresenceLeaveEvent,
    PresenceListenEvent,
    PresenceRelay,
    PresenceSyncEvent,
)
from .protocol import (
    ChannelEvent,
    ChannelState,
    ConnectionState,
    HeartbeatStatus,
    RealtimeMessage,
    RemoveChannelResponse,
)
from .reconnect import BackoffTimer, ReconnectionScheduler, default_reconnect_after_ms
from .refs import RefGenerator
from .registry import ChannelRegistry

__all__ = [
    "AuthSynchronizer",
    "BackoffTimer",
    "ChannelEvent",
    "ChannelRegistry",
    "ChannelState",
    "ConnectionState",
    "HeartbeatMonitor",
    "HeartbeatStatus",
    "PresenceJoinEvent",
    "PresenceLeaveEvent",
    "PresenceListenEvent",
    "PresenceRelay",
    "PresenceSyncEvent",
    "RealtimeChannel",
    "RealtimeClient",
    "RealtimeClientError",
    "RealtimeConfigError",
    "RealtimeConnectionError",
    "RealtimeHandshakeError",
    "RealtimeMessage",
    "RealtimePushError",
    "RealtimeTimeout",
    "ReconnectionScheduler",
    "RefGenerator",
    "RemoveChannelResponse",
    "SubscribeStatus",
    "__version__",
    "default_reconnect_after_ms",
]

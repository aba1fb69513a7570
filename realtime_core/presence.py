"""Relay of presence diffs into typed channel events."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .channel import RealtimeChannel

Presence = dict[str, Any]
PresenceState = dict[str, list[Presence]]


class PresenceListenEvent(str, Enum):
    """Presence event names delivered to channel listeners."""

    SYNC = "sync"
    JOIN = "join"
    LEAVE = "leave"


@dataclass(frozen=True)
class PresenceJoinEvent:
    key: str
    current_presences: list[Presence] = field(default_factory=list)
    new_presences: list[Presence] = field(default_factory=list)
    event: PresenceListenEvent = PresenceListenEvent.JOIN


@dataclass(frozen=True)
class PresenceLeaveEvent:
    key: str
    current_presences: list[Presence] = field(default_factory=list)
    left_presences: list[Presence] = field(default_factory=list)
    event: PresenceListenEvent = PresenceListenEvent.LEAVE


@dataclass(frozen=True)
class PresenceSyncEvent:
    """Presence state changed; read it with RealtimeChannel.presence_state()."""

    event: PresenceListenEvent = PresenceListenEvent.SYNC


PresenceEvent = PresenceJoinEvent | PresenceLeaveEvent | PresenceSyncEvent


class PresenceRelay:
    """Re-emits a channel's presence feed as "presence" channel events.

    The relay holds no presence data of its own; state() reads the feed.
    """

    def __init__(self, channel: RealtimeChannel, opts: dict[str, Any] | None = None) -> None:
        self.channel = channel
        self._feed = channel.handle.presence_feed(opts)
        self._feed.on_join(self._relay_join)
        self._feed.on_leave(self._relay_leave)
        self._feed.on_sync(self._relay_sync)

    def state(self) -> PresenceState:
        return self._feed.state()

    def _relay_join(
        self, key: str, current_presences: list[Presence], new_presences: list[Presence]
    ) -> None:
        self.channel.trigger(
            "presence",
            PresenceJoinEvent(
                key=key,
                current_presences=current_presences,
                new_presences=new_presences,
            ),
        )

    def _relay_leave(
        self, key: str, current_presences: list[Presence], left_presences: list[Presence]
    ) -> None:
        self.channel.trigger(
            "presence",
            PresenceLeaveEvent(
                key=key,
                current_presences=current_presences,
                left_presences=left_presences,
            ),
        )

    def _relay_sync(self) -> None:
        self.channel.trigger("presence", PresenceSyncEvent())

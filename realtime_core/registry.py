"""Topic-keyed registry of channel sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .channel import RealtimeChannel


class ChannelRegistry:
    """Insertion-ordered collection of channels keyed by topic.

    The registry does not deduplicate on its own behalf beyond rejecting a
    second channel for an occupied topic; callers look up before adding.
    """

    def __init__(self) -> None:
        self._channels: dict[str, RealtimeChannel] = {}

    def get(self, topic: str) -> RealtimeChannel | None:
        return self._channels.get(topic)

    def add(self, channel: RealtimeChannel) -> None:
        if channel.topic in self._channels:
            raise ValueError(f"Channel already registered for topic {channel.topic!r}")
        self._channels[channel.topic] = channel

    def remove(self, topic: str) -> RealtimeChannel | None:
        """Remove the channel for topic, returning it if it was registered."""
        return self._channels.pop(topic, None)

    def clear(self) -> None:
        self._channels.clear()

    @property
    def channels(self) -> list[RealtimeChannel]:
        """Snapshot of registered channels in creation order."""
        return list(self._channels.values())

    def __contains__(self, topic: object) -> bool:
        return topic in self._channels

    def __iter__(self) -> Iterator[RealtimeChannel]:
        return iter(self.channels)

    def __len__(self) -> int:
        return len(self._channels)

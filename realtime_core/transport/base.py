"""Interfaces the session layer expects from its transport.

The client only talks to these protocols, so any transport that provides
them (the bundled PhoenixSocket, or a test double) can be plugged in.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ..protocol import ChannelState, ConnectionState, RealtimeMessage
    from .push import Push

PresenceCallback = Callable[[str, list[dict[str, Any]], list[dict[str, Any]]], None]


class PresenceHandle(Protocol):
    """Raw presence feed of one channel."""

    def on_join(self, callback: PresenceCallback) -> None: ...

    def on_leave(self, callback: PresenceCallback) -> None: ...

    def on_sync(self, callback: Callable[[], None]) -> None: ...

    def state(self) -> dict[str, list[dict[str, Any]]]: ...


class ChannelHandle(Protocol):
    """Transport-side channel primitive owning the join/leave state machine."""

    topic: str

    @property
    def state(self) -> ChannelState: ...

    @property
    def join_ref(self) -> str | None: ...

    def on(self, event: str, callback: Callable[[dict[str, Any]], None]) -> int: ...

    def off(self, event: str, ref: int | None = None) -> None: ...

    def join(self, timeout_ms: int | None = None) -> Push: ...

    def leave(self, timeout_ms: int | None = None) -> Push: ...

    def push(
        self, event: str, payload: dict[str, Any], timeout_ms: int | None = None
    ) -> Push: ...

    def update_join_payload(self, payload: dict[str, Any]) -> None: ...

    def presence_feed(self, opts: dict[str, Any] | None = None) -> PresenceHandle: ...


class Transport(Protocol):
    """Persistent bidirectional connection multiplexing many channels."""

    @property
    def is_connected(self) -> bool: ...

    @property
    def connection_state(self) -> ConnectionState: ...

    @property
    def endpoint_url(self) -> str: ...

    def connect(self) -> None: ...

    def disconnect(
        self,
        callback: Callable[[], None] | None = None,
        code: int | None = None,
        reason: str | None = None,
    ) -> None: ...

    def push(self, message: RealtimeMessage) -> None: ...

    def channel(self, topic: str, params: dict[str, Any]) -> ChannelHandle: ...

    def log(self, kind: str, msg: str, data: Any = None) -> None: ...

    def on_open(self, callback: Callable[[], None]) -> None: ...

    def on_close(self, callback: Callable[[int | None], None]) -> None: ...

    def on_error(self, callback: Callable[[Exception], None]) -> None: ...

    def on_message(self, callback: Callable[[RealtimeMessage], None]) -> None: ...

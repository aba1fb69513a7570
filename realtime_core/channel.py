"""Channel sessions: one logical topic over the client's transport."""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from .errors import RealtimeClientError, RealtimeTimeout
from .presence import PresenceRelay, PresenceState
from .protocol import TOPIC_PREFIX, ChannelEvent, ChannelState, RemoveChannelResponse

if TYPE_CHECKING:
    from .client import RealtimeClient
    from .transport.base import ChannelHandle
    from .transport.push import Push

_LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    "broadcast": {"ack": False, "self": False},
    "presence": {"key": "", "enabled": False},
    "private": False,
}

_LEAVE_STATUS: dict[str, RemoveChannelResponse] = {
    "ok": "ok",
    "timeout": "timed out",
    "error": "error",
}


class SubscribeStatus(str, Enum):
    """Outcome of RealtimeChannel.subscribe()."""

    SUBSCRIBED = "SUBSCRIBED"
    TIMED_OUT = "TIMED_OUT"
    CLOSED = "CLOSED"
    CHANNEL_ERROR = "CHANNEL_ERROR"


SubscribeCallback = Callable[[SubscribeStatus, Exception | None], None]


@dataclass(slots=True)
class _Listener:
    event: str
    ref: int
    callback: Callable[[Any], None]
    filter: dict[str, Any] | None


def _with_default_config(params: dict[str, Any] | None) -> dict[str, Any]:
    params = copy.deepcopy(params or {})
    config = params.get("config") or {}
    params["config"] = {**copy.deepcopy(DEFAULT_CONFIG), **config}
    return params


def _matches(filter: dict[str, Any] | None, payload: Any) -> bool:
    if not filter:
        return True
    wanted = filter.get("event")
    if wanted in (None, "*"):
        return True
    if isinstance(payload, dict):
        return payload.get("event") == wanted
    return getattr(payload, "event", None) == wanted


class RealtimeChannel:
    """A topic subscription multiplexed over the client's transport.

    Usage:
        channel = client.channel("room1")
        channel.on("broadcast", handle_cursor, {"event": "cursor"})
        channel.on("presence", handle_presence)
        status = await channel.subscribe()
        ...
        await client.remove_channel(channel)
    """

    def __init__(
        self,
        topic: str,
        params: dict[str, Any] | None,
        client: RealtimeClient,
    ) -> None:
        self.topic = topic
        self.sub_topic = topic.removeprefix(TOPIC_PREFIX)
        self.params = _with_default_config(params)
        self._client = client
        self._handle: ChannelHandle = client.transport.channel(topic, self.params)

        self._listeners: list[_Listener] = []
        self._listener_ref = 0
        self._forwarded: dict[str, int] = {}

        self.presence = PresenceRelay(self)

    @property
    def handle(self) -> ChannelHandle:
        """Transport-side channel primitive (not owned by this session)."""
        return self._handle

    @property
    def state(self) -> ChannelState:
        return self._handle.state

    @property
    def join_ref(self) -> str | None:
        return self._handle.join_ref

    # -------------------------------------------------------------------------
    # Public API: Lifecycle
    # -------------------------------------------------------------------------

    async def subscribe(
        self,
        callback: SubscribeCallback | None = None,
        timeout_ms: int | None = None,
    ) -> SubscribeStatus:
        """Join the channel, connecting the client first if needed."""
        if self._handle.state is ChannelState.JOINED:
            return SubscribeStatus.SUBSCRIBED

        if not self._client.is_connected:
            self._client.connect()

        token = self._client.access_token_value
        if token:
            self._handle.update_join_payload({"access_token": token})

        reply = await self._handle.join(timeout_ms).wait()

        error: Exception | None = None
        if reply.status == "ok":
            status = SubscribeStatus.SUBSCRIBED
        elif reply.status == "timeout":
            status = SubscribeStatus.TIMED_OUT
            error = RealtimeTimeout(f"Timed out joining {self.topic}")
        else:
            status = SubscribeStatus.CHANNEL_ERROR
            error = RealtimeClientError(
                f"Unable to join {self.topic}: {reply.response or 'unknown error'}"
            )
        _LOGGER.debug("[%s] Subscribe: %s", self.topic, status.value)

        if callback is not None:
            try:
                callback(status, error)
            except Exception as err:
                _LOGGER.exception("[%s] Subscribe callback error: %s", self.topic, err)
        return status

    async def unsubscribe(self, timeout_ms: int | None = None) -> RemoveChannelResponse:
        """Leave the channel and drop it from the client, whatever the outcome."""
        try:
            reply = await self._handle.leave(timeout_ms).wait()
        finally:
            self._client._remove(self)
        return _LEAVE_STATUS.get(reply.status, "error")

    # -------------------------------------------------------------------------
    # Public API: Messaging
    # -------------------------------------------------------------------------

    def push(
        self, event: str, payload: dict[str, Any], timeout_ms: int | None = None
    ) -> Push:
        """Push event on the channel.

        Raises:
            RealtimePushError: If the channel has never been joined
        """
        return self._handle.push(event, payload, timeout_ms)

    def push_access_token(self, token: str | None) -> Push:
        return self._handle.push(ChannelEvent.ACCESS_TOKEN.value, {"access_token": token})

    def update_join_payload(self, payload: dict[str, Any]) -> None:
        self._handle.update_join_payload(payload)

    def presence_state(self) -> PresenceState:
        return self.presence.state()

    # -------------------------------------------------------------------------
    # Public API: Event bindings
    # -------------------------------------------------------------------------

    def on(
        self,
        event: str,
        callback: Callable[[Any], None],
        filter: dict[str, Any] | None = None,
    ) -> int:
        """Listen for event; returns a ref for off().

        filter={"event": name} narrows broadcast payloads by their "event"
        field and presence events by kind ("join", "leave", "sync").
        """
        self._listener_ref += 1
        self._listeners.append(_Listener(event, self._listener_ref, callback, filter))
        if event != "presence" and event not in self._forwarded:
            self._forwarded[event] = self._handle.on(
                event, lambda payload, event=event: self.trigger(event, payload)
            )
        return self._listener_ref

    def off(self, event: str, ref: int | None = None) -> None:
        self._listeners = [
            listener
            for listener in self._listeners
            if not (listener.event == event and (ref is None or listener.ref == ref))
        ]
        if event in self._forwarded and not any(
            listener.event == event for listener in self._listeners
        ):
            self._handle.off(event, self._forwarded.pop(event))

    def trigger(self, event: str, payload: Any) -> None:
        """Deliver payload to listeners of event, in registration order."""
        for listener in list(self._listeners):
            if listener.event != event or not _matches(listener.filter, payload):
                continue
            try:
                listener.callback(payload)
            except Exception as err:
                _LOGGER.exception("[%s] Listener error for %s: %s", self.topic, event, err)

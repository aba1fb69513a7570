"""Default channel primitive: join/leave state machine and reply routing."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..errors import RealtimePushError
from ..protocol import ChannelEvent, ChannelState, RealtimeMessage
from .presence import PhoenixPresence
from .push import Push, PushReply

if TYPE_CHECKING:
    from .socket import PhoenixSocket

_LOGGER = logging.getLogger(__name__)

_LIFECYCLE_EVENTS = frozenset(
    {
        ChannelEvent.CLOSE.value,
        ChannelEvent.ERROR.value,
        ChannelEvent.JOIN.value,
        ChannelEvent.REPLY.value,
        ChannelEvent.LEAVE.value,
    }
)


@dataclass(slots=True)
class _Binding:
    event: str
    ref: int
    callback: Callable[[dict[str, Any]], None]


class PhoenixChannel:
    """One topic multiplexed over a PhoenixSocket."""

    def __init__(
        self,
        socket: PhoenixSocket,
        topic: str,
        params: dict[str, Any],
        *,
        timeout_ms: int,
    ) -> None:
        self.topic = topic
        self.socket = socket
        self.timeout_ms = timeout_ms
        self._params: dict[str, Any] = dict(params)
        self._state = ChannelState.CLOSED
        self._join_ref: str | None = None
        self._joined_once = False
        self._bindings: list[_Binding] = []
        self._binding_ref = 0
        self._replies: dict[str, Push] = {}
        self._push_buffer: list[Push] = []

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def join_ref(self) -> str | None:
        return self._join_ref

    @property
    def join_payload(self) -> dict[str, Any]:
        return dict(self._params)

    @property
    def can_push(self) -> bool:
        return self.socket.is_connected and self._state is ChannelState.JOINED

    def on(self, event: str, callback: Callable[[dict[str, Any]], None]) -> int:
        """Bind callback to event, returning a ref usable with off()."""
        self._binding_ref += 1
        self._bindings.append(_Binding(event, self._binding_ref, callback))
        return self._binding_ref

    def off(self, event: str, ref: int | None = None) -> None:
        self._bindings = [
            b
            for b in self._bindings
            if not (b.event == event and (ref is None or b.ref == ref))
        ]

    def update_join_payload(self, payload: dict[str, Any]) -> None:
        self._params.update(payload)

    def join(self, timeout_ms: int | None = None) -> Push:
        """Send phx_join with the current join payload."""
        if timeout_ms is not None:
            self.timeout_ms = timeout_ms
        self._joined_once = True
        self._state = ChannelState.JOINING
        self.socket.add(self)
        push = Push(self, ChannelEvent.JOIN.value, dict(self._params), self.timeout_ms)
        push.add_done_callback(self._on_join_reply)
        ref = self.socket.make_ref()
        self._join_ref = ref
        push.send(ref)
        return push

    def leave(self, timeout_ms: int | None = None) -> Push:
        """Send phx_leave; resolves "ok" locally when nothing can be sent."""
        for pending in self._push_buffer:
            pending.trigger("error", {"reason": "channel left"})
        self._push_buffer.clear()
        self._state = ChannelState.LEAVING
        push = Push(
            self,
            ChannelEvent.LEAVE.value,
            {},
            timeout_ms if timeout_ms is not None else self.timeout_ms,
        )
        push.add_done_callback(lambda _reply: self._on_close())
        if self.socket.is_connected and self._join_ref is not None:
            push.send()
        else:
            push.trigger("ok")
        return push

    def push(
        self, event: str, payload: dict[str, Any], timeout_ms: int | None = None
    ) -> Push:
        """Push event on the channel, buffering it until the channel joins."""
        if not self._joined_once:
            raise RealtimePushError(self.topic, event)
        push = Push(
            self,
            event,
            payload,
            timeout_ms if timeout_ms is not None else self.timeout_ms,
        )
        if self.can_push:
            push.send()
        else:
            push.start_timeout()
            self._push_buffer.append(push)
        return push

    def presence_feed(self, opts: dict[str, Any] | None = None) -> PhoenixPresence:
        return PhoenixPresence(self, opts)

    def is_member(self, message: RealtimeMessage) -> bool:
        """Return True if the inbound frame belongs to this channel's current join."""
        if message.topic != self.topic:
            return False
        if (
            message.join_ref is not None
            and message.event in _LIFECYCLE_EVENTS
            and message.join_ref != self._join_ref
        ):
            _LOGGER.debug(
                "[%s] Dropping outdated %s for join_ref %s",
                self.topic,
                message.event,
                message.join_ref,
            )
            return False
        return True

    def register_reply(self, push: Push) -> None:
        if push.ref is not None:
            self._replies[push.ref] = push

    def discard_reply(self, ref: str) -> None:
        self._replies.pop(ref, None)

    def trigger(self, message: RealtimeMessage) -> None:
        """Dispatch an inbound frame to reply waiters and event bindings."""
        if message.event == ChannelEvent.REPLY.value:
            push = self._replies.pop(message.ref, None) if message.ref else None
            if push is not None:
                push.trigger(
                    message.payload.get("status", "error"),
                    message.payload.get("response") or {},
                )
            return
        if message.event == ChannelEvent.CLOSE.value:
            self._on_close()
        elif message.event == ChannelEvent.ERROR.value:
            self._on_error()

        for binding in list(self._bindings):
            if binding.event != message.event:
                continue
            try:
                binding.callback(message.payload)
            except Exception as err:
                _LOGGER.exception(
                    "[%s] Binding callback error for %s: %s",
                    self.topic,
                    message.event,
                    err,
                )

    # -------------------------------------------------------------------------
    # Internal: socket lifecycle
    # -------------------------------------------------------------------------

    def on_socket_open(self) -> None:
        if self._state is ChannelState.ERRORED:
            _LOGGER.debug("[%s] Rejoining after reconnect", self.topic)
            self.join()

    def on_socket_close(self) -> None:
        if self._state in (ChannelState.JOINED, ChannelState.JOINING):
            self._on_error()

    def _on_join_reply(self, reply: PushReply) -> None:
        if self._state is not ChannelState.JOINING:
            return
        if reply.status == "ok":
            self._state = ChannelState.JOINED
            buffered, self._push_buffer = self._push_buffer, []
            for push in buffered:
                push.send()
        else:
            _LOGGER.debug("[%s] Join %s: %s", self.topic, reply.status, reply.response)
            self._state = ChannelState.ERRORED

    def _on_error(self) -> None:
        if self._state is ChannelState.LEAVING or self._state is ChannelState.CLOSED:
            return
        self._state = ChannelState.ERRORED

    def _on_close(self) -> None:
        self._state = ChannelState.CLOSED
        self._join_ref = None
        self.socket.remove(self)

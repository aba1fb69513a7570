"""Ref-correlated request/reply over a channel."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..protocol import RealtimeMessage

if TYPE_CHECKING:
    from .channel import PhoenixChannel


@dataclass(frozen=True)
class PushReply:
    """Outcome of a push: "ok", "error" or "timeout" plus the server response."""

    status: str
    response: dict[str, Any] = field(default_factory=dict)


class Push:
    """A single outbound channel event awaiting its phx_reply.

    The reply future is created on the running loop, so a Push can only be
    built from inside a coroutine or loop callback.
    """

    def __init__(
        self,
        channel: PhoenixChannel,
        event: str,
        payload: dict[str, Any],
        timeout_ms: int,
    ) -> None:
        self.channel = channel
        self.event = event
        self.payload = payload
        self.timeout_ms = timeout_ms
        self.ref: str | None = None
        self.sent = False
        self._loop = asyncio.get_running_loop()
        self._future: asyncio.Future[PushReply] = self._loop.create_future()
        self._timer: asyncio.TimerHandle | None = None

    @property
    def done(self) -> bool:
        return self._future.done()

    def send(self, ref: str | None = None) -> None:
        """Assign a ref, start the reply timeout and hand the frame to the socket."""
        if self._future.done():
            return
        self.ref = ref or self.channel.socket.make_ref()
        self.channel.register_reply(self)
        self.start_timeout()
        self.sent = True
        self.channel.socket.push(
            RealtimeMessage(
                topic=self.channel.topic,
                event=self.event,
                payload=self.payload,
                ref=self.ref,
                join_ref=self.channel.join_ref,
            )
        )

    def start_timeout(self) -> None:
        if self._timer is None and not self._future.done():
            self._timer = self._loop.call_later(
                self.timeout_ms / 1000, self._on_timeout
            )

    def trigger(self, status: str, response: dict[str, Any] | None = None) -> None:
        """Resolve the push locally or from a matching reply."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._future.done():
            self._future.set_result(PushReply(status, response or {}))

    def add_done_callback(self, callback: Callable[[PushReply], None]) -> None:
        """Run callback with the reply once the push settles."""

        def _on_done(fut: asyncio.Future[PushReply]) -> None:
            if not fut.cancelled():
                callback(fut.result())

        self._future.add_done_callback(_on_done)

    async def wait(self) -> PushReply:
        """Wait for the reply (or timeout) without cancelling it on the caller's behalf."""
        return await asyncio.shield(self._future)

    def _on_timeout(self) -> None:
        self._timer = None
        if self.ref is not None:
            self.channel.discard_reply(self.ref)
        self.trigger("timeout")

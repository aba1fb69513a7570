"""Pytest configuration and fixtures for realtime_core tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import pytest

from realtime_core import RealtimeClient
from realtime_core.errors import RealtimePushError
from realtime_core.protocol import ChannelState, ConnectionState, RealtimeMessage
from realtime_core.transport.push import PushReply
from realtime_core.transport.ws_client import RealtimeWsMessage, RealtimeWsMessageType


async def wait_for(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Poll predicate until it holds or fail the test."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            pytest.fail("Condition not met before timeout")
        await asyncio.sleep(0.005)


class FakePush:
    """Push double resolving to a fixed reply."""

    def __init__(self, status: str = "ok", *, delay: float = 0.0) -> None:
        self.status = status
        self.delay = delay

    async def wait(self) -> PushReply:
        if self.delay:
            await asyncio.sleep(self.delay)
        return PushReply(self.status)


class FakePresenceFeed:
    """Presence feed double exposing its registered callbacks."""

    def __init__(self) -> None:
        self.join_callback: Callable[..., None] | None = None
        self.leave_callback: Callable[..., None] | None = None
        self.sync_callback: Callable[[], None] | None = None
        self.snapshot: dict[str, list[dict[str, Any]]] = {}

    def on_join(self, callback: Callable[..., None]) -> None:
        self.join_callback = callback

    def on_leave(self, callback: Callable[..., None]) -> None:
        self.leave_callback = callback

    def on_sync(self, callback: Callable[[], None]) -> None:
        self.sync_callback = callback

    def state(self) -> dict[str, list[dict[str, Any]]]:
        return self.snapshot


class FakeChannelHandle:
    """Channel handle double recording joins, leaves and pushes."""

    def __init__(self, topic: str, params: dict[str, Any]) -> None:
        self.topic = topic
        self.params = dict(params)
        self._state = ChannelState.CLOSED
        self._join_ref: str | None = None
        self.joined_once = False
        self.join_status = "ok"
        self.leave_status = "ok"
        self.leave_delay = 0.0
        self.join_calls: list[int | None] = []
        self.leave_calls: list[int | None] = []
        self.pushes: list[tuple[str, dict[str, Any]]] = []
        self.payload_updates: list[dict[str, Any]] = []
        self.bindings: list[tuple[str, int, Callable[[dict[str, Any]], None]]] = []
        self._binding_ref = 0
        self.feed = FakePresenceFeed()

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def join_ref(self) -> str | None:
        return self._join_ref

    def on(self, event: str, callback: Callable[[dict[str, Any]], None]) -> int:
        self._binding_ref += 1
        self.bindings.append((event, self._binding_ref, callback))
        return self._binding_ref

    def off(self, event: str, ref: int | None = None) -> None:
        self.bindings = [
            b for b in self.bindings if not (b[0] == event and (ref is None or b[1] == ref))
        ]

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        for bound_event, _ref, callback in list(self.bindings):
            if bound_event == event:
                callback(payload)

    def join(self, timeout_ms: int | None = None) -> FakePush:
        self.join_calls.append(timeout_ms)
        self.joined_once = True
        self._join_ref = str(len(self.join_calls))
        self._state = ChannelState.JOINED if self.join_status == "ok" else ChannelState.ERRORED
        return FakePush(self.join_status)

    def leave(self, timeout_ms: int | None = None) -> FakePush:
        self.leave_calls.append(timeout_ms)
        self._state = ChannelState.CLOSED
        return FakePush(self.leave_status, delay=self.leave_delay)

    def push(
        self, event: str, payload: dict[str, Any], timeout_ms: int | None = None
    ) -> FakePush:
        if not self.joined_once:
            raise RealtimePushError(self.topic, event)
        self.pushes.append((event, payload))
        return FakePush()

    def update_join_payload(self, payload: dict[str, Any]) -> None:
        self.payload_updates.append(payload)
        self.params.update(payload)

    def presence_feed(self, opts: dict[str, Any] | None = None) -> FakePresenceFeed:
        return self.feed


class FakeTransport:
    """Transport double whose connection state is driven by the test."""

    def __init__(self) -> None:
        self.state = ConnectionState.CLOSED
        self.connect_calls = 0
        self.disconnect_calls: list[tuple[int | None, str | None]] = []
        self.pushed: list[RealtimeMessage] = []
        self.handles: dict[str, FakeChannelHandle] = {}
        self.logs: list[tuple[str, str, Any]] = []
        self._open_callbacks: list[Callable[[], None]] = []
        self._close_callbacks: list[Callable[[int | None], None]] = []
        self._error_callbacks: list[Callable[[Exception], None]] = []
        self._message_callbacks: list[Callable[[RealtimeMessage], None]] = []

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.OPEN

    @property
    def connection_state(self) -> ConnectionState:
        return self.state

    @property
    def endpoint_url(self) -> str:
        return "ws://localhost:4000/socket/websocket?apikey=k&vsn=1.0.0"

    def connect(self) -> None:
        self.connect_calls += 1
        self.state = ConnectionState.CONNECTING

    def disconnect(
        self,
        callback: Callable[[], None] | None = None,
        code: int | None = None,
        reason: str | None = None,
    ) -> None:
        self.disconnect_calls.append((code, reason))
        self.state = ConnectionState.CLOSED
        if callback is not None:
            callback()

    def push(self, message: RealtimeMessage) -> None:
        self.pushed.append(message)

    def channel(self, topic: str, params: dict[str, Any]) -> FakeChannelHandle:
        handle = FakeChannelHandle(topic, params)
        self.handles[topic] = handle
        return handle

    def log(self, kind: str, msg: str, data: Any = None) -> None:
        self.logs.append((kind, msg, data))

    def on_open(self, callback: Callable[[], None]) -> None:
        self._open_callbacks.append(callback)

    def on_close(self, callback: Callable[[int | None], None]) -> None:
        self._close_callbacks.append(callback)

    def on_error(self, callback: Callable[[Exception], None]) -> None:
        self._error_callbacks.append(callback)

    def on_message(self, callback: Callable[[RealtimeMessage], None]) -> None:
        self._message_callbacks.append(callback)

    # Test drivers

    def open(self) -> None:
        self.state = ConnectionState.OPEN
        for callback in list(self._open_callbacks):
            callback()

    def close(self, code: int | None = None) -> None:
        self.state = ConnectionState.CLOSED
        for callback in list(self._close_callbacks):
            callback(code)

    def receive(self, message: RealtimeMessage) -> None:
        for callback in list(self._message_callbacks):
            callback(message)


class FakeWsClient:
    """RealtimeWsClient double fed frames through an asyncio queue."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.connect_error: Exception | None = None
        self.connect_args: tuple[Any, ...] | None = None
        self.close_args: tuple[int, str] | None = None
        self._inbox: asyncio.Queue[RealtimeWsMessage] = asyncio.Queue()

    async def connect(self, url: str, **kwargs: Any) -> None:
        self.connect_args = (url, kwargs)
        if self.connect_error is not None:
            raise self.connect_error

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_args = (code, reason)
        self._inbox.put_nowait(RealtimeWsMessage(RealtimeWsMessageType.CLOSED))

    async def send_json(self, payload: dict[str, Any]) -> None:
        self.sent.append(payload)

    def feed(self, data: dict[str, Any]) -> None:
        self._inbox.put_nowait(
            RealtimeWsMessage(RealtimeWsMessageType.TEXT, json.dumps(data))
        )

    def feed_raw(self, message: RealtimeWsMessage) -> None:
        self._inbox.put_nowait(message)

    def sent_events(self, event: str) -> list[dict[str, Any]]:
        return [frame for frame in self.sent if frame["event"] == event]

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        while True:
            message = await self._inbox.get()
            yield message
            if message.type is not RealtimeWsMessageType.TEXT:
                return


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def client(transport: FakeTransport) -> RealtimeClient:
    return RealtimeClient(
        "ws://localhost:4000/socket",
        params={"apikey": "k"},
        transport=transport,
    )

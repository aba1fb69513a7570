"""Default transport: one websocket multiplexing Phoenix channels."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any
from urllib.parse import urlencode

from ..errors import RealtimeClientError, RealtimeConnectionError
from ..protocol import (
    DEFAULT_TIMEOUT_MS,
    VSN,
    WS_CLOSE_NORMAL,
    ConnectionState,
    RealtimeMessage,
    decode_message,
)
from ..refs import RefGenerator
from .channel import PhoenixChannel
from .ws_client import RealtimeWsClient, RealtimeWsMessageType

_LOGGER = logging.getLogger(__name__)

Logger = Callable[[str, str, Any], None]


class PhoenixSocket:
    """Websocket connection carrying every channel of a client.

    connect() and disconnect() only schedule work on the running loop; state
    transitions are observable through connection_state and the on_open /
    on_close / on_error callbacks. Frames pushed while the socket is not open
    are buffered and flushed, in order, once it opens.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        params: dict[str, Any] | None = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        logger: Logger | None = None,
        refs: RefGenerator | None = None,
        connect_timeout: float = 15.0,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        self.params: dict[str, Any] = dict(params or {})
        self.timeout_ms = timeout_ms
        self._logger = logger
        self._refs = refs or RefGenerator()
        self._connect_timeout = connect_timeout

        # Connection state
        self._state = ConnectionState.CLOSED
        self._ws: RealtimeWsClient | None = None
        self._run_task: asyncio.Task[None] | None = None
        self._writer_task: asyncio.Task[None] | None = None
        self._outbox: asyncio.Queue[RealtimeMessage] | None = None
        self._send_buffer: list[RealtimeMessage] = []
        self._channels: list[PhoenixChannel] = []

        # Callbacks
        self._open_callbacks: list[Callable[[], None]] = []
        self._close_callbacks: list[Callable[[int | None], None]] = []
        self._error_callbacks: list[Callable[[Exception], None]] = []
        self._message_callbacks: list[Callable[[RealtimeMessage], None]] = []

    # -------------------------------------------------------------------------
    # Public API: Connection Management
    # -------------------------------------------------------------------------

    @property
    def endpoint_url(self) -> str:
        base = self._endpoint
        if not base.endswith("/websocket"):
            base = f"{base}/websocket"
        return f"{base}?{urlencode({**self.params, 'vsn': VSN})}"

    @property
    def connection_state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.OPEN

    def connect(self) -> None:
        """Start connecting unless a connection is already open or opening."""
        if self._state in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            return
        self._state = ConnectionState.CONNECTING
        self._run_task = asyncio.get_running_loop().create_task(self._run())

    def disconnect(
        self,
        callback: Callable[[], None] | None = None,
        code: int | None = None,
        reason: str | None = None,
    ) -> None:
        """Close the connection; callback runs once the socket is closed."""
        if self._run_task is None or self._run_task.done():
            self._state = ConnectionState.CLOSED
            if callback is not None:
                callback()
            return
        self._state = ConnectionState.CLOSING
        asyncio.get_running_loop().create_task(
            self._close(callback, code or WS_CLOSE_NORMAL, reason or "")
        )

    def push(self, message: RealtimeMessage) -> None:
        """Send a frame, or buffer it until the socket opens."""
        self.log(
            "push", f"{message.topic} {message.event} ({message.ref})", message.payload
        )
        if self.is_connected and self._outbox is not None:
            self._outbox.put_nowait(message)
        else:
            self._send_buffer.append(message)

    def make_ref(self) -> str:
        return self._refs.next_ref()

    # -------------------------------------------------------------------------
    # Public API: Channels
    # -------------------------------------------------------------------------

    def channel(self, topic: str, params: dict[str, Any]) -> PhoenixChannel:
        channel = PhoenixChannel(self, topic, params, timeout_ms=self.timeout_ms)
        self.add(channel)
        return channel

    def add(self, channel: PhoenixChannel) -> None:
        if not any(c is channel for c in self._channels):
            self._channels.append(channel)

    def remove(self, channel: PhoenixChannel) -> None:
        self._channels = [c for c in self._channels if c is not channel]

    # -------------------------------------------------------------------------
    # Public API: Callbacks and logging
    # -------------------------------------------------------------------------

    def on_open(self, callback: Callable[[], None]) -> None:
        self._open_callbacks.append(callback)

    def on_close(self, callback: Callable[[int | None], None]) -> None:
        self._close_callbacks.append(callback)

    def on_error(self, callback: Callable[[Exception], None]) -> None:
        self._error_callbacks.append(callback)

    def on_message(self, callback: Callable[[RealtimeMessage], None]) -> None:
        self._message_callbacks.append(callback)

    def log(self, kind: str, msg: str, data: Any = None) -> None:
        """Log through stdlib logging and the optional user logger."""
        level = logging.ERROR if kind == "error" else logging.DEBUG
        if data is None:
            _LOGGER.log(level, "%s: %s", kind, msg)
        else:
            _LOGGER.log(level, "%s: %s %s", kind, msg, data)
        if self._logger is not None:
            try:
                self._logger(kind, msg, data)
            except Exception as err:
                _LOGGER.exception("Logger callback error: %s", err)

    # -------------------------------------------------------------------------
    # Internal: Connection lifecycle
    # -------------------------------------------------------------------------

    async def _run(self) -> None:
        ws_client = RealtimeWsClient()
        try:
            await ws_client.connect(self.endpoint_url, timeout=self._connect_timeout)
        except RealtimeClientError as err:
            self.log("transport", "connection failed", err)
            self._state = ConnectionState.CLOSED
            self._fire(self._error_callbacks, err)
            self._fire(self._close_callbacks, None)
            return

        if self._state is ConnectionState.CLOSING:
            await ws_client.close()
            self._state = ConnectionState.CLOSED
            self._fire(self._close_callbacks, WS_CLOSE_NORMAL)
            return

        self._ws = ws_client
        self._state = ConnectionState.OPEN
        self._outbox = asyncio.Queue()
        self._writer_task = asyncio.create_task(self._write_loop(ws_client, self._outbox))
        self.log("transport", f"connected to {self.endpoint_url}")

        buffered, self._send_buffer = self._send_buffer, []
        for message in buffered:
            self._outbox.put_nowait(message)
        for channel in list(self._channels):
            channel.on_socket_open()
        self._fire(self._open_callbacks)

        close_code: int | None = None
        try:
            async for msg in ws_client:
                if msg.type is RealtimeWsMessageType.TEXT:
                    self._handle_text(msg.data)
                    continue
                close_code = msg.close_code
                if msg.type is RealtimeWsMessageType.ERROR:
                    self.log("transport", "websocket error")
                    self._fire(
                        self._error_callbacks, RealtimeConnectionError("WebSocket error")
                    )
                break
        finally:
            if self._writer_task is not None:
                self._writer_task.cancel()
                self._writer_task = None
            self._ws = None
            self._outbox = None
            self._state = ConnectionState.CLOSED
            self.log("transport", "connection closed", close_code)
            for channel in list(self._channels):
                channel.on_socket_close()
            self._fire(self._close_callbacks, close_code)

    async def _close(
        self, callback: Callable[[], None] | None, code: int, reason: str
    ) -> None:
        if self._ws is not None:
            try:
                await asyncio.wait_for(self._ws.close(code, reason), timeout=2.0)
            except TimeoutError:
                _LOGGER.warning("WebSocket close timed out")
        if self._run_task is not None:
            await asyncio.wait({self._run_task})
        if callback is not None:
            callback()

    async def _write_loop(
        self, ws_client: RealtimeWsClient, outbox: asyncio.Queue[RealtimeMessage]
    ) -> None:
        while True:
            message = await outbox.get()
            try:
                await ws_client.send_json(message.to_dict())
            except RealtimeClientError as err:
                self.log("transport", "send failed", err)

    def _handle_text(self, data: str | None) -> None:
        try:
            message = decode_message(data or "")
        except RealtimeClientError as err:
            _LOGGER.warning("Invalid frame: %s", err)
            return

        self.log(
            "receive",
            f"{message.payload.get('status', '')} {message.topic} {message.event} "
            f"({message.ref})",
            message.payload,
        )
        self._fire(self._message_callbacks, message)
        for channel in list(self._channels):
            if channel.is_member(message):
                channel.trigger(message)

    def _fire(self, callbacks: list[Callable[..., None]], *args: Any) -> None:
        for callback in list(callbacks):
            try:
                callback(*args)
            except Exception as err:
                _LOGGER.exception("Socket callback error: %s", err)

"""Connection manager: owns the transport and every channel session.

This module provides the canonical API for applications. It handles:
- Connection management and manual/automatic disconnects
- Channel registry with one session per topic
- Access token refresh and propagation
- Heartbeat liveness checks and backoff reconnects
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from .auth import AccessTokenProvider, AuthSynchronizer
from .channel import RealtimeChannel
from .errors import RealtimeConfigError
from .heartbeat import (
    HEARTBEAT_INTERVAL_MS,
    HeartbeatCallback,
    HeartbeatMonitor,
    HeartbeatTimer,
    WorkerHeartbeatTimer,
)
from .protocol import (
    DEFAULT_TIMEOUT_MS,
    TOPIC_PREFIX,
    ConnectionState,
    RealtimeMessage,
    RemoveChannelResponse,
)
from .reconnect import ReconnectAfterMs, ReconnectionScheduler
from .refs import RefGenerator
from .registry import ChannelRegistry
from .transport.base import Transport
from .transport.socket import Logger, PhoenixSocket

_LOGGER = logging.getLogger(__name__)


class RealtimeClient:
    """Session over one realtime connection.

    Usage:
        client = RealtimeClient("wss://example.com/realtime/v1", params={"apikey": key})
        channel = client.channel("room1")
        await channel.subscribe()
        await client.set_auth(jwt)
        await client.remove_all_channels()
    """

    def __init__(
        self,
        endpoint: str,
        *,
        params: dict[str, Any] | None = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        heartbeat_interval_ms: int = HEARTBEAT_INTERVAL_MS,
        reconnect_after_ms: ReconnectAfterMs | None = None,
        headers: dict[str, str] | None = None,
        log_level: str | None = None,
        logger: Logger | None = None,
        heartbeat_callback: HeartbeatCallback | None = None,
        access_token: AccessTokenProvider | None = None,
        worker: bool = False,
        worker_url: str | None = None,
        transport: Transport | None = None,
    ):
        """Initialize the client.

        Args:
            endpoint: WebSocket endpoint, e.g. "wss://example.com/realtime/v1"
            params: Connection params; must include "apikey"
            timeout_ms: Default push timeout
            heartbeat_interval_ms: Interval between heartbeats
            reconnect_after_ms: Maps attempt number to reconnect delay
            headers: Deprecated; websocket connections cannot carry headers
            log_level: Server-side log level, sent as the log_level param
            logger: Called as logger(kind, msg, data) for protocol logging
            heartbeat_callback: Receives every heartbeat status
            access_token: Sync or async callable returning the current token
            worker: Drive heartbeat ticks from a background thread
            worker_url: Accepted for configuration parity; unused
            transport: Prebuilt transport; defaults to a PhoenixSocket

        Raises:
            RealtimeConfigError: If params has no API key
        """
        if not params or not params.get("apikey"):
            raise RealtimeConfigError("API key is required to connect to Realtime")

        self.api_key: str = params["apikey"]
        self.params: dict[str, Any] = dict(params)
        self.log_level = log_level
        if log_level:
            self.params["log_level"] = log_level
        self.headers = dict(headers or {})
        if headers:
            _LOGGER.warning(
                "headers cannot be set on websocket connections and are ignored"
            )
        self.timeout_ms = timeout_ms
        self.heartbeat_interval_ms = heartbeat_interval_ms
        self.worker = worker
        self.worker_url = worker_url

        self._refs = RefGenerator()
        self._registry = ChannelRegistry()
        self.transport: Transport = transport or PhoenixSocket(
            endpoint,
            params=self.params,
            timeout_ms=timeout_ms,
            logger=logger,
            refs=self._refs,
        )

        self._auth = AuthSynchronizer(
            self._registry, access_token=access_token, log=self.log
        )
        self._reconnect = ReconnectionScheduler(
            connect=self.connect,
            is_connected=lambda: self.is_connected,
            wait_for_auth=self._auth.wait_for_auth_if_needed,
            reconnect_after_ms=reconnect_after_ms,
        )
        self._heartbeat = HeartbeatMonitor(
            self.transport,
            self._refs,
            self._auth,
            self._reconnect,
            callback=heartbeat_callback,
            log=self.log,
        )
        self._heartbeat_timer: HeartbeatTimer | WorkerHeartbeatTimer
        if worker:
            self._heartbeat_timer = WorkerHeartbeatTimer(
                heartbeat_interval_ms, self.send_heartbeat
            )
        else:
            self._heartbeat_timer = HeartbeatTimer(
                heartbeat_interval_ms, self.send_heartbeat
            )

        self.transport.on_open(self._on_transport_open)
        self.transport.on_close(self._on_transport_close)
        self.transport.on_error(self._on_transport_error)
        self.transport.on_message(self._heartbeat.handle_message)

    # -------------------------------------------------------------------------
    # Public API: Connection Management
    # -------------------------------------------------------------------------

    def connect(self) -> None:
        """Connect the transport unless it is connecting, disconnecting or open."""
        if self.is_connecting or self.is_disconnecting or self.is_connected:
            return

        self._reconnect.resume()
        if self._auth.has_provider and not self._auth.in_flight:
            self._auth.set_auth_safely("connect")

        self._heartbeat_timer.start()
        self.transport.connect()

    def disconnect(self, code: int | None = None, reason: str | None = None) -> None:
        """Close the transport and suppress automatic reconnects."""
        if self.is_disconnecting:
            return

        self._reconnect.suppress()
        self._heartbeat_timer.stop()
        self._heartbeat.reset()
        self.transport.disconnect(None, code, reason)

    @property
    def is_connected(self) -> bool:
        return self.transport.is_connected

    @property
    def is_connecting(self) -> bool:
        return self.transport.connection_state is ConnectionState.CONNECTING

    @property
    def is_disconnecting(self) -> bool:
        return self.transport.connection_state is ConnectionState.CLOSING

    @property
    def connection_state(self) -> ConnectionState:
        return self.transport.connection_state or ConnectionState.CLOSED

    @property
    def endpoint_url(self) -> str:
        return self.transport.endpoint_url

    @property
    def was_manual_disconnect(self) -> bool:
        return self._reconnect.manual_disconnect

    # -------------------------------------------------------------------------
    # Public API: Channels
    # -------------------------------------------------------------------------

    @property
    def channels(self) -> list[RealtimeChannel]:
        return self._registry.channels

    def channel(
        self, topic: str, params: dict[str, Any] | None = None
    ) -> RealtimeChannel:
        """Return the channel for topic, creating it on first use.

        Options passed for a topic that already has a channel are ignored.
        """
        realtime_topic = f"{TOPIC_PREFIX}{topic}"
        existing = self._registry.get(realtime_topic)
        if existing is not None:
            return existing

        channel = RealtimeChannel(realtime_topic, params or {"config": {}}, self)
        self._registry.add(channel)
        return channel

    async def remove_channel(self, channel: RealtimeChannel) -> RemoveChannelResponse:
        """Unsubscribe and remove a channel; disconnects once none remain."""
        status: RemoveChannelResponse
        try:
            status = await channel.unsubscribe()
        except Exception as err:
            self.log("error", f"error leaving {channel.topic}", err)
            status = "error"
        finally:
            self._remove(channel)

        if not self._registry:
            self.disconnect()
        return status

    async def remove_all_channels(self) -> list[RemoveChannelResponse]:
        """Unsubscribe every channel concurrently, then disconnect."""
        channels = self._registry.channels
        results = await asyncio.gather(
            *(channel.unsubscribe() for channel in channels), return_exceptions=True
        )

        statuses: list[RemoveChannelResponse] = []
        for channel, result in zip(channels, results):
            if isinstance(result, BaseException):
                self.log("error", f"error leaving {channel.topic}", result)
                statuses.append("error")
            else:
                statuses.append(result)

        self._registry.clear()
        self.disconnect()
        return statuses

    def push(self, message: RealtimeMessage) -> None:
        """Hand a frame to the transport, which buffers it while disconnected."""
        self.transport.push(message)

    # -------------------------------------------------------------------------
    # Public API: Auth and heartbeat
    # -------------------------------------------------------------------------

    @property
    def access_token_value(self) -> str | None:
        return self._auth.access_token_value

    async def set_auth(self, token: str | None = None) -> None:
        """Set the access token used for channel authorization.

        Without a token the access_token callback is asked for a fresh one,
        falling back to the token already held.
        """
        await self._auth.set_auth(token)

    def send_heartbeat(self) -> None:
        self._heartbeat.send_heartbeat()

    def on_heartbeat(self, callback: HeartbeatCallback) -> None:
        self._heartbeat.callback = callback

    @property
    def pending_heartbeat_ref(self) -> str | None:
        return self._heartbeat.pending_ref

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------

    def log(self, kind: str, msg: str, data: Any = None) -> None:
        try:
            self.transport.log(kind, msg, data)
        except Exception as err:
            _LOGGER.exception("Transport log error: %s", err)

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _remove(self, channel: RealtimeChannel) -> None:
        if self._registry.get(channel.topic) is channel:
            self._registry.remove(channel.topic)

    def _on_transport_open(self) -> None:
        _LOGGER.debug("Transport open: %s", self.endpoint_url)
        self._reconnect.reset()
        self._heartbeat.reset()

    def _on_transport_close(self, code: int | None) -> None:
        _LOGGER.debug("Transport closed (code=%s)", code)
        self._heartbeat.pending_ref = None
        if not self._reconnect.manual_disconnect:
            self._reconnect.schedule_timeout()

    def _on_transport_error(self, error: Exception) -> None:
        self.log("transport", "transport error", error)

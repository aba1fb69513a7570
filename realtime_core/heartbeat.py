"""Liveness probing over the reserved control topic."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .protocol import (
    PHOENIX_TOPIC,
    WS_CLOSE_NORMAL,
    ConnectionState,
    HeartbeatStatus,
    RealtimeMessage,
    build_heartbeat,
)

if TYPE_CHECKING:
    from .auth import AuthSynchronizer
    from .reconnect import ReconnectionScheduler
    from .refs import RefGenerator
    from .transport.base import Transport

_LOGGER = logging.getLogger(__name__)

HEARTBEAT_INTERVAL_MS = 25_000
HEARTBEAT_TIMEOUT_FALLBACK_MS = 100

HeartbeatCallback = Callable[[HeartbeatStatus], None]
LogFn = Callable[[str, str, Any], None]


def _noop(status: HeartbeatStatus) -> None:
    pass


class HeartbeatMonitor:
    """Sends heartbeats and escalates a missing reply into a reconnect.

    At most one heartbeat is outstanding. If the next tick finds the previous
    ref still pending, the connection is treated as dead: the transport is
    closed and the reconnection scheduler is armed.
    """

    def __init__(
        self,
        transport: Transport,
        refs: RefGenerator,
        auth: AuthSynchronizer,
        reconnect: ReconnectionScheduler,
        *,
        callback: HeartbeatCallback | None = None,
        log: LogFn,
    ) -> None:
        self._transport = transport
        self._refs = refs
        self._auth = auth
        self._reconnect = reconnect
        self.callback: HeartbeatCallback = callback or _noop
        self._log = log
        self.pending_ref: str | None = None
        self._fallback: asyncio.TimerHandle | None = None

    def send_heartbeat(self) -> None:
        """Run one heartbeat tick."""
        if not self._transport.is_connected:
            self._report("disconnected")
            return

        if self.pending_ref is not None:
            self.pending_ref = None
            self._log("transport", "heartbeat timeout. Attempting to re-establish connection", None)
            self._report("timeout")

            # Not a manual disconnect: auto-reconnect stays enabled.
            self._reconnect.resume()
            self._transport.disconnect(None, WS_CLOSE_NORMAL, "heartbeat timeout")
            self._schedule_fallback()
            return

        self.pending_ref = self._refs.next_ref()
        self._transport.push(build_heartbeat(self.pending_ref))
        self._report("sent")
        self._auth.set_auth_safely("heartbeat")

    def handle_message(self, message: RealtimeMessage) -> None:
        """Clear the pending ref when its reply arrives."""
        if self.pending_ref is None or message.ref != self.pending_ref:
            return
        if message.topic != PHOENIX_TOPIC:
            return
        self.pending_ref = None
        status = message.payload.get("status")
        self._report("ok" if status == "ok" else "error")

    def reset(self) -> None:
        self.pending_ref = None
        if self._fallback is not None:
            self._fallback.cancel()
            self._fallback = None

    def _schedule_fallback(self) -> None:
        if self._fallback is not None:
            self._fallback.cancel()
        self._fallback = asyncio.get_running_loop().call_later(
            HEARTBEAT_TIMEOUT_FALLBACK_MS / 1000, self._reconnect_if_down
        )

    def _reconnect_if_down(self) -> None:
        self._fallback = None
        # The transport close callback may already have armed the scheduler.
        if self._reconnect.armed:
            return
        if self._transport.connection_state is ConnectionState.CLOSED:
            self._reconnect.schedule_timeout()

    def _report(self, status: HeartbeatStatus) -> None:
        try:
            self.callback(status)
        except Exception as err:
            _LOGGER.debug("Heartbeat callback raised: %s", err)
            self._log("error", "error in heartbeat callback", err)


class HeartbeatTimer:
    """Calls tick every interval from an asyncio task."""

    def __init__(self, interval_ms: int, tick: Callable[[], None]) -> None:
        self._interval_ms = interval_ms
        self._tick = tick
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._interval_ms / 1000)
                self._tick()
        except asyncio.CancelledError:
            _LOGGER.debug("Heartbeat timer cancelled")
        except Exception as err:
            _LOGGER.exception("Heartbeat error: %s", err)


class WorkerHeartbeatTimer:
    """Ticks from a background thread, for loops whose own timers lag.

    The thread only keeps time; every tick is handed back to the event loop,
    so heartbeat state is still touched from a single thread.
    """

    def __init__(self, interval_ms: int, tick: Callable[[], None], *, name: str | None = None) -> None:
        self._interval_ms = interval_ms
        self._tick = tick
        self._name = name or "realtime-heartbeat"
        self._thread: threading.Thread | None = None
        self._stopped = threading.Event()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(loop, self._stopped), name=self._name, daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        self._stopped.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None

    def _run(self, loop: asyncio.AbstractEventLoop, stopped: threading.Event) -> None:
        while not stopped.wait(self._interval_ms / 1000):
            try:
                loop.call_soon_threadsafe(self._tick)
            except RuntimeError:
                # Loop closed underneath us.
                return

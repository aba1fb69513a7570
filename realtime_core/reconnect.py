"""Backoff-driven reconnection."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

_LOGGER = logging.getLogger(__name__)

RECONNECT_INTERVALS_MS: tuple[int, ...] = (1000, 2000, 5000, 10000)
DEFAULT_RECONNECT_FALLBACK_MS = 10_000
RECONNECT_DELAY_MS = 10

ReconnectAfterMs = Callable[[int], float]


def default_reconnect_after_ms(tries: int) -> int:
    """Stepped backoff: the table for the first attempts, then a flat fallback."""
    if 1 <= tries <= len(RECONNECT_INTERVALS_MS):
        return RECONNECT_INTERVALS_MS[tries - 1]
    return DEFAULT_RECONNECT_FALLBACK_MS


class BackoffTimer:
    """Runs callback once after a delay that grows with each scheduling."""

    def __init__(
        self,
        callback: Callable[[], Awaitable[None]],
        delay_ms: ReconnectAfterMs,
    ) -> None:
        self._callback = callback
        self._delay_ms = delay_ms
        self.tries = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    def reset(self) -> None:
        self.tries = 0
        self._cancel()

    def schedule_timeout(self) -> None:
        """(Re)arm the timer for the next attempt."""
        self._cancel()
        self.tries += 1
        delay = self._delay_ms(self.tries)
        self._task = asyncio.get_running_loop().create_task(self._fire_after(delay))

    def _cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _fire_after(self, delay_ms: float) -> None:
        try:
            await asyncio.sleep(delay_ms / 1000)
        except asyncio.CancelledError:
            return
        self._task = None
        await self._callback()


class ReconnectionScheduler:
    """Reconnects after transport loss, unless the disconnect was manual.

    Each attempt waits a short settle delay and for any in-flight auth
    operation, then connects only if nothing else has reconnected meanwhile.
    """

    def __init__(
        self,
        *,
        connect: Callable[[], None],
        is_connected: Callable[[], bool],
        wait_for_auth: Callable[[], Awaitable[None]],
        reconnect_after_ms: ReconnectAfterMs | None = None,
    ) -> None:
        self._connect = connect
        self._is_connected = is_connected
        self._wait_for_auth = wait_for_auth
        self.manual_disconnect = False
        self._timer = BackoffTimer(
            self._attempt, reconnect_after_ms or default_reconnect_after_ms
        )

    @property
    def tries(self) -> int:
        return self._timer.tries

    @property
    def armed(self) -> bool:
        return self._timer.armed

    def schedule_timeout(self) -> None:
        if self.manual_disconnect:
            _LOGGER.debug("Reconnect suppressed after manual disconnect")
            return
        self._timer.schedule_timeout()
        _LOGGER.debug("Reconnect scheduled (attempt %d)", self._timer.tries)

    def reset(self) -> None:
        self._timer.reset()

    def suppress(self) -> None:
        """Stop reconnecting until resume() is called."""
        self.manual_disconnect = True
        self._timer.reset()

    def resume(self) -> None:
        self.manual_disconnect = False

    async def _attempt(self) -> None:
        await asyncio.sleep(RECONNECT_DELAY_MS / 1000)
        try:
            await self._wait_for_auth()
        except Exception as err:
            _LOGGER.debug("Auth failed before reconnect: %s", err)
        if self.manual_disconnect or self._is_connected():
            return
        _LOGGER.debug("Reconnecting (attempt %d)", self._timer.tries)
        self._connect()

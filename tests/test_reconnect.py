"""Tests for backoff timers and the reconnection scheduler."""

from __future__ import annotations

import asyncio

import pytest

from conftest import wait_for
from realtime_core.reconnect import (
    DEFAULT_RECONNECT_FALLBACK_MS,
    BackoffTimer,
    ReconnectionScheduler,
    default_reconnect_after_ms,
)


class TestDefaultBackoff:
    """Tests for the stepped backoff table."""

    @pytest.mark.parametrize(
        ("tries", "expected"),
        [(1, 1000), (2, 2000), (3, 5000), (4, 10000), (5, 10000), (50, 10000)],
    )
    def test_table(self, tries, expected):
        """Test each attempt maps to its table entry, then the fallback."""
        assert default_reconnect_after_ms(tries) == expected

    def test_zero_tries_uses_fallback(self):
        """Test out-of-range attempts use the fallback delay."""
        assert default_reconnect_after_ms(0) == DEFAULT_RECONNECT_FALLBACK_MS


class TestBackoffTimer:
    """Tests for BackoffTimer."""

    @pytest.mark.asyncio
    async def test_fires_after_delay(self):
        """Test the callback runs once the delay elapses."""
        fired: list[int] = []

        async def callback():
            fired.append(1)

        timer = BackoffTimer(callback, lambda tries: 10)
        timer.schedule_timeout()
        assert timer.armed
        await wait_for(lambda: fired == [1])

        assert timer.tries == 1
        assert not timer.armed

    @pytest.mark.asyncio
    async def test_rearm_replaces_pending(self):
        """Test rescheduling cancels the pending attempt and bumps tries."""
        fired: list[int] = []
        delays: list[int] = []

        async def callback():
            fired.append(1)

        def delay(tries):
            delays.append(tries)
            return 20

        timer = BackoffTimer(callback, delay)
        timer.schedule_timeout()
        timer.schedule_timeout()
        await asyncio.sleep(0.05)

        assert delays == [1, 2]
        assert fired == [1]

    @pytest.mark.asyncio
    async def test_reset(self):
        """Test reset cancels the pending attempt and zeroes tries."""
        fired: list[int] = []

        async def callback():
            fired.append(1)

        timer = BackoffTimer(callback, lambda tries: 10)
        timer.schedule_timeout()
        timer.reset()
        await asyncio.sleep(0.03)

        assert fired == []
        assert timer.tries == 0
        assert not timer.armed


class TestReconnectionScheduler:
    """Tests for ReconnectionScheduler."""

    @staticmethod
    def _scheduler(connected=False, wait_for_auth=None):
        state = {"connected": connected, "connects": 0}

        def connect():
            state["connects"] += 1

        async def no_auth():
            return None

        scheduler = ReconnectionScheduler(
            connect=connect,
            is_connected=lambda: state["connected"],
            wait_for_auth=wait_for_auth or no_auth,
            reconnect_after_ms=lambda tries: 5,
        )
        return scheduler, state

    @pytest.mark.asyncio
    async def test_reconnects(self):
        """Test an armed scheduler calls connect."""
        scheduler, state = self._scheduler()

        scheduler.schedule_timeout()
        await wait_for(lambda: state["connects"] == 1)

        assert scheduler.tries == 1

    @pytest.mark.asyncio
    async def test_skips_when_connected(self):
        """Test nothing happens if the connection came back on its own."""
        scheduler, state = self._scheduler(connected=True)

        scheduler.schedule_timeout()
        await asyncio.sleep(0.05)

        assert state["connects"] == 0

    @pytest.mark.asyncio
    async def test_waits_for_auth(self):
        """Test the attempt waits for in-flight auth before connecting."""
        gate = asyncio.Event()

        async def wait_for_auth():
            await gate.wait()

        scheduler, state = self._scheduler(wait_for_auth=wait_for_auth)
        scheduler.schedule_timeout()
        await asyncio.sleep(0.05)
        assert state["connects"] == 0

        gate.set()
        await wait_for(lambda: state["connects"] == 1)

    @pytest.mark.asyncio
    async def test_auth_failure_still_reconnects(self):
        """Test a failing auth wait does not block the reconnect."""

        async def wait_for_auth():
            raise RuntimeError("auth down")

        scheduler, state = self._scheduler(wait_for_auth=wait_for_auth)
        scheduler.schedule_timeout()

        await wait_for(lambda: state["connects"] == 1)

    @pytest.mark.asyncio
    async def test_suppress_blocks_scheduling(self):
        """Test a manual disconnect suppresses scheduling until resumed."""
        scheduler, state = self._scheduler()

        scheduler.suppress()
        scheduler.schedule_timeout()
        assert not scheduler.armed
        assert scheduler.manual_disconnect

        scheduler.resume()
        scheduler.schedule_timeout()
        await wait_for(lambda: state["connects"] == 1)

    @pytest.mark.asyncio
    async def test_suppress_cancels_armed_attempt(self):
        """Test suppressing after arming cancels the pending attempt."""
        gate = asyncio.Event()

        async def wait_for_auth():
            await gate.wait()

        scheduler, state = self._scheduler(wait_for_auth=wait_for_auth)
        scheduler.schedule_timeout()
        await asyncio.sleep(0.03)
        scheduler.suppress()
        gate.set()
        await asyncio.sleep(0.03)

        assert state["connects"] == 0
        assert scheduler.tries == 0

"""Tests for RealtimeWsClient WebSocket wrapper."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from websockets.exceptions import ConnectionClosed
from websockets.frames import Close

from realtime_core.errors import RealtimeConnectionError
from realtime_core.transport.ws_client import (
    RealtimeWsClient,
    RealtimeWsMessage,
    RealtimeWsMessageType,
)

CONNECT = "realtime_core.transport.ws_client.connect_websocket"
URL = "ws://localhost:4000/socket/websocket?apikey=k&vsn=1.0.0"


class TestRealtimeWsMessage:
    """Tests for RealtimeWsMessage dataclass."""

    def test_create_closed_message(self):
        """Test creating a closed message with a code."""
        msg = RealtimeWsMessage(type=RealtimeWsMessageType.CLOSED, close_code=1000)
        assert msg.data is None
        assert msg.close_code == 1000

    def test_message_is_frozen(self):
        """Test that messages are immutable."""
        msg = RealtimeWsMessage(type=RealtimeWsMessageType.TEXT, data="test")
        with pytest.raises(AttributeError):
            msg.data = "modified"  # type: ignore[misc]


class TestRealtimeWsClientConnect:
    """Tests for RealtimeWsClient.connect()."""

    @pytest.mark.asyncio
    async def test_connect_success(self):
        """Test successful WebSocket connection."""
        mock_ws = AsyncMock()

        with patch(CONNECT, return_value=mock_ws) as mock_connect:
            client = RealtimeWsClient()
            await client.connect(URL)

            mock_connect.assert_called_once_with(URL, ping_interval=None, timeout=15.0)
            assert client._ws is mock_ws

    @pytest.mark.asyncio
    async def test_connect_custom_params(self):
        """Test connection with custom parameters."""
        with patch(CONNECT, return_value=AsyncMock()) as mock_connect:
            client = RealtimeWsClient()
            await client.connect(URL, ping_interval=30, timeout=5.0)

            mock_connect.assert_called_once_with(URL, ping_interval=30, timeout=5.0)

    @pytest.mark.asyncio
    async def test_connect_propagates_errors(self):
        """Test that connection errors are propagated."""
        with patch(CONNECT, side_effect=RealtimeConnectionError("Connection failed")):
            client = RealtimeWsClient()
            with pytest.raises(RealtimeConnectionError, match="Connection failed"):
                await client.connect(URL)


class TestRealtimeWsClientClose:
    """Tests for RealtimeWsClient.close()."""

    @pytest.mark.asyncio
    async def test_close_connected(self):
        """Test closing passes code and reason through."""
        mock_ws = AsyncMock()

        with patch(CONNECT, return_value=mock_ws):
            client = RealtimeWsClient()
            await client.connect(URL)
            await client.close(1000, "heartbeat timeout")

            mock_ws.close.assert_called_once_with(code=1000, reason="heartbeat timeout")

    @pytest.mark.asyncio
    async def test_close_not_connected(self):
        """Test closing when not connected (no error)."""
        client = RealtimeWsClient()
        await client.close()


class TestRealtimeWsClientSendJson:
    """Tests for RealtimeWsClient.send_json()."""

    @pytest.mark.asyncio
    async def test_send_json_success(self):
        """Test sending JSON payload."""
        mock_ws = AsyncMock()

        with patch(CONNECT, return_value=mock_ws):
            client = RealtimeWsClient()
            await client.connect(URL)
            await client.send_json({"topic": "phoenix", "event": "heartbeat"})

            mock_ws.send.assert_called_once_with(
                '{"topic": "phoenix", "event": "heartbeat"}'
            )

    @pytest.mark.asyncio
    async def test_send_json_not_connected(self):
        """Test send_json raises when not connected."""
        client = RealtimeWsClient()
        with pytest.raises(RealtimeConnectionError, match="not connected"):
            await client.send_json({"topic": "phoenix"})

    @pytest.mark.asyncio
    async def test_send_json_closed(self):
        """Test send failures on a closed socket are wrapped."""
        mock_ws = AsyncMock()
        mock_ws.send.side_effect = ConnectionClosed(None, None)

        with patch(CONNECT, return_value=mock_ws):
            client = RealtimeWsClient()
            await client.connect(URL)
            with pytest.raises(RealtimeConnectionError, match="send failed"):
                await client.send_json({"topic": "phoenix"})


class AsyncIteratorMock:
    """Helper class to create a proper async iterator mock."""

    def __init__(self, items: list, *, raise_on_iter: Exception | None = None):
        self._items = items
        self._index = 0
        self._raise_on_iter = raise_on_iter
        self.close = AsyncMock()

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._index >= len(self._items):
            if self._raise_on_iter is not None:
                raise self._raise_on_iter
            raise StopAsyncIteration
        item = self._items[self._index]
        self._index += 1
        return item


async def _collect(mock_ws) -> list[RealtimeWsMessage]:
    with patch(CONNECT, return_value=mock_ws):
        client = RealtimeWsClient()
        await client.connect(URL)
        return [msg async for msg in client]


class TestRealtimeWsClientIteration:
    """Tests for RealtimeWsClient async iteration."""

    def test_iter_not_connected(self):
        """Test iteration raises when not connected."""
        client = RealtimeWsClient()
        with pytest.raises(RealtimeConnectionError, match="not connected"):
            client.__aiter__()

    @pytest.mark.asyncio
    async def test_iter_graceful_close(self):
        """Test iteration emits CLOSED on graceful completion."""
        messages = await _collect(AsyncIteratorMock(["hello"]))

        assert len(messages) == 2
        assert messages[0] == RealtimeWsMessage(RealtimeWsMessageType.TEXT, "hello")
        assert messages[1].type == RealtimeWsMessageType.CLOSED
        assert messages[1].close_code is None

    @pytest.mark.asyncio
    async def test_iter_connection_closed_with_code(self):
        """Test a received close frame carries its code."""
        closed = ConnectionClosed(Close(4000, "bye"), None)
        messages = await _collect(AsyncIteratorMock(["a"], raise_on_iter=closed))

        assert [m.type for m in messages] == [
            RealtimeWsMessageType.TEXT,
            RealtimeWsMessageType.CLOSED,
        ]
        assert messages[1].close_code == 4000

    @pytest.mark.asyncio
    async def test_iter_connection_lost(self):
        """Test an abnormal close without a frame has no code."""
        messages = await _collect(
            AsyncIteratorMock([], raise_on_iter=ConnectionClosed(None, None))
        )

        assert messages == [RealtimeWsMessage(RealtimeWsMessageType.CLOSED)]

    @pytest.mark.asyncio
    async def test_iter_unexpected_error(self):
        """Test iteration handles unexpected errors."""
        messages = await _collect(
            AsyncIteratorMock([], raise_on_iter=RuntimeError("Unexpected"))
        )

        assert len(messages) == 1
        assert messages[0].type == RealtimeWsMessageType.ERROR

    @pytest.mark.asyncio
    async def test_iter_skips_binary_messages(self):
        """Test iteration skips binary messages."""
        messages = await _collect(AsyncIteratorMock(["text1", b"\x00\x01\x02", "text2"]))

        text = [m.data for m in messages if m.type == RealtimeWsMessageType.TEXT]
        assert text == ["text1", "text2"]

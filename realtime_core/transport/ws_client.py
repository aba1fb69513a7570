"""WebSocket client wrapper for the realtime transport."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..errors import RealtimeConnectionError
from .ws import connect_websocket

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


class RealtimeWsMessageType(Enum):
    """Normalized WebSocket message types."""

    TEXT = "text"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class RealtimeWsMessage:
    """Normalized WebSocket message payload."""

    type: RealtimeWsMessageType
    data: str | None = None
    close_code: int | None = None


class RealtimeWsClient:
    """Wrapper around the websockets library for the realtime transport."""

    def __init__(self) -> None:
        self._ws: ClientConnection | None = None

    async def connect(
        self,
        url: str,
        *,
        ping_interval: int | None = None,
        timeout: float = 15.0,
    ) -> None:
        """Connect to the realtime websocket."""
        self._ws = await connect_websocket(
            url,
            ping_interval=ping_interval,
            timeout=timeout,
        )

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close the websocket connection."""
        if self._ws is not None:
            await self._ws.close(code=code, reason=reason)

    async def send_json(self, payload: dict[str, Any]) -> None:
        """Send a JSON payload to the websocket."""
        if self._ws is None:
            raise RealtimeConnectionError("WebSocket is not connected")
        try:
            await self._ws.send(json.dumps(payload))
        except (ConnectionClosed, WebSocketException) as err:
            raise RealtimeConnectionError("WebSocket send failed") from err

    def __aiter__(self) -> AsyncIterator[RealtimeWsMessage]:
        if self._ws is None:
            raise RealtimeConnectionError("WebSocket is not connected")
        return self._iter_messages()

    async def _iter_messages(self) -> AsyncIterator[RealtimeWsMessage]:
        if self._ws is None:
            raise RealtimeConnectionError("WebSocket is not connected")

        try:
            async for msg in self._ws:
                normalized = self._normalize_message(msg)
                if normalized is None:
                    continue
                yield normalized
        except ConnectionClosed as err:
            code = err.rcvd.code if err.rcvd is not None else None
            yield RealtimeWsMessage(
                type=RealtimeWsMessageType.CLOSED, close_code=code
            )
        except Exception:
            yield RealtimeWsMessage(type=RealtimeWsMessageType.ERROR)
        else:
            # Normal iteration completion means the peer closed gracefully.
            yield RealtimeWsMessage(type=RealtimeWsMessageType.CLOSED)

    @staticmethod
    def _normalize_message(msg: Any) -> RealtimeWsMessage | None:
        """Normalize raw frames into RealtimeWsMessage, skipping binary ones."""
        if isinstance(msg, (bytes, bytearray, memoryview)):
            return None
        if isinstance(msg, str):
            return RealtimeWsMessage(RealtimeWsMessageType.TEXT, msg)
        return RealtimeWsMessage(RealtimeWsMessageType.TEXT, str(msg))


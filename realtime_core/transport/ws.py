"""WebSocket helpers for the realtime transport."""

from __future__ import annotations

import asyncio

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    InvalidHandshake,
    InvalidURI,
    WebSocketException,
)

from ..errors import (
    RealtimeConnectionError,
    RealtimeHandshakeError,
    RealtimeTimeout,
)


async def connect_websocket(
    url: str,
    *,
    ping_interval: int | None = None,
    timeout: float = 15.0,
) -> ClientConnection:
    """Connect to a realtime WebSocket endpoint.

    Protocol-level heartbeats replace websocket pings, so ping_interval is
    disabled unless asked for.

    Args:
        url: Full ws:// or wss:// endpoint URL including query parameters
        ping_interval: Interval for ping frames
        timeout: Connection timeout
    """
    try:
        return await asyncio.wait_for(
            websockets.connect(
                url,
                ping_interval=ping_interval,
                close_timeout=5,
                max_size=None,
            ),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise RealtimeTimeout("WebSocket connection timed out") from err
    except (InvalidHandshake, InvalidURI) as err:
        raise RealtimeHandshakeError("WebSocket handshake failed") from err
    except (OSError, WebSocketException) as err:
        raise RealtimeConnectionError("WebSocket connection failed") from err

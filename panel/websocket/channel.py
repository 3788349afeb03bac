"""
WebSocket push channel.

Frames are JSON text messages shaped like:
    {"type": "nuevo_pedido", "payload": {...}, "timestamp": "2025-01-01T12:00:00Z"}
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, WebSocketException

from panel.exceptions import ChannelConnectError

logger = logging.getLogger(__name__)


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with a Z suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def decode_frame(data: str | bytes) -> tuple[str, Any] | None:
    """Parse one frame into (event, payload). Returns None for frames to skip."""
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    try:
        message = json.loads(data)
    except json.JSONDecodeError:
        logger.warning("Invalid JSON frame on push channel")
        return None

    if not isinstance(message, dict) or not message.get("type"):
        logger.debug("Frame without type ignored: %r", message)
        return None
    return message["type"], message.get("payload")


class PushChannel:
    """One open WebSocket connection to the backend's order feed."""

    def __init__(self, connection: ClientConnection):
        self._connection = connection

    @classmethod
    async def open(cls, url: str, token: str, timeout: float = 20.0) -> "PushChannel":
        """
        Connect and authenticate with the bearer token.

        Raises ChannelConnectError for any handshake, DNS, socket or
        timeout failure.
        """
        logger.debug("Opening push channel %s", url)
        try:
            connection = await connect(
                url,
                additional_headers={"Authorization": f"Bearer {token}"},
                open_timeout=timeout,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise ChannelConnectError(detail=f"{type(e).__name__}: {e}") from e
        logger.info("Push channel connected to %s", url)
        return cls(connection)

    async def events(self) -> AsyncIterator[tuple[str, Any]]:
        """
        Yield (event, payload) pairs until the connection closes.

        Ends normally when the server closes cleanly; raises
        ChannelConnectError when the connection drops.
        """
        try:
            async for data in self._connection:
                frame = decode_frame(data)
                if frame is not None:
                    yield frame
        except ConnectionClosedError as e:
            code = e.rcvd.code if e.rcvd is not None else None
            raise ChannelConnectError(detail=f"connection dropped (code={code})") from e

    async def emit(self, event: str, payload: dict | None = None) -> None:
        message = {"type": event, "payload": payload or {}, "timestamp": utc_timestamp()}
        try:
            await self._connection.send(json.dumps(message))
        except ConnectionClosed as e:
            raise ChannelConnectError(detail=f"cannot send {event}: connection closed") from e

    async def close(self) -> None:
        await self._connection.close()

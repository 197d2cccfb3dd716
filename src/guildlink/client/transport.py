"""Duplex transport used by the gateway session.

The session only talks to the :class:`Transport` protocol; the websocket
implementation below is the production adapter. Inbound traffic is pushed to
three callbacks: one per received message, one when the stream ends, and one
when the remote host drops the connection with an error.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Any, Awaitable, Callable, Optional, Protocol

import websockets

from guildlink.client.errors import TransportClosedError

logger = logging.getLogger(__name__)

DataCallback = Callable[[Any], Awaitable[None]]
EndCallback = Callable[[], Awaitable[None]]
DisconnectCallback = Callable[[str], Awaitable[None]]


class Transport(Protocol):
    @property
    def is_open(self) -> bool:
        ...

    async def connect(self, url: str) -> None:
        ...

    async def write(self, text: str) -> None:
        ...

    async def close(self) -> None:
        ...


TransportFactory = Callable[[DataCallback, EndCallback, DisconnectCallback], Transport]


class WebSocketTransport:
    """Websocket adapter that forwards inbound messages to callbacks."""

    def __init__(
        self,
        on_data: DataCallback,
        on_end: EndCallback,
        on_host_disconnect: DisconnectCallback,
        *,
        max_size: Optional[int] = 2**22,
    ) -> None:
        self._on_data = on_data
        self._on_end = on_end
        self._on_host_disconnect = on_host_disconnect
        self._max_size = max_size
        self._ws: Any = None
        self._reader: asyncio.Task[None] | None = None
        self._closing = False

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._closing

    async def connect(self, url: str) -> None:
        if self._ws is not None:
            raise RuntimeError("transport already connected")
        logger.debug("Opening websocket %s", url)
        self._ws = await websockets.connect(url, max_size=self._max_size)
        self._closing = False
        self._reader = asyncio.create_task(self._read_loop(self._ws))

    async def write(self, text: str) -> None:
        ws = self._ws
        if ws is None or self._closing:
            raise TransportClosedError("transport is not open")
        try:
            await ws.send(text)
        except websockets.exceptions.ConnectionClosed as exc:
            raise TransportClosedError(f"transport closed during write: {exc}") from exc

    async def close(self) -> None:
        """Close the websocket; calling this on a closed transport is a no-op."""

        ws = self._ws
        if ws is None or self._closing:
            return
        self._closing = True
        with suppress(Exception):
            await ws.close()
        reader = self._reader
        if reader is not None and reader is not asyncio.current_task():
            with suppress(asyncio.CancelledError):
                await reader

    async def _read_loop(self, ws: Any) -> None:
        try:
            async for message in ws:
                try:
                    await self._on_data(message)
                except Exception:
                    logger.exception("Transport data callback failed")
        except websockets.exceptions.ConnectionClosedError as exc:
            if not self._closing:
                try:
                    await self._on_host_disconnect(str(exc))
                except Exception:
                    logger.exception("Transport disconnect callback failed")
        except Exception:
            logger.exception("Transport read loop failed")
        finally:
            self._closing = True
            try:
                await self._on_end()
            except Exception:
                logger.exception("Transport end callback failed")

from __future__ import annotations

import asyncio

import pytest

websockets = pytest.importorskip("websockets")

from guildlink.client.errors import TransportClosedError
from guildlink.client.transport import WebSocketTransport


class _Recorder:
    def __init__(self) -> None:
        self.data = []
        self.ended = asyncio.Event()
        self.disconnects = []

    async def on_data(self, raw) -> None:
        self.data.append(raw)

    async def on_end(self) -> None:
        self.ended.set()

    async def on_host_disconnect(self, reason: str) -> None:
        self.disconnects.append(reason)


async def _serve(handler):
    server = await websockets.serve(handler, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    return server, f"ws://127.0.0.1:{port}"


def test_receives_frames_then_end_of_stream() -> None:
    async def handler(ws):
        await ws.send('{"op":10,"d":{"heartbeat_interval":45000}}')
        await ws.close()

    async def scenario():
        server, url = await _serve(handler)
        try:
            rec = _Recorder()
            transport = WebSocketTransport(rec.on_data, rec.on_end, rec.on_host_disconnect)
            await transport.connect(url)
            await asyncio.wait_for(rec.ended.wait(), timeout=5.0)

            assert rec.data == ['{"op":10,"d":{"heartbeat_interval":45000}}']
            assert rec.disconnects == []
            assert not transport.is_open
            with pytest.raises(TransportClosedError):
                await transport.write("{}")
            await transport.close()
        finally:
            server.close()
            await server.wait_closed()

    asyncio.run(scenario())


def test_error_close_reports_host_disconnect() -> None:
    async def handler(ws):
        await ws.close(code=4000, reason="unknown error")

    async def scenario():
        server, url = await _serve(handler)
        try:
            rec = _Recorder()
            transport = WebSocketTransport(rec.on_data, rec.on_end, rec.on_host_disconnect)
            await transport.connect(url)
            await asyncio.wait_for(rec.ended.wait(), timeout=5.0)
            assert len(rec.disconnects) == 1
            assert "4000" in rec.disconnects[0]
        finally:
            server.close()
            await server.wait_closed()

    asyncio.run(scenario())


def test_write_and_double_close() -> None:
    received = []

    async def handler(ws):
        async for message in ws:
            received.append(message)

    async def scenario():
        server, url = await _serve(handler)
        try:
            rec = _Recorder()
            transport = WebSocketTransport(rec.on_data, rec.on_end, rec.on_host_disconnect)
            await transport.connect(url)
            assert transport.is_open
            await transport.write('{"op":1,"d":null,"s":null,"t":null}')
            await transport.close()
            await transport.close()

            assert rec.ended.is_set()
            assert rec.disconnects == []
            assert not transport.is_open
        finally:
            server.close()
            await server.wait_closed()

    asyncio.run(scenario())
    assert received == ['{"op":1,"d":null,"s":null,"t":null}']

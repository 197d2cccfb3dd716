from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional, Tuple

import pytest

from guildlink.client.config import GatewayConfig
from guildlink.client.errors import TransportClosedError
from guildlink.client.gateway_client import GatewayClient
from guildlink.client.session import GatewaySession
from guildlink.protocol import IdentifyProperties


class FakeTransport:
    """In-memory transport recording outbound frames."""

    def __init__(self, registry: "FakeTransportFactory", on_data, on_end, on_host_disconnect) -> None:
        self._registry = registry
        self._on_data = on_data
        self._on_end = on_end
        self._on_host_disconnect = on_host_disconnect
        self.url: Optional[str] = None
        self.sent: List[Dict[str, Any]] = []
        self.open = False
        self.close_calls = 0

    @property
    def is_open(self) -> bool:
        return self.open

    async def connect(self, url: str) -> None:
        self.url = url
        self.open = True
        self._registry.opened.append(self)
        self._registry.max_open = max(self._registry.max_open, self._registry.open_count())

    async def write(self, text: str) -> None:
        if not self.open:
            raise TransportClosedError("fake transport is closed")
        self.sent.append(json.loads(text))

    async def close(self) -> None:
        self.close_calls += 1
        if not self.open:
            return
        self.open = False
        await self._on_end()

    # --- test drivers ---
    async def feed(self, frame: Any) -> None:
        raw = frame if isinstance(frame, (str, bytes)) else json.dumps(frame)
        await self._on_data(raw)

    async def end(self) -> None:
        self.open = False
        await self._on_end()

    async def host_disconnect(self, reason: str) -> None:
        await self._on_host_disconnect(reason)
        await self.end()

    def ops(self) -> List[int]:
        return [frame["op"] for frame in self.sent]


class FakeTransportFactory:
    def __init__(self) -> None:
        self.created: List[FakeTransport] = []
        self.opened: List[FakeTransport] = []
        self.max_open = 0

    def __call__(self, on_data, on_end, on_host_disconnect) -> FakeTransport:
        transport = FakeTransport(self, on_data, on_end, on_host_disconnect)
        self.created.append(transport)
        return transport

    def open_count(self) -> int:
        return sum(1 for t in self.created if t.open)

    @property
    def latest(self) -> FakeTransport:
        return self.opened[-1]


class FakeRequestClient:
    """Scripted request client; responses may be values, exceptions or gates."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str, Any]] = []
        self.responses: Dict[Tuple[str, str], Any] = {
            ("GET", "/gateway/bot"): {"url": "wss://gateway.test", "shards": 1},
            ("GET", "/gateway"): {"url": "wss://gateway.test"},
        }
        self.gates: List[asyncio.Event] = []

    async def request(self, method: str, path: str, body: Any = None) -> Any:
        self.calls.append((method, path, body))
        if self.gates:
            gate = self.gates.pop(0)
            await gate.wait()
        response = self.responses.get((method, path))
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(body)
        return response


@pytest.fixture
def gateway_config() -> GatewayConfig:
    return GatewayConfig(token="secret", intents=513, command_prefix="!")


@pytest.fixture
def fake_rest() -> FakeRequestClient:
    return FakeRequestClient()


@pytest.fixture
def transports() -> FakeTransportFactory:
    return FakeTransportFactory()


@pytest.fixture
def session(gateway_config, fake_rest, transports) -> GatewaySession:
    return GatewaySession(
        gateway_config,
        fake_rest,
        transport_factory=transports,
        properties=IdentifyProperties(os="linux"),
    )


@pytest.fixture
def client(gateway_config, fake_rest, transports) -> GatewayClient:
    return GatewayClient(gateway_config, request_client=fake_rest, transport_factory=transports)

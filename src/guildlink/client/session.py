"""Gateway session state machine.

One :class:`GatewaySession` owns one logical session with the gateway:

``BOOTSTRAPPING`` (endpoint discovery) -> ``CONNECTING`` (transport open)
-> ``AWAITING_HELLO`` -> ``HANDSHAKING`` (identify or resume sent) ->
``ACTIVE`` (first dispatch received).

Liveness is tracked with a strict one-outstanding-heartbeat policy: a tick
that finds the previous heartbeat unacknowledged reconnects instead of
sending another one. Reconnects always resume; only :meth:`reset` forces
the next handshake to identify.

Everything runs on a single event loop. Frames are handled one at a time by
the transport reader, and connect attempts are serialized so two transports
never exist for the same session.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from contextlib import suppress
from typing import Any, Callable, Mapping, Optional, Set

from guildlink.client.config import GatewayConfig
from guildlink.client.dispatch import DispatchRouter
from guildlink.client.errors import GatewayError, TransportClosedError
from guildlink.client.heartbeat import HeartbeatMonitor
from guildlink.client.rest import RequestClient
from guildlink.client.state import ConnectionState, SessionState
from guildlink.client.transport import Transport, TransportFactory, WebSocketTransport
from guildlink.protocol import (
    FrameDecodeError,
    GatewayFrame,
    IdentifyProperties,
    Opcode,
    build_heartbeat,
    build_identify,
    build_resume,
    encode_frame,
    opcode_name,
    parse_frame,
)

logger = logging.getLogger(__name__)


def _enable_debug_logger() -> None:
    has_local = any(getattr(h, "_guildlink_local", False) for h in logger.handlers)
    if not has_local:
        handler = logging.StreamHandler()
        fmt = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
        handler.setFormatter(logging.Formatter(fmt))
        handler.setLevel(logging.DEBUG)
        setattr(handler, "_guildlink_local", True)
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

# states in which a new transport is being formed
_BOOTSTRAP_STATES = (ConnectionState.BOOTSTRAPPING, ConnectionState.CONNECTING)

InvalidSessionHook = Callable[[bool], Any]


class GatewaySession:
    def __init__(
        self,
        config: GatewayConfig,
        request_client: RequestClient,
        *,
        transport_factory: Optional[TransportFactory] = None,
        properties: Optional[IdentifyProperties] = None,
    ) -> None:
        if config.debug:
            _enable_debug_logger()
        self.config = config
        self._rest = request_client
        self._transport_factory: TransportFactory = transport_factory or WebSocketTransport
        self._properties = properties or IdentifyProperties()
        self.state = SessionState()
        self.router = DispatchRouter(self.state, command_prefix=config.command_prefix)
        self.heartbeat = HeartbeatMonitor(self.heartbeat_tick)
        self._transport: Optional[Transport] = None
        self._connect_lock = asyncio.Lock()
        self._connect_tasks: Set[asyncio.Task[None]] = set()
        self._invalid_session_hook: Optional[InvalidSessionHook] = None

    # --- Read-only views ----------------------------------------------------------
    @property
    def connection_state(self) -> ConnectionState:
        return self.state.connection_state

    @property
    def session_id(self) -> Optional[str]:
        return self.state.session_id

    @property
    def last_sequence(self) -> Optional[int]:
        return self.state.last_sequence

    @property
    def resuming(self) -> bool:
        return self.state.resuming

    @property
    def heartbeat_acknowledged(self) -> bool:
        return self.state.heartbeat_acknowledged

    @property
    def transport(self) -> Optional[Transport]:
        return self._transport

    # --- Lifecycle ----------------------------------------------------------------
    async def connect(self) -> None:
        """Discover the gateway endpoint and open a fresh transport.

        Any previous transport is closed before the new one is opened. A
        discovery or transport failure propagates to the caller.
        """

        async with self._connect_lock:
            try:
                await self._connect_locked()
            except BaseException:
                if self.state.connection_state in _BOOTSTRAP_STATES:
                    self.state.connection_state = ConnectionState.DISCONNECTED
                raise

    async def _connect_locked(self) -> None:
        self.state.connection_state = ConnectionState.BOOTSTRAPPING
        logger.info("Requesting gateway endpoint")
        gateway = await self._rest.request("GET", self.config.discovery_path)
        if not isinstance(gateway, Mapping) or not gateway.get("url"):
            raise GatewayError("gateway discovery returned no url")
        self.state.shard_count = gateway.get("shards")

        previous = self._transport
        if previous is not None:
            self._transport = None
            logger.debug("Closing previous transport before reconnecting")
            await previous.close()

        self.state.connection_state = ConnectionState.CONNECTING
        url = self.config.gateway_url(str(gateway["url"]))
        transport = self._make_transport()
        logger.info("Connecting to '%s'", url)
        await transport.connect(url)
        self._transport = transport
        self.state.connection_state = ConnectionState.AWAITING_HELLO

    def _make_transport(self) -> Transport:
        transport: Optional[Transport] = None

        async def _on_data(raw: Any) -> None:
            await self._receive(transport, raw)

        async def _on_end() -> None:
            await self._on_transport_end(transport)

        async def _on_host_disconnect(reason: str) -> None:
            self._on_transport_host_disconnect(transport, reason)

        transport = self._transport_factory(_on_data, _on_end, _on_host_disconnect)
        return transport

    def reconnect(self) -> asyncio.Task[None]:
        """Begin reconnecting as a resume of the current session.

        Returns the scheduled connect task; frame and timer callers do not
        wait on it.
        """

        self.state.resuming = True
        self.heartbeat.cancel()
        self.state.heartbeat_acknowledged = True
        logger.info(
            "Reconnecting to gateway; session=%s seq=%s",
            self.state.session_id,
            self.state.last_sequence,
        )
        return self._schedule_connect()

    def reidentify(self) -> asyncio.Task[None]:
        """Drop the resumable session and reconnect with a fresh Identify.

        This is the unrecoverable-session outcome; an invalid-session hook
        can call it when the gateway reports the session as not resumable.
        """

        self.reset()
        self.heartbeat.cancel()
        self.state.heartbeat_acknowledged = True
        logger.info("Reconnecting to gateway with a new session")
        return self._schedule_connect()

    def _schedule_connect(self) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(self._reconnect_connect())
        self._connect_tasks.add(task)
        task.add_done_callback(self._connect_tasks.discard)
        return task

    async def _reconnect_connect(self) -> None:
        try:
            await self.connect()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Gateway reconnect failed")

    def reset(self) -> None:
        """Forget the resumable session so the next handshake identifies."""

        self.state.clear_resume_state()

    def on_invalid_session(self, hook: Optional[InvalidSessionHook]) -> None:
        """Install a hook receiving the server's resumable flag on op 9."""

        self._invalid_session_hook = hook

    async def close(self) -> None:
        self.heartbeat.cancel()
        for task in list(self._connect_tasks):
            task.cancel()
        for task in list(self._connect_tasks):
            with suppress(asyncio.CancelledError):
                await task
        transport = self._transport
        self._transport = None
        if transport is not None:
            await transport.close()
        self.state.connection_state = ConnectionState.DISCONNECTED

    # --- Inbound ------------------------------------------------------------------
    async def _receive(self, source: Optional[Transport], raw: Any) -> None:
        if source is not self._transport:
            logger.debug("Dropping frame from a stale transport")
            return
        if self.state.connection_state in _BOOTSTRAP_STATES:
            logger.debug("Dropping frame received while %s", self.state.connection_state.value)
            return
        await self.handle_frame(raw)

    async def handle_frame(self, raw: str | bytes | GatewayFrame) -> None:
        """Interpret one inbound frame; malformed frames are logged and dropped."""

        if isinstance(raw, GatewayFrame):
            frame = raw
        else:
            try:
                frame = parse_frame(raw)
            except FrameDecodeError as exc:
                logger.warning("Couldn't handle a gateway object: %s", exc)
                logger.debug("Dropped payload: %.512r", raw)
                return
        try:
            await self._handle_gateway_frame(frame)
        except Exception:
            logger.exception("Gateway frame op=%s handling failed", frame.op)

    async def _handle_gateway_frame(self, frame: GatewayFrame) -> None:
        op = frame.op
        logger.debug("Received OP %s: %s", op, opcode_name(op))

        if op == Opcode.DISPATCH:
            if frame.s is not None:
                self.state.last_sequence = frame.s
            if self.state.connection_state is ConnectionState.HANDSHAKING:
                self.state.connection_state = ConnectionState.ACTIVE
            await self.router.route(frame.t, frame.d)
            return

        if op == Opcode.HEARTBEAT:
            await self._send_heartbeat()
            return

        if op == Opcode.RECONNECT:
            self.reconnect()
            return

        if op == Opcode.INVALID_SESSION:
            await self._handle_invalid_session(frame)
            return

        if op == Opcode.HELLO:
            data = frame.d if isinstance(frame.d, Mapping) else {}
            interval = data.get("heartbeat_interval")
            if isinstance(interval, bool) or not isinstance(interval, (int, float)) or interval <= 0:
                logger.warning("Hello without a usable heartbeat_interval: %r", interval)
                return
            await self.handshake(interval)
            return

        if op == Opcode.HEARTBEAT_ACK:
            self.state.heartbeat_acknowledged = True
            return

        logger.debug("Ignoring OP %s", op)

    async def _handle_invalid_session(self, frame: GatewayFrame) -> None:
        resumable = bool(frame.d)
        logger.warning("Session invalidated by gateway; resumable=%s", resumable)
        # the server has usually closed the socket already; close() tolerates that
        transport = self._transport
        if transport is not None:
            await transport.close()
        hook = self._invalid_session_hook
        if hook is not None:
            try:
                result = hook(resumable)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Invalid session hook failed")

    async def _on_transport_end(self, source: Optional[Transport]) -> None:
        if source is not self._transport:
            logger.debug("End of stale transport")
            return
        logger.info("End of socket")
        self.heartbeat.cancel()
        if self.state.connection_state not in _BOOTSTRAP_STATES:
            self.state.connection_state = ConnectionState.DISCONNECTED

    def _on_transport_host_disconnect(self, source: Optional[Transport], reason: str) -> None:
        if source is not self._transport:
            return
        logger.error("Socket disconnected by host: %s", reason)

    # --- Handshake and heartbeats -------------------------------------------------
    async def handshake(self, interval_ms: float) -> None:
        """Arm the heartbeat timer and send Identify or Resume."""

        self.heartbeat.arm(interval_ms / 1000.0)
        logger.info("Heartbeat set to %sms", interval_ms)

        if not self.state.resuming:
            frame = build_identify(
                token=self.config.token,
                intents=self.config.intents,
                properties=self._properties,
                large_threshold=self.config.large_threshold,
            )
        else:
            if not self.state.can_resume:
                logger.warning("Resuming without a session id; the gateway will likely invalidate it")
            frame = build_resume(
                token=self.config.token,
                session_id=self.state.session_id,
                seq=self.state.last_sequence,
            )
        self.state.connection_state = ConnectionState.HANDSHAKING
        await self.send_frame(frame)

    async def heartbeat_tick(self) -> None:
        """One heartbeat interval elapsed."""

        if not self.state.heartbeat_acknowledged:
            logger.warning("No heartbeat ACK. Reconnecting")
            self.reconnect()
            return
        await self._send_heartbeat()

    async def _send_heartbeat(self) -> None:
        self.state.heartbeat_acknowledged = False
        await self.send_frame(build_heartbeat(self.state.last_sequence))

    # --- Outbound -----------------------------------------------------------------
    async def send_frame(self, frame: GatewayFrame) -> None:
        transport = self._transport
        if transport is None:
            raise TransportClosedError("gateway transport is not connected")
        logger.debug("Sending OP %s: %s", frame.op, opcode_name(frame.op))
        await transport.write(encode_frame(frame))

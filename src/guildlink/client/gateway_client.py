"""Public action surface over a :class:`GatewaySession`."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Mapping, Optional

from guildlink.client.config import GatewayConfig
from guildlink.client.dispatch import CommandCallback, EventCallback, GuildCache
from guildlink.client.errors import RequestError
from guildlink.client.rest import RequestClient, RestClient
from guildlink.client.session import GatewaySession
from guildlink.client.state import ConnectionState
from guildlink.client.transport import TransportFactory
from guildlink.protocol import (
    VOICE_CHANNEL_TYPES,
    build_status_update,
    build_voice_state_update,
)

logger = logging.getLogger(__name__)


class GatewayClient:
    """Keeps a gateway session alive and exposes application-level actions.

    Usage::

        client = GatewayClient(load_gateway_config())

        @client.register_command("ping")
        async def ping(message, args):
            await client.create_message(message["channel_id"], "pong")

        await client.run_forever()
    """

    def __init__(
        self,
        config: GatewayConfig,
        *,
        request_client: Optional[RequestClient] = None,
        transport_factory: Optional[TransportFactory] = None,
    ) -> None:
        self.config = config
        self._owns_rest = request_client is None
        if request_client is None:
            request_client = RestClient(
                config.token,
                is_bot=config.is_bot,
                base_url=config.api_base,
                timeout_s=config.request_timeout_s,
            )
        self._rest = request_client
        self.session = GatewaySession(config, request_client, transport_factory=transport_factory)
        self._closed: Optional[asyncio.Event] = None

    # --- Cached state -------------------------------------------------------------
    @property
    def me(self) -> Optional[Mapping[str, Any]]:
        return self.session.state.me

    @property
    def guilds(self) -> GuildCache:
        return self.session.router.guilds

    @property
    def session_id(self) -> Optional[str]:
        return self.session.session_id

    @property
    def last_sequence(self) -> Optional[int]:
        return self.session.last_sequence

    @property
    def shard_count(self) -> Optional[int]:
        return self.session.state.shard_count

    @property
    def state(self) -> ConnectionState:
        return self.session.connection_state

    # --- Registration -------------------------------------------------------------
    def on_event(self, name: str, callback: Optional[EventCallback] = None) -> Any:
        """Register ``callback`` for a dispatch event; usable as a decorator.

        Names are case-insensitive and accept spaces or underscores between
        words. A later registration for the same name replaces the earlier one.
        """

        if callback is not None:
            self.session.router.on_event(name, callback)
            return callback

        def decorator(func: EventCallback) -> EventCallback:
            self.session.router.on_event(name, func)
            return func

        return decorator

    def register_command(self, word: str, callback: Optional[CommandCallback] = None) -> Any:
        """Run ``callback(message, remainder)`` for messages starting with prefix + ``word``."""

        if callback is not None:
            self.session.router.register_command(word, callback)
            return callback

        def decorator(func: CommandCallback) -> CommandCallback:
            self.session.router.register_command(word, func)
            return func

        return decorator

    def on_invalid_session(self, hook: Optional[Callable[[bool], Any]]) -> None:
        self.session.on_invalid_session(hook)

    # --- Lifecycle ----------------------------------------------------------------
    async def start(self) -> None:
        await self.session.connect()

    def reconnect(self) -> asyncio.Task[None]:
        return self.session.reconnect()

    async def run_forever(self) -> None:
        """Connect and block until :meth:`close` is called."""

        self._closed = asyncio.Event()
        await self.start()
        await self._closed.wait()

    async def close(self) -> None:
        await self.session.close()
        if self._owns_rest and isinstance(self._rest, RestClient):
            await self._rest.aclose()
        if self._closed is not None:
            self._closed.set()

    # --- Actions ------------------------------------------------------------------
    async def status_update(
        self,
        status: str,
        activity: Optional[Mapping[str, Any]] = None,
        since: Optional[int] = None,
        afk: bool = False,
    ) -> None:
        """Send a presence update; ``since`` is the idle start in unix ms or None."""

        await self.session.send_frame(build_status_update(status, activity, since, afk))

    async def create_message(self, channel_id: str, content: str) -> Any:
        """Post a message to a channel and return the created message object."""

        return await self._rest.request(
            "POST",
            f"/channels/{channel_id}/messages",
            {"content": content},
        )

    async def join_voice_channel(
        self,
        channel_id: str,
        self_mute: bool = False,
        self_deaf: bool = False,
    ) -> bool:
        """Join a voice channel; returns False (with a warning) when not possible."""

        try:
            channel = await self._rest.request("GET", f"/channels/{channel_id}")
        except RequestError as exc:
            logger.warning("join_voice_channel called with an invalid channel ID: %s", exc)
            return False
        if not isinstance(channel, Mapping) or not channel:
            logger.warning("join_voice_channel called with an invalid channel ID: %s", channel_id)
            return False
        if channel.get("type") not in VOICE_CHANNEL_TYPES:
            logger.warning("join_voice_channel called on a non-voice channel: %s", channel_id)
            return False

        await self.session.send_frame(
            build_voice_state_update(
                guild_id=channel.get("guild_id"),
                channel_id=str(channel_id),
                self_mute=self_mute,
                self_deaf=self_deaf,
            )
        )
        return True

    async def leave_voice_channel(self, guild_id: str) -> None:
        """Leave whatever voice channel is connected in ``guild_id``.

        A client can only be in one voice channel per guild, so the channel id
        is not needed.
        """

        await self.session.send_frame(
            build_voice_state_update(guild_id=str(guild_id), channel_id=None)
        )

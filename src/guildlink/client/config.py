"""Environment-derived configuration for the gateway client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from guildlink.protocol.opcodes import DEFAULT_INTENTS
from guildlink.utils.env import env_bool, env_float, env_int, env_str

DEFAULT_API_BASE = "https://discord.com/api/v10"


@dataclass(frozen=True)
class GatewayConfig:
    """Resolved settings for ``GatewayClient``."""

    token: str = ""
    intents: int = int(DEFAULT_INTENTS)
    is_bot: bool = True
    command_prefix: str = "!"
    api_base: str = DEFAULT_API_BASE
    gateway_version: int = 10
    gateway_encoding: str = "json"
    large_threshold: int = 100
    request_timeout_s: float = 30.0
    debug: bool = False

    @property
    def discovery_path(self) -> str:
        return "/gateway/bot" if self.is_bot else "/gateway"

    def gateway_url(self, base: str) -> str:
        """Append the version/encoding query to a discovered gateway URL."""

        sep = "&" if "?" in base else "?"
        return f"{base}{sep}v={self.gateway_version}&encoding={self.gateway_encoding}"


def load_gateway_config(env: Optional[Mapping[str, str]] = None) -> GatewayConfig:
    """Resolve ``GUILDLINK_*`` environment variables into a ``GatewayConfig``."""

    prefix = env_str("GUILDLINK_COMMAND_PREFIX", "!", env) or "!"
    large_threshold = env_int("GUILDLINK_LARGE_THRESHOLD", 100, env)
    if not 50 <= large_threshold <= 250:
        large_threshold = 100
    timeout_s = env_float("GUILDLINK_REQUEST_TIMEOUT_S", 30.0, env)
    if timeout_s <= 0:
        timeout_s = 30.0

    return GatewayConfig(
        token=(env_str("GUILDLINK_TOKEN", "", env) or "").strip(),
        intents=max(0, env_int("GUILDLINK_INTENTS", int(DEFAULT_INTENTS), env)),
        is_bot=env_bool("GUILDLINK_IS_BOT", True, env),
        command_prefix=prefix,
        api_base=(env_str("GUILDLINK_API_BASE", DEFAULT_API_BASE, env) or DEFAULT_API_BASE).rstrip("/"),
        gateway_version=env_int("GUILDLINK_GATEWAY_VERSION", 10, env),
        gateway_encoding=(env_str("GUILDLINK_GATEWAY_ENCODING", "json", env) or "json").lower(),
        large_threshold=large_threshold,
        request_timeout_s=float(timeout_s),
        debug=env_bool("GUILDLINK_DEBUG", False, env),
    )

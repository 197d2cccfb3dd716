"""Gateway opcode table and capability flags.

The integer values are part of the wire contract and are shared by both
directions of traffic; some opcodes are only ever sent, others only received.
"""

from __future__ import annotations

from enum import IntEnum, IntFlag
from typing import Dict


class Opcode(IntEnum):
    DISPATCH = 0
    HEARTBEAT = 1
    IDENTIFY = 2
    STATUS_UPDATE = 3
    VOICE_STATE_UPDATE = 4
    VOICE_SERVER_PING = 5
    RESUME = 6
    RECONNECT = 7
    REQUEST_GUILD_MEMBERS = 8
    INVALID_SESSION = 9
    HELLO = 10
    HEARTBEAT_ACK = 11


OPCODE_NAMES: Dict[int, str] = {
    Opcode.DISPATCH: "Dispatch",
    Opcode.HEARTBEAT: "Heartbeat",
    Opcode.IDENTIFY: "Identify",
    Opcode.STATUS_UPDATE: "Status Update",
    Opcode.VOICE_STATE_UPDATE: "Voice State Update",
    Opcode.VOICE_SERVER_PING: "Voice Server Ping",
    Opcode.RESUME: "Resume",
    Opcode.RECONNECT: "Reconnect",
    Opcode.REQUEST_GUILD_MEMBERS: "Request Guild Members",
    Opcode.INVALID_SESSION: "Invalid Session",
    Opcode.HELLO: "Hello",
    Opcode.HEARTBEAT_ACK: "Heartbeat ACK",
}


def opcode_name(op: int) -> str:
    """Return the human name for ``op`` or ``"Unknown"``."""

    return OPCODE_NAMES.get(op, "Unknown")


class Intents(IntFlag):
    """Event categories a session asks the gateway to deliver."""

    NONE = 0
    GUILDS = 1 << 0
    GUILD_MEMBERS = 1 << 1
    GUILD_MODERATION = 1 << 2
    GUILD_EXPRESSIONS = 1 << 3
    GUILD_INTEGRATIONS = 1 << 4
    GUILD_WEBHOOKS = 1 << 5
    GUILD_INVITES = 1 << 6
    GUILD_VOICE_STATES = 1 << 7
    GUILD_PRESENCES = 1 << 8
    GUILD_MESSAGES = 1 << 9
    GUILD_MESSAGE_REACTIONS = 1 << 10
    GUILD_MESSAGE_TYPING = 1 << 11
    DIRECT_MESSAGES = 1 << 12
    DIRECT_MESSAGE_REACTIONS = 1 << 13
    DIRECT_MESSAGE_TYPING = 1 << 14
    MESSAGE_CONTENT = 1 << 15
    GUILD_SCHEDULED_EVENTS = 1 << 16


DEFAULT_INTENTS = (
    Intents.GUILDS
    | Intents.GUILD_MESSAGES
    | Intents.GUILD_VOICE_STATES
    | Intents.MESSAGE_CONTENT
)

# guild voice and stage voice
VOICE_CHANNEL_TYPES = frozenset({2, 13})

__all__ = [
    "DEFAULT_INTENTS",
    "Intents",
    "OPCODE_NAMES",
    "Opcode",
    "VOICE_CHANNEL_TYPES",
    "opcode_name",
]

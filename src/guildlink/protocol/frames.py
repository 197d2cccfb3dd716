"""Gateway frame shapes and builders.

Every frame on the wire is a JSON object with four logical fields: ``op``
(opcode), ``d`` (opcode-specific payload), ``s`` (sequence number, Dispatch
only) and ``t`` (event name, Dispatch only). Outbound frames always carry
``s`` and ``t`` as null.
"""

from __future__ import annotations

import json
import platform
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .opcodes import Opcode


class FrameDecodeError(ValueError):
    """Raised when an inbound payload is not a well-formed gateway frame."""


@dataclass(slots=True)
class GatewayFrame:
    op: int
    d: Any = None
    s: Optional[int] = None
    t: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"op": int(self.op), "d": self.d, "s": self.s, "t": self.t}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GatewayFrame":
        op = data.get("op")
        if isinstance(op, bool) or not isinstance(op, int):
            raise FrameDecodeError(f"frame 'op' must be an integer, got {op!r}")
        seq = data.get("s")
        if seq is not None and (isinstance(seq, bool) or not isinstance(seq, int)):
            raise FrameDecodeError(f"frame 's' must be an integer or null, got {seq!r}")
        name = data.get("t")
        if name is not None and not isinstance(name, str):
            raise FrameDecodeError(f"frame 't' must be a string or null, got {name!r}")
        return cls(op=op, d=data.get("d"), s=seq, t=name)


def parse_frame(raw: str | bytes | bytearray) -> GatewayFrame:
    """Decode one inbound text/binary message into a :class:`GatewayFrame`."""

    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FrameDecodeError("frame payload was not UTF-8") from exc
    try:
        data = json.loads(raw)
    except (TypeError, ValueError, RecursionError) as exc:
        raise FrameDecodeError("frame payload was not valid JSON") from exc
    if not isinstance(data, Mapping):
        raise FrameDecodeError("frame payload must be a JSON object")
    return GatewayFrame.from_dict(data)


def encode_frame(frame: GatewayFrame) -> str:
    return json.dumps(frame.to_dict(), separators=(",", ":"))


@dataclass(slots=True)
class Presence:
    status: str = "online"
    activity: Optional[Mapping[str, Any]] = None
    since: Optional[int] = None
    afk: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "since": self.since,
            "activity": dict(self.activity) if self.activity is not None else None,
            "status": self.status,
            "afk": bool(self.afk),
        }


@dataclass(slots=True)
class IdentifyProperties:
    os: str = field(default_factory=lambda: platform.system().lower() or "unknown")
    browser: str = "guildlink"
    device: str = "guildlink"

    def to_dict(self) -> Dict[str, str]:
        return {"os": self.os, "browser": self.browser, "device": self.device}


def build_heartbeat(last_sequence: Optional[int]) -> GatewayFrame:
    return GatewayFrame(op=Opcode.HEARTBEAT, d=last_sequence)


def build_identify(
    *,
    token: str,
    intents: int,
    properties: Optional[IdentifyProperties] = None,
    large_threshold: int = 100,
    presence: Optional[Presence] = None,
) -> GatewayFrame:
    """Identify frame establishing a brand-new session."""

    return GatewayFrame(
        op=Opcode.IDENTIFY,
        d={
            "token": token,
            "intents": int(intents),
            "properties": (properties or IdentifyProperties()).to_dict(),
            "compress": False,
            "large_threshold": int(large_threshold),
            "presence": (presence or Presence()).to_dict(),
        },
    )


def build_resume(*, token: str, session_id: Optional[str], seq: Optional[int]) -> GatewayFrame:
    """Resume frame reattaching to a previous session."""

    return GatewayFrame(
        op=Opcode.RESUME,
        d={"token": token, "session_id": session_id, "seq": seq},
    )


def build_status_update(
    status: str,
    activity: Optional[Mapping[str, Any]] = None,
    since: Optional[int] = None,
    afk: bool = False,
) -> GatewayFrame:
    presence = Presence(status=status, activity=activity, since=since, afk=afk)
    return GatewayFrame(op=Opcode.STATUS_UPDATE, d=presence.to_dict())


def build_voice_state_update(
    *,
    guild_id: str,
    channel_id: Optional[str],
    self_mute: bool = False,
    self_deaf: bool = False,
) -> GatewayFrame:
    return GatewayFrame(
        op=Opcode.VOICE_STATE_UPDATE,
        d={
            "guild_id": guild_id,
            "channel_id": channel_id,
            "self_mute": bool(self_mute),
            "self_deaf": bool(self_deaf),
        },
    )


__all__ = [
    "FrameDecodeError",
    "GatewayFrame",
    "IdentifyProperties",
    "Presence",
    "build_heartbeat",
    "build_identify",
    "build_resume",
    "build_status_update",
    "build_voice_state_update",
    "encode_frame",
    "parse_frame",
]

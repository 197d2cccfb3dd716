"""Mutable session aggregate shared by the state machine and dispatch router."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional


class ConnectionState(str, Enum):
    IDLE = "idle"
    BOOTSTRAPPING = "bootstrapping"
    CONNECTING = "connecting"
    AWAITING_HELLO = "awaiting_hello"
    HANDSHAKING = "handshaking"
    ACTIVE = "active"
    DISCONNECTED = "disconnected"


@dataclass
class SessionState:
    """Fields that survive a reconnect-as-resume.

    ``session_id`` and ``last_sequence`` are discarded only when a fresh
    identify is forced via :meth:`clear_resume_state`.
    """

    session_id: Optional[str] = None
    last_sequence: Optional[int] = None
    resuming: bool = False
    heartbeat_acknowledged: bool = True
    connection_state: ConnectionState = ConnectionState.IDLE
    me: Optional[Mapping[str, Any]] = None
    shard_count: Optional[int] = None

    @property
    def can_resume(self) -> bool:
        return self.session_id is not None

    def clear_resume_state(self) -> None:
        self.session_id = None
        self.last_sequence = None
        self.resuming = False

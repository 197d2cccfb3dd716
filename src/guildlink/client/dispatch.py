"""Routing of Dispatch (op 0) events to application callbacks.

Each normalized event name holds at most one callback, as does each command
word; registering again replaces the previous callback. Built-in handling
keeps the session aggregate and guild cache current for the events that carry
session or identity information.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Mapping, Optional

from guildlink.client.state import SessionState

logger = logging.getLogger(__name__)

READY_EVENT = "READY"
RESUMED_EVENT = "RESUMED"
GUILD_CREATE_EVENT = "GUILD_CREATE"
MESSAGE_CREATE_EVENT = "MESSAGE_CREATE"

EventCallback = Callable[[Any], Any]
CommandCallback = Callable[[Any, str], Any]


def normalize_event_name(name: str) -> str:
    """``"message create"``, ``"message-create"`` and ``"MESSAGE_CREATE"`` are equal."""

    return str(name).strip().upper().replace(" ", "_").replace("-", "_")


def normalize_command_word(word: str) -> str:
    return str(word).strip().lower()


@dataclass(frozen=True, slots=True)
class ParsedCommand:
    word: str
    remainder: str


def parse_command(content: Any, prefix: str) -> Optional[ParsedCommand]:
    """Split a prefixed message into its command word and remainder.

    The word is everything up to the first space, lower-cased. The remainder
    is everything after that space, unmodified, or ``""`` when the message
    has no space at all.
    """

    if not isinstance(content, str) or not prefix or not content.startswith(prefix):
        return None
    command = content[len(prefix):]
    word = command.split(" ")[0].lower()
    space = command.find(" ")
    remainder = "" if space < 0 else command[space + 1:]
    return ParsedCommand(word=word, remainder=remainder)


class GuildCache:
    """Guild snapshots keyed by id, as pushed by the gateway.

    Entries are only ever inserted or replaced; the HTTP API returns a less
    complete guild object, so the gateway copy is kept for the process
    lifetime.
    """

    def __init__(self) -> None:
        self._guilds: Dict[str, Mapping[str, Any]] = {}

    def upsert(self, guild: Mapping[str, Any]) -> bool:
        guild_id = guild.get("id") if isinstance(guild, Mapping) else None
        if guild_id is None:
            logger.warning("Guild announcement without an id; not cached")
            return False
        self._guilds[str(guild_id)] = guild
        return True

    def get(self, guild_id: str) -> Optional[Mapping[str, Any]]:
        return self._guilds.get(str(guild_id))

    def __contains__(self, guild_id: object) -> bool:
        return str(guild_id) in self._guilds

    def __len__(self) -> int:
        return len(self._guilds)

    def __iter__(self) -> Iterator[str]:
        return iter(self._guilds)


async def _invoke(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class DispatchRouter:
    def __init__(self, state: SessionState, *, command_prefix: str = "!") -> None:
        self._state = state
        self.command_prefix = command_prefix
        self.guilds = GuildCache()
        self._event_callbacks: Dict[str, EventCallback] = {}
        self._command_callbacks: Dict[str, CommandCallback] = {}

    def on_event(self, name: str, callback: EventCallback) -> None:
        self._event_callbacks[normalize_event_name(name)] = callback

    def register_command(self, word: str, callback: CommandCallback) -> None:
        self._command_callbacks[normalize_command_word(word)] = callback

    def event_callback(self, name: str) -> Optional[EventCallback]:
        return self._event_callbacks.get(normalize_event_name(name))

    def command_callback(self, word: str) -> Optional[CommandCallback]:
        return self._command_callbacks.get(normalize_command_word(word))

    async def route(self, event_name: Optional[str], payload: Any) -> None:
        """Run the registered callback for ``event_name`` then built-in effects."""

        if not event_name:
            logger.warning("Dispatch without an event name dropped")
            return
        logger.debug("Dispatch event: %s", event_name)

        callback = self._event_callbacks.get(event_name)
        if callback is not None:
            try:
                await _invoke(callback, payload)
            except Exception:
                logger.exception("Event callback for %s failed", event_name)

        if event_name == READY_EVENT:
            self._handle_ready(payload)
        elif event_name == GUILD_CREATE_EVENT:
            if isinstance(payload, Mapping):
                self.guilds.upsert(payload)
        elif event_name == MESSAGE_CREATE_EVENT:
            await self._handle_message(payload)
        elif event_name == RESUMED_EVENT:
            self._state.resuming = False
            logger.info("Session %s resumed", self._state.session_id)

    def _handle_ready(self, payload: Any) -> None:
        if not isinstance(payload, Mapping):
            logger.warning("READY payload was not an object; session not recorded")
            return
        self._state.session_id = payload.get("session_id")
        self._state.me = payload.get("user")
        user = self._state.me if isinstance(self._state.me, Mapping) else {}
        logger.info(
            "Session ready; session=%s user=%s",
            self._state.session_id,
            user.get("username"),
        )

    async def _handle_message(self, payload: Any) -> None:
        if not isinstance(payload, Mapping):
            return
        parsed = parse_command(payload.get("content"), self.command_prefix)
        if parsed is None:
            return
        callback = self._command_callbacks.get(parsed.word)
        if callback is None:
            return
        logger.info("Command received: %s", parsed.word)
        try:
            await _invoke(callback, payload, parsed.remainder)
        except Exception:
            logger.exception("Command callback for %s failed", parsed.word)

"""Typed lookups over an environment mapping (``os.environ`` by default).

Unset, blank or unparsable values fall back to the caller's default so a
bad variable never stops the client from starting.
"""

from __future__ import annotations

import os
from typing import Callable, Mapping, Optional, TypeVar

T = TypeVar("T")

Env = Optional[Mapping[str, str]]

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})


def _lookup(name: str, env: Env) -> Optional[str]:
    return (os.environ if env is None else env).get(name)


def _parsed(name: str, default: T, env: Env, parse: Callable[[str], T]) -> T:
    raw = _lookup(name, env)
    if raw is None or not raw.strip():
        return default
    try:
        return parse(raw.strip())
    except ValueError:
        return default


def env_str(name: str, default: Optional[str] = None, env: Env = None) -> Optional[str]:
    raw = _lookup(name, env)
    return default if raw is None else raw


def env_bool(name: str, default: bool = False, env: Env = None) -> bool:
    def parse(raw: str) -> bool:
        word = raw.lower()
        if word in _TRUTHY:
            return True
        if word in _FALSY:
            return False
        raise ValueError(word)

    return _parsed(name, default, env, parse)


def env_int(name: str, default: int, env: Env = None) -> int:
    return _parsed(name, default, env, lambda raw: int(raw, 10))


def env_float(name: str, default: float, env: Env = None) -> float:
    return _parsed(name, default, env, float)

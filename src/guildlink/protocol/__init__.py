"""Wire protocol definitions for the gateway connection."""

from __future__ import annotations

from .frames import *  # noqa: F401,F403
from .opcodes import *  # noqa: F401,F403

__all__ = [name for name in globals().keys() if not name.startswith("_")]

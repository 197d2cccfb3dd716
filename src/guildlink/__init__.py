"""
guildlink: a client-side session manager for a persistent gateway connection.

The gateway session keeps one logical connection alive across network
interruptions (heartbeats, identify/resume) and turns inbound dispatch events
into application callbacks.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]

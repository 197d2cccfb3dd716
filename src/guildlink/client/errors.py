from __future__ import annotations

from typing import Optional


class GatewayError(RuntimeError):
    """Base class for gateway client failures."""


class RequestError(GatewayError):
    """Raised when a one-shot request against the secondary API fails."""

    def __init__(
        self,
        message: str,
        *,
        method: str,
        path: str,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.method = method
        self.path = path
        self.status = status


class TransportClosedError(GatewayError):
    """Raised when a frame is written to a transport that is not open."""

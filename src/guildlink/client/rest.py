"""One-shot request/response client for the secondary HTTP API.

The session only needs a single ``request`` capability (gateway discovery,
channel lookups, message posting), so it depends on :class:`RequestClient`
rather than on this concrete implementation.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Protocol

import httpx

from guildlink import __version__
from guildlink.client.config import DEFAULT_API_BASE
from guildlink.client.errors import RequestError

logger = logging.getLogger(__name__)


class RequestClient(Protocol):
    async def request(self, method: str, path: str, body: Optional[Mapping[str, Any]] = None) -> Any:
        ...


class RestClient:
    """Thin wrapper around ``httpx.AsyncClient`` with token authorization."""

    def __init__(
        self,
        token: str,
        *,
        is_bot: bool = True,
        base_url: str = DEFAULT_API_BASE,
        timeout_s: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        auth = f"Bot {token}" if is_bot else token
        headers = {
            "Authorization": auth,
            "User-Agent": f"guildlink ({__version__})",
        }
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout_s)
        client.headers.update(headers)
        self._client = client

    async def request(self, method: str, path: str, body: Optional[Mapping[str, Any]] = None) -> Any:
        """Perform one request and return the decoded JSON body.

        Raises :class:`RequestError` for transport failures and for any
        response with status >= 400. The response body is never included in
        the error message since it can echo credentials back.
        """

        method = method.upper()
        logger.debug("%s %s", method, path)
        try:
            response = await self._client.request(
                method,
                path,
                json=dict(body) if body is not None else None,
            )
        except httpx.HTTPError as exc:
            raise RequestError(
                f"{method} {path} failed: {exc.__class__.__name__}",
                method=method,
                path=path,
            ) from exc

        if response.status_code >= 400:
            try:
                err_data = response.json()
                err_msg = err_data.get("message", "Request failed")
            except Exception:
                err_msg = "Request failed"
            raise RequestError(
                f"{method} {path} failed ({response.status_code}): {err_msg}",
                method=method,
                path=path,
                status=response.status_code,
            )

        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise RequestError(
                f"{method} {path} returned a non-JSON body",
                method=method,
                path=path,
                status=response.status_code,
            ) from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

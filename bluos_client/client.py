"""
BluOS HTTP client.

BluOS HTTP API (port 11000, XML responses):
  GET /Status?etag=X&timeout=T  - long-poll for state changes
  GET /Playlist                 - play queue
  GET /Browse?key=K&q=Q         - browse hierarchy
  GET /SyncStatus               - player identity and grouping

Transport and decode failures are raised to the caller as they happen;
retrying is up to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Dict, Optional

import aiohttp

from .decoder import decode_browse, decode_playlist, decode_status, decode_sync_status
from .errors import RequestError, RequestFetchError
from .models import Browse, DeviceDescriptor, Playlist, Status

_LOGGER = logging.getLogger(__name__)

BLUOS_PORT = 11000
DEFAULT_TIMEOUT = 10.0
LONG_POLL_TIMEOUT = 100  # seconds, BluOS blocks until state changes or timeout


class BluOSClient:
    """Read-only client for one player."""

    def __init__(
        self,
        host: str,
        port: int = BLUOS_PORT,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.host = host
        self.port = port
        self.base_url = f"http://{host}:{port}"
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "BluOSClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def get(
        self,
        path: str,
        params: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """GET a BluOS endpoint and return the response body."""
        url = f"{self.base_url}{path}"
        client_timeout = aiohttp.ClientTimeout(total=timeout or self.timeout)
        session = self._get_session()

        _LOGGER.debug("GET %s %s", url, params or "")
        try:
            async with session.get(url, params=params, timeout=client_timeout) as resp:
                resp.raise_for_status()
                try:
                    return await resp.text()
                except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as err:
                    raise RequestFetchError(url, err) from err
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            raise RequestError(url, err) from err

    async def status(self, etag: Optional[str] = None, timeout: Optional[int] = None) -> Status:
        """
        Fetch /Status.

        With ``etag`` and ``timeout`` the player holds the request until its
        state differs from ``etag`` or ``timeout`` seconds pass.
        """
        params: Dict[str, str] = {}
        http_timeout = None
        if timeout is not None:
            params["timeout"] = str(timeout)
            http_timeout = timeout + self.timeout
        if etag:
            params["etag"] = etag

        text = await self.get("/Status", params=params or None, timeout=http_timeout)
        return decode_status(text, url=f"{self.base_url}/Status")

    async def watch_status(self, timeout: int = LONG_POLL_TIMEOUT) -> AsyncIterator[Status]:
        """Yield the current status, then every status whose etag differs from the last one."""
        etag: Optional[str] = None
        while True:
            status = await self.status(etag=etag, timeout=timeout if etag else None)
            if status.etag != etag:
                etag = status.etag
                yield status

    async def playlist(self, start: Optional[int] = None, end: Optional[int] = None) -> Playlist:
        params: Dict[str, str] = {}
        if start is not None:
            params["start"] = str(start)
        if end is not None:
            params["end"] = str(end)

        text = await self.get("/Playlist", params=params or None)
        return decode_playlist(text, url=f"{self.base_url}/Playlist")

    async def browse(self, key: Optional[str] = None, query: Optional[str] = None) -> Browse:
        """Fetch one browse node; ``key`` comes from a previous Browse or BrowseItem."""
        params: Dict[str, str] = {}
        if key:
            params["key"] = key
        if query:
            params["q"] = query

        text = await self.get("/Browse", params=params or None)
        return decode_browse(text, url=f"{self.base_url}/Browse")

    async def sync_status(self) -> DeviceDescriptor:
        text = await self.get("/SyncStatus")
        return decode_sync_status(text, url=f"{self.base_url}/SyncStatus")

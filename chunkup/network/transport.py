"""HTTP transport layer"""

from typing import Any, Dict, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit
import logging

import aiohttp

logger = logging.getLogger(__name__)


def add_params(url: str, params: Dict[str, Any]) -> str:
    """Append query parameters to a URL, keeping any it already carries"""
    if not params:
        return url

    parts = urlsplit(url)
    query = urlencode({k: v for k, v in params.items() if v is not None})
    if parts.query:
        query = f"{parts.query}&{query}"
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


class HttpTransport:
    """aiohttp transport shared by every request of a session"""

    def __init__(self, timeout_seconds: Optional[float] = None,
                 headers: Optional[Dict[str, str]] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        self._timeout = timeout_seconds
        self._headers = headers or {}
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers=self._headers
            )
            self._owns_session = True
        return self._session

    async def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict:
        """GET a URL and decode its JSON body"""
        session = await self._get_session()
        logger.debug(f"GET {url} {params}")

        async with session.get(url, params=params) as response:
            response.raise_for_status()
            data = await response.json(content_type=None)

        return data if data is not None else {}

    async def get(self, url: str, params: Optional[Dict[str, Any]] = None):
        """GET a URL, ignoring its body"""
        session = await self._get_session()
        logger.debug(f"GET {url} {params}")

        async with session.get(url, params=params) as response:
            response.raise_for_status()
            await response.read()

    async def post_bytes(self, url: str, data: bytes,
                         headers: Optional[Dict[str, str]] = None):
        """POST a raw body; only success or failure is reported"""
        session = await self._get_session()

        async with session.post(url, data=data, headers=headers) as response:
            response.raise_for_status()
            await response.read()

    async def close(self):
        """Close the HTTP session if this transport created it"""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

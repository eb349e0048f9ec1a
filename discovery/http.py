"""
Discovery - HTTP Backend.

============================================================
PURPOSE
============================================================
Service registry reached over a small REST API.

ENDPOINTS (relative to the discovery URI):
- GET    health                       -> reachability probe
- PUT    services/{namespace}/{name}  -> register (JSON body)
- DELETE services/{namespace}/{name}  -> unregister

Any status >= 400 or transport error is reported as
DiscoveryUnreachable. There are no retries.

============================================================
"""

from typing import Any, Dict, Optional
import asyncio
import logging

import aiohttp

from core.exceptions import DiscoveryUnreachable
from .base import DiscoveryBackend, describe_failure


logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT_SECONDS = 10.0


class HttpDiscoveryBackend(DiscoveryBackend):
    """Discovery backend for http:// and https:// URIs."""

    scheme = "http"

    def __init__(
        self,
        uri: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        super().__init__(uri)
        self._base_url = uri.rstrip("/")
        self._timeout = timeout_seconds
        self._session = session
        self._owns_session = session is None

    def _url(self, *parts: str) -> str:
        return "/".join([self._base_url, *parts])

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers={"Accept": "application/json"},
            )
            self._owns_session = True
        return self._session

    async def _request(
        self,
        method: str,
        url: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> int:
        session = await self._get_session()

        try:
            async with session.request(method, url, json=payload) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise DiscoveryUnreachable(
                        message=f"Discovery backend returned HTTP {response.status}",
                        uri=self._uri,
                        context={
                            "method": method,
                            "url": url,
                            "response_body": body[:500],
                        },
                    )
                return response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DiscoveryUnreachable(
                message=f"Discovery backend unreachable: {describe_failure(e)}",
                uri=self._uri,
                cause=e,
            )

    async def connect(self) -> None:
        await self._request("GET", self._url("health"))
        self._connected = True
        logger.info(f"Connected to discovery registry: {self._base_url}")

    async def register(self, namespace: str, name: str, payload: Dict[str, Any]) -> None:
        self._require_connected("register")

        await self._request("PUT", self._url("services", namespace, name), payload)
        self._registrations[self.registration_key(namespace, name)] = dict(payload)
        logger.info(f"Registered {namespace}/{name} at {self._base_url}")

    async def unregister(self, namespace: str, name: str) -> None:
        key = self.registration_key(namespace, name)
        if key not in self._registrations or not self._connected:
            return

        await self._request("DELETE", self._url("services", namespace, name))
        self._registrations.pop(key, None)

    async def close(self) -> None:
        self._connected = False
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


__all__ = [
    "HttpDiscoveryBackend",
]

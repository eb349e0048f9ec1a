"""
Telemetry - Carbon Publisher.

============================================================
PURPOSE
============================================================
Publishes node metrics to one or more Carbon daemons using the
plaintext protocol:

    <prefix>.<path> <value> <unix timestamp>\\n

FEATURES:
- Several endpoints, each optional
- Endpoints that fail to connect are logged and skipped
- An endpoint that fails on write is dropped, the others keep going
- Publishing never raises into the caller

============================================================
ENDPOINT FORMAT
============================================================
host:port, tcp://host:port or host (port 2003).

============================================================
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlsplit
import asyncio
import logging
import time

from core.exceptions import MetricsUnavailable


logger = logging.getLogger(__name__)


DEFAULT_CARBON_PORT = 2003
DEFAULT_CONNECT_TIMEOUT_SECONDS = 5.0


def parse_endpoint(uri: str) -> Tuple[str, int]:
    """
    Split a Carbon endpoint into host and port.

    Raises:
        ValueError: If the endpoint is malformed
    """
    text = uri.strip()
    if "://" not in text:
        text = f"tcp://{text}"

    parts = urlsplit(text)
    if parts.scheme != "tcp":
        raise ValueError(f"Unsupported carbon scheme: {parts.scheme}")
    if not parts.hostname:
        raise ValueError(f"Missing carbon host in {uri!r}")

    return parts.hostname, parts.port or DEFAULT_CARBON_PORT


@dataclass
class CarbonEndpoint:
    """One connected Carbon daemon."""

    uri: str
    host: str
    port: int
    writer: asyncio.StreamWriter
    lines_sent: int = 0


class CarbonPublisher:
    """
    Plaintext Carbon client for one node.

    All metric paths are published under the node prefix
    (installation.node_name).
    """

    def __init__(
        self,
        prefix: str,
        uris: Sequence[str],
        connect_timeout_seconds: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
    ):
        self._prefix = prefix.strip(".")
        self._uris = tuple(uris)
        self._connect_timeout = connect_timeout_seconds
        self._endpoints: List[CarbonEndpoint] = []
        self._failed: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def connected_endpoints(self) -> List[str]:
        return [e.uri for e in self._endpoints]

    @property
    def failed_endpoints(self) -> Dict[str, str]:
        """Endpoint -> reason for every endpoint that was dropped."""
        return dict(self._failed)

    @property
    def is_connected(self) -> bool:
        return bool(self._endpoints)

    # --------------------------------------------------------
    # Connection
    # --------------------------------------------------------

    async def connect(self) -> int:
        """
        Connect every endpoint.

        Returns:
            Number of endpoints connected
        """
        for uri in self._uris:
            try:
                host, port = parse_endpoint(uri)
                _, writer = await asyncio.wait_for(
                    asyncio.open_connection(host, port),
                    timeout=self._connect_timeout,
                )
            except asyncio.TimeoutError:
                self._record_failure(uri, f"connect timeout after {self._connect_timeout}s")
                continue
            except (OSError, ValueError) as e:
                self._record_failure(uri, str(e))
                continue

            self._endpoints.append(CarbonEndpoint(uri=uri, host=host, port=port, writer=writer))
            logger.info(f"Connected to carbon endpoint {host}:{port} | prefix={self._prefix}")

        return len(self._endpoints)

    def _record_failure(self, uri: str, reason: str) -> None:
        self._failed[uri] = reason
        error = MetricsUnavailable(
            message=f"Carbon endpoint skipped: {reason}",
            endpoint=uri,
        )
        logger.warning(error.to_log_format())

    # --------------------------------------------------------
    # Publishing
    # --------------------------------------------------------

    def format_line(self, path: str, value: float, timestamp: Optional[float] = None) -> str:
        """Format one plaintext protocol line."""
        ts = int(timestamp if timestamp is not None else time.time())
        full_path = f"{self._prefix}.{path}" if self._prefix else path
        return f"{full_path} {value} {ts}\n"

    async def publish(self, path: str, value: float, timestamp: Optional[float] = None) -> int:
        """
        Send one metric to every connected endpoint.

        Returns:
            Number of endpoints that accepted the line
        """
        line = self.format_line(path, value, timestamp).encode("ascii", errors="replace")
        delivered = 0

        async with self._lock:
            for endpoint in list(self._endpoints):
                try:
                    endpoint.writer.write(line)
                    await endpoint.writer.drain()
                except (OSError, RuntimeError) as e:
                    self._endpoints.remove(endpoint)
                    self._record_failure(endpoint.uri, f"write failed: {e}")
                    continue
                endpoint.lines_sent += 1
                delivered += 1

        return delivered

    async def record_event(self, path: str) -> int:
        """Publish a single occurrence of an event."""
        return await self.publish(path, 1)

    async def close(self) -> None:
        """Close every endpoint."""
        async with self._lock:
            endpoints, self._endpoints = self._endpoints, []

        for endpoint in endpoints:
            endpoint.writer.close()
            try:
                await endpoint.writer.wait_closed()
            except (OSError, RuntimeError) as e:
                logger.debug(f"Carbon endpoint {endpoint.uri} closed with error: {e}")

    def get_status(self) -> Dict[str, object]:
        """Get publisher status."""
        return {
            "prefix": self._prefix,
            "connected": [
                {"uri": e.uri, "lines_sent": e.lines_sent} for e in self._endpoints
            ],
            "failed": self.failed_endpoints,
        }


__all__ = [
    "DEFAULT_CARBON_PORT",
    "CarbonEndpoint",
    "CarbonPublisher",
    "parse_endpoint",
]

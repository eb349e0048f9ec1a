"""
Discovery - Backend Interface.

============================================================
PURPOSE
============================================================
Abstract interface every service-discovery backend implements.

A backend is connected once, registers the node under its
installation namespace, and is closed by the service context
at teardown. Backends never retry: a failed connect or
register raises DiscoveryUnreachable.

============================================================
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import logging

from core.exceptions import DiscoveryUnreachable


logger = logging.getLogger(__name__)


class DiscoveryBackend(ABC):
    """Base class for discovery backends."""

    scheme: str = ""

    def __init__(self, uri: str):
        self._uri = uri
        self._connected = False
        self._registrations: Dict[str, Dict[str, Any]] = {}

    @property
    def uri(self) -> str:
        return self._uri

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def registrations(self) -> Dict[str, Dict[str, Any]]:
        """Registrations made through this backend, keyed by namespace/name."""
        return dict(self._registrations)

    @staticmethod
    def registration_key(namespace: str, name: str) -> str:
        return f"{namespace}/{name}"

    def _require_connected(self, operation: str) -> None:
        if not self._connected:
            raise DiscoveryUnreachable(
                message=f"Cannot {operation}: discovery backend not connected",
                uri=self._uri,
            )

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    @abstractmethod
    async def connect(self) -> None:
        """
        Open the connection.

        Raises:
            DiscoveryUnreachable: If the backend cannot be reached
        """

    @abstractmethod
    async def register(self, namespace: str, name: str, payload: Dict[str, Any]) -> None:
        """
        Register a service entry.

        Raises:
            DiscoveryUnreachable: If the backend refuses the registration
        """

    @abstractmethod
    async def unregister(self, namespace: str, name: str) -> None:
        """Remove a service entry. Missing entries are ignored."""

    @abstractmethod
    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""

    # --------------------------------------------------------
    # Status
    # --------------------------------------------------------

    def get_status(self) -> Dict[str, Any]:
        """Get backend status."""
        return {
            "backend": type(self).__name__,
            "uri": self._uri,
            "connected": self._connected,
            "registrations": sorted(self._registrations),
        }


def describe_failure(error: BaseException) -> str:
    """Short description of a low-level connection error."""
    text = str(error)
    return f"{type(error).__name__}: {text}" if text else type(error).__name__


__all__ = [
    "DiscoveryBackend",
    "describe_failure",
]

"""
Discovery - Backend Factory.

Selects a discovery backend from the scheme of the discovery URI.
"""

from typing import Callable, Dict, List
from urllib.parse import urlsplit
import logging

from core.exceptions import DiscoveryUnreachable
from .base import DiscoveryBackend
from .http import HttpDiscoveryBackend
from .memory import MemoryDiscoveryBackend


logger = logging.getLogger(__name__)


BackendFactory = Callable[[str], DiscoveryBackend]


class DiscoveryBackendFactory:
    """Registry of URI scheme -> backend constructor."""

    _registry: Dict[str, BackendFactory] = {
        "memory": MemoryDiscoveryBackend,
        "http": HttpDiscoveryBackend,
        "https": HttpDiscoveryBackend,
    }

    @classmethod
    def register(cls, scheme: str, creator: BackendFactory) -> None:
        """Register a backend for a URI scheme."""
        cls._registry[scheme.lower()] = creator

    @classmethod
    def unregister(cls, scheme: str) -> None:
        cls._registry.pop(scheme.lower(), None)

    @classmethod
    def list_supported(cls) -> List[str]:
        return sorted(cls._registry)

    @classmethod
    def create(cls, uri: str) -> DiscoveryBackend:
        """
        Create the backend for a URI.

        Raises:
            DiscoveryUnreachable: If the scheme is not supported
        """
        scheme = urlsplit(uri).scheme.lower()
        creator = cls._registry.get(scheme)
        if creator is None:
            raise DiscoveryUnreachable(
                message=(
                    f"Unsupported discovery URI scheme '{scheme or uri}' "
                    f"(supported: {', '.join(cls.list_supported())})"
                ),
                uri=uri,
            )

        logger.debug(f"Creating {scheme} discovery backend for {uri}")
        return creator(uri)


def create_backend(uri: str) -> DiscoveryBackend:
    """Create the discovery backend for a URI."""
    return DiscoveryBackendFactory.create(uri)


__all__ = [
    "BackendFactory",
    "DiscoveryBackendFactory",
    "create_backend",
]

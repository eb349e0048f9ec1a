"""
Discovery - In-Process Backend.

============================================================
PURPOSE
============================================================
Service registry kept in process memory.

Used for standalone runs and tests. Every memory:// URI with
the same host shares one registry, so several nodes started
in one process see each other's registrations.

============================================================
USAGE
============================================================
```python
backend = MemoryDiscoveryBackend("memory://local")
await backend.connect()
await backend.register("prod", "router1", {"serviceType": "router"})
MemoryRegistry.lookup("local", "prod", "router1")
```

============================================================
"""

from typing import Any, Dict, Optional
from urllib.parse import urlsplit
import logging

from .base import DiscoveryBackend


logger = logging.getLogger(__name__)


class MemoryRegistry:
    """Registries shared by every in-process backend, keyed by URI host."""

    _registries: Dict[str, Dict[str, Dict[str, Any]]] = {}

    @classmethod
    def get(cls, registry_name: str) -> Dict[str, Dict[str, Any]]:
        return cls._registries.setdefault(registry_name, {})

    @classmethod
    def lookup(
        cls,
        registry_name: str,
        namespace: str,
        name: str,
    ) -> Optional[Dict[str, Any]]:
        """Find one registration."""
        key = DiscoveryBackend.registration_key(namespace, name)
        return cls._registries.get(registry_name, {}).get(key)

    @classmethod
    def clear(cls) -> None:
        """Drop every registry."""
        cls._registries.clear()


class MemoryDiscoveryBackend(DiscoveryBackend):
    """Discovery backend for memory:// URIs."""

    scheme = "memory"

    def __init__(self, uri: str):
        super().__init__(uri)
        self._registry_name = urlsplit(uri).netloc or "local"

    @property
    def registry_name(self) -> str:
        return self._registry_name

    async def connect(self) -> None:
        MemoryRegistry.get(self._registry_name)
        self._connected = True
        logger.info(f"Connected to in-process discovery registry: {self._registry_name}")

    async def register(self, namespace: str, name: str, payload: Dict[str, Any]) -> None:
        self._require_connected("register")

        key = self.registration_key(namespace, name)
        MemoryRegistry.get(self._registry_name)[key] = dict(payload)
        self._registrations[key] = dict(payload)
        logger.info(f"Registered {key} in {self._registry_name}")

    async def unregister(self, namespace: str, name: str) -> None:
        key = self.registration_key(namespace, name)
        MemoryRegistry.get(self._registry_name).pop(key, None)
        self._registrations.pop(key, None)

    async def close(self) -> None:
        self._connected = False


__all__ = [
    "MemoryRegistry",
    "MemoryDiscoveryBackend",
]

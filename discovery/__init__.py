"""
Discovery Package.

Service-discovery backends the router node registers with:

- memory://name       in-process registry (standalone runs, tests)
- http(s)://host/path REST registry over aiohttp
"""

from .base import DiscoveryBackend
from .factory import BackendFactory, DiscoveryBackendFactory, create_backend
from .http import HttpDiscoveryBackend
from .memory import MemoryDiscoveryBackend, MemoryRegistry

__all__ = [
    "DiscoveryBackend",
    "BackendFactory",
    "DiscoveryBackendFactory",
    "create_backend",
    "HttpDiscoveryBackend",
    "MemoryDiscoveryBackend",
    "MemoryRegistry",
]

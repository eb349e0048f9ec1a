"""
Orchestrator - Component Contracts.

============================================================
RESPONSIBILITY
============================================================
Lifecycle contracts of the collaborators the node drives, and
the factory that builds them.

- LedgerClient:   start / shutdown
- RoutingEngine:  init / set_ledger_client / bind_transport / start / shutdown
- ComponentFactory: builds both from the ServiceContext

Collaborator methods may be plain functions or coroutines.

============================================================
PLACEHOLDERS
============================================================
The built-in factory produces placeholder components that do
no work. They carry _is_placeholder = True and the controller
refuses them unless scaffold mode is enabled. A real factory is
plugged in with --components module:attribute.

============================================================
"""

from typing import Any, Callable, Dict, List, Optional, Protocol
import asyncio
import importlib
import inspect
import logging

from core.exceptions import InvalidConfigValue


logger = logging.getLogger(__name__)


# ============================================================
# CALL HELPER
# ============================================================

async def invoke(
    func: Callable[..., Any],
    *args: Any,
    timeout: Optional[float] = None,
) -> Any:
    """
    Call a collaborator method that may or may not be a coroutine.

    Awaitables are bounded by asyncio.wait_for(timeout).

    Raises:
        asyncio.TimeoutError: If the awaitable does not finish in time
    """
    result = func(*args)
    if inspect.isawaitable(result):
        return await asyncio.wait_for(result, timeout=timeout)
    return result


def is_placeholder(component: Any) -> bool:
    """Check if a component is a placeholder."""
    return getattr(component, "_is_placeholder", False) is True


# ============================================================
# PROTOCOLS
# ============================================================

class LedgerClient(Protocol):
    """Budget accounting client (slave banker)."""

    def start(self) -> Any:
        ...

    def shutdown(self) -> Any:
        ...


class RoutingEngine(Protocol):
    """Bid routing engine."""

    def init(self) -> Any:
        ...

    def set_ledger_client(self, ledger_client: Any) -> Any:
        ...

    def bind_transport(self) -> Any:
        ...

    def start(self) -> Any:
        ...

    def shutdown(self) -> Any:
        ...


class ComponentFactory(Protocol):
    """Builds the ledger client and routing engine of a node."""

    def create_ledger_client(self, context: Any, service_name: str) -> Any:
        ...

    def create_routing_engine(
        self,
        context: Any,
        service_prefix: str,
        loss_seconds: float,
    ) -> Any:
        ...


# ============================================================
# PLACEHOLDER COMPONENTS
# ============================================================

class PlaceholderComponent:
    """Component that records lifecycle calls and does nothing else."""

    _is_placeholder: bool = True

    def __init__(self, service_name: str):
        self.service_name = service_name
        self.calls: List[str] = []
        self.running = False

    async def start(self) -> None:
        self.calls.append("start")
        self.running = True

    async def shutdown(self) -> None:
        self.calls.append("shutdown")
        self.running = False

    def get_status(self) -> Dict[str, Any]:
        return {
            "service_name": self.service_name,
            "running": self.running,
            "is_placeholder": True,
        }


class PlaceholderLedgerClient(PlaceholderComponent):
    """Ledger client that authorizes nothing."""


class PlaceholderRoutingEngine(PlaceholderComponent):
    """Routing engine that routes nothing."""

    def __init__(self, service_name: str, loss_seconds: float):
        super().__init__(service_name)
        self.loss_seconds = loss_seconds
        self.ledger_client: Any = None
        self.transport_bound = False

    async def init(self) -> None:
        self.calls.append("init")

    def set_ledger_client(self, ledger_client: Any) -> None:
        self.calls.append("set_ledger_client")
        self.ledger_client = ledger_client

    async def bind_transport(self) -> None:
        self.calls.append("bind_transport")
        self.transport_bound = True


class PlaceholderComponentFactory:
    """Built-in factory. Only usable with --scaffold."""

    def create_ledger_client(self, context: Any, service_name: str) -> PlaceholderLedgerClient:
        return PlaceholderLedgerClient(service_name)

    def create_routing_engine(
        self,
        context: Any,
        service_prefix: str,
        loss_seconds: float,
    ) -> PlaceholderRoutingEngine:
        return PlaceholderRoutingEngine(service_prefix, loss_seconds)


# ============================================================
# FACTORY LOADING
# ============================================================

def load_component_factory(target: Optional[str]) -> ComponentFactory:
    """
    Resolve a component factory from "module:attribute".

    The attribute may be a factory instance, a class, or a
    zero-argument callable returning a factory. No target means
    the built-in placeholder factory.

    Raises:
        InvalidConfigValue: If the target cannot be resolved
    """
    if not target:
        return PlaceholderComponentFactory()

    module_name, sep, attr_path = target.partition(":")
    if not sep or not module_name or not attr_path:
        raise InvalidConfigValue("components", target, "expected module:attribute")

    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise InvalidConfigValue("components", target, f"cannot import {module_name}: {e}")

    for attr in attr_path.split("."):
        try:
            obj = getattr(obj, attr)
        except AttributeError:
            raise InvalidConfigValue("components", target, f"no attribute {attr}")

    if inspect.isclass(obj) or (callable(obj) and not hasattr(obj, "create_routing_engine")):
        try:
            obj = obj()
        except Exception as e:
            raise InvalidConfigValue("components", target, f"cannot build factory: {e}")

    for method in ("create_ledger_client", "create_routing_engine"):
        if not callable(getattr(obj, method, None)):
            raise InvalidConfigValue("components", target, f"factory has no {method}()")

    logger.info(f"Loaded component factory {target}")
    return obj


__all__ = [
    "invoke",
    "is_placeholder",
    "LedgerClient",
    "RoutingEngine",
    "ComponentFactory",
    "PlaceholderComponent",
    "PlaceholderLedgerClient",
    "PlaceholderRoutingEngine",
    "PlaceholderComponentFactory",
    "load_component_factory",
]

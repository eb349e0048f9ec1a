"""
Orchestrator - Models.

============================================================
RESPONSIBILITY
============================================================
Defines data models for the router node orchestrator.

- Node configuration (immutable, built once by the validator)
- Exchange entries from the exchange document
- Component status and handles owned by the controller
- Activation and shutdown results

============================================================
"""

from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from core.exceptions import ActivationError, RouterNodeException
from core.state_manager import LifecycleState


# ============================================================
# DEFAULTS
# ============================================================

DEFAULT_LOSS_SECONDS = 15.0
"""Seconds after which an unanswered bid is assumed lost."""

DEFAULT_COMPONENT_TIMEOUT_SECONDS = 60.0
"""Upper bound for any single collaborator lifecycle call."""

DEFAULT_DISCOVERY_URI = "memory://local"
"""In-process discovery registry for standalone runs."""

SERVICE_PREFIX = "router"
"""Service name prefix for components registered by this node."""

LEDGER_CLIENT_SUFFIX = "slaveBanker"


# ============================================================
# EXCHANGE SPECIFICATION
# ============================================================

@dataclass(frozen=True)
class ExchangeSpec:
    """One entry of the exchange configuration document."""

    index: int
    """Position in the document."""

    exchange_type: str
    """Connector type, from the entry's exchangeType field."""

    parameters: Mapping[str, Any] = field(default_factory=dict)
    """Full entry, read-only."""

    name: Optional[str] = None
    """Optional operator-assigned name."""

    def __post_init__(self):
        if not isinstance(self.parameters, MappingProxyType):
            object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))

    @property
    def identity(self) -> str:
        """Key of this exchange in the active connector set."""
        return self.name or f"{self.exchange_type}#{self.index}"

    @classmethod
    def from_entry(cls, index: int, entry: Mapping[str, Any]) -> "ExchangeSpec":
        """Build a spec from a validated document entry."""
        name = entry.get("name")
        return cls(
            index=index,
            exchange_type=entry["exchangeType"],
            parameters=entry,
            name=name if isinstance(name, str) and name else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "index": self.index,
            "exchange_type": self.exchange_type,
            "name": self.name,
            "identity": self.identity,
        }


# ============================================================
# NODE CONFIGURATION
# ============================================================

@dataclass(frozen=True)
class NodeConfig:
    """Validated configuration of one router node."""

    installation: str
    """Name of the installation that is running."""

    node_name: str
    """Name of this node."""

    zookeeper_uri: str = DEFAULT_DISCOVERY_URI
    """URI of the discovery backend."""

    loss_seconds: float = DEFAULT_LOSS_SECONDS
    """Forwarded to the routing engine."""

    log_uris: Tuple[str, ...] = ()
    """URIs to publish logs to."""

    carbon_uris: Tuple[str, ...] = ()
    """Carbon endpoints for metrics publication."""

    exchange_configuration: Optional[str] = None
    """Path of the exchange configuration document."""

    exchanges: Tuple[ExchangeSpec, ...] = ()
    """Parsed exchange specs, in document order."""

    component_timeout_seconds: float = DEFAULT_COMPONENT_TIMEOUT_SECONDS
    """Timeout for each collaborator lifecycle call."""

    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def metrics_prefix(self) -> str:
        """Carbon path prefix for this node."""
        return f"{self.installation}.{self.node_name}"

    @property
    def service_prefix(self) -> str:
        """Service name prefix for components of this node."""
        return SERVICE_PREFIX

    @property
    def ledger_client_name(self) -> str:
        """Service name of the ledger client."""
        return f"{SERVICE_PREFIX}.{LEDGER_CLIENT_SUFFIX}"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "installation": self.installation,
            "node_name": self.node_name,
            "zookeeper_uri": self.zookeeper_uri,
            "loss_seconds": self.loss_seconds,
            "log_uris": list(self.log_uris),
            "carbon_uris": list(self.carbon_uris),
            "exchange_configuration": self.exchange_configuration,
            "exchanges": [spec.to_dict() for spec in self.exchanges],
            "component_timeout_seconds": self.component_timeout_seconds,
        }


# ============================================================
# COMPONENT STATUS
# ============================================================

class ComponentStatus(Enum):
    """Status of a component owned by the controller."""

    CONSTRUCTED = "constructed"
    """Built and bound, not started."""

    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"

    FAILED = "failed"
    """A lifecycle call failed or timed out."""

    @property
    def needs_shutdown(self) -> bool:
        """Check if shutdown should still be called on the component."""
        return self != ComponentStatus.STOPPED


# ============================================================
# COMPONENT HANDLES
# ============================================================

@dataclass
class ComponentHandle:
    """Runtime handle of a component."""

    name: str
    instance: Any
    status: ComponentStatus = ComponentStatus.CONSTRUCTED
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: Optional[datetime] = None
    stopped_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def is_running(self) -> bool:
        """Check if the component accepts work."""
        return self.status == ComponentStatus.RUNNING

    def mark(self, status: ComponentStatus, error: Optional[str] = None) -> None:
        """Record a status change."""
        self.status = status
        now = datetime.now(timezone.utc)
        if status == ComponentStatus.RUNNING:
            self.started_at = now
        elif status == ComponentStatus.STOPPED:
            self.stopped_at = now
        if error is not None:
            self.error = error

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "name": self.name,
            "type": type(self.instance).__name__,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "stopped_at": self.stopped_at.isoformat() if self.stopped_at else None,
            "error": self.error,
        }


@dataclass
class ComponentHandles:
    """Slots owned by the lifecycle controller."""

    ledger_client: Optional[ComponentHandle] = None
    routing_engine: Optional[ComponentHandle] = None
    exchanges: Dict[str, ComponentHandle] = field(default_factory=dict)

    def iter_core(self) -> Iterator[ComponentHandle]:
        """Yield the constructed core components in start order."""
        for handle in (self.ledger_client, self.routing_engine):
            if handle is not None:
                yield handle

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "ledger_client": self.ledger_client.to_dict() if self.ledger_client else None,
            "routing_engine": self.routing_engine.to_dict() if self.routing_engine else None,
            "exchanges": {k: v.to_dict() for k, v in self.exchanges.items()},
        }


# ============================================================
# ACTIVATION RESULT
# ============================================================

@dataclass
class ActivationResult:
    """Outcome of activating one exchange connector."""

    spec: ExchangeSpec
    handle: Optional[ComponentHandle] = None
    error: Optional[ActivationError] = None

    @property
    def success(self) -> bool:
        """Check if the connector went live."""
        return self.error is None and self.handle is not None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "exchange": self.spec.identity,
            "exchange_type": self.spec.exchange_type,
            "success": self.success,
            "error": self.error.to_dict() if self.error else None,
        }


# ============================================================
# SHUTDOWN REPORT
# ============================================================

@dataclass
class ShutdownStep:
    """Outcome of shutting down one component."""

    component: str
    success: bool
    error: Optional[RouterNodeException] = None


@dataclass
class ShutdownReport:
    """Result of a controller shutdown. Always complete."""

    steps: List[ShutdownStep] = field(default_factory=list)
    final_state: Optional[LifecycleState] = None

    @property
    def failures(self) -> List[ShutdownStep]:
        """Get steps that failed."""
        return [s for s in self.steps if not s.success]

    @property
    def clean(self) -> bool:
        """Check if every step succeeded."""
        return not self.failures

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "final_state": self.final_state.value if self.final_state else None,
            "clean": self.clean,
            "steps": [
                {
                    "component": s.component,
                    "success": s.success,
                    "error": s.error.message if s.error else None,
                }
                for s in self.steps
            ],
        }


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "DEFAULT_LOSS_SECONDS",
    "DEFAULT_COMPONENT_TIMEOUT_SECONDS",
    "DEFAULT_DISCOVERY_URI",
    "SERVICE_PREFIX",
    "ExchangeSpec",
    "NodeConfig",
    "ComponentStatus",
    "ComponentHandle",
    "ComponentHandles",
    "ActivationResult",
    "ShutdownStep",
    "ShutdownReport",
]

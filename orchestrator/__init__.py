"""
Orchestrator Package - Router Node Coordination Layer.

============================================================
PACKAGE OVERVIEW
============================================================
Brings one router node of a real-time bidding installation up
and down in strict dependency order.

============================================================
CORE PRINCIPLES
============================================================
1. The orchestrator has NO bidding logic
2. Components start dependencies-first and stop in reverse
3. Only fatal failures stop the node; a bad exchange or an
   unreachable metrics endpoint does not
4. Shutdown always completes

============================================================
ARCHITECTURE
============================================================

    +-----------------------------------------------------+
    |                     RouterNode                      |
    |-----------------------------------------------------|
    |  validation  |  raw options -> NodeConfig           |
    |  bootstrap   |  discovery, carbon, log handlers     |
    |  controller  |  ledger client + routing engine      |
    |  activation  |  exchange connectors                 |
    |  CLI         |  command-line interface              |
    +-----------------------------------------------------+

============================================================
LIFECYCLE
============================================================
UNINITIALIZED -> INITIALIZED -> RUNNING -> SHUTTING_DOWN -> STOPPED
                         (any) -> FAILED -> SHUTTING_DOWN

============================================================
QUICK START
============================================================
Command line usage::

    # Standalone development node
    python app.py -I dev -N router1 --scaffold

    # Production node with exchanges and metrics
    python app.py -I prod -N router1 -Z http://discovery:8500/v1 \\
        -c carbon:2003 -x exchanges.json --components mybidder.wiring:factory

Programmatic usage::

    from orchestrator import RouterNode, validate

    config = validate({"installation": "dev", "node_name": "r1"}).unwrap()
    node = RouterNode(config, component_factory=my_factory)
    exit_code = await node.run_until_stopped()

============================================================
"""

from orchestrator.models import (
    ActivationResult,
    ComponentHandle,
    ComponentHandles,
    ComponentStatus,
    ExchangeSpec,
    NodeConfig,
    ShutdownReport,
    ShutdownStep,
)

from orchestrator.validation import (
    ValidationResult,
    load_exchange_document,
    validate,
)

from orchestrator.context import ServiceContext

from orchestrator.bootstrap import bootstrap

from orchestrator.components import (
    ComponentFactory,
    PlaceholderComponentFactory,
    load_component_factory,
)

from orchestrator.controller import LifecycleController

from orchestrator.activation import activate_all

from orchestrator.core import (
    RouterNode,
    setup_logging,
)

from orchestrator.cli import (
    create_parser,
    main,
)


__all__ = [
    # Models
    "ActivationResult",
    "ComponentHandle",
    "ComponentHandles",
    "ComponentStatus",
    "ExchangeSpec",
    "NodeConfig",
    "ShutdownReport",
    "ShutdownStep",
    # Validation
    "ValidationResult",
    "load_exchange_document",
    "validate",
    # Bootstrap
    "ServiceContext",
    "bootstrap",
    # Components
    "ComponentFactory",
    "PlaceholderComponentFactory",
    "load_component_factory",
    # Lifecycle
    "LifecycleController",
    "activate_all",
    # Runner
    "RouterNode",
    "setup_logging",
    # CLI
    "create_parser",
    "main",
]

"""
Orchestrator - Core.

============================================================
RESPONSIBILITY
============================================================
Router node runner - drives one node from validated config to
clean exit.

- Bootstraps discovery and telemetry
- Initializes and starts the ledger client and routing engine
- Activates the configured exchange connectors
- Waits for SIGINT / SIGTERM or request_stop()
- Shuts everything down in reverse order and closes the context

============================================================
ARCHITECTURAL POSITION
============================================================
- The runner has NO bidding logic
- It does NOT account budget
- It does NOT parse exchange traffic
- It ONLY coordinates lifecycle

============================================================
"""

import asyncio
import logging
import signal
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import json

from .bootstrap import PublisherFactory, bootstrap
from .components import ComponentFactory, PlaceholderComponentFactory
from .context import ServiceContext
from .controller import LifecycleController
from .models import ActivationResult, NodeConfig, ShutdownReport
from core.exceptions import BootstrapError, RouterNodeException
from discovery.factory import BackendFactory


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    correlation_id: Optional[str] = None,
) -> logging.Logger:
    """
    Set up structured logging.

    Args:
        level: Log level
        log_format: Output format (json or text)
        correlation_id: Correlation ID for tracing

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
                "correlation_id": correlation_id or "",
            })
        )
    else:
        formatter = logging.Formatter(
            f"%(asctime)s | %(levelname)-8s | %(name)s | {correlation_id or ''} | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("orchestrator")


# ============================================================
# ROUTER NODE
# ============================================================

class RouterNode:
    """
    One router node process.

    Owns the service context and the lifecycle controller for
    the duration of run_until_stopped().
    """

    def __init__(
        self,
        config: NodeConfig,
        component_factory: Optional[ComponentFactory] = None,
        connector_factory: Any = None,
        allow_placeholders: bool = False,
        backend_factory: Optional[BackendFactory] = None,
        publisher_factory: Optional[PublisherFactory] = None,
    ):
        """
        Initialize node.

        Args:
            config: Validated node configuration
            component_factory: Builds ledger client and routing engine
            connector_factory: Object with start_exchange(engine, spec)
            allow_placeholders: Accept placeholder components (scaffold mode)
            backend_factory: Discovery backend override
            publisher_factory: Carbon publisher override
        """
        if connector_factory is None:
            from exchange_connectors.factory import ExchangeConnectorFactory
            connector_factory = ExchangeConnectorFactory

        self._config = config
        self._component_factory = component_factory or PlaceholderComponentFactory()
        self._connector_factory = connector_factory
        self._allow_placeholders = allow_placeholders
        self._backend_factory = backend_factory
        self._publisher_factory = publisher_factory

        self._context: Optional[ServiceContext] = None
        self._controller: Optional[LifecycleController] = None
        self._activation_results: List[ActivationResult] = []
        self._shutdown_report: Optional[ShutdownReport] = None

        self._stop_event: Optional[asyncio.Event] = None
        self._stop_reason: Optional[str] = None
        self._started_at: Optional[datetime] = None
        self._signals_installed: List[signal.Signals] = []

        self._logger = logging.getLogger(__name__)

    # --------------------------------------------------------
    # Properties
    # --------------------------------------------------------

    @property
    def config(self) -> NodeConfig:
        return self._config

    @property
    def controller(self) -> Optional[LifecycleController]:
        return self._controller

    @property
    def context(self) -> Optional[ServiceContext]:
        return self._context

    @property
    def activation_results(self) -> List[ActivationResult]:
        return list(self._activation_results)

    @property
    def shutdown_report(self) -> Optional[ShutdownReport]:
        return self._shutdown_report

    @property
    def stop_requested(self) -> bool:
        return self._stop_reason is not None

    # --------------------------------------------------------
    # Run
    # --------------------------------------------------------

    def request_stop(self, reason: str = "stop requested") -> None:
        """Ask run_until_stopped() to shut the node down."""
        if self._stop_reason is not None:
            return
        self._logger.info(f"Stop requested: {reason}")
        self._stop_reason = reason
        if self._stop_event is not None:
            self._stop_event.set()

    async def run_until_stopped(self) -> int:
        """
        Run the node until a signal or request_stop().

        Signals received during startup are honoured once startup
        finishes, so whatever was started is shut down in order.

        Returns:
            Exit code (0 after normal shutdown, 1 on fatal failure)
        """
        config = self._config

        # Bound to the running loop
        self._stop_event = asyncio.Event()
        if self._stop_reason is not None:
            self._stop_event.set()

        self._install_signal_handlers()
        try:
            return await self._run(config)
        finally:
            self._restore_signal_handlers()

    async def _run(self, config: NodeConfig) -> int:
        self._logger.info("=== ROUTER NODE STARTUP SEQUENCE ===")
        self._logger.info(
            f"Node {config.metrics_prefix} | discovery={config.zookeeper_uri} | "
            f"loss_seconds={config.loss_seconds} | exchanges={len(config.exchanges)}"
        )

        try:
            self._context = await bootstrap(
                config,
                backend_factory=self._backend_factory,
                publisher_factory=self._publisher_factory,
            )
        except BootstrapError as e:
            self._logger.critical(f"Bootstrap failed: {e.message}")
            return 1

        self._controller = LifecycleController(
            self._context,
            self._component_factory,
            timeout_seconds=config.component_timeout_seconds,
            allow_placeholders=self._allow_placeholders,
        )

        exit_code = 0
        try:
            await self._controller.init()
            await self._controller.start()

            if self.stop_requested:
                self._logger.info("Stop requested during startup, skipping exchange activation")
            else:
                self._activation_results = await self._controller.activate_exchanges(
                    config.exchanges,
                    self._connector_factory,
                )

            self._started_at = datetime.now(timezone.utc)
            self._logger.info("=== ROUTER NODE STARTUP COMPLETE ===")

            await self._stop_event.wait()
            self._logger.info(f"Shutting down: {self._stop_reason}")

        except RouterNodeException as e:
            self._logger.critical(f"Node failed: {e.to_log_format()}")
            exit_code = 1

        finally:
            self._shutdown_report = await self._controller.shutdown()
            await self._context.close()

        for step in self._shutdown_report.failures:
            self._logger.warning(f"Shutdown step failed: {step.component}: {step.error}")

        self._logger.info(f"=== ROUTER NODE EXITED (code={exit_code}) ===")
        return exit_code

    # --------------------------------------------------------
    # Signal Handlers
    # --------------------------------------------------------

    def _install_signal_handlers(self) -> None:
        """Install signal handlers for graceful shutdown."""
        if sys.platform == "win32":
            # Windows doesn't support loop signal handlers
            signal.signal(signal.SIGINT, self._signal_handler)
            return

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.request_stop, f"received {sig.name}")
            self._signals_installed.append(sig)

    def _restore_signal_handlers(self) -> None:
        """Remove the loop signal handlers installed for this run."""
        if not self._signals_installed:
            return

        loop = asyncio.get_running_loop()
        for sig in self._signals_installed:
            loop.remove_signal_handler(sig)
        self._signals_installed = []

    def _signal_handler(self, signum: int, frame: Any) -> None:
        """Synchronous signal handler (Windows)."""
        loop = asyncio.get_event_loop()
        loop.call_soon_threadsafe(self.request_stop, f"received signal {signum}")

    # --------------------------------------------------------
    # Status
    # --------------------------------------------------------

    def get_status(self) -> Dict[str, Any]:
        """Get node status."""
        return {
            "node": self._config.metrics_prefix,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "stop_requested": self.stop_requested,
            "config": self._config.to_dict(),
            "controller": self._controller.get_status() if self._controller else None,
            "context": self._context.get_status() if self._context else None,
            "activation": [r.to_dict() for r in self._activation_results],
            "shutdown": self._shutdown_report.to_dict() if self._shutdown_report else None,
        }


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "RouterNode",
    "setup_logging",
]

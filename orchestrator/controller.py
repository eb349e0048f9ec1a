"""
Orchestrator - Lifecycle Controller.

============================================================
RESPONSIBILITY
============================================================
Owns the ledger client, the routing engine and the attached
exchange connectors, and moves them through their lifecycle in
strict dependency order.

- init:     construct ledger client, construct routing engine,
            engine.init, engine.set_ledger_client, engine.bind_transport
- start:    ledger client first, routing engine second
- activate: attach exchange connectors to the running engine
- shutdown: routing engine first, ledger client second, then
            release exchange handles

============================================================
FAILURE POLICY
============================================================
- init failure: FAILED, StartupError, no rollback
- ledger start failure: engine never started, FAILED, StartupError
- engine start failure: ledger shut down first, then FAILED
- shutdown: every failure recorded, always ends STOPPED, never raises
- every collaborator call is bounded by the component timeout

============================================================
"""

from typing import Any, Dict, List, Optional, Sequence
import asyncio
import logging

from core.exceptions import ShutdownError, StartupError
from core.state_manager import LifecycleState, StateManager, StateTransition
from .activation import activate_all
from .components import ComponentFactory, invoke, is_placeholder
from .context import ServiceContext
from .models import (
    ActivationResult,
    ComponentHandle,
    ComponentHandles,
    ComponentStatus,
    ExchangeSpec,
    ShutdownReport,
    ShutdownStep,
)


class LifecycleController:
    """
    Lifecycle controller for one router node.

    All public operations serialize on one asyncio lock, so at
    most one collaborator call is in flight at any time.
    """

    def __init__(
        self,
        context: ServiceContext,
        component_factory: ComponentFactory,
        timeout_seconds: Optional[float] = None,
        allow_placeholders: bool = False,
    ):
        """
        Initialize controller.

        Args:
            context: Bootstrapped service context
            component_factory: Builds the ledger client and routing engine
            timeout_seconds: Bound for each collaborator call (default: from config)
            allow_placeholders: Accept placeholder components (scaffold mode)
        """
        self._context = context
        self._factory = component_factory
        self._timeout = timeout_seconds or context.config.component_timeout_seconds
        self._allow_placeholders = allow_placeholders

        self._handles = ComponentHandles()
        self._state_manager = StateManager()
        self._state_manager.register_listener(self._publish_transition)

        self._lock = asyncio.Lock()
        self._logger = logging.getLogger(__name__)

    # --------------------------------------------------------
    # Properties
    # --------------------------------------------------------

    @property
    def state(self) -> LifecycleState:
        """Get current lifecycle state."""
        return self._state_manager.state

    @property
    def state_manager(self) -> StateManager:
        return self._state_manager

    @property
    def handles(self) -> ComponentHandles:
        """Snapshot of the component slots. Mutating it has no effect."""
        return ComponentHandles(
            ledger_client=self._handles.ledger_client,
            routing_engine=self._handles.routing_engine,
            exchanges=dict(self._handles.exchanges),
        )

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    # --------------------------------------------------------
    # Helpers
    # --------------------------------------------------------

    async def _step(
        self,
        stage: str,
        component: str,
        target: Any,
        method: str,
        *args: Any,
    ) -> Any:
        """
        Run one collaborator call, converting failures into StartupError.

        A missing method fails the stage like any other error.
        """
        self._logger.debug(f"{stage}: {component}.{method}")
        try:
            return await invoke(getattr(target, method), *args, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise StartupError(
                message=f"{stage} timed out after {self._timeout}s",
                stage=stage,
                component=component,
                cause=e,
            )
        except Exception as e:
            raise StartupError(
                message=f"{stage} failed: {e}",
                stage=stage,
                component=component,
                cause=e,
            )

    def _check_placeholder(self, name: str, component: Any) -> None:
        """Refuse placeholder components outside scaffold mode."""
        if not is_placeholder(component):
            self._logger.info(f"Constructed {name}: REAL ({type(component).__name__})")
            return

        if self._allow_placeholders:
            self._logger.warning(
                f"Constructed {name}: PLACEHOLDER ({type(component).__name__}), "
                f"scaffold mode, this node routes no traffic"
            )
            return

        self._logger.critical(
            f"\n"
            f"{'=' * 70}\n"
            f"FATAL ERROR: PLACEHOLDER COMPONENT DETECTED\n"
            f"{'=' * 70}\n"
            f"Component: {name}\n"
            f"Class:     {type(component).__name__}\n"
            f"\n"
            f"Provide a real factory with --components module:attribute,\n"
            f"or run with --scaffold for development.\n"
            f"{'=' * 70}\n"
        )
        raise StartupError(
            message=f"Placeholder component '{name}' is forbidden outside scaffold mode",
            stage="construct",
            component=name,
        )

    async def _fail(self, error: StartupError) -> None:
        self._logger.error(error.to_log_format())
        await self._state_manager.transition_to(
            LifecycleState.FAILED,
            reason=error.message,
            context={"stage": error.stage, "component": error.component},
        )

    async def _shutdown_component(self, handle: ComponentHandle) -> ShutdownStep:
        """Shut down one component, recording instead of raising."""
        handle.mark(ComponentStatus.STOPPING)
        error: Optional[ShutdownError] = None

        try:
            await invoke(handle.instance.shutdown, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            error = ShutdownError(
                message=f"Shutdown timed out: {handle.name}",
                component=handle.name,
                timeout_seconds=self._timeout,
                cause=e,
            )
        except Exception as e:
            error = ShutdownError(
                message=f"Shutdown failed: {handle.name}: {e}",
                component=handle.name,
                cause=e,
            )

        if error is not None:
            handle.mark(ComponentStatus.FAILED, error=error.message)
            self._logger.error(error.to_log_format())
            return ShutdownStep(component=handle.name, success=False, error=error)

        handle.mark(ComponentStatus.STOPPED)
        self._logger.info(f"Stopped component: {handle.name}")
        return ShutdownStep(component=handle.name, success=True)

    async def _publish_transition(self, transition: StateTransition) -> None:
        await self._context.record_metric(f"lifecycle.{transition.to_state.value}")

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    async def init(self) -> None:
        """
        Construct and bind the ledger client and routing engine.

        Raises:
            StateTransitionError: If not UNINITIALIZED
            StartupError: If any construction or binding step fails
        """
        async with self._lock:
            self._state_manager.require(LifecycleState.UNINITIALIZED, operation="init")
            config = self._context.config

            self._logger.info("=== ROUTER NODE INIT SEQUENCE ===")

            try:
                ledger = await self._step(
                    "construct_ledger_client",
                    config.ledger_client_name,
                    self._factory,
                    "create_ledger_client",
                    self._context,
                    config.ledger_client_name,
                )
                self._check_placeholder(config.ledger_client_name, ledger)
                self._handles.ledger_client = ComponentHandle(
                    name=config.ledger_client_name,
                    instance=ledger,
                )

                engine = await self._step(
                    "construct_routing_engine",
                    config.service_prefix,
                    self._factory,
                    "create_routing_engine",
                    self._context,
                    config.service_prefix,
                    config.loss_seconds,
                )
                self._check_placeholder(config.service_prefix, engine)
                self._handles.routing_engine = ComponentHandle(
                    name=config.service_prefix,
                    instance=engine,
                )

                await self._step("engine_init", config.service_prefix, engine, "init")
                await self._step(
                    "set_ledger_client",
                    config.service_prefix,
                    engine,
                    "set_ledger_client",
                    ledger,
                )
                await self._step("bind_transport", config.service_prefix, engine, "bind_transport")

            except StartupError as e:
                await self._fail(e)
                raise

            await self._state_manager.transition_to(
                LifecycleState.INITIALIZED,
                reason="Ledger client and routing engine constructed",
            )

    async def start(self) -> None:
        """
        Start the ledger client, then the routing engine.

        Raises:
            StateTransitionError: If not INITIALIZED
            StartupError: If either start fails
        """
        async with self._lock:
            self._state_manager.require(LifecycleState.INITIALIZED, operation="start")

            self._logger.info("=== ROUTER NODE START SEQUENCE ===")

            ledger = self._handles.ledger_client
            engine = self._handles.routing_engine

            ledger.mark(ComponentStatus.STARTING)
            try:
                await self._step("start_ledger_client", ledger.name, ledger.instance, "start")
            except StartupError as e:
                ledger.mark(ComponentStatus.FAILED, error=e.message)
                await self._fail(e)
                raise
            ledger.mark(ComponentStatus.RUNNING)
            self._logger.info(f"Started component: {ledger.name}")

            engine.mark(ComponentStatus.STARTING)
            try:
                await self._step("start_routing_engine", engine.name, engine.instance, "start")
            except StartupError as e:
                engine.mark(ComponentStatus.FAILED, error=e.message)
                self._logger.warning(
                    f"Routing engine failed to start, rolling back {ledger.name}"
                )
                await self._shutdown_component(ledger)
                await self._fail(e)
                raise
            engine.mark(ComponentStatus.RUNNING)
            self._logger.info(f"Started component: {engine.name}")

            await self._state_manager.transition_to(
                LifecycleState.RUNNING,
                reason="Ledger client and routing engine started",
            )

    async def activate_exchanges(
        self,
        specs: Sequence[ExchangeSpec],
        connector_factory: Any,
    ) -> List[ActivationResult]:
        """
        Attach exchange connectors to the routing engine.

        Never raises for per-exchange failures; see the returned results.
        """
        async with self._lock:
            if not self.state.accepts_traffic:
                self._logger.warning(
                    f"Exchange activation requested in state {self.state.value}"
                )

            results = await activate_all(
                self._handles.routing_engine,
                specs,
                connector_factory,
                timeout_seconds=self._timeout,
                active_identities=self._handles.exchanges.keys(),
            )

            for result in results:
                if result.success:
                    self._handles.exchanges[result.spec.identity] = result.handle

            activated = sum(1 for r in results if r.success)
            failed = len(results) - activated
            self._logger.info(
                f"Exchange activation complete | activated={activated} | failed={failed} | "
                f"active={len(self._handles.exchanges)}"
            )
            await self._context.record_metric("exchanges.activated", activated)
            await self._context.record_metric("exchanges.failed", failed)

            return results

    async def shutdown(self) -> ShutdownReport:
        """
        Shut down the routing engine, then the ledger client.

        Never raises. Ends in STOPPED unless nothing was ever
        initialized.
        """
        async with self._lock:
            state = self._state_manager.state

            if state == LifecycleState.UNINITIALIZED:
                self._logger.info("Shutdown requested before init, nothing to do")
                return ShutdownReport(final_state=state)

            if state.is_terminal:
                self._logger.debug("Shutdown requested again, already stopped")
                return ShutdownReport(final_state=state)

            self._logger.info("=== ROUTER NODE SHUTDOWN SEQUENCE ===")

            # A cancelled earlier shutdown may have left us mid-way
            if state != LifecycleState.SHUTTING_DOWN:
                await self._state_manager.transition_to(
                    LifecycleState.SHUTTING_DOWN,
                    reason=f"Shutdown requested from {state.value}",
                )

            report = ShutdownReport()
            for handle in (self._handles.routing_engine, self._handles.ledger_client):
                if handle is None or not handle.status.needs_shutdown:
                    continue
                report.steps.append(await self._shutdown_component(handle))

            released = list(self._handles.exchanges)
            self._handles.exchanges.clear()
            if released:
                self._logger.info(f"Released exchange handles: {', '.join(released)}")

            await self._state_manager.transition_to(
                LifecycleState.STOPPED,
                reason=(
                    "Shutdown complete" if report.clean
                    else f"Shutdown complete with {len(report.failures)} failure(s)"
                ),
            )
            report.final_state = self._state_manager.state

            self._logger.info("=== ROUTER NODE SHUTDOWN COMPLETE ===")
            return report

    # --------------------------------------------------------
    # Status
    # --------------------------------------------------------

    def get_status(self) -> Dict[str, Any]:
        """Get controller status."""
        return {
            "state": self._state_manager.to_dict(),
            "components": self._handles.to_dict(),
            "timeout_seconds": self._timeout,
            "allow_placeholders": self._allow_placeholders,
        }


__all__ = [
    "LifecycleController",
]

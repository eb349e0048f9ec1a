"""
Lifecycle Controller Tests.

============================================================
PURPOSE
============================================================
Tests for LifecycleController ordering and failure handling.

Fakes append to one shared call log so the tests can assert
the exact order in which collaborators are driven.

TEST CATEGORIES:
- Init sequence
- Start ordering and rollback
- Shutdown ordering, failures and timeouts
- Placeholder policy
- Metrics on transitions

============================================================
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock

from core.exceptions import ShutdownError, StartupError, StateTransitionError
from core.state_manager import LifecycleState
from discovery.memory import MemoryDiscoveryBackend
from exchange_connectors import ExchangeConnectorFactory
from orchestrator.components import PlaceholderComponentFactory
from orchestrator.context import ServiceContext
from orchestrator.controller import LifecycleController
from orchestrator.models import ComponentStatus, ExchangeSpec, NodeConfig


# ============================================================
# FAKES
# ============================================================

class FakeLedger:
    def __init__(self, calls, fail_on=(), hang_on=()):
        self.calls = calls
        self.fail_on = set(fail_on)
        self.hang_on = set(hang_on)

    async def _call(self, name):
        self.calls.append(f"ledger.{name}")
        if name in self.hang_on:
            await asyncio.sleep(10)
        if name in self.fail_on:
            raise RuntimeError(f"ledger {name} failed")

    async def start(self):
        await self._call("start")

    async def shutdown(self):
        await self._call("shutdown")


class FakeEngine:
    def __init__(self, calls, fail_on=(), hang_on=()):
        self.calls = calls
        self.fail_on = set(fail_on)
        self.hang_on = set(hang_on)
        self.ledger_client = None

    async def _call(self, name):
        self.calls.append(f"engine.{name}")
        if name in self.hang_on:
            await asyncio.sleep(10)
        if name in self.fail_on:
            raise RuntimeError(f"engine {name} failed")

    async def init(self):
        await self._call("init")

    def set_ledger_client(self, ledger_client):
        self.calls.append("engine.set_ledger_client")
        self.ledger_client = ledger_client

    async def bind_transport(self):
        await self._call("bind_transport")

    async def start(self):
        await self._call("start")

    async def shutdown(self):
        await self._call("shutdown")


class EngineWithoutBind:
    """Routing engine missing bind_transport."""

    def __init__(self, calls):
        self.calls = calls

    async def init(self):
        self.calls.append("engine.init")

    def set_ledger_client(self, ledger_client):
        self.calls.append("engine.set_ledger_client")

    async def shutdown(self):
        self.calls.append("engine.shutdown")


class FakeFactory:
    def __init__(self, ledger, engine):
        self.ledger = ledger
        self.engine = engine
        self.ledger_args = None
        self.engine_args = None

    def create_ledger_client(self, context, service_name):
        self.ledger_args = (context, service_name)
        return self.ledger

    def create_routing_engine(self, context, service_prefix, loss_seconds):
        self.engine_args = (context, service_prefix, loss_seconds)
        return self.engine


def make_context(metrics=None):
    config = NodeConfig(installation="test", node_name="r1")
    return ServiceContext(config, MemoryDiscoveryBackend("memory://test"), metrics=metrics)


def make_controller(ledger_fail=(), engine_fail=(), ledger_hang=(), engine_hang=(), metrics=None):
    calls = []
    ledger = FakeLedger(calls, fail_on=ledger_fail, hang_on=ledger_hang)
    engine = FakeEngine(calls, fail_on=engine_fail, hang_on=engine_hang)
    factory = FakeFactory(ledger, engine)
    controller = LifecycleController(make_context(metrics), factory, timeout_seconds=0.05)
    return controller, factory, calls


# ============================================================
# INIT
# ============================================================

class TestInit:
    """Tests for init()."""

    @pytest.mark.asyncio
    async def test_init_sequence(self):
        """Construct both, then init, wire ledger, bind transport."""
        controller, factory, calls = make_controller()

        await controller.init()

        assert calls == ["engine.init", "engine.set_ledger_client", "engine.bind_transport"]
        assert controller.state == LifecycleState.INITIALIZED
        assert factory.ledger_args[1] == "router.slaveBanker"
        assert factory.engine_args[1:] == ("router", 15.0)
        assert factory.engine.ledger_client is factory.ledger

    @pytest.mark.asyncio
    async def test_init_failure(self):
        """A failing bind leaves the node FAILED."""
        controller, _, calls = make_controller(engine_fail=["bind_transport"])

        with pytest.raises(StartupError) as exc_info:
            await controller.init()

        assert exc_info.value.stage == "bind_transport"
        assert controller.state == LifecycleState.FAILED
        assert "engine.start" not in calls

    @pytest.mark.asyncio
    async def test_init_timeout(self):
        """A hanging init is a StartupError, not a hang."""
        controller, _, _ = make_controller(engine_hang=["init"])

        with pytest.raises(StartupError) as exc_info:
            await controller.init()

        assert "timed out" in exc_info.value.message
        assert controller.state == LifecycleState.FAILED

    @pytest.mark.asyncio
    async def test_missing_method_fails_init(self):
        """An engine lacking bind_transport fails the stage and is torn down."""
        calls = []
        factory = FakeFactory(FakeLedger(calls), EngineWithoutBind(calls))
        controller = LifecycleController(make_context(), factory, timeout_seconds=0.05)

        with pytest.raises(StartupError) as exc_info:
            await controller.init()

        assert exc_info.value.stage == "bind_transport"
        assert exc_info.value.context["cause_type"] == "AttributeError"
        assert controller.state == LifecycleState.FAILED

        report = await controller.shutdown()

        assert report.final_state == LifecycleState.STOPPED
        assert calls[-2:] == ["engine.shutdown", "ledger.shutdown"]

    @pytest.mark.asyncio
    async def test_missing_start_fails_start(self):
        """A ledger lacking start() leaves the node FAILED, engine untouched."""
        calls = []

        class LedgerWithoutStart:
            async def shutdown(self):
                calls.append("ledger.shutdown")

        factory = FakeFactory(LedgerWithoutStart(), FakeEngine(calls))
        controller = LifecycleController(make_context(), factory, timeout_seconds=0.05)
        await controller.init()

        with pytest.raises(StartupError) as exc_info:
            await controller.start()

        assert exc_info.value.stage == "start_ledger_client"
        assert controller.state == LifecycleState.FAILED
        assert "engine.start" not in calls

    @pytest.mark.asyncio
    async def test_init_twice_rejected(self):
        controller, _, _ = make_controller()
        await controller.init()

        with pytest.raises(StateTransitionError):
            await controller.init()

        assert controller.state == LifecycleState.INITIALIZED


# ============================================================
# START
# ============================================================

class TestStart:
    """Tests for start()."""

    @pytest.mark.asyncio
    async def test_start_before_init_rejected(self):
        """start() requires INITIALIZED and changes nothing otherwise."""
        controller, _, calls = make_controller()

        with pytest.raises(StateTransitionError):
            await controller.start()

        assert controller.state == LifecycleState.UNINITIALIZED
        assert calls == []

    @pytest.mark.asyncio
    async def test_ledger_starts_before_engine(self):
        controller, _, calls = make_controller()
        await controller.init()

        await controller.start()

        assert calls.index("ledger.start") < calls.index("engine.start")
        assert controller.state == LifecycleState.RUNNING
        assert all(h.is_running for h in controller.handles.iter_core())

    @pytest.mark.asyncio
    async def test_ledger_failure_skips_engine(self):
        """The engine is never started without a ledger."""
        controller, _, calls = make_controller(ledger_fail=["start"])
        await controller.init()

        with pytest.raises(StartupError):
            await controller.start()

        assert "engine.start" not in calls
        assert controller.state == LifecycleState.FAILED

    @pytest.mark.asyncio
    async def test_engine_failure_rolls_back_ledger(self):
        """Ledger is shut down before the node reports FAILED."""
        controller, _, calls = make_controller(engine_fail=["start"])
        await controller.init()
        states_at_rollback = []
        controller.state_manager.register_listener(
            AsyncMock(side_effect=lambda t: states_at_rollback.append((t.to_state, list(calls))))
        )

        with pytest.raises(StartupError) as exc_info:
            await controller.start()

        assert exc_info.value.stage == "start_routing_engine"
        assert calls[-2:] == ["engine.start", "ledger.shutdown"]
        assert states_at_rollback[0][0] == LifecycleState.FAILED
        assert states_at_rollback[0][1][-1] == "ledger.shutdown"
        assert controller.handles.ledger_client.status == ComponentStatus.STOPPED


# ============================================================
# SHUTDOWN
# ============================================================

class TestShutdown:
    """Tests for shutdown()."""

    @pytest.mark.asyncio
    async def test_engine_stops_before_ledger(self):
        controller, _, calls = make_controller()
        await controller.init()
        await controller.start()

        report = await controller.shutdown()

        assert calls[-2:] == ["engine.shutdown", "ledger.shutdown"]
        assert report.clean
        assert report.final_state == LifecycleState.STOPPED

    @pytest.mark.asyncio
    async def test_engine_shutdown_failure_still_stops_ledger(self):
        """A failing step is recorded and the sequence continues."""
        controller, _, calls = make_controller(engine_fail=["shutdown"])
        await controller.init()
        await controller.start()

        report = await controller.shutdown()

        assert "ledger.shutdown" in calls
        assert [s.component for s in report.failures] == ["router"]
        assert controller.state == LifecycleState.STOPPED

    @pytest.mark.asyncio
    async def test_shutdown_timeout_recorded(self):
        """A hanging shutdown is cut off by the component timeout."""
        controller, _, calls = make_controller(ledger_hang=["shutdown"])
        await controller.init()
        await controller.start()

        report = await controller.shutdown()

        failure = report.failures[0]
        assert failure.component == "router.slaveBanker"
        assert isinstance(failure.error, ShutdownError)
        assert failure.error.context["timeout_seconds"] == 0.05
        assert report.final_state == LifecycleState.STOPPED

    @pytest.mark.asyncio
    async def test_shutdown_before_init_is_noop(self):
        controller, _, calls = make_controller()

        report = await controller.shutdown()

        assert report.steps == []
        assert report.final_state == LifecycleState.UNINITIALIZED
        assert calls == []

    @pytest.mark.asyncio
    async def test_shutdown_is_idempotent(self):
        """A second shutdown does not touch the components again."""
        controller, _, calls = make_controller()
        await controller.init()
        await controller.start()
        await controller.shutdown()
        calls_after_first = list(calls)

        report = await controller.shutdown()

        assert calls == calls_after_first
        assert report.steps == []
        assert report.final_state == LifecycleState.STOPPED

    @pytest.mark.asyncio
    async def test_shutdown_after_failed_init(self):
        """A FAILED node can still be torn down."""
        controller, _, calls = make_controller(engine_fail=["init"])
        with pytest.raises(StartupError):
            await controller.init()

        report = await controller.shutdown()

        assert calls[-2:] == ["engine.shutdown", "ledger.shutdown"]
        assert report.final_state == LifecycleState.STOPPED


# ============================================================
# EXCHANGES
# ============================================================

class TestExchanges:
    """Tests for activate_exchanges()."""

    @pytest.mark.asyncio
    async def test_activated_exchanges_are_tracked_and_released(self):
        metrics = MagicMock()
        metrics.publish = AsyncMock(return_value=1)
        controller, _, _ = make_controller(metrics=metrics)
        await controller.init()
        await controller.start()
        specs = [
            ExchangeSpec.from_entry(0, {"exchangeType": "mock", "name": "m1"}),
            ExchangeSpec.from_entry(1, {"exchangeType": "nope"}),
        ]

        results = await controller.activate_exchanges(specs, ExchangeConnectorFactory)

        assert [r.success for r in results] == [True, False]
        assert list(controller.handles.exchanges) == ["m1"]
        metrics.publish.assert_any_await("exchanges.activated", 1)
        metrics.publish.assert_any_await("exchanges.failed", 1)

        await controller.shutdown()
        assert controller.handles.exchanges == {}

    @pytest.mark.asyncio
    async def test_second_activation_rejects_duplicates(self):
        controller, _, _ = make_controller()
        await controller.init()
        await controller.start()
        spec = ExchangeSpec.from_entry(0, {"exchangeType": "mock", "name": "m1"})

        await controller.activate_exchanges([spec], ExchangeConnectorFactory)
        results = await controller.activate_exchanges([spec], ExchangeConnectorFactory)

        assert not results[0].success
        assert type(results[0].error).__name__ == "DuplicateExchange"

    @pytest.mark.asyncio
    async def test_activation_before_running_warns(self, caplog):
        """Activation outside RUNNING is logged but still attempted."""
        controller, _, _ = make_controller()
        await controller.init()
        spec = ExchangeSpec.from_entry(0, {"exchangeType": "mock", "name": "m1"})

        with caplog.at_level("WARNING", logger="orchestrator.controller"):
            results = await controller.activate_exchanges([spec], ExchangeConnectorFactory)

        assert "requested in state initialized" in caplog.text
        assert results[0].success


# ============================================================
# PLACEHOLDERS & METRICS
# ============================================================

class TestPlaceholdersAndMetrics:
    """Tests for placeholder refusal and transition metrics."""

    @pytest.mark.asyncio
    async def test_placeholders_refused_by_default(self):
        controller = LifecycleController(make_context(), PlaceholderComponentFactory())

        with pytest.raises(StartupError) as exc_info:
            await controller.init()

        assert exc_info.value.stage == "construct"
        assert controller.state == LifecycleState.FAILED

    @pytest.mark.asyncio
    async def test_placeholders_allowed_in_scaffold_mode(self):
        controller = LifecycleController(
            make_context(),
            PlaceholderComponentFactory(),
            allow_placeholders=True,
        )

        await controller.init()
        await controller.start()

        engine = controller.handles.routing_engine.instance
        assert engine.calls == ["init", "set_ledger_client", "bind_transport", "start"]
        assert controller.state == LifecycleState.RUNNING

    @pytest.mark.asyncio
    async def test_transitions_published(self):
        """Each transition is a lifecycle.<state> metric."""
        metrics = MagicMock()
        metrics.publish = AsyncMock(return_value=1)
        controller, _, _ = make_controller(metrics=metrics)

        await controller.init()
        await controller.start()

        metrics.publish.assert_any_await("lifecycle.initialized", 1)
        metrics.publish.assert_any_await("lifecycle.running", 1)

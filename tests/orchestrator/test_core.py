"""
Router Node Runner Tests.

============================================================
PURPOSE
============================================================
End-to-end runs of RouterNode with in-process discovery and
placeholder components.

TEST CATEGORIES:
- Normal run and stop
- Fatal startup failures
- Bootstrap failure

============================================================
"""

import asyncio
import signal
import sys

import pytest

from core.state_manager import LifecycleState
from discovery.memory import MemoryDiscoveryBackend, MemoryRegistry
from orchestrator.core import RouterNode
from orchestrator.models import ExchangeSpec, NodeConfig


def make_config(**overrides):
    values = {
        "installation": "test",
        "node_name": "r1",
        "zookeeper_uri": "memory://node",
        "exchanges": (
            ExchangeSpec.from_entry(0, {"exchangeType": "mock", "name": "m1"}),
            ExchangeSpec.from_entry(1, {"exchangeType": "unknown"}),
        ),
    }
    values.update(overrides)
    return NodeConfig(**values)


class TestRouterNode:
    """Tests for RouterNode.run_until_stopped()."""

    def setup_method(self):
        MemoryRegistry.clear()

    @pytest.mark.asyncio
    async def test_stop_requested_before_run(self):
        """A pending stop skips activation and shuts the node down."""
        node = RouterNode(make_config(), allow_placeholders=True)
        node.request_stop("test")

        exit_code = await node.run_until_stopped()

        assert exit_code == 0
        assert node.controller.state == LifecycleState.STOPPED
        assert node.context.closed
        assert node.activation_results == []
        assert node.shutdown_report.clean
        assert MemoryRegistry.lookup("node", "test", "r1") is None

    @pytest.mark.asyncio
    async def test_stop_while_running(self):
        """request_stop() from the loop ends the wait."""
        node = RouterNode(make_config(), allow_placeholders=True)
        asyncio.get_running_loop().call_later(0.05, node.request_stop, "later")

        exit_code = await node.run_until_stopped()

        assert exit_code == 0
        assert node.stop_requested
        assert [r.success for r in node.activation_results] == [True, False]
        assert node.get_status()["shutdown"]["final_state"] == "stopped"

    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.platform == "win32", reason="loop signal handlers are POSIX only")
    async def test_signal_during_bootstrap(self):
        """Handlers are live during bootstrap; a stop there skips activation."""
        seen = {}

        def backend_factory(uri):
            seen["during"] = signal.getsignal(signal.SIGTERM)
            node.request_stop("received SIGTERM")
            return MemoryDiscoveryBackend(uri)

        before = signal.getsignal(signal.SIGTERM)
        node = RouterNode(make_config(), allow_placeholders=True, backend_factory=backend_factory)

        exit_code = await node.run_until_stopped()

        assert exit_code == 0
        assert seen["during"] != before
        assert signal.getsignal(signal.SIGTERM) == before
        assert node.activation_results == []
        assert node.controller.state == LifecycleState.STOPPED
        assert node.context.closed

    @pytest.mark.asyncio
    async def test_placeholders_without_scaffold_fail(self):
        """Refused placeholders exit 1 after a full teardown."""
        node = RouterNode(make_config())

        exit_code = await node.run_until_stopped()

        assert exit_code == 1
        assert node.controller.state == LifecycleState.STOPPED
        assert node.activation_results == []
        assert node.context.closed

    @pytest.mark.asyncio
    async def test_bootstrap_failure(self):
        """Unreachable discovery exits 1 before any component exists."""
        node = RouterNode(make_config(zookeeper_uri="ftp://nowhere"), allow_placeholders=True)

        exit_code = await node.run_until_stopped()

        assert exit_code == 1
        assert node.controller is None
        assert node.context is None

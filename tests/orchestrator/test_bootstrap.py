"""
Bootstrap Tests.

============================================================
PURPOSE
============================================================
Tests for bootstrap() and ServiceContext teardown.

TEST CATEGORIES:
- Discovery registration
- Fatal discovery failures
- Non-fatal metrics failures
- Context close

============================================================
"""

import logging
import pytest
from unittest.mock import AsyncMock, MagicMock

from core.exceptions import DiscoveryUnreachable
from discovery.memory import MemoryRegistry
from orchestrator.bootstrap import bootstrap, registration_payload
from orchestrator.models import ExchangeSpec, NodeConfig


def make_config(**overrides):
    values = {"installation": "test", "node_name": "r1", "zookeeper_uri": "memory://boot"}
    values.update(overrides)
    return NodeConfig(**values)


def failing_backend(error):
    backend = MagicMock()
    backend.connect = AsyncMock()
    backend.register = AsyncMock(side_effect=error)
    backend.close = AsyncMock()
    return backend


# ============================================================
# DISCOVERY
# ============================================================

class TestDiscovery:
    """Tests for discovery registration."""

    def setup_method(self):
        MemoryRegistry.clear()

    @pytest.mark.asyncio
    async def test_registers_node(self):
        """The node is registered under installation/node_name."""
        config = make_config(exchanges=(ExchangeSpec.from_entry(0, {"exchangeType": "mock"}),))

        context = await bootstrap(config)

        entry = MemoryRegistry.lookup("boot", "test", "r1")
        assert entry["serviceType"] == "router"
        assert entry["exchanges"] == ["mock#0"]
        assert context.metrics is None

        await context.close()
        assert MemoryRegistry.lookup("boot", "test", "r1") is None
        assert context.closed

    def test_registration_payload(self):
        payload = registration_payload(make_config())

        assert payload["installation"] == "test"
        assert payload["nodeName"] == "r1"
        assert isinstance(payload["pid"], int)

    @pytest.mark.asyncio
    async def test_unsupported_scheme(self):
        with pytest.raises(DiscoveryUnreachable):
            await bootstrap(make_config(zookeeper_uri="zookeeper://zk1:2181"))

    @pytest.mark.asyncio
    async def test_failed_registration_closes_backend(self):
        """A half-open backend is closed before the error surfaces."""
        backend = failing_backend(RuntimeError("refused"))

        with pytest.raises(DiscoveryUnreachable) as exc_info:
            await bootstrap(make_config(), backend_factory=lambda uri: backend)

        backend.close.assert_awaited_once()
        assert "refused" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_backend_factory_error_wrapped(self):
        def broken_factory(uri):
            raise ValueError("bad uri")

        with pytest.raises(DiscoveryUnreachable):
            await bootstrap(make_config(), backend_factory=broken_factory)

    @pytest.mark.asyncio
    async def test_log_handlers_detached_on_failure(self, tmp_path):
        """Log handlers attached for the run are removed again."""
        root = logging.getLogger()
        before = list(root.handlers)
        config = make_config(
            zookeeper_uri="ftp://nowhere",
            log_uris=(f"file://{tmp_path / 'router.log'}",),
        )

        with pytest.raises(DiscoveryUnreachable):
            await bootstrap(config)

        assert root.handlers == before


# ============================================================
# METRICS
# ============================================================

class TestMetrics:
    """Carbon never blocks startup."""

    def setup_method(self):
        MemoryRegistry.clear()

    @pytest.mark.asyncio
    async def test_unreachable_carbon_runs_without_metrics(self, unused_tcp_port):
        config = make_config(carbon_uris=(f"127.0.0.1:{unused_tcp_port}",))

        context = await bootstrap(config)

        assert context.metrics is None
        await context.record_metric("lifecycle.running")
        await context.close()

    @pytest.mark.asyncio
    async def test_connected_publisher_kept(self):
        publisher = MagicMock()
        publisher.connect = AsyncMock(return_value=1)
        publisher.publish = AsyncMock(return_value=1)
        publisher.close = AsyncMock()
        created = []

        def publisher_factory(prefix, uris):
            created.append((prefix, tuple(uris)))
            return publisher

        context = await bootstrap(
            make_config(carbon_uris=("carbon1:2003",)),
            publisher_factory=publisher_factory,
        )

        assert context.metrics is publisher
        assert created == [("test.r1", ("carbon1:2003",))]

        await context.record_metric("lifecycle.running")
        publisher.publish.assert_awaited_once_with("lifecycle.running", 1)

        await context.close()
        await context.close()
        publisher.close.assert_awaited_once()

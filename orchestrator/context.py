"""
Orchestrator - Service Context.

============================================================
RESPONSIBILITY
============================================================
Shared handle on the node's outside connections.

- Discovery backend the node is registered with
- Optional Carbon publisher (None when metrics are disabled)
- Log handlers attached for --log-uri
- The NodeConfig

Created only by bootstrap(), closed only by close(). Components
receive it by reference and never close it themselves.

============================================================
"""

from typing import Any, Dict, List, Optional
import logging

from discovery.base import DiscoveryBackend
from telemetry.carbon import CarbonPublisher
from telemetry.log_handlers import detach_log_handlers
from .models import NodeConfig


logger = logging.getLogger(__name__)


class ServiceContext:
    """Discovery, metrics and log publication for one node."""

    def __init__(
        self,
        config: NodeConfig,
        discovery: DiscoveryBackend,
        metrics: Optional[CarbonPublisher] = None,
        log_handlers: Optional[List[logging.Handler]] = None,
    ):
        self._config = config
        self._discovery = discovery
        self._metrics = metrics
        self._log_handlers = list(log_handlers or [])
        self._closed = False

    @property
    def config(self) -> NodeConfig:
        return self._config

    @property
    def discovery(self) -> DiscoveryBackend:
        return self._discovery

    @property
    def metrics(self) -> Optional[CarbonPublisher]:
        """Carbon publisher, or None when metrics are disabled."""
        return self._metrics

    @property
    def closed(self) -> bool:
        return self._closed

    async def record_metric(self, path: str, value: float = 1) -> None:
        """Publish a metric when metrics are enabled."""
        if self._metrics is not None and not self._closed:
            await self._metrics.publish(path, value)

    async def close(self) -> None:
        """
        Release every outside connection.

        Unregisters the node, closes metrics and discovery, then
        detaches log handlers. Errors are logged; close() never raises.
        """
        if self._closed:
            return
        self._closed = True

        config = self._config
        try:
            await self._discovery.unregister(config.installation, config.node_name)
        except Exception as e:
            logger.warning(f"Failed to unregister {config.installation}/{config.node_name}: {e}")

        if self._metrics is not None:
            try:
                await self._metrics.close()
            except Exception as e:
                logger.warning(f"Failed to close carbon publisher: {e}")

        try:
            await self._discovery.close()
        except Exception as e:
            logger.warning(f"Failed to close discovery backend: {e}")

        logger.info("Service context closed")
        detach_log_handlers(self._log_handlers)
        self._log_handlers = []

    def get_status(self) -> Dict[str, Any]:
        """Get context status."""
        return {
            "closed": self._closed,
            "discovery": self._discovery.get_status(),
            "metrics": self._metrics.get_status() if self._metrics else None,
            "log_handlers": [type(h).__name__ for h in self._log_handlers],
        }


__all__ = [
    "ServiceContext",
]

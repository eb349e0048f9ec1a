"""
Orchestrator - Discovery & Telemetry Bootstrap.

============================================================
RESPONSIBILITY
============================================================
Connects the node to the outside world before any component
is constructed.

1. Attach log publication handlers (--log-uri)
2. Connect the discovery backend selected by the URI scheme
3. Register the node under its installation namespace
4. Connect Carbon, if any endpoint is configured

============================================================
FAILURE POLICY
============================================================
- Discovery failure is fatal: DiscoveryUnreachable, no retry,
  the half-open backend is closed first.
- Carbon failure is never fatal: the node runs without metrics.
- A bad log URI is skipped.

============================================================
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Sequence
import logging
import os
import socket

from core.exceptions import DiscoveryUnreachable, MetricsUnavailable
from discovery.base import DiscoveryBackend, describe_failure
from discovery.factory import BackendFactory, create_backend
from telemetry.carbon import CarbonPublisher
from telemetry.log_handlers import attach_log_handlers, detach_log_handlers
from .context import ServiceContext
from .models import NodeConfig


logger = logging.getLogger(__name__)


PublisherFactory = Callable[[str, Sequence[str]], CarbonPublisher]


def registration_payload(config: NodeConfig) -> Dict[str, Any]:
    """Payload the node registers with discovery."""
    return {
        "serviceType": config.service_prefix,
        "installation": config.installation,
        "nodeName": config.node_name,
        "host": socket.gethostname(),
        "pid": os.getpid(),
        "startedAt": datetime.now(timezone.utc).isoformat(),
        "exchanges": [spec.identity for spec in config.exchanges],
    }


async def _connect_discovery(
    config: NodeConfig,
    backend_factory: BackendFactory,
) -> DiscoveryBackend:
    try:
        backend = backend_factory(config.zookeeper_uri)
    except DiscoveryUnreachable:
        raise
    except Exception as e:
        raise DiscoveryUnreachable(
            message=f"Cannot create discovery backend: {describe_failure(e)}",
            uri=config.zookeeper_uri,
            cause=e,
        )

    try:
        await backend.connect()
        await backend.register(
            config.installation,
            config.node_name,
            registration_payload(config),
        )
    except Exception as e:
        try:
            await backend.close()
        except Exception as close_error:
            logger.warning(f"Failed to close discovery backend: {close_error}")

        if isinstance(e, DiscoveryUnreachable):
            raise
        raise DiscoveryUnreachable(
            message=f"Discovery registration failed: {describe_failure(e)}",
            uri=config.zookeeper_uri,
            cause=e,
        )

    return backend


async def _connect_metrics(
    config: NodeConfig,
    publisher_factory: PublisherFactory,
) -> Optional[CarbonPublisher]:
    if not config.carbon_uris:
        logger.info("No carbon connection configured, metrics disabled")
        return None

    publisher = publisher_factory(config.metrics_prefix, config.carbon_uris)
    try:
        connected = await publisher.connect()
    except Exception as e:
        connected = 0
        logger.warning(f"Carbon connection failed: {e}")

    if connected == 0:
        await publisher.close()
        error = MetricsUnavailable(
            message="No carbon endpoint reachable, running without metrics",
            context={"endpoints": list(config.carbon_uris)},
        )
        logger.warning(error.to_log_format())
        return None

    return publisher


async def bootstrap(
    config: NodeConfig,
    backend_factory: Optional[BackendFactory] = None,
    publisher_factory: Optional[PublisherFactory] = None,
) -> ServiceContext:
    """
    Build the ServiceContext for a validated config.

    Args:
        config: Validated node configuration
        backend_factory: URI -> DiscoveryBackend (default: by scheme)
        publisher_factory: (prefix, uris) -> CarbonPublisher

    Returns:
        ServiceContext, owned by the caller

    Raises:
        DiscoveryUnreachable: If discovery cannot be reached or refuses registration
    """
    logger.info(
        f"Bootstrapping node {config.metrics_prefix} | discovery={config.zookeeper_uri}"
    )

    log_handlers = attach_log_handlers(config.log_uris)

    try:
        backend = await _connect_discovery(config, backend_factory or create_backend)
    except DiscoveryUnreachable as e:
        logger.critical(e.to_log_format())
        detach_log_handlers(log_handlers)
        raise

    metrics = await _connect_metrics(config, publisher_factory or CarbonPublisher)

    context = ServiceContext(
        config=config,
        discovery=backend,
        metrics=metrics,
        log_handlers=log_handlers,
    )
    logger.info(
        f"Bootstrap complete | registered={config.installation}/{config.node_name} | "
        f"metrics={'enabled' if metrics else 'disabled'}"
    )
    return context


__all__ = [
    "PublisherFactory",
    "registration_payload",
    "bootstrap",
]

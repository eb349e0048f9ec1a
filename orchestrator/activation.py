"""
Orchestrator - Exchange Activation.

============================================================
RESPONSIBILITY
============================================================
Attaches exchange connectors to a running routing engine.

- Refuses every entry while the engine is not RUNNING
- Processes entries in document order
- Bounds each start by the component timeout
- Isolates failures: one bad entry never stops the others

============================================================
"""

from typing import Any, Collection, List, Optional, Sequence
import asyncio
import logging

from core.exceptions import (
    ActivationError,
    DuplicateExchange,
    EngineNotRunning,
    ExchangeStartFailed,
)
from .components import invoke
from .models import ActivationResult, ComponentHandle, ComponentStatus, ExchangeSpec


logger = logging.getLogger(__name__)


async def activate_one(
    engine: Any,
    spec: ExchangeSpec,
    factory: Any,
    timeout_seconds: Optional[float],
) -> ActivationResult:
    """Start one connector, converting every failure into an ActivationError."""
    identity = spec.identity

    try:
        connector = await invoke(
            factory.start_exchange,
            engine,
            spec,
            timeout=timeout_seconds,
        )
    except ActivationError as e:
        return ActivationResult(spec=spec, error=e)
    except asyncio.TimeoutError as e:
        return ActivationResult(
            spec=spec,
            error=ExchangeStartFailed(
                message=f"Exchange start timed out after {timeout_seconds}s",
                exchange=identity,
                context={"exchange_type": spec.exchange_type},
                cause=e,
            ),
        )
    except Exception as e:
        return ActivationResult(
            spec=spec,
            error=ExchangeStartFailed(
                message=f"Exchange start failed: {e}",
                exchange=identity,
                context={"exchange_type": spec.exchange_type},
                cause=e,
            ),
        )

    handle = ComponentHandle(name=identity, instance=connector)
    handle.mark(ComponentStatus.RUNNING)
    return ActivationResult(spec=spec, handle=handle)


async def activate_all(
    engine_handle: Optional[ComponentHandle],
    specs: Sequence[ExchangeSpec],
    factory: Any,
    timeout_seconds: Optional[float] = None,
    active_identities: Collection[str] = (),
) -> List[ActivationResult]:
    """
    Activate every exchange spec against the routing engine.

    Args:
        engine_handle: Handle of the routing engine
        specs: Exchange specs in document order
        factory: Object with start_exchange(engine, spec)
        timeout_seconds: Bound for each start
        active_identities: Identities of connectors already attached

    Returns:
        One ActivationResult per spec, in the same order
    """
    if engine_handle is None or not engine_handle.is_running:
        engine_status = engine_handle.status.value if engine_handle else None
        logger.warning(
            f"Routing engine not running (status={engine_status}), "
            f"refusing {len(specs)} exchange(s)"
        )
        return [
            ActivationResult(
                spec=spec,
                error=EngineNotRunning(exchange=spec.identity, engine_status=engine_status),
            )
            for spec in specs
        ]

    results: List[ActivationResult] = []
    seen = set(active_identities)

    for spec in specs:
        if spec.identity in seen:
            result = ActivationResult(spec=spec, error=DuplicateExchange(spec.identity))
        else:
            result = await activate_one(engine_handle.instance, spec, factory, timeout_seconds)

        if result.success:
            seen.add(spec.identity)
            logger.info(f"Exchange activated: {spec.identity} ({spec.exchange_type})")
        else:
            logger.error(f"Exchange activation failed: {result.error.to_log_format()}")

        results.append(result)

    return results


__all__ = [
    "activate_one",
    "activate_all",
]

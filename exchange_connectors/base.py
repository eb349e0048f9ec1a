"""
Exchange Connectors - Base Connector.

============================================================
PURPOSE
============================================================
Common shape of an exchange connector attached to the routing
engine.

A connector is created from one entry of the exchange document,
started once by the activation loop, and shut down by its own
owner. The node only tracks it.

============================================================
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional
import logging

if TYPE_CHECKING:
    from orchestrator.models import ExchangeSpec


logger = logging.getLogger(__name__)


class ExchangeConnector(ABC):
    """Base class for exchange connectors."""

    exchange_type: str = ""

    def __init__(self, engine: Any, spec: "ExchangeSpec"):
        self._engine = engine
        self._spec = spec
        self._started_at: Optional[datetime] = None
        self._stopped_at: Optional[datetime] = None

    @property
    def engine(self) -> Any:
        return self._engine

    @property
    def spec(self) -> "ExchangeSpec":
        return self._spec

    @property
    def identity(self) -> str:
        return self._spec.identity

    @property
    def parameters(self) -> Mapping[str, Any]:
        return self._spec.parameters

    @property
    def is_started(self) -> bool:
        return self._started_at is not None and self._stopped_at is None

    async def start(self) -> None:
        """Start accepting exchange traffic."""
        await self._start()
        self._started_at = datetime.now(timezone.utc)
        self._stopped_at = None
        logger.info(f"Exchange connector started: {self.identity}")

    async def shutdown(self) -> None:
        """Stop accepting exchange traffic."""
        if not self.is_started:
            return
        await self._shutdown()
        self._stopped_at = datetime.now(timezone.utc)
        logger.info(f"Exchange connector stopped: {self.identity}")

    @abstractmethod
    async def _start(self) -> None:
        ...

    @abstractmethod
    async def _shutdown(self) -> None:
        ...

    def get_status(self) -> Dict[str, Any]:
        """Get connector status."""
        return {
            "identity": self.identity,
            "exchange_type": self._spec.exchange_type,
            "started": self.is_started,
            "started_at": self._started_at.isoformat() if self._started_at else None,
        }


__all__ = [
    "ExchangeConnector",
]

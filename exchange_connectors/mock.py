"""
Exchange Connectors - Mock Connector.

============================================================
PURPOSE
============================================================
Connector for tests and scaffold runs.

FEATURES (read from the exchange entry):
- startDelayMs: simulated start latency
- failOnStart: start raises ConnectionError
- failMessage: message for the injected failure

============================================================
EXAMPLE ENTRY
============================================================
{"exchangeType": "mock", "name": "mock-1", "startDelayMs": 5}

============================================================
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Mapping
import asyncio
import logging

from .base import ExchangeConnector

if TYPE_CHECKING:
    from orchestrator.models import ExchangeSpec


logger = logging.getLogger(__name__)


TRUTHY = ("1", "true", "yes", "on")


def parse_flag(value: Any) -> bool:
    """Read a JSON flag. Strings are true only for 1, true, yes or on."""
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY
    return bool(value)


@dataclass
class MockConfig:
    """Configuration for the mock connector."""

    start_delay_ms: float = 0.0
    """Simulated start latency."""

    fail_on_start: bool = False
    """Whether start raises."""

    fail_message: str = "Mock exchange refused to start"

    @classmethod
    def from_parameters(cls, parameters: Mapping[str, Any]) -> "MockConfig":
        return cls(
            start_delay_ms=float(parameters.get("startDelayMs", 0.0)),
            fail_on_start=parse_flag(parameters.get("failOnStart", False)),
            fail_message=str(parameters.get("failMessage", cls.fail_message)),
        )


class MockExchangeConnector(ExchangeConnector):
    """Exchange connector that accepts no real traffic."""

    exchange_type = "mock"

    def __init__(self, engine: Any, spec: "ExchangeSpec"):
        super().__init__(engine, spec)
        self._config = MockConfig.from_parameters(spec.parameters)
        self.start_calls = 0
        self.shutdown_calls = 0

    @property
    def config(self) -> MockConfig:
        return self._config

    async def _start(self) -> None:
        self.start_calls += 1
        if self._config.start_delay_ms > 0:
            await asyncio.sleep(self._config.start_delay_ms / 1000.0)
        if self._config.fail_on_start:
            raise ConnectionError(self._config.fail_message)

    async def _shutdown(self) -> None:
        self.shutdown_calls += 1

    def get_status(self) -> Dict[str, Any]:
        status = super().get_status()
        status["start_calls"] = self.start_calls
        return status


__all__ = [
    "MockConfig",
    "parse_flag",
    "MockExchangeConnector",
]

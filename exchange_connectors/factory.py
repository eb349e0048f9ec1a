"""
Exchange Connector Factory.

============================================================
PURPOSE
============================================================
Factory for creating and starting exchange connectors.

FEATURES:
- Registry of exchange type -> connector class or creator
- Built-in mock connector
- start_exchange(engine, spec): create, then start

============================================================
USAGE
============================================================
```python
ExchangeConnectorFactory.register("rubicon", connector_class=RubiconConnector)

connector = await ExchangeConnectorFactory.start_exchange(engine, spec)
```

============================================================
"""

from typing import TYPE_CHECKING, Any, Callable, Dict, List, Type
import inspect
import logging

from core.exceptions import UnknownExchangeType
from .base import ExchangeConnector

if TYPE_CHECKING:
    from orchestrator.models import ExchangeSpec


logger = logging.getLogger(__name__)


ConnectorCreator = Callable[[Any, "ExchangeSpec"], Any]

BUILTIN_TYPES = ("mock",)


class ExchangeConnectorFactory:
    """
    Factory for exchange connectors.

    Connector shutdown stays with the connector; the factory only
    creates and starts.
    """

    # Registry of connector classes
    _registry: Dict[str, Type[ExchangeConnector]] = {}

    # Custom creation functions
    _creators: Dict[str, ConnectorCreator] = {}

    @classmethod
    def register(
        cls,
        exchange_type: str,
        connector_class: Type[ExchangeConnector] = None,
        creator: ConnectorCreator = None,
    ) -> None:
        """
        Register a connector class or creator.

        Args:
            exchange_type: Value of exchangeType in the exchange document
            connector_class: Class called as connector_class(engine, spec)
            creator: Function called as creator(engine, spec)
        """
        exchange_type = exchange_type.lower()

        if connector_class:
            cls._registry[exchange_type] = connector_class
        if creator:
            cls._creators[exchange_type] = creator

    @classmethod
    def unregister(cls, exchange_type: str) -> None:
        """Unregister a connector type."""
        exchange_type = exchange_type.lower()
        cls._registry.pop(exchange_type, None)
        cls._creators.pop(exchange_type, None)

    @classmethod
    def supports(cls, exchange_type: str) -> bool:
        return exchange_type.lower() in cls.list_supported()

    @classmethod
    def list_supported(cls) -> List[str]:
        """List supported exchange types."""
        return sorted(set(BUILTIN_TYPES) | set(cls._registry) | set(cls._creators))

    @classmethod
    def create(cls, engine: Any, spec: "ExchangeSpec") -> Any:
        """
        Create a connector without starting it.

        Raises:
            UnknownExchangeType: If no connector handles the type
        """
        exchange_type = spec.exchange_type.lower()

        if exchange_type in cls._creators:
            return cls._creators[exchange_type](engine, spec)

        if exchange_type in cls._registry:
            return cls._registry[exchange_type](engine, spec)

        return cls._create_default(exchange_type, engine, spec)

    @classmethod
    def _create_default(cls, exchange_type: str, engine: Any, spec: "ExchangeSpec") -> Any:
        """Create connector using default imports."""
        if exchange_type == "mock":
            from .mock import MockExchangeConnector
            return MockExchangeConnector(engine, spec)

        raise UnknownExchangeType(spec.exchange_type, exchange=spec.identity)

    @classmethod
    async def start_exchange(cls, engine: Any, spec: "ExchangeSpec") -> Any:
        """
        Create a connector for the spec and start it.

        Returns:
            Started connector

        Raises:
            UnknownExchangeType: If no connector handles the type
            Exception: Whatever the connector's start raises
        """
        connector = cls.create(engine, spec)

        result = connector.start()
        if inspect.isawaitable(result):
            await result

        logger.debug(f"Started {spec.exchange_type} connector {spec.identity}")
        return connector


__all__ = [
    "ConnectorCreator",
    "ExchangeConnectorFactory",
]

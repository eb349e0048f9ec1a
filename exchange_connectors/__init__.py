"""
Exchange Connectors Package.

Connectors that attach exchanges to the routing engine:

- base: ExchangeConnector lifecycle shape
- factory: exchange type registry and start_exchange()
- mock: connector for tests and scaffold runs
"""

from .base import ExchangeConnector
from .factory import ConnectorCreator, ExchangeConnectorFactory
from .mock import MockConfig, MockExchangeConnector

__all__ = [
    "ExchangeConnector",
    "ConnectorCreator",
    "ExchangeConnectorFactory",
    "MockConfig",
    "MockExchangeConnector",
]

"""
Telemetry Package.

- carbon: metrics publication over the Carbon plaintext protocol
- log_handlers: log publication to --log-uri targets
"""

from .carbon import CarbonPublisher, parse_endpoint
from .log_handlers import attach_log_handlers, create_log_handler, detach_log_handlers

__all__ = [
    "CarbonPublisher",
    "parse_endpoint",
    "attach_log_handlers",
    "create_log_handler",
    "detach_log_handlers",
]

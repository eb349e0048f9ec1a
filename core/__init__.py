"""
Core Module Package.

Infrastructure shared by every part of the router node:

- exceptions: Custom exception hierarchy
- state_manager: Lifecycle state machine
"""

from .exceptions import (
    ActivationError,
    ActivationErrorKind,
    BootstrapError,
    ConfigErrorKind,
    ConfigurationError,
    DiscoveryUnreachable,
    LifecycleError,
    RouterNodeException,
    ShutdownError,
    StartupError,
    StateTransitionError,
)
from .state_manager import LifecycleState, StateManager, StateTransition

__all__ = [
    "ActivationError",
    "ActivationErrorKind",
    "BootstrapError",
    "ConfigErrorKind",
    "ConfigurationError",
    "DiscoveryUnreachable",
    "LifecycleError",
    "RouterNodeException",
    "ShutdownError",
    "StartupError",
    "StateTransitionError",
    "LifecycleState",
    "StateManager",
    "StateTransition",
]

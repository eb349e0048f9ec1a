"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the router node runner.

- Provides clear exception hierarchy
- Separates fatal from degraded-mode failures
- Carries an error kind for typed results
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
RouterNodeException (base)
├── ConfigurationError
│   ├── MissingRequiredField
│   ├── InvalidExchangeConfig
│   └── InvalidConfigValue
├── BootstrapError
│   ├── DiscoveryUnreachable
│   └── MetricsUnavailable
├── LifecycleError
│   ├── StateTransitionError
│   ├── StartupError
│   └── ShutdownError
└── ActivationError
    ├── EngineNotRunning
    ├── UnknownExchangeType
    ├── ExchangeStartFailed
    └── DuplicateExchange

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for alerting."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, degraded operation."""

    HIGH = "high"
    """Serious issue, a component is unusable."""

    CRITICAL = "critical"
    """The node cannot continue."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """The node keeps running with reduced capability."""

    TRANSIENT = "transient"
    """Temporary error, a later restart may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, the node must stop."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class RouterNodeException(Exception):
    """
    Base exception for all router node errors.

    All exceptions carry:
    - severity: for alerting
    - context: for debugging
    - classification: for deciding between abort and degraded mode
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause is not None:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_fatal(self) -> bool:
        """Check if the error must stop the node."""
        return self.classification == ErrorClassification.NON_RECOVERABLE

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        line = f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
        if ctx_str:
            line += f" | {ctx_str}"
        return line


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigErrorKind(Enum):
    """Kinds of configuration failure reported by the validator."""

    MISSING_REQUIRED_FIELD = "missing_required_field"
    INVALID_EXCHANGE_CONFIG = "invalid_exchange_config"
    INVALID_VALUE = "invalid_value"


class ConfigurationError(RouterNodeException):
    """Error in operator-supplied configuration."""

    default_severity = Severity.CRITICAL
    default_classification = ErrorClassification.NON_RECOVERABLE
    kind: ConfigErrorKind = ConfigErrorKind.INVALID_VALUE

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key

        super().__init__(message, context=context, **kwargs)
        self.config_key = config_key


class MissingRequiredField(ConfigurationError):
    """A required option was not supplied."""

    kind = ConfigErrorKind.MISSING_REQUIRED_FIELD

    def __init__(self, key: str, option: Optional[str] = None):
        label = option.lstrip("-") if option else key
        super().__init__(
            message=f"'{label}' parameter is required",
            config_key=key,
            context={"option": option} if option else {},
        )


class InvalidExchangeConfig(ConfigurationError):
    """The exchange configuration document is unreadable or malformed."""

    kind = ConfigErrorKind.INVALID_EXCHANGE_CONFIG

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        entry_index: Optional[int] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if path:
            context["path"] = path
        if entry_index is not None:
            context["entry_index"] = entry_index

        super().__init__(
            message,
            config_key="exchange_configuration",
            context=context,
            **kwargs,
        )


class InvalidConfigValue(ConfigurationError):
    """An option has a value outside its allowed range."""

    kind = ConfigErrorKind.INVALID_VALUE

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid value for {key}: {reason}",
            config_key=key,
            context={"actual_value": str(value)[:100], "reason": reason},
        )


# ============================================================
# BOOTSTRAP ERRORS
# ============================================================

class BootstrapError(RouterNodeException):
    """Base class for discovery and telemetry wiring errors."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.TRANSIENT


class DiscoveryUnreachable(BootstrapError):
    """The discovery backend could not be reached or refused registration."""

    default_severity = Severity.CRITICAL
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        uri: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if uri:
            context["uri"] = uri

        super().__init__(message, context=context, **kwargs)
        self.uri = uri


class MetricsUnavailable(BootstrapError):
    """No metrics endpoint could be reached. The node runs without metrics."""

    default_severity = Severity.MEDIUM
    default_classification = ErrorClassification.RECOVERABLE

    def __init__(self, message: str, endpoint: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})

        if endpoint:
            context["endpoint"] = endpoint

        super().__init__(message, context=context, **kwargs)


# ============================================================
# LIFECYCLE ERRORS
# ============================================================

class LifecycleError(RouterNodeException):
    """Base class for lifecycle controller errors."""

    default_severity = Severity.CRITICAL
    default_classification = ErrorClassification.NON_RECOVERABLE


class StateTransitionError(LifecycleError):
    """Invalid lifecycle state transition."""

    def __init__(
        self,
        message: str,
        from_state: Optional[str] = None,
        to_state: Optional[str] = None,
        reason: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if from_state:
            context["from_state"] = from_state
        if to_state:
            context["to_state"] = to_state
        if reason:
            context["reason"] = reason

        super().__init__(message, context=context, **kwargs)


class StartupError(LifecycleError):
    """Construction, binding or start of a component failed."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        component: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if stage:
            context["stage"] = stage
        if component:
            context["component"] = component

        super().__init__(message, context=context, **kwargs)
        self.stage = stage
        self.component = component


class ShutdownError(LifecycleError):
    """A component failed to shut down. Recorded, never raised by shutdown()."""

    default_severity = Severity.MEDIUM
    default_classification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if component:
            context["component"] = component
        if timeout_seconds is not None:
            context["timeout_seconds"] = timeout_seconds

        super().__init__(message, context=context, **kwargs)
        self.component = component


# ============================================================
# ACTIVATION ERRORS
# ============================================================

class ActivationErrorKind(Enum):
    """Kinds of per-exchange activation failure."""

    ENGINE_NOT_RUNNING = "engine_not_running"
    UNKNOWN_EXCHANGE_TYPE = "unknown_exchange_type"
    START_FAILED = "start_failed"
    DUPLICATE_EXCHANGE = "duplicate_exchange"


class ActivationError(RouterNodeException):
    """A single exchange connector failed to go live. Never fatal to the node."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.RECOVERABLE
    kind: ActivationErrorKind = ActivationErrorKind.START_FAILED

    def __init__(
        self,
        message: str,
        exchange: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if exchange:
            context["exchange"] = exchange

        super().__init__(message, context=context, **kwargs)
        self.exchange = exchange


class EngineNotRunning(ActivationError):
    """Activation was attempted before the routing engine accepted traffic."""

    kind = ActivationErrorKind.ENGINE_NOT_RUNNING

    def __init__(self, exchange: Optional[str] = None, engine_status: Optional[str] = None):
        super().__init__(
            message="Routing engine is not running",
            exchange=exchange,
            context={"engine_status": engine_status} if engine_status else {},
        )


class UnknownExchangeType(ActivationError):
    """No connector is registered for the exchange type."""

    kind = ActivationErrorKind.UNKNOWN_EXCHANGE_TYPE

    def __init__(self, exchange_type: str, exchange: Optional[str] = None):
        super().__init__(
            message=f"Unsupported exchange type: {exchange_type}",
            exchange=exchange,
            context={"exchange_type": exchange_type},
        )


class ExchangeStartFailed(ActivationError):
    """The connector factory or the connector start call failed."""

    kind = ActivationErrorKind.START_FAILED


class DuplicateExchange(ActivationError):
    """Another connector with the same identity is already active."""

    kind = ActivationErrorKind.DUPLICATE_EXCHANGE

    def __init__(self, exchange: str):
        super().__init__(
            message=f"Exchange already active: {exchange}",
            exchange=exchange,
        )


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "Severity",
    "ErrorClassification",
    "RouterNodeException",
    "ConfigErrorKind",
    "ConfigurationError",
    "MissingRequiredField",
    "InvalidExchangeConfig",
    "InvalidConfigValue",
    "BootstrapError",
    "DiscoveryUnreachable",
    "MetricsUnavailable",
    "LifecycleError",
    "StateTransitionError",
    "StartupError",
    "ShutdownError",
    "ActivationErrorKind",
    "ActivationError",
    "EngineNotRunning",
    "UnknownExchangeType",
    "ExchangeStartFailed",
    "DuplicateExchange",
]

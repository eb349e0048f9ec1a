"""
Orchestrator - Configuration Validator.

============================================================
RESPONSIBILITY
============================================================
Turns raw operator options into an immutable NodeConfig.

- Checks required identity fields first
- Applies defaults (discovery URI, loss seconds, timeouts)
- Reads and checks the exchange configuration document
- Reports failures as a typed result, never exits the process

============================================================
EXCHANGE DOCUMENT
============================================================
A JSON array. Every entry is an object with a non-empty
string "exchangeType"; all other fields are passed to the
connector untouched. An optional string "name" overrides the
default connector identity.

============================================================
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union
import json
import logging

from core.exceptions import (
    ConfigurationError,
    InvalidConfigValue,
    InvalidExchangeConfig,
    MissingRequiredField,
)
from .models import (
    DEFAULT_COMPONENT_TIMEOUT_SECONDS,
    DEFAULT_DISCOVERY_URI,
    DEFAULT_LOSS_SECONDS,
    ExchangeSpec,
    NodeConfig,
)


logger = logging.getLogger(__name__)


REQUIRED_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("installation", "--installation"),
    ("node_name", "--node-name"),
)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("json", "text")


# ============================================================
# VALIDATION RESULT
# ============================================================

@dataclass(frozen=True)
class ValidationResult:
    """Either a NodeConfig or the ConfigurationError that prevented it."""

    config: Optional[NodeConfig] = None
    error: Optional[ConfigurationError] = None

    @property
    def ok(self) -> bool:
        """Check if validation succeeded."""
        return self.error is None

    def unwrap(self) -> NodeConfig:
        """
        Get the config.

        Raises:
            ConfigurationError: If validation failed
        """
        if self.error is not None:
            raise self.error
        return self.config


# ============================================================
# EXCHANGE DOCUMENT
# ============================================================

def load_exchange_document(path: Union[str, Path]) -> bytes:
    """
    Read the raw exchange document.

    Raises:
        InvalidExchangeConfig: If the file cannot be read
    """
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise InvalidExchangeConfig(
            message=f"Cannot read exchange configuration: {e.strerror or e}",
            path=str(path),
            cause=e,
        )


def parse_exchange_document(
    raw: bytes,
    path: Optional[str] = None,
) -> Tuple[ExchangeSpec, ...]:
    """
    Parse the exchange document into specs, in document order.

    Raises:
        InvalidExchangeConfig: On invalid JSON or an invalid entry
    """
    try:
        document = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidExchangeConfig(
            message=f"Exchange configuration is not valid JSON: {e}",
            path=path,
            cause=e,
        )

    if not isinstance(document, list):
        raise InvalidExchangeConfig(
            message=(
                "Exchange configuration must be a JSON array, "
                f"got {type(document).__name__}"
            ),
            path=path,
        )

    specs: List[ExchangeSpec] = []
    for index, entry in enumerate(document):
        if not isinstance(entry, dict):
            raise InvalidExchangeConfig(
                message=f"Exchange entry {index} is not an object",
                path=path,
                entry_index=index,
            )

        exchange_type = entry.get("exchangeType")
        if not isinstance(exchange_type, str) or not exchange_type.strip():
            raise InvalidExchangeConfig(
                message=f"Exchange entry {index} has no exchangeType",
                path=path,
                entry_index=index,
            )

        specs.append(ExchangeSpec.from_entry(index, entry))

    return tuple(specs)


# ============================================================
# FIELD HELPERS
# ============================================================

def _split_uris(value: Union[None, str, Sequence[str]]) -> Tuple[str, ...]:
    """Accept a sequence of URIs or a comma-separated string."""
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    return tuple(item.strip() for item in items if item and item.strip())


def _positive_float(key: str, value: Any, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidConfigValue(key, value, "must be a number")
    if not number > 0:
        raise InvalidConfigValue(key, value, "must be greater than zero")
    return number


def _choice(key: str, value: Any, choices: Sequence[str], default: str) -> str:
    if value is None or value == "":
        return default
    text = str(value)
    normalized = text.upper() if key == "log_level" else text.lower()
    if normalized not in choices:
        raise InvalidConfigValue(key, value, f"must be one of {', '.join(choices)}")
    return normalized


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


# ============================================================
# VALIDATE
# ============================================================

def build_config(raw_options: Mapping[str, Any]) -> NodeConfig:
    """
    Build a NodeConfig, raising on the first problem.

    Raises:
        ConfigurationError: On any missing or invalid option
    """
    for key, option in REQUIRED_FIELDS:
        if not _text(raw_options.get(key)):
            raise MissingRequiredField(key, option)

    loss_seconds = _positive_float(
        "loss_seconds",
        raw_options.get("loss_seconds"),
        DEFAULT_LOSS_SECONDS,
    )
    timeout_seconds = _positive_float(
        "component_timeout_seconds",
        raw_options.get("component_timeout_seconds"),
        DEFAULT_COMPONENT_TIMEOUT_SECONDS,
    )

    exchange_path = _text(raw_options.get("exchange_configuration")) or None
    exchanges: Tuple[ExchangeSpec, ...] = ()
    if exchange_path:
        exchanges = parse_exchange_document(
            load_exchange_document(exchange_path),
            path=exchange_path,
        )

    return NodeConfig(
        installation=_text(raw_options.get("installation")),
        node_name=_text(raw_options.get("node_name")),
        zookeeper_uri=_text(raw_options.get("zookeeper_uri")) or DEFAULT_DISCOVERY_URI,
        loss_seconds=loss_seconds,
        log_uris=_split_uris(raw_options.get("log_uris")),
        carbon_uris=_split_uris(raw_options.get("carbon_uris")),
        exchange_configuration=exchange_path,
        exchanges=exchanges,
        component_timeout_seconds=timeout_seconds,
        log_level=_choice("log_level", raw_options.get("log_level"), LOG_LEVELS, "INFO"),
        log_format=_choice("log_format", raw_options.get("log_format"), LOG_FORMATS, "json"),
    )


def validate(raw_options: Mapping[str, Any]) -> ValidationResult:
    """
    Validate raw operator options.

    Args:
        raw_options: Option name to raw value (CLI, environment or test input)

    Returns:
        ValidationResult holding the config or the error
    """
    try:
        config = build_config(raw_options)
    except ConfigurationError as e:
        logger.debug(f"Configuration rejected: {e.to_log_format()}")
        return ValidationResult(error=e)

    logger.debug(
        f"Configuration accepted | installation={config.installation} | "
        f"node={config.node_name} | exchanges={len(config.exchanges)}"
    )
    return ValidationResult(config=config)


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "ValidationResult",
    "load_exchange_document",
    "parse_exchange_document",
    "build_config",
    "validate",
]

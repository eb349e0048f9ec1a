"""
Exception Hierarchy Tests.
"""

from core.exceptions import (
    ActivationError,
    ActivationErrorKind,
    ConfigErrorKind,
    ConfigurationError,
    DuplicateExchange,
    EngineNotRunning,
    ErrorClassification,
    ExchangeStartFailed,
    InvalidConfigValue,
    InvalidExchangeConfig,
    MissingRequiredField,
    RouterNodeException,
    Severity,
    ShutdownError,
    StartupError,
    UnknownExchangeType,
)


class TestConfigurationErrors:
    """Tests for configuration errors."""

    def test_missing_field_message(self):
        """Message names the option the operator must supply."""
        error = MissingRequiredField("installation", "--installation")

        assert error.message == "'installation' parameter is required"
        assert error.kind == ConfigErrorKind.MISSING_REQUIRED_FIELD
        assert error.config_key == "installation"

    def test_missing_node_name_uses_option_label(self):
        """node_name is reported as node-name."""
        error = MissingRequiredField("node_name", "--node-name")
        assert error.message == "'node-name' parameter is required"

    def test_configuration_errors_are_fatal(self):
        """Every configuration error stops the node."""
        for error in (
            MissingRequiredField("installation"),
            InvalidExchangeConfig("bad", path="x.json"),
            InvalidConfigValue("loss_seconds", -1, "must be greater than zero"),
        ):
            assert isinstance(error, ConfigurationError)
            assert error.is_fatal
            assert error.severity == Severity.CRITICAL

    def test_invalid_exchange_config_context(self):
        """Path and entry index land in the context."""
        error = InvalidExchangeConfig("bad entry", path="x.json", entry_index=3)

        assert error.kind == ConfigErrorKind.INVALID_EXCHANGE_CONFIG
        assert error.context["path"] == "x.json"
        assert error.context["entry_index"] == 3


class TestLifecycleErrors:
    """Tests for lifecycle errors."""

    def test_startup_error_carries_stage(self):
        """StartupError records stage and component."""
        cause = RuntimeError("port in use")
        error = StartupError("bind failed", stage="bind_transport", component="router", cause=cause)

        assert error.stage == "bind_transport"
        assert error.component == "router"
        assert error.context["cause_type"] == "RuntimeError"
        assert error.is_fatal

    def test_shutdown_error_is_not_fatal(self):
        """Shutdown errors are recorded, not escalated."""
        error = ShutdownError("stop timed out", component="router", timeout_seconds=5.0)

        assert not error.is_fatal
        assert error.context["timeout_seconds"] == 5.0


class TestActivationErrors:
    """Tests for activation errors."""

    def test_kinds(self):
        """Each subclass reports its kind."""
        assert EngineNotRunning("a").kind == ActivationErrorKind.ENGINE_NOT_RUNNING
        assert UnknownExchangeType("x", "x#0").kind == ActivationErrorKind.UNKNOWN_EXCHANGE_TYPE
        assert ExchangeStartFailed("boom", exchange="a").kind == ActivationErrorKind.START_FAILED
        assert DuplicateExchange("a").kind == ActivationErrorKind.DUPLICATE_EXCHANGE

    def test_activation_errors_are_recoverable(self):
        """A failed exchange never stops the node."""
        error = DuplicateExchange("mock#0")

        assert isinstance(error, ActivationError)
        assert error.classification == ErrorClassification.RECOVERABLE
        assert error.exchange == "mock#0"

    def test_to_dict(self):
        """Serialization includes type and context."""
        data = UnknownExchangeType("openrtb", exchange="openrtb#2").to_dict()

        assert data["type"] == "UnknownExchangeType"
        assert data["context"]["exchange_type"] == "openrtb"
        assert data["context"]["exchange"] == "openrtb#2"

    def test_log_format(self):
        """Log line carries severity, type and context."""
        line = EngineNotRunning("mock#0", engine_status="constructed").to_log_format()

        assert line.startswith("[HIGH] EngineNotRunning:")
        assert "engine_status=constructed" in line
        assert isinstance(EngineNotRunning(), RouterNodeException)

"""
CLI Tests.

============================================================
PURPOSE
============================================================
Tests for argument parsing, environment fallback and exit codes.

============================================================
"""

import pytest
from unittest.mock import AsyncMock, patch

from discovery.memory import MemoryRegistry
from orchestrator.cli import ENV_VARS, collect_options, create_parser, is_scaffold, main
from orchestrator.core import RouterNode


class StoppedRouterNode(RouterNode):
    """Router node asked to stop as soon as it is built."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.request_stop("test")


@pytest.fixture
def clean_env(monkeypatch):
    for env_var in ENV_VARS.values():
        monkeypatch.delenv(env_var, raising=False)
    return monkeypatch


# ============================================================
# PARSER
# ============================================================

class TestParser:
    """Tests for create_parser() and collect_options()."""

    def test_repeatable_options(self):
        args = create_parser().parse_args([
            "-I", "prod", "-N", "r1",
            "-c", "carbon1:2003", "-c", "carbon2:2003",
            "--log-uri", "file:///var/log/r1.log",
        ])

        assert args.carbon_uris == ["carbon1:2003", "carbon2:2003"]
        assert args.log_uris == ["file:///var/log/r1.log"]
        assert args.scaffold is None

    def test_log_level_case_insensitive(self):
        args = create_parser().parse_args(["--log-level", "debug"])
        assert args.log_level == "DEBUG"

    def test_command_line_wins_over_environment(self):
        args = create_parser().parse_args(["-N", "r1"])
        environ = {"RTB_INSTALLATION": "prod", "RTB_NODE_NAME": "other", "RTB_SCAFFOLD": "yes"}

        options = collect_options(args, environ)

        assert options["installation"] == "prod"
        assert options["node_name"] == "r1"
        assert is_scaffold(options)

    def test_empty_environment_value_ignored(self):
        options = collect_options(create_parser().parse_args([]), {"RTB_INSTALLATION": ""})

        assert options["installation"] is None
        assert not is_scaffold(options)


# ============================================================
# EXIT CODES
# ============================================================

class TestMain:
    """Tests for main() exit codes."""

    def test_help_exits_1(self, clean_env, capsys):
        """--help prints usage to stderr and exits 1."""
        assert main(["--help"]) == 1
        assert "Router Options" in capsys.readouterr().err

    def test_unknown_argument_exits_1(self, clean_env):
        assert main(["--no-such-option"]) == 1

    def test_missing_installation(self, clean_env, capsys):
        assert main(["-N", "r1"]) == 1
        assert "'installation' parameter is required" in capsys.readouterr().err

    def test_missing_node_name(self, clean_env, capsys):
        assert main(["-I", "prod"]) == 1
        assert "'node-name' parameter is required" in capsys.readouterr().err

    def test_bad_component_factory(self, clean_env, capsys):
        assert main(["-I", "prod", "-N", "r1", "--components", "no_such_module_xyz:factory"]) == 1
        assert "components" in capsys.readouterr().err

    def test_runs_node(self, clean_env):
        """A valid config runs the node and returns its exit code."""
        with patch("orchestrator.cli.setup_logging"), \
                patch("orchestrator.cli.RouterNode") as node_class:
            node_class.return_value.run_until_stopped = AsyncMock(return_value=0)

            assert main(["-I", "prod", "-N", "r1", "--scaffold"]) == 0

        kwargs = node_class.call_args.kwargs
        assert kwargs["config"].metrics_prefix == "prod.r1"
        assert kwargs["allow_placeholders"] is True

    def test_runs_real_node_until_stopped(self, clean_env):
        """main() drives a real node on its own loop and exits 0 on stop."""
        MemoryRegistry.clear()

        with patch("orchestrator.cli.setup_logging"), \
                patch("orchestrator.cli.RouterNode", StoppedRouterNode):
            assert main(["-I", "test", "-N", "r1", "--scaffold", "-Z", "memory://cli"]) == 0

        MemoryRegistry.clear()

"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the router node.

- Provides argparse-based CLI
- Loads configuration from CLI, then environment (.env supported)
- Validates into a NodeConfig
- Runs the node and maps the outcome to an exit code

============================================================
USAGE
============================================================
python -m orchestrator.cli -I prod -N router1 -x exchanges.json
python -m orchestrator.cli -I dev -N router1 --scaffold
python -m orchestrator.cli -I prod -N router1 -Z http://discovery:8500/v1 \\
    -c carbon1:2003 -c carbon2:2003 --components mybidder.wiring:factory

============================================================
EXIT CODES
============================================================
0 - normal shutdown
1 - help, configuration error, or fatal startup failure

============================================================
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import Any, Dict, List, Mapping, Optional

from dotenv import load_dotenv

from core.exceptions import ConfigurationError
from .components import load_component_factory
from .core import RouterNode, setup_logging
from .models import (
    DEFAULT_COMPONENT_TIMEOUT_SECONDS,
    DEFAULT_DISCOVERY_URI,
    DEFAULT_LOSS_SECONDS,
    NodeConfig,
)
from .validation import validate


# ============================================================
# ENVIRONMENT
# ============================================================

ENV_VARS: Dict[str, str] = {
    "zookeeper_uri": "RTB_ZOOKEEPER_URI",
    "installation": "RTB_INSTALLATION",
    "node_name": "RTB_NODE_NAME",
    "loss_seconds": "RTB_LOSS_SECONDS",
    "log_uris": "RTB_LOG_URIS",
    "carbon_uris": "RTB_CARBON_CONNECTIONS",
    "exchange_configuration": "RTB_EXCHANGE_CONFIGURATION",
    "component_timeout_seconds": "RTB_COMPONENT_TIMEOUT",
    "components": "RTB_COMPONENTS",
    "scaffold": "RTB_SCAFFOLD",
    "log_level": "LOG_LEVEL",
    "log_format": "LOG_FORMAT",
}

TRUTHY = ("1", "true", "yes", "on")


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="router-node",
        description="Run one router node of a real-time bidding installation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
        epilog="""
Every option can also be set through the environment
(RTB_INSTALLATION, RTB_NODE_NAME, RTB_ZOOKEEPER_URI, ...).
Command-line values win.

Examples:
  %(prog)s -I prod -N router1 -x exchanges.json
  %(prog)s -I dev -N router1 --scaffold
        """
    )

    # --------------------------------------------------------
    # Router Options
    # --------------------------------------------------------
    router_group = parser.add_argument_group("Router Options")

    router_group.add_argument(
        "--zookeeper-uri", "-Z",
        dest="zookeeper_uri",
        metavar="URI",
        help=f"URI of the discovery backend (default: {DEFAULT_DISCOVERY_URI})",
    )

    router_group.add_argument(
        "--installation", "-I",
        dest="installation",
        help="Name of the installation that is running",
    )

    router_group.add_argument(
        "--node-name", "-N",
        dest="node_name",
        help="Name of the node we're running",
    )

    router_group.add_argument(
        "--loss-seconds", "-l",
        dest="loss_seconds",
        metavar="SECONDS",
        help=f"Seconds after which a loss is assumed (default: {DEFAULT_LOSS_SECONDS})",
    )

    router_group.add_argument(
        "--log-uri",
        dest="log_uris",
        action="append",
        metavar="URI",
        help="URI to publish logs to (file://path or tcp://host:port, repeatable)",
    )

    router_group.add_argument(
        "--carbon-connection", "-c",
        dest="carbon_uris",
        action="append",
        metavar="HOST:PORT",
        help="Carbon daemon to publish metrics to (repeatable)",
    )

    router_group.add_argument(
        "--exchange-configuration", "-x",
        dest="exchange_configuration",
        metavar="PATH",
        help="Configuration file with exchange data (JSON array)",
    )

    # --------------------------------------------------------
    # Runtime Options
    # --------------------------------------------------------
    runtime_group = parser.add_argument_group("Runtime Options")

    runtime_group.add_argument(
        "--component-timeout",
        dest="component_timeout_seconds",
        metavar="SECONDS",
        help=(
            "Timeout for each component lifecycle call "
            f"(default: {DEFAULT_COMPONENT_TIMEOUT_SECONDS})"
        ),
    )

    runtime_group.add_argument(
        "--components",
        dest="components",
        metavar="MODULE:ATTR",
        help="Factory building the ledger client and routing engine",
    )

    runtime_group.add_argument(
        "--scaffold",
        dest="scaffold",
        action="store_true",
        default=None,
        help="Allow placeholder components (development only)",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str.lower,
        choices=["json", "text"],
        help="Logging format (default: json)",
    )

    parser.add_argument(
        "--help", "-h",
        action="store_true",
        help="print this message",
    )

    return parser


# ============================================================
# CLI CONFIGURATION BUILDER
# ============================================================

def collect_options(
    args: argparse.Namespace,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """
    Merge command-line values over environment values.

    Args:
        args: Parsed arguments
        environ: Environment (default: os.environ)

    Returns:
        Raw options for the validator
    """
    environ = os.environ if environ is None else environ
    options: Dict[str, Any] = {}

    for key, env_var in ENV_VARS.items():
        value = getattr(args, key, None)
        if value is None:
            value = environ.get(env_var) or None
        options[key] = value

    return options


def is_scaffold(options: Mapping[str, Any]) -> bool:
    value = options.get("scaffold")
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in TRUTHY


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def print_banner(config: NodeConfig, scaffold: bool) -> None:
    """Print startup banner."""
    print()
    print("=" * 60)
    print("  RTB ROUTER NODE")
    print("=" * 60)
    print(f"  Installation: {config.installation}")
    print(f"  Node:         {config.node_name}")
    print(f"  Discovery:    {config.zookeeper_uri}")
    print(f"  Loss Seconds: {config.loss_seconds}")
    print(f"  Exchanges:    {len(config.exchanges)}")
    print(f"  Carbon:       {', '.join(config.carbon_uris) or 'disabled'}")
    if scaffold:
        print("  Scaffold:     YES (placeholder components allowed)")
    print("=" * 60)
    print()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    load_dotenv()

    parser = create_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit:
        return 1

    if args.help:
        parser.print_help(sys.stderr)
        return 1

    options = collect_options(args)

    result = validate(options)
    if not result.ok:
        print(f"Error: {result.error.message}", file=sys.stderr)
        return 1
    config = result.config

    try:
        component_factory = load_component_factory(options.get("components"))
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    scaffold = is_scaffold(options)

    setup_logging(
        level=config.log_level,
        log_format=config.log_format,
        correlation_id=config.metrics_prefix,
    )
    print_banner(config, scaffold)

    node = RouterNode(
        config=config,
        component_factory=component_factory,
        allow_placeholders=scaffold,
    )

    try:
        return asyncio.run(node.run_until_stopped())
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        return 130


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())

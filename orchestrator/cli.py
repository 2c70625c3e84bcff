"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the bootstrap orchestrator.

- Provides argparse-based CLI
- Loads configuration from YAML, environment (.env) and flags
- Maps every failure kind to its exit code
- Entry point for the application

============================================================
USAGE
============================================================
pg-bootstrap --config instance.yaml
pg-bootstrap --data-dir /var/lib/postgresql/data --port 5433
pg-bootstrap --config instance.yaml --check
pg-bootstrap --config instance.yaml --render-config

============================================================
EXIT CODES
============================================================
0    bootstrapped, or already initialized
1    unexpected failure
2    configuration error
3    initdb failed
4    transient server did not start
5    transient server did not stop
6    schema source unresolvable
7    SQL batch failed
130  interrupted

============================================================
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from cluster.config import InstanceConfig
from cluster.settings import render_config
from core.constants import (
    EXIT_CONFIGURATION_ERROR,
    EXIT_FAILURE,
    EXIT_INTERRUPTED,
    EXIT_OK,
    SYSTEM_NAME,
    SYSTEM_VERSION,
)
from core.exceptions import BootstrapException

from .core import BootstrapOrchestrator, generate_run_id, setup_logging
from .models import BootstrapResult, BootstrapStage


logger = logging.getLogger(__name__)


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog=SYSTEM_NAME,
        description="Initialize a PostgreSQL data directory and its initial databases exactly once",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Configuration precedence (highest first):
  command-line flags
  --config YAML file, or PGBOOT_* environment variables (.env is loaded)

Examples:
  %(prog)s --config instance.yaml             # Bootstrap if needed
  %(prog)s --config instance.yaml --check     # Print detected state
  %(prog)s --data-dir ./pgdata --port 5433    # Environment + flags only
        """
    )

    # --------------------------------------------------------
    # Configuration
    # --------------------------------------------------------
    config_group = parser.add_argument_group("Configuration")

    config_group.add_argument(
        "--config", "-c",
        type=str,
        metavar="PATH",
        help="YAML instance configuration (default: PGBOOT_* environment)",
    )

    # --------------------------------------------------------
    # Instance Overrides
    # --------------------------------------------------------
    instance_group = parser.add_argument_group("Instance Options")

    instance_group.add_argument(
        "--data-dir",
        type=str,
        metavar="PATH",
        help="Data directory (overrides any environment indirection)",
    )

    instance_group.add_argument(
        "--socket-dir",
        type=str,
        metavar="PATH",
        help="Socket directory (default: the data directory)",
    )

    instance_group.add_argument(
        "--port", "-p",
        type=int,
        help="Server port, also used for the transient server",
    )

    instance_group.add_argument(
        "--superuser", "-U",
        type=str,
        help="Superuser name passed to initdb and used for SQL",
    )

    instance_group.add_argument(
        "--bin-dir",
        type=str,
        metavar="PATH",
        help="Directory holding initdb and pg_ctl (default: PATH lookup)",
    )

    instance_group.add_argument(
        "--refresh-config",
        action="store_true",
        default=None,
        help="Rewrite postgresql.conf even when already initialized",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default="text",
        help="Logging format (default: text)",
    )

    # --------------------------------------------------------
    # Version/Info
    # --------------------------------------------------------
    info_group = parser.add_argument_group("Information")

    info_group.add_argument(
        "--show-stages",
        action="store_true",
        help="Show bootstrap stages and exit",
    )

    info_group.add_argument(
        "--check",
        action="store_true",
        help="Print the detected bootstrap state and exit",
    )

    info_group.add_argument(
        "--render-config",
        action="store_true",
        help="Print the postgresql.conf that would be written and exit",
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"%(prog)s {SYSTEM_VERSION}",
    )

    return parser


# ============================================================
# CLI VALIDATION
# ============================================================

def validate_args(args: argparse.Namespace) -> List[str]:
    """
    Validate CLI arguments.

    Returns:
        List of validation errors
    """
    errors = []

    if args.config and not Path(args.config).is_file():
        errors.append(f"--config file not found: {args.config}")

    if args.port is not None and not 0 < args.port < 65536:
        errors.append("--port must be in 1..65535")

    if args.bin_dir and not Path(args.bin_dir).is_dir():
        errors.append(f"--bin-dir is not a directory: {args.bin_dir}")

    return errors


# ============================================================
# CLI CONFIGURATION BUILDER
# ============================================================

def build_config(args: argparse.Namespace) -> InstanceConfig:
    """
    Build instance configuration from file or environment, then flags.

    Raises:
        ConfigurationError: invalid or missing configuration
    """
    if args.config:
        config = InstanceConfig.from_yaml(Path(args.config))
    else:
        config = InstanceConfig.from_env()

    return config.with_overrides(
        data_dir=args.data_dir,
        socket_dir=args.socket_dir,
        port=args.port,
        superuser=args.superuser,
        bin_dir=args.bin_dir,
        refresh_config=args.refresh_config,
    )


# ============================================================
# INFORMATION COMMANDS
# ============================================================

def show_stages() -> None:
    """Print bootstrap stages."""
    print("\nBootstrap stages")
    print("=" * 60)

    for i, stage in enumerate(BootstrapStage.get_ordered_stages(), 1):
        print(f"  {i:2d}. [{stage.order:02d}] {stage.stage_id:22s} - {stage.description}")

    print()


def print_banner(config: InstanceConfig) -> None:
    """Print startup banner."""
    print()
    print("=" * 60)
    print(f"  {SYSTEM_NAME.upper()} {SYSTEM_VERSION}")
    print("  PostgreSQL first-run bootstrap")
    print("=" * 60)
    print(f"  Data dir:    {config.data_directory.describe()}")
    print(f"  Socket dir:  {config.socket_directory.describe()}")
    print(f"  Port:        {config.port}")
    print(f"  Superuser:   {config.superuser or '(invoking user)'}")
    print(f"  Databases:   {', '.join(d.name for d in config.initial_databases) or '-'}")
    print("=" * 60)
    print()


def print_summary(result: BootstrapResult) -> None:
    """Print run summary."""
    print(f"\nBootstrap Result: {'SUCCESS' if result.success else 'FAILED'}")
    if result.final_state is not None:
        print(f"State: {result.final_state.value}")
    print(f"Duration: {result.duration_seconds:.2f}s")
    print(f"Stages completed: {result.stages_completed}/{len(result.stage_results)}")
    if result.databases_created:
        print(f"Databases created: {', '.join(result.databases_created)}")
    if not result.success and result.failed_stage:
        print(f"Failed stage: {result.failed_stage.stage_id}")
        print(f"Error: {result.error}")


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def run(args: argparse.Namespace) -> int:
    """
    Run the bootstrap for parsed arguments.

    Returns:
        Exit code
    """
    try:
        config = build_config(args)
    except BootstrapException as e:
        logger.error(e.to_log_format())
        return e.exit_code

    if args.render_config:
        sys.stdout.write(render_config(config.default_settings, config.settings))
        return EXIT_OK

    orchestrator = BootstrapOrchestrator(config=config)

    if args.check:
        try:
            state = orchestrator.detect_state()
        except BootstrapException as e:
            logger.error(e.to_log_format())
            return e.exit_code
        print(state.value)
        return EXIT_OK

    print_banner(config)

    try:
        result = orchestrator.run()
        print_summary(result)
        return EXIT_OK

    except BootstrapException as e:
        logger.error(e.to_log_format())
        if orchestrator.last_result is not None:
            print_summary(orchestrator.last_result)
        return e.exit_code
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return EXIT_FAILURE


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Show stages if requested
    if args.show_stages:
        show_stages()
        return EXIT_OK

    # Validate arguments
    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR

    load_dotenv()
    setup_logging(args.log_level, args.log_format, correlation_id=generate_run_id())

    return run(args)


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""Command-line interface for vaultorg.

This module provides the CLI for organizing a vault of markdown notes:
- Argument parsing and validation
- Configuration file loading and CLI overrides
- Logging setup
- Dispatch to the command runner in vaultorg.main

Example:
    >>> from vaultorg.cli import parse_arguments
    >>> args = parse_arguments(['--vault', '/home/me/Notes', 'preview'])
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from vaultorg.core.constants import VAULTORG_VERSION, ConfigKey
from vaultorg.infrastructure.config_manager import ConfigError, ConfigManager, ConfigSource
from vaultorg.infrastructure.logger import Logger, configure_logging

DESCRIPTION = "vaultorg - Rule-based reorganization of markdown vaults"

COMMANDS_WITHOUT_VAULT = ("check-path",)


class CLIError(Exception):
    """Exception raised for CLI-related errors."""

    pass


def parse_arguments(args: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        args: Argument list to parse (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace

    Raises:
        SystemExit: On invalid arguments or --help/--version
        CLIError: If the arguments parse but do not make sense together
    """
    parser = argparse.ArgumentParser(
        prog="vaultorg",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show what would be moved
  vaultorg --vault ~/Notes preview

  # Apply rules to every note
  vaultorg --vault ~/Notes reorganize

  # Put the last moved note back
  vaultorg --vault ~/Notes undo

  # Keep organizing as notes change
  vaultorg --vault ~/Notes --debug watch --interval 2

  # Check a destination before using it in a rule
  vaultorg check-path "Projects/2024/Q1"
        """,
    )

    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {VAULTORG_VERSION}",
    )

    parser.add_argument(
        "-V",
        "--vault",
        metavar="DIR",
        type=str,
        help="Vault root directory",
    )

    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        type=str,
        help="Configuration file path (YAML format)",
    )

    parser.add_argument(
        "-s",
        "--settings",
        metavar="FILE",
        type=str,
        help="Settings file with rules and history (default: <vault>/.vaultorg.yaml)",
    )

    log_group = parser.add_argument_group("logging options")

    log_group.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    log_group.add_argument(
        "--log-file",
        metavar="FILE",
        type=str,
        help="Also write logs to a rotating file",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    subparsers.add_parser("reorganize", help="Apply rules to every note in the vault")
    subparsers.add_parser("preview", help="Show what reorganize would do, without moving")
    subparsers.add_parser("undo", help="Move the most recently moved note back")

    history_parser = subparsers.add_parser("history", help="List recent moves")
    history_parser.add_argument(
        "-n",
        "--limit",
        metavar="N",
        type=int,
        default=10,
        help="Number of moves to show (default: 10)",
    )

    subparsers.add_parser("clear-history", help="Forget all recorded moves")

    watch_parser = subparsers.add_parser("watch", help="Apply rules as notes change")
    watch_parser.add_argument(
        "-i",
        "--interval",
        metavar="SECONDS",
        type=float,
        default=1.0,
        help="Polling interval in seconds (default: 1.0)",
    )

    check_parser = subparsers.add_parser("check-path", help="Validate a destination path")
    check_parser.add_argument("path", metavar="PATH", help="Vault-relative path to validate")

    parsed = parser.parse_args(args)

    _validate_arguments(parsed)

    return parsed


def _validate_arguments(args: argparse.Namespace) -> None:
    """
    Validate parsed arguments.

    Args:
        args: Parsed arguments namespace

    Raises:
        CLIError: If validation fails
    """
    if args.command not in COMMANDS_WITHOUT_VAULT:
        if not args.vault:
            raise CLIError(
                f"--vault is required for '{args.command}'\n" "Use --help for usage information"
            )

        vault_path = Path(args.vault).expanduser()

        if not vault_path.exists():
            raise CLIError(f"Vault directory does not exist: {args.vault}")

        if not vault_path.is_dir():
            raise CLIError(f"Vault is not a directory: {args.vault}")

    if args.config:
        config_path = Path(args.config).expanduser()

        if not config_path.exists():
            raise CLIError(f"Configuration file does not exist: {args.config}")

        if not config_path.is_file():
            raise CLIError(f"Configuration path is not a file: {args.config}")

    if args.settings and Path(args.settings).expanduser().is_dir():
        raise CLIError(f"Settings path is a directory: {args.settings}")

    if getattr(args, "limit", 1) < 1:
        raise CLIError("--limit must be at least 1")

    if getattr(args, "interval", 1.0) <= 0:
        raise CLIError("--interval must be positive")


def build_config(args: argparse.Namespace) -> ConfigManager:
    """
    Build the configuration manager from file, environment and arguments.

    Command-line arguments take precedence over file and environment.

    Args:
        args: Parsed arguments namespace

    Returns:
        Configuration manager

    Raises:
        CLIError: If the configuration file cannot be loaded or is invalid
    """
    try:
        config = ConfigManager(args.config)
    except ConfigError as e:
        raise CLIError(f"Failed to load configuration file: {args.config}\n{e}")

    if args.debug:
        config.set(ConfigKey.LOG_LEVEL, "DEBUG", ConfigSource.CLI_ARGS)
    if args.log_file:
        config.set(ConfigKey.LOG_FILE, args.log_file, ConfigSource.CLI_ARGS)
    if args.settings:
        config.set(ConfigKey.SETTINGS_FILE, args.settings, ConfigSource.CLI_ARGS)

    try:
        config.validate_schema()
    except ConfigError as e:
        raise CLIError(f"Invalid configuration: {e}")

    return config


def setup_logging(config: ConfigManager) -> Logger:
    """
    Setup logging based on configuration.

    Args:
        config: Configuration manager

    Returns:
        Configured logger instance

    Raises:
        CLIError: If the log level is unknown
    """
    level = config.get(ConfigKey.LOG_LEVEL, "INFO")
    try:
        return configure_logging(level=level, log_file=config.get(ConfigKey.LOG_FILE))
    except KeyError:
        raise CLIError(f"Unknown log level: {level}")


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Handles argument parsing, configuration and logging, then passes
    control to vaultorg.main to run the command.
    """
    try:
        args = parse_arguments(argv)
        config = build_config(args)
        logger = setup_logging(config)

        from vaultorg.main import run_vaultorg

        return run_vaultorg(args, config, logger)

    except CLIError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())

"""
tvm CLI argument parser.

This module implements the command-line interface for tvm using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from tvm.core.config import DEFAULT_BINARY_NAME, load_settings
from tvm.core.exceptions import TvmError
from tvm.release.delegator import is_shim_invocation

# Get version from package
try:
    from importlib.metadata import version

    __version__ = version("tvm")
except Exception:
    __version__ = "0.1.0"

logger = logging.getLogger(__name__)

EXEC_COMMAND = "exec"

# Global options that take the next argument as their value
VALUE_OPTIONS = ("--config", "--project-root")


def split_exec_args(args: List[str]) -> Tuple[List[str], List[str]]:
    """
    Separate the arguments forwarded verbatim by the exec command.

    Only an ``exec`` in the subcommand position counts: global options and
    their values are skipped first. Everything after that ``exec`` belongs
    to the delegated tool, including options such as ``--help``.

    Args:
        args: Command-line arguments (without program name)

    Returns:
        (arguments for tvm, arguments for the delegated tool)
    """
    index = 0
    while index < len(args):
        arg = args[index]
        if arg in VALUE_OPTIONS:
            index += 2
        elif arg.startswith("-"):
            index += 1
        else:
            if arg == EXEC_COMMAND:
                return args[: index + 1], args[index + 1 :]
            break
    return args, []


class CLI:
    """tvm command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="tvm",
            description="tvm - install and run the version of a tool a project asks for",
            epilog='Use "tvm COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            allow_abbrev=False,
        )

        # Global options
        parser.add_argument("--version", action="version", version=f"tvm {__version__}")
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to configuration file (default: ~/.config/tvm/config.yaml)",
        )
        parser.add_argument(
            "--project-root",
            type=Path,
            metavar="PATH",
            default=Path.cwd(),
            help="Project directory to read the version constraint from (default: current directory)",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_list_command(subparsers)
        self._add_install_command(subparsers)
        self._add_exec_command(subparsers)

        return parser

    def _add_list_command(self, subparsers):
        """Add 'list' subcommand."""
        parser = subparsers.add_parser(
            "list",
            help="List available versions",
            description="List versions published in the catalog, oldest first",
        )
        parser.add_argument(
            "--installed",
            action="store_true",
            help="List installed versions instead of published ones",
        )

    def _add_install_command(self, subparsers):
        """Add 'install' subcommand."""
        parser = subparsers.add_parser(
            "install",
            help="Install the newest version matching the project constraint",
            description="Download, verify and install the newest published version "
            "satisfying the project's required version",
        )
        parser.add_argument(
            "--force",
            action="store_true",
            help="Reinstall even if the version is already installed",
        )

    def _add_exec_command(self, subparsers):
        """Add 'exec' subcommand."""
        subparsers.add_parser(
            EXEC_COMMAND,
            help="Run the installed version matching the project constraint",
            description="Replace tvm with the newest installed version satisfying "
            "the project's required version; all following arguments are forwarded",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace with ``forwarded_args``
        """
        if args is None:
            args = sys.argv[1:]

        own_args, forwarded = split_exec_args(list(args))
        parsed = self.parser.parse_args(own_args)
        parsed.forwarded_args = forwarded
        return parsed

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        self._configure_logging(parsed_args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        return self._execute(parsed_args)

    def run_shim(self, args: List[str]) -> int:
        """
        Run as the delegated tool, forwarding every argument to exec.

        Args:
            args: Arguments given to the shim (without program name)

        Returns:
            Exit code (only returned when delegation did not happen)
        """
        parsed_args = argparse.Namespace(
            command=EXEC_COMMAND,
            verbose=False,
            quiet=False,
            config=None,
            project_root=Path.cwd(),
            forwarded_args=list(args),
        )
        self._configure_logging(parsed_args)
        return self._execute(parsed_args)

    def _execute(self, args) -> int:
        try:
            return self._dispatch_command(args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except TvmError as e:
            logger.error(f"Error: {e}")
            if args.verbose:
                import traceback

                traceback.print_exc()
            return 1

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        command_map = {
            "list": "tvm.cli.commands.list",
            "install": "tvm.cli.commands.install",
            EXEC_COMMAND: "tvm.cli.commands.exec",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args)


def _shim_binary_name() -> str:
    try:
        return load_settings().binary_name
    except TvmError:
        return DEFAULT_BINARY_NAME


def main():
    """Main entry point for CLI."""
    cli = CLI()

    if is_shim_invocation(sys.argv[0], _shim_binary_name()):
        sys.exit(cli.run_shim(sys.argv[1:]))

    sys.exit(cli.run())


if __name__ == "__main__":
    main()

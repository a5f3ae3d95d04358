"""
zigsync CLI argument parser.

This module implements the command-line interface for zigsync using argparse.
Unrecognized arguments print the help text to stderr and exit cleanly.
"""

import argparse
import logging
import sys
import traceback
from typing import List, Optional

from zigsync import __version__
from zigsync.config import load_config
from zigsync.core.context import RunContext
from zigsync.core.exceptions import ZigSyncError
from zigsync.core.platform import host_platform_key
from zigsync.toolchain.updater import ZigUpdater

logger = logging.getLogger(__name__)

# Flags are matched case-insensitively
_FLAGS_WITH_VALUE = ("-v", "--version", "-t", "--target")
_FLAGS = _FLAGS_WITH_VALUE + ("-h", "--help", "--verbose", "--quiet")


class HelpRequested(Exception):
    """Raised instead of exiting when the arguments call for the help text."""

    pass


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports bad arguments instead of exiting."""

    def error(self, message):
        logger.debug(f"Argument error: {message}")
        raise HelpRequested(message)


class CLI:
    """zigsync command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser.

        Returns:
            Configured ArgumentParser instance
        """
        parser = _ArgumentParser(
            prog="zigsync",
            description=f"zigsync {__version__} - keep a local Zig compiler in sync "
            "with the official release index",
            add_help=False,
            allow_abbrev=False,
        )
        parser.add_argument(
            "-h", "--help", action="store_true", help="Prints this message."
        )
        parser.add_argument(
            "-v",
            "--version",
            metavar="<str>",
            help="Optional Zig version specification. eg. 0.14.1 (default: master)",
        )
        parser.add_argument(
            "-t",
            "--target",
            metavar="<str>",
            help="Optional platform target specification. eg. x86_64-windows",
        )
        parser.add_argument(
            "--verbose", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet", action="store_true", help="Enable minimal output (errors only)"
        )
        return parser

    def parse_args(self, args: Optional[List[str]] = None) -> argparse.Namespace:
        """
        Parse command-line arguments.

        Raises:
            HelpRequested: If the arguments are unrecognized or help was asked for
        """
        args = sys.argv[1:] if args is None else list(args)
        parsed = self.parser.parse_args(_normalize_flags(args))
        if parsed.help:
            raise HelpRequested("help requested")
        return parsed

    def print_help(self) -> None:
        """Print the help text to the diagnostic stream."""
        self.parser.print_help(sys.stderr)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        try:
            parsed_args = self.parse_args(args)
        except HelpRequested:
            self.print_help()
            return 0

        self._configure_logging(parsed_args)

        try:
            return self._update(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except ZigSyncError as e:
            logger.error(f"Error: {type(e).__name__}: {e}")
            if parsed_args.verbose:
                traceback.print_exc()
            return 1
        except Exception as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                traceback.print_exc()
            return 1

    def _update(self, args: argparse.Namespace) -> int:
        config = load_config()
        version = args.version or config.default_version
        target = args.target or host_platform_key()
        logger.debug(f"Requested version '{version}' for '{target}'")

        with RunContext(timeout=config.timeout) as ctx:
            ZigUpdater(ctx, config).update(version, target)
        return 0

    def _configure_logging(self, args: argparse.Namespace) -> None:
        """
        Configure logging based on verbose/quiet flags.
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


def _normalize_flags(args: List[str]) -> List[str]:
    """Lowercase recognized flags, leaving their values untouched."""
    normalized = []
    expecting_value = False
    for arg in args:
        if expecting_value:
            normalized.append(arg)
            expecting_value = False
            continue
        lowered = arg.lower()
        if lowered in _FLAGS:
            normalized.append(lowered)
            expecting_value = lowered in _FLAGS_WITH_VALUE
        else:
            normalized.append(arg)
    return normalized


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()

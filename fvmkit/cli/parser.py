"""
fvmkit CLI argument parser.

This module implements the command-line interface for fvmkit using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from fvmkit import __version__

logger = logging.getLogger(__name__)


class CLI:
    """fvmkit command-line interface."""

    # Command name (and aliases) -> handler module
    COMMAND_MAP = {
        "install": "fvmkit.cli.commands.install",
        "remove": "fvmkit.cli.commands.remove",
        "rm": "fvmkit.cli.commands.remove",
        "list": "fvmkit.cli.commands.list_versions",
        "ls": "fvmkit.cli.commands.list_versions",
        "releases": "fvmkit.cli.commands.releases",
        "global": "fvmkit.cli.commands.global_version",
        "cleanup": "fvmkit.cli.commands.cleanup",
        "config": "fvmkit.cli.commands.config",
        "destroy": "fvmkit.cli.commands.destroy",
    }

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
            prog="fvmkit",
            description="fvmkit - Flutter SDK version manager",
            epilog='Use "fvmkit COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"fvmkit {__version__}"
        )
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
            "--home",
            type=Path,
            metavar="PATH",
            help="fvmkit home directory (default: $FVMKIT_HOME or ~/.fvmkit)",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_install_command(subparsers)
        self._add_remove_command(subparsers)
        self._add_list_command(subparsers)
        self._add_releases_command(subparsers)
        self._add_global_command(subparsers)
        self._add_fork_command(subparsers)
        self._add_cleanup_command(subparsers)
        self._add_config_command(subparsers)
        self._add_destroy_command(subparsers)
        self._add_api_command(subparsers)

        return parser

    def _add_install_command(self, subparsers):
        parser = subparsers.add_parser(
            "install",
            help="Install a Flutter version",
            description="Install a Flutter release, channel or fork version",
        )
        parser.add_argument(
            "version",
            metavar="VERSION",
            help="Version to install (e.g., 3.24.0, stable, mycompany/3.24.0)",
        )

    def _add_remove_command(self, subparsers):
        parser = subparsers.add_parser(
            "remove",
            aliases=["rm"],
            help="Remove an installed version",
            description="Remove an installed Flutter version",
        )
        parser.add_argument("version", metavar="VERSION", help="Version to remove")
        parser.add_argument(
            "--gc",
            action="store_true",
            help="Also remove engines no installed version uses anymore",
        )

    def _add_list_command(self, subparsers):
        subparsers.add_parser(
            "list",
            aliases=["ls"],
            help="List installed versions",
            description="List installed Flutter versions",
        )

    def _add_releases_command(self, subparsers):
        parser = subparsers.add_parser(
            "releases",
            help="List available Flutter releases",
            description="List Flutter releases from the release manifest",
        )
        parser.add_argument(
            "--channel",
            choices=["stable", "beta", "dev", "all"],
            default="stable",
            metavar="CHANNEL",
            help="Channel to list (stable|beta|dev|all) [default: stable]",
        )

    def _add_global_command(self, subparsers):
        parser = subparsers.add_parser(
            "global",
            help="Show or set the global version",
            description="Show, set or unlink the global Flutter version",
        )
        parser.add_argument(
            "version",
            nargs="?",
            metavar="VERSION",
            help="Version to make global (installed first if needed)",
        )
        parser.add_argument(
            "--unlink", action="store_true", help="Remove the global version link"
        )

    def _add_fork_command(self, subparsers):
        """Add 'fork' subcommand with sub-subcommands."""
        parser = subparsers.add_parser(
            "fork",
            help="Manage Flutter forks",
            description="Manage fork aliases (add, remove, list)",
        )

        fork_subparsers = parser.add_subparsers(
            dest="fork_command", help="Fork management commands", metavar="COMMAND"
        )

        add_parser = fork_subparsers.add_parser(
            "add",
            help="Register a fork",
            description="Register a fork alias for a Flutter repository",
        )
        add_parser.add_argument("alias", metavar="ALIAS", help="Fork alias")
        add_parser.add_argument(
            "url", metavar="URL", help="Git URL of the fork (must end with .git)"
        )

        remove_parser = fork_subparsers.add_parser(
            "remove",
            help="Unregister a fork",
            description="Remove a fork alias",
        )
        remove_parser.add_argument("alias", metavar="ALIAS", help="Fork alias")

        fork_subparsers.add_parser(
            "list",
            help="List forks",
            description="Show all configured fork aliases",
        )

    def _add_cleanup_command(self, subparsers):
        parser = subparsers.add_parser(
            "cleanup",
            help="Remove unused engines",
            description="Remove cached engines no installed version references",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be removed without removing anything",
        )

    def _add_config_command(self, subparsers):
        parser = subparsers.add_parser(
            "config",
            help="Show or change settings",
            description="Show the effective settings, or update them",
        )
        parser.add_argument(
            "--flutter-url",
            metavar="URL",
            help="Git URL of the default Flutter repository (empty to reset)",
        )
        parser.add_argument(
            "--storage-base-url",
            metavar="URL",
            help="Base URL of release manifests and engine archives (empty to reset)",
        )

    def _add_destroy_command(self, subparsers):
        parser = subparsers.add_parser(
            "destroy",
            help="Delete the fvmkit home",
            description="Delete every installed version, cached engine and setting",
        )
        parser.add_argument(
            "--force", "-f", action="store_true", help="Skip the confirmation prompt"
        )

    def _add_api_command(self, subparsers):
        """Add 'api' subcommand with sub-subcommands."""
        parser = subparsers.add_parser(
            "api",
            help="JSON output for tools",
            description="Print installed versions or releases as JSON",
        )
        api_subparsers = parser.add_subparsers(
            dest="api_command", help="API commands", metavar="COMMAND"
        )

        list_parser = api_subparsers.add_parser(
            "list",
            help="Installed versions",
            description="Installed versions with their path, engine and global flag",
        )

        releases_parser = api_subparsers.add_parser(
            "releases",
            help="Available releases",
            description="Releases of the release manifest, newest first",
        )
        releases_parser.add_argument(
            "--channel",
            choices=["stable", "beta", "dev", "all"],
            default="all",
            metavar="CHANNEL",
            help="Channel to list (stable|beta|dev|all) [default: all]",
        )
        releases_parser.add_argument(
            "--limit", type=int, metavar="N", help="Return at most N releases"
        )

        for sub in (list_parser, releases_parser):
            sub.add_argument(
                "--compress",
                "-c",
                action="store_true",
                help="Print compact JSON on one line",
            )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

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

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except Exception as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
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
        if args.command == "fork":
            return self._dispatch_fork_command(args)
        if args.command == "api":
            return self._dispatch_api_command(args)

        module_name = self.COMMAND_MAP.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args)

    def _dispatch_fork_command(self, args) -> int:
        """Dispatch fork sub-commands."""
        if not getattr(args, "fork_command", None):
            logger.error("No fork sub-command specified")
            self.parser.parse_args(["fork", "--help"])
            return 1

        from fvmkit.cli.commands import fork

        fork_command_map = {
            "add": fork.run_add,
            "remove": fork.run_remove,
            "list": fork.run_list,
        }
        return fork_command_map[args.fork_command](args)

    def _dispatch_api_command(self, args) -> int:
        """Dispatch api sub-commands."""
        if not getattr(args, "api_command", None):
            logger.error("No api sub-command specified")
            self.parser.parse_args(["api", "--help"])
            return 1

        from fvmkit.cli.commands import api

        api_command_map = {
            "list": api.run_list,
            "releases": api.run_releases,
        }
        return api_command_map[args.api_command](args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()

"""
rtvm CLI - runtime version manager.

Usage:
    rtvm plugin add <name> [<git-url>]        Add a plugin
    rtvm plugin list [--urls] [--refs]        List added plugins
    rtvm plugin remove <name> [--purge]       Remove a plugin
    rtvm plugin update <name> [<git-ref>]     Update a plugin
    rtvm plugin update --all                  Update all plugins
    rtvm list <plugin>                        List installed versions
    rtvm where <plugin> <version>             Show install path of a version
    rtvm uninstall <plugin> <version>         Remove an installed version
    rtvm info                                 Show environment and plugins
    rtvm config init [--force]                Write a default config file
"""

import argparse
import logging
import sys

from rtvm import __version__
from rtvm.config import load_config
from rtvm.errors import RtvmError


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with one subparser per command."""
    parser = argparse.ArgumentParser(
        prog="rtvm",
        description="The multiple runtime version manager",
    )
    parser.add_argument("--version", action="version", version=f"rtvm {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    commands = parser.add_subparsers(dest="command", metavar="<command>")

    # plugin <subcommand>
    plugin = commands.add_parser("plugin", help="Manage plugins")
    plugin_commands = plugin.add_subparsers(dest="plugin_command", metavar="<subcommand>")

    add = plugin_commands.add_parser("add", help="Add a plugin")
    add.add_argument("name", nargs="?", default="", help="Plugin name")
    add.add_argument("git_url", nargs="?", default="", help="Git repository URL")

    plugin_list = plugin_commands.add_parser("list", help="List added plugins")
    plugin_list.add_argument("--urls", action="store_true", help="Show URLs")
    plugin_list.add_argument("--refs", action="store_true", help="Show Refs")

    remove = plugin_commands.add_parser("remove", help="Remove a plugin")
    remove.add_argument("name", help="Plugin name")
    remove.add_argument(
        "--purge", action="store_true", help="Also delete installed versions and downloads"
    )

    update = plugin_commands.add_parser("update", help="Update a plugin")
    update.add_argument("name", nargs="?", default="", help="Plugin name")
    update.add_argument("ref", nargs="?", default="", help="Git ref to checkout")
    update.add_argument("--all", action="store_true", help="Update all added plugins")
    update.add_argument(
        "-j", "--jobs", type=int, default=1, help="Plugins updated in parallel with --all"
    )

    # Installed versions
    versions = commands.add_parser("list", help="List installed versions of a plugin")
    versions.add_argument("plugin", help="Plugin name")

    where = commands.add_parser("where", help="Show install path of a version")
    where.add_argument("plugin", help="Plugin name")
    where.add_argument("version", help="Version")

    uninstall = commands.add_parser("uninstall", help="Remove an installed version")
    uninstall.add_argument("plugin", help="Plugin name")
    uninstall.add_argument("version", help="Version")

    # Environment
    commands.add_parser("info", help="Show OS, config and plugin information")

    config = commands.add_parser("config", help="Manage the config file")
    config_commands = config.add_subparsers(dest="config_command", metavar="<subcommand>")
    init = config_commands.add_parser("init", help="Write a default config file")
    init.add_argument("--force", action="store_true", help="Overwrite an existing file")

    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def dispatch(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    """Route parsed arguments to a command and return its exit code."""
    if args.command == "plugin":
        from rtvm_cli.commands import plugin

        handlers = {
            "add": plugin.add_command,
            "list": plugin.list_command,
            "remove": plugin.remove_command,
            "update": plugin.update_command,
        }
        handler = handlers.get(args.plugin_command)
        if handler is None:
            print("Unknown command: `rtvm plugin`", file=sys.stderr)
            return 1
        return handler(args, load_config())

    if args.command in ("list", "where", "uninstall"):
        from rtvm_cli.commands import installs

        handlers = {
            "list": installs.list_command,
            "where": installs.where_command,
            "uninstall": installs.uninstall_command,
        }
        return handlers[args.command](args, load_config())

    if args.command == "info":
        from rtvm_cli.commands.info import info_command

        return info_command(args, load_config())

    if args.command == "config" and args.config_command == "init":
        from rtvm_cli.commands.info import config_init_command

        return config_init_command(args)

    parser.print_help()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the rtvm CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        return dispatch(args, parser)
    except RtvmError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""
rtvm installed-version commands (list, where, uninstall).
"""

import sys
from typing import Any

from rtvm import installs
from rtvm.config import Config
from rtvm.errors import PluginNotFound
from rtvm.plugin.registry import Plugin, validate_name


def _existing_plugin(conf: Config, name: str) -> Plugin:
    validate_name(name)
    plugin = Plugin.new(conf, name)
    if not plugin.exists:
        raise PluginNotFound(name)
    return plugin


def list_command(args: Any, conf: Config) -> int:
    """Execute `rtvm list <plugin>`."""
    plugin = _existing_plugin(conf, args.plugin)
    versions = installs.installed(conf, plugin)

    if not versions:
        print("  No versions installed", file=sys.stderr)
        return 0

    for version in versions:
        print(f"  {version}")

    return 0


def where_command(args: Any, conf: Config) -> int:
    """Execute `rtvm where <plugin> <version>`."""
    plugin = _existing_plugin(conf, args.plugin)

    if not installs.is_installed(conf, plugin, args.version):
        print(f"Version not installed: {plugin.name} {args.version}", file=sys.stderr)
        return 1

    print(installs.install_path(conf, plugin, args.version))
    return 0


def uninstall_command(args: Any, conf: Config) -> int:
    """Execute `rtvm uninstall <plugin> <version>`."""
    plugin = _existing_plugin(conf, args.plugin)
    installs.uninstall(conf, plugin, args.version)
    return 0

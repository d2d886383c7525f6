"""
rtvm info and config commands.
"""

import os
import platform
import sys
from typing import Any

from rtvm import __version__
from rtvm.config import Config, config_file_path, write_default_config
from rtvm.plugin import registry


def info_command(args: Any, conf: Config) -> int:
    """Print OS, rtvm settings and added plugins, for bug reports."""
    lines = [
        "OS:",
        platform.platform(),
        "",
        "SHELL:",
        os.environ.get("SHELL", "unknown"),
        "",
        "PYTHON VERSION:",
        sys.version.split()[0],
        "",
        "RTVM VERSION:",
        __version__,
        "",
        "RTVM SETTINGS:",
        f"data_dir={conf.data_dir}",
        f"config_file={conf.config_file}",
        f"plugin_repository_url={conf.plugin_repository_url}",
        f"disable_plugin_short_name_repository={str(conf.disable_plugin_short_name_repository).lower()}",
        f"plugin_repository_last_check_duration={conf.plugin_repository_last_check_duration}",
        "",
        "RTVM INSTALLED PLUGINS:",
    ]

    for listing in registry.list_plugins(conf, include_urls=True, include_refs=True):
        lines.append(f"{listing.name}\t\t{listing.url}\t{listing.ref}")

    print("\n".join(lines))
    return 0


def config_init_command(args: Any) -> int:
    """
    Write a commented default config file to the configured location.

    The existing file is not read, so --force can replace a broken one.
    """
    path = write_default_config(config_file_path(), overwrite=args.force)
    print(f"Wrote {path}")
    return 0

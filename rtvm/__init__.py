"""
rtvm - runtime version manager core.

Manages plugin checkouts under the data directory and keeps track of which
runtime versions are installed for each plugin.
"""

__version__ = "0.1.0"

from types import SimpleNamespace

from rtvm import installs as installs_module
from rtvm.config import Config, load_config
from rtvm.errors import (
    ExternalOperationError,
    GitError,
    InvalidPluginName,
    PluginAlreadyExists,
    PluginError,
    PluginNotFound,
    RtvmError,
)
from rtvm.plugin import registry
from rtvm.plugin.registry import Plugin, PluginListing, UpdateResult

# Plugin registry API namespace
plugins = SimpleNamespace(
    new=Plugin.new,
    add=registry.add,
    list=registry.list_plugins,
    remove=registry.remove,
    update=registry.update,
    update_all=registry.update_all,
)

# Installed-version API namespace
versions = SimpleNamespace(
    install_path=installs_module.install_path,
    download_path=installs_module.download_path,
    installed=installs_module.installed,
    is_installed=installs_module.is_installed,
    staged_install=installs_module.staged_install,
    uninstall=installs_module.uninstall,
)

__all__ = [
    "__version__",
    "Config",
    "ExternalOperationError",
    "GitError",
    "InvalidPluginName",
    "Plugin",
    "PluginAlreadyExists",
    "PluginError",
    "PluginListing",
    "PluginNotFound",
    "RtvmError",
    "UpdateResult",
    "load_config",
    "plugins",
    "versions",
]

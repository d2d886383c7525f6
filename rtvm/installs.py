"""
Install Paths and Installed Versions.

This module decides where a (plugin, version) pair lives on disk and answers
which versions of a plugin are installed:

    <data_dir>/installs/<plugin>/<version>/
    <data_dir>/downloads/<plugin>/<version>/

An existing install directory is the only record that a version is
installed. Version strings are used as path segments verbatim.

The installer itself is external. staged_install() gives it a scratch
directory that only appears at the install path once it has finished.
"""

import logging
import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from rtvm.config import Config
from rtvm.errors import ExternalOperationError, VersionAlreadyInstalled, VersionNotInstalled
from rtvm.fsutil import list_subdirectories, staged_directory

if TYPE_CHECKING:
    from rtvm.plugin.registry import Plugin

logger = logging.getLogger(__name__)

INSTALLS_DIR = "installs"
DOWNLOADS_DIR = "downloads"


def plugin_installs_dir(config: Config, plugin: "Plugin") -> Path:
    return config.data_dir / INSTALLS_DIR / plugin.name


def plugin_downloads_dir(config: Config, plugin: "Plugin") -> Path:
    return config.data_dir / DOWNLOADS_DIR / plugin.name


def install_path(config: Config, plugin: "Plugin", version: str) -> Path:
    """
    Directory a version of a plugin is installed into.

    Pure: does not touch the filesystem.
    """
    return plugin_installs_dir(config, plugin) / version


def download_path(config: Config, plugin: "Plugin", version: str) -> Path:
    """Directory the sources for a version are downloaded into."""
    return plugin_downloads_dir(config, plugin) / version


def installed(config: Config, plugin: "Plugin") -> list[str]:
    """
    Installed versions of a plugin, sorted lexicographically.

    Returns an empty list if nothing was ever installed for the plugin.

    Raises:
        ExternalOperationError: If the installs directory cannot be read
    """
    installs_dir = plugin_installs_dir(config, plugin)

    try:
        return list_subdirectories(installs_dir)
    except OSError as e:
        raise ExternalOperationError(f"Failed to read {installs_dir}: {e}", e) from e


def is_installed(config: Config, plugin: "Plugin", version: str) -> bool:
    """True if the install directory for version exists. Contents are not checked."""
    return install_path(config, plugin, version).is_dir()


@contextmanager
def staged_install(config: Config, plugin: "Plugin", version: str) -> Iterator[Path]:
    """
    Provide a scratch directory for installing a version.

    The yielded directory becomes the install path when the block exits
    normally. If the block raises, the scratch directory is deleted and the
    version stays uninstalled.

    Example:
        with staged_install(conf, plugin, "5.4.6") as target:
            run_installer(target)

    Raises:
        VersionAlreadyInstalled: If the version is already installed
        ExternalOperationError: If the directory cannot be created or moved
    """
    if is_installed(config, plugin, version):
        raise VersionAlreadyInstalled(plugin.name, version)

    final = install_path(config, plugin, version)
    in_body = False

    try:
        with staged_directory(final) as staging:
            in_body = True
            yield staging
            in_body = False
    except OSError as e:
        # Errors raised by the installer itself pass through untouched
        if in_body:
            raise
        if isinstance(e, FileExistsError):
            raise VersionAlreadyInstalled(plugin.name, version) from e
        raise ExternalOperationError(f"Failed to install into {final}: {e}", e) from e

    logger.debug("Installed %s %s at %s", plugin.name, version, final)


def uninstall(config: Config, plugin: "Plugin", version: str) -> None:
    """
    Delete the install directory of a version.

    Raises:
        VersionNotInstalled: If the version is not installed
        ExternalOperationError: If deleting fails
    """
    path = install_path(config, plugin, version)

    if not path.is_dir():
        raise VersionNotInstalled(plugin.name, version)

    try:
        shutil.rmtree(path)
    except OSError as e:
        raise ExternalOperationError(f"Failed to remove {path}: {e}", e) from e

"""
Plugin Registry.

This module manages the lifecycle of plugin checkouts under
``<data_dir>/plugins``.

Key features:
- Add plugins by git URL or by short name through the plugin index
- List plugins in name order, with optional URL/ref lookups
- Remove plugins (optionally purging their installs and downloads)
- Update one plugin to a ref, or every plugin with per-plugin outcomes

The plugin directory is the registry: a plugin exists exactly when
``<data_dir>/plugins/<name>`` is a directory. Nothing else is recorded.
"""

import logging
import re
import shutil
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from rtvm import installs
from rtvm.config import Config
from rtvm.errors import (
    ExternalOperationError,
    GitError,
    InvalidPluginName,
    PluginAlreadyExists,
    PluginNotFound,
)
from rtvm.fsutil import list_subdirectories, staged_directory
from rtvm.plugin import git_ops, index

logger = logging.getLogger(__name__)

PLUGINS_DIR = "plugins"

_NAME_PATTERN = re.compile(r"[a-z0-9_-]+")


def plugins_root(config: Config) -> Path:
    """Directory holding one checkout per plugin."""
    return config.data_dir / PLUGINS_DIR


def validate_name(name: str) -> None:
    """
    Check that a plugin name is usable as a directory name.

    Raises:
        InvalidPluginName: If name is empty or contains other characters than
            lowercase letters, digits, '_' and '-'
    """
    if not name or not _NAME_PATTERN.fullmatch(name):
        raise InvalidPluginName(name)


@dataclass(frozen=True)
class Plugin:
    """
    Handle on a plugin checkout.

    Only the name and the directory it maps to are stored. ``url`` and ``ref``
    ask git every time they are read.

    Attributes:
        name: Plugin name
        dir: Checkout directory, ``<data_dir>/plugins/<name>``
    """

    name: str
    dir: Path

    @classmethod
    def new(cls, config: Config, name: str) -> "Plugin":
        return cls(name=name, dir=plugins_root(config) / name)

    @property
    def exists(self) -> bool:
        return self.dir.is_dir()

    @property
    def url(self) -> str:
        """Origin URL of the checkout, or "" if it cannot be determined."""
        try:
            return git_ops.remote_url(self.dir)
        except GitError as e:
            logger.debug("No remote URL for plugin %s: %s", self.name, e)
            return ""

    @property
    def ref(self) -> str:
        """Commit hash of the checkout, or "" if it cannot be determined."""
        try:
            return git_ops.current_ref(self.dir)
        except GitError as e:
            logger.debug("No ref for plugin %s: %s", self.name, e)
            return ""


@dataclass(frozen=True)
class PluginListing:
    """
    One row of list_plugins output.

    ``url`` and ``ref`` are snapshots taken during the listing, or None when
    they were not requested.
    """

    plugin: Plugin
    url: str | None = None
    ref: str | None = None

    @property
    def name(self) -> str:
        return self.plugin.name


@dataclass(frozen=True)
class UpdateResult:
    """
    Outcome of updating a single plugin during update_all.

    Attributes:
        name: Plugin name
        ref: Commit the plugin now points at (None on failure)
        error: Exception raised by the update (None on success)
    """

    name: str
    ref: str | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def add(config: Config, name: str, repo_url: str = "") -> Plugin:
    """
    Clone a plugin into the plugins directory.

    The clone is made in a hidden staging directory and renamed into place,
    so a failed clone never leaves a plugin directory behind.

    Args:
        config: Configuration
        name: Plugin name
        repo_url: Git URL to clone. If empty, the URL is looked up in the
            short-name plugin index.

    Returns:
        The added Plugin

    Raises:
        InvalidPluginName: If name is not valid
        PluginAlreadyExists: If a plugin with this name is already present
        PluginNotFound: If repo_url is empty and the index has no such plugin
        PluginIndexDisabled: If repo_url is empty and short names are disabled
        GitError: If cloning fails
        ExternalOperationError: If the plugin directory cannot be created
    """
    validate_name(name)
    plugin = Plugin.new(config, name)

    if plugin.dir.exists():
        raise PluginAlreadyExists(name)

    if not repo_url:
        repo_url = index.resolve_url(config, name)

    logger.debug("Cloning %s into %s", repo_url, plugin.dir)

    try:
        with staged_directory(plugin.dir) as staging:
            git_ops.clone(repo_url, staging)
    except FileExistsError as e:
        # Another process finished adding the same plugin first
        raise PluginAlreadyExists(name) from e
    except OSError as e:
        raise ExternalOperationError(f"Failed to create plugin directory for {name}: {e}", e) from e

    return plugin


def list_plugins(
    config: Config, include_urls: bool = False, include_refs: bool = False
) -> list[PluginListing]:
    """
    List added plugins sorted by name.

    Args:
        config: Configuration
        include_urls: Look up each plugin's origin URL
        include_refs: Look up each plugin's current commit

    Returns:
        List of PluginListing objects (empty if no plugins are added)

    Raises:
        ExternalOperationError: If the plugins directory cannot be read
    """
    root = plugins_root(config)

    try:
        names = list_subdirectories(root)
    except OSError as e:
        raise ExternalOperationError(f"Failed to read plugins directory {root}: {e}", e) from e

    listings = []
    for name in names:
        plugin = Plugin(name=name, dir=root / name)
        listings.append(
            PluginListing(
                plugin=plugin,
                url=plugin.url if include_urls else None,
                ref=plugin.ref if include_refs else None,
            )
        )

    return listings


def remove(config: Config, name: str, purge: bool = False) -> None:
    """
    Delete a plugin checkout.

    Args:
        config: Configuration
        name: Plugin name
        purge: Also delete the plugin's install and download directories

    Raises:
        InvalidPluginName: If name is not valid
        PluginNotFound: If the plugin is not added
        ExternalOperationError: If deleting fails
    """
    validate_name(name)
    plugin = Plugin.new(config, name)

    if not plugin.exists:
        raise PluginNotFound(name)

    # Checkout goes last so a failed purge can be retried
    targets = []
    if purge:
        targets += [
            installs.plugin_installs_dir(config, plugin),
            installs.plugin_downloads_dir(config, plugin),
        ]
    targets.append(plugin.dir)

    for target in targets:
        if not target.exists():
            continue
        logger.debug("Removing %s", target)
        try:
            shutil.rmtree(target)
        except OSError as e:
            raise ExternalOperationError(f"Failed to remove {target}: {e}", e) from e


def update(config: Config, name: str, ref: str = "") -> str:
    """
    Fetch a plugin's origin and move its checkout.

    Args:
        config: Configuration
        name: Plugin name
        ref: Branch, tag or commit to checkout. If empty, the tip of the
            remote default branch is checked out.

    Returns:
        Commit hash the plugin points at after the update

    Raises:
        InvalidPluginName: If name is not valid
        PluginNotFound: If the plugin is not added
        GitError: If fetching or checking out fails
    """
    validate_name(name)
    plugin = Plugin.new(config, name)

    if not plugin.exists:
        raise PluginNotFound(name)

    git_ops.fetch(plugin.dir)

    if ref:
        git_ops.checkout(plugin.dir, ref)
    else:
        branch = git_ops.checkout_default_branch(plugin.dir)
        logger.debug("Plugin %s follows default branch %s", name, branch)

    return git_ops.current_ref(plugin.dir)


def update_all(config: Config, max_workers: int = 1) -> list[UpdateResult]:
    """
    Update every added plugin to its remote default branch.

    A failure updating one plugin is recorded in its UpdateResult and does not
    stop the others. Results are returned in list_plugins order.

    Args:
        config: Configuration
        max_workers: Number of plugins updated concurrently

    Returns:
        One UpdateResult per plugin

    Raises:
        ExternalOperationError: If the plugins directory cannot be read
    """
    names = [listing.name for listing in list_plugins(config)]

    if max_workers > 1 and len(names) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(lambda name: _update_one(config, name), names))

    return [_update_one(config, name) for name in names]


def _update_one(config: Config, name: str) -> UpdateResult:
    try:
        ref = update(config, name, "")
    except Exception as e:
        logger.debug("Update of %s failed: %s", name, e)
        return UpdateResult(name=name, error=e)

    return UpdateResult(name=name, ref=ref)

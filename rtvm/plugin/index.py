"""
Short-name Plugin Index.

Resolves a bare plugin name (``rtvm plugin add nodejs``) to a git URL using
an index repository. The index is a git checkout kept at
``<data_dir>/plugin-index``; each plugin has a file ``plugins/<name>``
containing a line ``repository = <git-url>``.

The checkout is cloned on first use and re-synced with its remote when it is
older than ``plugin_repository_last_check_duration`` minutes.
"""

import logging
import time
from pathlib import Path

from rtvm.config import Config
from rtvm.errors import ExternalOperationError, PluginError, PluginIndexDisabled, PluginNotFound
from rtvm.fsutil import staged_directory
from rtvm.plugin import git_ops

logger = logging.getLogger(__name__)

INDEX_DIR = "plugin-index"
STAMP_FILE = "rtvm-last-sync"


def index_dir(config: Config) -> Path:
    return config.data_dir / INDEX_DIR


def _stamp_path(repo_dir: Path) -> Path:
    # Lives in .git so checkouts of the index never touch it
    return repo_dir / ".git" / STAMP_FILE


def _is_stale(config: Config, repo_dir: Path) -> bool:
    duration = config.plugin_repository_last_check_duration
    if duration == 0:
        return True

    try:
        synced_at = _stamp_path(repo_dir).stat().st_mtime
    except FileNotFoundError:
        return True

    return time.time() - synced_at >= duration * 60


def sync(config: Config, force: bool = False) -> Path:
    """
    Make sure the index checkout exists and is fresh enough.

    Args:
        config: Configuration
        force: Fetch even if the last sync is recent

    Returns:
        The index checkout directory

    Raises:
        PluginIndexDisabled: If short-name lookups are disabled
        GitError: If cloning or fetching the index fails
        ExternalOperationError: If the index directory cannot be created
    """
    if config.disable_plugin_short_name_repository:
        raise PluginIndexDisabled("Short-name plugin repository is disabled")

    repo_dir = index_dir(config)

    if not repo_dir.is_dir():
        logger.debug("Cloning plugin index %s", config.plugin_repository_url)
        try:
            with staged_directory(repo_dir) as staging:
                git_ops.clone(config.plugin_repository_url, staging)
        except OSError as e:
            raise ExternalOperationError(f"Failed to create plugin index at {repo_dir}: {e}", e) from e
    elif force or _is_stale(config, repo_dir):
        logger.debug("Syncing plugin index at %s", repo_dir)
        git_ops.fetch(repo_dir)
        git_ops.checkout_default_branch(repo_dir)
    else:
        return repo_dir

    _stamp_path(repo_dir).touch()
    return repo_dir


def parse_entry(entry: Path) -> str:
    """
    Read the repository URL from an index entry file.

    Raises:
        PluginError: If the file has no ``repository`` line
    """
    for line in entry.read_text(encoding="utf-8").splitlines():
        key, sep, value = line.partition("=")
        if sep and key.strip() == "repository" and value.strip():
            return value.strip()

    raise PluginError(f"No repository URL in plugin index entry {entry}")


def resolve_url(config: Config, name: str) -> str:
    """
    Look up the git URL of a plugin by short name.

    The name must already be validated by the caller.

    Raises:
        PluginIndexDisabled: If short-name lookups are disabled
        PluginNotFound: If the index has no entry for name
        GitError: If the index cannot be synced
    """
    entry = sync(config) / "plugins" / name

    if not entry.is_file():
        raise PluginNotFound(name, f"Plugin {name} not found in plugin repository")

    return parse_entry(entry)

"""
Filesystem helpers shared by the plugin registry and the install tracker.

Directories under the data root double as the registry itself, so a
directory must only appear at its final path once it is complete. Work
happens in a hidden sibling and is renamed into place at the end.
"""

import logging
import os
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

STAGING_PREFIX = "."


def is_hidden(path: Path) -> bool:
    """True for dot-entries, which include in-progress staging directories."""
    return path.name.startswith(STAGING_PREFIX)


def list_subdirectories(parent: Path) -> list[str]:
    """
    Names of the visible subdirectories of parent, sorted.

    Returns an empty list when parent does not exist.

    Raises:
        OSError: If parent exists but cannot be read
    """
    if not parent.is_dir():
        return []

    return sorted(
        entry.name
        for entry in parent.iterdir()
        if entry.is_dir() and not is_hidden(entry)
    )


@contextmanager
def staged_directory(final: Path) -> Iterator[Path]:
    """
    Yield an empty hidden directory next to final.

    On a clean exit the directory is renamed to final. If the body raises, or
    final appeared in the meantime, the staging directory is deleted.

    Raises:
        FileExistsError: If final exists when the rename is attempted
        OSError: If the staging directory cannot be created or renamed
    """
    final.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(
        tempfile.mkdtemp(prefix=f"{STAGING_PREFIX}{final.name}-", suffix=".tmp", dir=final.parent)
    )
    # mkdtemp creates 0700
    staging.chmod(0o755)

    try:
        yield staging

        if final.exists():
            raise FileExistsError(f"{final} already exists")
        os.rename(staging, final)
        logger.debug("Moved %s into place at %s", staging.name, final)
    finally:
        if staging.exists():
            shutil.rmtree(staging, ignore_errors=True)

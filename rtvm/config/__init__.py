"""
rtvm Configuration - environment and TOML based settings.

This module provides:
- The immutable Config value every core operation takes
- load_config(), which merges defaults, the config file and the environment
- write_default_config(), which renders a commented config file

Example usage:
    from rtvm.config import load_config

    conf = load_config()
    print(conf.data_dir)

    # Tests point a copy at a scratch directory
    conf = dataclasses.replace(conf, data_dir=tmp_path)
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from rtvm.config.schema import (
    DEFAULT_PLUGIN_REPOSITORY_URL,
    SCHEMA,
    generate_default_config,
    validate_config,
)
from rtvm.config.toml_handler import SECTION, TOMLError, read_toml, render_default_config, write_toml
from rtvm.errors import ConfigError

logger = logging.getLogger(__name__)

DATA_DIR_ENV = "RTVM_DATA_DIR"
CONFIG_FILE_ENV = "RTVM_CONFIG_FILE"

DEFAULT_DATA_DIR = Path("~/.rtvm")
DEFAULT_CONFIG_FILE = Path("~/.rtvmrc.toml")


@dataclass(frozen=True)
class Config:
    """
    Settings for a single rtvm invocation.

    Attributes:
        data_dir: Root directory for all managed state
        config_file: Path the settings were read from (may not exist)
        plugin_repository_url: Git URL of the short-name plugin index
        disable_plugin_short_name_repository: Refuse short-name lookups
        plugin_repository_last_check_duration: Minutes between index syncs
    """

    data_dir: Path
    config_file: Path = DEFAULT_CONFIG_FILE
    plugin_repository_url: str = DEFAULT_PLUGIN_REPOSITORY_URL
    disable_plugin_short_name_repository: bool = False
    plugin_repository_last_check_duration: int = 60


def config_file_path(env: Mapping[str, str] | None = None) -> Path:
    """Location of the config file: $RTVM_CONFIG_FILE, else ~/.rtvmrc.toml."""
    if env is None:
        env = os.environ
    return Path(env.get(CONFIG_FILE_ENV) or DEFAULT_CONFIG_FILE).expanduser()


def load_config(env: Mapping[str, str] | None = None) -> Config:
    """
    Load configuration for this process.

    Precedence, lowest first: schema defaults, the ``[rtvm]`` table of the
    config file, then ``RTVM_DATA_DIR``. A missing config file is not an error.

    Args:
        env: Environment mapping (defaults to os.environ)

    Returns:
        Config instance

    Raises:
        ConfigError: If the config file cannot be parsed or fails validation
    """
    if env is None:
        env = os.environ

    config_file = config_file_path(env)
    settings = generate_default_config()

    if config_file.is_file():
        logger.debug("Reading config file %s", config_file)
        data = read_toml(config_file)
        table = data.get(SECTION, {})
        if not isinstance(table, dict):
            raise ConfigError(f"[{SECTION}] in {config_file} must be a table")
        validate_config(table)
        settings.update(table)

    file_data_dir = settings.pop("data_dir")
    data_dir = env.get(DATA_DIR_ENV) or file_data_dir or DEFAULT_DATA_DIR

    return Config(
        data_dir=Path(data_dir).expanduser(),
        config_file=config_file,
        **settings,
    )


def write_default_config(path: Path, overwrite: bool = False) -> Path:
    """
    Write a commented default config file.

    Args:
        path: Destination file
        overwrite: Replace an existing file

    Returns:
        The path written

    Raises:
        ConfigError: If the file exists and overwrite is False, or on I/O failure
    """
    path = path.expanduser()
    if path.exists() and not overwrite:
        raise ConfigError(f"Config file already exists: {path}")

    write_toml(path, render_default_config())
    logger.debug("Wrote default config to %s", path)
    return path


__all__ = [
    "Config",
    "ConfigError",
    "SCHEMA",
    "TOMLError",
    "config_file_path",
    "load_config",
    "write_default_config",
]

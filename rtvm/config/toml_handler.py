"""
TOML File I/O Handler.

This module reads and writes the rtvm config file.

Key features:
- Parse TOML files using tomllib (Python 3.11+)
- Write TOML files using tomlkit (preserves comments and formatting)
- Render a commented default config from the schema
"""

import tomllib
from pathlib import Path
from typing import Any

import tomlkit

from rtvm.config.schema import SCHEMA, ConfigField
from rtvm.errors import ConfigError

SECTION = "rtvm"


class TOMLError(ConfigError):
    """Raised when a TOML file cannot be read, parsed or written."""

    pass


def read_toml(file_path: Path) -> dict[str, Any]:
    """
    Read and parse a TOML file.

    Args:
        file_path: Path to the TOML file

    Returns:
        Parsed TOML data as dictionary

    Raises:
        TOMLError: If file cannot be read or parsed
    """
    try:
        with open(file_path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise TOMLError(f"TOML file not found: {file_path}") from e
    except tomllib.TOMLDecodeError as e:
        raise TOMLError(f"Failed to parse TOML file {file_path}: {e}") from e
    except OSError as e:
        raise TOMLError(f"Failed to read TOML file {file_path}: {e}") from e


def write_toml(file_path: Path, document: Any) -> None:
    """
    Write a mapping or tomlkit document to a TOML file.

    Raises:
        TOMLError: If file cannot be written
    """
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "w", encoding="utf-8") as f:
            tomlkit.dump(document, f)
    except OSError as e:
        raise TOMLError(f"Failed to write TOML file {file_path}: {e}") from e


def render_default_config(schema: dict[str, ConfigField] = SCHEMA) -> tomlkit.TOMLDocument:
    """
    Build a commented TOML document holding every field's default.

    Empty string defaults are written as comments only, so the key stays
    unset until the user fills it in.
    """
    doc = tomlkit.document()
    doc.add(tomlkit.comment("rtvm configuration"))
    doc.add(tomlkit.nl())

    table = tomlkit.table()

    for field_name, field in schema.items():
        if field.description:
            table.add(tomlkit.comment(field.description))

        constraints = []
        if field.min is not None:
            constraints.append(f"min: {field.min}")
        if field.max is not None:
            constraints.append(f"max: {field.max}")
        if constraints:
            table.add(tomlkit.comment(f"Constraints: {', '.join(constraints)}"))

        if field.default == "":
            table.add(tomlkit.comment(f'{field_name} = ""'))
        else:
            table.add(field_name, field.default)
        table.add(tomlkit.nl())

    doc.add(SECTION, table)
    return doc

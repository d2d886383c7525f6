"""
Configuration Schema.

This module declares the keys accepted in the rtvm config file and validates
values read from it.

Key features:
- Typed field definitions with defaults and min/max constraints
- Validation of a parsed TOML table against the schema
- Unknown keys are rejected rather than ignored
"""

from dataclasses import dataclass
from typing import Any

from rtvm.errors import ConfigError

DEFAULT_PLUGIN_REPOSITORY_URL = "https://github.com/asdf-vm/asdf-plugins.git"


class SchemaError(ConfigError):
    """Raised when a field definition is inconsistent."""

    pass


class ValidationError(SchemaError):
    """Raised when a config value fails validation."""

    pass


@dataclass(frozen=True)
class ConfigField:
    """
    A single config file key with its type and constraints.

    Attributes:
        type_: The expected type of the value
        default: Value used when the key is absent
        description: Human-readable description (written as a TOML comment)
        min: Minimum value (numbers) or minimum length (strings)
        max: Maximum value (numbers) or maximum length (strings)
    """

    type_: type
    default: Any
    description: str = ""
    min: Any = None
    max: Any = None

    def __post_init__(self):
        if not _is_type(self.default, self.type_):
            raise SchemaError(
                f"Default value {self.default!r} does not match type {self.type_.__name__}"
            )

        if (self.min is not None or self.max is not None) and self.type_ not in (
            int,
            str,
        ):
            raise SchemaError(
                f"min/max constraints only supported for int, str. Got {self.type_.__name__}"
            )

    def validate(self, value: Any) -> None:
        """
        Validate a value against this field's constraints.

        Raises:
            ValidationError: If validation fails
        """
        if not _is_type(value, self.type_):
            raise ValidationError(
                f"Expected type {self.type_.__name__}, got {type(value).__name__}"
            )

        if self.type_ is int:
            if self.min is not None and value < self.min:
                raise ValidationError(f"Value {value} is less than minimum {self.min}")
            if self.max is not None and value > self.max:
                raise ValidationError(
                    f"Value {value} is greater than maximum {self.max}"
                )

        if self.type_ is str:
            if self.min is not None and len(value) < self.min:
                raise ValidationError(
                    f"String length {len(value)} is less than minimum {self.min}"
                )
            if self.max is not None and len(value) > self.max:
                raise ValidationError(
                    f"String length {len(value)} is greater than maximum {self.max}"
                )


def _is_type(value: Any, type_: type) -> bool:
    # bool is a subclass of int, but `x = true` is never a valid duration
    if type_ is int and isinstance(value, bool):
        return False
    return isinstance(value, type_)


SCHEMA: dict[str, ConfigField] = {
    "data_dir": ConfigField(
        str,
        "",
        "Root directory for plugins and installs (RTVM_DATA_DIR takes precedence)",
    ),
    "plugin_repository_url": ConfigField(
        str,
        DEFAULT_PLUGIN_REPOSITORY_URL,
        "Git repository used to resolve plugin short names",
        min=1,
    ),
    "disable_plugin_short_name_repository": ConfigField(
        bool,
        False,
        "Refuse to resolve plugin short names through the plugin repository",
    ),
    "plugin_repository_last_check_duration": ConfigField(
        int,
        60,
        "Minutes between plugin repository syncs (0 syncs on every lookup)",
        min=0,
    ),
}


def validate_config(config: dict[str, Any], schema: dict[str, ConfigField] = SCHEMA) -> None:
    """
    Validate a configuration table against a schema.

    Keys missing from ``config`` are allowed and fall back to their defaults.

    Args:
        config: The parsed ``[rtvm]`` table
        schema: The schema dictionary (field_name -> ConfigField)

    Raises:
        ValidationError: If an unknown key or an invalid value is found
    """
    for key in config:
        if key not in schema:
            raise ValidationError(f"Unknown configuration field: {key}")

    for field_name, field in schema.items():
        if field_name not in config:
            continue

        try:
            field.validate(config[field_name])
        except ValidationError as e:
            raise ValidationError(f"Field '{field_name}': {e}") from e


def generate_default_config(schema: dict[str, ConfigField] = SCHEMA) -> dict[str, Any]:
    """Return a dictionary with the default value of every field."""
    return {field_name: field.default for field_name, field in schema.items()}

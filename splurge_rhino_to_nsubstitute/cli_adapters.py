"""Coerce CLI option values into a ``MigrationConfig``.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

from typing import Any

from .context import MigrationConfig
from .exceptions import ConfigurationError

_INT_FIELDS = {"line_length", "max_file_size_mb"}
_LIST_FIELDS = {"file_patterns"}


def _unwrap_option(value: Any) -> Any:
    """Return the default of a Typer ``OptionInfo`` passed through a direct call."""
    return getattr(value, "default", value)


def build_config_from_cli(base_config: MigrationConfig, cli_kwargs: dict[str, object]) -> MigrationConfig:
    """Overlay CLI values on ``base_config``.

    ``None`` values and unknown keys are ignored. Integer fields are
    converted with ``int`` and list fields accept comma separated strings.

    Args:
        base_config: Configuration loaded from file or defaults.
        cli_kwargs: Candidate overrides keyed by ``MigrationConfig`` field.

    Returns:
        The validated configuration.

    Raises:
        ConfigurationError: If a value cannot be coerced.
        ValueError: If the resulting configuration is invalid.
    """
    overrides: dict[str, Any] = {}
    for key, raw_value in cli_kwargs.items():
        if key not in MigrationConfig.__dataclass_fields__:
            continue
        value = _unwrap_option(raw_value)
        if value is None:
            continue

        if key in _INT_FIELDS:
            try:
                overrides[key] = int(value)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Configuration value for {key} must be an integer: {value}", key) from e
        elif key in _LIST_FIELDS:
            if isinstance(value, str):
                overrides[key] = [part.strip() for part in value.split(",") if part.strip()]
            else:
                overrides[key] = list(value)
        else:
            overrides[key] = value

    config = base_config.with_override(**overrides)
    config.validate()
    return config

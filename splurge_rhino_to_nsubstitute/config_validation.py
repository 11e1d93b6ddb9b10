"""Configuration validation using pydantic schemas.

``ValidatedMigrationConfig`` mirrors :class:`~.context.MigrationConfig`
field for field and adds range checks, value normalization and
cross-field rules. Failures surface as
:class:`~.exceptions.ValidationError`.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

import dataclasses
import re
from pathlib import Path
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError

_DOTTED_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")
_VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


class ValidatedMigrationConfig(BaseModel):
    """Validated counterpart of ``MigrationConfig``."""

    model_config = ConfigDict(validate_assignment=True)

    # Output settings
    target_root: str | None = Field(default=None, description="Root directory for output files")
    root_directory: str | None = Field(default=None, description="Root directory for source files")
    file_patterns: list[str] = Field(default_factory=lambda: ["test_*.py"], description="File patterns to match")
    recurse_directories: bool = Field(default=True, description="Whether to recurse into subdirectories")
    backup_originals: bool = Field(default=True, description="Whether to backup original files")
    backup_root: str | None = Field(default=None, description="Root directory for backups")
    target_suffix: str = Field(default="", description="Suffix to append to target filenames")
    target_extension: str | None = Field(default=None, description="Extension for target files")

    # Formatting
    line_length: int | None = Field(default=120, ge=60, le=200, description="Maximum line length")
    format_output: bool = Field(default=True, description="Whether to format output code with black and isort")

    # Logging
    log_level: str = Field(default="INFO", description="Default logging level")
    verbose: bool = Field(default=False, description="Verbose output")

    # Limits and behavior
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Maximum file size in MB")
    dry_run: bool = Field(default=False, description="Whether to perform a dry run")
    fail_fast: bool = Field(default=False, description="Whether to fail on first error")
    continue_on_error: bool = Field(default=False, description="Whether to continue on individual file errors")

    # Import handling
    transform_imports: bool = Field(default=True, description="Whether to add NSubstitute style imports")
    remove_unused_imports: bool = Field(default=True, description="Whether to remove unused Rhino Mocks imports")

    # Mocking API modules
    source_module: str = Field(default="rhino_mocks", description="Module providing the Rhino Mocks style API")
    target_module: str = Field(default="nsubstitute", description="Module providing the NSubstitute style API")

    @field_validator("file_patterns")
    @classmethod
    def validate_file_patterns(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("At least one file pattern must be specified, for example 'test_*.py'.")
        for i, pattern in enumerate(v):
            if not isinstance(pattern, str) or not pattern.strip():
                raise ValueError(f"File pattern at index {i} cannot be empty or whitespace-only.")
            if not any(char in pattern for char in "*?[") and "." not in pattern:
                raise ValueError(
                    f"File pattern '{pattern}' at index {i} should contain wildcards (*, ?, []) "
                    "or be a file name. Examples: 'test_*.py', '*_tests.py'."
                )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        upper_v = v.upper() if isinstance(v, str) else v
        if upper_v not in _VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of: {', '.join(_VALID_LOG_LEVELS)}, got '{v}'.")
        return upper_v

    @field_validator("source_module", "target_module")
    @classmethod
    def validate_module_name(cls, v: str) -> str:
        if not _DOTTED_NAME.match(v):
            raise ValueError(f"'{v}' is not a dotted Python module name.")
        return v

    @field_validator("target_extension")
    @classmethod
    def validate_target_extension(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if not v.strip() or any(sep in v for sep in ("/", "\\")):
            raise ValueError(f"target_extension must be a plain extension such as '.py', got '{v}'.")
        return v

    @field_validator("target_root", "backup_root")
    @classmethod
    def validate_directory(cls, v: str | None) -> str | None:
        # Missing directories are created later; existing paths must be directories.
        if v is None:
            return v
        path = Path(v)
        if path.exists() and not path.is_dir():
            raise ValueError(f"Expected a directory, got: {v}")
        return v

    @model_validator(mode="after")
    def validate_cross_field_compatibility(self) -> Self:
        """Reject option combinations that contradict each other."""
        errors = []
        if self.source_module == self.target_module:
            errors.append("source_module: must differ from target_module")
        if self.backup_root and not self.backup_originals:
            errors.append("backup_root: specified but backup_originals is disabled")
        if self.fail_fast and self.continue_on_error:
            errors.append("fail_fast: cannot be combined with continue_on_error")
        if errors:
            raise ValueError(f"Configuration conflicts detected: {'; '.join(errors)}")
        return self


def validate_migration_config(config_dict: dict[str, Any]) -> ValidatedMigrationConfig:
    """Validate a migration configuration mapping.

    Args:
        config_dict: Configuration values keyed by field name.

    Returns:
        The validated configuration.

    Raises:
        ValidationError: If any value is invalid.
    """
    try:
        return ValidatedMigrationConfig(**config_dict)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid migration configuration: {e}", validation_type="configuration") from e


def validate_migration_config_object(config: Any) -> ValidatedMigrationConfig:
    """Validate a ``MigrationConfig`` dataclass instance."""
    return validate_migration_config(dataclasses.asdict(config))

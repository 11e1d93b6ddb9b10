"""Migration configuration and pipeline context.

``MigrationConfig`` holds the options that control file discovery, the
rewrite and output. ``PipelineContext`` carries one file's paths, the
active configuration, a run id and free-form metadata through the
pipeline. ``ContextManager`` loads configuration from YAML.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import dataclasses
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .config_validation import validate_migration_config_object
from .result import Result

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationConfig:
    """Migration behavior configuration.

    Instances are frozen; use :meth:`with_override` to derive a modified
    copy. :meth:`from_dict` ignores unknown keys so configuration files
    written for other versions still load.
    """

    # Output settings
    target_root: str | None = None
    root_directory: str | None = None
    file_patterns: list[str] = field(default_factory=lambda: ["test_*.py"])
    recurse_directories: bool = True
    backup_originals: bool = True
    backup_root: str | None = None
    # Suffix appended to the target filename stem
    target_suffix: str = ""
    # Replacement extension for target files; None keeps the original
    target_extension: str | None = None

    # Formatting
    line_length: int | None = 120
    format_output: bool = True
    """Format rewritten code with isort and black"""

    # Logging
    log_level: str = "INFO"
    verbose: bool = False

    # Limits
    max_file_size_mb: int = 10
    """Files larger than this are rejected before parsing"""

    # Behavior
    dry_run: bool = False
    fail_fast: bool = False
    continue_on_error: bool = False
    """Keep processing remaining files after one fails"""

    # Import handling
    transform_imports: bool = True
    """Add the NSubstitute style imports the rewritten code needs"""
    remove_unused_imports: bool = True
    """Drop Rhino Mocks style imports nothing references after the rewrite"""

    # Mocking API modules
    source_module: str = "rhino_mocks"
    target_module: str = "nsubstitute"

    def with_override(self, **kwargs: Any) -> "MigrationConfig":
        """Return a copy with ``kwargs`` applied."""
        return dataclasses.replace(self, **kwargs)

    def validate(self) -> None:
        """Validate the configuration.

        Raises:
            ValueError: If any field is out of range or inconsistent.
        """
        try:
            validate_migration_config_object(self)
        except Exception as e:
            raise ValueError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "MigrationConfig":
        """Create a validated config from a mapping, ignoring unknown keys.

        Raises:
            ValueError: If the resulting configuration is invalid.
        """
        filtered = {k: v for k, v in config_dict.items() if k in cls.__dataclass_fields__}
        config = cls(**filtered)
        config.validate()
        return config

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class PipelineContext:
    """Immutable per-file context passed between pipeline stages.

    Attributes:
        source_file: Path of the Rhino Mocks style test file.
        target_file: Path the rewritten file is written to.
        config: Active configuration.
        run_id: Identifier correlating the events of one run.
        metadata: Free-form values attached by callers.
    """

    source_file: str
    target_file: str
    config: MigrationConfig
    run_id: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Steps that need the file on disk report a missing file themselves.
        if not Path(self.source_file).exists():
            logger.warning(f"PipelineContext created with non-existent source_file: {self.source_file}")

    @classmethod
    def create(
        cls,
        source_file: str,
        target_file: str | None = None,
        config: MigrationConfig | None = None,
        run_id: str | None = None,
    ) -> "PipelineContext":
        """Construct a context, defaulting target, config and run id.

        Args:
            source_file: Path to the source test file.
            target_file: Output path; defaults to ``source_file``.
            config: Configuration; defaults to ``MigrationConfig()``.
            run_id: Run identifier; a UUID is generated when omitted.

        Returns:
            A new ``PipelineContext``.
        """
        return cls(
            source_file=source_file,
            target_file=target_file or str(Path(source_file)),
            config=config or MigrationConfig(),
            run_id=run_id or str(uuid.uuid4()),
            metadata={},
        )

    def with_metadata(self, key: str, value: Any) -> "PipelineContext":
        """Return a copy with ``metadata[key] = value``."""
        return dataclasses.replace(self, metadata={**self.metadata, key: value})

    def with_config(self, **config_overrides: Any) -> "PipelineContext":
        """Return a copy whose configuration has ``config_overrides`` applied."""
        return dataclasses.replace(self, config=self.config.with_override(**config_overrides))

    def get_source_path(self) -> Path:
        return Path(self.source_file)

    def get_target_path(self) -> Path:
        return Path(self.target_file)

    def is_dry_run(self) -> bool:
        return self.config.dry_run

    def get_line_length(self) -> int:
        """Configured line length, 120 when unset."""
        return self.config.line_length or 120

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_file": self.source_file,
            "target_file": self.target_file,
            "config": self.config.to_dict(),
            "run_id": self.run_id,
            "metadata": self.metadata,
        }

    def __str__(self) -> str:
        return f"PipelineContext(source={self.source_file}, target={self.target_file}, run_id={self.run_id[:8]}...)"


class ContextManager:
    """Load and sanity-check configuration, reporting through ``Result``."""

    @staticmethod
    def load_config_from_file(config_file: str) -> Result[MigrationConfig]:
        """Load a ``MigrationConfig`` from a YAML file.

        Unknown top-level keys are ignored.

        Args:
            config_file: Path to the YAML configuration file.

        Returns:
            A result holding the configuration, or an error when the file
            is missing, is not a mapping, or fails validation.
        """
        try:
            with open(config_file, encoding="utf-8") as f:
                config_data = yaml.safe_load(f)
        except FileNotFoundError:
            return Result.failure(
                FileNotFoundError(f"Configuration file not found: {config_file}"), {"config_file": config_file}
            )
        except yaml.YAMLError as e:
            return Result.failure(ValueError(f"Error loading configuration: {e}"), {"config_file": config_file})

        if not isinstance(config_data, dict):
            return Result.failure(
                ValueError("Configuration file must contain a dictionary"), {"config_file": config_file}
            )

        try:
            return Result.success(MigrationConfig.from_dict(config_data))
        except (TypeError, ValueError) as e:
            return Result.failure(ValueError(f"Error loading configuration: {e}"), {"config_file": config_file})

    @staticmethod
    def validate_config(config: MigrationConfig) -> Result[MigrationConfig]:
        """Run quick sanity checks that produce warnings rather than errors."""
        issues = []
        if config.line_length and (config.line_length < 60 or config.line_length > 200):
            issues.append("line_length must be between 60 and 200")
        if config.source_module == config.target_module:
            issues.append("source_module and target_module must differ")
        if issues:
            return Result.warning(config, [f"Configuration issues: {', '.join(issues)}"])
        return Result.success(config)

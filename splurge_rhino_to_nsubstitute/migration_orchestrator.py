"""Orchestrate the migration of files and directories.

``MigrationOrchestrator`` validates paths, works out target names,
reads the source and runs the collector, formatter and output jobs as
one pipeline per file.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import logging
from pathlib import Path
from typing import Any

from .context import MigrationConfig, PipelineContext
from .detectors import RhinoMocksFileDetector
from .events import EventBus, LoggingSubscriber
from .helpers.path_utils import (
    PathValidationError,
    check_file_size,
    suggest_path_fixes,
    validate_source_path,
    validate_target_path,
)
from .jobs import CollectorJob, FormatterJob, OutputJob
from .pipeline import Pipeline
from .result import Result


def compute_target_path(source_file: str | Path, config: MigrationConfig) -> str:
    """Return where the rewritten ``source_file`` is written.

    ``target_root`` replaces the directory, ``target_suffix`` is appended
    to the stem and ``target_extension`` replaces the extension. With none
    of them set the source is rewritten in place.
    """
    src_path = Path(source_file)
    extension = config.target_extension if config.target_extension is not None else src_path.suffix
    if extension and not extension.startswith("."):
        extension = f".{extension}"
    name = f"{src_path.stem}{config.target_suffix}{extension}"
    directory = Path(config.target_root) if config.target_root else src_path.parent
    return str(directory / name)


class MigrationOrchestrator:
    """Run the migration pipeline for files and directories.

    Args:
        event_bus: Bus shared with callers. When omitted a private bus is
            created with a :class:`~.events.LoggingSubscriber` attached.
    """

    def __init__(self, event_bus: EventBus | None = None) -> None:
        self.event_bus = event_bus or EventBus()
        self.logger_subscriber = LoggingSubscriber(self.event_bus) if event_bus is None else None
        self._logger = logging.getLogger(__name__)

        self.collector_job = CollectorJob(self.event_bus)
        self.formatter_job = FormatterJob(self.event_bus)
        self.output_job = OutputJob(self.event_bus)

    def migrate_file(self, source_file: str, config: MigrationConfig | None = None) -> Result[str]:
        """Migrate one Rhino Mocks style test file.

        Args:
            source_file: Path of the file to rewrite.
            config: Migration options; defaults to ``MigrationConfig()``.

        Returns:
            The target path on success. In a dry run the rewritten code is
            under the ``generated_code`` metadata key. Path, read, parse
            and rewrite failures are returned as error results.
        """
        config = config or MigrationConfig()
        self._logger.info(f"Starting migration of {source_file}")

        try:
            validated_source = validate_source_path(source_file)
            check_file_size(validated_source, config.max_file_size_mb)
            target_file = str(validate_target_path(compute_target_path(validated_source, config)))
        except PathValidationError as e:
            return Result.failure(e, {"source_file": source_file, "suggestions": suggest_path_fixes(e, source_file)})

        try:
            source_code = validated_source.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            self._logger.error(f"Cannot read {source_file}: {e}")
            return Result.failure(e, {"source_file": source_file, "suggestions": suggest_path_fixes(e, source_file)})

        context = PipelineContext.create(source_file=str(validated_source), target_file=target_file, config=config)
        result: Result[str] = self._create_migration_pipeline().execute(context, source_code)

        if result.is_error():
            self._logger.error(f"Migration failed for {source_file}: {result.error}")
        else:
            self._logger.info(f"Migration completed for {source_file}")
        return result

    def find_source_files(self, source_dir: str | Path, config: MigrationConfig) -> list[str]:
        """List files under ``source_dir`` that match the patterns and use Rhino Mocks.

        Files that cannot be read or parsed are skipped.
        """
        root = Path(source_dir)
        detector = RhinoMocksFileDetector(config.source_module)
        candidates: set[Path] = set()
        for pattern in config.file_patterns:
            matches = root.rglob(pattern) if config.recurse_directories else root.glob(pattern)
            candidates.update(path for path in matches if path.is_file())

        selected = []
        for path in sorted(candidates):
            try:
                if detector.is_rhino_mocks_file(path):
                    selected.append(str(path))
            except (OSError, UnicodeDecodeError, SyntaxError) as e:
                self._logger.debug(f"Skipping unreadable file {path}: {e}")
        return selected

    def migrate_directory(self, source_dir: str, config: MigrationConfig | None = None) -> Result[list[str]]:
        """Migrate every Rhino Mocks style file under ``source_dir``.

        Args:
            source_dir: Directory to search.
            config: Migration options. ``file_patterns`` and
                ``recurse_directories`` drive discovery; ``fail_fast``
                stops at the first failing file.

        Returns:
            The migrated paths. When some files fail the result is a
            warning listing them under ``failed_files`` metadata; with
            ``fail_fast`` the first failure is returned instead.
        """
        config = config or MigrationConfig()
        try:
            source_path = validate_source_path(source_dir)
        except PathValidationError as e:
            return Result.failure(e)
        if not source_path.is_dir():
            return Result.failure(PathValidationError(f"Path is not a directory: {source_dir}", source_dir, "not_directory"))

        files = self.find_source_files(source_path, config)
        if not files:
            self._logger.warning(f"No Rhino Mocks files found in {source_dir}")
            return Result.success([])
        self._logger.info(f"Found {len(files)} Rhino Mocks files to migrate")

        migrated: list[str] = []
        failed: list[str] = []
        generated: dict[str, Any] = {}
        for file in files:
            result = self.migrate_file(file, config)
            if result.is_error():
                if config.fail_fast:
                    return result  # type: ignore[return-value]
                failed.append(file)
                continue
            migrated.append(str(result.data))
            if "generated_code" in result.metadata:  # type: ignore[operator]
                generated[str(result.data)] = result.metadata["generated_code"]  # type: ignore[index]

        self._logger.info(f"Migration completed: {len(migrated)} successful, {len(failed)} failed")
        metadata: dict[str, Any] = {"generated_code": generated} if generated else {}
        if failed:
            return Result.warning(migrated, [f"Failed to migrate {len(failed)} files"], {**metadata, "failed_files": failed})
        return Result.success(migrated, metadata)

    def _create_migration_pipeline(self) -> Pipeline[str, str]:
        jobs: list[Any] = [self.collector_job, self.formatter_job, self.output_job]
        return Pipeline("migration", jobs, self.event_bus)

"""Programmatic API.

``migrate`` rewrites a list of files and returns the written paths;
the CLI is a thin layer over it.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .context import MigrationConfig
from .events import EventBus
from .migration_orchestrator import MigrationOrchestrator
from .result import Result

logger = logging.getLogger(__name__)


def migrate(
    source_files: Iterable[str] | str,
    config: MigrationConfig | None = None,
    event_bus: EventBus | None = None,
) -> Result[list[str]]:
    """Migrate one or more Rhino Mocks style test files.

    Args:
        source_files: A path or an iterable of paths.
        config: Migration options; defaults to ``MigrationConfig()``.
        event_bus: Optional bus to observe pipeline events.

    Returns:
        The target paths. In a dry run ``metadata["generated_code"]``
        maps each target path to its rewritten code. The first failure is
        returned as is unless ``continue_on_error`` is set, in which case
        the result is a warning listing ``failed_files``.
    """
    files = [source_files] if isinstance(source_files, str) else list(source_files)
    config = config or MigrationConfig()
    orchestrator = MigrationOrchestrator(event_bus)

    written: list[str] = []
    generated: dict[str, str] = {}
    sources: dict[str, str] = {}
    failed: list[str] = []
    for src in files:
        result = orchestrator.migrate_file(src, config)
        if result.is_error():
            if not config.continue_on_error:
                return Result.failure(result.error or RuntimeError(f"Migration failed: {src}"), result.metadata)
            logger.warning(f"Continuing after failure in {src}: {result.error}")
            failed.append(src)
            continue

        target = str(result.data) if result.data is not None else src
        written.append(target)
        if "generated_code" in result.metadata:  # type: ignore[operator]
            generated[target] = result.metadata["generated_code"]  # type: ignore[index]
            sources[target] = src

    metadata = {"generated_code": generated, "source_files": sources} if generated else {}
    if failed:
        return Result.warning(written, [f"Failed to migrate {len(failed)} files"], {**metadata, "failed_files": failed})
    return Result.success(written, metadata)

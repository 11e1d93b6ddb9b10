"""Output job: back up the original and write the rewritten file.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import logging
import shutil
from pathlib import Path
from typing import Any

from ..context import PipelineContext
from ..events import EventBus
from ..pipeline import Job, Task
from ..result import Result
from ..steps import WriteOutputStep


class OutputJob(Job[str, str]):
    """Write the rewritten code, backing up the source first when configured."""

    def __init__(self, event_bus: EventBus) -> None:
        super().__init__("output", [Task("output", [WriteOutputStep("write_output", event_bus)], event_bus)], event_bus)
        self._logger = logging.getLogger(f"{__name__}.{self.name}")

    def execute(self, context: PipelineContext, initial_input: Any = None) -> Result[str]:
        """Create the backup (outside dry runs) and write ``initial_input``.

        Args:
            context: Pipeline context with target path and configuration.
            initial_input: Formatted code from the formatter job.

        Returns:
            The path written, or in a dry run the would-be path with the
            code under ``generated_code`` metadata.
        """
        config = context.config
        if config.backup_originals and not config.dry_run:
            backup = self._create_backup(context.source_file, config.backup_root)
            if backup is not None:
                self._logger.info(f"Created backup: {backup}")

        result = super().execute(context, initial_input)
        if result.is_error():
            self._logger.error(f"Output job failed for {context.target_file}: {result.error}")
        elif config.dry_run:
            self._logger.info(f"Dry-run: would write output to {context.target_file}")
        return result

    def _create_backup(self, source_file: str, backup_root: str | None = None) -> Path | None:
        """Copy ``source_file`` to ``<name>.py.backup``.

        The backup lives next to the source unless ``backup_root`` is set.
        An existing backup is never overwritten. Failures are logged and
        do not stop the write.

        Returns:
            The new backup path, or None when no backup was created.
        """
        source_path = Path(source_file)
        backup_name = f"{source_path.name}.backup"
        backup_path = Path(backup_root) / backup_name if backup_root else source_path.with_name(backup_name)

        if backup_path.exists():
            self._logger.info(f"Backup already exists, skipping: {backup_path}")
            return None
        try:
            backup_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source_path, backup_path)
        except OSError as e:
            self._logger.warning(f"Failed to create backup for {source_file}: {e}")
            return None
        return backup_path

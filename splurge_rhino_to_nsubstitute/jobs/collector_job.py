"""Collector job: parse, rewrite and render one source file.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import logging
from typing import Any

from ..context import PipelineContext
from ..events import EventBus
from ..pipeline import Job, Task
from ..result import Result
from ..steps import GenerateCodeStep, ParseSourceStep, RewriteMocksStep


class CollectorJob(Job[str, str]):
    """Turn Rhino Mocks style source text into NSubstitute style source text."""

    def __init__(self, event_bus: EventBus) -> None:
        super().__init__("collector", [self._create_rewrite_task(event_bus)], event_bus)
        self._logger = logging.getLogger(f"{__name__}.{self.name}")

    def _create_rewrite_task(self, event_bus: EventBus) -> Task[str, str]:
        steps: list[Any] = [
            ParseSourceStep("parse_source", event_bus),
            RewriteMocksStep("rewrite_mocks", event_bus),
            GenerateCodeStep("generate_code", event_bus),
        ]
        return Task("rewrite", steps, event_bus)

    def execute(self, context: PipelineContext, initial_input: Any = None) -> Result[str]:
        """Run the rewrite over ``initial_input``.

        Args:
            context: Pipeline context of the source file.
            initial_input: Source text read by the orchestrator.

        Returns:
            The rewritten source, or the error of the failing step.
        """
        if not isinstance(initial_input, str):
            return Result.failure(TypeError(f"Collector job expects source text, got {type(initial_input).__name__}"))

        self._logger.info(f"Starting collection job for {context.source_file}")
        result = super().execute(context, initial_input)
        if result.is_error():
            self._logger.error(f"Collection job failed for {context.source_file}: {result.error}")
        return result

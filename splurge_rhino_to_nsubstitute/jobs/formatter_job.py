"""Formatter job: format and validate generated code.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import logging
from typing import Any

from ..events import EventBus
from ..pipeline import Job, Task
from ..steps import FormatCodeStep, ValidateGeneratedCodeStep


class FormatterJob(Job[str, str]):
    """Run isort and black over the rewritten code, then check it parses."""

    def __init__(self, event_bus: EventBus) -> None:
        super().__init__("formatter", [self._create_formatting_task(event_bus)], event_bus)
        self._logger = logging.getLogger(f"{__name__}.{self.name}")

    def _create_formatting_task(self, event_bus: EventBus) -> Task[str, str]:
        steps: list[Any] = [
            FormatCodeStep("format_code", event_bus),
            ValidateGeneratedCodeStep("validate_code", event_bus),
        ]
        return Task("formatting", steps, event_bus)

"""Formatting and validation steps.

Formatting runs ``isort`` with the black profile followed by
``black.format_str``. A formatter failure downgrades the result to a
warning and keeps the unformatted code.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import ast

import black
import isort

from ..context import MigrationConfig, PipelineContext
from ..pipeline import Step
from ..result import Result


class FormatCodeStep(Step[str, str]):
    """Format generated code with isort and black."""

    def execute(self, context: PipelineContext, code: str) -> Result[str]:
        """Format ``code`` unless ``format_output`` is disabled.

        Args:
            context: Pipeline context holding the configuration.
            code: Generated source.

        Returns:
            The formatted code, the unchanged code when formatting is
            disabled, or a warning result with the unchanged code when a
            formatter fails.
        """
        if not context.config.format_output:
            self._logger.debug("Formatting disabled, passing code through")
            return Result.success(code, {"formatted": False})

        try:
            formatted_code = self._apply_isort(code, context.config)
            formatted_code = self._apply_black(formatted_code, context.config)
        except Exception as e:
            self._logger.warning(f"Formatting failed for {context.source_file}: {e}")
            return Result.warning(code, [f"Code formatting failed: {e}"], {"formatting_failed": True})

        return Result.success(
            formatted_code,
            {
                "formatted": True,
                "original_lines": len(code.splitlines()),
                "formatted_lines": len(formatted_code.splitlines()),
            },
        )

    def _apply_isort(self, code: str, config: MigrationConfig) -> str:
        settings = isort.Config(profile="black", line_length=config.line_length or 120)
        return isort.code(code, config=settings)

    def _apply_black(self, code: str, config: MigrationConfig) -> str:
        mode = black.Mode(line_length=config.line_length or 120)
        try:
            return black.format_str(code, mode=mode)
        except black.NothingChanged:
            return code


class ValidateGeneratedCodeStep(Step[str, str]):
    """Reject generated code that is not valid Python."""

    def execute(self, context: PipelineContext, code: str) -> Result[str]:
        try:
            ast.parse(code)
        except SyntaxError as e:
            self._logger.error(f"Generated code for {context.source_file} does not parse: {e}")
            return Result.failure(e, {"source_file": context.source_file})
        return Result.success(code)

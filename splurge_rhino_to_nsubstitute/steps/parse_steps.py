"""Parsing and rewriting steps.

``ParseSourceStep`` turns source text into a ``libcst`` module,
``RewriteMocksStep`` runs the Rhino Mocks rewrite over it and
``GenerateCodeStep`` renders the result and adjusts its imports.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import time

import libcst as cst

from ..context import PipelineContext
from ..events import TransformationCompletedEvent
from ..exceptions import ParseError, TransformationValidationError
from ..pipeline import Step
from ..result import Result
from ..transformers import RewriteOutcome, RhinoToNSubstituteTransformer
from ..transformers.import_transformer import add_nsubstitute_imports, remove_rhino_imports_if_unused


class ParseSourceStep(Step[str, cst.Module]):
    """Parse Python source into a ``libcst.Module``."""

    def execute(self, context: PipelineContext, source_code: str) -> Result[cst.Module]:
        try:
            return Result.success(cst.parse_module(source_code))
        except cst.ParserSyntaxError as e:
            error = ParseError(f"Failed to parse source: {e.message}", context.source_file, e.raw_line, e.raw_column)
            return Result.failure(error, {"source_file": context.source_file})


class RewriteMocksStep(Step[cst.Module, RewriteOutcome]):
    """Rewrite Rhino Mocks call chains in a parsed module.

    Publishes a :class:`~.events.TransformationCompletedEvent` with the
    per-pattern statistics of the rewrite.
    """

    def execute(self, context: PipelineContext, module: cst.Module) -> Result[RewriteOutcome]:
        """Rewrite ``module`` with the configured source and target modules.

        Args:
            context: Pipeline context; ``source_module`` and
                ``target_module`` are read from its configuration.
            module: Parsed source module.

        Returns:
            A success result holding the :class:`RewriteOutcome`. A
            scope invariant violation propagates to :meth:`Step.run`,
            which reports it as an error result.
        """
        config = context.config
        transformer = RhinoToNSubstituteTransformer(
            source_module=config.source_module, target_module=config.target_module
        )
        outcome = transformer.rewrite_module(module)

        self.event_bus.publish(
            TransformationCompletedEvent(
                timestamp=time.time(),
                run_id=context.run_id,
                context=context,
                statistics=dict(outcome.statistics),
                uses_exception_extensions=outcome.uses_exception_extensions,
                uses_received_extensions=outcome.uses_received_extensions,
            )
        )
        if not outcome.statistics:
            self._logger.info(f"No Rhino Mocks patterns found in {context.source_file}")
        return Result.success(outcome, {"statistics": dict(outcome.statistics)})


class GenerateCodeStep(Step[RewriteOutcome, str]):
    """Render a rewritten module and settle its imports.

    Import insertion and cleanup follow ``transform_imports`` and
    ``remove_unused_imports``; the final text must parse again.
    """

    def execute(self, context: PipelineContext, outcome: RewriteOutcome) -> Result[str]:
        config = context.config
        code = outcome.code
        if config.transform_imports:
            code = add_nsubstitute_imports(
                code,
                outcome.required_imports,
                uses_exception_extensions=outcome.uses_exception_extensions,
                uses_received_extensions=outcome.uses_received_extensions,
                target_module=config.target_module,
            )
        if config.remove_unused_imports:
            code = remove_rhino_imports_if_unused(code, config.source_module)

        try:
            cst.parse_module(code)
        except cst.ParserSyntaxError as e:
            return Result.failure(TransformationValidationError(str(e)), {"source_file": context.source_file})
        return Result.success(code, {"statistics": dict(outcome.statistics)})

"""Output step that writes the rewritten file.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from ..context import PipelineContext
from ..helpers.path_utils import PathValidationError, ensure_parent_dir
from ..pipeline import Step
from ..result import Result


class WriteOutputStep(Step[str, str]):
    """Write code to ``context.target_file``.

    In a dry run nothing is written; the code is returned under the
    ``generated_code`` metadata key instead.
    """

    def execute(self, context: PipelineContext, code: str) -> Result[str]:
        if context.is_dry_run():
            return Result.success(
                context.target_file,
                {"dry_run": True, "target_file": context.target_file, "generated_code": code},
            )

        try:
            ensure_parent_dir(context.target_file)
            context.get_target_path().write_text(code, encoding="utf-8")
        except (OSError, PathValidationError) as e:
            return Result.failure(e, {"target_file": context.target_file})

        self._logger.debug(f"Wrote {len(code)} characters to {context.target_file}")
        return Result.success(context.target_file, {"target_file": context.target_file})

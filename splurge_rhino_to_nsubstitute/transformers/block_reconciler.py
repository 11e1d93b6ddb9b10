"""Scope-closing pass that settles a block's deferred obligations.

When the rewriter leaves a function or class body (or the module) it
hands the block's statements and its :class:`~.scope_stack.BlockFrame`
to :class:`BlockReconciler`, which

1. deletes, for each recorded removable expression, the first
   expression statement whose rendered code equals it, searching nested
   ``if``/``with``/``for``/``while``/``try`` suites but not nested
   functions or classes, and
2. appends one statement per ``Received()`` call still queued.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import libcst as cst

from .scope_stack import BlockFrame

logger = logging.getLogger(__name__)

_SUITE_FIELDS = ("orelse", "finalbody")


def _pass_line() -> cst.SimpleStatementLine:
    return cst.SimpleStatementLine(body=[cst.Pass()])


class BlockReconciler:
    """Delete removable statements and append deferred calls for one block.

    Args:
        renderer: Module used to render nodes to code. Removable
            expressions must be rendered with the same module.
    """

    def __init__(self, renderer: cst.Module | None = None) -> None:
        self._renderer = renderer or cst.Module(body=[])
        self.deleted_count = 0
        self.appended_count = 0

    def render(self, node: cst.CSTNode) -> str:
        return self._renderer.code_for_node(node)

    def reconcile(
        self,
        statements: Sequence[cst.BaseStatement],
        frame: BlockFrame,
        keep_non_empty: bool = True,
    ) -> list[cst.BaseStatement]:
        """Return the block's statements with the frame's obligations applied.

        Args:
            statements: Current statements of the block.
            frame: The block's frame; its deferred queue is drained.
            keep_non_empty: Insert ``pass`` when the result would be empty
                (function bodies); the module body may be empty.

        Returns:
            The reconciled statement list.
        """
        result = list(statements)
        for removable in frame.removable_expressions:
            updated = self._remove_first(result, removable)
            if updated is None:
                logger.debug(f"No statement matches removable expression: {removable}")
                continue
            result = updated
            self.deleted_count += 1

        for call in frame.take_rest():
            result.append(cst.SimpleStatementLine(body=[cst.Expr(value=call)]))
            self.appended_count += 1

        if keep_non_empty and not result:
            result.append(_pass_line())
        return result

    def _remove_first(self, statements: list[cst.BaseStatement], text: str) -> list[cst.BaseStatement] | None:
        for index, statement in enumerate(statements):
            if isinstance(statement, cst.SimpleStatementLine):
                replacement = self._remove_from_line(statement, text)
                if replacement is None:
                    continue
                if replacement.body:
                    return [*statements[:index], replacement, *statements[index + 1 :]]
                return self._drop_line(statements, index)
            if isinstance(statement, (cst.FunctionDef, cst.ClassDef)):
                continue
            if isinstance(statement, cst.BaseCompoundStatement):
                updated = self._remove_in_owner(statement, text)
                if updated is not None:
                    return [*statements[:index], updated, *statements[index + 1 :]]
        return None

    def _remove_from_line(self, line: cst.SimpleStatementLine, text: str) -> cst.SimpleStatementLine | None:
        for index, small in enumerate(line.body):
            if isinstance(small, cst.Expr) and self.render(small.value) == text:
                return line.with_changes(body=[*line.body[:index], *line.body[index + 1 :]])
        return None

    @staticmethod
    def _drop_line(statements: list[cst.BaseStatement], index: int) -> list[cst.BaseStatement]:
        dropped = statements[index]
        remaining = [*statements[:index], *statements[index + 1 :]]
        leading = getattr(dropped, "leading_lines", ())
        if leading and index < len(remaining) and hasattr(remaining[index], "leading_lines"):
            following = remaining[index]
            remaining[index] = following.with_changes(leading_lines=[*leading, *following.leading_lines])
        return remaining

    def _remove_in_owner(self, owner: cst.CSTNode, text: str) -> cst.CSTNode | None:
        """Search the suites of a compound statement (or clause) in source order."""
        body = getattr(owner, "body", None)
        if isinstance(body, cst.IndentedBlock):
            updated = self._remove_first(list(body.body), text)
            if updated is not None:
                return owner.with_changes(body=body.with_changes(body=updated or [_pass_line()]))

        handlers = getattr(owner, "handlers", ())
        for index, handler in enumerate(handlers):
            updated_handler = self._remove_in_owner(handler, text)
            if updated_handler is not None:
                return owner.with_changes(handlers=[*handlers[:index], updated_handler, *handlers[index + 1 :]])

        for field_name in _SUITE_FIELDS:
            clause = getattr(owner, field_name, None)
            if clause is None:
                continue
            updated_clause = self._remove_in_owner(clause, text)
            if updated_clause is not None:
                return owner.with_changes(**{field_name: updated_clause})
        return None

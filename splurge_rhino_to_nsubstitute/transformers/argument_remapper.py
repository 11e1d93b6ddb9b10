"""Turn queued output values into a ``Returns`` callback.

NSubstitute sets output parameters from inside a callback that receives
the call information. Given ``Return(True)`` and the values queued by
``OutRef(...)`` or ``Arg[T].Out(v).Dummy``, the remapper builds::

    def _returns_callback(call_info):
        call_info[1] = 42
        return True

and reduces the argument list to the callback's name. Python lambdas
cannot hold assignments, so the rewriter defines the callback right
before the statement that uses it.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import libcst as cst

logger = logging.getLogger(__name__)

CALLBACK_PARAMETER = "call_info"


def is_output_marker(expression: cst.BaseExpression) -> bool:
    """Return True for ``<module>.Arg.Any[T](out=True)``."""
    if not isinstance(expression, cst.Call):
        return False
    func = expression.func
    if not (isinstance(func, cst.Subscript) and isinstance(func.value, cst.Attribute)):
        return False
    if func.value.attr.value != "Any":
        return False
    return any(
        arg.keyword is not None
        and arg.keyword.value == "out"
        and isinstance(arg.value, cst.Name)
        and arg.value.value == "True"
        for arg in expression.args
    )


def output_positions(arguments: Sequence[cst.Arg]) -> list[int]:
    return [index for index, arg in enumerate(arguments) if is_output_marker(arg.value)]


@dataclass(frozen=True)
class RemappedArguments:
    """Replacement argument list plus the callback it refers to."""

    arguments: tuple[cst.Arg, ...]
    callback: cst.FunctionDef


class ArgumentRemapper:
    """Match output values to output positions and synthesize the callback.

    Values are matched left to right: each one takes the next output
    position at or after a cursor, and the cursor then moves past that
    position so no position is used twice.

    Args:
        parameter: Name of the callback's single parameter.
    """

    def __init__(self, parameter: str = CALLBACK_PARAMETER) -> None:
        self.parameter = parameter

    def assignments(
        self,
        original_arguments: Sequence[cst.Arg],
        out_ref_arguments: Sequence[cst.BaseExpression],
    ) -> list[tuple[int, cst.BaseExpression]] | None:
        """Pair each output value with its argument position.

        Returns:
            ``(position, value)`` pairs in queue order, or None when there
            are more values than output positions left.
        """
        pairs: list[tuple[int, cst.BaseExpression]] = []
        cursor = 0
        for value in out_ref_arguments:
            position = next(
                (
                    index
                    for index in range(cursor, len(original_arguments))
                    if is_output_marker(original_arguments[index].value)
                ),
                None,
            )
            if position is None:
                return None
            pairs.append((position, value))
            cursor = position + 1
        return pairs

    def remap(
        self,
        invocation_arguments: Sequence[cst.Arg],
        original_arguments: Sequence[cst.Arg],
        out_ref_arguments: Sequence[cst.BaseExpression],
        callback_name: str,
    ) -> RemappedArguments | None:
        """Build the callback for a ``Returns`` invocation.

        Args:
            invocation_arguments: Arguments of the ``Return`` call itself.
            original_arguments: Arguments of the mocked invocation.
            out_ref_arguments: Queued output values.
            callback_name: Name given to the synthesized function.

        Returns:
            The new argument list and callback, or None when nothing has to
            be remapped or the inputs do not fit together. Callers keep the
            original arguments in that case.
        """
        if not out_ref_arguments or not original_arguments:
            return None

        pairs = self.assignments(original_arguments, out_ref_arguments)
        if pairs is None:
            logger.debug(
                f"{len(out_ref_arguments)} output value(s) but only "
                f"{len(output_positions(original_arguments))} output position(s); leaving arguments"
            )
            return None

        returned = next((arg.value for arg in invocation_arguments if arg.keyword is None and not arg.star), None)
        if returned is None:
            return None

        statements: list[cst.BaseStatement] = [
            cst.SimpleStatementLine(
                body=[
                    cst.Assign(
                        targets=[
                            cst.AssignTarget(
                                target=cst.Subscript(
                                    value=cst.Name(self.parameter),
                                    slice=[cst.SubscriptElement(slice=cst.Index(value=cst.Integer(str(position))))],
                                )
                            )
                        ],
                        value=value,
                    )
                ]
            )
            for position, value in pairs
        ]
        statements.append(cst.SimpleStatementLine(body=[cst.Return(value=returned)]))

        callback = cst.FunctionDef(
            name=cst.Name(callback_name),
            params=cst.Parameters(params=[cst.Param(name=cst.Name(self.parameter))]),
            body=cst.IndentedBlock(body=statements),
        )
        return RemappedArguments(arguments=(cst.Arg(value=cst.Name(callback_name)),), callback=callback)

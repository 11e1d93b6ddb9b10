"""Typed outcome of a single node rewrite rule.

Every rule returns one of :class:`Replaced`, :class:`SpliceChild` or
:class:`Unchanged`; the rewriter turns that into the node handed back to
``libcst`` in exactly one place (:func:`apply_rewrite`).

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import libcst as cst


@dataclass(frozen=True)
class Replaced:
    """The node is replaced by a newly built expression."""

    node: cst.BaseExpression


@dataclass(frozen=True)
class SpliceChild:
    """The node is discarded and one of its descendants takes its place."""

    child: cst.BaseExpression


@dataclass(frozen=True)
class Unchanged:
    """The node is kept as rewritten so far."""


UNCHANGED = Unchanged()

RewriteResult = Union[Replaced, SpliceChild, Unchanged]


def apply_rewrite(result: RewriteResult, updated_node: cst.BaseExpression) -> cst.BaseExpression:
    if isinstance(result, Replaced):
        return result.node
    if isinstance(result, SpliceChild):
        return result.child
    return updated_node

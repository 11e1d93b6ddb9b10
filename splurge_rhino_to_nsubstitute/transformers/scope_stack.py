"""Typed scope stacks carried through the rewriter's traversal.

The rewriter keeps two independent stacks: one of call-chain frames and
one of statement-block frames. A frame holds the mutable state of the
scope that created it and is popped when traversal leaves that scope.

``libcst`` splits entering and leaving a node across ``visit_*`` and
``leave_*`` hooks, so the rewriter uses :meth:`ScopeStack.push` and
:meth:`ScopeStack.pop` (the latter inside ``try/finally``). Code that
owns both ends of a scope uses the :meth:`ScopeStack.enter` context
manager instead.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Generic, TypeVar

import libcst as cst

from ..exceptions import ScopeInvariantError

FrameT = TypeVar("FrameT")


class ScopeStack(Generic[FrameT]):
    """LIFO stack of frames with balanced enter/exit accounting.

    A reentrant stack hands a nested ``push`` the frame already on top
    and only removes it when the outermost holder pops, unless the push
    asks for a fresh frame. A non-reentrant stack creates a fresh frame
    for every ``push``.

    Args:
        name: Label used in error messages (``"call_chain"``, ``"block"``).
        frame_factory: Zero-argument callable producing a default frame.
        reentrant: Whether nested pushes share the top frame.
    """

    def __init__(self, name: str, frame_factory: Callable[[], FrameT], reentrant: bool = False) -> None:
        self.name = name
        self._frame_factory = frame_factory
        self._reentrant = reentrant
        self._frames: list[FrameT] = []
        self._holders: list[int] = []
        self.enter_count = 0
        self.exit_count = 0

    def __len__(self) -> int:
        return len(self._frames)

    @property
    def is_empty(self) -> bool:
        return not self._frames

    def push(self, fresh: bool = False) -> FrameT:
        """Enter a scope and return the frame that serves it.

        Args:
            fresh: Open a new frame even on a reentrant stack.
        """
        self.enter_count += 1
        if self._reentrant and self._frames and not fresh:
            self._holders[-1] += 1
            return self._frames[-1]
        frame = self._frame_factory()
        self._frames.append(frame)
        self._holders.append(1)
        return frame

    def pop(self) -> FrameT:
        """Leave the innermost scope.

        Returns:
            The frame that served the scope being left. For a reentrant
            stack this is still on top unless the outermost holder left.

        Raises:
            ScopeInvariantError: If no scope is open.
        """
        if not self._frames:
            raise ScopeInvariantError(f"Cannot leave a {self.name} scope: the stack is empty", self.name)
        self.exit_count += 1
        self._holders[-1] -= 1
        if self._holders[-1] > 0:
            return self._frames[-1]
        self._holders.pop()
        return self._frames.pop()

    def current(self) -> FrameT:
        """Return the frame of the innermost open scope.

        Raises:
            ScopeInvariantError: If no scope is open.
        """
        if not self._frames:
            raise ScopeInvariantError(f"No {self.name} scope is open", self.name)
        return self._frames[-1]

    def current_or_none(self) -> FrameT | None:
        return self._frames[-1] if self._frames else None

    @contextmanager
    def enter(self) -> Iterator[FrameT]:
        """Open a scope for the duration of a ``with`` block."""
        frame = self.push()
        try:
            yield frame
        finally:
            self.pop()

    def ensure_balanced(self) -> None:
        """Raise if any scope is still open or enters and exits disagree."""
        if self._frames or self.enter_count != self.exit_count:
            raise ScopeInvariantError(
                f"Unbalanced {self.name} stack: {self.enter_count} enters, {self.exit_count} exits, "
                f"{len(self._frames)} frames open",
                self.name,
            )


@dataclass
class CallChainFrame:
    """State shared by the calls of one call-chain expression.

    Attributes:
        use_any_args: Set by ``IgnoreArguments``; switches ``Returns`` and
            ``Throws`` to their any-args variants.
        original_arguments: Arguments of the mocked invocation taken from
            the expectation lambda, used to locate output positions.
        out_ref_arguments: Values queued for output positions, in order.
        returns_seen: ``Return`` was already rewritten, so later values
            have nowhere to go.
    """

    use_any_args: bool = False
    original_arguments: list[cst.Arg] = field(default_factory=list)
    out_ref_arguments: list[cst.BaseExpression] = field(default_factory=list)
    returns_seen: bool = False


@dataclass
class BlockFrame:
    """Obligations collected while traversing one statement block.

    Removable expressions are stored as rendered code since the nodes
    themselves are replaced during the rewrite.
    """

    removable_expressions: list[str] = field(default_factory=list)
    deferred_calls: list[tuple[str, cst.BaseExpression]] = field(default_factory=list)
    hoisted_definitions: list[cst.BaseStatement] = field(default_factory=list)
    callback_count: int = 0

    def mark_removable(self, rendered: str) -> None:
        self.removable_expressions.append(rendered)

    def defer(self, key: str, call: cst.BaseExpression) -> None:
        """Queue ``call`` under the mock identifier ``key``."""
        self.deferred_calls.append((key, call))

    def take_first(self, key: str) -> cst.BaseExpression | None:
        """Remove and return the oldest call queued for ``key``."""
        for index, (queued_key, call) in enumerate(self.deferred_calls):
            if queued_key == key:
                del self.deferred_calls[index]
                return call
        return None

    def take_rest(self) -> list[cst.BaseExpression]:
        """Drain every queued call across all keys in insertion order."""
        rest = [call for _, call in self.deferred_calls]
        self.deferred_calls.clear()
        return rest

    def callback_name(self, base: str = "_returns_callback") -> str:
        """Name for the next hoisted callback: ``base``, ``base_1``, ``base_2`` ..."""
        return base if self.callback_count == 0 else f"{base}_{self.callback_count}"

    def hoist(self, definition: cst.BaseStatement) -> None:
        self.hoisted_definitions.append(definition)
        self.callback_count += 1

    def take_hoisted(self) -> list[cst.BaseStatement]:
        hoisted = list(self.hoisted_definitions)
        self.hoisted_definitions.clear()
        return hoisted

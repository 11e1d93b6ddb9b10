"""libcst transformer that rewrites Rhino Mocks style tests to NSubstitute style.

The rewrite is a single bottom-up pass. Children are rewritten before
their parent, and each call is classified from the bindings computed
on the *original* tree, so a rule always sees the original meaning of
the node together with its already rewritten children.

Two scope stacks carry state between nodes:

* a reentrant call-chain stack. The receivers along one chain and the
  calls inside its expectation lambda share a frame; a call in any other
  argument position starts a fresh one. ``IgnoreArguments`` and
  ``OutRef`` record what the enclosing ``Return`` needs there.
* a block stack with one frame per function body, one per class body
  and one for the module.
  It collects statements to delete and ``Received()`` calls to emit,
  which :class:`~.block_reconciler.BlockReconciler` settles when the
  block is left.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import cast

import libcst as cst
from libcst.metadata import MetadataWrapper, ParentNodeProvider

from ..exceptions import ParseError, TransformationValidationError
from .argument_remapper import ArgumentRemapper
from .bindings import BindingResolver, BindingTable
from .block_reconciler import BlockReconciler
from .import_transformer import (
    IMPORT_MODULE,
    IMPORT_SUBSTITUTE,
    add_nsubstitute_imports,
    remove_rhino_imports_if_unused,
)
from .lambda_helper import extract_lambda_parts, prepend_call, receiver_key
from .rewrite_result import UNCHANGED, Replaced, RewriteResult, SpliceChild, apply_rewrite
from .scope_stack import BlockFrame, CallChainFrame, ScopeStack
from .symbols import (
    ARGUMENT_TAGS,
    DEFAULT_SOURCE_MODULE,
    DEFAULT_TARGET_MODULE,
    PatternCatalogue,
    REPEAT_PROPERTY,
    PatternTag,
    SymbolIdentity,
)

logger = logging.getLogger(__name__)

Classifier = Callable[[SymbolIdentity], "PatternTag | None"]

_GENERATE_MEMBERS = frozenset({"GenerateMock", "GenerateStub"})

_ASSERT_VARIANTS: dict[PatternTag, tuple[str, str]] = {
    PatternTag.ASSERT_CALLED_CALL: ("AssertWasCalled", "Received"),
    PatternTag.ASSERT_NOT_CALLED_CALL: ("AssertWasNotCalled", "DidNotReceive"),
}

# Calls whose lambda argument spells out the mocked invocation.
_LAMBDA_OWNER_TAGS = frozenset(
    {
        PatternTag.EXPECT_CALL,
        PatternTag.STUB_CALL,
        PatternTag.ASSERT_CALLED_CALL,
        PatternTag.ASSERT_NOT_CALLED_CALL,
    }
)

_STATEMENT_NODES = (cst.BaseSmallStatement, cst.BaseStatement, cst.Module)

_ATOMIC_EXPRESSIONS = (
    cst.Name,
    cst.Attribute,
    cst.Call,
    cst.Subscript,
    cst.BaseNumber,
    cst.BaseString,
    cst.List,
    cst.Tuple,
    cst.Dict,
    cst.Set,
)


@dataclass
class RewriteOutcome:
    """Result of rewriting one module.

    Attributes:
        module: The rewritten module (imports not yet adjusted).
        uses_exception_extensions: ``Throws`` was emitted.
        uses_received_extensions: ``Received``/``DidNotReceive`` was emitted.
        required_imports: Import markers the new code needs.
        statistics: Number of nodes classified per pattern tag.
        deleted_statements: Expectation statements removed from blocks.
        appended_calls: ``Received()`` calls appended at block ends.
    """

    module: cst.Module
    uses_exception_extensions: bool = False
    uses_received_extensions: bool = False
    required_imports: frozenset[str] = frozenset()
    statistics: dict[str, int] = field(default_factory=dict)
    deleted_statements: int = 0
    appended_calls: int = 0

    @property
    def code(self) -> str:
        return self.module.code


class RhinoToNSubstituteTransformer(cst.CSTTransformer):
    """Rewrite Rhino Mocks style call chains into NSubstitute style ones.

    Use :meth:`rewrite_module` for a parsed module or
    :meth:`transform_code` for source text; both resolve bindings and
    reset all traversal state before visiting. Create one instance per
    source file.

    Args:
        source_module: Dotted name of the Rhino Mocks style module.
        target_module: Dotted name of the NSubstitute style module.
        classify: Optional classifier replacing the default
            :class:`~.symbols.PatternCatalogue`.
        add_imports: Insert the imports the rewritten code needs.
        remove_unused_imports: Drop source-module imports nothing uses.
    """

    METADATA_DEPENDENCIES = (ParentNodeProvider,)

    def __init__(
        self,
        source_module: str = DEFAULT_SOURCE_MODULE,
        target_module: str = DEFAULT_TARGET_MODULE,
        classify: Classifier | None = None,
        add_imports: bool = True,
        remove_unused_imports: bool = True,
    ) -> None:
        super().__init__()
        self.source_module = source_module
        self.target_module = target_module
        self._classify: Classifier = classify or PatternCatalogue(source_module).classify
        self.add_imports = add_imports
        self.remove_unused_imports = remove_unused_imports
        self._remapper = ArgumentRemapper()
        self.last_outcome: RewriteOutcome | None = None
        self._reset(BindingTable({}, imports_source=False), cst.Module(body=[]))

    def _reset(self, bindings: BindingTable, renderer: cst.Module) -> None:
        self._bindings = bindings
        self.call_chain_stack: ScopeStack[CallChainFrame] = ScopeStack("call_chain", CallChainFrame, reentrant=True)
        self.block_stack: ScopeStack[BlockFrame] = ScopeStack("block", BlockFrame)
        self._reconciler = BlockReconciler(renderer)
        self._simple_statement_depth = 0
        self.uses_exception_extensions = False
        self.uses_received_extensions = False
        self.required_imports: set[str] = set()
        self.statistics: Counter[str] = Counter()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def rewrite_module(self, module: cst.Module) -> RewriteOutcome:
        """Rewrite a parsed module.

        Args:
            module: Module parsed from the source file.

        Returns:
            The rewritten module with its usage flags and statistics.

        Raises:
            ScopeInvariantError: If the traversal leaves its scope stacks
                unbalanced.
        """
        wrapper = MetadataWrapper(module)
        bindings = BindingResolver.resolve_module(wrapper, self.source_module)
        self._reset(bindings, wrapper.module)
        logger.debug(f"Resolved {len(bindings)} source API binding(s)")

        rewritten = wrapper.visit(self)
        outcome = RewriteOutcome(
            module=rewritten,
            uses_exception_extensions=self.uses_exception_extensions,
            uses_received_extensions=self.uses_received_extensions,
            required_imports=frozenset(self.required_imports),
            statistics=dict(self.statistics),
            deleted_statements=self._reconciler.deleted_count,
            appended_calls=self._reconciler.appended_count,
        )
        logger.debug(
            f"Deleted {outcome.deleted_statements} statement(s), appended {outcome.appended_calls} Received() call(s)"
        )
        self.last_outcome = outcome
        return outcome

    def transform_code(self, code: str, source_file: str = "<string>") -> str:
        """Rewrite source text and adjust its imports.

        Args:
            code: Source of a test module.
            source_file: Label used in error details.

        Returns:
            The rewritten source.

        Raises:
            ParseError: If ``code`` is not valid Python.
            TransformationValidationError: If the rewritten code does not
                parse.
            ScopeInvariantError: If the traversal is unbalanced.
        """
        module = self._parse_to_module(code, source_file)
        outcome = self.rewrite_module(module)
        return self._finalize_transformed_code(outcome)

    def _parse_to_module(self, code: str, source_file: str) -> cst.Module:
        try:
            return cst.parse_module(code)
        except cst.ParserSyntaxError as e:
            raise ParseError(f"Failed to parse source: {e.message}", source_file, e.raw_line, e.raw_column) from e

    def _finalize_transformed_code(self, outcome: RewriteOutcome) -> str:
        transformed_code = outcome.code
        if self.add_imports:
            transformed_code = add_nsubstitute_imports(
                transformed_code,
                outcome.required_imports,
                uses_exception_extensions=outcome.uses_exception_extensions,
                uses_received_extensions=outcome.uses_received_extensions,
                target_module=self.target_module,
            )
        if self.remove_unused_imports:
            transformed_code = remove_rhino_imports_if_unused(transformed_code, self.source_module)

        try:
            cst.parse_module(transformed_code)
        except cst.ParserSyntaxError as validation_error:
            raise TransformationValidationError(str(validation_error)) from validation_error
        return transformed_code

    # ------------------------------------------------------------------
    # Block scopes
    # ------------------------------------------------------------------

    def visit_Module(self, node: cst.Module) -> bool:
        self.block_stack.push()
        return True

    def leave_Module(self, original_node: cst.Module, updated_node: cst.Module) -> cst.Module:
        try:
            body = self._reconciler.reconcile(updated_node.body, self.block_stack.current(), keep_non_empty=False)
        finally:
            self.block_stack.pop()
        self.call_chain_stack.ensure_balanced()
        self.block_stack.ensure_balanced()
        return updated_node.with_changes(body=body)

    def visit_FunctionDef(self, node: cst.FunctionDef) -> bool:
        self.block_stack.push()
        return True

    def leave_FunctionDef(self, original_node: cst.FunctionDef, updated_node: cst.FunctionDef) -> cst.FunctionDef:
        try:
            return updated_node.with_changes(body=self._reconcile_suite(updated_node.body))
        finally:
            self.block_stack.pop()

    def visit_ClassDef(self, node: cst.ClassDef) -> bool:
        self.block_stack.push()
        return True

    def leave_ClassDef(self, original_node: cst.ClassDef, updated_node: cst.ClassDef) -> cst.ClassDef:
        try:
            return updated_node.with_changes(body=self._reconcile_suite(updated_node.body))
        finally:
            self.block_stack.pop()

    def _reconcile_suite(self, body: cst.BaseSuite) -> cst.BaseSuite:
        frame = self.block_stack.current()
        if isinstance(body, cst.SimpleStatementSuite):
            if not (frame.removable_expressions or frame.deferred_calls):
                return body
            # One-line ``def f(): ...`` becomes an indented block.
            body = _indented(body)
        if not isinstance(body, cst.IndentedBlock):
            return body
        return body.with_changes(body=self._reconciler.reconcile(body.body, frame))

    def visit_SimpleStatementLine(self, node: cst.SimpleStatementLine) -> bool:
        self._simple_statement_depth += 1
        return True

    def leave_SimpleStatementLine(
        self, original_node: cst.SimpleStatementLine, updated_node: cst.SimpleStatementLine
    ) -> cst.BaseStatement | cst.FlattenSentinel[cst.BaseStatement]:
        self._simple_statement_depth -= 1
        frame = self.block_stack.current_or_none()
        if frame is None or not frame.hoisted_definitions:
            return updated_node
        hoisted = frame.take_hoisted()
        hoisted[0] = hoisted[0].with_changes(leading_lines=updated_node.leading_lines)
        return cst.FlattenSentinel([*hoisted, updated_node.with_changes(leading_lines=[])])

    def visit_SimpleStatementSuite(self, node: cst.SimpleStatementSuite) -> bool:
        self._simple_statement_depth += 1
        return True

    def leave_SimpleStatementSuite(
        self, original_node: cst.SimpleStatementSuite, updated_node: cst.SimpleStatementSuite
    ) -> cst.BaseSuite:
        self._simple_statement_depth -= 1
        frame = self.block_stack.current_or_none()
        if frame is None or not frame.hoisted_definitions:
            return updated_node
        # ``if ready: ...`` gets an indented block so the callback precedes its statement.
        block = _indented(updated_node)
        return block.with_changes(body=[*frame.take_hoisted(), *block.body])

    # ------------------------------------------------------------------
    # Call chains
    # ------------------------------------------------------------------

    def visit_Call(self, node: cst.Call) -> bool:
        self.call_chain_stack.push(fresh=not self._continues_chain(node))
        return True

    def leave_Call(self, original_node: cst.Call, updated_node: cst.Call) -> cst.BaseExpression:
        try:
            result = self._rewrite_call(original_node, updated_node)
        finally:
            frame = self.call_chain_stack.pop()
        if frame.out_ref_arguments and frame is not self.call_chain_stack.current_or_none():
            logger.warning(
                f"{len(frame.out_ref_arguments)} output value(s) could not be carried into Returns and were dropped"
            )
        return apply_rewrite(result, updated_node)

    def _parent(self, node: cst.CSTNode) -> cst.CSTNode | None:
        return self.get_metadata(ParentNodeProvider, node, None)

    def _continues_chain(self, node: cst.Call) -> bool:
        """Return True when ``node`` belongs to the chain of an enclosing call.

        The receiver of an enclosing call (``x.Stub(...)`` in
        ``x.Stub(...).Return(1)``) and every call inside an expectation
        lambda continue that chain. A call in any other argument position
        starts a chain of its own.
        """
        child: cst.CSTNode = node
        parent = self._parent(child)
        while isinstance(parent, (cst.Attribute, cst.Subscript)) and parent.value is child:
            child, parent = parent, self._parent(parent)
        if isinstance(parent, cst.Call) and parent.func is child:
            return True

        ancestor = self._parent(node)
        while ancestor is not None and not isinstance(ancestor, _STATEMENT_NODES):
            if isinstance(ancestor, cst.Lambda):
                argument = self._parent(ancestor)
                owner = self._parent(argument) if isinstance(argument, cst.Arg) else None
                if not isinstance(owner, cst.Call):
                    return False
                tag, _ = self._classify_node(owner)
                return tag in _LAMBDA_OWNER_TAGS
            ancestor = self._parent(ancestor)
        return False

    def _classify_node(self, node: cst.CSTNode) -> tuple[PatternTag | None, SymbolIdentity | None]:
        identity = self._bindings.identity_of(node)
        if identity is None:
            return None, None
        return self._classify(identity), identity

    def _rewrite_call(self, original_node: cst.Call, updated_node: cst.Call) -> RewriteResult:
        tag, identity = self._classify_node(original_node)
        if tag is None or identity is None or tag in ARGUMENT_TAGS:
            return UNCHANGED
        self.statistics[tag.value] += 1

        if tag is PatternTag.RETURN_CALL:
            return self._rewrite_returns(updated_node)
        if tag in (PatternTag.EXPECT_CALL, PatternTag.STUB_CALL):
            if identity.member_name in _GENERATE_MEMBERS:
                return self._rewrite_generate(updated_node)
            return self._rewrite_expectation(tag, original_node, updated_node)
        if tag is PatternTag.THROW_CALL:
            return self._rewrite_throws(updated_node)
        if tag is PatternTag.IGNORE_ARGS_CALL:
            return self._rewrite_ignore_arguments(updated_node)
        if tag is PatternTag.REPEAT_OPTION_CALL:
            return self._rewrite_repeat(updated_node)
        if tag is PatternTag.OUT_REF_MARKER:
            return self._rewrite_out_ref(updated_node)
        if tag is PatternTag.VERIFY_ALL_CALL:
            return self._rewrite_verify_all(updated_node)
        if tag in _ASSERT_VARIANTS:
            return self._rewrite_assert(tag, identity, updated_node)
        if tag is PatternTag.PROPERTY_BEHAVIOR_CALL:
            self.block_stack.current().mark_removable(self._reconciler.render(updated_node))
            return UNCHANGED
        return UNCHANGED

    def _rename_member(self, node: cst.Call, name: str) -> cst.Call | None:
        if not isinstance(node.func, cst.Attribute):
            return None
        return node.with_changes(func=node.func.with_changes(attr=cst.Name(name)))

    def _rewrite_returns(self, node: cst.Call) -> RewriteResult:
        frame = self.call_chain_stack.current()
        renamed = self._rename_member(node, "ReturnsForAnyArgs" if frame.use_any_args else "Returns")
        if renamed is None:
            return UNCHANGED
        frame.returns_seen = True
        if frame.out_ref_arguments:
            arguments = self._remap_arguments(node, frame)
            if arguments is not None:
                renamed = renamed.with_changes(args=arguments)
                frame.out_ref_arguments.clear()
        return Replaced(renamed)

    def _remap_arguments(self, node: cst.Call, frame: CallChainFrame) -> tuple[cst.Arg, ...] | None:
        block = self.block_stack.current()
        if self._simple_statement_depth == 0:
            logger.debug("Output values outside any statement; no place to define a callback")
            return None
        remapped = self._remapper.remap(
            node.args, frame.original_arguments, frame.out_ref_arguments, block.callback_name()
        )
        if remapped is None:
            return None
        block.hoist(remapped.callback)
        return remapped.arguments

    def _rewrite_expectation(self, tag: PatternTag, original_node: cst.Call, node: cst.Call) -> RewriteResult:
        parts = extract_lambda_parts(node)
        if parts is None:
            logger.debug("Expectation without a single-parameter lambda left unchanged")
            return UNCHANGED

        block = self.block_stack.current()
        if tag is PatternTag.EXPECT_CALL:
            received = prepend_call(parts, "Received")
            if received is not None:
                block.defer(parts.key, received)
                self.uses_received_extensions = True

        parent = self.get_metadata(ParentNodeProvider, original_node, None)
        if isinstance(parent, cst.Expr):
            block.mark_removable(self._reconciler.render(node))
            return UNCHANGED

        self.call_chain_stack.current().original_arguments.extend(parts.arguments)
        return Replaced(parts.body)

    def _rewrite_generate(self, node: cst.Call) -> RewriteResult:
        func = node.func
        if not isinstance(func, cst.Subscript):
            return UNCHANGED
        self.required_imports.add(IMPORT_SUBSTITUTE)
        substitute_for = cst.Subscript(
            value=cst.Attribute(value=cst.Name("Substitute"), attr=cst.Name("For")),
            slice=func.slice,
        )
        return Replaced(node.with_changes(func=substitute_for))

    def _rewrite_throws(self, node: cst.Call) -> RewriteResult:
        frame = self.call_chain_stack.current()
        renamed = self._rename_member(node, "ThrowsForAnyArgs" if frame.use_any_args else "Throws")
        if renamed is None:
            return UNCHANGED
        self.uses_exception_extensions = True
        return Replaced(renamed)

    def _rewrite_ignore_arguments(self, node: cst.Call) -> RewriteResult:
        func = node.func
        if not (isinstance(func, cst.Attribute) and isinstance(func.value, cst.Call)):
            return UNCHANGED
        self.call_chain_stack.current().use_any_args = True
        return SpliceChild(func.value)

    def _rewrite_repeat(self, node: cst.Call) -> RewriteResult:
        func = node.func
        if not (isinstance(func, cst.Attribute) and isinstance(func.value, cst.Attribute)):
            return UNCHANGED
        if func.value.attr.value != REPEAT_PROPERTY:
            return UNCHANGED
        return SpliceChild(func.value.value)

    def _rewrite_out_ref(self, node: cst.Call) -> RewriteResult:
        func = node.func
        if not (isinstance(func, cst.Attribute) and isinstance(func.value, cst.Call)):
            return UNCHANGED
        frame = self.call_chain_stack.current()
        values = [*frame.out_ref_arguments, *(arg.value for arg in node.args)]
        if frame.returns_seen or self._remapper.assignments(frame.original_arguments, values) is None:
            logger.warning("OutRef values do not match the expectation's output arguments; OutRef left unchanged")
            return UNCHANGED
        frame.out_ref_arguments[:] = values
        return SpliceChild(func.value)

    def _rewrite_verify_all(self, node: cst.Call) -> RewriteResult:
        if not isinstance(node.func, cst.Attribute):
            return UNCHANGED
        key = receiver_key(node.func.value)
        if key is None:
            return UNCHANGED
        queued = self.block_stack.current().take_first(key)
        if queued is None:
            logger.debug(f"No expectation queued for '{key}'; VerifyAllExpectations left unchanged")
            return UNCHANGED
        return Replaced(queued)

    def _rewrite_assert(self, tag: PatternTag, identity: SymbolIdentity, node: cst.Call) -> RewriteResult:
        member_filter, prefix = _ASSERT_VARIANTS[tag]
        if identity.member_name != member_filter:
            return UNCHANGED
        parts = extract_lambda_parts(node)
        if parts is None:
            return UNCHANGED
        asserted = prepend_call(parts, prefix)
        if asserted is None:
            return UNCHANGED
        self.uses_received_extensions = True
        return Replaced(asserted)

    # ------------------------------------------------------------------
    # Argument markers
    # ------------------------------------------------------------------

    def leave_Arg(self, original_node: cst.Arg, updated_node: cst.Arg) -> cst.Arg:
        tag, _ = self._classify_node(original_node.value)
        if tag not in ARGUMENT_TAGS:
            return updated_node
        replacement = self._rewrite_argument_marker(tag, updated_node.value)
        if replacement is None:
            return updated_node
        self.statistics[tag.value] += 1
        self.required_imports.add(IMPORT_MODULE)
        return updated_node.with_changes(value=replacement)

    def _rewrite_argument_marker(self, tag: PatternTag | None, value: cst.BaseExpression) -> cst.BaseExpression | None:
        type_slice = _marker_type_slice(value)
        if type_slice is None:
            return None

        if tag is PatternTag.ANY_ARG_MARKER:
            return self._typed_marker("Any", type_slice, "()")
        if tag is PatternTag.OUT_ARG_MARKER:
            if not (isinstance(value, cst.Attribute) and isinstance(value.value, cst.Call)):
                return None
            out_arguments = value.value.args
            # Out() without a value only declares the position; OutRef supplies it.
            if out_arguments:
                frame = self.call_chain_stack.current_or_none()
                if frame is None:
                    return None
                frame.out_ref_arguments.append(out_arguments[0].value)
            return self._typed_marker("Any", type_slice, "(out=True)")
        if tag is PatternTag.NULL_ARG_MARKER:
            return self._typed_marker("Is", type_slice, "(lambda arg: arg is None)")
        if tag is PatternTag.NOT_NULL_ARG_MARKER:
            return self._typed_marker("Is", type_slice, "(lambda arg: arg is not None)")

        if not isinstance(value, cst.Call) or not value.args:
            return None
        operand = value.args[0].value
        if tag is PatternTag.SAME_ARG_MARKER:
            if not isinstance(operand, _ATOMIC_EXPRESSIONS):
                operand = operand.with_changes(lpar=[cst.LeftParen()], rpar=[cst.RightParen()])
            predicate = cst.Lambda(
                params=cst.Parameters(params=[cst.Param(name=cst.Name("arg"))]),
                body=cst.Comparison(
                    left=cst.Name("arg"),
                    comparisons=[cst.ComparisonTarget(operator=cst.Is(), comparator=operand)],
                ),
            )
            return self._typed_marker("Is", type_slice, "()").with_changes(args=[cst.Arg(value=predicate)])
        if tag in (PatternTag.EQUAL_ARG_MARKER, PatternTag.MATCHES_ARG_MARKER):
            return self._typed_marker("Is", type_slice, "()").with_changes(args=[cst.Arg(value=operand)])
        return None

    def _typed_marker(self, member: str, type_slice: tuple[cst.SubscriptElement, ...], call_suffix: str) -> cst.Call:
        """Build ``<target>.Arg.<member>[T]<call_suffix>``."""
        template = cast(cst.Call, cst.parse_expression(f"{self.target_module}.Arg.{member}[_]{call_suffix}"))
        subscript = cast(cst.Subscript, template.func)
        return template.with_changes(func=subscript.with_changes(slice=type_slice))


def _indented(suite: cst.SimpleStatementSuite) -> cst.IndentedBlock:
    return cst.IndentedBlock(body=[cst.SimpleStatementLine(body=suite.body)], header=suite.trailing_whitespace)


def _marker_type_slice(value: cst.BaseExpression) -> tuple[cst.SubscriptElement, ...] | None:
    """Find ``T`` in ``Arg[T]...`` by walking down the marker's chain."""
    node: cst.BaseExpression = value
    while True:
        if isinstance(node, cst.Subscript):
            return tuple(node.slice)
        if isinstance(node, cst.Attribute):
            node = node.value
        elif isinstance(node, cst.Call):
            node = node.func
        else:
            return None

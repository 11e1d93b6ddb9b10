"""Binding resolution for the source mocking API.

:class:`BindingResolver` walks the *original* tree once, before any
rewriting happens, and records which call, attribute and subscript
nodes refer to members of the source API. Import information comes from
``libcst``'s ``QualifiedNameProvider``; from there types flow through
the member table in :mod:`.symbols` (``Arg[T].Is`` is an ``IsArg``,
``.Repeat`` on method options is an ``IRepeat`` and so on).

Extension methods such as ``Expect`` and ``VerifyAllExpectations`` bind
on any receiver once the module imports the source API. Other members
bind only when their receiver traces back to a source-API value: a
chain expression, or a local name whose every assignment reaching the
use holds method options (``ScopeProvider`` supplies the assignments).
The one exception is a member called on ``.Repeat`` of an untyped
receiver, which yields the ``IRepeat`` members as *candidates*; callers
take the first method-like candidate.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import libcst as cst
from libcst import matchers as m
from libcst.helpers import get_full_name_for_node
from libcst.metadata import Assignment, MetadataWrapper, QualifiedNameProvider, QualifiedNameSource, ScopeProvider

from .symbols import (
    DEFAULT_SOURCE_MODULE,
    EXPORTED_TYPES,
    EXTENSIONS,
    LOCAL_OPTION_TYPES,
    REPEAT,
    REPEAT_PROPERTY,
    SOURCE_API,
    SymbolIdentity,
    member_identity,
    result_type_of,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Binding:
    """Resolution of one node against the source API.

    Attributes:
        symbol: The definite identity, when resolution was unambiguous.
        candidates: Possible identities when it was not.
    """

    symbol: SymbolIdentity | None
    candidates: tuple[SymbolIdentity, ...] = ()

    def best(self) -> SymbolIdentity | None:
        """Return the definite identity, else the first method-like candidate."""
        if self.symbol is not None:
            return self.symbol
        for candidate in self.candidates:
            if candidate.is_method:
                return candidate
        return None


class BindingTable:
    """Read-only mapping from original nodes to their bindings."""

    def __init__(self, bindings: dict[cst.CSTNode, Binding], imports_source: bool) -> None:
        self._bindings = bindings
        self.imports_source = imports_source

    def identity_of(self, node: cst.CSTNode) -> SymbolIdentity | None:
        binding = self._bindings.get(node)
        return binding.best() if binding is not None else None

    def __len__(self) -> int:
        return len(self._bindings)


def module_imports(module: cst.Module, source_module: str) -> bool:
    """Return True when ``module`` imports ``source_module`` or a submodule of it."""
    prefix = f"{source_module}."
    for node in m.findall(module, m.Import() | m.ImportFrom()):
        if isinstance(node, cst.ImportFrom):
            if node.relative or node.module is None:
                continue
            names = [get_full_name_for_node(node.module)]
        else:
            names = [get_full_name_for_node(alias.name) for alias in node.names]
        for name in names:
            if name and (name == source_module or name.startswith(prefix)):
                return True
    return False


class BindingResolver(cst.CSTVisitor):
    """Attach source-API identities to the nodes of an original tree.

    Run it through the same ``MetadataWrapper`` the rewriter later
    visits so node identities line up, or use :meth:`resolve_module`.

    Args:
        source_module: Dotted name of the module providing the source API.
    """

    METADATA_DEPENDENCIES = (QualifiedNameProvider, ScopeProvider)

    def __init__(self, source_module: str = DEFAULT_SOURCE_MODULE) -> None:
        super().__init__()
        self.source_module = source_module
        self._bindings: dict[cst.CSTNode, Binding] = {}
        self._types: dict[cst.CSTNode, str] = {}
        self._method_refs: dict[cst.CSTNode, Binding] = {}
        self._option_assignments: dict[Assignment, str] = {}
        self._option_names: set[str] = set()
        self._imports_source = False

    @classmethod
    def resolve_module(cls, wrapper: MetadataWrapper, source_module: str = DEFAULT_SOURCE_MODULE) -> BindingTable:
        resolver = cls(source_module)
        wrapper.visit(resolver)
        return resolver.table()

    def table(self) -> BindingTable:
        return BindingTable(dict(self._bindings), self._imports_source)

    def visit_Module(self, node: cst.Module) -> bool | None:
        self._imports_source = module_imports(node, self.source_module)
        return None

    def _exported_type(self, node: cst.CSTNode) -> str | None:
        for qualified in self.get_metadata(QualifiedNameProvider, node, set()):
            if qualified.source is not QualifiedNameSource.IMPORT:
                continue
            for type_name in EXPORTED_TYPES:
                if qualified.name == f"{self.source_module}.{type_name}":
                    return type_name
        return None

    def leave_Name(self, original_node: cst.Name) -> None:
        type_name = self._exported_type(original_node)
        if type_name is None and original_node.value in self._option_names:
            type_name = self._traced_type(original_node)
        if type_name is not None:
            self._types[original_node] = type_name

    def leave_Attribute(self, original_node: cst.Attribute) -> None:
        exported = self._exported_type(original_node)
        if exported is not None:
            self._types[original_node] = exported
            return

        attr = original_node.attr.value
        receiver_type = self._types.get(original_node.value)
        if receiver_type is not None:
            identity = member_identity(receiver_type, attr, self.source_module)
            if identity is not None:
                self._record_member(original_node, Binding(identity))
            return

        if not self._imports_source:
            return
        identity = member_identity(EXTENSIONS, attr, self.source_module)
        if identity is not None:
            self._record_member(original_node, Binding(identity))
            return
        receiver = original_node.value
        if isinstance(receiver, cst.Attribute) and receiver.attr.value == REPEAT_PROPERTY:
            identity = member_identity(REPEAT, attr, self.source_module)
            if identity is not None:
                logger.debug(f"Untyped receiver for '.Repeat.{attr}', recording a candidate")
                self._record_member(original_node, Binding(None, (identity,)))

    def _traced_type(self, node: cst.Name) -> str | None:
        """Return the option type every assignment reaching ``node`` holds, if any."""
        scope = self.get_metadata(ScopeProvider, node, None)
        if scope is None:
            return None
        for access in scope.accesses[node]:
            if access.node is not node:
                continue
            types = {self._option_assignments.get(referent) for referent in access.referents}
            if len(types) == 1 and None not in types:
                return types.pop()
        return None

    def leave_Assign(self, original_node: cst.Assign) -> None:
        value_type = self._types.get(original_node.value)
        if value_type not in LOCAL_OPTION_TYPES:
            return
        for target in original_node.targets:
            name = target.target
            if not isinstance(name, cst.Name):
                continue
            scope = self.get_metadata(ScopeProvider, name, None)
            if scope is None:
                continue
            for assignment in scope.assignments[name]:
                if isinstance(assignment, Assignment) and assignment.node is name:
                    self._option_assignments[assignment] = value_type
                    self._option_names.add(name.value)

    def _record_member(self, node: cst.CSTNode, binding: Binding) -> None:
        self._bindings[node] = binding
        identity = binding.best()
        if identity is None:
            return
        if identity.is_method:
            self._method_refs[node] = binding
            return
        result_type = result_type_of(identity)
        if result_type is not None:
            self._types[node] = result_type

    def leave_Subscript(self, original_node: cst.Subscript) -> None:
        # Arg[T] keeps the Arg type; GenerateMock[T] keeps the method reference.
        value = original_node.value
        if value in self._types:
            self._types[original_node] = self._types[value]
        elif value in self._method_refs:
            self._method_refs[original_node] = self._method_refs[value]
            self._bindings[original_node] = self._method_refs[value]

    def leave_Call(self, original_node: cst.Call) -> None:
        binding = self._method_refs.get(original_node.func)
        if binding is None:
            return
        self._bindings[original_node] = binding
        identity = binding.best()
        if identity is None:
            return
        result_type = result_type_of(identity)
        if result_type is not None and result_type in SOURCE_API:
            self._types[original_node] = result_type

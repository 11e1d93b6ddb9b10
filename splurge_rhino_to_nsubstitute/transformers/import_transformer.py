"""Import-related libcst helpers.

After the rewrite the module needs the NSubstitute style imports its new
code refers to, and the Rhino Mocks style imports nothing uses any
more should go. Both helpers operate on source text and return the
input unchanged when it cannot be parsed.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

import libcst as cst
from libcst.helpers import get_full_name_for_node

from .symbols import DEFAULT_SOURCE_MODULE, DEFAULT_TARGET_MODULE

logger = logging.getLogger(__name__)

IMPORT_MODULE = "module"
IMPORT_SUBSTITUTE = "Substitute"

EXCEPTION_EXTENSIONS = "exception_extensions"
RECEIVED_EXTENSIONS = "received_extensions"


def _import_line(node: cst.CSTNode) -> cst.Import | cst.ImportFrom | None:
    if isinstance(node, cst.SimpleStatementLine) and len(node.body) == 1:
        first = node.body[0]
        if isinstance(first, (cst.Import, cst.ImportFrom)):
            return first
    return None


def _existing_imports(module: cst.Module) -> tuple[set[str], set[tuple[str, str]]]:
    """Collect ``import x`` module names and ``from x import y`` pairs at top level."""
    modules: set[str] = set()
    from_names: set[tuple[str, str]] = set()
    for statement in module.body:
        if not isinstance(statement, cst.SimpleStatementLine):
            continue
        for small in statement.body:
            if isinstance(small, cst.Import):
                for alias in small.names:
                    if alias.asname is None:
                        modules.add(get_full_name_for_node(alias.name) or "")
            elif isinstance(small, cst.ImportFrom) and small.module is not None and not small.relative:
                source = get_full_name_for_node(small.module) or ""
                if isinstance(small.names, cst.ImportStar):
                    from_names.add((source, "*"))
                    continue
                for alias in small.names:
                    if alias.asname is None:
                        from_names.add((source, get_full_name_for_node(alias.name) or ""))
    return modules, from_names


def _insert_index(body: Iterable[cst.BaseStatement]) -> int:
    """Index just after the last top-level import, or after the docstring."""
    statements = list(body)
    last_import = -1
    for index, statement in enumerate(statements):
        if _import_line(statement) is not None:
            last_import = index
    if last_import >= 0:
        return last_import + 1
    if statements and isinstance(statements[0], cst.SimpleStatementLine):
        first = statements[0].body[0] if statements[0].body else None
        if isinstance(first, cst.Expr) and isinstance(first.value, (cst.SimpleString, cst.ConcatenatedString)):
            return 1
    return 0


def add_nsubstitute_imports(
    code: str,
    required_imports: Iterable[str] = (),
    uses_exception_extensions: bool = False,
    uses_received_extensions: bool = False,
    target_module: str = DEFAULT_TARGET_MODULE,
) -> str:
    """Ensure the imports the rewritten code relies on are present.

    Args:
        code: Rewritten module source.
        required_imports: Markers collected by the rewriter:
            ``IMPORT_MODULE`` for ``import <target>`` and
            ``IMPORT_SUBSTITUTE`` for ``from <target> import Substitute``.
        uses_exception_extensions: Add ``import <target>.exception_extensions``.
        uses_received_extensions: Add ``import <target>.received_extensions``.
        target_module: Dotted name of the NSubstitute style module.

    Returns:
        The source with missing imports inserted after the existing
        top-level imports, or ``code`` unchanged when nothing is missing
        or the source does not parse.
    """
    required = set(required_imports)
    try:
        module = cst.parse_module(code)
    except cst.ParserSyntaxError as e:
        logger.warning(f"Skipping import insertion, source does not parse: {e}")
        return code

    modules, from_names = _existing_imports(module)
    wanted: list[str] = []
    if IMPORT_MODULE in required and target_module not in modules:
        wanted.append(f"import {target_module}")
    if (
        IMPORT_SUBSTITUTE in required
        and (target_module, IMPORT_SUBSTITUTE) not in from_names
        and (target_module, "*") not in from_names
    ):
        wanted.append(f"from {target_module} import {IMPORT_SUBSTITUTE}")
    if uses_exception_extensions and f"{target_module}.{EXCEPTION_EXTENSIONS}" not in modules:
        wanted.append(f"import {target_module}.{EXCEPTION_EXTENSIONS}")
    if uses_received_extensions and f"{target_module}.{RECEIVED_EXTENSIONS}" not in modules:
        wanted.append(f"import {target_module}.{RECEIVED_EXTENSIONS}")

    if not wanted:
        return code

    logger.debug(f"Adding imports: {wanted}")
    new_body = list(module.body)
    insert_at = _insert_index(new_body)
    new_body[insert_at:insert_at] = [cst.parse_statement(f"{line}\n") for line in wanted]
    return module.with_changes(body=new_body).code


class _ReferencedNames(cst.CSTVisitor):
    """Collect names used outside import statements."""

    def __init__(self) -> None:
        super().__init__()
        self.names: set[str] = set()

    def visit_Import(self, node: cst.Import) -> bool:
        return False

    def visit_ImportFrom(self, node: cst.ImportFrom) -> bool:
        return False

    def visit_Attribute(self, node: cst.Attribute) -> bool:
        node.value.visit(self)
        return False

    def visit_Name(self, node: cst.Name) -> None:
        self.names.add(node.value)


def _is_source(name: str | None, source_module: str) -> bool:
    return bool(name) and (name == source_module or name.startswith(f"{source_module}."))  # type: ignore[union-attr]


def _bound_name(alias: cst.ImportAlias) -> str:
    if alias.asname is not None and isinstance(alias.asname.name, cst.Name):
        return alias.asname.name.value
    full = get_full_name_for_node(alias.name) or ""
    return full.split(".")[0]


def _strip_trailing_comma(aliases: list[cst.ImportAlias]) -> list[cst.ImportAlias]:
    if aliases:
        aliases[-1] = aliases[-1].with_changes(comma=cst.MaybeSentinel.DEFAULT)
    return aliases


def remove_rhino_imports_if_unused(code: str, source_module: str = DEFAULT_SOURCE_MODULE) -> str:
    """Remove top-level imports of the source module whose names are unused.

    ``import rhino_mocks`` is dropped when ``rhino_mocks`` is no longer
    referenced; ``from rhino_mocks import Arg, MockRepository`` loses each
    name nobody uses and disappears when none are left. Star imports are
    kept.

    Args:
        code: Module source after the rewrite.
        source_module: Dotted name of the Rhino Mocks style module.

    Returns:
        The cleaned source, or ``code`` unchanged when nothing was removed
        or the source does not parse.
    """
    try:
        module = cst.parse_module(code)
    except cst.ParserSyntaxError as e:
        logger.warning(f"Skipping import cleanup, source does not parse: {e}")
        return code

    finder = _ReferencedNames()
    module.visit(finder)
    used = finder.names

    changed = False
    new_body: list[cst.BaseStatement] = []
    for statement in module.body:
        node = _import_line(statement)
        if isinstance(node, cst.Import):
            kept = [
                alias
                for alias in node.names
                if not (_is_source(get_full_name_for_node(alias.name), source_module) and _bound_name(alias) not in used)
            ]
            if len(kept) != len(node.names):
                changed = True
                if not kept:
                    continue
                statement = statement.with_changes(body=[node.with_changes(names=_strip_trailing_comma(kept))])
        elif (
            isinstance(node, cst.ImportFrom)
            and node.module is not None
            and not node.relative
            and _is_source(get_full_name_for_node(node.module), source_module)
            and not isinstance(node.names, cst.ImportStar)
        ):
            kept = [alias for alias in node.names if _bound_name(alias) in used]
            if len(kept) != len(node.names):
                changed = True
                if not kept:
                    continue
                statement = statement.with_changes(body=[node.with_changes(names=_strip_trailing_comma(kept))])
        new_body.append(statement)

    if not changed:
        return code
    return module.with_changes(body=new_body).code

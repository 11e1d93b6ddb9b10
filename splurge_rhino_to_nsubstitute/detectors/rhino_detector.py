"""AST based detection of Rhino Mocks style test files.

A file is selected for migration when it imports the source module and
actually uses its API: either a name it imported from the module
(``MockRepository``, ``Arg``) or one of the extension methods such as
``Expect`` and ``AssertWasCalled``. Importing the module alone is not
enough.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

import ast
from pathlib import Path

from ..transformers.symbols import DEFAULT_SOURCE_MODULE

EXTENSION_METHODS = frozenset(
    {
        "Expect",
        "Stub",
        "AssertWasCalled",
        "AssertWasNotCalled",
        "VerifyAllExpectations",
    }
)


class RhinoMocksFileDetector(ast.NodeVisitor):
    """Decide whether a Python file uses the Rhino Mocks style API.

    Args:
        source_module: Dotted name of the Rhino Mocks style module.
    """

    def __init__(self, source_module: str = DEFAULT_SOURCE_MODULE) -> None:
        self.source_module = source_module
        self._reset()

    def _reset(self) -> None:
        self.has_source_import = False
        self.uses_source_api = False
        self._imported_names: set[str] = set()

    def is_rhino_mocks_file(self, file_path: str | Path) -> bool:
        """Check ``file_path`` for Rhino Mocks usage.

        Raises:
            FileNotFoundError: If the file does not exist.
            UnicodeDecodeError: If the file is not UTF-8.
            SyntaxError: If the file is not valid Python.
        """
        path = Path(file_path)
        return self.is_rhino_mocks_source(path.read_text(encoding="utf-8"), str(path))

    def is_rhino_mocks_source(self, source_code: str, filename: str = "<string>") -> bool:
        tree = ast.parse(source_code, filename=filename)
        self._reset()
        self.visit(tree)
        return self.has_source_import and self.uses_source_api

    def _is_source(self, module: str | None) -> bool:
        return bool(module) and (module == self.source_module or module.startswith(f"{self.source_module}."))  # type: ignore[union-attr]

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            if self._is_source(alias.name):
                self.has_source_import = True
                self._imported_names.add(alias.asname or alias.name.split(".")[0])

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        if node.level == 0 and self._is_source(node.module):
            self.has_source_import = True
            for alias in node.names:
                if alias.name == "*":
                    # Any extension call counts once everything is imported.
                    continue
                self._imported_names.add(alias.asname or alias.name)

    def visit_Name(self, node: ast.Name) -> None:
        if isinstance(node.ctx, ast.Load) and node.id in self._imported_names:
            self.uses_source_api = True

    def visit_Call(self, node: ast.Call) -> None:
        if isinstance(node.func, ast.Attribute) and node.func.attr in EXTENSION_METHODS:
            self.uses_source_api = True
        self.generic_visit(node)

"""Custom exception classes for the Rhino Mocks to NSubstitute migration tool.

All exceptions derive from :class:`MigrationError` and carry an optional
``details`` mapping with structured context (source file, offending node
type, configuration key) so callers can report failures programmatically.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from typing import Any


class MigrationError(Exception):
    """Base exception for migration-related errors.

    Args:
        message: Human-readable error message.
        details: Optional mapping with structured diagnostic data.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ParseError(MigrationError):
    """Raised when source code cannot be parsed into a syntax tree.

    Args:
        message: Error message describing the parse failure.
        source_file: Path (or label) of the source being parsed.
        line: Optional line number where the error occurred.
        column: Optional column offset where the error occurred.
    """

    def __init__(self, message: str, source_file: str, line: int | None = None, column: int | None = None):
        details: dict[str, Any] = {"source_file": source_file}
        if line is not None:
            details["line"] = line
        if column is not None:
            details["column"] = column
        super().__init__(message, details)


class TransformationError(MigrationError):
    """Raised when a rewrite cannot be applied.

    Args:
        message: Human-readable description of the failure.
        pattern_type: Optional pattern tag or rewrite phase identifier.
        node_type: Optional CST node type that caused the error.
        suggestions: Optional list of suggested fixes.
    """

    def __init__(
        self,
        message: str,
        pattern_type: str | None = None,
        node_type: str | None = None,
        suggestions: list[str] | None = None,
    ):
        details: dict[str, Any] = {}
        if pattern_type:
            details["pattern_type"] = pattern_type
        if node_type:
            details["node_type"] = node_type
        if suggestions:
            details["suggestions"] = suggestions
        super().__init__(message, details)


class TransformationValidationError(TransformationError):
    """Raised when the final rewritten code fails CST validation."""

    def __init__(self, message: str):
        super().__init__(message, pattern_type="validation")


class ScopeInvariantError(TransformationError):
    """Raised when the rewriter's scope stacks are used out of order.

    Popping an empty stack, asking for the current frame of an empty stack,
    or leaving the module with frames still open are programming errors in
    the traversal. They abort the run for the file instead of producing a
    silently miscompiled result.

    Args:
        message: Description of the violated invariant.
        stack_name: Name of the stack involved (``"call_chain"`` or ``"block"``).
    """

    def __init__(self, message: str, stack_name: str | None = None):
        super().__init__(message, pattern_type="scope")
        if stack_name:
            self.details["stack_name"] = stack_name


class ValidationError(MigrationError):
    """Raised when input or configuration validation fails.

    Args:
        message: Description of the validation failure.
        validation_type: Identifier for the kind of validation performed.
        field: Optional field name that failed validation.
    """

    def __init__(self, message: str, validation_type: str, field: str | None = None):
        details: dict[str, Any] = {"validation_type": validation_type}
        if field:
            details["field"] = field
        super().__init__(message, details)


class ConfigurationError(MigrationError):
    """Raised when an application configuration is invalid.

    Args:
        message: Human readable description of the configuration problem.
        config_key: Optional configuration key that caused the error.
    """

    def __init__(self, message: str, config_key: str | None = None):
        details: dict[str, Any] = {}
        if config_key:
            details["config_key"] = config_key
        super().__init__(message, details)

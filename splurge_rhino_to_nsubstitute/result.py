"""Result type used by pipeline components instead of raising.

Steps, tasks, jobs and the orchestrator all hand back a frozen
``Result[T]``. A result is a success, a success carrying warnings, an
error, or a skip; ``map`` and ``bind`` compose results without
explicit status checks at every call site.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")
R = TypeVar("R")


class ResultStatus(Enum):
    """Outcome of a pipeline operation."""

    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Result(Generic[T]):
    """Frozen outcome of an operation.

    Attributes:
        status: The outcome category.
        data: Payload for success and warning results.
        error: Exception for error results.
        warnings: Messages collected for warning results.
        metadata: Free-form mapping passed along the pipeline (for example
            the generated code of a dry run or rewrite statistics).
    """

    status: ResultStatus
    data: T | None = None
    error: Exception | None = None
    warnings: list[str] | None = None
    metadata: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        if self.status == ResultStatus.SUCCESS and self.error is not None:
            raise ValueError("A successful result cannot carry an error")
        if self.status == ResultStatus.ERROR and self.data is not None:
            raise ValueError("An error result cannot carry data")
        if self.warnings is None:
            object.__setattr__(self, "warnings", [])
        if self.metadata is None:
            object.__setattr__(self, "metadata", {})

    @classmethod
    def success(cls, data: T, metadata: dict[str, Any] | None = None) -> "Result[T]":
        """Build a successful result around ``data``."""
        return cls(status=ResultStatus.SUCCESS, data=data, metadata=metadata or {})

    @classmethod
    def failure(cls, error: Exception, metadata: dict[str, Any] | None = None) -> "Result[T]":
        """Build an error result.

        Args:
            error: The exception that describes what went wrong.
            metadata: Optional context for the failure.

        Returns:
            A result whose status is ``ERROR``.
        """
        return cls(status=ResultStatus.ERROR, error=error, metadata=metadata or {})

    @classmethod
    def warning(cls, data: T, warnings: list[str], metadata: dict[str, Any] | None = None) -> "Result[T]":
        """Build a result that produced ``data`` but raised ``warnings`` along the way."""
        return cls(status=ResultStatus.WARNING, data=data, warnings=warnings, metadata=metadata or {})

    @classmethod
    def skipped(cls, reason: str, metadata: dict[str, Any] | None = None) -> "Result[T]":
        """Build a skipped result.

        The ``reason`` is kept under the ``skip_reason`` metadata key.
        """
        merged = dict(metadata or {})
        merged.setdefault("skip_reason", reason)
        return cls(status=ResultStatus.SKIPPED, metadata=merged)

    def is_success(self) -> bool:
        return self.status == ResultStatus.SUCCESS

    def is_error(self) -> bool:
        return self.status == ResultStatus.ERROR

    def is_warning(self) -> bool:
        return self.status == ResultStatus.WARNING

    def is_skipped(self) -> bool:
        return self.status == ResultStatus.SKIPPED

    def _propagate(self) -> "Result[Any] | None":
        """Return the result to pass through unchanged, or ``None`` to continue."""
        if self.is_error():
            return Result(status=ResultStatus.ERROR, error=self.error, warnings=self.warnings, metadata=self.metadata)
        if self.is_skipped():
            return Result(status=ResultStatus.SKIPPED, metadata=self.metadata)
        if self.data is None:
            return Result.failure(ValueError("Result carries no data"), self.metadata)
        return None

    def map(self, func: Callable[[T], R]) -> "Result[R]":
        """Transform the payload with ``func``.

        Errors and skips pass through untouched. Warnings survive the
        transformation, and an exception raised by ``func`` becomes an
        error result.

        Args:
            func: Function applied to the payload.

        Returns:
            A new result holding ``func(data)``.
        """
        passthrough = self._propagate()
        if passthrough is not None:
            return passthrough
        try:
            new_data = func(self.data)  # type: ignore[arg-type]
        except Exception as e:
            return Result.failure(e, self.metadata)
        status = ResultStatus.WARNING if self.warnings else ResultStatus.SUCCESS
        return Result(status=status, data=new_data, warnings=self.warnings, metadata=self.metadata)

    def bind(self, func: Callable[[T], "Result[R]"]) -> "Result[R]":
        """Chain an operation that itself returns a result.

        Args:
            func: Function consuming the payload.

        Returns:
            Whatever ``func`` returns, or the propagated error/skip.
        """
        passthrough = self._propagate()
        if passthrough is not None:
            return passthrough
        try:
            return func(self.data)  # type: ignore[arg-type]
        except Exception as e:
            return Result.failure(e, self.metadata)

    def unwrap(self) -> T:
        """Return the payload or raise.

        Raises:
            Exception: The stored error for error results, or
                ``RuntimeError`` for skipped and empty results.
        """
        if self.is_error():
            raise self.error or RuntimeError("Result contains error")
        if self.is_skipped():
            raise RuntimeError("Result was skipped")
        if self.data is None:
            raise RuntimeError("Result contains no data")
        return self.data

    def unwrap_or(self, default_value: T) -> T:
        """Return the payload of a success or warning, else ``default_value``."""
        if (self.is_success() or self.is_warning()) and self.data is not None:
            return self.data
        return default_value

    def to_dict(self) -> dict[str, Any]:
        """Serializable view used by the CLI and event payloads."""
        return {
            "status": self.status.value,
            "data": self.data,
            "error": str(self.error) if self.error else None,
            "warnings": self.warnings,
            "metadata": self.metadata,
        }

    def __str__(self) -> str:
        if self.is_success():
            return f"Result(success, data={self.data})"
        if self.is_error():
            return f"Result(error, error={self.error})"
        if self.is_warning():
            return f"Result(warning, data={self.data}, warnings={self.warnings})"
        return f"Result(skipped, metadata={self.metadata})"

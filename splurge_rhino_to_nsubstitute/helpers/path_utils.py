"""Path validation and display helpers.

The orchestrator validates every source and target path before the
pipeline touches the filesystem; failures surface as
:class:`PathValidationError` carrying the offending path.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import platform
from pathlib import Path

from ..exceptions import ValidationError

_INVALID_NAME_CHARS = '<>:"|?*'
_WINDOWS_MAX_PATH = 260


class PathValidationError(ValidationError):
    """Raised when a source or target path is unusable."""

    def __init__(self, message: str, path: str, validation_type: str = "path"):
        self.path = path
        super().__init__(message, validation_type, field=path)


def _check_name(path: Path, kind: str) -> None:
    path_str = str(path)
    if not path_str.strip() or path_str == ".":
        raise PathValidationError(f"{kind} path cannot be empty", path_str, "empty_path")
    if any(char in path.name for char in _INVALID_NAME_CHARS):
        raise PathValidationError(
            f"Path contains invalid characters: {_INVALID_NAME_CHARS}", path_str, "invalid_chars"
        )


def validate_source_path(source_path: str | Path) -> Path:
    """Validate a source file or directory path.

    Args:
        source_path: Path given by the caller.

    Returns:
        The path as a ``Path``.

    Raises:
        PathValidationError: If the path is empty, contains invalid
            characters, exceeds the Windows length limit or does not exist.
    """
    path = Path(source_path)
    _check_name(path, "Source")

    path_str = str(path)
    if len(path_str) > _WINDOWS_MAX_PATH and platform.system() == "Windows":
        raise PathValidationError(
            f"Path length exceeds Windows limit of {_WINDOWS_MAX_PATH} characters: {len(path_str)}",
            path_str,
            "path_length",
        )
    if not path.exists():
        raise PathValidationError(f"Source path does not exist: {path_str}", path_str, "not_found")
    return path


def validate_target_path(target_path: str | Path) -> Path:
    """Validate a target path without touching the filesystem.

    Raises:
        PathValidationError: If the path is empty or contains invalid
            characters.
    """
    path = Path(target_path)
    _check_name(path, "Target")
    return path


def ensure_parent_dir(target_path: str | Path) -> None:
    """Create the parent directory of ``target_path`` when missing.

    Raises:
        PathValidationError: If the directory cannot be created.
    """
    parent = Path(target_path).parent
    try:
        parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise PathValidationError(f"Cannot create parent directory: {e}", str(parent), "parent_creation") from e


def check_file_size(path: str | Path, max_size_mb: int) -> None:
    """Reject files larger than ``max_size_mb`` megabytes.

    Raises:
        PathValidationError: If the file is too large.
    """
    size = Path(path).stat().st_size
    if size > max_size_mb * 1024 * 1024:
        raise PathValidationError(
            f"File is {size / (1024 * 1024):.1f} MB, larger than the {max_size_mb} MB limit",
            str(path),
            "file_size",
        )


def normalize_path_for_display(path: str | Path, force_posix: bool = False) -> str:
    """Render ``path`` with POSIX separators unless on Windows without ``force_posix``."""
    path_obj = Path(path)
    if force_posix or platform.system() != "Windows":
        return path_obj.as_posix()
    return str(path_obj)


def suggest_path_fixes(error: Exception, path: str) -> list[str]:
    """Suggest remedies for a path-related error.

    Args:
        error: The exception raised for ``path``.
        path: The path that caused it.

    Returns:
        Human readable suggestions, most specific first.
    """
    suggestions = []
    path_obj = Path(path)

    if isinstance(error, FileNotFoundError):
        if not path_obj.parent.exists():
            suggestions.append(f"Create the parent directory: {path_obj.parent}")
        suggestions.append(f"Check if the path exists: {path}")
    elif isinstance(error, PermissionError):
        suggestions.append(f"Check permissions for: {path_obj.parent}")
    elif isinstance(error, UnicodeDecodeError):
        suggestions.append("Check that the file is encoded as UTF-8")
    elif isinstance(error, PathValidationError) and error.details.get("validation_type") == "file_size":
        suggestions.append("Raise max_file_size_mb in the configuration")

    suggestions.append(f"Verify the path exists and is accessible: {path}")
    return suggestions

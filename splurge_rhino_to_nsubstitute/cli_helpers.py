"""Helpers used by the CLI commands.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import difflib
import logging
from pathlib import Path

from .detectors import RhinoMocksFileDetector
from .events import EventBus, LoggingSubscriber
from .helpers.path_utils import normalize_path_for_display

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def setup_logging_with_level(log_level: str) -> None:
    """Configure root logging at ``log_level`` (INFO when unknown)."""
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S", force=True)


def setup_logging(debug_mode: bool = False) -> None:
    setup_logging_with_level("DEBUG" if debug_mode else "INFO")


def set_quiet_mode(quiet: bool = False) -> None:
    """Raise the root logger to WARNING when ``quiet``."""
    if quiet:
        logging.getLogger().setLevel(logging.WARNING)


def create_event_bus() -> EventBus:
    return EventBus()


def attach_progress_handlers(event_bus: EventBus) -> LoggingSubscriber:
    return LoggingSubscriber(event_bus)


def validate_source_files_with_patterns(
    source_files: list[str],
    root_directory: str | None,
    file_patterns: list[str],
    recurse: bool = True,
    source_module: str = "rhino_mocks",
) -> list[str]:
    """Resolve the files to migrate.

    Explicit files are always kept. Directories, given positionally or via
    ``root_directory``, are searched with ``file_patterns`` and only files
    that use the Rhino Mocks style API are selected.

    Returns:
        Unique paths in discovery order.
    """
    detector = RhinoMocksFileDetector(source_module)
    found: list[str] = []

    directories = [Path(p) for p in source_files if Path(p).is_dir()]
    if root_directory and Path(root_directory).is_dir():
        directories.append(Path(root_directory))

    for file_path in source_files:
        if Path(file_path).is_file():
            found.append(file_path)
        elif not Path(file_path).is_dir():
            logger.warning(f"Skipping missing source: {file_path}")

    for directory in directories:
        for pattern in file_patterns:
            matches = directory.rglob(pattern) if recurse else directory.glob(pattern)
            for path in sorted(matches):
                if not path.is_file():
                    continue
                try:
                    if detector.is_rhino_mocks_file(path):
                        found.append(str(path))
                except (OSError, UnicodeDecodeError, SyntaxError) as e:
                    logger.debug(f"Skipping unreadable file {path}: {e}")

    return list(dict.fromkeys(found))


def render_dry_run(
    generated: dict[str, str],
    sources: dict[str, str],
    show_diff: bool = False,
    list_only: bool = False,
    force_posix: bool = False,
) -> list[str]:
    """Render dry-run output blocks, one per target file.

    Args:
        generated: Target path to rewritten code.
        sources: Target path to the source path it came from.
        show_diff: Emit a unified diff against the source instead of code.
        list_only: Emit only the ``== FILES: ... ==`` headers.
        force_posix: Display paths with forward slashes.

    Returns:
        Text blocks ready for printing.
    """
    blocks = []
    for target, code in generated.items():
        display = normalize_path_for_display(target, force_posix)
        if list_only:
            blocks.append(f"== FILES: {display} ==")
            continue
        if not show_diff:
            blocks.append(f"== NSUBSTITUTE: {display} ==\n{code}")
            continue

        source = Path(sources.get(target, target))
        try:
            original = source.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            original = ""
        diff_lines = difflib.unified_diff(
            original.splitlines(keepends=True),
            code.splitlines(keepends=True),
            fromfile=f"orig:{normalize_path_for_display(source, force_posix)}",
            tofile=f"new:{display}",
        )
        body = "".join(diff_lines) or "<no differences detected>"
        blocks.append(f"== DIFF: {display} ==\n{body}")
    return blocks

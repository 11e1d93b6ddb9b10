from pathlib import Path

import pytest

from splurge_rhino_to_nsubstitute.exceptions import ValidationError
from splurge_rhino_to_nsubstitute.helpers.path_utils import (
    PathValidationError,
    check_file_size,
    ensure_parent_dir,
    normalize_path_for_display,
    suggest_path_fixes,
    validate_source_path,
    validate_target_path,
)


def test_validate_source_path_accepts_existing_file(tmp_path: Path):
    source = tmp_path / "test_a.py"
    source.write_text("x = 1\n")
    assert validate_source_path(str(source)) == source


@pytest.mark.parametrize(
    "path,validation_type",
    [("", "empty_path"), ("   ", "empty_path"), ("bad|name.py", "invalid_chars"), ("missing_file.py", "not_found")],
)
def test_validate_source_path_rejects(path: str, validation_type: str):
    with pytest.raises(PathValidationError) as exc_info:
        validate_source_path(path)
    assert exc_info.value.details["validation_type"] == validation_type
    assert isinstance(exc_info.value, ValidationError)


def test_validate_target_path_does_not_require_existence(tmp_path: Path):
    target = tmp_path / "out" / "test_a.py"
    assert validate_target_path(target) == target
    with pytest.raises(PathValidationError):
        validate_target_path(tmp_path / "out?.py")


def test_ensure_parent_dir_creates_directories(tmp_path: Path):
    target = tmp_path / "a" / "b" / "test_a.py"
    ensure_parent_dir(target)
    assert target.parent.is_dir()


def test_check_file_size(tmp_path: Path):
    big = tmp_path / "test_big.py"
    big.write_bytes(b"#" * (1024 * 1024 + 1))
    check_file_size(big, 2)
    with pytest.raises(PathValidationError) as exc_info:
        check_file_size(big, 1)
    assert exc_info.value.details["validation_type"] == "file_size"
    assert "Raise max_file_size_mb in the configuration" in suggest_path_fixes(exc_info.value, str(big))


def test_normalize_path_for_display_forces_posix():
    assert normalize_path_for_display(Path("a") / "b" / "c.py", force_posix=True) == "a/b/c.py"


def test_suggest_path_fixes_for_missing_file(tmp_path: Path):
    missing = tmp_path / "nowhere" / "test_a.py"
    suggestions = suggest_path_fixes(FileNotFoundError(), str(missing))
    assert suggestions[0] == f"Create the parent directory: {missing.parent}"
    assert suggestions[-1] == f"Verify the path exists and is accessible: {missing}"


def test_suggest_path_fixes_for_encoding():
    error = UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
    assert "Check that the file is encoded as UTF-8" in suggest_path_fixes(error, "x.py")

"""Unit tests for the CLI commands and their helpers."""

from pathlib import Path

import pytest
import typer
import yaml
from typer.testing import CliRunner

from splurge_rhino_to_nsubstitute import __version__
from splurge_rhino_to_nsubstitute.cli import app
from splurge_rhino_to_nsubstitute.cli_adapters import build_config_from_cli
from splurge_rhino_to_nsubstitute.cli_helpers import render_dry_run, validate_source_files_with_patterns
from splurge_rhino_to_nsubstitute.context import MigrationConfig
from splurge_rhino_to_nsubstitute.exceptions import ConfigurationError

RHINO_SOURCE = "from rhino_mocks import MockRepository\nrepo = MockRepository.GenerateMock[IRepo]()\n"


class TestBuildConfigFromCli:
    def test_coerces_values(self):
        config = build_config_from_cli(
            MigrationConfig(),
            {
                "line_length": "100",
                "file_patterns": "test_*.py, *_test.py,",
                "target_suffix": "_ns",
                "dry_run": None,
                "not_a_field": 1,
            },
        )
        assert config.line_length == 100
        assert config.file_patterns == ["test_*.py", "*_test.py"]
        assert config.target_suffix == "_ns"
        assert config.dry_run is False

    def test_unwraps_option_info(self):
        config = build_config_from_cli(
            MigrationConfig(), {"line_length": typer.Option(90), "target_root": typer.Option(None)}
        )
        assert config.line_length == 90
        assert config.target_root is None

    def test_pattern_sequences_become_lists(self):
        config = build_config_from_cli(MigrationConfig(), {"file_patterns": ("a_*.py", "b_*.py")})
        assert config.file_patterns == ["a_*.py", "b_*.py"]

    def test_bad_integer(self):
        with pytest.raises(ConfigurationError, match="must be an integer") as exc_info:
            build_config_from_cli(MigrationConfig(), {"max_file_size_mb": "lots"})
        assert exc_info.value.details == {"config_key": "max_file_size_mb"}

    def test_result_is_validated(self):
        with pytest.raises(ValueError, match="Invalid configuration"):
            build_config_from_cli(MigrationConfig(), {"line_length": 10})


class TestValidateSourceFiles:
    def test_explicit_files_and_directories(self, tmp_path: Path):
        explicit = tmp_path / "anything.py"
        explicit.write_text("x = 1\n")
        tests_dir = tmp_path / "tests"
        tests_dir.mkdir()
        rhino = tests_dir / "test_rhino.py"
        rhino.write_text(RHINO_SOURCE)
        (tests_dir / "test_plain.py").write_text("x = 1\n")

        found = validate_source_files_with_patterns(
            [str(explicit), str(tests_dir), str(tmp_path / "missing.py")], str(tests_dir), ["test_*.py"]
        )

        assert found == [str(explicit), str(rhino)]

    def test_recurse_flag(self, tmp_path: Path):
        nested = tmp_path / "deep" / "test_rhino.py"
        nested.parent.mkdir()
        nested.write_text(RHINO_SOURCE)

        assert validate_source_files_with_patterns([], str(tmp_path), ["test_*.py"]) == [str(nested)]
        assert validate_source_files_with_patterns([], str(tmp_path), ["test_*.py"], recurse=False) == []

    def test_source_module(self, tmp_path: Path):
        legacy = tmp_path / "test_legacy.py"
        legacy.write_text(RHINO_SOURCE.replace("rhino_mocks", "legacy_mocks"))
        assert validate_source_files_with_patterns([], str(tmp_path), ["test_*.py"]) == []
        found = validate_source_files_with_patterns([], str(tmp_path), ["test_*.py"], source_module="legacy_mocks")
        assert found == [str(legacy)]


class TestRenderDryRun:
    def test_code_and_list_blocks(self):
        generated = {"out/test_a.py": "x = 1\n"}
        assert render_dry_run(generated, {}) == ["== NSUBSTITUTE: out/test_a.py ==\nx = 1\n"]
        assert render_dry_run(generated, {}, list_only=True) == ["== FILES: out/test_a.py =="]

    def test_diff_against_source(self, tmp_path: Path):
        source = tmp_path / "test_a.py"
        source.write_text("x = 1\n")
        target = str(tmp_path / "test_a_ns.py")

        [block] = render_dry_run({target: "x = 2\n"}, {target: str(source)}, show_diff=True, force_posix=True)

        assert block.startswith(f"== DIFF: {Path(target).as_posix()} ==\n")
        assert f"--- orig:{source.as_posix()}" in block
        assert "-x = 1\n+x = 2\n" in block

    def test_diff_without_changes(self, tmp_path: Path):
        source = tmp_path / "test_a.py"
        source.write_text("x = 1\n")
        [block] = render_dry_run({str(source): "x = 1\n"}, {str(source): str(source)}, show_diff=True)
        assert block.endswith("<no differences detected>")


class TestCliCommands:
    def test_version(self):
        result = CliRunner().invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_init_config_writes_defaults(self, tmp_path: Path):
        cfg = tmp_path / "cfg.yaml"
        result = CliRunner().invoke(app, ["init-config", str(cfg)])
        assert result.exit_code == 0
        assert yaml.safe_load(cfg.read_text(encoding="utf-8")) == MigrationConfig().to_dict()

    @pytest.mark.parametrize(
        "flags",
        [["--info", "--debug"], ["--fail-fast", "--continue-on-error"], ["--dry-run", "--diff", "--list"]],
    )
    def test_conflicting_flags(self, flags):
        result = CliRunner().invoke(app, ["migrate", *flags, "test_a.py"])
        assert result.exit_code == 2
        assert "cannot be used together" in result.stdout

    def test_invalid_option_value(self, tmp_path: Path):
        result = CliRunner().invoke(app, ["migrate", "--line-length", "10", str(tmp_path)])
        assert result.exit_code == 2
        assert "Invalid configuration" in result.stdout

    def test_bad_config_file(self, tmp_path: Path):
        result = CliRunner().invoke(app, ["migrate", "-c", str(tmp_path / "nope.yaml"), str(tmp_path)])
        assert result.exit_code == 1
        assert "Error loading configuration file" in result.stdout

    def test_no_files_found(self, tmp_path: Path):
        result = CliRunner().invoke(app, ["migrate", str(tmp_path / "does-not-exist.py")])
        assert result.exit_code == 1
        assert "No Rhino Mocks files found" in result.stdout

    def test_dry_run_prints_code(self, tmp_path: Path):
        source = tmp_path / "test_a.py"
        source.write_text(RHINO_SOURCE)

        result = CliRunner().invoke(app, ["migrate", "--dry-run", str(source)])

        assert result.exit_code == 0
        assert f"== NSUBSTITUTE: {source} ==" in result.stdout
        assert "Substitute.For[IRepo]()" in result.stdout
        assert source.read_text() == RHINO_SOURCE

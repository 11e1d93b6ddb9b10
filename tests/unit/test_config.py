"""Tests for MigrationConfig, PipelineContext and configuration validation."""

from pathlib import Path

import pytest
import yaml

from splurge_rhino_to_nsubstitute.config_validation import ValidatedMigrationConfig, validate_migration_config
from splurge_rhino_to_nsubstitute.context import ContextManager, MigrationConfig, PipelineContext
from splurge_rhino_to_nsubstitute.exceptions import ValidationError


class TestMigrationConfig:
    def test_defaults(self):
        config = MigrationConfig()
        assert config.file_patterns == ["test_*.py"]
        assert config.source_module == "rhino_mocks"
        assert config.target_module == "nsubstitute"
        assert config.backup_originals is True
        assert config.format_output is True
        config.validate()

    def test_with_override_returns_new_instance(self):
        config = MigrationConfig()
        changed = config.with_override(dry_run=True, line_length=100)
        assert changed.dry_run is True
        assert changed.line_length == 100
        assert config.dry_run is False

    def test_from_dict_ignores_unknown_keys(self):
        config = MigrationConfig.from_dict({"dry_run": True, "assert_almost_equal_places": 7})
        assert config.dry_run is True

    @pytest.mark.parametrize(
        "overrides",
        [
            {"line_length": 20},
            {"max_file_size_mb": 0},
            {"log_level": "LOUD"},
            {"file_patterns": []},
            {"file_patterns": ["tests"]},
            {"source_module": "nsubstitute"},
            {"target_module": "not a module"},
            {"target_extension": "a/b"},
            {"backup_originals": False, "backup_root": "backups"},
            {"fail_fast": True, "continue_on_error": True},
        ],
    )
    def test_invalid_values_raise_value_error(self, overrides):
        with pytest.raises(ValueError, match="Invalid configuration"):
            MigrationConfig(**overrides).validate()

    def test_to_dict_round_trips_through_from_dict(self):
        config = MigrationConfig(target_suffix="_ns", file_patterns=["*_tests.py"])
        assert MigrationConfig.from_dict(config.to_dict()) == config


class TestValidatedMigrationConfig:
    def test_log_level_is_normalized(self):
        assert validate_migration_config({"log_level": "debug"}).log_level == "DEBUG"

    def test_target_root_must_not_be_a_file(self, tmp_path: Path):
        existing = tmp_path / "file.txt"
        existing.write_text("x")
        with pytest.raises(ValidationError) as exc_info:
            validate_migration_config({"target_root": str(existing)})
        assert exc_info.value.details["validation_type"] == "configuration"

    def test_missing_target_root_is_allowed(self, tmp_path: Path):
        validated = validate_migration_config({"target_root": str(tmp_path / "later")})
        assert isinstance(validated, ValidatedMigrationConfig)

    def test_fields_mirror_migration_config(self):
        assert set(ValidatedMigrationConfig.model_fields) == set(MigrationConfig.__dataclass_fields__)


class TestPipelineContext:
    def test_create_defaults(self, tmp_path: Path):
        source = tmp_path / "test_a.py"
        source.write_text("x = 1\n")
        context = PipelineContext.create(str(source))

        assert context.target_file == str(source)
        assert context.config == MigrationConfig()
        assert context.run_id
        assert not context.is_dry_run()
        assert context.get_line_length() == 120

    def test_with_metadata_and_with_config(self, tmp_path: Path):
        context = PipelineContext.create(str(tmp_path / "missing.py"), run_id="run-1")
        updated = context.with_metadata("phase", "rewrite").with_config(dry_run=True, line_length=None)

        assert updated.metadata == {"phase": "rewrite"}
        assert context.metadata == {}
        assert updated.is_dry_run()
        assert updated.get_line_length() == 120
        assert updated.to_dict()["run_id"] == "run-1"
        assert "run-1" in str(updated)


class TestContextManager:
    def test_load_config_from_file(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump({"dry_run": True, "target_suffix": "_ns", "unknown": 1}))

        result = ContextManager.load_config_from_file(str(config_file))

        assert result.is_success()
        assert result.data.dry_run is True
        assert result.data.target_suffix == "_ns"

    def test_missing_file(self, tmp_path: Path):
        result = ContextManager.load_config_from_file(str(tmp_path / "nope.yaml"))
        assert result.is_error()
        assert isinstance(result.error, FileNotFoundError)

    @pytest.mark.parametrize("content", ["- a\n- b\n", "key: [unclosed\n", "line_length: 5\n"])
    def test_bad_content(self, tmp_path: Path, content: str):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(content)
        result = ContextManager.load_config_from_file(str(config_file))
        assert result.is_error()
        assert isinstance(result.error, ValueError)

    def test_validate_config_warns(self):
        result = ContextManager.validate_config(MigrationConfig(line_length=300))
        assert result.is_warning()
        assert "line_length" in result.warnings[0]
        assert ContextManager.validate_config(MigrationConfig()).is_success()

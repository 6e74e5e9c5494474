"""
tests/test_validators.py
Unit tests for dbscaffold.validators.

Tests cover:
- A complete configuration passes with no issues
- Connection, path and feature checks
- Contradictory table filters and export settings (warnings only)
- Structural problems in raw dicts
"""

from __future__ import annotations

from typing import Callable

from dbscaffold.errors import ConfigurationError
from dbscaffold.models import GenerationConfig
from dbscaffold.validators import (
    ValidationResult,
    validate_config,
    validate_connection,
    validate_data_export,
    validate_paths,
    validate_raw_config,
    validate_table_filters,
)

ConfigFactory = Callable[..., GenerationConfig]


class TestValidConfig:
    """The shared fixture config is complete."""

    def test_no_issues(self, make_config: ConfigFactory) -> None:
        result = validate_config(make_config())
        assert result.is_valid
        assert len(result) == 0
        assert bool(result) is True
        assert result.summary() == "Validation: 0 error(s), 0 warning(s)."


class TestConnection:
    """Host / database / username."""

    def test_missing_host_and_database(self, make_config: ConfigFactory) -> None:
        result = validate_connection(make_config(database={"host": "", "database": ""}))
        assert result.codes == ["MISSING_HOST", "MISSING_DATABASE"]
        assert not result.is_valid

    def test_missing_username_is_a_warning(self, make_config: ConfigFactory) -> None:
        result = validate_connection(make_config(database={"username": None}))
        assert result.is_valid
        assert [w.code for w in result.warnings] == ["MISSING_USERNAME"]


class TestPaths:
    """Output paths of enabled features."""

    def test_missing_path_of_enabled_feature(self, make_config: ConfigFactory) -> None:
        result = validate_paths(make_config(paths={"crud": ""}))
        assert result.codes == ["MISSING_OUTPUT_PATH"]
        assert result.errors[0].context == {"path": "crud"}

    def test_missing_path_of_disabled_feature_is_fine(self, make_config: ConfigFactory) -> None:
        result = validate_paths(make_config(paths={"data_export": ""}))
        assert result.is_valid

    def test_base_output_required(self, make_config: ConfigFactory) -> None:
        assert "MISSING_BASE_OUTPUT" in validate_paths(make_config(paths={"base_output": ""})).codes

    def test_no_features(self, make_config: ConfigFactory) -> None:
        config = make_config(
            features={"entities": False, "crud": False, "sql": False, "data_export": False}
        )
        result = validate_paths(config)
        assert result.is_valid
        assert [w.code for w in result.warnings] == ["NO_FEATURES"]


class TestFiltersAndExport:
    """Settings that are legal but probably unintended."""

    def test_table_in_both_lists(self, make_config: ConfigFactory) -> None:
        config = make_config(crud={"included_tables": ["users", "orders"], "excluded_tables": ["users"]})
        result = validate_table_filters(config)
        assert result.is_valid
        (issue,) = result.warnings
        assert issue.code == "TABLE_INCLUDED_AND_EXCLUDED"
        assert issue.context == {"section": "crud", "tables": ["users"]}

    def test_masking_without_fields(self, make_config: ConfigFactory) -> None:
        config = make_config(data_export={"enable_masking": True, "masked_fields": []})
        assert validate_data_export(config).codes == ["MASKING_WITHOUT_FIELDS"]

    def test_large_batch_only_when_exporting(self, make_config: ConfigFactory) -> None:
        quiet = make_config(data_export={"batch_size": 500_000})
        assert validate_data_export(quiet).codes == []
        loud = make_config(data_export={"batch_size": 500_000}, features={"data_export": True})
        assert validate_data_export(loud).codes == ["BATCH_SIZE_TOO_LARGE"]


class TestRawConfig:
    """Unparsed dicts."""

    def test_structural_error(self) -> None:
        result = validate_raw_config({"database": {"type": "oracle"}})
        assert result.codes == ["INVALID_CONFIG"]
        assert result.errors[0].context["errors"]

    def test_semantic_checks_run_after_parsing(self) -> None:
        result = validate_raw_config({"database": {"type": "mysql"}})
        assert "MISSING_HOST" in result.codes

    def test_report_text(self) -> None:
        result = ValidationResult()
        result.add_error("MISSING_HOST", "database.host must not be empty.")
        result.add_warning("NO_FEATURES", "Nothing to do.", {"hint": "enable crud"})
        text = result.format_report()
        assert "[MISSING_HOST]" in text
        assert "hint: enable crud" in text
        assert not result

    def test_report_groups_by_section(self, make_config: ConfigFactory) -> None:
        config = make_config(
            database={"host": "", "username": None},
            crud={"included_tables": ["users"], "excluded_tables": ["users"]},
        )
        result = validate_config(config)
        assert [i.section for i in result.errors] == ["database"]
        assert {i.section for i in result.warnings} == {"database", "crud"}
        text = result.format_report()
        assert text.index("  database:") < text.index("  crud:")
        assert text.index("[MISSING_HOST]") < text.index("[MISSING_USERNAME]")

    def test_to_error(self, make_config: ConfigFactory) -> None:
        result = validate_config(make_config(database={"host": "", "database": ""}))
        error = result.to_error()
        assert isinstance(error, ConfigurationError)
        assert error.stage == "config"
        assert error.details["errors"] == [
            "database: [MISSING_HOST] database.host must not be empty.",
            "database: [MISSING_DATABASE] database.database (name) must not be empty.",
        ]

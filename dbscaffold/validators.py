# File: dbscaffold/validators.py
"""
dbscaffold - Configuration Validators
=======================================
Pydantic handles the structural checks on ``GenerationConfig`` (types,
enum values, ``batch_size >= 1``).  This module adds the **semantic**
checks that need more than one field at a time: connection completeness,
output paths of enabled features, contradictory table filters and export
settings that will not do what the user expects.

Usage::

    from dbscaffold.validators import validate_config
    result = validate_config(config)
    if not result.is_valid:
        print(result.format_report())
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from dbscaffold.errors import ConfigurationError
from dbscaffold.generator import build_config
from dbscaffold.models import GenerationConfig

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("dbscaffold.validators")

MAX_RECOMMENDED_BATCH_SIZE: int = 100_000


# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------

ERROR: str = "error"
WARNING: str = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    """One finding, tied to the config section that has to change."""

    severity: str
    code: str
    message: str
    section: str = "config"
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return self.severity == ERROR


@dataclass
class ValidationResult:
    """
    Issues from one or more checks.

    Any error makes the configuration unusable; the CLI turns that into
    a :class:`~dbscaffold.errors.ConfigurationError` exit.  Warnings are
    printed but never block a run.
    """

    issues: List[ValidationIssue] = field(default_factory=list)

    def add_error(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        section: str = "config",
    ) -> None:
        self.issues.append(ValidationIssue(ERROR, code, message, section, context or {}))

    def add_warning(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        section: str = "config",
    ) -> None:
        self.issues.append(ValidationIssue(WARNING, code, message, section, context or {}))

    def merge(self, other: ValidationResult) -> None:
        self.issues.extend(other.issues)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.is_error]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if not i.is_error]

    @property
    def codes(self) -> List[str]:
        return [i.code for i in self.issues]

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def __bool__(self) -> bool:
        """Truthy when there are no errors."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self.issues)

    def summary(self) -> str:
        return (
            f"Validation: {len(self.errors)} error(s), "
            f"{len(self.warnings)} warning(s)."
        )

    def to_error(self) -> ConfigurationError:
        """The :class:`ConfigurationError` a failed validation stands for."""
        return ConfigurationError(
            f"Configuration has {len(self.errors)} error(s).",
            details={"errors": [f"{i.section}: [{i.code}] {i.message}" for i in self.errors]},
        )

    def format_report(self) -> str:
        """Issues grouped by config section, errors first."""
        lines: List[str] = [self.summary()]
        by_section: Dict[str, List[ValidationIssue]] = {}
        for issue in sorted(self.issues, key=lambda i: not i.is_error):
            by_section.setdefault(issue.section, []).append(issue)
        for section, issues in by_section.items():
            lines.append("")
            lines.append(f"  {section}:")
            for issue in issues:
                prefix: str = "❌" if issue.is_error else "⚠️"
                lines.append(f"    {prefix} [{issue.code}] {issue.message}")
                for k, v in issue.context.items():
                    lines.append(f"         {k}: {v}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def validate_connection(config: GenerationConfig) -> ValidationResult:
    result = ValidationResult()
    database = config.database
    if not database.host:
        result.add_error("MISSING_HOST", "database.host must not be empty.", section="database")
    if not database.database:
        result.add_error("MISSING_DATABASE", "database.database (name) must not be empty.", section="database")
    if not database.username:
        result.add_warning(
            "MISSING_USERNAME",
            "database.username is empty; the driver default will be used.",
            section="database",
        )
    return result


def validate_paths(config: GenerationConfig) -> ValidationResult:
    result = ValidationResult()
    paths = config.paths
    features = config.features
    if not paths.base_output:
        result.add_error("MISSING_BASE_OUTPUT", "paths.base_output must not be empty.", section="paths")
    required: Dict[str, bool] = {
        "entities": features.entities or features.generate_index,
        "crud": features.crud,
        "sql": features.sql,
        "data_export": features.data_export,
    }
    for name, enabled in required.items():
        if enabled and not getattr(paths, name):
            result.add_error(
                "MISSING_OUTPUT_PATH",
                f"paths.{name} must not be empty while that feature is enabled.",
                {"path": name},
                section="paths",
            )
    if not any((features.entities, features.crud, features.sql, features.data_export)):
        result.add_warning(
            "NO_FEATURES", "Every feature is disabled; a run produces nothing.", section="features"
        )
    return result


def validate_table_filters(config: GenerationConfig) -> ValidationResult:
    """Tables named in both lists of a section end up excluded."""
    result = ValidationResult()
    sections: Dict[str, Any] = {
        "crud": config.crud,
        "entities": config.entities,
        "data_export": config.data_export,
    }
    for section, options in sections.items():
        overlap: List[str] = sorted(
            set(options.included_tables or ()) & set(options.excluded_tables)
        )
        if overlap:
            result.add_warning(
                "TABLE_INCLUDED_AND_EXCLUDED",
                f"{section}: table(s) {', '.join(overlap)} are both included and "
                f"excluded; they will be skipped.",
                {"section": section, "tables": overlap},
                section=section,
            )
    return result


def validate_data_export(config: GenerationConfig) -> ValidationResult:
    result = ValidationResult()
    options = config.data_export
    if options.enable_masking and not options.masked_fields:
        result.add_warning(
            "MASKING_WITHOUT_FIELDS",
            "Masking is enabled but data_export.masked_fields is empty; nothing will be masked.",
            section="data_export",
        )
    if config.features.data_export and options.batch_size > MAX_RECOMMENDED_BATCH_SIZE:
        result.add_warning(
            "BATCH_SIZE_TOO_LARGE",
            f"data_export.batch_size of {options.batch_size:,} exceeds "
            f"{MAX_RECOMMENDED_BATCH_SIZE:,}; batch files may be very large.",
            {"batch_size": options.batch_size},
            section="data_export",
        )
    return result


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def validate_config(config: GenerationConfig) -> ValidationResult:
    """Run every configuration check and return the merged result."""
    result = ValidationResult()
    for check in (validate_connection, validate_paths, validate_table_filters, validate_data_export):
        logger.debug("Running validator: %s", check.__name__)
        result.merge(check(config))

    if result.errors:
        logger.error("Config validation FAILED. %s", result.summary())
    else:
        logger.info("Config validation passed. %s", result.summary())
    return result


def validate_raw_config(data: Dict[str, Any]) -> ValidationResult:
    """
    Validate an unparsed config dict.

    Structural problems (unknown keys, unsupported dialect, bad types)
    become one ``INVALID_CONFIG`` error; otherwise the semantic checks run.
    """
    try:
        config: GenerationConfig = build_config(data)
    except ConfigurationError as exc:
        result = ValidationResult()
        result.add_error("INVALID_CONFIG", exc.message, exc.details)
        logger.error("Config validation FAILED: %s", exc.message)
        return result
    return validate_config(config)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ValidationIssue",
    "ValidationResult",
    "validate_config",
    "validate_raw_config",
    "validate_connection",
    "validate_paths",
    "validate_table_filters",
    "validate_data_export",
]

logger.debug("dbscaffold.validators loaded — %d public symbols.", len(__all__))

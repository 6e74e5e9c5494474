# File: dbscaffold/__init__.py
"""
dbscaffold — Database Reverse-Engineering Scaffold Generator
==============================================================

Reads the catalog of a live PostgreSQL, MySQL or SQL Server database and
scaffolds TypeORM entities, NestJS CRUD modules, CREATE TABLE scripts and
batched (optionally masked) INSERT-data scripts from it.

Architecture overview::

    ┌──────────────┐     ┌──────────────────┐     ┌──────────────────┐
    │  CLI / Entry │────▶│ ScaffoldGenerator │────▶│ ArtifactRenderer │
    │   (cli.py)   │     │  (generator.py)   │     │  (templates.py)  │
    └──────────────┘     └────────┬─────────┘     └──────────────────┘
                                  │
          ┌─────────────┬─────────┼──────────┬──────────────┐
          ▼             ▼         ▼          ▼              ▼
    ┌─────────────┐ ┌────────┐ ┌───────┐ ┌────────────┐ ┌───────────┐
    │introspection│ │filters │ │  ddl  │ │data_export │ │ exporters │
    └─────────────┘ └────────┘ └───────┘ └────────────┘ └───────────┘

Usage::

    # As a library
    from dbscaffold import ScaffoldGenerator, build_config, load_config_file
    config = build_config(load_config_file("dbscaffold.yaml"))
    report = ScaffoldGenerator(config).run()
    print(report.summary())

    # From the command line
    dbscaffold all --config dbscaffold.yaml -v

Public API:
    - ScaffoldGenerator  — Run orchestrator
    - GenerationConfig   — Run configuration model
    - DatabaseSchema     — Canonical schema model
    - ArtifactRenderer   — TypeScript artifact renderer
    - SqlScriptGenerator — CREATE TABLE script generator
    - DataExporter       — Batched INSERT-script exporter
    - validate_config    — Configuration validation entry point
"""

from __future__ import annotations

__version__: str = "1.0.0"
__license__: str = "MIT"

from dbscaffold.data_export import DataExporter, ExportReport, TableExportStats
from dbscaffold.ddl import SqlScriptGenerator, parse_entity_directory, parse_entity_file
from dbscaffold.errors import (
    ConfigurationError,
    ConnectionFailedError,
    IntrospectionError,
    OutputPathError,
    ScaffoldError,
    WiringError,
)
from dbscaffold.exporters import ArtifactWriter
from dbscaffold.filters import filter_table_names, filter_tables
from dbscaffold.generator import (
    ArtifactResult,
    GenerationReport,
    GenerationState,
    ScaffoldGenerator,
    build_config,
    find_config_file,
    load_config_file,
)
from dbscaffold.introspection import (
    MSSQLIntrospector,
    MySQLIntrospector,
    PostgresIntrospector,
    SchemaIntrospector,
    create_engine_for,
    create_introspector,
    introspector_for,
    test_connection,
)
from dbscaffold.models import (
    ColumnInfo,
    DatabaseConfig,
    DatabaseDialect,
    DatabaseSchema,
    ForeignKeyInfo,
    GenerationConfig,
    IndexInfo,
    TableInfo,
)
from dbscaffold.templates import ArtifactRenderer, merge_app_module
from dbscaffold.type_mapping import TypeMapping, resolve
from dbscaffold.validators import ValidationResult, validate_config

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    "__version__",
    "__license__",
    # Orchestrator
    "ScaffoldGenerator",
    "GenerationReport",
    "GenerationState",
    "ArtifactResult",
    "build_config",
    "load_config_file",
    "find_config_file",
    # Models
    "ColumnInfo",
    "DatabaseConfig",
    "DatabaseDialect",
    "DatabaseSchema",
    "ForeignKeyInfo",
    "GenerationConfig",
    "IndexInfo",
    "TableInfo",
    # Errors
    "ScaffoldError",
    "ConfigurationError",
    "ConnectionFailedError",
    "IntrospectionError",
    "OutputPathError",
    "WiringError",
    # Introspection
    "SchemaIntrospector",
    "PostgresIntrospector",
    "MySQLIntrospector",
    "MSSQLIntrospector",
    "create_introspector",
    "create_engine_for",
    "introspector_for",
    "test_connection",
    # Generation
    "ArtifactRenderer",
    "merge_app_module",
    "SqlScriptGenerator",
    "parse_entity_file",
    "parse_entity_directory",
    "ArtifactWriter",
    "filter_tables",
    "filter_table_names",
    "TypeMapping",
    "resolve",
    # Data export
    "DataExporter",
    "ExportReport",
    "TableExportStats",
    # Validation
    "ValidationResult",
    "validate_config",
]

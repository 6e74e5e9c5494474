# File: dbscaffold/generator.py
"""
dbscaffold - Generation Orchestrator
======================================

Connects every stage of a scaffolding run:

    Introspection → Filtering → Per-table generation → Wiring → Report

The ``ScaffoldGenerator`` class provides both a programmatic API and the
backend for the CLI.

Workflow::

    1. Load the configuration (YAML / JSON file or an in-memory dict).
    2. Introspect the database into a ``DatabaseSchema`` (introspection.py).
    3. Apply the include / exclude table filter (filters.py).
    4. Render each table's artifacts (templates.py) and write them
       through one ``ArtifactWriter`` (exporters.py).
    5. Merge the new feature modules into ``app.module.ts``.
    6. Return a ``GenerationReport`` with metrics and status.

Error handling strategy:
    - Per-table generation errors are isolated: one bad table is recorded
      as failed and the next table is processed.
    - Connection, listing, output-root and wiring failures are fatal.
      ``run()`` and ``generate_all()`` fold them into the report; the
      lower-level ``generate_*`` methods raise them.
    - The final report gives a clear pass/fail verdict.
"""

from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml
from pydantic import ValidationError

from dbscaffold.data_export import DataExporter, ExportReport
from dbscaffold.ddl import SqlScriptGenerator, parse_entity_directory
from dbscaffold.errors import ConfigurationError, ScaffoldError, WiringError
from dbscaffold.exporters import ArtifactWriter
from dbscaffold.filters import filter_table_names, filter_tables
from dbscaffold.introspection import SchemaIntrospector, create_engine_for, create_introspector
from dbscaffold.models import DatabaseSchema, GenerationConfig, TableInfo
from dbscaffold.templates import (
    APP_MODULE_FILE,
    ENTITY_INDEX_FILE,
    ArtifactNames,
    ArtifactRenderer,
    EntityIndexEntry,
    ModuleRegistration,
    artifact_names,
    merge_app_module,
)
from dbscaffold.utils import Timer, read_file, relative_import_path

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("dbscaffold.generator")

CONFIG_FILE_NAMES: tuple = (
    "dbscaffold.yaml",
    "dbscaffold.yml",
    "dbscaffold.json",
    "reverse-engineering.config.json",
    ".reverserc.json",
)

_EXPORT_CLASS_RE: re.Pattern[str] = re.compile(r"export\s+class\s+(\w+)")


# ---------------------------------------------------------------------------
# Generation report
# ---------------------------------------------------------------------------


class GenerationState(str, Enum):
    """Linear run states; a run never moves backwards."""

    IDLE = "Idle"
    SCHEMA_LOADED = "SchemaLoaded"
    FILTERED = "Filtered"
    PER_TABLE_GENERATION = "PerTableGeneration"
    WIRING = "Wiring"
    DONE = "Done"


@dataclass(frozen=False, slots=True)
class GenerationStepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class ArtifactResult:
    """One artifact of one table: written, reused or failed."""

    table_name: str
    artifact_kind: str
    output_path: str = ""
    success: bool = True
    reused: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table_name": self.table_name,
            "artifact_kind": self.artifact_kind,
            "output_path": self.output_path,
            "success": self.success,
            "reused": self.reused,
            "error": self.error,
        }


@dataclass(frozen=False, slots=True)
class GenerationReport:
    """
    Report produced by every :class:`ScaffoldGenerator` entry point.

    Always returned by ``run()``, even when a fatal error stopped the run;
    ``fatal_error`` and ``failed_stage`` then say where.
    """

    state: GenerationState = GenerationState.IDLE
    output_paths: List[str] = field(default_factory=list)
    per_table_manifest: List[ArtifactResult] = field(default_factory=list)
    failed_tables: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    app_module_path: Optional[str] = None
    entity_index_path: Optional[str] = None
    sql_path: Optional[str] = None
    export_report: Optional[ExportReport] = None
    step_metrics: List[GenerationStepMetric] = field(default_factory=list)
    fatal_error: Optional[str] = None
    failed_stage: Optional[str] = None
    total_elapsed_seconds: float = 0.0

    @property
    def tables_processed(self) -> int:
        """Distinct tables with at least one artifact and no failure."""
        done = {a.table_name for a in self.per_table_manifest if a.success}
        return len(done - set(self.failed_tables))

    @property
    def files_generated(self) -> int:
        return len(self.output_paths)

    @property
    def success(self) -> bool:
        return self.fatal_error is None and not self.failed_tables

    def add_warnings(self, messages: Sequence[str]) -> None:
        for message in messages:
            if message not in self.warnings:
                self.warnings.append(message)

    def add_output(self, path: Path) -> None:
        text: str = str(path)
        if text not in self.output_paths:
            self.output_paths.append(text)

    def artifacts_for(self, table_name: str) -> List[ArtifactResult]:
        return [a for a in self.per_table_manifest if a.table_name == table_name]

    def summary(self) -> str:
        """Return a human-readable summary string."""
        lines: List[str] = []
        status: str = "✅ SUCCESS" if self.success else "❌ FAILED"
        lines.append(f"{'='*60}")
        lines.append("  dbscaffold — Generation Report")
        lines.append(f"{'='*60}")
        lines.append(f"  Status:           {status}")
        lines.append(f"  State:            {self.state.value}")
        lines.append(f"  Tables processed: {self.tables_processed}")
        lines.append(f"  Files generated:  {self.files_generated}")
        if self.app_module_path:
            lines.append(f"  App module:       {self.app_module_path}")
        if self.sql_path:
            lines.append(f"  SQL script:       {self.sql_path}")
        if self.export_report is not None:
            lines.append(
                f"  Rows exported:    {self.export_report.total_rows:,} "
                f"({self.export_report.file_count} file(s))"
            )
        lines.append(f"  Total time:       {self.total_elapsed_seconds:.3f}s")
        lines.append(f"{'─'*60}")

        if self.step_metrics:
            lines.append("  Pipeline Steps:")
            for step in self.step_metrics:
                icon: str = "✓" if step.success else "✗"
                lines.append(
                    f"    {icon} {step.step_name:<28s} "
                    f"{step.elapsed_seconds:>7.3f}s  "
                    f"{step.detail}"
                )

        if self.fatal_error:
            lines.append(f"{'─'*60}")
            lines.append(f"  Fatal error at stage '{self.failed_stage}':")
            lines.append(f"    ✗ {self.fatal_error}")

        if self.failed_tables:
            lines.append(f"{'─'*60}")
            lines.append(f"  Failed Tables ({len(self.failed_tables)}):")
            for artifact in self.per_table_manifest:
                if not artifact.success:
                    lines.append(f"    ✗ {artifact.table_name}: {artifact.error}")

        if self.warnings:
            lines.append(f"{'─'*60}")
            lines.append(f"  Warnings ({len(self.warnings)}):")
            for warn in self.warnings:
                lines.append(f"    ⚠ {warn}")

        lines.append(f"{'='*60}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "state": self.state.value,
            "tables_processed": self.tables_processed,
            "files_generated": self.files_generated,
            "output_paths": list(self.output_paths),
            "per_table_manifest": [a.to_dict() for a in self.per_table_manifest],
            "failed_tables": list(self.failed_tables),
            "warnings": list(self.warnings),
            "app_module_path": self.app_module_path,
            "entity_index_path": self.entity_index_path,
            "sql_path": self.sql_path,
            "export": self.export_report.to_dict() if self.export_report else None,
            "step_metrics": [
                {
                    "step_name": s.step_name,
                    "success": s.success,
                    "elapsed_seconds": round(s.elapsed_seconds, 4),
                    "detail": s.detail,
                }
                for s in self.step_metrics
            ],
            "fatal_error": self.fatal_error,
            "failed_stage": self.failed_stage,
            "total_elapsed_seconds": round(self.total_elapsed_seconds, 4),
        }


# ---------------------------------------------------------------------------
# Config loader helpers
# ---------------------------------------------------------------------------


def _load_json_file(path: Path) -> Dict[str, Any]:
    """Load and parse a JSON file. Raises ValueError on parse errors."""
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(
            f"Expected a JSON object at top level, got {type(data).__name__}."
        )
    return data


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load and parse a YAML file. Raises ValueError on parse errors."""
    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Expected a YAML mapping at top level, got {type(data).__name__}."
        )
    return data


def load_config_file(path: Path) -> Dict[str, Any]:
    """
    Load a configuration file (JSON or YAML).

    Dispatches based on file extension.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file can't be parsed.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    if not path.is_file():
        raise ValueError(f"Config path is not a file: {path}")

    suffix: str = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _load_yaml_file(path)
    if suffix == ".json":
        return _load_json_file(path)

    logger.info("Unknown extension '%s' — trying JSON then YAML.", suffix)
    try:
        return _load_json_file(path)
    except ValueError:
        return _load_yaml_file(path)


def find_config_file(start_dir: Optional[Path] = None) -> Optional[Path]:
    """First well-known config file in *start_dir* (default: cwd), if any."""
    base: Path = Path(start_dir) if start_dir is not None else Path.cwd()
    for name in CONFIG_FILE_NAMES:
        candidate: Path = base / name
        if candidate.is_file():
            logger.debug("Using config file %s", candidate)
            return candidate
    return None


def build_config(user: Optional[Dict[str, Any]] = None) -> GenerationConfig:
    """
    Merge *user* over the defaults section by section and validate.

    Raises:
        ConfigurationError: If the merged configuration is invalid.
    """
    try:
        return GenerationConfig.model_validate(user or {})
    except ValidationError as exc:
        problems: List[str] = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        ]
        raise ConfigurationError(
            f"Invalid configuration: {'; '.join(problems)}",
            details={"errors": problems},
        ) from exc


# ---------------------------------------------------------------------------
# ScaffoldGenerator — orchestrator
# ---------------------------------------------------------------------------


class ScaffoldGenerator:
    """
    Pipeline orchestrator for one scaffolding run.

    Usage::

        generator = ScaffoldGenerator(build_config(load_config_file(path)))
        report = generator.run()
        print(report.summary())

    Args:
        config: Validated run configuration; never modified.
        engine: Pre-built SQLAlchemy engine (or anything with
            ``connect()``).  Built from ``config.database`` when omitted.
        introspector: Pre-built introspector, mainly for tests.

    Thread-safety: NOT thread-safe.  One generator per run.
    """

    def __init__(
        self,
        config: GenerationConfig,
        *,
        engine: Any = None,
        introspector: Optional[SchemaIntrospector] = None,
    ) -> None:
        self._config: GenerationConfig = config
        self._engine: Any = engine
        self._introspector: Optional[SchemaIntrospector] = introspector
        self._schema: Optional[DatabaseSchema] = None
        self._pipeline_active: bool = False
        self._writer: ArtifactWriter = ArtifactWriter()

        logger.debug("ScaffoldGenerator initialised: %r", config)

    @property
    def config(self) -> GenerationConfig:
        return self._config

    @property
    def writer(self) -> ArtifactWriter:
        return self._writer

    # -----------------------------------------------------------------
    # Connection plumbing
    # -----------------------------------------------------------------

    def _connection_source(self) -> Any:
        if self._engine is None:
            if self._introspector is not None:
                return self._introspector.connection_source
            self._engine = create_engine_for(self._config.database)
        return self._engine

    def _get_introspector(self) -> SchemaIntrospector:
        if self._introspector is None:
            self._introspector = create_introspector(
                self._connection_source(),
                self._config.dialect,
                self._config.database.schema_name,
            )
        return self._introspector

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def load_schema(self) -> DatabaseSchema:
        """
        Introspect the configured database.

        Raises:
            ConfigurationError: Unsupported dialect.
            ConnectionFailedError: No connection could be opened.
            IntrospectionError: The table listing failed.
        """
        introspector: SchemaIntrospector = self._get_introspector()
        self._schema = introspector.get_database_schema()
        return self._schema

    def generate_entities(
        self,
        schema: Optional[DatabaseSchema] = None,
        report: Optional[GenerationReport] = None,
    ) -> GenerationReport:
        """Write standalone entities into the shared entities directory."""
        report = report or GenerationReport()
        schema = self._resolve_schema(schema, report)
        options = self._config.entities
        tables: List[TableInfo] = filter_tables(
            schema.tables, options.included_tables, options.excluded_tables
        )
        self._advance(report, GenerationState.FILTERED)

        entities_dir: Path = Path(self._config.paths.entities)
        self._writer.prepare_root(entities_dir)
        renderer = ArtifactRenderer(self._config, schema.dialect, [t.name for t in tables])

        self._advance(report, GenerationState.PER_TABLE_GENERATION)
        with Timer("entity_generation") as t:
            written: int = 0
            for table in tables:
                names: ArtifactNames = artifact_names(table.name)
                target: Path = entities_dir / names.entity_file
                try:
                    text: str = renderer.render_entity(
                        table,
                        include_swagger=options.include_swagger,
                        include_validation=options.include_validation,
                    )
                    self._writer.write(target, text)
                except Exception as exc:
                    self._record_table_failure(report, table.name, "entity", target, exc)
                    continue
                report.per_table_manifest.append(
                    ArtifactResult(table.name, "entity", str(target))
                )
                report.add_output(target)
                written += 1
        report.add_warnings(renderer.warnings)

        report.step_metrics.append(GenerationStepMetric(
            step_name="Entity Generation",
            success=written == len(tables),
            elapsed_seconds=t.elapsed,
            detail=f"{written}/{len(tables)} entities",
        ))

        if self._config.features.generate_index:
            self._advance(report, GenerationState.WIRING)
            self._write_entity_index(entities_dir, report)
        self._finish(report)
        return report

    def generate_crud(
        self,
        schema: Optional[DatabaseSchema] = None,
        report: Optional[GenerationReport] = None,
    ) -> GenerationReport:
        """Filter with the CRUD include / exclude lists and generate modules."""
        report = report or GenerationReport()
        schema = self._resolve_schema(schema, report)
        tables: List[TableInfo] = filter_tables(
            schema.tables,
            self._config.crud.included_tables,
            self._config.crud.excluded_tables,
        )
        self._advance(report, GenerationState.FILTERED)
        return self.generate_crud_for_tables(tables, report=report, dialect=schema.dialect)

    def generate_crud_for_tables(
        self,
        tables: Sequence[TableInfo],
        report: Optional[GenerationReport] = None,
        dialect: Optional[str] = None,
    ) -> GenerationReport:
        """
        Generate CRUD modules for already-filtered *tables*, then wire
        them into ``app.module.ts``.

        Raises:
            OutputPathError: If the CRUD root cannot be created.
            WiringError: If the app module cannot be merged or written.
        """
        report = report or GenerationReport()
        crud_root: Path = Path(self._config.paths.crud)
        self._writer.prepare_root(crud_root)

        renderer = ArtifactRenderer(
            self._config, dialect or self._config.dialect, [t.name for t in tables]
        )
        registrations: List[ModuleRegistration] = []

        self._advance(report, GenerationState.PER_TABLE_GENERATION)
        with Timer("crud_generation") as t:
            for table in tables:
                try:
                    module_path: Path = self._generate_table_crud(table, renderer, crud_root, report)
                except Exception as exc:
                    self._record_table_failure(report, table.name, "crud", crud_root, exc)
                    continue
                names: ArtifactNames = artifact_names(table.name)
                registrations.append(ModuleRegistration(
                    module_class=names.module_class,
                    import_path=relative_import_path(crud_root, module_path),
                ))
        report.add_warnings(renderer.warnings)

        report.step_metrics.append(GenerationStepMetric(
            step_name="CRUD Generation",
            success=len(registrations) == len(tables),
            elapsed_seconds=t.elapsed,
            detail=f"{len(registrations)}/{len(tables)} tables",
        ))

        self._advance(report, GenerationState.WIRING)
        self._write_app_module(crud_root, registrations, renderer, report)
        self._finish(report)
        return report

    def generate_sql(
        self,
        schema: Optional[DatabaseSchema] = None,
        report: Optional[GenerationReport] = None,
    ) -> GenerationReport:
        """
        Write the CREATE TABLE script for *schema*.

        Raises:
            OutputPathError: If the script cannot be written.
        """
        report = report or GenerationReport()
        schema = self._resolve_schema(schema, report)
        return self._write_sql(schema.tables, schema.dialect, report)

    def generate_sql_from_entities(
        self,
        entities_dir: Optional[Path] = None,
        report: Optional[GenerationReport] = None,
    ) -> GenerationReport:
        """
        Write the CREATE TABLE script from ``*.entity.ts`` files, without a
        database connection.

        Raises:
            ConfigurationError: If the directory is missing or holds no entities.
        """
        report = report or GenerationReport()
        directory: Path = Path(entities_dir or self._config.paths.entities)
        try:
            tables: List[TableInfo] = parse_entity_directory(directory)
        except FileNotFoundError as exc:
            raise ConfigurationError(
                f"Entities directory not found: {directory}",
                details={"path": str(directory)},
            ) from exc
        if not tables:
            raise ConfigurationError(
                f"No entity files found in {directory}",
                details={"path": str(directory)},
            )
        self._advance(report, GenerationState.SCHEMA_LOADED)
        return self._write_sql(tables, self._config.dialect, report)

    def export_data(self, schema: Optional[DatabaseSchema] = None) -> ExportReport:
        """
        Export table data as batched INSERT scripts.

        With *schema*, its table names are filtered by the export include /
        exclude lists; otherwise the exporter lists the tables itself.
        """
        options = self._config.data_export
        exporter = DataExporter(
            self._connection_source(),
            self._config.dialect,
            options,
            output_dir=Path(self._config.paths.data_export),
            schema_name=self._config.database.schema_name,
            writer=self._writer,
        )
        if schema is None:
            return exporter.export_all_tables()
        names: List[str] = filter_table_names(
            schema.table_names, options.included_tables, options.excluded_tables
        )
        return exporter.export_tables(names)

    def run(self) -> GenerationReport:
        """Entities and CRUD modules per the feature flags; never raises."""
        return self._run_pipeline(include_sql=False, include_export=False)

    def generate_all(self) -> GenerationReport:
        """Every enabled feature: entities, CRUD, SQL and data export."""
        return self._run_pipeline(
            include_sql=self._config.features.sql and self._config.sql.generate_create_tables,
            include_export=self._config.features.data_export,
        )

    # -----------------------------------------------------------------
    # Internal: pipeline
    # -----------------------------------------------------------------

    def _run_pipeline(self, include_sql: bool, include_export: bool) -> GenerationReport:
        report = GenerationReport()
        features = self._config.features
        start: float = time.perf_counter()
        self._pipeline_active = True
        try:
            schema: DatabaseSchema = self._step_load_schema(report)
            if features.entities:
                self.generate_entities(schema, report=report)
            if features.crud:
                self.generate_crud(schema, report=report)
            if include_sql:
                self.generate_sql(schema, report=report)
            if include_export:
                report.export_report = self.export_data(schema)
                for path in report.export_report.output_paths:
                    report.add_output(Path(path))
                for failed in report.export_report.failed_tables:
                    report.add_warnings([f"Data export failed for table '{failed}'."])
        except ScaffoldError as exc:
            report.fatal_error = str(exc)
            report.failed_stage = exc.stage
            logger.error("Run aborted at stage '%s': %s", exc.stage, exc.message)
        else:
            self._advance(report, GenerationState.DONE)
        finally:
            self._pipeline_active = False
        return self._finalise_report(report, time.perf_counter() - start)

    def _step_load_schema(self, report: GenerationReport) -> DatabaseSchema:
        with Timer("introspection") as t:
            schema: DatabaseSchema = self.load_schema()
        introspector: SchemaIntrospector = self._get_introspector()
        report.add_warnings(introspector.warnings)
        report.step_metrics.append(GenerationStepMetric(
            step_name="Schema Introspection",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=(
                f"{len(schema.tables)} tables"
                + (f", {len(introspector.failed_tables)} dropped" if introspector.failed_tables else "")
            ),
        ))
        self._advance(report, GenerationState.SCHEMA_LOADED)
        return schema

    def _resolve_schema(
        self, schema: Optional[DatabaseSchema], report: GenerationReport
    ) -> DatabaseSchema:
        if schema is not None:
            self._advance(report, GenerationState.SCHEMA_LOADED)
            return schema
        if self._schema is not None:
            self._advance(report, GenerationState.SCHEMA_LOADED)
            return self._schema
        return self._step_load_schema(report)

    def _finish(self, report: GenerationReport) -> None:
        if not self._pipeline_active:
            self._advance(report, GenerationState.DONE)

    @staticmethod
    def _advance(report: GenerationReport, state: GenerationState) -> None:
        order: List[GenerationState] = list(GenerationState)
        if order.index(state) > order.index(report.state):
            logger.debug("Run state: %s -> %s", report.state.value, state.value)
            report.state = state

    @staticmethod
    def _record_table_failure(
        report: GenerationReport,
        table_name: str,
        kind: str,
        path: Path,
        exc: Exception,
    ) -> None:
        error_msg: str = f"{type(exc).__name__}: {exc}"
        logger.error("Generation failed for table '%s': %s", table_name, error_msg, exc_info=True)
        report.per_table_manifest.append(ArtifactResult(
            table_name=table_name,
            artifact_kind=kind,
            output_path=str(path),
            success=False,
            error=error_msg,
        ))
        if table_name not in report.failed_tables:
            report.failed_tables.append(table_name)

    # -----------------------------------------------------------------
    # Internal: per-table CRUD
    # -----------------------------------------------------------------

    def _shared_entity_path(self, table_name: str) -> Path:
        return Path(self._config.paths.entities) / artifact_names(table_name).entity_file

    def _local_entity_path(self, crud_root: Path, table_name: str) -> Path:
        names: ArtifactNames = artifact_names(table_name)
        return crud_root / names.module_dir / "entities" / names.entity_file

    def _entity_location(self, crud_root: Path, table_name: str) -> Path:
        shared: Path = self._shared_entity_path(table_name)
        return shared if shared.is_file() else self._local_entity_path(crud_root, table_name)

    def _generate_table_crud(
        self,
        table: TableInfo,
        renderer: ArtifactRenderer,
        crud_root: Path,
        report: GenerationReport,
    ) -> Path:
        """Write one table's module directory; returns the module file path."""
        crud = self._config.crud
        names: ArtifactNames = artifact_names(table.name)
        module_dir: Path = crud_root / names.module_dir
        results: List[ArtifactResult] = []

        def emit(kind: str, path: Path, text: str) -> None:
            self._writer.write(path, text)
            results.append(ArtifactResult(table.name, kind, str(path)))

        shared: Path = self._shared_entity_path(table.name)
        try:
            if shared.is_file():
                entity_path: Path = shared
                logger.info("Reusing existing entity for '%s': %s", table.name, shared)
                results.append(ArtifactResult(table.name, "entity", str(shared), reused=True))
            else:
                entity_path = self._local_entity_path(crud_root, table.name)
                relation_imports: Dict[str, str] = {
                    rel.target_table: relative_import_path(
                        entity_path.parent, self._entity_location(crud_root, rel.target_table)
                    )
                    for rel in renderer.relations(table)
                }
                emit("entity", entity_path, renderer.render_entity(table, relation_imports))

            entity_import: str = relative_import_path(module_dir, entity_path)

            if crud.use_dto:
                dto_dir: Path = module_dir / "dto"
                emit("create_dto", dto_dir / names.create_dto_file, renderer.render_create_dto(table))
                emit("update_dto", dto_dir / names.update_dto_file, renderer.render_update_dto(table))
                if crud.include_filtering:
                    emit("query_dto", dto_dir / names.query_dto_file, renderer.render_query_dto(table))

            emit("repository", module_dir / names.repository_file,
                 renderer.render_repository(table, entity_import))
            emit("service", module_dir / names.service_file,
                 renderer.render_service(table, entity_import))
            emit("controller", module_dir / names.controller_file,
                 renderer.render_controller(table, entity_import))
            module_path: Path = module_dir / names.module_file
            emit("module", module_path, renderer.render_module(table, entity_import))
            if crud.generate_tests:
                emit("test", module_dir / names.spec_file, renderer.render_service_spec(table))
        finally:
            # files already on disk are reported even when a later artifact fails
            report.per_table_manifest.extend(results)
            for result in results:
                if not result.reused:
                    report.add_output(Path(result.output_path))

        logger.info("Generated CRUD module for '%s' (%d artifacts).", table.name, len(results))
        return module_path

    # -----------------------------------------------------------------
    # Internal: wiring
    # -----------------------------------------------------------------

    def _write_app_module(
        self,
        crud_root: Path,
        registrations: List[ModuleRegistration],
        renderer: ArtifactRenderer,
        report: GenerationReport,
    ) -> None:
        target: Path = crud_root / APP_MODULE_FILE
        with Timer("wiring") as t:
            try:
                if target.is_file():
                    text: str = merge_app_module(read_file(target), registrations)
                    action: str = "merged"
                else:
                    text = renderer.render_app_module(registrations)
                    action = "created"
                self._writer.write(target, text)
            except OSError as exc:
                raise WiringError(
                    f"Cannot write app module '{target}': {exc}",
                    details={"path": str(target)},
                ) from exc
        report.app_module_path = str(target)
        report.add_output(target)
        report.step_metrics.append(GenerationStepMetric(
            step_name="App Module Wiring",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=f"{action}, {len(registrations)} module(s)",
        ))
        logger.info("App module %s: %s", action, target)

    def _write_entity_index(self, entities_dir: Path, report: GenerationReport) -> None:
        entries: List[EntityIndexEntry] = []
        target: Path = entities_dir / ENTITY_INDEX_FILE
        try:
            for path in sorted(entities_dir.rglob("*.entity.ts")):
                match = _EXPORT_CLASS_RE.search(read_file(path))
                if match is None:
                    logger.warning("No exported class in %s; left out of the index.", path)
                    continue
                entries.append(EntityIndexEntry(
                    class_name=match.group(1),
                    file_name=path.relative_to(entities_dir).as_posix(),
                ))
            self._writer.write(target, ArtifactRenderer.render_entity_index(entries))
        except OSError as exc:
            raise WiringError(
                f"Cannot write entity index '{target}': {exc}",
                details={"path": str(target)},
            ) from exc
        report.entity_index_path = str(target)
        report.add_output(target)
        logger.info("Entity index written with %d entr(ies): %s", len(entries), target)

    # -----------------------------------------------------------------
    # Internal: SQL
    # -----------------------------------------------------------------

    def _write_sql(
        self, tables: Sequence[TableInfo], dialect: str, report: GenerationReport
    ) -> GenerationReport:
        generator = SqlScriptGenerator(
            dialect, self._config.sql, self._config.database.schema_name
        )
        with Timer("sql_generation") as t:
            path: Path = generator.write(tables, Path(self._config.paths.sql))
        report.sql_path = str(path)
        report.add_output(path)
        report.add_warnings(generator.warnings)
        report.step_metrics.append(GenerationStepMetric(
            step_name="SQL Script",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=f"{len(tables)} tables",
        ))
        self._finish(report)
        return report

    # -----------------------------------------------------------------
    # Internal: finalise report
    # -----------------------------------------------------------------

    def _finalise_report(
        self,
        report: GenerationReport,
        total_elapsed: float,
    ) -> GenerationReport:
        report.total_elapsed_seconds = total_elapsed
        if report.success:
            logger.info(
                "Run complete: %d table(s), %d file(s) in %.3fs.",
                report.tables_processed,
                report.files_generated,
                total_elapsed,
            )
        else:
            logger.warning(
                "Run finished with problems: %d failed table(s), fatal=%s.",
                len(report.failed_tables),
                report.fatal_error,
            )
        return report


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ArtifactResult",
    "GenerationReport",
    "GenerationState",
    "GenerationStepMetric",
    "ScaffoldGenerator",
    "build_config",
    "find_config_file",
    "load_config_file",
    "CONFIG_FILE_NAMES",
]

logger.debug("dbscaffold.generator loaded — %d public symbols.", len(__all__))

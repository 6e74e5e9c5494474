# File: dbscaffold/data_export.py
"""
dbscaffold - Data Export Engine
=================================
Extracts table rows and writes them as batched ``INSERT`` scripts.

Per table:
    1. ``SELECT *`` with the optional per-table WHERE / ORDER BY, capped at
       ``max_rows``.
    2. Masking of sensitive cells (before formatting, so masked values get
       the same type-aware quoting as real ones).
    3. Rows cut into batches of ``batch_size``; every batch is one file.
       A table with no rows gets exactly one file holding a "no data"
       marker.

A failing table is recorded with zero rows and its error; a failing batch
write is recorded as a partial export and the remaining batches are still
written.  The run summary (``export_summary_<timestamp>.md``) is always
written last.
"""

from __future__ import annotations

import json
import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal
from itertools import islice
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import text

from dbscaffold.ddl import quote_identifier
from dbscaffold.errors import ConfigurationError, OutputPathError
from dbscaffold.exporters import ArtifactWriter
from dbscaffold.filters import filter_table_names
from dbscaffold.introspection import create_introspector
from dbscaffold.models import (
    DataExportConfig,
    DatabaseDialect,
    MaskingRule,
    NullHandling,
    normalize_dialect,
)
from dbscaffold.utils import Timer, timestamp_token

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("dbscaffold.data_export")

GENERIC_MASK: str = "***MASKED***"


# ---------------------------------------------------------------------------
# Report types
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class TableExportStats:
    """Outcome of exporting one table."""

    table: str
    rows: int = 0
    batches: int = 0
    files: List[str] = field(default_factory=list)
    error: Optional[str] = None
    failed_batches: List[int] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failed_batches)

    @property
    def success(self) -> bool:
        return self.error is None and not self.failed_batches

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "rows": self.rows,
            "batches": self.batches,
            "files": list(self.files),
            "error": self.error,
            "failed_batches": list(self.failed_batches),
        }


@dataclass(frozen=False, slots=True)
class ExportReport:
    """Aggregated outcome of one export run."""

    dialect: str = ""
    tables: List[TableExportStats] = field(default_factory=list)
    output_paths: List[str] = field(default_factory=list)
    summary_path: Optional[str] = None
    elapsed_seconds: float = 0.0

    @property
    def total_rows(self) -> int:
        return sum(t.rows for t in self.tables)

    @property
    def file_count(self) -> int:
        return len(self.output_paths)

    @property
    def failed_tables(self) -> List[str]:
        return [t.table for t in self.tables if not t.success]

    def get(self, table: str) -> Optional[TableExportStats]:
        for stats in self.tables:
            if stats.table == table:
                return stats
        return None

    def summary(self) -> str:
        lines: List[str] = [
            f"Export ({self.dialect}): {len(self.tables)} table(s), "
            f"{self.total_rows} row(s), {self.file_count} file(s) "
            f"in {self.elapsed_seconds:.2f}s",
        ]
        for stats in self.tables:
            status: str = "ok"
            if stats.error:
                status = f"FAILED: {stats.error}"
            elif stats.partial:
                status = f"PARTIAL: batch(es) {', '.join(map(str, stats.failed_batches))} not written"
            lines.append(f"  {stats.table}: {stats.rows} row(s), {stats.batches} batch(es) [{status}]")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dialect": self.dialect,
            "tables": [t.to_dict() for t in self.tables],
            "total_rows": self.total_rows,
            "file_count": self.file_count,
            "output_paths": list(self.output_paths),
            "summary_path": self.summary_path,
            "elapsed_seconds": round(self.elapsed_seconds, 4),
        }


# ---------------------------------------------------------------------------
# Exporter
# ---------------------------------------------------------------------------


class DataExporter:
    """
    Batched INSERT-script exporter.

    Args:
        connection_source: Anything with ``connect()`` returning a
            SQLAlchemy-style connection (normally an ``Engine``).
        dialect: Dialect of the source database; drives identifier quoting
            and boolean / binary literals.
        options: Export options.
        output_dir: Directory receiving the scripts and the summary.
        schema_name: Schema used to qualify table names (Postgres / MSSQL)
            and to list tables for :meth:`export_all_tables`.
        writer: Shared writer so the caller sees every written file.
    """

    def __init__(
        self,
        connection_source: Any,
        dialect: str,
        options: Optional[DataExportConfig] = None,
        *,
        output_dir: Path = Path("./data"),
        schema_name: Optional[str] = None,
        writer: Optional[ArtifactWriter] = None,
    ) -> None:
        self._source: Any = connection_source
        self._dialect: str = str(normalize_dialect(dialect))
        if self._dialect not in {d.value for d in DatabaseDialect}:
            raise ConfigurationError(
                f"Unsupported dialect '{dialect}' for data export.",
                details={"dialect": str(dialect)},
            )
        self._options: DataExportConfig = options or DataExportConfig()
        self._output_dir: Path = Path(output_dir)
        self._schema: Optional[str] = schema_name
        self._writer: ArtifactWriter = writer or ArtifactWriter()
        self._mask_counters: Dict[str, int] = {}

        logger.debug(
            "DataExporter initialised: dialect=%s, batch_size=%d, masking=%s, output=%s",
            self._dialect,
            self._options.batch_size,
            self._options.enable_masking,
            self._output_dir,
        )

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def export_all_tables(self) -> ExportReport:
        """
        List the source tables, apply the configured include / exclude
        lists and export the survivors.

        Raises:
            ConnectionFailedError: If no connection can be opened.
            IntrospectionError: If the table listing query fails.
        """
        introspector = create_introspector(self._source, self._dialect, self._schema)
        names: List[str] = introspector.list_table_names()
        selected: List[str] = filter_table_names(
            names, self._options.included_tables, self._options.excluded_tables
        )
        logger.info("Found %d table(s), exporting %d.", len(names), len(selected))
        return self.export_tables(selected)

    def export_tables(self, names: Sequence[str]) -> ExportReport:
        """
        Export *names* in order.  Never raises for per-table problems.

        Raises:
            OutputPathError: If the output directory or the summary file
                cannot be written.
        """
        self._writer.prepare_root(self._output_dir)
        report = ExportReport(dialect=self._dialect)

        with Timer("data export") as timer:
            for name in names:
                stats: TableExportStats = self._export_one(name)
                report.tables.append(stats)
                report.output_paths.extend(stats.files)

            summary_path: Path = self._output_dir / f"export_summary_{timestamp_token()}.md"
            try:
                self._writer.write(summary_path, self._render_summary(report, summary_path))
            except OSError as exc:
                raise OutputPathError(
                    f"Cannot write export summary '{summary_path}': {exc}",
                    details={"path": str(summary_path)},
                ) from exc
            report.summary_path = str(summary_path)
            report.output_paths.append(str(summary_path))

        report.elapsed_seconds = timer.elapsed
        logger.info(
            "Data export finished: %d table(s), %d row(s), %d file(s).",
            len(report.tables),
            report.total_rows,
            report.file_count,
        )
        return report

    def mask_value(self, column: str, value: Any, table: str = "") -> Any:
        """
        Apply masking to one cell.  Non-sensitive columns and ``None`` pass
        through unchanged.
        """
        if not self._options.enable_masking or value is None:
            return value
        lowered: str = column.lower()
        if not any(f.lower() in lowered for f in self._options.masked_fields):
            return value
        for rule in self._options.masking_rules:
            if rule.match_field.lower() in lowered:
                return self._apply_rule(rule, value, f"{table}.{column}")
        return GENERIC_MASK

    def format_value(self, value: Any, width: Optional[int] = None) -> str:
        """Render *value* as an SQL literal, optionally right-padded to *width*."""
        formatted: str
        if value is None:
            null_handling: str = getattr(self._options.null_handling, "value", self._options.null_handling)
            if null_handling == NullHandling.DEFAULT.value:
                formatted = "DEFAULT"
            elif null_handling == NullHandling.SKIP.value:
                formatted = "''"
            else:
                formatted = "NULL"
        elif isinstance(value, bool):
            if self._dialect == DatabaseDialect.POSTGRES.value:
                formatted = "true" if value else "false"
            else:
                formatted = "1" if value else "0"
        elif isinstance(value, (int, Decimal)):
            formatted = str(value)
        elif isinstance(value, float):
            formatted = repr(value) if math.isfinite(value) else "NULL"
        elif isinstance(value, str):
            formatted = _quote(value)
        elif isinstance(value, (datetime, date, time)):
            formatted = _quote(value.isoformat())
        elif isinstance(value, (bytes, bytearray, memoryview)):
            formatted = self._binary_literal(bytes(value))
        elif isinstance(value, uuid.UUID):
            formatted = _quote(str(value))
        elif isinstance(value, (dict, list, tuple)):
            formatted = _quote(json.dumps(value, default=str, ensure_ascii=False))
        else:
            formatted = _quote(str(value))

        if width and self._options.align_values:
            formatted = formatted.ljust(width)
        return formatted

    # -----------------------------------------------------------------
    # Masking
    # -----------------------------------------------------------------

    def _next_counter(self, key: str) -> int:
        self._mask_counters[key] = self._mask_counters.get(key, 0) + 1
        return self._mask_counters[key]

    def _apply_rule(self, rule: MaskingRule, value: Any, key: str) -> Any:
        original: str = str(value)
        if rule.kind == "email":
            template: str = rule.replacement or "user{n}@example.com"
            masked: str = template.replace("{n}", str(self._next_counter(key)))
            if masked == original:
                masked = template.replace("{n}", str(self._next_counter(key)))
            return masked
        if rule.kind == "name":
            template = rule.replacement or "User {n}"
            masked = template.replace("{n}", str(self._next_counter(key)))
            if masked == original:
                masked = template.replace("{n}", str(self._next_counter(key)))
            return masked
        if rule.kind == "phone":
            pattern: str = rule.pattern or "XXX-XXX-XXXX"
            slots: int = pattern.count("X")
            digits: str = str(self._next_counter(key)).zfill(slots)[-slots:] if slots else ""
            result: List[str] = []
            position: int = 0
            for ch in pattern:
                if ch == "X":
                    result.append(digits[position])
                    position += 1
                else:
                    result.append(ch)
            return "".join(result)
        if rule.preserve_length:
            return "*" * len(original)
        return rule.replacement or GENERIC_MASK

    # -----------------------------------------------------------------
    # Extraction
    # -----------------------------------------------------------------

    def _table_ref(self, table: str) -> str:
        if self._schema and self._dialect != DatabaseDialect.MYSQL.value:
            return f"{quote_identifier(self._schema, self._dialect)}.{quote_identifier(table, self._dialect)}"
        return quote_identifier(table, self._dialect)

    def build_select(self, table: str) -> str:
        sql: str = f"SELECT * FROM {self._table_ref(table)}"
        where: Optional[str] = self._options.where_conditions.get(table)
        if where:
            sql += f" WHERE {where}"
        order_by: Optional[str] = self._options.order_by.get(table)
        if order_by:
            sql += f" ORDER BY {order_by}"
        return sql

    def _fetch_rows(self, table: str) -> List[Dict[str, Any]]:
        sql: str = self.build_select(table)
        logger.debug("Export query: %s", sql)
        with self._source.connect() as conn:
            result = conn.execute(text(sql))
            rows = result.mappings()
            if self._options.max_rows is not None:
                rows = islice(rows, self._options.max_rows)
            return [dict(row) for row in rows]

    # -----------------------------------------------------------------
    # Rendering
    # -----------------------------------------------------------------

    def _binary_literal(self, data: bytes) -> str:
        if self._dialect == DatabaseDialect.POSTGRES.value:
            return f"'\\x{data.hex()}'"
        if self._dialect == DatabaseDialect.MSSQL.value:
            return f"0x{data.hex()}"
        return f"X'{data.hex()}'"

    def render_batch(
        self,
        table: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        batch_number: int,
    ) -> str:
        """One INSERT statement for *rows*; alignment is computed per batch."""
        lines: List[str] = []
        if self._options.include_headers:
            lines += [f"-- Table: {table}", f"-- Batch: {batch_number}", f"-- Rows: {len(rows)}", ""]

        if not rows:
            lines.append(f"-- No data for table {table}")
            lines.append("")
            return "\n".join(lines)

        column_list: str = ", ".join(quote_identifier(c, self._dialect) for c in columns)
        widths: Optional[List[int]] = None
        if self._options.pretty_print and self._options.align_values:
            widths = [len(c) + 2 for c in columns]
            for row in rows:
                for i, value in enumerate(row):
                    widths[i] = max(widths[i], len(self.format_value(value)))

        tuples: List[str] = []
        for row in rows:
            values = [
                self.format_value(value, widths[i] if widths else None) for i, value in enumerate(row)
            ]
            tuples.append(f"({', '.join(values)})")

        if self._options.pretty_print:
            lines.append(f"INSERT INTO {self._table_ref(table)} ({column_list})")
            lines.append("VALUES")
            lines += [f"  {t}{',' if i < len(tuples) - 1 else ''}" for i, t in enumerate(tuples)]
            lines.append(";")
        else:
            lines.append(f"INSERT INTO {self._table_ref(table)} ({column_list}) VALUES {', '.join(tuples)};")
        lines.append("")
        return "\n".join(lines)

    def _file_header(self, table: str, total_rows: int, part: int, parts: int) -> List[str]:
        lines: List[str] = [
            "-- Generated INSERT statements",
            f"-- Table: {table}",
            f"-- Total rows: {total_rows}",
            f"-- Part: {part} of {parts}",
            f"-- Generated at: {datetime.now(timezone.utc).isoformat()}",
            f"-- Dialect: {self._dialect.upper()}",
            f"-- Batch size: {self._options.batch_size}",
        ]
        if self._options.enable_masking:
            lines.append("-- Data masking: ENABLED")
        lines.append("")
        if self._dialect == DatabaseDialect.MYSQL.value:
            lines += [
                "-- MySQL specific settings",
                "SET FOREIGN_KEY_CHECKS = 0;",
                "SET AUTOCOMMIT = 0;",
                "START TRANSACTION;",
                "",
            ]
        elif self._dialect == DatabaseDialect.POSTGRES.value:
            lines += ["-- PostgreSQL specific settings", "SET session_replication_role = replica;", ""]
        else:
            lines += ["-- SQL Server specific settings", "SET NOCOUNT ON;", ""]
        return lines

    def _file_footer(self) -> List[str]:
        if self._dialect == DatabaseDialect.MYSQL.value:
            return ["COMMIT;", "SET FOREIGN_KEY_CHECKS = 1;", ""]
        if self._dialect == DatabaseDialect.POSTGRES.value:
            return ["SET session_replication_role = DEFAULT;", ""]
        return []

    # -----------------------------------------------------------------
    # Per-table pipeline
    # -----------------------------------------------------------------

    def _export_one(self, table: str) -> TableExportStats:
        stats = TableExportStats(table=table)
        try:
            raw_rows: List[Dict[str, Any]] = self._fetch_rows(table)
        except Exception as exc:
            stats.error = f"{type(exc).__name__}: {exc}"
            logger.error("Failed to export table '%s': %s", table, stats.error, exc_info=True)
            return stats

        columns: List[str] = list(raw_rows[0].keys()) if raw_rows else []
        rows: List[List[Any]] = [
            [self.mask_value(c, row.get(c), table) for c in columns] for row in raw_rows
        ]
        size: int = self._options.batch_size
        batches: List[List[List[Any]]] = [rows[i : i + size] for i in range(0, len(rows), size)]
        stats.batches = len(batches)

        scripts: List[str] = (
            [self.render_batch(table, columns, batch, n) for n, batch in enumerate(batches, start=1)]
            if batches
            else [self.render_batch(table, columns, [], 1)]
        )
        token: str = timestamp_token()

        for number, script in enumerate(scripts, start=1):
            file_name: str = (
                f"insert_{table}_{token}.sql"
                if len(scripts) == 1
                else f"insert_{table}_part{number}_{token}.sql"
            )
            path: Path = self._output_dir / file_name
            content: str = "\n".join(
                self._file_header(table, len(rows), number, len(scripts)) + [script] + self._file_footer()
            )
            try:
                self._writer.write(path, content)
            except OSError as exc:
                stats.failed_batches.append(number)
                logger.error(
                    "Batch %d of table '%s' could not be written to %s: %s",
                    number,
                    table,
                    path,
                    exc,
                    exc_info=True,
                )
                continue
            stats.files.append(str(path))
            if batches:
                stats.rows += len(batches[number - 1])

        if stats.partial:
            logger.warning(
                "Table '%s' exported partially: %d of %d batch(es) written.",
                table,
                len(scripts) - len(stats.failed_batches),
                len(scripts),
            )
        else:
            logger.info("Exported '%s': %d row(s) in %d batch(es).", table, stats.rows, stats.batches)
        return stats

    # -----------------------------------------------------------------
    # Summary
    # -----------------------------------------------------------------

    def _render_summary(self, report: ExportReport, summary_path: Path) -> str:
        exported: int = sum(1 for t in report.tables if t.error is None)
        lines: List[str] = [
            "# Data Export Summary",
            "",
            f"**Export Date:** {datetime.now(timezone.utc).isoformat()}",
            f"**Dialect:** {self._dialect.upper()}",
            f"**Total Tables:** {exported}",
            f"**Total Rows:** {report.total_rows:,}",
            f"**Total Files:** {report.file_count + 1}",
            f"**Batch Size:** {self._options.batch_size}",
            f"**Data Masking:** {'ENABLED' if self._options.enable_masking else 'DISABLED'}",
            "",
            "## Table Statistics",
            "",
            "| Table Name | Rows | Batches | Status |",
            "|------------|------|---------|--------|",
        ]
        for stats in report.tables:
            if stats.error:
                status = "failed"
            elif stats.partial:
                status = "partial"
            else:
                status = "ok"
            lines.append(f"| {stats.table} | {stats.rows:,} | {stats.batches} | {status} |")

        problems = [t for t in report.tables if not t.success]
        if problems:
            lines += ["", "## Failures", ""]
            for stats in problems:
                if stats.error:
                    lines.append(f"- `{stats.table}`: {stats.error}")
                else:
                    failed = ", ".join(str(n) for n in stats.failed_batches)
                    lines.append(f"- `{stats.table}`: partial export, batch(es) {failed} not written")

        lines += ["", "## Generated Files", ""]
        lines += [f"- `{Path(p).name}`" for p in report.output_paths]
        lines.append(f"- `{summary_path.name}`")
        lines.append("")
        return "\n".join(lines)


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


__all__: List[str] = [
    "DataExporter",
    "ExportReport",
    "TableExportStats",
    "GENERIC_MASK",
]

logger.debug("dbscaffold.data_export loaded — %d public symbols.", len(__all__))

# File: dbscaffold/ddl.py
"""
dbscaffold - SQL DDL Scripts
==============================
Two halves of the same concern:

* :class:`SqlScriptGenerator` renders one ``CREATE TABLE`` script for a
  list of tables in the target dialect (header, dialect session settings,
  one block per table, foreign keys last so table order never matters).
* :func:`parse_entity_file` / :func:`parse_entity_directory` read TypeORM
  entity files back into ``TableInfo`` objects so a script can be produced
  from an entities directory without a database connection.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from dbscaffold.errors import OutputPathError
from dbscaffold.models import (
    ColumnInfo,
    DatabaseDialect,
    ForeignKeyInfo,
    SqlConfig,
    TableInfo,
    normalize_dialect,
)
from dbscaffold.type_mapping import resolve, to_ddl_type
from dbscaffold.utils import timestamp_token, to_snake_case, write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("dbscaffold.ddl")

_SEPARATOR: str = "-- ==================================="

_PG_CAST_RE: re.Pattern[str] = re.compile(r"::[\w\s\[\]\".]+$")
_NUMERIC_RE: re.Pattern[str] = re.compile(r"^-?\d+(\.\d+)?$")
_SIZED_STRING_TYPES: Tuple[str, ...] = ("VARCHAR", "CHAR", "NVARCHAR", "NCHAR")
_DECIMAL_TYPES: Tuple[str, ...] = ("DECIMAL", "NUMERIC")
_TIMESTAMP_FUNCTIONS: Set[str] = {
    "now()",
    "current_timestamp",
    "current_timestamp()",
    "getdate()",
    "sysdatetime()",
    "localtimestamp",
}
_PERSISTENCE_NAMES: Set[str] = {
    "varchar", "char", "text", "int", "bigint", "smallint", "decimal", "numeric",
    "real", "double", "float", "boolean", "date", "time", "datetime", "timestamp",
    "timestamptz", "json", "jsonb", "uuid", "bytea", "enum", "simple-array", "rowversion",
}


def quote_identifier(name: str, dialect: str) -> str:
    """Quote *name* the way *dialect* expects (``"x"``, `` `x` `` or ``[x]``)."""
    dialect = str(dialect)
    if dialect == DatabaseDialect.MYSQL.value:
        return "`" + name.replace("`", "``") + "`"
    if dialect == DatabaseDialect.MSSQL.value:
        return "[" + name.replace("]", "]]") + "]"
    return '"' + name.replace('"', '""') + '"'


def _sql_string(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


# ---------------------------------------------------------------------------
# Script generator
# ---------------------------------------------------------------------------


class SqlScriptGenerator:
    """
    Renders CREATE TABLE scripts.

    Args:
        dialect: Target dialect of the script.
        sql_config: Script options (comments, DROP, MySQL table options).
        schema_name: Schema used to qualify table names on Postgres and
            MSSQL.  MySQL scripts are never schema-qualified.
    """

    def __init__(
        self,
        dialect: str,
        sql_config: Optional[SqlConfig] = None,
        schema_name: Optional[str] = None,
    ) -> None:
        self._dialect: str = str(normalize_dialect(dialect))
        self._options: SqlConfig = sql_config or SqlConfig()
        self._schema: Optional[str] = schema_name or None
        self.warnings: List[str] = []

    # -----------------------------------------------------------------
    # Naming
    # -----------------------------------------------------------------

    def _q(self, name: str) -> str:
        return quote_identifier(name, self._dialect)

    def _table_ref(self, table_name: str) -> str:
        if self._schema and self._dialect != DatabaseDialect.MYSQL.value:
            return f"{self._q(self._schema)}.{self._q(table_name)}"
        return self._q(table_name)

    # -----------------------------------------------------------------
    # Column rendering
    # -----------------------------------------------------------------

    def column_type(self, column: ColumnInfo) -> str:
        """DDL type token for *column*, including length / precision."""
        native: str = column.native_type.strip().lower()

        if column.is_auto_increment and self._dialect == DatabaseDialect.POSTGRES.value:
            return "BIGSERIAL" if ("bigint" in native or "int8" in native or "bigserial" in native) else "SERIAL"

        if self._dialect == DatabaseDialect.POSTGRES.value and native.endswith("[]"):
            return column.native_type.upper()

        if native in _PERSISTENCE_NAMES:
            persistence: str = native
        else:
            persistence = resolve(column.native_type, self._dialect).persistence_type
        ddl: str = to_ddl_type(persistence, self._dialect)

        if persistence == "enum":
            if self._dialect == DatabaseDialect.MYSQL.value and column.enum_values:
                return "ENUM(" + ", ".join(_sql_string(v) for v in column.enum_values) + ")"
            width: int = column.max_length or max([len(v) for v in column.enum_values or []] + [255])
            return f"{ddl}({width})"

        if ddl in _SIZED_STRING_TYPES:
            if column.max_length:
                return f"{ddl}({column.max_length})"
            if self._dialect == DatabaseDialect.MSSQL.value and "VAR" in ddl:
                # unbounded (max) columns come back without a length
                return f"{ddl}(MAX)"
            if self._dialect != DatabaseDialect.POSTGRES.value:
                return f"{ddl}(255)"
            return ddl

        if ddl in _DECIMAL_TYPES and column.numeric_precision:
            return f"{ddl}({column.numeric_precision}, {column.numeric_scale or 0})"

        if self._dialect == DatabaseDialect.MYSQL.value and "unsigned" in native:
            return f"{ddl} UNSIGNED"

        return ddl

    def format_default(self, column: ColumnInfo, ddl_type: str) -> Optional[str]:
        """Render a catalog default for a DEFAULT clause, or ``None`` to omit it."""
        if column.default_value is None or column.is_auto_increment:
            return None
        raw: str = _PG_CAST_RE.sub("", column.default_value.strip()).strip()
        lowered: str = raw.lower()
        if not raw or lowered.startswith("nextval("):
            return None
        if lowered == "null":
            return "NULL"
        if lowered in _TIMESTAMP_FUNCTIONS:
            return "CURRENT_TIMESTAMP"
        if lowered in ("current_date", "curdate()"):
            return "CURRENT_DATE"
        if len(raw) >= 2 and raw[0] == "'" and raw[-1] == "'":
            return raw
        if lowered in ("true", "false"):
            if self._dialect == DatabaseDialect.POSTGRES.value:
                return lowered
            return "1" if lowered == "true" else "0"
        if _NUMERIC_RE.match(raw):
            if ddl_type == "BOOLEAN" and raw in ("0", "1"):
                return "true" if raw == "1" else "false"
            return raw
        if "(" in raw or lowered.startswith("current_"):
            return raw
        return _sql_string(raw)

    def column_definition(self, column: ColumnInfo) -> str:
        ddl_type: str = self.column_type(column)
        parts: List[str] = [f"  {self._q(column.name)}", ddl_type]
        if column.is_auto_increment and self._dialect == DatabaseDialect.MSSQL.value:
            parts.append("IDENTITY(1,1)")
        if not column.nullable and not column.is_primary_key:
            parts.append("NOT NULL")
        default: Optional[str] = self.format_default(column, ddl_type)
        if default is not None:
            parts.append(f"DEFAULT {default}")
        if column.is_auto_increment and self._dialect == DatabaseDialect.MYSQL.value:
            parts.append("AUTO_INCREMENT")
        if (
            column.comment
            and self._options.include_comments
            and self._dialect == DatabaseDialect.MYSQL.value
        ):
            parts.append(f"COMMENT {_sql_string(column.comment)}")
        return " ".join(parts)

    # -----------------------------------------------------------------
    # Script sections
    # -----------------------------------------------------------------

    def _header(self, table_count: int) -> List[str]:
        lines: List[str] = [
            "-- Generated CREATE TABLE scripts",
            f"-- Dialect: {self._dialect.upper()}",
            f"-- Generated at: {datetime.now(timezone.utc).isoformat()}",
            f"-- Total tables: {table_count}",
            "",
        ]
        if self._dialect == DatabaseDialect.MYSQL.value:
            lines += [
                "-- MySQL specific settings",
                "SET FOREIGN_KEY_CHECKS = 0;",
                'SET SQL_MODE = "NO_AUTO_VALUE_ON_ZERO";',
                "SET AUTOCOMMIT = 0;",
                "START TRANSACTION;",
                'SET time_zone = "+00:00";',
                "",
            ]
        elif self._dialect == DatabaseDialect.POSTGRES.value:
            lines.append("-- PostgreSQL specific settings")
            if self._schema and self._schema != "public":
                lines.append(f"CREATE SCHEMA IF NOT EXISTS {self._q(self._schema)};")
                lines.append(f"SET search_path TO {self._q(self._schema)};")
            lines.append("")
        else:
            lines += ["-- SQL Server specific settings", "SET ANSI_NULLS ON;", "SET QUOTED_IDENTIFIER ON;", ""]
        return lines

    def _table_block(self, table: TableInfo) -> List[str]:
        ref: str = self._table_ref(table.name)
        lines: List[str] = []

        if self._options.include_comments:
            lines.append(f"-- Table: {table.name}")
            if table.comment:
                lines.append(f"-- {table.comment}")
            lines.append("")

        if self._options.include_drop_if_exists:
            lines += [f"DROP TABLE IF EXISTS {ref};", ""]

        create: str = "CREATE TABLE" if self._dialect == DatabaseDialect.MSSQL.value else "CREATE TABLE IF NOT EXISTS"
        lines.append(f"{create} {ref} (")

        definitions: List[str] = [self.column_definition(c) for c in table.columns]
        pk_columns: List[str] = table.primary_keys or [c.name for c in table.columns if c.is_primary_key]
        if pk_columns:
            definitions.append(
                f"  CONSTRAINT {self._q(f'pk_{table.name}')} PRIMARY KEY "
                f"({', '.join(self._q(c) for c in pk_columns)})"
            )
        for column in table.columns:
            if column.is_unique and column.name not in pk_columns:
                definitions.append(
                    f"  CONSTRAINT {self._q(f'uk_{table.name}_{column.name}')} "
                    f"UNIQUE ({self._q(column.name)})"
                )
        lines.append(",\n".join(definitions))

        if self._dialect == DatabaseDialect.MYSQL.value:
            options: List[str] = []
            if self._options.engine_type:
                options.append(f"ENGINE={self._options.engine_type}")
            if self._options.charset:
                options.append(f"DEFAULT CHARSET={self._options.charset}")
            if self._options.collation:
                options.append(f"COLLATE={self._options.collation}")
            if table.comment and self._options.include_comments:
                options.append(f"COMMENT={_sql_string(table.comment)}")
            lines.append(f") {' '.join(options)};" if options else ");")
        else:
            lines.append(");")

        lines += self._comment_statements(table, ref)
        lines += self._index_statements(table, ref, pk_columns)
        return lines

    def _comment_statements(self, table: TableInfo, ref: str) -> List[str]:
        if not self._options.include_comments or self._dialect == DatabaseDialect.MYSQL.value:
            return []
        commented: List[ColumnInfo] = [c for c in table.columns if c.comment]
        if not table.comment and not commented:
            return []
        lines: List[str] = [""]
        if self._dialect == DatabaseDialect.POSTGRES.value:
            if table.comment:
                lines.append(f"COMMENT ON TABLE {ref} IS {_sql_string(table.comment)};")
            for column in commented:
                lines.append(
                    f"COMMENT ON COLUMN {ref}.{self._q(column.name)} IS {_sql_string(column.comment or '')};"
                )
            return lines

        schema: str = self._schema or "dbo"
        if table.comment:
            lines.append(
                f"EXEC sp_addextendedproperty 'MS_Description', N{_sql_string(table.comment)}, "
                f"'SCHEMA', N{_sql_string(schema)}, 'TABLE', N{_sql_string(table.name)};"
            )
        for column in commented:
            lines.append(
                f"EXEC sp_addextendedproperty 'MS_Description', N{_sql_string(column.comment or '')}, "
                f"'SCHEMA', N{_sql_string(schema)}, 'TABLE', N{_sql_string(table.name)}, "
                f"'COLUMN', N{_sql_string(column.name)};"
            )
        return lines

    def _index_statements(self, table: TableInfo, ref: str, pk_columns: List[str]) -> List[str]:
        lines: List[str] = []
        covered: Set[Tuple[str, ...]] = {tuple(pk_columns)}
        for column in table.columns:
            if column.is_unique:
                covered.add((column.name,))

        for index in table.indexes:
            key: Tuple[str, ...] = tuple(index.columns)
            if index.is_primary or not index.columns or key in covered:
                continue
            covered.add(key)
            unique: str = "UNIQUE " if index.is_unique else ""
            lines += [
                "",
                f"CREATE {unique}INDEX {self._q(index.name)} ON {ref} "
                f"({', '.join(self._q(c) for c in index.columns)});",
            ]

        for fk in table.foreign_keys:
            if any(k and k[0] == fk.column_name for k in covered):
                continue
            covered.add((fk.column_name,))
            lines += [
                "",
                f"CREATE INDEX {self._q(f'idx_{table.name}_{fk.column_name}')} ON {ref} "
                f"({self._q(fk.column_name)});",
            ]
        return lines

    def _foreign_key_statements(self, tables: Sequence[TableInfo]) -> List[str]:
        known: Set[str] = {t.name for t in tables}
        lines: List[str] = []
        for table in tables:
            groups: Dict[str, List[ForeignKeyInfo]] = {}
            for fk in table.foreign_keys:
                name: str = fk.constraint_name or f"fk_{table.name}_{fk.column_name}"
                groups.setdefault(name, []).append(fk)

            for constraint, fks in groups.items():
                first: ForeignKeyInfo = fks[0]
                columns: str = ", ".join(self._q(fk.column_name) for fk in fks)
                targets: str = ", ".join(self._q(fk.target_column) for fk in fks)
                arrow: str = (
                    f"{table.name}.{'/'.join(fk.column_name for fk in fks)} -> "
                    f"{first.target_table}.{'/'.join(fk.target_column for fk in fks)}"
                )
                if first.target_table not in known:
                    message: str = (
                        f"Foreign key {arrow} skipped: table '{first.target_table}' "
                        "is not part of this script."
                    )
                    self.warnings.append(message)
                    logger.warning(message)
                    lines += [f"-- Skipped foreign key: {arrow} (target table not in script)", ""]
                    continue
                statement: List[str] = [
                    f"ALTER TABLE {self._table_ref(table.name)}",
                    f"ADD CONSTRAINT {self._q(constraint)}",
                    f"FOREIGN KEY ({columns})",
                    f"REFERENCES {self._table_ref(first.target_table)} ({targets})",
                ]
                if first.on_delete:
                    statement.append(f"ON DELETE {first.on_delete.upper()}")
                if first.on_update:
                    statement.append(f"ON UPDATE {first.on_update.upper()}")
                lines += [f"-- Foreign key: {arrow}", " ".join(statement) + ";", ""]
        return lines

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def generate(self, tables: Sequence[TableInfo]) -> str:
        """Render the full script for *tables*, in the order given."""
        self.warnings = []
        lines: List[str] = self._header(len(tables))

        for i, table in enumerate(tables):
            lines += self._table_block(table)
            if i < len(tables) - 1:
                lines += ["", _SEPARATOR, ""]

        lines += ["", _SEPARATOR, "-- FOREIGN KEY CONSTRAINTS", _SEPARATOR, ""]
        lines += self._foreign_key_statements(tables)

        if self._dialect == DatabaseDialect.MYSQL.value:
            lines += ["SET FOREIGN_KEY_CHECKS = 1;", "COMMIT;", ""]

        content: str = "\n".join(lines)
        logger.info(
            "Generated %s DDL script for %d table(s) — %d lines.",
            self._dialect,
            len(tables),
            len(lines),
        )
        return content

    def write(self, tables: Sequence[TableInfo], sql_dir: Path) -> Path:
        """
        Render and write ``create_tables_<dialect>_<timestamp>.sql``.

        Raises:
            OutputPathError: If the directory or file cannot be written.
        """
        content: str = self.generate(tables)
        target: Path = Path(sql_dir) / f"create_tables_{self._dialect}_{timestamp_token()}.sql"
        try:
            write_file(target, content)
        except OSError as exc:
            raise OutputPathError(
                f"Cannot write SQL script to '{target}': {exc}",
                details={"path": str(target)},
            ) from exc
        logger.info("SQL script written: %s", target)
        return target


# ---------------------------------------------------------------------------
# Entity file parser
# ---------------------------------------------------------------------------

_ENTITY_RE: re.Pattern[str] = re.compile(r"@Entity\(\s*['\"`]([^'\"`]+)['\"`]")
_CLASS_RE: re.Pattern[str] = re.compile(r"export\s+class\s+(\w+)")
_TABLE_COMMENT_RE: re.Pattern[str] = re.compile(r"/\*\*\s*(.*?)\s*\*/\s*@Entity", re.DOTALL)
_COLUMN_DECORATOR_RE: re.Pattern[str] = re.compile(
    r"^\s*@(Column|PrimaryGeneratedColumn|PrimaryColumn|CreateDateColumn|"
    r"UpdateDateColumn|DeleteDateColumn|VersionColumn)\s*\((.*)\)\s*$"
)
_MANY_TO_ONE_RE: re.Pattern[str] = re.compile(r"^\s*@ManyToOne\(\s*\(\)\s*=>\s*(\w+)(.*)$")
_JOIN_COLUMN_RE: re.Pattern[str] = re.compile(r"^\s*@JoinColumn\(\s*\{\s*name:\s*['\"`]([^'\"`]+)['\"`]")
_PROPERTY_RE: re.Pattern[str] = re.compile(r"^\s*(?:readonly\s+)?(\w+)([?!])?\s*:\s*([^;=]+)")

_OPTION_PATTERNS: Dict[str, re.Pattern[str]] = {
    "name": re.compile(r"\bname:\s*['\"`]([^'\"`]+)['\"`]"),
    "type": re.compile(r"\btype:\s*['\"`]([^'\"`]+)['\"`]"),
    "length": re.compile(r"\blength:\s*(\d+)"),
    "precision": re.compile(r"\bprecision:\s*(\d+)"),
    "scale": re.compile(r"\bscale:\s*(\d+)"),
    "nullable": re.compile(r"\bnullable:\s*(true|false)"),
    "unique": re.compile(r"\bunique:\s*(true|false)"),
    "comment": re.compile(r"\bcomment:\s*'((?:[^'\\]|\\.)*)'"),
    "enum": re.compile(r"\benum:\s*\[([^\]]*)\]"),
    "on_delete": re.compile(r"\bonDelete:\s*['\"`]([^'\"`]+)['\"`]"),
    "on_update": re.compile(r"\bonUpdate:\s*['\"`]([^'\"`]+)['\"`]"),
}
_DEFAULT_RE: re.Pattern[str] = re.compile(
    r"\bdefault:\s*(?:\(\)\s*=>\s*(['\"`])(.*?)\1|'((?:[^'\\]|\\.)*)'|([\w.-]+))"
)
_LEADING_STRING_ARG_RE: re.Pattern[str] = re.compile(r"^\s*['\"`](\w+)['\"`]")


def _parse_options(args: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {}
    for key, pattern in _OPTION_PATTERNS.items():
        match = pattern.search(args)
        if not match:
            continue
        value: str = match.group(1)
        if key in ("nullable", "unique"):
            options[key] = value == "true"
        elif key in ("length", "precision", "scale"):
            options[key] = int(value)
        elif key == "enum":
            options[key] = re.findall(r"'((?:[^'\\]|\\.)*)'", value)
        elif key == "comment":
            options[key] = value.replace("\\'", "'")
        else:
            options[key] = value
    default = _DEFAULT_RE.search(args)
    if default:
        if default.group(2) is not None:
            options["default"] = default.group(2).replace('\\"', '"')
        elif default.group(3) is not None:
            options["default"] = _sql_string(default.group(3).replace("\\'", "'"))
        else:
            options["default"] = default.group(4)
    leading = _LEADING_STRING_ARG_RE.match(args)
    if leading:
        options["strategy"] = leading.group(1)
    return options


def _native_type_for(ts_type: str, options: Dict[str, Any]) -> str:
    if options.get("type"):
        return str(options["type"])
    clean: str = re.sub(r"\s*\|\s*(null|undefined)", "", ts_type).strip()
    if clean == "string":
        return "varchar" if options.get("length") else "text"
    if clean == "number":
        return "decimal" if options.get("precision") else "int"
    if clean == "boolean":
        return "boolean"
    if clean == "Date":
        return "timestamp"
    if clean == "Buffer":
        return "bytea"
    if clean.endswith("[]") or clean == "any":
        return "json"
    return "varchar"


@dataclass
class _ParsedRelation:
    column_name: str
    target_class: str
    on_delete: Optional[str] = None
    on_update: Optional[str] = None


@dataclass
class _ParsedEntity:
    table_name: str
    class_name: str
    comment: Optional[str]
    columns: List[Dict[str, Any]] = field(default_factory=list)
    relations: List[_ParsedRelation] = field(default_factory=list)


def _parse_entity_text(text: str, source: str) -> Optional[_ParsedEntity]:
    class_match = _CLASS_RE.search(text)
    entity_match = _ENTITY_RE.search(text)
    if entity_match:
        table_name: str = entity_match.group(1)
    elif class_match:
        table_name = to_snake_case(class_match.group(1))
    else:
        logger.warning("No @Entity table name or exported class in %s; skipped.", source)
        return None

    comment_match = _TABLE_COMMENT_RE.search(text)
    parsed = _ParsedEntity(
        table_name=table_name,
        class_name=class_match.group(1) if class_match else "",
        comment=comment_match.group(1).strip() if comment_match else None,
    )

    pending_column: Optional[Tuple[str, Dict[str, Any]]] = None
    pending_relation: Optional[Tuple[str, Dict[str, Any]]] = None
    join_column: Optional[str] = None

    for line in text.splitlines():
        decorator = _COLUMN_DECORATOR_RE.match(line)
        if decorator:
            pending_column = (decorator.group(1), _parse_options(decorator.group(2)))
            continue
        relation = _MANY_TO_ONE_RE.match(line)
        if relation:
            pending_relation = (relation.group(1), _parse_options(relation.group(2)))
            continue
        join = _JOIN_COLUMN_RE.match(line)
        if join:
            join_column = join.group(1)
            continue
        if line.strip().startswith("@"):
            continue
        prop = _PROPERTY_RE.match(line)
        if not prop:
            continue

        name, marker, ts_type = prop.group(1), prop.group(2), prop.group(3)
        if pending_relation is not None:
            target_class, rel_options = pending_relation
            parsed.relations.append(
                _ParsedRelation(
                    column_name=join_column or f"{name}_id",
                    target_class=target_class,
                    on_delete=rel_options.get("on_delete"),
                    on_update=rel_options.get("on_update"),
                )
            )
        elif pending_column is not None:
            parsed.columns.append(_column_kwargs(pending_column[0], pending_column[1], name, marker, ts_type))
        pending_column = pending_relation = None
        join_column = None

    return parsed


def _column_kwargs(
    decorator: str,
    options: Dict[str, Any],
    property_name: str,
    marker: Optional[str],
    ts_type: str,
) -> Dict[str, Any]:
    is_primary: bool = decorator in ("PrimaryGeneratedColumn", "PrimaryColumn")
    auto_increment: bool = False
    default: Optional[str] = options.get("default")

    if decorator == "PrimaryGeneratedColumn":
        if options.get("strategy") == "uuid":
            native = "uuid"
        else:
            native = str(options.get("type") or "int")
            auto_increment = True
    elif decorator in ("CreateDateColumn", "UpdateDateColumn", "DeleteDateColumn"):
        native = str(options.get("type") or "timestamp")
        if decorator != "DeleteDateColumn" and default is None:
            default = "CURRENT_TIMESTAMP"
    elif decorator == "VersionColumn":
        native = str(options.get("type") or "int")
    else:
        native = _native_type_for(ts_type, options)

    if "nullable" in options:
        nullable: bool = bool(options["nullable"])
    else:
        nullable = marker == "?" or decorator == "DeleteDateColumn"

    return {
        "name": options.get("name") or property_name,
        "native_type": native,
        "nullable": nullable and not is_primary,
        "default_value": default,
        "max_length": options.get("length"),
        "numeric_precision": options.get("precision"),
        "numeric_scale": options.get("scale"),
        "comment": options.get("comment"),
        "is_auto_increment": auto_increment,
        "enum_values": options.get("enum") or None,
        "is_primary_key": is_primary,
        "is_unique": bool(options.get("unique")),
    }


def _build_table(parsed: _ParsedEntity, known: Dict[str, _ParsedEntity]) -> TableInfo:
    foreign_keys: List[ForeignKeyInfo] = []
    for rel in parsed.relations:
        target: Optional[_ParsedEntity] = known.get(rel.target_class)
        target_table: str = target.table_name if target else to_snake_case(rel.target_class)
        target_column: str = "id"
        if target:
            target_pks = [c["name"] for c in target.columns if c["is_primary_key"]]
            if target_pks:
                target_column = target_pks[0]
        foreign_keys.append(
            ForeignKeyInfo(
                constraint_name=f"fk_{parsed.table_name}_{rel.column_name}",
                column_name=rel.column_name,
                target_table=target_table,
                target_column=target_column,
                on_delete=rel.on_delete,
                on_update=rel.on_update,
            )
        )
    fk_by_column: Dict[str, ForeignKeyInfo] = {fk.column_name: fk for fk in foreign_keys}

    columns: List[ColumnInfo] = []
    for position, kwargs in enumerate(parsed.columns, start=1):
        columns.append(
            ColumnInfo(
                ordinal_position=position,
                foreign_key_target=fk_by_column.get(kwargs["name"]),
                **kwargs,
            )
        )
    return TableInfo(
        name=parsed.table_name,
        comment=parsed.comment,
        columns=columns,
        primary_keys=[c.name for c in columns if c.is_primary_key],
        foreign_keys=foreign_keys,
    )


def parse_entity_file(path: Path) -> Optional[TableInfo]:
    """Parse one entity file; returns ``None`` when it declares no entity."""
    path = Path(path)
    parsed = _parse_entity_text(path.read_text(encoding="utf-8"), str(path))
    if parsed is None:
        return None
    return _build_table(parsed, {parsed.class_name: parsed})


def parse_entity_directory(directory: Path) -> List[TableInfo]:
    """
    Parse every ``*.entity.ts`` below *directory*, sorted by table name.

    Relations between parsed entities become foreign keys pointing at the
    target entity's table and primary key.  Files that fail to parse are
    logged and skipped.

    Raises:
        FileNotFoundError: If *directory* does not exist.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Entities directory not found: {directory}")

    parsed_entities: List[_ParsedEntity] = []
    for path in sorted(directory.rglob("*.entity.ts")):
        if path.name == "index.ts" or path.name.endswith((".spec.ts", ".test.ts")):
            continue
        try:
            parsed = _parse_entity_text(path.read_text(encoding="utf-8"), str(path))
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Cannot read entity file %s: %s", path, exc)
            continue
        if parsed is not None:
            parsed_entities.append(parsed)

    known: Dict[str, _ParsedEntity] = {p.class_name: p for p in parsed_entities if p.class_name}
    tables: List[TableInfo] = []
    for parsed in parsed_entities:
        try:
            tables.append(_build_table(parsed, known))
        except ValueError as exc:
            logger.warning("Entity '%s' has an invalid shape and was skipped: %s", parsed.table_name, exc)

    tables.sort(key=lambda t: t.name)
    logger.info("Parsed %d entity file(s) from %s", len(tables), directory)
    return tables


__all__: List[str] = [
    "SqlScriptGenerator",
    "quote_identifier",
    "parse_entity_file",
    "parse_entity_directory",
]

logger.debug("dbscaffold.ddl loaded — %d public symbols.", len(__all__))

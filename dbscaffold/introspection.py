# File: dbscaffold/introspection.py
"""
dbscaffold - Schema Introspectors
===================================
Reads a live database catalog and assembles the canonical
:class:`~dbscaffold.models.DatabaseSchema`.

Every dialect implements the same small contract::

    get_dialect()                      -> str
    get_all_tables()                   -> List[TableInfo]
    get_table_info(name, schema)       -> TableInfo
    get_database_schema()              -> DatabaseSchema   (shared)

Catalog access goes through SQLAlchemy Core: ``text()`` statements with
named binds, executed on a connection from an ``Engine`` and read back via
``.mappings()``.  Any object exposing ``connect()`` with the same
connection surface works, which is how the tests drive the introspectors
without a server.

Failure semantics:

* the table-listing query failing raises :class:`IntrospectionError`,
* a failing per-table query drops that table, logs a warning and
  records it in :attr:`SchemaIntrospector.warnings`,
* failing to open a connection raises :class:`ConnectionFailedError`.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from dbscaffold.errors import (
    ConfigurationError,
    ConnectionFailedError,
    IntrospectionError,
)
from dbscaffold.models import (
    ColumnInfo,
    DatabaseConfig,
    DatabaseDialect,
    DatabaseSchema,
    ForeignKeyInfo,
    IndexInfo,
    TableInfo,
    normalize_dialect,
)
from dbscaffold.utils import parse_enum_values

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("dbscaffold.introspection")

Row = Dict[str, Any]


# ---------------------------------------------------------------------------
# Row helpers
# ---------------------------------------------------------------------------


def _truthy(value: Any) -> bool:
    """Interpret catalog flags ('YES', 1, True, b'\\x01') as booleans."""
    if isinstance(value, str):
        return value.strip().upper() in {"YES", "Y", "TRUE", "T", "1"}
    if isinstance(value, (bytes, bytearray)):
        return any(value)
    return bool(value)


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value)
    return value if value.strip() else None


def _group_indexes(rows: List[Row]) -> List[IndexInfo]:
    """Fold one-row-per-indexed-column results into :class:`IndexInfo` values."""
    grouped: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        name: str = str(row["index_name"])
        entry = grouped.setdefault(
            name,
            {
                "name": name,
                "columns": [],
                "is_unique": _truthy(row.get("is_unique")),
                "is_primary": _truthy(row.get("is_primary")),
            },
        )
        column: Optional[str] = row.get("column_name")
        if column and column not in entry["columns"]:
            entry["columns"].append(column)
    return [IndexInfo(**grouped[name]) for name in sorted(grouped)]


# ---------------------------------------------------------------------------
# Abstract contract
# ---------------------------------------------------------------------------


class SchemaIntrospector(ABC):
    """
    Shared skeleton for the per-dialect catalog readers.

    Subclasses supply the catalog SQL and row normalisation; this class
    owns connection handling, per-table failure isolation and the final
    ``(schema, name)`` ordering.
    """

    def __init__(self, connection_source: Any, schema_name: Optional[str] = None) -> None:
        self._source: Any = connection_source
        self.schema_name: Optional[str] = schema_name
        self.warnings: List[str] = []
        self.failed_tables: List[str] = []
        self._active: Any = None

    # -----------------------------------------------------------------
    # Contract
    # -----------------------------------------------------------------

    @abstractmethod
    def get_dialect(self) -> str:
        """Return the dialect identifier (``postgres`` / ``mysql`` / ``mssql``)."""

    @abstractmethod
    def list_tables(self) -> List[Tuple[str, str, Optional[str]]]:
        """Return ``(schema, name, comment)`` for every user table."""

    @abstractmethod
    def get_table_info(self, name: str, schema: Optional[str] = None) -> TableInfo:
        """Introspect one table."""

    def get_all_tables(self) -> List[TableInfo]:
        """
        Introspect every listed table, skipping the ones whose catalog
        queries fail.
        """
        with self._session():
            listed = self._sorted_listing()
            logger.info("Found %d table(s) to introspect.", len(listed))
            tables: List[TableInfo] = []
            for schema, name, comment in listed:
                try:
                    info: TableInfo = self.get_table_info(name, schema)
                except Exception as exc:
                    message: str = (
                        f"Skipping table '{schema}.{name}': "
                        f"{type(exc).__name__}: {exc}"
                    )
                    logger.warning(message)
                    self.warnings.append(message)
                    self.failed_tables.append(name)
                    continue
                if comment and not info.comment:
                    info = info.model_copy(update={"comment": comment})
                tables.append(info)
                logger.debug("Introspected %r", info)
        return tables

    def list_table_names(self) -> List[str]:
        """Listed table names in ``(schema, name)`` order, without per-table queries."""
        with self._session():
            return [name for _, name, _ in self._sorted_listing()]

    def _sorted_listing(self) -> List[Tuple[str, str, Optional[str]]]:
        try:
            listed = self.list_tables()
        except SQLAlchemyError as exc:
            raise IntrospectionError(
                f"Table listing failed: {type(exc).__name__}: {exc}",
                details={"dialect": self.get_dialect(), "schema": self.schema_name},
            ) from exc
        return sorted(listed, key=lambda t: (t[0], t[1]))

    def get_database_schema(self) -> DatabaseSchema:
        """Build the full canonical schema."""
        tables: List[TableInfo] = self.get_all_tables()
        schema = DatabaseSchema(dialect=self.get_dialect(), tables=tables)
        logger.info("Schema loaded: %r", schema)
        return schema

    # -----------------------------------------------------------------
    # Connection handling
    # -----------------------------------------------------------------

    @contextmanager
    def _session(self) -> Iterator[Any]:
        """Hold one connection open for a whole introspection pass."""
        if self._active is not None:
            yield self._active
            return
        try:
            connection = self._source.connect()
        except SQLAlchemyError as exc:
            raise ConnectionFailedError(
                f"Could not connect to the {self.get_dialect()} database: {exc}",
                details={"dialect": self.get_dialect()},
            ) from exc
        with connection as conn:
            self._active = conn
            try:
                yield conn
            finally:
                self._active = None

    def _query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Row]:
        with self._session() as conn:
            try:
                result = conn.execute(text(sql), params or {})
                return [dict(row) for row in result.mappings()]
            except SQLAlchemyError:
                # a failed statement poisons the open transaction on postgres
                conn.rollback()
                raise

    # -----------------------------------------------------------------
    # Assembly
    # -----------------------------------------------------------------

    def _assemble(
        self,
        name: str,
        schema: str,
        comment: Optional[str],
        column_rows: List[Dict[str, Any]],
        primary_keys: List[str],
        foreign_keys: List[ForeignKeyInfo],
        indexes: List[IndexInfo],
    ) -> TableInfo:
        """Cross-link PK/FK/unique flags onto columns and build the table."""
        fk_by_column: Dict[str, ForeignKeyInfo] = {fk.column_name: fk for fk in foreign_keys}
        unique_columns = {
            idx.columns[0]
            for idx in indexes
            if idx.is_unique and not idx.is_primary and len(idx.columns) == 1
        }
        columns: List[ColumnInfo] = []
        for row in sorted(column_rows, key=lambda r: r["ordinal_position"]):
            col_name: str = row["name"]
            columns.append(
                ColumnInfo(
                    **row,
                    is_primary_key=col_name in primary_keys,
                    is_unique=col_name in unique_columns,
                    foreign_key_target=fk_by_column.get(col_name),
                )
            )
        return TableInfo(
            name=name,
            schema_name=schema,
            comment=comment,
            columns=columns,
            primary_keys=primary_keys,
            foreign_keys=foreign_keys,
            indexes=indexes,
        )

    @staticmethod
    def _foreign_keys_from_rows(rows: List[Row]) -> List[ForeignKeyInfo]:
        seen: set = set()
        fks: List[ForeignKeyInfo] = []
        for row in rows:
            key = (row["constraint_name"], row["column_name"])
            if key in seen:
                continue
            seen.add(key)
            fks.append(
                ForeignKeyInfo(
                    constraint_name=row["constraint_name"] or "",
                    column_name=row["column_name"],
                    target_schema=row.get("target_schema") or "",
                    target_table=row["target_table"],
                    target_column=row.get("target_column") or "id",
                    on_delete=_optional_str(row.get("on_delete")),
                    on_update=_optional_str(row.get("on_update")),
                )
            )
        return fks

    @property
    def connection_source(self) -> Any:
        """The engine (or engine-like object) queries run against."""
        return self._source

    def __repr__(self) -> str:
        return f"<{type(self).__name__} schema={self.schema_name!r}>"


# ---------------------------------------------------------------------------
# PostgreSQL
# ---------------------------------------------------------------------------


class PostgresIntrospector(SchemaIntrospector):
    """Reads ``information_schema`` plus ``pg_catalog`` for comments, enums and indexes."""

    TABLES_SQL: str = """
        SELECT t.table_schema AS table_schema,
               t.table_name AS table_name,
               obj_description(c.oid, 'pg_class') AS table_comment
        FROM information_schema.tables t
        JOIN pg_namespace n ON n.nspname = t.table_schema
        LEFT JOIN pg_class c ON c.relname = t.table_name AND c.relnamespace = n.oid
        WHERE t.table_type = 'BASE TABLE'
          AND t.table_schema NOT IN ('information_schema', 'pg_catalog', 'pg_toast')
        ORDER BY t.table_schema, t.table_name
    """

    COLUMNS_SQL: str = """
        SELECT c.column_name AS column_name,
               c.data_type AS data_type,
               c.udt_name AS udt_name,
               c.is_nullable AS is_nullable,
               c.column_default AS column_default,
               c.character_maximum_length AS character_maximum_length,
               c.numeric_precision AS numeric_precision,
               c.numeric_scale AS numeric_scale,
               c.ordinal_position AS ordinal_position,
               c.is_identity AS is_identity,
               col_description(pgc.oid, c.ordinal_position) AS column_comment
        FROM information_schema.columns c
        JOIN pg_namespace pgn ON pgn.nspname = c.table_schema
        LEFT JOIN pg_class pgc ON pgc.relname = c.table_name AND pgc.relnamespace = pgn.oid
        WHERE c.table_name = :table AND c.table_schema = :schema
        ORDER BY c.ordinal_position
    """

    ENUM_SQL: str = """
        SELECT e.enumlabel AS label
        FROM pg_enum e
        JOIN pg_type t ON e.enumtypid = t.oid
        JOIN pg_namespace n ON t.typnamespace = n.oid
        WHERE t.typname = :type_name AND n.nspname = :schema
        ORDER BY e.enumsortorder
    """

    PRIMARY_KEYS_SQL: str = """
        SELECT kcu.column_name AS column_name
        FROM information_schema.table_constraints tc
        JOIN information_schema.key_column_usage kcu
          ON tc.constraint_name = kcu.constraint_name
         AND tc.table_schema = kcu.table_schema
        WHERE tc.constraint_type = 'PRIMARY KEY'
          AND tc.table_name = :table
          AND tc.table_schema = :schema
        ORDER BY kcu.ordinal_position
    """

    FOREIGN_KEYS_SQL: str = """
        SELECT tc.constraint_name AS constraint_name,
               kcu.column_name AS column_name,
               ccu.table_schema AS target_schema,
               ccu.table_name AS target_table,
               ccu.column_name AS target_column,
               rc.delete_rule AS on_delete,
               rc.update_rule AS on_update
        FROM information_schema.table_constraints tc
        JOIN information_schema.key_column_usage kcu
          ON tc.constraint_name = kcu.constraint_name
         AND tc.table_schema = kcu.table_schema
        JOIN information_schema.constraint_column_usage ccu
          ON ccu.constraint_name = tc.constraint_name
         AND ccu.constraint_schema = tc.table_schema
        JOIN information_schema.referential_constraints rc
          ON rc.constraint_name = tc.constraint_name
         AND rc.constraint_schema = tc.table_schema
        WHERE tc.constraint_type = 'FOREIGN KEY'
          AND tc.table_name = :table
          AND tc.table_schema = :schema
        ORDER BY tc.constraint_name, kcu.ordinal_position
    """

    INDEXES_SQL: str = """
        SELECT i.relname AS index_name,
               a.attname AS column_name,
               ix.indisunique AS is_unique,
               ix.indisprimary AS is_primary
        FROM pg_class t
        JOIN pg_namespace n ON t.relnamespace = n.oid
        JOIN pg_index ix ON t.oid = ix.indrelid
        JOIN pg_class i ON i.oid = ix.indexrelid
        JOIN LATERAL unnest(ix.indkey) WITH ORDINALITY AS k(attnum, ordinality) ON true
        JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum
        WHERE t.relname = :table AND n.nspname = :schema
        ORDER BY i.relname, k.ordinality
    """

    def get_dialect(self) -> str:
        return DatabaseDialect.POSTGRES.value

    def list_tables(self) -> List[Tuple[str, str, Optional[str]]]:
        rows: List[Row] = self._query(self.TABLES_SQL)
        return [
            (r["table_schema"], r["table_name"], _optional_str(r.get("table_comment")))
            for r in rows
            if self.schema_name is None or r["table_schema"] == self.schema_name
        ]

    def get_table_info(self, name: str, schema: Optional[str] = None) -> TableInfo:
        schema = schema or self.schema_name or "public"
        params: Dict[str, Any] = {"table": name, "schema": schema}
        column_rows: List[Dict[str, Any]] = [
            self._normalize_column(row, schema) for row in self._query(self.COLUMNS_SQL, params)
        ]
        primary_keys: List[str] = [
            r["column_name"] for r in self._query(self.PRIMARY_KEYS_SQL, params)
        ]
        foreign_keys = self._foreign_keys_from_rows(self._query(self.FOREIGN_KEYS_SQL, params))
        indexes = _group_indexes(self._query(self.INDEXES_SQL, params))
        return self._assemble(name, schema, None, column_rows, primary_keys, foreign_keys, indexes)

    def _normalize_column(self, row: Row, schema: str) -> Dict[str, Any]:
        data_type: str = str(row["data_type"])
        udt_name: str = str(row.get("udt_name") or "")
        native: str = data_type
        enum_values: Optional[List[str]] = None

        if data_type.upper() == "ARRAY":
            native = f"{udt_name.lstrip('_')}[]" if udt_name else "ARRAY"
        elif data_type.upper() == "USER-DEFINED":
            native = udt_name or data_type
            labels: List[str] = [
                r["label"]
                for r in self._query(self.ENUM_SQL, {"type_name": udt_name, "schema": schema})
            ]
            if labels:
                enum_values = labels
                native = "enum"

        default: Optional[str] = _optional_str(row.get("column_default"))
        auto_increment: bool = _truthy(row.get("is_identity")) or bool(
            default and default.lower().startswith("nextval(")
        )
        return {
            "name": row["column_name"],
            "native_type": native,
            "nullable": _truthy(row.get("is_nullable")),
            "default_value": default,
            "max_length": _optional_int(row.get("character_maximum_length")),
            "numeric_precision": _optional_int(row.get("numeric_precision")),
            "numeric_scale": _optional_int(row.get("numeric_scale")),
            "comment": _optional_str(row.get("column_comment")),
            "is_auto_increment": auto_increment,
            "ordinal_position": int(row["ordinal_position"]),
            "enum_values": enum_values,
        }


# ---------------------------------------------------------------------------
# MySQL / MariaDB
# ---------------------------------------------------------------------------


class MySQLIntrospector(SchemaIntrospector):
    """Reads MySQL ``information_schema``; schema defaults to the connected database."""

    TABLES_SQL: str = """
        SELECT t.TABLE_SCHEMA AS table_schema,
               t.TABLE_NAME AS table_name,
               t.TABLE_COMMENT AS table_comment
        FROM information_schema.TABLES t
        WHERE t.TABLE_TYPE = 'BASE TABLE'
          AND t.TABLE_SCHEMA NOT IN ('information_schema', 'mysql', 'performance_schema', 'sys')
          AND t.TABLE_SCHEMA = COALESCE(:schema, DATABASE())
        ORDER BY t.TABLE_SCHEMA, t.TABLE_NAME
    """

    COLUMNS_SQL: str = """
        SELECT c.COLUMN_NAME AS column_name,
               c.DATA_TYPE AS data_type,
               c.COLUMN_TYPE AS column_type,
               c.IS_NULLABLE AS is_nullable,
               c.COLUMN_DEFAULT AS column_default,
               c.CHARACTER_MAXIMUM_LENGTH AS character_maximum_length,
               c.NUMERIC_PRECISION AS numeric_precision,
               c.NUMERIC_SCALE AS numeric_scale,
               c.ORDINAL_POSITION AS ordinal_position,
               c.COLUMN_COMMENT AS column_comment,
               c.EXTRA AS extra
        FROM information_schema.COLUMNS c
        WHERE c.TABLE_NAME = :table AND c.TABLE_SCHEMA = :schema
        ORDER BY c.ORDINAL_POSITION
    """

    PRIMARY_KEYS_SQL: str = """
        SELECT COLUMN_NAME AS column_name
        FROM information_schema.KEY_COLUMN_USAGE
        WHERE CONSTRAINT_NAME = 'PRIMARY'
          AND TABLE_NAME = :table
          AND TABLE_SCHEMA = :schema
        ORDER BY ORDINAL_POSITION
    """

    FOREIGN_KEYS_SQL: str = """
        SELECT kcu.CONSTRAINT_NAME AS constraint_name,
               kcu.COLUMN_NAME AS column_name,
               kcu.REFERENCED_TABLE_SCHEMA AS target_schema,
               kcu.REFERENCED_TABLE_NAME AS target_table,
               kcu.REFERENCED_COLUMN_NAME AS target_column,
               rc.DELETE_RULE AS on_delete,
               rc.UPDATE_RULE AS on_update
        FROM information_schema.KEY_COLUMN_USAGE kcu
        JOIN information_schema.REFERENTIAL_CONSTRAINTS rc
          ON kcu.CONSTRAINT_NAME = rc.CONSTRAINT_NAME
         AND kcu.CONSTRAINT_SCHEMA = rc.CONSTRAINT_SCHEMA
        WHERE kcu.TABLE_NAME = :table
          AND kcu.TABLE_SCHEMA = :schema
          AND kcu.REFERENCED_TABLE_NAME IS NOT NULL
        ORDER BY kcu.CONSTRAINT_NAME, kcu.ORDINAL_POSITION
    """

    INDEXES_SQL: str = """
        SELECT INDEX_NAME AS index_name,
               COLUMN_NAME AS column_name,
               NON_UNIQUE = 0 AS is_unique,
               INDEX_NAME = 'PRIMARY' AS is_primary
        FROM information_schema.STATISTICS
        WHERE TABLE_NAME = :table AND TABLE_SCHEMA = :schema
        ORDER BY INDEX_NAME, SEQ_IN_INDEX
    """

    def get_dialect(self) -> str:
        return DatabaseDialect.MYSQL.value

    def list_tables(self) -> List[Tuple[str, str, Optional[str]]]:
        rows: List[Row] = self._query(self.TABLES_SQL, {"schema": self.schema_name})
        return [
            (r["table_schema"], r["table_name"], _optional_str(r.get("table_comment")))
            for r in rows
        ]

    def get_table_info(self, name: str, schema: Optional[str] = None) -> TableInfo:
        schema = schema or self.schema_name
        if not schema:
            schema = self._query("SELECT DATABASE() AS current_db")[0]["current_db"]
        params: Dict[str, Any] = {"table": name, "schema": schema}
        column_rows = [self._normalize_column(r) for r in self._query(self.COLUMNS_SQL, params)]
        primary_keys = [r["column_name"] for r in self._query(self.PRIMARY_KEYS_SQL, params)]
        foreign_keys = self._foreign_keys_from_rows(self._query(self.FOREIGN_KEYS_SQL, params))
        indexes = _group_indexes(self._query(self.INDEXES_SQL, params))
        return self._assemble(name, schema, None, column_rows, primary_keys, foreign_keys, indexes)

    @staticmethod
    def _normalize_column(row: Row) -> Dict[str, Any]:
        column_type: str = str(row.get("column_type") or "")
        data_type: str = str(row["data_type"])
        enum_values: Optional[List[str]] = None
        if column_type.lower().startswith("enum("):
            enum_values = parse_enum_values(column_type) or None
        if "unsigned" in column_type.lower():
            data_type = f"{data_type} unsigned"
        extra: str = str(row.get("extra") or "").lower()
        return {
            "name": row["column_name"],
            "native_type": data_type,
            "nullable": _truthy(row.get("is_nullable")),
            "default_value": row.get("column_default"),
            "max_length": _optional_int(row.get("character_maximum_length")),
            "numeric_precision": _optional_int(row.get("numeric_precision")),
            "numeric_scale": _optional_int(row.get("numeric_scale")),
            "comment": _optional_str(row.get("column_comment")),
            "is_auto_increment": "auto_increment" in extra,
            "ordinal_position": int(row["ordinal_position"]),
            "enum_values": enum_values,
        }


# ---------------------------------------------------------------------------
# Microsoft SQL Server
# ---------------------------------------------------------------------------


class MSSQLIntrospector(SchemaIntrospector):
    """Reads ``INFORMATION_SCHEMA`` plus ``sys.*`` views for identity, comments and indexes."""

    TABLES_SQL: str = """
        SELECT t.TABLE_SCHEMA AS table_schema,
               t.TABLE_NAME AS table_name,
               CAST(ep.value AS NVARCHAR(4000)) AS table_comment
        FROM INFORMATION_SCHEMA.TABLES t
        LEFT JOIN sys.extended_properties ep
          ON ep.major_id = OBJECT_ID(QUOTENAME(t.TABLE_SCHEMA) + '.' + QUOTENAME(t.TABLE_NAME))
         AND ep.minor_id = 0
         AND ep.name = 'MS_Description'
        WHERE t.TABLE_TYPE = 'BASE TABLE'
          AND t.TABLE_SCHEMA NOT IN ('sys', 'INFORMATION_SCHEMA')
        ORDER BY t.TABLE_SCHEMA, t.TABLE_NAME
    """

    COLUMNS_SQL: str = """
        SELECT c.COLUMN_NAME AS column_name,
               c.DATA_TYPE AS data_type,
               c.IS_NULLABLE AS is_nullable,
               c.COLUMN_DEFAULT AS column_default,
               c.CHARACTER_MAXIMUM_LENGTH AS character_maximum_length,
               c.NUMERIC_PRECISION AS numeric_precision,
               c.NUMERIC_SCALE AS numeric_scale,
               c.ORDINAL_POSITION AS ordinal_position,
               COLUMNPROPERTY(OBJECT_ID(QUOTENAME(c.TABLE_SCHEMA) + '.' + QUOTENAME(c.TABLE_NAME)),
                              c.COLUMN_NAME, 'IsIdentity') AS is_identity,
               CAST(ep.value AS NVARCHAR(4000)) AS column_comment
        FROM INFORMATION_SCHEMA.COLUMNS c
        LEFT JOIN sys.extended_properties ep
          ON ep.major_id = OBJECT_ID(QUOTENAME(c.TABLE_SCHEMA) + '.' + QUOTENAME(c.TABLE_NAME))
         AND ep.minor_id = c.ORDINAL_POSITION
         AND ep.name = 'MS_Description'
        WHERE c.TABLE_NAME = :table AND c.TABLE_SCHEMA = :schema
        ORDER BY c.ORDINAL_POSITION
    """

    PRIMARY_KEYS_SQL: str = """
        SELECT kcu.COLUMN_NAME AS column_name
        FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc
        JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE kcu
          ON tc.CONSTRAINT_NAME = kcu.CONSTRAINT_NAME
         AND tc.TABLE_SCHEMA = kcu.TABLE_SCHEMA
        WHERE tc.CONSTRAINT_TYPE = 'PRIMARY KEY'
          AND tc.TABLE_NAME = :table
          AND tc.TABLE_SCHEMA = :schema
        ORDER BY kcu.ORDINAL_POSITION
    """

    FOREIGN_KEYS_SQL: str = """
        SELECT fk.name AS constraint_name,
               pc.name AS column_name,
               rs.name AS target_schema,
               rt.name AS target_table,
               rc.name AS target_column,
               REPLACE(fk.delete_referential_action_desc, '_', ' ') AS on_delete,
               REPLACE(fk.update_referential_action_desc, '_', ' ') AS on_update
        FROM sys.foreign_keys fk
        JOIN sys.foreign_key_columns fkc ON fkc.constraint_object_id = fk.object_id
        JOIN sys.tables pt ON pt.object_id = fk.parent_object_id
        JOIN sys.schemas ps ON ps.schema_id = pt.schema_id
        JOIN sys.columns pc ON pc.object_id = fkc.parent_object_id AND pc.column_id = fkc.parent_column_id
        JOIN sys.tables rt ON rt.object_id = fk.referenced_object_id
        JOIN sys.schemas rs ON rs.schema_id = rt.schema_id
        JOIN sys.columns rc ON rc.object_id = fkc.referenced_object_id AND rc.column_id = fkc.referenced_column_id
        WHERE pt.name = :table AND ps.name = :schema
        ORDER BY fk.name, fkc.constraint_column_id
    """

    INDEXES_SQL: str = """
        SELECT i.name AS index_name,
               c.name AS column_name,
               i.is_unique AS is_unique,
               i.is_primary_key AS is_primary
        FROM sys.indexes i
        JOIN sys.index_columns ic ON ic.object_id = i.object_id AND ic.index_id = i.index_id
        JOIN sys.columns c ON c.object_id = ic.object_id AND c.column_id = ic.column_id
        JOIN sys.tables t ON t.object_id = i.object_id
        JOIN sys.schemas s ON s.schema_id = t.schema_id
        WHERE t.name = :table AND s.name = :schema AND i.name IS NOT NULL
        ORDER BY i.name, ic.key_ordinal
    """

    def get_dialect(self) -> str:
        return DatabaseDialect.MSSQL.value

    def list_tables(self) -> List[Tuple[str, str, Optional[str]]]:
        rows: List[Row] = self._query(self.TABLES_SQL)
        return [
            (r["table_schema"], r["table_name"], _optional_str(r.get("table_comment")))
            for r in rows
            if self.schema_name is None or r["table_schema"] == self.schema_name
        ]

    def get_table_info(self, name: str, schema: Optional[str] = None) -> TableInfo:
        schema = schema or self.schema_name or "dbo"
        params: Dict[str, Any] = {"table": name, "schema": schema}
        column_rows = [self._normalize_column(r) for r in self._query(self.COLUMNS_SQL, params)]
        primary_keys = [r["column_name"] for r in self._query(self.PRIMARY_KEYS_SQL, params)]
        foreign_keys = self._foreign_keys_from_rows(self._query(self.FOREIGN_KEYS_SQL, params))
        indexes = _group_indexes(self._query(self.INDEXES_SQL, params))
        return self._assemble(name, schema, None, column_rows, primary_keys, foreign_keys, indexes)

    @staticmethod
    def _normalize_column(row: Row) -> Dict[str, Any]:
        default: Optional[str] = _optional_str(row.get("column_default"))
        if default:
            # catalog wraps defaults in parentheses: ((0)), ('x'), (getdate())
            while default.startswith("(") and default.endswith(")") and len(default) > 2:
                default = default[1:-1]
        native: str = str(row["data_type"])
        if native.lower() == "timestamp":
            # SQL Server's timestamp is a rowversion
            native = "rowversion"
        return {
            "name": row["column_name"],
            "native_type": native,
            "nullable": _truthy(row.get("is_nullable")),
            "default_value": default,
            "max_length": _optional_int(row.get("character_maximum_length")),
            "numeric_precision": _optional_int(row.get("numeric_precision")),
            "numeric_scale": _optional_int(row.get("numeric_scale")),
            "comment": _optional_str(row.get("column_comment")),
            "is_auto_increment": _truthy(row.get("is_identity")),
            "ordinal_position": int(row["ordinal_position"]),
            "enum_values": None,
        }


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

_INTROSPECTORS: Dict[str, type] = {
    DatabaseDialect.POSTGRES.value: PostgresIntrospector,
    DatabaseDialect.MYSQL.value: MySQLIntrospector,
    DatabaseDialect.MSSQL.value: MSSQLIntrospector,
}

_CONNECT_TIMEOUT_ARG: Dict[str, str] = {
    DatabaseDialect.POSTGRES.value: "connect_timeout",
    DatabaseDialect.MYSQL.value: "connect_timeout",
    DatabaseDialect.MSSQL.value: "timeout",
}


def _require_supported(dialect: Any) -> str:
    normalized = normalize_dialect(dialect)
    if normalized not in _INTROSPECTORS:
        raise ConfigurationError(
            f"Unsupported dialect '{dialect}'. "
            f"Supported: {', '.join(sorted(_INTROSPECTORS))}.",
            details={"dialect": dialect},
        )
    return normalized


def create_introspector(
    connection_source: Any,
    dialect: Any,
    schema_name: Optional[str] = None,
) -> SchemaIntrospector:
    """Pick the introspector for *dialect*; unknown dialects raise before any query."""
    normalized: str = _require_supported(dialect)
    return _INTROSPECTORS[normalized](connection_source, schema_name)


def create_engine_for(database: DatabaseConfig, connect_timeout: int = 10) -> Engine:
    """Build (but do not connect) a SQLAlchemy engine for *database*."""
    dialect: str = _require_supported(database.dialect)
    connect_args: Dict[str, Any] = {_CONNECT_TIMEOUT_ARG[dialect]: connect_timeout}
    if database.ssl:
        if dialect == DatabaseDialect.POSTGRES.value:
            connect_args["sslmode"] = "require"
        elif dialect == DatabaseDialect.MYSQL.value:
            connect_args["ssl"] = {"check_hostname": False}
    try:
        return create_engine(
            database.sqlalchemy_url(),
            pool_pre_ping=True,
            connect_args=connect_args,
        )
    except (SQLAlchemyError, ImportError) as exc:
        raise ConnectionFailedError(
            f"Could not create a {dialect} engine: {type(exc).__name__}: {exc}",
            details={"dialect": dialect, "host": database.host},
        ) from exc


def introspector_for(database: DatabaseConfig, engine: Optional[Engine] = None) -> SchemaIntrospector:
    """Engine plus introspector for a connection descriptor."""
    _require_supported(database.dialect)
    source = engine if engine is not None else create_engine_for(database)
    return create_introspector(source, database.dialect, database.schema_name)


def test_connection(database: DatabaseConfig, engine: Optional[Engine] = None) -> bool:
    """Run ``SELECT 1``; ``True`` when the database answers."""
    source = engine if engine is not None else create_engine_for(database)
    try:
        with source.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Connection test failed for %r: %s", database, exc)
        return False
    logger.info("Connection test succeeded for %r", database)
    return True


# Keep pytest from collecting the helper above as a test.
test_connection.__test__ = False  # type: ignore[attr-defined]


__all__: List[str] = [
    "SchemaIntrospector",
    "PostgresIntrospector",
    "MySQLIntrospector",
    "MSSQLIntrospector",
    "create_introspector",
    "create_engine_for",
    "introspector_for",
    "test_connection",
]

logger.debug("dbscaffold.introspection loaded — %d public symbols.", len(__all__))

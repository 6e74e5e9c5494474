# File: dbscaffold/type_mapping.py
"""
dbscaffold - Type Resolver
============================
Resolves a native column type into three parallel representations:

* **host type**: the TypeScript type used on entity / DTO properties,
* **persistence type**: the TypeORM column type written into ``@Column``,
* **SQL DDL type**: the literal token emitted into CREATE TABLE scripts.

Resolution is a per-dialect table lookup followed by three fallbacks
(array suffix, inline enumeration, dynamic ``any``).  ``resolve`` never
raises; unknown types come back with ``is_fallback=True`` and a logged
warning so callers can put the degradation into their run report.

Mappings are computed on demand and never cached across dialects.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Tuple

from dbscaffold.errors import ConfigurationError
from dbscaffold.models import normalize_dialect

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("dbscaffold.type_mapping")


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TypeMapping:
    """Derived, never persisted.  ``is_optional`` only ever widens nullability."""

    host_type: str
    persistence_type: str
    sql_ddl_type: str
    is_optional: bool = False
    is_fallback: bool = False

    @property
    def is_array(self) -> bool:
        return self.host_type.endswith("[]")


# ---------------------------------------------------------------------------
# Per-dialect lookup tables:  native type -> (host type, persistence type)
# ---------------------------------------------------------------------------

_STR: str = "string"
_NUM: str = "number"
_BOOL: str = "boolean"
_DATE: str = "Date"
_BUF: str = "Buffer"
_ANY: str = "any"

_POSTGRES_TYPES: Dict[str, Tuple[str, str]] = {
    # character
    "character varying": (_STR, "varchar"),
    "varchar": (_STR, "varchar"),
    "char": (_STR, "char"),
    "character": (_STR, "char"),
    "bpchar": (_STR, "char"),
    "text": (_STR, "text"),
    "citext": (_STR, "text"),
    "name": (_STR, "varchar"),
    # numeric
    "integer": (_NUM, "int"),
    "int": (_NUM, "int"),
    "int4": (_NUM, "int"),
    "bigint": (_NUM, "bigint"),
    "int8": (_NUM, "bigint"),
    "smallint": (_NUM, "smallint"),
    "int2": (_NUM, "smallint"),
    "decimal": (_NUM, "decimal"),
    "numeric": (_NUM, "decimal"),
    "real": (_NUM, "real"),
    "float4": (_NUM, "real"),
    "double precision": (_NUM, "double"),
    "float8": (_NUM, "double"),
    "money": (_NUM, "decimal"),
    "serial": (_NUM, "int"),
    "serial4": (_NUM, "int"),
    "bigserial": (_NUM, "bigint"),
    "serial8": (_NUM, "bigint"),
    "smallserial": (_NUM, "smallint"),
    # boolean
    "boolean": (_BOOL, "boolean"),
    "bool": (_BOOL, "boolean"),
    # date / time
    "timestamp": (_DATE, "timestamp"),
    "timestamp without time zone": (_DATE, "timestamp"),
    "timestamp with time zone": (_DATE, "timestamptz"),
    "timestamptz": (_DATE, "timestamptz"),
    "date": (_DATE, "date"),
    "time": (_STR, "time"),
    "time without time zone": (_STR, "time"),
    "time with time zone": (_STR, "timetz"),
    "timetz": (_STR, "timetz"),
    "interval": (_STR, "interval"),
    # structured
    "json": (_ANY, "json"),
    "jsonb": (_ANY, "jsonb"),
    "array": ("any[]", "simple-array"),
    "uuid": (_STR, "uuid"),
    "bytea": (_BUF, "bytea"),
    # geometric
    "point": (_STR, "point"),
    "line": (_STR, "line"),
    "lseg": (_STR, "lseg"),
    "box": (_STR, "box"),
    "path": (_STR, "path"),
    "polygon": (_STR, "polygon"),
    "circle": (_STR, "circle"),
    # network
    "cidr": (_STR, "cidr"),
    "inet": (_STR, "inet"),
    "macaddr": (_STR, "macaddr"),
    # bit strings
    "bit": (_STR, "bit"),
    "bit varying": (_STR, "varbit"),
    "varbit": (_STR, "varbit"),
    # full text / xml
    "tsvector": (_STR, "tsvector"),
    "tsquery": (_STR, "tsquery"),
    "xml": (_STR, "xml"),
}

_MYSQL_TYPES: Dict[str, Tuple[str, str]] = {
    "varchar": (_STR, "varchar"),
    "char": (_STR, "char"),
    "text": (_STR, "text"),
    "tinytext": (_STR, "tinytext"),
    "mediumtext": (_STR, "mediumtext"),
    "longtext": (_STR, "longtext"),
    "int": (_NUM, "int"),
    "integer": (_NUM, "int"),
    "tinyint": (_NUM, "tinyint"),
    "smallint": (_NUM, "smallint"),
    "mediumint": (_NUM, "mediumint"),
    "bigint": (_NUM, "bigint"),
    "decimal": (_NUM, "decimal"),
    "numeric": (_NUM, "decimal"),
    "float": (_NUM, "float"),
    "double": (_NUM, "double"),
    "real": (_NUM, "real"),
    "boolean": (_BOOL, "boolean"),
    "bool": (_BOOL, "boolean"),
    "datetime": (_DATE, "datetime"),
    "timestamp": (_DATE, "timestamp"),
    "date": (_DATE, "date"),
    "time": (_STR, "time"),
    "year": (_NUM, "year"),
    "json": (_ANY, "json"),
    "binary": (_BUF, "binary"),
    "varbinary": (_BUF, "varbinary"),
    "tinyblob": (_BUF, "tinyblob"),
    "blob": (_BUF, "blob"),
    "mediumblob": (_BUF, "mediumblob"),
    "longblob": (_BUF, "longblob"),
    "bit": (_NUM, "bit"),
    "geometry": (_STR, "geometry"),
    "point": (_STR, "point"),
    "linestring": (_STR, "linestring"),
    "polygon": (_STR, "polygon"),
    "multipoint": (_STR, "multipoint"),
    "multilinestring": (_STR, "multilinestring"),
    "multipolygon": (_STR, "multipolygon"),
    "geometrycollection": (_STR, "geometrycollection"),
}

_MSSQL_TYPES: Dict[str, Tuple[str, str]] = {
    "varchar": (_STR, "varchar"),
    "nvarchar": (_STR, "nvarchar"),
    "char": (_STR, "char"),
    "nchar": (_STR, "nchar"),
    "text": (_STR, "text"),
    "ntext": (_STR, "ntext"),
    "int": (_NUM, "int"),
    "bigint": (_NUM, "bigint"),
    "smallint": (_NUM, "smallint"),
    "tinyint": (_NUM, "tinyint"),
    "decimal": (_NUM, "decimal"),
    "numeric": (_NUM, "decimal"),
    "money": (_NUM, "money"),
    "smallmoney": (_NUM, "smallmoney"),
    "float": (_NUM, "float"),
    "real": (_NUM, "real"),
    "bit": (_BOOL, "bit"),
    "datetime": (_DATE, "datetime"),
    "datetime2": (_DATE, "datetime2"),
    "smalldatetime": (_DATE, "smalldatetime"),
    "date": (_DATE, "date"),
    "time": (_STR, "time"),
    "datetimeoffset": (_DATE, "datetimeoffset"),
    # rowversion, not a point in time
    "timestamp": (_BUF, "rowversion"),
    "rowversion": (_BUF, "rowversion"),
    "binary": (_BUF, "binary"),
    "varbinary": (_BUF, "varbinary"),
    "image": (_BUF, "image"),
    "uniqueidentifier": (_STR, "uniqueidentifier"),
    "xml": (_STR, "xml"),
    "geography": (_STR, "geography"),
    "geometry": (_STR, "geometry"),
}

_DIALECT_TABLES: Dict[str, Dict[str, Tuple[str, str]]] = {
    "postgres": _POSTGRES_TYPES,
    "mysql": _MYSQL_TYPES,
    "mssql": _MSSQL_TYPES,
}

# ---------------------------------------------------------------------------
# Persistence type -> DDL token.  Entries are (postgres, mysql, mssql).
# ---------------------------------------------------------------------------

_DDL_TYPES: Dict[str, Tuple[str, str, str]] = {
    "varchar": ("VARCHAR", "VARCHAR", "VARCHAR"),
    "nvarchar": ("VARCHAR", "VARCHAR", "NVARCHAR"),
    "char": ("CHAR", "CHAR", "CHAR"),
    "nchar": ("CHAR", "CHAR", "NCHAR"),
    "text": ("TEXT", "TEXT", "NVARCHAR(MAX)"),
    "int": ("INTEGER", "INT", "INT"),
    "bigint": ("BIGINT", "BIGINT", "BIGINT"),
    "smallint": ("SMALLINT", "SMALLINT", "SMALLINT"),
    "decimal": ("DECIMAL", "DECIMAL", "DECIMAL"),
    "numeric": ("DECIMAL", "DECIMAL", "DECIMAL"),
    "real": ("REAL", "REAL", "REAL"),
    "double": ("DOUBLE PRECISION", "DOUBLE", "FLOAT"),
    "float": ("FLOAT", "FLOAT", "FLOAT"),
    "boolean": ("BOOLEAN", "BOOLEAN", "BIT"),
    "date": ("DATE", "DATE", "DATE"),
    "time": ("TIME", "TIME", "TIME"),
    "datetime": ("TIMESTAMP", "DATETIME", "DATETIME"),
    "timestamp": ("TIMESTAMP", "TIMESTAMP", "DATETIME2"),
    "timestamptz": ("TIMESTAMP WITH TIME ZONE", "TIMESTAMP", "DATETIMEOFFSET"),
    "rowversion": ("BYTEA", "BINARY(8)", "ROWVERSION"),
    "json": ("JSON", "JSON", "NVARCHAR(MAX)"),
    "jsonb": ("JSONB", "JSON", "NVARCHAR(MAX)"),
    "uuid": ("UUID", "CHAR(36)", "UNIQUEIDENTIFIER"),
    "bytea": ("BYTEA", "BLOB", "VARBINARY(MAX)"),
    "enum": ("VARCHAR", "ENUM", "NVARCHAR"),
    "simple-array": ("TEXT", "TEXT", "NVARCHAR(MAX)"),
}

_DDL_COLUMN: Dict[str, int] = {"postgres": 0, "mysql": 1, "mssql": 2}

_TYPE_ARGS_RE: re.Pattern[str] = re.compile(r"\s*\(.*?\)")
_TYPE_MODIFIERS_RE: re.Pattern[str] = re.compile(r"\s+(unsigned|zerofill|signed)\b")
_WHITESPACE_RE: re.Pattern[str] = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def _dialect_key(dialect: str) -> str:
    key: str = str(normalize_dialect(dialect))
    if key not in _DIALECT_TABLES:
        raise ConfigurationError(
            f"Unsupported dialect '{dialect}'.",
            details={"supported": sorted(_DIALECT_TABLES)},
        )
    return key


def dialect_type_map(dialect: str) -> Dict[str, Tuple[str, str]]:
    """Return a copy of the fixed lookup table for *dialect*."""
    return dict(_DIALECT_TABLES[_dialect_key(dialect)])


def to_ddl_type(persistence_type: str, dialect: str) -> str:
    """
    Map a persistence type to its DDL token for *dialect*.

    Unknown persistence types are returned upper-cased, leaving the target
    database to accept or reject them.
    """
    column: int = _DDL_COLUMN[_dialect_key(dialect)]
    tokens = _DDL_TYPES.get(persistence_type.lower().strip())
    if tokens is None:
        return persistence_type.upper()
    return tokens[column]


def _normalize(native_type: str) -> str:
    return _WHITESPACE_RE.sub(" ", native_type.lower().strip())


def _strip_arguments(normalized: str) -> str:
    stripped: str = _TYPE_ARGS_RE.sub("", normalized)
    stripped = _TYPE_MODIFIERS_RE.sub("", stripped)
    return stripped.strip()


def _lookup(normalized: str, table: Dict[str, Tuple[str, str]]) -> Tuple[str, str] | None:
    hit = table.get(normalized)
    if hit is None and "(" in normalized and not normalized.startswith("enum"):
        hit = table.get(_strip_arguments(normalized))
    if hit is None and ("unsigned" in normalized or "zerofill" in normalized):
        hit = table.get(_strip_arguments(normalized))
    return hit


def resolve(native_type: str, dialect: str, nullable: bool = False) -> TypeMapping:
    """
    Resolve *native_type* under *dialect*.

    Fallback order when the dialect table has no entry:

    1. ``<base>[]`` → resolve the base, host type ``<base host>[]``,
       persistence ``simple-array``.
    2. anything spelling an enumeration → ``string`` / ``enum``.
    3. ``any`` / ``text`` with ``is_fallback=True``.
    """
    dialect = _dialect_key(dialect)
    table: Dict[str, Tuple[str, str]] = _DIALECT_TABLES[dialect]
    normalized: str = _normalize(native_type or "")

    hit = _lookup(normalized, table)
    if hit is not None:
        host, persistence = hit
        return TypeMapping(
            host_type=host,
            persistence_type=persistence,
            sql_ddl_type=to_ddl_type(persistence, dialect),
            is_optional=nullable,
        )

    if normalized.endswith("[]"):
        base: TypeMapping = resolve(normalized[:-2], dialect, nullable)
        return TypeMapping(
            host_type=f"{base.host_type}[]",
            persistence_type="simple-array",
            sql_ddl_type=to_ddl_type("simple-array", dialect),
            is_optional=nullable,
            is_fallback=base.is_fallback,
        )

    if normalized.startswith("enum(") or "enum" in normalized:
        return TypeMapping(
            host_type=_STR,
            persistence_type="enum",
            sql_ddl_type=to_ddl_type("enum", dialect),
            is_optional=nullable,
        )

    logger.warning(
        "Unmapped %s type '%s'; falling back to '%s' / 'text'.",
        dialect,
        native_type,
        _ANY,
    )
    return TypeMapping(
        host_type=_ANY,
        persistence_type="text",
        sql_ddl_type=to_ddl_type("text", dialect),
        is_optional=nullable,
        is_fallback=True,
    )


def supported_native_types(dialect: str) -> List[str]:
    """Sorted native type names with a fixed mapping under *dialect*."""
    return sorted(dialect_type_map(dialect))


__all__: List[str] = [
    "TypeMapping",
    "resolve",
    "to_ddl_type",
    "dialect_type_map",
    "supported_native_types",
]

logger.debug("dbscaffold.type_mapping loaded — %d public symbols.", len(__all__))

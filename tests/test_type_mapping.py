"""
tests/test_type_mapping.py
Unit tests for dbscaffold.type_mapping (native type resolution).
"""

from __future__ import annotations

import pytest

from dbscaffold.errors import ConfigurationError
from dbscaffold.type_mapping import (
    dialect_type_map,
    resolve,
    supported_native_types,
    to_ddl_type,
)


class TestResolve:
    """Fixed per-dialect tables."""

    @pytest.mark.parametrize(
        "native, dialect, host, persistence",
        [
            ("character varying", "postgres", "string", "varchar"),
            ("timestamp with time zone", "postgres", "Date", "timestamptz"),
            ("jsonb", "postgres", "any", "jsonb"),
            ("bytea", "postgres", "Buffer", "bytea"),
            ("uuid", "postgres", "string", "uuid"),
            ("tinyint", "mysql", "number", "tinyint"),
            ("datetime", "mysql", "Date", "datetime"),
            ("bit", "mysql", "number", "bit"),
            ("bit", "mssql", "boolean", "bit"),
            ("nvarchar", "mssql", "string", "nvarchar"),
            ("uniqueidentifier", "mssql", "string", "uniqueidentifier"),
        ],
    )
    def test_known_types(self, native: str, dialect: str, host: str, persistence: str) -> None:
        mapping = resolve(native, dialect)
        assert mapping.host_type == host
        assert mapping.persistence_type == persistence
        assert not mapping.is_fallback

    def test_mssql_timestamp_is_a_row_version(self) -> None:
        for native in ("timestamp", "rowversion"):
            mapping = resolve(native, "mssql")
            assert mapping.host_type == "Buffer"
            assert mapping.persistence_type == "rowversion"
            assert mapping.sql_ddl_type == "ROWVERSION"
        assert resolve("timestamp", "postgres").sql_ddl_type == "TIMESTAMP"

    def test_unknown_dialect_is_rejected(self) -> None:
        with pytest.raises(ConfigurationError) as excinfo:
            resolve("integer", "oracle")
        assert excinfo.value.details["supported"] == ["mssql", "mysql", "postgres"]
        assert resolve("integer", "PostgreSQL").persistence_type == "int"

    def test_case_and_whitespace_insensitive(self) -> None:
        assert resolve("  Character   Varying ", "postgres").persistence_type == "varchar"

    def test_arguments_are_stripped(self) -> None:
        assert resolve("varchar(255)", "mysql").persistence_type == "varchar"
        assert resolve("decimal(10,2)", "mysql").host_type == "number"

    def test_unsigned_modifier(self) -> None:
        mapping = resolve("int unsigned", "mysql")
        assert mapping.host_type == "number"
        assert mapping.persistence_type == "int"

    def test_nullable_widens_optional(self) -> None:
        assert resolve("text", "postgres", nullable=True).is_optional
        assert not resolve("text", "postgres", nullable=False).is_optional


class TestFallbacks:
    """Arrays, enums and unknown types."""

    def test_array_of_known_type(self) -> None:
        mapping = resolve("integer[]", "postgres")
        assert mapping.host_type == "number[]"
        assert mapping.persistence_type == "simple-array"
        assert mapping.is_array

    def test_inline_enum(self) -> None:
        mapping = resolve("enum('a','b')", "mysql")
        assert mapping.host_type == "string"
        assert mapping.persistence_type == "enum"
        assert mapping.sql_ddl_type == "ENUM"

    def test_unknown_type_falls_back(self) -> None:
        mapping = resolve("tsrange_custom", "postgres")
        assert mapping.host_type == "any"
        assert mapping.persistence_type == "text"
        assert mapping.is_fallback


class TestDdlTokens:
    """Persistence type -> DDL token."""

    def test_per_dialect_tokens(self) -> None:
        assert to_ddl_type("boolean", "postgres") == "BOOLEAN"
        assert to_ddl_type("boolean", "mssql") == "BIT"
        assert to_ddl_type("int", "postgres") == "INTEGER"
        assert to_ddl_type("uuid", "mysql") == "CHAR(36)"
        assert to_ddl_type("text", "mssql") == "NVARCHAR(MAX)"

    def test_unknown_persistence_type_is_upper_cased(self) -> None:
        assert to_ddl_type("geometry", "postgres") == "GEOMETRY"

    def test_type_maps(self) -> None:
        assert "varchar" in supported_native_types("mysql")
        assert supported_native_types("mssql") == sorted(supported_native_types("mssql"))
        with pytest.raises(ConfigurationError):
            dialect_type_map("oracle")

    def test_ddl_token_for_unknown_dialect(self) -> None:
        with pytest.raises(ConfigurationError):
            to_ddl_type("int", "oracle")
        assert to_ddl_type("rowversion", "mysql") == "BINARY(8)"

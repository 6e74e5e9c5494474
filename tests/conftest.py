"""
tests/conftest.py
Shared fixtures for the dbscaffold test suite.

No database server and no external mocking libraries are used: the
introspectors and the data exporter talk to ``FakeEngine``, a tiny
stand-in exposing the ``connect()`` / ``execute()`` / ``mappings()``
surface of a SQLAlchemy engine.  Generated files are written for real
inside pytest's ``tmp_path``.
"""

from __future__ import annotations

import pathlib
import re
from typing import Any, Callable, Dict, List, Optional, Set

import pytest
import yaml
from sqlalchemy.exc import OperationalError, ProgrammingError

from dbscaffold.generator import build_config
from dbscaffold.introspection import PostgresIntrospector
from dbscaffold.models import (
    ColumnInfo,
    DatabaseSchema,
    ForeignKeyInfo,
    GenerationConfig,
    TableInfo,
)

Row = Dict[str, Any]
Handler = Callable[[str, Dict[str, Any]], List[Row]]


# ---------------------------------------------------------------------------
# Fake SQLAlchemy surface
# ---------------------------------------------------------------------------


class FakeResult:
    """Result proxy whose ``mappings()`` yields plain dict rows."""

    def __init__(self, rows: List[Row]) -> None:
        self._rows: List[Row] = [dict(r) for r in rows]

    def mappings(self) -> Any:
        return iter(self._rows)


class FakeConnection:
    """Records every statement and answers it through *handler*."""

    def __init__(self, handler: Handler, log: List[str]) -> None:
        self._handler: Handler = handler
        self._log: List[str] = log
        self.rollbacks: int = 0
        self.closed: bool = False

    def execute(self, statement: Any, params: Optional[Dict[str, Any]] = None) -> FakeResult:
        sql: str = getattr(statement, "text", str(statement))
        self._log.append(sql)
        return FakeResult(self._handler(sql, dict(params or {})))

    def rollback(self) -> None:
        self.rollbacks += 1

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "FakeConnection":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


class FakeEngine:
    """Engine stand-in; ``fail_connect`` makes every ``connect()`` raise."""

    def __init__(self, handler: Handler, fail_connect: bool = False) -> None:
        self._handler: Handler = handler
        self.fail_connect: bool = fail_connect
        self.statements: List[str] = []
        self.connections: List[FakeConnection] = []

    def connect(self) -> FakeConnection:
        if self.fail_connect:
            raise OperationalError("connect", {}, Exception("connection refused"))
        conn = FakeConnection(self._handler, self.statements)
        self.connections.append(conn)
        return conn


# ---------------------------------------------------------------------------
# Fake Postgres catalog
# ---------------------------------------------------------------------------


def pg_column(
    name: str,
    data_type: str,
    position: int,
    *,
    nullable: bool = True,
    default: Optional[str] = None,
    length: Optional[int] = None,
    precision: Optional[int] = None,
    scale: Optional[int] = None,
    udt_name: Optional[str] = None,
    comment: Optional[str] = None,
) -> Row:
    """One row shaped like ``PostgresIntrospector.COLUMNS_SQL`` output."""
    return {
        "column_name": name,
        "data_type": data_type,
        "udt_name": udt_name or data_type,
        "is_nullable": "YES" if nullable else "NO",
        "column_default": default,
        "character_maximum_length": length,
        "numeric_precision": precision,
        "numeric_scale": scale,
        "ordinal_position": position,
        "is_identity": "NO",
        "column_comment": comment,
    }


_SELECT_TABLE_RE: re.Pattern[str] = re.compile(r'FROM (?:"[^"]+"\.)?"([^"]+)"')


class PostgresCatalog:
    """
    Answers the Postgres introspection queries from in-memory tables.

    ``failing_tables`` makes the column query of those tables raise;
    ``fail_listing`` makes the table listing raise.  ``data`` feeds the
    ``SELECT *`` statements of the data exporter.
    """

    def __init__(self) -> None:
        self.tables: Dict[str, Dict[str, Any]] = {}
        self.enums: Dict[str, List[str]] = {}
        self.data: Dict[str, List[Row]] = {}
        self.failing_tables: Set[str] = set()
        self.failing_exports: Set[str] = set()
        self.fail_listing: bool = False

    def add_table(
        self,
        name: str,
        columns: List[Row],
        *,
        primary_keys: Optional[List[str]] = None,
        foreign_keys: Optional[List[Row]] = None,
        indexes: Optional[List[Row]] = None,
        comment: Optional[str] = None,
        schema: str = "public",
    ) -> None:
        self.tables[name] = {
            "schema": schema,
            "comment": comment,
            "columns": columns,
            "primary_keys": primary_keys or [],
            "foreign_keys": foreign_keys or [],
            "indexes": indexes or [],
        }

    def __call__(self, sql: str, params: Dict[str, Any]) -> List[Row]:
        if sql == PostgresIntrospector.TABLES_SQL:
            if self.fail_listing:
                raise ProgrammingError(sql, params, Exception("permission denied for schema"))
            return [
                {"table_schema": t["schema"], "table_name": name, "table_comment": t["comment"]}
                for name, t in self.tables.items()
            ]
        if sql == PostgresIntrospector.ENUM_SQL:
            return [{"label": label} for label in self.enums.get(params["type_name"], [])]

        table: Optional[Dict[str, Any]] = self.tables.get(params.get("table", ""))
        if sql == PostgresIntrospector.COLUMNS_SQL:
            if params["table"] in self.failing_tables:
                raise ProgrammingError(sql, params, Exception("relation is locked"))
            return list(table["columns"]) if table else []
        if sql == PostgresIntrospector.PRIMARY_KEYS_SQL:
            return [{"column_name": c} for c in table["primary_keys"]] if table else []
        if sql == PostgresIntrospector.FOREIGN_KEYS_SQL:
            return list(table["foreign_keys"]) if table else []
        if sql == PostgresIntrospector.INDEXES_SQL:
            return list(table["indexes"]) if table else []
        if sql.strip() == "SELECT 1":
            return [{"?column?": 1}]
        if sql.startswith("SELECT * FROM"):
            match = _SELECT_TABLE_RE.search(sql)
            name: str = match.group(1) if match else ""
            if name in self.failing_exports:
                raise ProgrammingError(sql, params, Exception(f'relation "{name}" does not exist'))
            return list(self.data.get(name, []))
        raise AssertionError(f"Unexpected statement: {sql}")


@pytest.fixture()
def pg_catalog() -> PostgresCatalog:
    """``customers`` and ``orders`` (orders.customer_id -> customers.id)."""
    catalog = PostgresCatalog()
    catalog.add_table(
        "customers",
        [
            pg_column("id", "integer", 1, nullable=False,
                      default="nextval('customers_id_seq'::regclass)"),
            pg_column("name", "character varying", 2, nullable=False, length=255),
            pg_column("email", "character varying", 3, nullable=False, length=255),
            pg_column("status", "character varying", 4, nullable=False, length=50),
        ],
        primary_keys=["id"],
        indexes=[
            {"index_name": "customers_pkey", "column_name": "id", "is_unique": True, "is_primary": True},
            {"index_name": "customers_email_key", "column_name": "email", "is_unique": True, "is_primary": False},
        ],
        comment="Registered customers",
    )
    catalog.enums["order_status"] = ["pending", "paid", "shipped"]
    catalog.add_table(
        "orders",
        [
            pg_column("id", "integer", 1, nullable=False,
                      default="nextval('orders_id_seq'::regclass)"),
            pg_column("customer_id", "integer", 2, nullable=False),
            pg_column("total", "numeric", 3, nullable=False, precision=10, scale=2, default="0"),
            pg_column("status", "USER-DEFINED", 4, nullable=False, udt_name="order_status",
                      default="'pending'::order_status"),
            pg_column("notes", "text", 5),
            pg_column("created_at", "timestamp without time zone", 6, nullable=False, default="now()"),
        ],
        primary_keys=["id"],
        foreign_keys=[
            {
                "constraint_name": "fk_orders_customer",
                "column_name": "customer_id",
                "target_schema": "public",
                "target_table": "customers",
                "target_column": "id",
                "on_delete": "CASCADE",
                "on_update": "NO ACTION",
            }
        ],
        indexes=[
            {"index_name": "orders_pkey", "column_name": "id", "is_unique": True, "is_primary": True},
        ],
    )
    return catalog


@pytest.fixture()
def fake_engine(pg_catalog: PostgresCatalog) -> FakeEngine:
    return FakeEngine(pg_catalog)


# ---------------------------------------------------------------------------
# Canonical model builders
# ---------------------------------------------------------------------------


def make_column(name: str, native_type: str, position: int, **kwargs: Any) -> ColumnInfo:
    kwargs.setdefault("nullable", False)
    return ColumnInfo(name=name, native_type=native_type, ordinal_position=position, **kwargs)


def make_table(
    name: str,
    columns: List[ColumnInfo],
    foreign_keys: Optional[List[ForeignKeyInfo]] = None,
    **kwargs: Any,
) -> TableInfo:
    fks: List[ForeignKeyInfo] = foreign_keys or []
    by_column: Dict[str, ForeignKeyInfo] = {fk.column_name: fk for fk in fks}
    linked: List[ColumnInfo] = [
        c.model_copy(update={"foreign_key_target": by_column[c.name]}) if c.name in by_column else c
        for c in columns
    ]
    return TableInfo(
        name=name,
        columns=linked,
        primary_keys=[c.name for c in columns if c.is_primary_key],
        foreign_keys=fks,
        **kwargs,
    )


@pytest.fixture()
def customers_table() -> TableInfo:
    """Four-column table without foreign keys."""
    return make_table(
        "customers",
        [
            make_column("id", "integer", 1, is_primary_key=True, is_auto_increment=True),
            make_column("name", "varchar", 2, max_length=255),
            make_column("email", "varchar", 3, max_length=255),
            make_column("status", "varchar", 4, max_length=50),
        ],
    )


@pytest.fixture()
def orders_table() -> TableInfo:
    """References ``customers``; has a managed timestamp and an enum column."""
    fk = ForeignKeyInfo(
        constraint_name="fk_orders_customer",
        column_name="customer_id",
        target_table="customers",
        target_column="id",
        on_delete="CASCADE",
    )
    return make_table(
        "orders",
        [
            make_column("id", "integer", 1, is_primary_key=True, is_auto_increment=True),
            make_column("customer_id", "integer", 2),
            make_column("total", "numeric", 3, numeric_precision=10, numeric_scale=2),
            make_column("status", "enum", 4, enum_values=["pending", "paid"]),
            make_column("notes", "text", 5, nullable=True),
            make_column("created_at", "timestamp", 6, default_value="now()"),
        ],
        foreign_keys=[fk],
    )


@pytest.fixture()
def users_table() -> TableInfo:
    return make_table(
        "users",
        [
            make_column("id", "uuid", 1, is_primary_key=True),
            make_column("username", "varchar", 2, max_length=80, is_unique=True),
            make_column("updated_at", "timestamp with time zone", 3, nullable=True),
        ],
    )


@pytest.fixture()
def shop_schema(customers_table: TableInfo, orders_table: TableInfo, users_table: TableInfo) -> DatabaseSchema:
    return DatabaseSchema(dialect="postgres", tables=[customers_table, orders_table, users_table])


# ---------------------------------------------------------------------------
# Configuration fixtures
# ---------------------------------------------------------------------------


def _deep_merge(base: Dict[str, Any], extra: Dict[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = dict(base)
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


@pytest.fixture()
def base_config_dict(tmp_path: pathlib.Path) -> Dict[str, Any]:
    """Valid config dict with every output path inside ``tmp_path``."""
    return {
        "database": {
            "type": "postgres",
            "host": "localhost",
            "database": "shop",
            "username": "app",
            "password": "secret",
        },
        "paths": {
            "base_output": str(tmp_path / "src"),
            "entities": str(tmp_path / "src" / "entities"),
            "crud": str(tmp_path / "src"),
            "sql": str(tmp_path / "sql"),
            "data_export": str(tmp_path / "data"),
        },
    }


@pytest.fixture()
def make_config(base_config_dict: Dict[str, Any]) -> Callable[..., GenerationConfig]:
    """Factory: ``make_config(crud={"generate_tests": True})``."""

    def factory(**sections: Dict[str, Any]) -> GenerationConfig:
        return build_config(_deep_merge(base_config_dict, sections))

    return factory


@pytest.fixture()
def config_yaml_path(base_config_dict: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    """Write the base config to ``dbscaffold.yaml`` and return its path."""
    path = tmp_path / "dbscaffold.yaml"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(base_config_dict, fh, default_flow_style=False)
    return path

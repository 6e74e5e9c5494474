# File: dbscaffold/models.py
"""
dbscaffold - Core Data Models
===============================
Pydantic V2 models for the two inputs of every run:

1. The **canonical schema model** (``DatabaseSchema`` → ``TableInfo`` →
   ``ColumnInfo`` / ``ForeignKeyInfo`` / ``IndexInfo``).  Built once per run
   by an introspector and frozen afterwards; every downstream component
   only reads it.
2. The **run configuration** (``GenerationConfig`` and its sections plus the
   ``DatabaseConfig`` connection descriptor).  Constructed once from
   defaults merged with caller input and frozen for the run.

Every configuration field also accepts its camelCase spelling so config
files written as ``{"paths": {"baseOutput": ...}}`` load unchanged.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel
from sqlalchemy.engine import URL

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("dbscaffold.models")

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DatabaseDialect(str, Enum):
    """Supported database products."""

    POSTGRES = "postgres"
    MYSQL = "mysql"
    MSSQL = "mssql"


class NullHandling(str, Enum):
    """How the data exporter renders a NULL cell."""

    NULL = "NULL"
    DEFAULT = "DEFAULT"
    SKIP = "SKIP"


_DIALECT_ALIASES: Dict[str, str] = {
    "postgres": "postgres",
    "postgresql": "postgres",
    "pg": "postgres",
    "mysql": "mysql",
    "mariadb": "mysql",
    "mssql": "mssql",
    "sqlserver": "mssql",
    "sql_server": "mssql",
}


def normalize_dialect(value: Any) -> Any:
    """Map dialect spellings (``postgresql``, ``mariadb``...) onto enum values."""
    if isinstance(value, DatabaseDialect):
        return value.value
    if isinstance(value, str):
        return _DIALECT_ALIASES.get(value.strip().lower(), value.strip().lower())
    return value


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SCHEMA_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    use_enum_values=True,
    frozen=True,
    extra="forbid",
)

_CONFIG_SECTION: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    use_enum_values=True,
    frozen=True,
    extra="forbid",
    alias_generator=to_camel,
)

_NUMERIC_TYPE_RE: re.Pattern[str] = re.compile(
    r"^(?:tiny|small|medium|big)?(?:int(?:eger)?[248]?|serial[248]?)\b"
    r"|^(?:numeric|decimal|number|float[48]?|double|real|(?:small)?money|bit)\b"
)


# ---------------------------------------------------------------------------
# Canonical schema model
# ---------------------------------------------------------------------------


class ForeignKeyInfo(BaseModel):
    """Many-to-one reference from a local column to another table's column."""

    model_config = _SCHEMA_CONFIG

    constraint_name: str = Field(default="", description="FK constraint name.")
    column_name: str = Field(..., min_length=1, description="Local column.")
    target_schema: str = Field(default="", description="Referenced schema.")
    target_table: str = Field(..., min_length=1, description="Referenced table.")
    target_column: str = Field(default="id", description="Referenced column.")
    on_delete: Optional[str] = Field(default=None, description="ON DELETE action.")
    on_update: Optional[str] = Field(default=None, description="ON UPDATE action.")

    def __repr__(self) -> str:
        return f"<FK {self.column_name} → {self.target_table}.{self.target_column}>"


class IndexInfo(BaseModel):
    """A named index over one or more columns."""

    model_config = _SCHEMA_CONFIG

    name: str = Field(..., min_length=1)
    columns: List[str] = Field(default_factory=list)
    is_unique: bool = False
    is_primary: bool = False


class ColumnInfo(BaseModel):
    """
    One column as reported by the catalog.

    ``native_type`` is the dialect's own spelling (``character varying``,
    ``int unsigned``, ``nvarchar``...).  Host / persistence / DDL types are
    never stored here; the type resolver derives them on demand.
    """

    model_config = _SCHEMA_CONFIG

    name: str = Field(..., min_length=1)
    native_type: str = Field(..., min_length=1)
    nullable: bool = True
    default_value: Optional[str] = None
    max_length: Optional[int] = None
    numeric_precision: Optional[int] = None
    numeric_scale: Optional[int] = None
    comment: Optional[str] = None
    is_auto_increment: bool = False
    ordinal_position: int = Field(..., ge=1)
    enum_values: Optional[List[str]] = None
    is_primary_key: bool = False
    is_unique: bool = False
    foreign_key_target: Optional[ForeignKeyInfo] = None

    @field_validator("default_value", mode="before")
    @classmethod
    def _stringify_default(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        if isinstance(v, bool):
            return "true" if v else "false"
        return str(v)

    @field_validator("max_length", mode="before")
    @classmethod
    def _drop_unbounded_length(cls, v: Any) -> Optional[int]:
        # MSSQL reports (max) columns as -1, MySQL longtext as 4294967295
        if v is None:
            return None
        length: int = int(v)
        if length <= 0 or length > 2_147_483_647:
            return None
        return length

    @model_validator(mode="before")
    @classmethod
    def _auto_increment_requires_numeric(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        auto_inc: bool = bool(data.get("is_auto_increment") or data.get("isAutoIncrement"))
        native: str = str(data.get("native_type") or data.get("nativeType") or "").strip().lower()
        if auto_inc and not _NUMERIC_TYPE_RE.search(native):
            logger.warning(
                "Column '%s' is flagged auto-increment but has non-numeric type '%s'; "
                "treating it as a plain column.",
                data.get("name"),
                native,
            )
            data = dict(data)
            data.pop("isAutoIncrement", None)
            data["is_auto_increment"] = False
        return data

    @property
    def is_managed_identifier(self) -> bool:
        """Primary-key auto-increment column, rendered as a generated id."""
        return self.is_primary_key and self.is_auto_increment

    def __repr__(self) -> str:
        pk_flag: str = " PK" if self.is_primary_key else ""
        null_flag: str = " NULL" if self.nullable else " NOT NULL"
        return f"<Column {self.name} {self.native_type}{pk_flag}{null_flag}>"


class TableInfo(BaseModel):
    """
    One table of the canonical schema.  Identity is ``(schema_name, name)``.

    Columns are kept in ordinal order; the model rejects duplicated or
    decreasing ordinal positions.
    """

    model_config = _SCHEMA_CONFIG

    name: str = Field(..., min_length=1)
    schema_name: str = ""
    comment: Optional[str] = None
    columns: List[ColumnInfo] = Field(default_factory=list)
    primary_keys: List[str] = Field(default_factory=list)
    foreign_keys: List[ForeignKeyInfo] = Field(default_factory=list)
    indexes: List[IndexInfo] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_ordinal_positions(self) -> "TableInfo":
        previous: int = 0
        for col in self.columns:
            if col.ordinal_position <= previous:
                raise ValueError(
                    f"Table '{self.name}': column '{col.name}' has ordinal position "
                    f"{col.ordinal_position}, expected a value above {previous}."
                )
            previous = col.ordinal_position
        return self

    @property
    def identity(self) -> Tuple[str, str]:
        return (self.schema_name, self.name)

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def get_column(self, name: str) -> Optional[ColumnInfo]:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def foreign_key_for(self, column_name: str) -> Optional[ForeignKeyInfo]:
        for fk in self.foreign_keys:
            if fk.column_name == column_name:
                return fk
        return None

    def __repr__(self) -> str:
        return (
            f"<Table {self.schema_name + '.' if self.schema_name else ''}{self.name} "
            f"({len(self.columns)} cols, {len(self.foreign_keys)} FKs, "
            f"{len(self.indexes)} idx)>"
        )


class DatabaseSchema(BaseModel):
    """All introspected tables of one database, sorted by ``(schema, name)``."""

    model_config = _SCHEMA_CONFIG

    dialect: DatabaseDialect
    tables: List[TableInfo] = Field(default_factory=list)

    @field_validator("dialect", mode="before")
    @classmethod
    def _normalize_dialect(cls, v: Any) -> Any:
        return normalize_dialect(v)

    @property
    def table_names(self) -> List[str]:
        return [t.name for t in self.tables]

    def get_table(self, name: str, schema_name: Optional[str] = None) -> Optional[TableInfo]:
        for table in self.tables:
            if table.name == name and (schema_name is None or table.schema_name == schema_name):
                return table
        return None

    def __repr__(self) -> str:
        return f"<DatabaseSchema {self.dialect}: {len(self.tables)} tables>"


# ---------------------------------------------------------------------------
# Masking rules
# ---------------------------------------------------------------------------


class MaskingRule(BaseModel):
    """Substitution policy for columns whose name contains ``match_field``."""

    model_config = _CONFIG_SECTION

    match_field: str = Field(..., min_length=1)
    kind: Literal["email", "phone", "name", "custom"] = "custom"
    pattern: Optional[str] = None
    replacement: Optional[str] = None
    preserve_length: bool = False


def _default_masking_rules() -> List[MaskingRule]:
    return [
        MaskingRule(match_field="email", kind="email", replacement="user{n}@example.com"),
        MaskingRule(match_field="password", kind="custom", replacement="MASKED_PASSWORD"),
        MaskingRule(match_field="phone", kind="phone", pattern="XXX-XXX-XXXX"),
        MaskingRule(match_field="name", kind="name", replacement="User {n}"),
    ]


# ---------------------------------------------------------------------------
# Connection descriptor
# ---------------------------------------------------------------------------

_DEFAULT_PORTS: Dict[str, int] = {"postgres": 5432, "mysql": 3306, "mssql": 1433}
_DEFAULT_DRIVERS: Dict[str, str] = {
    "postgres": "postgresql+psycopg2",
    "mysql": "mysql+pymysql",
    "mssql": "mssql+pyodbc",
}


class DatabaseConfig(BaseModel):
    """Where to connect and which schema to read."""

    model_config = _CONFIG_SECTION

    dialect: DatabaseDialect = Field(
        default="postgres",
        validation_alias="type",
        description="Database product; 'type' is accepted as an alias.",
    )
    host: str = ""
    port: Optional[int] = None
    username: Optional[str] = None
    password: Optional[str] = None
    database: str = ""
    schema_name: Optional[str] = Field(default=None, alias="schema")
    ssl: bool = False
    driver: Optional[str] = Field(
        default=None,
        description="SQLAlchemy drivername override, e.g. 'postgresql+psycopg'.",
    )
    odbc_driver: str = Field(
        default="ODBC Driver 18 for SQL Server",
        description="ODBC driver name used for MSSQL connections.",
    )

    @model_validator(mode="before")
    @classmethod
    def _accept_dialect_spellings(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            for key in ("dialect", "type"):
                if key in data:
                    data["type"] = normalize_dialect(data.pop(key))
        return data

    @property
    def resolved_port(self) -> int:
        return self.port or _DEFAULT_PORTS[self.dialect]

    @property
    def resolved_schema(self) -> str:
        if self.schema_name:
            return self.schema_name
        if self.dialect == DatabaseDialect.MYSQL:
            return self.database
        if self.dialect == DatabaseDialect.MSSQL:
            return "dbo"
        return "public"

    def sqlalchemy_url(self) -> URL:
        """Build the SQLAlchemy URL for this descriptor."""
        query: Dict[str, str] = {}
        if self.dialect == DatabaseDialect.MSSQL:
            query["driver"] = self.odbc_driver
            if self.ssl:
                query["Encrypt"] = "yes"
                query["TrustServerCertificate"] = "yes"
        return URL.create(
            drivername=self.driver or _DEFAULT_DRIVERS[self.dialect],
            username=self.username,
            password=self.password,
            host=self.host or None,
            port=self.resolved_port,
            database=self.database or None,
            query=query,
        )

    def __repr__(self) -> str:
        return (
            f"<DatabaseConfig {self.dialect}://{self.host}:{self.resolved_port}/"
            f"{self.database}>"
        )


# ---------------------------------------------------------------------------
# Generation configuration sections
# ---------------------------------------------------------------------------


class PathsConfig(BaseModel):
    """Output locations."""

    model_config = _CONFIG_SECTION

    base_output: str = "./src"
    entities: str = "./src/entities"
    crud: str = "./src"
    sql: str = "./sql"
    data_export: str = "./data"


class FeaturesConfig(BaseModel):
    """Which artifact families a full run produces."""

    model_config = _CONFIG_SECTION

    entities: bool = True
    crud: bool = True
    sql: bool = True
    data_export: bool = False
    generate_index: bool = True


class CrudConfig(BaseModel):
    """Options for the per-table CRUD module artifacts."""

    model_config = _CONFIG_SECTION

    include_validation: bool = True
    include_swagger: bool = True
    include_pagination: bool = True
    include_filtering: bool = True
    include_sorting: bool = True
    generate_tests: bool = False
    auth_guards: bool = False
    use_dto: bool = True
    included_tables: Optional[List[str]] = None
    excluded_tables: List[str] = Field(default_factory=list)


class EntitiesConfig(BaseModel):
    """Options for standalone entity generation."""

    model_config = _CONFIG_SECTION

    include_validation: bool = True
    include_swagger: bool = True
    included_tables: Optional[List[str]] = None
    excluded_tables: List[str] = Field(default_factory=list)


class SqlConfig(BaseModel):
    """Options for the CREATE TABLE script."""

    model_config = _CONFIG_SECTION

    generate_create_tables: bool = True
    include_comments: bool = True
    include_drop_if_exists: bool = False
    engine_type: str = "InnoDB"
    charset: str = "utf8mb4"
    collation: str = "utf8mb4_unicode_ci"


class DataExportConfig(BaseModel):
    """Options for the batched INSERT-script exporter."""

    model_config = _CONFIG_SECTION

    batch_size: int = Field(default=1000, ge=1)
    enable_masking: bool = False
    masked_fields: List[str] = Field(
        default_factory=lambda: ["password", "email", "phone", "mobile", "ssn", "credit_card"],
    )
    masking_rules: List[MaskingRule] = Field(default_factory=_default_masking_rules)
    null_handling: NullHandling = NullHandling.NULL.value  # type: ignore[assignment]
    include_headers: bool = True
    pretty_print: bool = True
    align_values: bool = True
    where_conditions: Dict[str, str] = Field(default_factory=dict)
    order_by: Dict[str, str] = Field(default_factory=dict)
    max_rows: Optional[int] = Field(default=None, ge=1)
    included_tables: Optional[List[str]] = None
    excluded_tables: List[str] = Field(default_factory=list)


class GenerationConfig(BaseModel):
    """
    Complete, immutable configuration for one run.

    Every section has full defaults, so validating a partial user dict
    merges it over the defaults section by section.
    """

    model_config = _CONFIG_SECTION

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    features: FeaturesConfig = Field(default_factory=FeaturesConfig)
    crud: CrudConfig = Field(default_factory=CrudConfig)
    entities: EntitiesConfig = Field(default_factory=EntitiesConfig)
    sql: SqlConfig = Field(default_factory=SqlConfig)
    data_export: DataExportConfig = Field(default_factory=DataExportConfig)

    @property
    def dialect(self) -> str:
        return self.database.dialect

    def with_overrides(self, overrides: Dict[str, Dict[str, Any]]) -> "GenerationConfig":
        """Return a new config with per-section overrides applied."""
        data: Dict[str, Any] = self.model_dump(by_alias=False)
        for section, values in overrides.items():
            if not values:
                continue
            merged: Dict[str, Any] = dict(data.get(section) or {})
            merged.update(values)
            data[section] = merged
        return GenerationConfig.model_validate(data)

    def __repr__(self) -> str:
        enabled: List[str] = [
            name for name, on in self.features.model_dump().items() if on
        ]
        return f"<GenerationConfig {self.database.dialect} features={enabled}>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "DatabaseDialect",
    "NullHandling",
    "normalize_dialect",
    "ForeignKeyInfo",
    "IndexInfo",
    "ColumnInfo",
    "TableInfo",
    "DatabaseSchema",
    "MaskingRule",
    "DatabaseConfig",
    "PathsConfig",
    "FeaturesConfig",
    "CrudConfig",
    "EntitiesConfig",
    "SqlConfig",
    "DataExportConfig",
    "GenerationConfig",
]

logger.debug("dbscaffold.models loaded — %d public symbols.", len(__all__))

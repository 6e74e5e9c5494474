# File: dbscaffold/templates.py
"""
dbscaffold - Artifact Renderers
=================================
Turns one ``TableInfo`` plus the run configuration into the text of the
TypeScript / NestJS / TypeORM artifacts for that table:

    1. TypeORM entity                      <kebab>.entity.ts
    2. Create / Update / Query DTOs        dto/<kind>-<kebab>.dto.ts
    3. Repository                          <kebab>.repository.ts
    4. Service                             <kebab>.service.ts
    5. Controller                          <kebab>.controller.ts
    6. Feature module                      <kebab>.module.ts
    7. Service test stub                   <kebab>.service.spec.ts
    8. Top-level ``AppModule`` (new file or append-only merge)
    9. Entity index                        index.ts

Renderers never touch the database or the filesystem; the orchestrator
decides paths (including entity reuse) and hands import paths in.

The *decisions* (which columns become which kind of field, which are
optional, which relations are rendered) live in :meth:`entity_fields`,
:meth:`create_dto_fields` and :meth:`relations` so they can be checked
without parsing rendered text.

**Performance contract:**
    - All string assembly uses ``List[str]`` + ``"\\n".join()``.
    - Renderers are stateless apart from the accumulated ``warnings``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from dbscaffold.errors import WiringError
from dbscaffold.models import ColumnInfo, CrudConfig, GenerationConfig, TableInfo
from dbscaffold.type_mapping import TypeMapping, resolve
from dbscaffold.utils import (
    to_camel_case,
    to_kebab_case,
    to_property_name,
    to_relationship_name,
    to_safe_class_name,
    to_snake_case,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("dbscaffold.templates")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_INDENT: str = "  "

FIELD_GENERATED: str = "generated"
FIELD_PRIMARY: str = "primary"
FIELD_CREATED: str = "created"
FIELD_UPDATED: str = "updated"
FIELD_COLUMN: str = "column"

_CREATED_RE: re.Pattern[str] = re.compile(r"(^|_)created_(at|on|date|time)$")
_UPDATED_RE: re.Pattern[str] = re.compile(r"(^|_)(updated|modified)_(at|on|date|time)$")
_PG_CAST_RE: re.Pattern[str] = re.compile(r"::[\w\s\[\]\".]+$")
_NUMERIC_LITERAL_RE: re.Pattern[str] = re.compile(r"^-?\d+(\.\d+)?$")
_LENGTH_TYPES: FrozenSet[str] = frozenset({"varchar", "char", "nvarchar", "nchar"})
_PRECISION_TYPES: FrozenSet[str] = frozenset({"decimal", "numeric"})
_UNFILTERABLE_HOST_TYPES: FrozenSet[str] = frozenset({"Buffer", "any"})

_VALIDATOR_FOR_HOST: Dict[str, str] = {
    "string": "IsString",
    "number": "IsNumber",
    "boolean": "IsBoolean",
    "Date": "IsDate",
}

APP_MODULE_FILE: str = "app.module.ts"
ENTITY_INDEX_FILE: str = "index.ts"


# ---------------------------------------------------------------------------
# Naming bundle & field descriptions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ArtifactNames:
    """Every symbol and file name derived from one table name."""

    table_name: str
    class_name: str
    module_dir: str
    file_stem: str
    variable: str

    @property
    def entity_file(self) -> str:
        return f"{self.file_stem}.entity.ts"

    @property
    def create_dto_file(self) -> str:
        return f"create-{self.file_stem}.dto.ts"

    @property
    def update_dto_file(self) -> str:
        return f"update-{self.file_stem}.dto.ts"

    @property
    def query_dto_file(self) -> str:
        return f"query-{self.file_stem}.dto.ts"

    @property
    def repository_file(self) -> str:
        return f"{self.file_stem}.repository.ts"

    @property
    def service_file(self) -> str:
        return f"{self.file_stem}.service.ts"

    @property
    def controller_file(self) -> str:
        return f"{self.file_stem}.controller.ts"

    @property
    def module_file(self) -> str:
        return f"{self.file_stem}.module.ts"

    @property
    def spec_file(self) -> str:
        return f"{self.file_stem}.service.spec.ts"

    @property
    def module_class(self) -> str:
        return f"{self.class_name}Module"


def artifact_names(table_name: str) -> ArtifactNames:
    class_name: str = to_safe_class_name(table_name)
    return ArtifactNames(
        table_name=table_name,
        class_name=class_name,
        module_dir=to_camel_case(table_name) or class_name,
        file_stem=to_kebab_case(table_name) or to_kebab_case(class_name),
        variable=to_camel_case(class_name),
    )


@dataclass(frozen=True, slots=True)
class RelationSpec:
    """A rendered many-to-one relation for a foreign-key column."""

    property_name: str
    column_name: str
    target_table: str
    target_class: str
    on_delete: Optional[str] = None
    on_update: Optional[str] = None


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """How one column appears on the entity and in the DTOs."""

    column: ColumnInfo
    property_name: str
    mapping: TypeMapping
    kind: str
    optional: bool

    @property
    def host_type(self) -> str:
        return self.mapping.host_type

    @property
    def is_managed(self) -> bool:
        return self.kind in (FIELD_GENERATED, FIELD_CREATED, FIELD_UPDATED)


@dataclass(frozen=True, slots=True)
class ModuleRegistration:
    """One feature module entry for the top-level ``AppModule``."""

    module_class: str
    import_path: str

    @property
    def import_line(self) -> str:
        return f"import {{ {self.module_class} }} from '{self.import_path}';"

    @property
    def entry_line(self) -> str:
        return f"{self.module_class},"


@dataclass(frozen=True, slots=True)
class EntityIndexEntry:
    class_name: str
    file_name: str

    @property
    def import_path(self) -> str:
        return "./" + self.file_name[: -len(".ts")] if self.file_name.endswith(".ts") else "./" + self.file_name


# ---------------------------------------------------------------------------
# Literal helpers
# ---------------------------------------------------------------------------


def _ts_string(value: str) -> str:
    escaped: str = value.replace("\\", "\\\\").replace("'", "\\'").replace("\n", " ")
    return f"'{escaped}'"


def _ts_default(column: ColumnInfo, mapping: TypeMapping) -> Optional[str]:
    """Render a catalog default as a TypeORM ``default`` option value."""
    if column.default_value is None or column.is_auto_increment:
        return None
    raw: str = _PG_CAST_RE.sub("", column.default_value.strip()).strip()
    if not raw or raw.upper() == "NULL" or raw.lower().startswith("nextval("):
        return None
    if len(raw) >= 2 and raw[0] == "'" and raw[-1] == "'":
        return _ts_string(raw[1:-1].replace("''", "'"))
    if raw.lower() in ("true", "false"):
        return raw.lower()
    if _NUMERIC_LITERAL_RE.match(raw):
        if mapping.host_type == "boolean" and raw in ("0", "1"):
            return "true" if raw == "1" else "false"
        return raw
    if "(" in raw or raw.upper().startswith("CURRENT_"):
        return '() => "' + raw.replace('"', '\\"') + '"'
    return _ts_string(raw)


def _ts_array(values: Iterable[str]) -> str:
    return "[" + ", ".join(_ts_string(v) for v in values) + "]"


def _options(parts: Sequence[str]) -> str:
    return "{ " + ", ".join(parts) + " }" if parts else ""


def _import_line(names: Iterable[str], source: str) -> str:
    return f"import {{ {', '.join(names)} }} from '{source}';"


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


class ArtifactRenderer:
    """
    Renders TypeScript artifacts for tables of one schema.

    Args:
        config: The run configuration; only read.
        dialect: Dialect used for type resolution.
        known_tables: Names of the tables in the filtered schema.  Foreign
            keys pointing elsewhere are rendered as plain columns.  ``None``
            treats every foreign key as resolvable.
    """

    def __init__(
        self,
        config: GenerationConfig,
        dialect: str,
        known_tables: Optional[Iterable[str]] = None,
    ) -> None:
        self._config: GenerationConfig = config
        self._crud: CrudConfig = config.crud
        self._dialect: str = str(dialect)
        self._known: Optional[Set[str]] = set(known_tables) if known_tables is not None else None
        self.warnings: List[str] = []
        self._warned: Set[str] = set()

        logger.debug(
            "ArtifactRenderer initialised: dialect=%s, swagger=%s, validation=%s",
            self._dialect,
            self._crud.include_swagger,
            self._crud.include_validation,
        )

    # -----------------------------------------------------------------
    # Decisions
    # -----------------------------------------------------------------

    def _warn(self, message: str) -> None:
        if message in self._warned:
            return
        self._warned.add(message)
        self.warnings.append(message)
        logger.warning(message)

    def _field_kind(self, column: ColumnInfo, mapping: TypeMapping) -> str:
        if column.is_primary_key and column.is_auto_increment:
            return FIELD_GENERATED
        if column.is_primary_key:
            return FIELD_PRIMARY
        if mapping.host_type == "Date":
            snake: str = to_snake_case(column.name)
            if _CREATED_RE.search(snake):
                return FIELD_CREATED
            if _UPDATED_RE.search(snake):
                return FIELD_UPDATED
        return FIELD_COLUMN

    def entity_fields(self, table: TableInfo) -> List[FieldSpec]:
        """One :class:`FieldSpec` per column, in ordinal order."""
        fields: List[FieldSpec] = []
        used: Set[str] = set()
        for column in table.columns:
            mapping: TypeMapping = resolve(column.native_type, self._dialect, column.nullable)
            if mapping.is_fallback:
                self._warn(
                    f"{table.name}.{column.name}: unmapped type '{column.native_type}' "
                    f"rendered as '{mapping.host_type}'."
                )
            prop: str = to_property_name(column.name)
            candidate, suffix = prop, 2
            while candidate in used:
                candidate, suffix = f"{prop}{suffix}", suffix + 1
            used.add(candidate)
            fields.append(
                FieldSpec(
                    column=column,
                    property_name=candidate,
                    mapping=mapping,
                    kind=self._field_kind(column, mapping),
                    optional=mapping.is_optional,
                )
            )
        return fields

    def create_dto_fields(self, table: TableInfo) -> List[FieldSpec]:
        """Fields accepted on create: no generated ids, no managed timestamps."""
        return [
            f
            for f in self.entity_fields(table)
            if not f.is_managed and not f.column.is_auto_increment
        ]

    def relations(self, table: TableInfo) -> List[RelationSpec]:
        """Many-to-one relations for foreign keys whose target is in the schema."""
        taken: Set[str] = {f.property_name for f in self.entity_fields(table)}
        specs: List[RelationSpec] = []
        for fk in table.foreign_keys:
            if self._known is not None and fk.target_table not in self._known:
                self._warn(
                    f"{table.name}.{fk.column_name}: foreign key target "
                    f"'{fk.target_table}' is not in the generated schema; "
                    "rendered as a plain column."
                )
                continue
            base: str = re.sub(r"(_id|Id|ID)$", "", fk.column_name)
            name: str = (
                to_property_name(base)
                if base and base != fk.column_name
                else to_relationship_name(fk.target_table)
            )
            while name in taken:
                name = f"{name}Ref"
            taken.add(name)
            specs.append(
                RelationSpec(
                    property_name=name,
                    column_name=fk.column_name,
                    target_table=fk.target_table,
                    target_class=to_safe_class_name(fk.target_table),
                    on_delete=fk.on_delete,
                    on_update=fk.on_update,
                )
            )
        return specs

    def primary_field(self, table: TableInfo) -> Optional[FieldSpec]:
        for f in self.entity_fields(table):
            if f.kind in (FIELD_GENERATED, FIELD_PRIMARY):
                return f
        return None

    def _id_shape(self, table: TableInfo) -> Tuple[str, str]:
        """``(property, host type)`` used for the ``:id`` route parameter."""
        pk: Optional[FieldSpec] = self.primary_field(table)
        if pk is None:
            return "id", "number"
        host: str = pk.host_type if pk.host_type in ("number", "string") else "string"
        return pk.property_name, host

    # -----------------------------------------------------------------
    # Entity
    # -----------------------------------------------------------------

    def render_entity(
        self,
        table: TableInfo,
        relation_imports: Optional[Dict[str, str]] = None,
        *,
        include_swagger: Optional[bool] = None,
        include_validation: Optional[bool] = None,
    ) -> str:
        """
        Render the TypeORM entity.

        ``relation_imports`` maps a target table name to the import path of
        its entity; unknown targets default to a sibling file.
        """
        swagger: bool = self._crud.include_swagger if include_swagger is None else include_swagger
        validation: bool = (
            self._crud.include_validation if include_validation is None else include_validation
        )
        names: ArtifactNames = artifact_names(table.name)
        fields: List[FieldSpec] = self.entity_fields(table)
        relations: List[RelationSpec] = self.relations(table)
        relation_imports = relation_imports or {}

        typeorm: List[str] = ["Entity"]
        validators: Set[str] = set()
        body: List[str] = []

        for f in fields:
            body.append("")
            decorator: str = self._column_decorator(f)
            typeorm_name: str = decorator[1 : decorator.index("(")]
            if typeorm_name not in typeorm:
                typeorm.append(typeorm_name)
            body.append(f"{_INDENT}{decorator}")
            if swagger:
                body.append(f"{_INDENT}{self._api_property(f, for_entity=True)}")
            if validation:
                for v in self._validators(f):
                    validators.add(v.split("(")[0])
                    body.append(f"{_INDENT}@{v}")
            suffix: str = "?" if f.optional else ""
            null_union: str = " | null" if f.optional else ""
            body.append(f"{_INDENT}{f.property_name}{suffix}: {f.host_type}{null_union};")

        relation_sources: Dict[str, str] = {}
        for rel in relations:
            body.append("")
            options: List[str] = []
            if rel.on_delete and rel.on_delete.upper() != "NO ACTION":
                options.append(f"onDelete: {_ts_string(rel.on_delete.upper())}")
            if rel.on_update and rel.on_update.upper() != "NO ACTION":
                options.append(f"onUpdate: {_ts_string(rel.on_update.upper())}")
            opt_str: str = f", {_options(options)}" if options else ""
            body.append(f"{_INDENT}@ManyToOne(() => {rel.target_class}{opt_str})")
            body.append(f"{_INDENT}@JoinColumn({{ name: {_ts_string(rel.column_name)} }})")
            body.append(f"{_INDENT}{rel.property_name}: {rel.target_class};")
            for name in ("ManyToOne", "JoinColumn"):
                if name not in typeorm:
                    typeorm.append(name)
            if rel.target_class != names.class_name:
                relation_sources[rel.target_class] = relation_imports.get(
                    rel.target_table, f"./{to_kebab_case(rel.target_table)}.entity"
                )

        lines: List[str] = [_import_line(typeorm, "typeorm")]
        if swagger:
            lines.append(_import_line(["ApiProperty"], "@nestjs/swagger"))
        if validation and validators:
            lines.append(_import_line(sorted(validators), "class-validator"))
        for target_class in sorted(relation_sources):
            lines.append(_import_line([target_class], relation_sources[target_class]))
        lines.append("")
        if table.comment:
            lines.append(f"/** {table.comment} */")
        lines.append(f"@Entity({_ts_string(table.name)})")
        lines.append(f"export class {names.class_name} {{")
        lines.extend(body[1:] if body and body[0] == "" else body)
        lines.append("}")
        lines.append("")

        content: str = "\n".join(lines)
        logger.debug("Rendered entity for '%s': %d fields, %d relations.", table.name, len(fields), len(relations))
        return content

    def _column_decorator(self, f: FieldSpec) -> str:
        column: ColumnInfo = f.column
        if f.kind == FIELD_GENERATED:
            if f.property_name != column.name:
                return f"@PrimaryGeneratedColumn({{ name: {_ts_string(column.name)} }})"
            return "@PrimaryGeneratedColumn()"
        if f.kind in (FIELD_CREATED, FIELD_UPDATED):
            name = "CreateDateColumn" if f.kind == FIELD_CREATED else "UpdateDateColumn"
            opts: List[str] = []
            if f.property_name != column.name:
                opts.append(f"name: {_ts_string(column.name)}")
            return f"@{name}({_options(opts)})"

        options: List[str] = []
        if f.property_name != column.name:
            options.append(f"name: {_ts_string(column.name)}")
        options.append(f"type: {_ts_string(f.mapping.persistence_type)}")
        if f.mapping.persistence_type in _LENGTH_TYPES and column.max_length:
            options.append(f"length: {column.max_length}")
        if f.mapping.persistence_type in _PRECISION_TYPES and column.numeric_precision:
            options.append(f"precision: {column.numeric_precision}")
            if column.numeric_scale is not None:
                options.append(f"scale: {column.numeric_scale}")
        if column.enum_values:
            options.append(f"enum: {_ts_array(column.enum_values)}")
        if f.optional:
            options.append("nullable: true")
        if column.is_unique:
            options.append("unique: true")
        default: Optional[str] = _ts_default(column, f.mapping)
        if default is not None:
            options.append(f"default: {default}")
        if column.comment:
            options.append(f"comment: {_ts_string(column.comment)}")
        decorator: str = "PrimaryColumn" if f.kind == FIELD_PRIMARY else "Column"
        return f"@{decorator}({_options(options)})"

    def _api_property(self, f: FieldSpec, for_entity: bool = False) -> str:
        options: List[str] = []
        if f.column.comment:
            options.append(f"description: {_ts_string(f.column.comment)}")
        if f.column.enum_values:
            options.append(f"enum: {_ts_array(f.column.enum_values)}")
        if for_entity:
            if f.optional:
                options.append("required: false")
            return f"@ApiProperty({_options(options)})"
        decorator: str = "ApiPropertyOptional" if f.optional else "ApiProperty"
        return f"@{decorator}({_options(options)})"

    def _validators(self, f: FieldSpec) -> List[str]:
        result: List[str] = []
        if f.optional:
            result.append("IsOptional()")
        if f.column.enum_values:
            result.append(f"IsIn({_ts_array(f.column.enum_values)})")
            return result
        if f.mapping.is_array:
            result.append("IsArray()")
            return result
        validator: Optional[str] = _VALIDATOR_FOR_HOST.get(f.host_type)
        if validator:
            result.append(f"{validator}()")
        return result

    # -----------------------------------------------------------------
    # DTOs
    # -----------------------------------------------------------------

    def render_create_dto(self, table: TableInfo) -> str:
        names: ArtifactNames = artifact_names(table.name)
        fields: List[FieldSpec] = self.create_dto_fields(table)
        swagger_names: Set[str] = set()
        validators: Set[str] = set()
        body: List[str] = []

        for f in fields:
            body.append("")
            if self._crud.include_swagger:
                decorator: str = self._api_property(f)
                swagger_names.add(decorator[1 : decorator.index("(")])
                body.append(f"{_INDENT}{decorator}")
            if self._crud.include_validation:
                for v in self._validators(f):
                    validators.add(v.split("(")[0])
                    body.append(f"{_INDENT}@{v}")
            if f.optional:
                body.append(f"{_INDENT}{f.property_name}?: {f.host_type} | null;")
            else:
                body.append(f"{_INDENT}{f.property_name}: {f.host_type};")

        lines: List[str] = []
        if swagger_names:
            lines.append(_import_line(sorted(swagger_names), "@nestjs/swagger"))
        if validators:
            lines.append(_import_line(sorted(validators), "class-validator"))
        if any(f.host_type == "Date" for f in fields) and self._crud.include_validation:
            lines.append(_import_line(["Type"], "class-transformer"))
        if lines:
            lines.append("")
        lines.append(f"export class Create{names.class_name}Dto {{")
        lines.extend(body[1:] if body and body[0] == "" else body)
        lines.append("}")
        lines.append("")
        content: str = "\n".join(lines)
        if self._crud.include_validation:
            # dates arrive as strings; transform before IsDate runs
            content = content.replace(
                f"{_INDENT}@IsDate()", f"{_INDENT}@Type(() => Date)\n{_INDENT}@IsDate()"
            )
        return content

    def render_update_dto(self, table: TableInfo) -> str:
        names: ArtifactNames = artifact_names(table.name)
        source: str = "@nestjs/swagger" if self._crud.include_swagger else "@nestjs/mapped-types"
        lines: List[str] = [
            _import_line(["PartialType"], source),
            _import_line(
                [f"Create{names.class_name}Dto"],
                f"./{names.create_dto_file[: -len('.ts')]}",
            ),
            "",
            f"export class Update{names.class_name}Dto extends PartialType("
            f"Create{names.class_name}Dto) {{}}",
            "",
        ]
        return "\n".join(lines)

    def query_filter_fields(self, table: TableInfo) -> List[FieldSpec]:
        return [
            f
            for f in self.entity_fields(table)
            if f.host_type not in _UNFILTERABLE_HOST_TYPES
            and not f.mapping.is_array
            and f.kind != FIELD_GENERATED
        ]

    def render_query_dto(self, table: TableInfo) -> str:
        names: ArtifactNames = artifact_names(table.name)
        swagger: bool = self._crud.include_swagger
        validation: bool = self._crud.include_validation
        validators: Set[str] = {"IsOptional"}
        body: List[str] = []

        def add_field(
            prop: str,
            ts_type: str,
            description: str,
            checks: List[str],
            transform: Optional[str] = None,
            extra_swagger: str = "",
        ) -> None:
            body.append("")
            if swagger:
                body.append(
                    f"{_INDENT}@ApiPropertyOptional({{ description: {_ts_string(description)}"
                    f"{extra_swagger} }})"
                )
            if validation:
                body.append(f"{_INDENT}@IsOptional()")
                for check in checks:
                    validators.add(check.split("(")[0])
                    body.append(f"{_INDENT}@{check}")
                if transform:
                    body.append(f"{_INDENT}@Transform(({{ value }}) => {transform})")
            body.append(f"{_INDENT}{prop}?: {ts_type};")

        if self._crud.include_pagination:
            add_field("page", "number", "Page number for pagination", ["IsInt()", "Min(1)"], "parseInt(value, 10)")
            add_field("limit", "number", "Number of items per page", ["IsInt()", "Min(1)"], "parseInt(value, 10)")

        for f in self.query_filter_fields(table):
            transform: Optional[str] = None
            if f.host_type == "number":
                transform = "Number(value)"
            elif f.host_type == "boolean":
                transform = "value === 'true' || value === true"
            elif f.host_type == "Date":
                transform = "new Date(value)"
            checks: List[str] = [v for v in self._validators(f) if v != "IsOptional()"]
            add_field(f.property_name, f.host_type, f"Filter by {f.column.name}", checks, transform)

        if self._crud.include_sorting:
            sortable: List[str] = [f.property_name for f in self.entity_fields(table)]
            add_field("sortBy", "string", "Field to sort by", [f"IsIn({_ts_array(sortable)})"])
            add_field(
                "sortOrder",
                "'ASC' | 'DESC'",
                "Sort direction",
                ["IsIn(['ASC', 'DESC'])"],
                extra_swagger=", enum: ['ASC', 'DESC']",
            )

        lines: List[str] = []
        if swagger:
            lines.append(_import_line(["ApiPropertyOptional"], "@nestjs/swagger"))
        if validation:
            lines.append(_import_line(sorted(validators), "class-validator"))
            if any("@Transform(" in line for line in body):
                lines.append(_import_line(["Transform"], "class-transformer"))
        if lines:
            lines.append("")
        lines.append(f"export class Query{names.class_name}Dto {{")
        lines.extend(body[1:] if body and body[0] == "" else body)
        lines.append("}")
        lines.append("")
        return "\n".join(lines)

    # -----------------------------------------------------------------
    # Repository / service / controller / module
    # -----------------------------------------------------------------

    @property
    def _uses_query_dto(self) -> bool:
        return self._crud.use_dto and self._crud.include_filtering

    def _dto_imports(self, names: ArtifactNames, prefix: str = "./dto/") -> List[str]:
        if not self._crud.use_dto:
            return []
        lines: List[str] = [
            _import_line([f"Create{names.class_name}Dto"], f"{prefix}{names.create_dto_file[:-3]}"),
            _import_line([f"Update{names.class_name}Dto"], f"{prefix}{names.update_dto_file[:-3]}"),
        ]
        if self._uses_query_dto:
            lines.append(
                _import_line([f"Query{names.class_name}Dto"], f"{prefix}{names.query_dto_file[:-3]}")
            )
        return lines

    def _dto_types(self, names: ArtifactNames) -> Tuple[str, str]:
        if self._crud.use_dto:
            return f"Create{names.class_name}Dto", f"Update{names.class_name}Dto"
        return f"Partial<{names.class_name}>", f"Partial<{names.class_name}>"

    def render_repository(self, table: TableInfo, entity_import: str) -> str:
        """Render the repository; ``entity_import`` is the resolved entity path."""
        names: ArtifactNames = artifact_names(table.name)
        cls: str = names.class_name
        create_type, update_type = self._dto_types(names)
        id_prop, id_type = self._id_shape(table)
        typeorm_names: List[str] = ["Repository", "FindManyOptions"]
        if self._uses_query_dto:
            typeorm_names.append("FindOptionsWhere")

        lines: List[str] = [
            _import_line(["Injectable", "NotFoundException"], "@nestjs/common"),
            _import_line(["InjectRepository"], "@nestjs/typeorm"),
            _import_line(typeorm_names, "typeorm"),
            _import_line([cls], entity_import),
            *self._dto_imports(names),
            "",
            "@Injectable()",
            f"export class {cls}Repository {{",
            f"{_INDENT}constructor(",
            f"{_INDENT * 2}@InjectRepository({cls})",
            f"{_INDENT * 2}private readonly repository: Repository<{cls}>,",
            f"{_INDENT}) {{}}",
            "",
            f"{_INDENT}async create(dto: {create_type}): Promise<{cls}> {{",
            f"{_INDENT * 2}const entity = this.repository.create(dto as Partial<{cls}>);",
            f"{_INDENT * 2}return await this.repository.save(entity);",
            f"{_INDENT}}}",
            "",
        ]

        if self._uses_query_dto:
            destructured: List[str] = []
            if self._crud.include_pagination:
                destructured += ["page = 1", "limit = 10"]
            if self._crud.include_sorting:
                destructured += [f"sortBy = '{id_prop}'", "sortOrder = 'DESC'"]
            destructured.append("...filters")
            lines += [
                f"{_INDENT}async findAll(queryDto?: Query{cls}Dto): "
                f"Promise<{{ data: {cls}[]; total: number }}> {{",
                f"{_INDENT * 2}const {{ {', '.join(destructured)} }} = queryDto || {{}};",
                f"{_INDENT * 2}const options: FindManyOptions<{cls}> = {{",
                f"{_INDENT * 3}where: this.buildWhereClause(filters),",
            ]
            if self._crud.include_sorting:
                lines.append(f"{_INDENT * 3}order: {{ [sortBy]: sortOrder }} as FindManyOptions<{cls}>['order'],")
            if self._crud.include_pagination:
                lines += [f"{_INDENT * 3}skip: (page - 1) * limit,", f"{_INDENT * 3}take: limit,"]
            lines += [
                f"{_INDENT * 2}}};",
                f"{_INDENT * 2}const [data, total] = await this.repository.findAndCount(options);",
                f"{_INDENT * 2}return {{ data, total }};",
                f"{_INDENT}}}",
                "",
            ]
        else:
            lines += [
                f"{_INDENT}async findAll(): Promise<{cls}[]> {{",
                f"{_INDENT * 2}const options: FindManyOptions<{cls}> = {{}};",
                f"{_INDENT * 2}return await this.repository.find(options);",
                f"{_INDENT}}}",
                "",
            ]

        lines += [
            f"{_INDENT}async findOne(id: {id_type}): Promise<{cls}> {{",
            f"{_INDENT * 2}const entity = await this.repository.findOne({{ where: {{ {id_prop}: id }} as any }});",
            f"{_INDENT * 2}if (!entity) {{",
            f"{_INDENT * 3}throw new NotFoundException(`{cls} with ID ${{id}} not found`);",
            f"{_INDENT * 2}}}",
            f"{_INDENT * 2}return entity;",
            f"{_INDENT}}}",
            "",
            f"{_INDENT}async update(id: {id_type}, dto: {update_type}): Promise<{cls}> {{",
            f"{_INDENT * 2}const entity = await this.findOne(id);",
            f"{_INDENT * 2}Object.assign(entity, dto);",
            f"{_INDENT * 2}return await this.repository.save(entity);",
            f"{_INDENT}}}",
            "",
            f"{_INDENT}async remove(id: {id_type}): Promise<void> {{",
            f"{_INDENT * 2}const entity = await this.findOne(id);",
            f"{_INDENT * 2}await this.repository.remove(entity);",
            f"{_INDENT}}}",
        ]

        if self._uses_query_dto:
            lines += [
                "",
                f"{_INDENT}private buildWhereClause(filters: Record<string, unknown>): FindOptionsWhere<{cls}> {{",
                f"{_INDENT * 2}const where: Record<string, unknown> = {{}};",
                f"{_INDENT * 2}Object.entries(filters).forEach(([key, value]) => {{",
                f"{_INDENT * 3}if (value !== undefined && value !== null && value !== '') {{",
                f"{_INDENT * 4}where[key] = value;",
                f"{_INDENT * 3}}}",
                f"{_INDENT * 2}}});",
                f"{_INDENT * 2}return where as FindOptionsWhere<{cls}>;",
                f"{_INDENT}}}",
            ]
        lines += ["}", ""]
        return "\n".join(lines)

    def render_service(self, table: TableInfo, entity_import: Optional[str] = None) -> str:
        names: ArtifactNames = artifact_names(table.name)
        cls: str = names.class_name
        repo: str = f"{names.variable}Repository"
        create_type, update_type = self._dto_types(names)
        _, id_type = self._id_shape(table)
        query_param: str = f"queryDto?: Query{cls}Dto" if self._uses_query_dto else ""
        query_arg: str = "queryDto" if self._uses_query_dto else ""

        lines: List[str] = [
            _import_line(["Injectable"], "@nestjs/common"),
            _import_line([f"{cls}Repository"], f"./{names.repository_file[:-3]}"),
            *self._dto_imports(names),
        ]
        if not self._crud.use_dto:
            lines.append(_import_line([cls], entity_import or f"./{names.entity_file[:-3]}"))
        lines += [
            "",
            "@Injectable()",
            f"export class {cls}Service {{",
            f"{_INDENT}constructor(private readonly {repo}: {cls}Repository) {{}}",
            "",
            f"{_INDENT}async create(dto: {create_type}) {{",
            f"{_INDENT * 2}return await this.{repo}.create(dto);",
            f"{_INDENT}}}",
            "",
            f"{_INDENT}async findAll({query_param}) {{",
            f"{_INDENT * 2}return await this.{repo}.findAll({query_arg});",
            f"{_INDENT}}}",
            "",
            f"{_INDENT}async findOne(id: {id_type}) {{",
            f"{_INDENT * 2}return await this.{repo}.findOne(id);",
            f"{_INDENT}}}",
            "",
            f"{_INDENT}async update(id: {id_type}, dto: {update_type}) {{",
            f"{_INDENT * 2}return await this.{repo}.update(id, dto);",
            f"{_INDENT}}}",
            "",
            f"{_INDENT}async remove(id: {id_type}) {{",
            f"{_INDENT * 2}await this.{repo}.remove(id);",
            f"{_INDENT * 2}return {{ message: `{cls} deleted successfully` }};",
            f"{_INDENT}}}",
            "}",
            "",
        ]
        return "\n".join(lines)

    def render_controller(self, table: TableInfo, entity_import: Optional[str] = None) -> str:
        names: ArtifactNames = artifact_names(table.name)
        cls: str = names.class_name
        label: str = cls.lower()
        service: str = f"{names.variable}Service"
        create_type, update_type = self._dto_types(names)
        swagger: bool = self._crud.include_swagger
        _, id_type = self._id_shape(table)
        parse_int: bool = self._crud.include_validation and id_type == "number"
        id_param: str = (
            "@Param('id', ParseIntPipe) id: number" if parse_int else f"@Param('id') id: string"
        )
        id_arg: str = "id" if parse_int or id_type == "string" else "+id"

        common: List[str] = ["Controller", "Get", "Post", "Body", "Patch", "Param", "Delete"]
        if self._uses_query_dto:
            common.append("Query")
        if parse_int:
            common.append("ParseIntPipe")
        if self._crud.auth_guards:
            common.append("UseGuards")

        lines: List[str] = [_import_line(common, "@nestjs/common")]
        if swagger:
            swagger_names = ["ApiTags", "ApiOperation", "ApiResponse", "ApiParam"]
            if self._crud.auth_guards:
                swagger_names.append("ApiBearerAuth")
            lines.append(_import_line(swagger_names, "@nestjs/swagger"))
        if self._crud.auth_guards:
            lines.append(_import_line(["JwtAuthGuard"], "../auth/jwt-auth.guard"))
        lines.append(_import_line([f"{cls}Service"], f"./{names.service_file[:-3]}"))
        lines += self._dto_imports(names)
        if not self._crud.use_dto:
            lines.append(_import_line([cls], entity_import or f"./{names.entity_file[:-3]}"))
        lines.append("")

        if swagger:
            lines.append(f"@ApiTags({_ts_string(names.file_stem)})")
        if self._crud.auth_guards:
            if swagger:
                lines.append("@ApiBearerAuth()")
            lines.append("@UseGuards(JwtAuthGuard)")
        lines += [
            f"@Controller({_ts_string(names.file_stem)})",
            f"export class {cls}Controller {{",
            f"{_INDENT}constructor(private readonly {service}: {cls}Service) {{}}",
            "",
        ]

        def docs(summary: str, responses: List[Tuple[int, str]], with_param: bool = False) -> None:
            if not swagger:
                return
            lines.append(f"{_INDENT}@ApiOperation({{ summary: {_ts_string(summary)} }})")
            if with_param:
                lines.append(f"{_INDENT}@ApiParam({{ name: 'id', description: '{cls} ID' }})")
            for status, description in responses:
                lines.append(
                    f"{_INDENT}@ApiResponse({{ status: {status}, description: {_ts_string(description)} }})"
                )

        docs(
            f"Create a new {label}",
            [(201, f"The {label} has been successfully created."), (400, "Bad Request.")],
        )
        lines += [
            f"{_INDENT}@Post()",
            f"{_INDENT}create(@Body() dto: {create_type}) {{",
            f"{_INDENT * 2}return this.{service}.create(dto);",
            f"{_INDENT}}}",
            "",
        ]

        docs(f"Get all {label} records", [(200, f"Return all {label} records.")])
        lines.append(f"{_INDENT}@Get()")
        if self._uses_query_dto:
            lines += [
                f"{_INDENT}findAll(@Query() queryDto: Query{cls}Dto) {{",
                f"{_INDENT * 2}return this.{service}.findAll(queryDto);",
            ]
        else:
            lines += [f"{_INDENT}findAll() {{", f"{_INDENT * 2}return this.{service}.findAll();"]
        lines += [f"{_INDENT}}}", ""]

        docs(
            f"Get a {label} by id",
            [(200, f"Return the {label}."), (404, f"{cls} not found.")],
            with_param=True,
        )
        lines += [
            f"{_INDENT}@Get(':id')",
            f"{_INDENT}findOne({id_param}) {{",
            f"{_INDENT * 2}return this.{service}.findOne({id_arg});",
            f"{_INDENT}}}",
            "",
        ]

        docs(
            f"Update a {label}",
            [(200, f"The {label} has been successfully updated."), (404, f"{cls} not found.")],
            with_param=True,
        )
        lines += [
            f"{_INDENT}@Patch(':id')",
            f"{_INDENT}update({id_param}, @Body() dto: {update_type}) {{",
            f"{_INDENT * 2}return this.{service}.update({id_arg}, dto);",
            f"{_INDENT}}}",
            "",
        ]

        docs(
            f"Delete a {label}",
            [(200, f"The {label} has been successfully deleted."), (404, f"{cls} not found.")],
            with_param=True,
        )
        lines += [
            f"{_INDENT}@Delete(':id')",
            f"{_INDENT}remove({id_param}) {{",
            f"{_INDENT * 2}return this.{service}.remove({id_arg});",
            f"{_INDENT}}}",
            "}",
            "",
        ]
        return "\n".join(lines)

    def render_module(self, table: TableInfo, entity_import: str) -> str:
        names: ArtifactNames = artifact_names(table.name)
        cls: str = names.class_name
        lines: List[str] = [
            _import_line(["Module"], "@nestjs/common"),
            _import_line(["TypeOrmModule"], "@nestjs/typeorm"),
            _import_line([f"{cls}Controller"], f"./{names.controller_file[:-3]}"),
            _import_line([f"{cls}Service"], f"./{names.service_file[:-3]}"),
            _import_line([f"{cls}Repository"], f"./{names.repository_file[:-3]}"),
            _import_line([cls], entity_import),
            "",
            "@Module({",
            f"{_INDENT}imports: [TypeOrmModule.forFeature([{cls}])],",
            f"{_INDENT}controllers: [{cls}Controller],",
            f"{_INDENT}providers: [{cls}Service, {cls}Repository],",
            f"{_INDENT}exports: [{cls}Service, {cls}Repository],",
            "})",
            f"export class {names.module_class} {{}}",
            "",
        ]
        return "\n".join(lines)

    def render_service_spec(self, table: TableInfo) -> str:
        names: ArtifactNames = artifact_names(table.name)
        cls: str = names.class_name
        lines: List[str] = [
            _import_line(["Test", "TestingModule"], "@nestjs/testing"),
            _import_line([f"{cls}Service"], f"./{names.service_file[:-3]}"),
            _import_line([f"{cls}Repository"], f"./{names.repository_file[:-3]}"),
            "",
            f"describe('{cls}Service', () => {{",
            f"{_INDENT}let service: {cls}Service;",
            f"{_INDENT}const repository = {{",
            f"{_INDENT * 2}create: jest.fn(),",
            f"{_INDENT * 2}findAll: jest.fn(),",
            f"{_INDENT * 2}findOne: jest.fn(),",
            f"{_INDENT * 2}update: jest.fn(),",
            f"{_INDENT * 2}remove: jest.fn(),",
            f"{_INDENT}}};",
            "",
            f"{_INDENT}beforeEach(async () => {{",
            f"{_INDENT * 2}const module: TestingModule = await Test.createTestingModule({{",
            f"{_INDENT * 3}providers: [{cls}Service, {{ provide: {cls}Repository, useValue: repository }}],",
            f"{_INDENT * 2}}}).compile();",
            "",
            f"{_INDENT * 2}service = module.get<{cls}Service>({cls}Service);",
            f"{_INDENT}}});",
            "",
            f"{_INDENT}it('should be defined', () => {{",
            f"{_INDENT * 2}expect(service).toBeDefined();",
            f"{_INDENT}}});",
            "",
            f"{_INDENT}it('delegates findOne to the repository', async () => {{",
            f"{_INDENT * 2}repository.findOne.mockResolvedValue({{ id: 1 }});",
            f"{_INDENT * 2}await expect(service.findOne(1 as any)).resolves.toEqual({{ id: 1 }});",
            f"{_INDENT * 2}expect(repository.findOne).toHaveBeenCalledWith(1);",
            f"{_INDENT}}});",
            "});",
            "",
        ]
        return "\n".join(lines)

    # -----------------------------------------------------------------
    # AppModule wiring
    # -----------------------------------------------------------------

    def render_app_module(self, registrations: Sequence[ModuleRegistration]) -> str:
        """Render a fresh ``AppModule`` importing every registration."""
        lines: List[str] = [
            _import_line(["Module"], "@nestjs/common"),
            _import_line(["TypeOrmModule"], "@nestjs/typeorm"),
        ]
        lines += [reg.import_line for reg in registrations]
        lines += [
            "",
            "@Module({",
            f"{_INDENT}imports: [",
            f"{_INDENT * 2}TypeOrmModule.forRoot({{",
            f"{_INDENT * 3}// Database configuration should be provided by your application,",
            f"{_INDENT * 3}// e.g. via environment variables or a configuration service.",
            f"{_INDENT * 2}}}),",
        ]
        lines += [f"{_INDENT * 2}{reg.entry_line}" for reg in registrations]
        lines += [f"{_INDENT}],", "})", "export class AppModule {}", ""]
        return "\n".join(lines)

    # -----------------------------------------------------------------
    # Entity index
    # -----------------------------------------------------------------

    @staticmethod
    def render_entity_index(entries: Sequence[EntityIndexEntry]) -> str:
        """Render ``index.ts`` re-exporting every entity in a directory."""
        ordered: List[EntityIndexEntry] = sorted(entries, key=lambda e: e.file_name)
        lines: List[str] = ["// Generated entity index - Auto-generated, do not edit manually", ""]
        if ordered:
            lines.append("// Entity imports")
            lines += [_import_line([e.class_name], e.import_path) for e in ordered]
            lines += ["", "// Named exports", "export {"]
            lines += [f"{_INDENT}{e.class_name}," for e in ordered]
            lines += ["};", "", "// Entities array for TypeORM configuration", "export const Entities = ["]
            lines += [f"{_INDENT}{e.class_name}," for e in ordered]
            lines += ["];", ""]
        lines += [
            f"// Total entities: {len(ordered)}",
            f"export const ENTITY_COUNT = {len(ordered)};",
            "",
            "// Entity names for reference",
            "export const ENTITY_NAMES = [",
        ]
        lines += [f"{_INDENT}{_ts_string(e.class_name)}," for e in ordered]
        lines += ["];", "", "// Entity metadata", "export const ENTITY_METADATA = ["]
        for e in ordered:
            lines += [
                f"{_INDENT}{{",
                f"{_INDENT * 2}name: {_ts_string(e.class_name)},",
                f"{_INDENT * 2}fileName: {_ts_string(e.file_name)},",
                f"{_INDENT * 2}class: {e.class_name},",
                f"{_INDENT}}},",
            ]
        lines += ["];", ""]
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# AppModule merge
# ---------------------------------------------------------------------------

_MODULE_DECORATOR_RE: re.Pattern[str] = re.compile(r"@Module\s*\(\s*\{")
_IMPORTS_KEY_RE: re.Pattern[str] = re.compile(r"\bimports\s*:\s*\[")
_IMPORT_STATEMENT_RE: re.Pattern[str] = re.compile(r"^import\s[^;]*;[ \t]*$", re.MULTILINE)


def _with_trailing_comma(text: str) -> str:
    """
    Ensure the last code line of *text* ends in ``,`` or ``[``.

    Comment-only lines are skipped, and on a line with a trailing
    ``// comment`` the comma goes before the comment.
    """
    lines: List[str] = text.split("\n")
    for i in range(len(lines) - 1, -1, -1):
        line: str = lines[i]
        cut: int = line.find("//")
        code: str = (line if cut == -1 else line[:cut]).rstrip()
        if not code.strip():
            continue
        if code[-1] not in "[,":
            lines[i] = code + "," + line[len(code):]
        break
    return "\n".join(lines)


def _matching_bracket(text: str, open_index: int) -> int:
    """Index of the ``]`` closing the ``[`` at *open_index*, skipping strings and comments."""
    depth: int = 0
    i: int = open_index
    quote: Optional[str] = None
    while i < len(text):
        ch: str = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in ("'", '"', "`"):
            quote = ch
        elif text.startswith("//", i):
            newline: int = text.find("\n", i)
            i = len(text) if newline == -1 else newline
            continue
        elif text.startswith("/*", i):
            end: int = text.find("*/", i + 2)
            i = len(text) if end == -1 else end + 2
            continue
        elif ch in "[({":
            depth += 1
        elif ch in "])}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def merge_app_module(existing_text: str, registrations: Sequence[ModuleRegistration]) -> str:
    """
    Append new registrations to an existing ``AppModule`` source.

    Import statements are inserted before ``@Module(`` unless the exact
    line is already present; entries are appended at the end of the
    decorator's ``imports: [...]`` array unless an identical entry line
    already exists.  Nothing pre-existing is removed or reordered.

    Raises:
        WiringError: If the text has no ``@Module({`` decorator.
    """
    content: str = existing_text
    decorator: Optional[re.Match[str]] = _MODULE_DECORATOR_RE.search(content)
    if decorator is None:
        raise WiringError(
            "Existing app module has no @Module({ ... }) decorator; refusing to merge.",
            details={"registrations": [r.module_class for r in registrations]},
        )

    existing_lines: Set[str] = {line.strip() for line in content.splitlines()}
    new_imports: List[str] = [r.import_line for r in registrations if r.import_line not in existing_lines]
    if new_imports:
        insert_at: int = decorator.start()
        block: str = "\n".join(new_imports) + "\n"
        # keep imports contiguous with the last existing import when there is one
        last_import_end: int = -1
        for m in _IMPORT_STATEMENT_RE.finditer(content, 0, insert_at):
            last_import_end = m.end()
        if last_import_end != -1:
            content = content[:last_import_end] + "\n" + block.rstrip("\n") + content[last_import_end:]
        else:
            content = content[:insert_at] + block + "\n" + content[insert_at:]
        decorator = _MODULE_DECORATOR_RE.search(content)
        if decorator is None:
            raise WiringError("App module lost its @Module decorator while adding imports.")

    body_open: int = decorator.end() - 1
    body_close: int = _matching_bracket(content, body_open)
    if body_close == -1:
        raise WiringError("Unbalanced brackets in the app module @Module decorator.")
    imports_key: Optional[re.Match[str]] = _IMPORTS_KEY_RE.search(content, body_open, body_close)

    if imports_key is None:
        entries: str = "".join(f"\n{_INDENT * 2}{r.entry_line}" for r in registrations)
        insertion: str = f"\n{_INDENT}imports: [{entries}\n{_INDENT}],"
        return content[: body_open + 1] + insertion + content[body_open + 1 :]

    array_open: int = imports_key.end() - 1
    array_close: int = _matching_bracket(content, array_open)
    if array_close == -1:
        raise WiringError("Unbalanced brackets in the app module imports array.")

    array_text: str = content[array_open + 1 : array_close]
    present: Set[str] = {line.strip() for line in array_text.splitlines()}
    missing: List[ModuleRegistration] = [r for r in registrations if r.entry_line not in present]
    if not missing:
        return content

    head: str = _with_trailing_comma(content[: array_open + 1] + array_text.rstrip())
    closing_indent: str = ""
    trailing: str = array_text[len(array_text.rstrip()) :]
    if "\n" in trailing:
        closing_indent = trailing.rsplit("\n", 1)[1]
    else:
        closing_indent = _INDENT
    entry_indent: str = closing_indent + _INDENT
    appended: str = "".join(f"\n{entry_indent}{r.entry_line}" for r in missing)
    return head + appended + "\n" + closing_indent + content[array_close:]


__all__: List[str] = [
    "ArtifactNames",
    "ArtifactRenderer",
    "EntityIndexEntry",
    "FieldSpec",
    "ModuleRegistration",
    "RelationSpec",
    "artifact_names",
    "merge_app_module",
    "APP_MODULE_FILE",
    "ENTITY_INDEX_FILE",
    "FIELD_GENERATED",
    "FIELD_PRIMARY",
    "FIELD_CREATED",
    "FIELD_UPDATED",
    "FIELD_COLUMN",
]

logger.debug("dbscaffold.templates loaded — %d public symbols.", len(__all__))

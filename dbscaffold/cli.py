# File: dbscaffold/cli.py
"""
dbscaffold - Command-Line Interface
=====================================

Built with the standard-library ``argparse`` module.

Usage examples::

    # Entities and CRUD modules from a live database
    dbscaffold all --config dbscaffold.yaml

    # Only the users / orders modules, with auth guards and test stubs
    dbscaffold crud --include-tables users,orders --auth --tests

    # CREATE TABLE script from previously generated entities (no database)
    dbscaffold sql --from-entities ./src/entities --dialect mysql

    # Masked data export in batches of 500
    python -m dbscaffold export --mask --batch-size 500

Exit codes:
    0 — success
    1 — configuration / validation error
    2 — connection or introspection error
    3 — generation finished with failed tables
    4 — output / wiring error
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, NoReturn, Optional, Sequence

from pydantic import ValidationError

from dbscaffold.errors import ConfigurationError, ScaffoldError
from dbscaffold.generator import (
    GenerationReport,
    ScaffoldGenerator,
    build_config,
    find_config_file,
    load_config_file,
)
from dbscaffold.introspection import test_connection
from dbscaffold.models import GenerationConfig
from dbscaffold.utils import split_csv
from dbscaffold.validators import ValidationResult, validate_config

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("dbscaffold")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_CONFIG_ERROR: int = 1
EXIT_CONNECTION_ERROR: int = 2
EXIT_PARTIAL_FAILURE: int = 3
EXIT_OUTPUT_ERROR: int = 4

_EXIT_FOR_STAGE: Dict[str, int] = {
    "config": EXIT_CONFIG_ERROR,
    "connection": EXIT_CONNECTION_ERROR,
    "listing": EXIT_CONNECTION_ERROR,
    "output": EXIT_OUTPUT_ERROR,
    "wiring": EXIT_OUTPUT_ERROR,
}

_DIALECT_CHOICES: List[str] = ["postgres", "postgresql", "mysql", "mariadb", "mssql", "sqlserver"]


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the ``dbscaffold`` logger based on verbosity level.

    Args:
        verbosity: -1 = disabled, 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity < 0:
        logging.disable(logging.CRITICAL)
        return
    logging.disable(logging.NOTSET)

    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    fmt: str = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
    handler.setFormatter(logging.Formatter(fmt, datefmt="%H:%M:%S"))

    root_logger: logging.Logger = logging.getLogger("dbscaffold")
    root_logger.setLevel(level)
    # Remove existing handlers to prevent duplication
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _add_global_options(parser: argparse.ArgumentParser) -> None:
    conn = parser.add_argument_group("connection")
    conn.add_argument("--config", metavar="PATH", help="Config file (YAML or JSON).")
    conn.add_argument("--dialect", choices=_DIALECT_CHOICES, help="Database dialect.")
    conn.add_argument("--host", help="Database host.")
    conn.add_argument("--port", type=int, help="Database port.")
    conn.add_argument("--username", help="Database user.")
    conn.add_argument("--password", help="Database password.")
    conn.add_argument("--database", help="Database name.")
    conn.add_argument("--schema", help="Schema to introspect.")
    conn.add_argument("--ssl", action="store_true", default=None, help="Use SSL/TLS.")

    paths = parser.add_argument_group("output paths")
    paths.add_argument("--output-dir", metavar="DIR", help="Base output (and CRUD) directory.")
    paths.add_argument("--entities-dir", metavar="DIR", help="Shared entities directory.")
    paths.add_argument("--sql-dir", metavar="DIR", help="SQL script directory.")
    paths.add_argument("--data-dir", metavar="DIR", help="Data export directory.")

    verbosity = parser.add_argument_group("verbosity")
    verbosity.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Disable logging.",
    )


def _add_table_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--include-tables", metavar="LIST", help="Comma-separated tables to include.")
    parser.add_argument("--exclude-tables", metavar="LIST", help="Comma-separated tables to exclude.")


def _add_generation_options(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("generation flags")
    group.add_argument("--no-validation", action="store_true", help="Skip class-validator decorators.")
    group.add_argument("--no-swagger", action="store_true", help="Skip Swagger decorators.")
    group.add_argument("--no-index", action="store_true", help="Do not write the entity index.")
    group.add_argument("--no-pagination", action="store_true", help="No pagination in findAll.")
    group.add_argument("--no-filtering", action="store_true", help="No query DTO / filtering.")
    group.add_argument("--no-sorting", action="store_true", help="No sorting in findAll.")
    group.add_argument("--no-dto", action="store_true", help="Use Partial<Entity> instead of DTOs.")
    group.add_argument("--auth", action="store_true", help="Guard controllers with JwtAuthGuard.")
    group.add_argument("--tests", action="store_true", help="Write service test stubs.")


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from dbscaffold import __version__

    common = argparse.ArgumentParser(add_help=False)
    _add_global_options(common)

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="dbscaffold",
        description=(
            "dbscaffold — reverse-engineer a relational database into "
            "TypeORM entities, NestJS CRUD modules, SQL DDL and data scripts."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s all --config dbscaffold.yaml\n"
            "  %(prog)s crud --include-tables users,orders --auth\n"
            "  %(prog)s sql --from-entities ./src/entities --dialect mysql\n"
            "  %(prog)s export --mask --batch-size 500\n"
        ),
    )
    parser.add_argument("--version", action="version", version=f"dbscaffold v{__version__}")
    sub = parser.add_subparsers(dest="command", metavar="<command>")
    sub.required = True

    entities = sub.add_parser("entities", parents=[common], help="Generate shared entities.")
    _add_table_options(entities)
    _add_generation_options(entities)

    crud = sub.add_parser("crud", parents=[common], help="Generate CRUD modules.")
    _add_table_options(crud)
    _add_generation_options(crud)

    sql = sub.add_parser("sql", parents=[common], help="Generate a CREATE TABLE script.")
    sql.add_argument(
        "--from-entities",
        metavar="DIR",
        help="Read *.entity.ts files instead of the database.",
    )

    export = sub.add_parser("export", parents=[common], help="Export table data as INSERT scripts.")
    _add_table_options(export)
    export.add_argument("--batch-size", type=int, help="Rows per batch file.")
    export.add_argument("--mask", action="store_true", help="Mask sensitive columns.")
    export.add_argument("--max-rows", type=int, help="Row cap per table.")

    everything = sub.add_parser("all", parents=[common], help="Run every enabled feature.")
    _add_table_options(everything)
    _add_generation_options(everything)

    sub.add_parser("test-connection", parents=[common], help="Check the database connection.")
    sub.add_parser("schema", parents=[common], help="Print the introspected schema as JSON.")
    sub.add_parser("validate", parents=[common], help="Validate the configuration only.")

    return parser


# ---------------------------------------------------------------------------
# Config override builder
# ---------------------------------------------------------------------------


def _build_config_overrides(args: argparse.Namespace) -> Dict[str, Dict[str, Any]]:
    """Build per-section config overrides from CLI arguments."""
    def opt(name: str) -> Any:
        return getattr(args, name, None)

    overrides: Dict[str, Dict[str, Any]] = {
        "database": {},
        "paths": {},
        "features": {},
        "crud": {},
        "entities": {},
        "data_export": {},
    }

    database = overrides["database"]
    for arg, key in (
        ("dialect", "dialect"),
        ("host", "host"),
        ("port", "port"),
        ("username", "username"),
        ("password", "password"),
        ("database", "database"),
        ("schema", "schema_name"),
        ("ssl", "ssl"),
    ):
        if opt(arg) is not None:
            database[key] = opt(arg)

    paths = overrides["paths"]
    if opt("output_dir"):
        paths["base_output"] = opt("output_dir")
        paths["crud"] = opt("output_dir")
    if opt("entities_dir"):
        paths["entities"] = opt("entities_dir")
    if opt("sql_dir"):
        paths["sql"] = opt("sql_dir")
    if opt("data_dir"):
        paths["data_export"] = opt("data_dir")

    include: Optional[List[str]] = split_csv(opt("include_tables"))
    exclude: Optional[List[str]] = split_csv(opt("exclude_tables"))
    table_sections: List[str] = (
        ["data_export"] if args.command == "export" else ["crud", "entities"]
    )
    for section in table_sections:
        if include is not None:
            overrides[section]["included_tables"] = include
        if exclude is not None:
            overrides[section]["excluded_tables"] = exclude

    if opt("no_validation"):
        overrides["crud"]["include_validation"] = False
        overrides["entities"]["include_validation"] = False
    if opt("no_swagger"):
        overrides["crud"]["include_swagger"] = False
        overrides["entities"]["include_swagger"] = False
    if opt("no_index"):
        overrides["features"]["generate_index"] = False
    for flag, key in (
        ("no_pagination", "include_pagination"),
        ("no_filtering", "include_filtering"),
        ("no_sorting", "include_sorting"),
        ("no_dto", "use_dto"),
    ):
        if opt(flag):
            overrides["crud"][key] = False
    if opt("auth"):
        overrides["crud"]["auth_guards"] = True
    if opt("tests"):
        overrides["crud"]["generate_tests"] = True

    export = overrides["data_export"]
    if opt("batch_size") is not None:
        export["batch_size"] = opt("batch_size")
    if opt("mask"):
        export["enable_masking"] = True
    if opt("max_rows") is not None:
        export["max_rows"] = opt("max_rows")
    if args.command == "export":
        overrides["features"]["data_export"] = True

    return {section: values for section, values in overrides.items() if values}


def _load_config(args: argparse.Namespace) -> GenerationConfig:
    """
    Config file (explicit or discovered) merged with CLI overrides.

    Raises:
        ConfigurationError: Unreadable file or invalid merged config.
    """
    path: Optional[Path] = Path(args.config) if args.config else find_config_file()
    raw: Dict[str, Any] = {}
    if path is not None:
        try:
            raw = load_config_file(path)
        except (FileNotFoundError, ValueError) as exc:
            raise ConfigurationError(str(exc), details={"path": str(path)}) from exc
        logger.info("Loaded config from %s", path)

    config: GenerationConfig = build_config(raw)
    overrides = _build_config_overrides(args)
    if not overrides:
        return config
    try:
        return config.with_overrides(overrides)
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid command-line options: {exc.error_count()} error(s): "
            + "; ".join(err["msg"] for err in exc.errors()),
        ) from exc


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _print_validation(result: ValidationResult) -> None:
    print(result.format_report())


def _require_valid_config(config: GenerationConfig) -> None:
    result: ValidationResult = validate_config(config)
    if not result.is_valid:
        _print_validation(result)
        raise result.to_error()


def _exit_code_for(report: GenerationReport) -> int:
    if report.fatal_error is not None:
        return _EXIT_FOR_STAGE.get(report.failed_stage or "", EXIT_CONFIG_ERROR)
    if report.failed_tables:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS


def _cmd_validate(config: GenerationConfig, args: argparse.Namespace) -> int:
    result: ValidationResult = validate_config(config)
    _print_validation(result)
    if result.is_valid:
        print("\n  ✅ Configuration is valid.")
    return EXIT_SUCCESS if result.is_valid else EXIT_CONFIG_ERROR


def _cmd_test_connection(config: GenerationConfig, args: argparse.Namespace) -> int:
    if test_connection(config.database):
        print(f"✅ Connected to {config.dialect} database '{config.database.database}'.")
        return EXIT_SUCCESS
    print(f"❌ Could not connect to {config.dialect} database '{config.database.database}'.")
    return EXIT_CONNECTION_ERROR


def _cmd_schema(config: GenerationConfig, args: argparse.Namespace) -> int:
    schema = ScaffoldGenerator(config).load_schema()
    print(json.dumps(schema.model_dump(mode="json"), indent=2, ensure_ascii=False))
    return EXIT_SUCCESS


def _cmd_entities(config: GenerationConfig, args: argparse.Namespace) -> int:
    report: GenerationReport = ScaffoldGenerator(config).generate_entities()
    print(report.summary())
    return _exit_code_for(report)


def _cmd_crud(config: GenerationConfig, args: argparse.Namespace) -> int:
    report: GenerationReport = ScaffoldGenerator(config).generate_crud()
    print(report.summary())
    return _exit_code_for(report)


def _cmd_sql(config: GenerationConfig, args: argparse.Namespace) -> int:
    generator = ScaffoldGenerator(config)
    if args.from_entities:
        report: GenerationReport = generator.generate_sql_from_entities(Path(args.from_entities))
    else:
        report = generator.generate_sql()
    print(report.summary())
    return _exit_code_for(report)


def _cmd_export(config: GenerationConfig, args: argparse.Namespace) -> int:
    export_report = ScaffoldGenerator(config).export_data()
    print(export_report.summary())
    return EXIT_PARTIAL_FAILURE if export_report.failed_tables else EXIT_SUCCESS


def _cmd_all(config: GenerationConfig, args: argparse.Namespace) -> int:
    report: GenerationReport = ScaffoldGenerator(config).generate_all()
    print(report.summary())
    return _exit_code_for(report)


_COMMANDS: Dict[str, Callable[[GenerationConfig, argparse.Namespace], int]] = {
    "entities": _cmd_entities,
    "crud": _cmd_crud,
    "sql": _cmd_sql,
    "export": _cmd_export,
    "all": _cmd_all,
    "test-connection": _cmd_test_connection,
    "schema": _cmd_schema,
    "validate": _cmd_validate,
}


def _needs_database(args: argparse.Namespace) -> bool:
    if args.command == "validate":
        return False
    return not (args.command == "sql" and args.from_entities)


def run_command(args: argparse.Namespace) -> int:
    """Execute a parsed command and return its exit code."""
    try:
        config: GenerationConfig = _load_config(args)
        if _needs_database(args):
            _require_valid_config(config)
        return _COMMANDS[args.command](config, args)
    except ScaffoldError as exc:
        logger.error("%s", exc)
        print(f"❌ {exc}", file=sys.stderr)
        return _EXIT_FOR_STAGE.get(exc.stage, EXIT_CONFIG_ERROR)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Can be called from ``__main__.py`` or directly for testing.

    Args:
        argv: Optional argument list (defaults to sys.argv[1:]).
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    _setup_logging(-1 if args.quiet else args.verbose)
    logger.info("Command: %s", args.command)

    exit_code: int = run_command(args)
    if exit_code == EXIT_SUCCESS:
        logger.info("Command '%s' completed successfully.", args.command)
    else:
        logger.error("Command '%s' failed with exit code %d.", args.command, exit_code)
    sys.exit(exit_code)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "run_command",
    "EXIT_SUCCESS",
    "EXIT_CONFIG_ERROR",
    "EXIT_CONNECTION_ERROR",
    "EXIT_PARTIAL_FAILURE",
    "EXIT_OUTPUT_ERROR",
]

logger.debug("dbscaffold.cli loaded.")

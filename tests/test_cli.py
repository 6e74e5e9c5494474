"""
tests/test_cli.py
Tests for the dbscaffold command-line interface.

Database commands run against the fake catalog by swapping the
``ScaffoldGenerator`` the CLI module constructs for one bound to a
``FakeEngine``.
"""

from __future__ import annotations

import argparse
import pathlib
from typing import Any, Callable, Dict, List

import pytest
import yaml

from dbscaffold import cli
from dbscaffold.cli import (
    EXIT_CONFIG_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_OUTPUT_ERROR,
    EXIT_PARTIAL_FAILURE,
    EXIT_SUCCESS,
    cli_main,
    run_command,
)
from dbscaffold.generator import ScaffoldGenerator
from dbscaffold.models import GenerationConfig

from conftest import FakeEngine, PostgresCatalog


def _args(*argv: str) -> argparse.Namespace:
    return cli._build_parser().parse_args(list(argv))


@pytest.fixture()
def bind_engine(monkeypatch: pytest.MonkeyPatch) -> Callable[[FakeEngine], None]:
    """Make every generator the CLI builds use *engine*."""

    def bind(engine: FakeEngine) -> None:
        def factory(config: GenerationConfig) -> ScaffoldGenerator:
            return ScaffoldGenerator(config, engine=engine)

        monkeypatch.setattr(cli, "ScaffoldGenerator", factory)

    return bind


class TestEntryPoint:
    """argparse surface and process exit."""

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as excinfo:
            cli_main(["--version"])
        assert excinfo.value.code == 0
        assert "dbscaffold v" in capsys.readouterr().out

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit) as excinfo:
            cli_main([])
        assert excinfo.value.code == 2

    def test_validate_exits_zero(
        self, config_yaml_path: pathlib.Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with pytest.raises(SystemExit) as excinfo:
            cli_main(["validate", "--config", str(config_yaml_path)])
        assert excinfo.value.code == EXIT_SUCCESS
        assert "Configuration is valid" in capsys.readouterr().out


class TestOverrides:
    """Command-line flags become per-section overrides."""

    def test_generation_flags(self) -> None:
        overrides = cli._build_config_overrides(
            _args("crud", "--include-tables", "users, orders", "--auth", "--no-swagger", "--output-dir", "out")
        )
        assert overrides["crud"]["included_tables"] == ["users", "orders"]
        assert overrides["entities"]["included_tables"] == ["users", "orders"]
        assert overrides["crud"]["auth_guards"] is True
        assert overrides["crud"]["include_swagger"] is False
        assert overrides["paths"] == {"base_output": "out", "crud": "out"}
        assert "data_export" not in overrides

    def test_export_flags(self) -> None:
        overrides = cli._build_config_overrides(
            _args("export", "--exclude-tables", "audit_log", "--mask", "--batch-size", "50")
        )
        assert overrides["data_export"] == {
            "excluded_tables": ["audit_log"],
            "enable_masking": True,
            "batch_size": 50,
        }
        assert overrides["features"] == {"data_export": True}
        assert "crud" not in overrides

    def test_connection_flags_merge_over_file(self, config_yaml_path: pathlib.Path) -> None:
        config = cli._load_config(
            _args("schema", "--config", str(config_yaml_path), "--dialect", "mariadb", "--port", "3307")
        )
        assert config.dialect == "mysql"
        assert config.database.port == 3307
        assert config.database.host == "localhost"


class TestExitCodes:
    """Each failure class maps to its own exit code."""

    def test_validation_failure(self, tmp_path: pathlib.Path, base_config_dict: Dict[str, Any]) -> None:
        base_config_dict["database"]["host"] = ""
        path = tmp_path / "broken.yaml"
        path.write_text(yaml.safe_dump(base_config_dict), encoding="utf-8")
        assert run_command(_args("validate", "--config", str(path))) == EXIT_CONFIG_ERROR
        assert run_command(_args("crud", "--config", str(path))) == EXIT_CONFIG_ERROR

    def test_missing_and_invalid_config_files(self, tmp_path: pathlib.Path) -> None:
        assert run_command(_args("validate", "--config", str(tmp_path / "nope.yaml"))) == EXIT_CONFIG_ERROR
        invalid = tmp_path / "invalid.yaml"
        invalid.write_text("database:\n  type: oracle\n", encoding="utf-8")
        assert run_command(_args("validate", "--config", str(invalid))) == EXIT_CONFIG_ERROR

    def test_crud_success(
        self,
        config_yaml_path: pathlib.Path,
        fake_engine: FakeEngine,
        bind_engine: Callable[[FakeEngine], None],
        tmp_path: pathlib.Path,
    ) -> None:
        bind_engine(fake_engine)
        assert run_command(_args("crud", "--config", str(config_yaml_path))) == EXIT_SUCCESS
        assert (tmp_path / "src" / "app.module.ts").is_file()

    def test_listing_failure(
        self,
        config_yaml_path: pathlib.Path,
        pg_catalog: PostgresCatalog,
        bind_engine: Callable[[FakeEngine], None],
    ) -> None:
        pg_catalog.fail_listing = True
        bind_engine(FakeEngine(pg_catalog))
        assert run_command(_args("crud", "--config", str(config_yaml_path))) == EXIT_CONNECTION_ERROR
        assert run_command(_args("all", "--config", str(config_yaml_path))) == EXIT_CONNECTION_ERROR

    def test_partial_failure(
        self,
        config_yaml_path: pathlib.Path,
        fake_engine: FakeEngine,
        bind_engine: Callable[[FakeEngine], None],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        from dbscaffold.templates import ArtifactRenderer

        def broken(self: ArtifactRenderer, table: Any, entity_import: Any = None) -> str:
            raise RuntimeError("boom")

        monkeypatch.setattr(ArtifactRenderer, "render_controller", broken)
        bind_engine(fake_engine)
        assert run_command(_args("crud", "--config", str(config_yaml_path))) == EXIT_PARTIAL_FAILURE

    def test_wiring_failure(
        self,
        config_yaml_path: pathlib.Path,
        fake_engine: FakeEngine,
        bind_engine: Callable[[FakeEngine], None],
        tmp_path: pathlib.Path,
    ) -> None:
        app_module = tmp_path / "src" / "app.module.ts"
        app_module.parent.mkdir(parents=True)
        app_module.write_text("// not a module\n", encoding="utf-8")
        bind_engine(fake_engine)
        assert run_command(_args("all", "--config", str(config_yaml_path))) == EXIT_OUTPUT_ERROR

    def test_connection_check(
        self, config_yaml_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        calls: List[Any] = []

        def refuse(database: Any) -> bool:
            calls.append(database)
            return False

        monkeypatch.setattr(cli, "test_connection", refuse)
        assert run_command(_args("test-connection", "--config", str(config_yaml_path))) == EXIT_CONNECTION_ERROR
        assert calls[0].database == "shop"


class TestOfflineCommands:
    """Commands that never open a connection."""

    def test_sql_from_entities(
        self,
        config_yaml_path: pathlib.Path,
        fake_engine: FakeEngine,
        tmp_path: pathlib.Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        config = cli._load_config(_args("validate", "--config", str(config_yaml_path)))
        ScaffoldGenerator(config, engine=fake_engine).generate_entities()
        entities_dir = tmp_path / "src" / "entities"

        code = run_command(
            _args("sql", "--config", str(config_yaml_path), "--from-entities", str(entities_dir), "--dialect", "mysql")
        )
        assert code == EXIT_SUCCESS
        scripts = sorted((tmp_path / "sql").glob("create_tables_mysql_*.sql"))
        assert len(scripts) == 1
        assert "`customers`" in scripts[0].read_text(encoding="utf-8")
        assert "SQL script:" in capsys.readouterr().out

    def test_sql_from_missing_entities(self, config_yaml_path: pathlib.Path, tmp_path: pathlib.Path) -> None:
        code = run_command(
            _args("sql", "--config", str(config_yaml_path), "--from-entities", str(tmp_path / "none"))
        )
        assert code == EXIT_CONFIG_ERROR

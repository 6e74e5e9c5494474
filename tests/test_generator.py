"""
tests/test_generator.py
Integration tests for the ScaffoldGenerator pipeline.

Every run introspects the fake Postgres catalog from conftest and writes
real files below ``tmp_path``.

Tests cover:
- Full CRUD generation with local and shared entities
- Include / exclude filtering and per-table failure isolation
- AppModule creation, merging and idempotent re-runs
- Fatal stages folded into the report by run()
- SQL scripts (from the database and from entity files) and data export
"""

from __future__ import annotations

import json
import pathlib
from typing import Any, Callable, Optional

import pytest

from dbscaffold.errors import ConfigurationError, IntrospectionError
from dbscaffold.generator import GenerationReport, GenerationState, ScaffoldGenerator
from dbscaffold.models import GenerationConfig, TableInfo
from dbscaffold.templates import ArtifactRenderer

from conftest import FakeEngine, PostgresCatalog

ConfigFactory = Callable[..., GenerationConfig]

CRUD_ONLY = {"entities": False, "sql": False}


def _read(path: pathlib.Path) -> str:
    return path.read_text(encoding="utf-8")


class TestCrudGeneration:
    """CRUD modules with entities local to each module."""

    @pytest.fixture()
    def report(self, make_config: ConfigFactory, fake_engine: FakeEngine) -> GenerationReport:
        return ScaffoldGenerator(make_config(features=CRUD_ONLY), engine=fake_engine).run()

    def test_report(self, report: GenerationReport) -> None:
        assert report.success
        assert report.state == GenerationState.DONE
        assert report.tables_processed == 2
        assert report.fatal_error is None

    def test_module_layout(self, report: GenerationReport, tmp_path: pathlib.Path) -> None:
        module_dir = tmp_path / "src" / "customers"
        for relative in (
            "entities/customers.entity.ts",
            "dto/create-customers.dto.ts",
            "dto/update-customers.dto.ts",
            "dto/query-customers.dto.ts",
            "customers.repository.ts",
            "customers.service.ts",
            "customers.controller.ts",
            "customers.module.ts",
        ):
            assert (module_dir / relative).is_file(), relative
        assert not (module_dir / "customers.service.spec.ts").exists()
        assert not (tmp_path / "src" / "entities").exists()
        assert str(module_dir / "customers.module.ts") in report.output_paths

    def test_local_relation_import(self, report: GenerationReport, tmp_path: pathlib.Path) -> None:
        entity = _read(tmp_path / "src" / "orders" / "entities" / "orders.entity.ts")
        assert "import { Customers } from '../../customers/entities/customers.entity';" in entity
        repository = _read(tmp_path / "src" / "orders" / "orders.repository.ts")
        assert "import { Orders } from './entities/orders.entity';" in repository

    def test_app_module_created(self, report: GenerationReport, tmp_path: pathlib.Path) -> None:
        app_module = tmp_path / "src" / "app.module.ts"
        assert report.app_module_path == str(app_module)
        text = _read(app_module)
        assert "import { CustomersModule } from './customers/customers.module';" in text
        assert "import { OrdersModule } from './orders/orders.module';" in text
        assert "TypeOrmModule.forRoot({" in text

    def test_report_is_serialisable(self, report: GenerationReport) -> None:
        data = json.loads(json.dumps(report.to_dict()))
        assert data["tables_processed"] == 2
        assert data["state"] == "Done"
        assert "Tables processed: 2" in report.summary()

    def test_service_spec_when_enabled(
        self, make_config: ConfigFactory, fake_engine: FakeEngine, tmp_path: pathlib.Path
    ) -> None:
        config = make_config(features=CRUD_ONLY, crud={"generate_tests": True})
        ScaffoldGenerator(config, engine=fake_engine).run()
        assert (tmp_path / "src" / "orders" / "orders.service.spec.ts").is_file()


class TestSharedEntities:
    """Entities generated first are reused by the CRUD modules."""

    @pytest.fixture()
    def report(self, make_config: ConfigFactory, fake_engine: FakeEngine) -> GenerationReport:
        return ScaffoldGenerator(make_config(features={"sql": False}), engine=fake_engine).run()

    def test_entities_and_index(self, report: GenerationReport, tmp_path: pathlib.Path) -> None:
        entities = tmp_path / "src" / "entities"
        assert (entities / "customers.entity.ts").is_file()
        assert (entities / "orders.entity.ts").is_file()
        index = _read(entities / "index.ts")
        assert "export const ENTITY_COUNT = 2;" in index
        assert report.entity_index_path == str(entities / "index.ts")

    def test_crud_reuses_shared_entity(self, report: GenerationReport, tmp_path: pathlib.Path) -> None:
        assert not (tmp_path / "src" / "orders" / "entities").exists()
        repository = _read(tmp_path / "src" / "orders" / "orders.repository.ts")
        assert "import { Orders } from '../entities/orders.entity';" in repository
        module = _read(tmp_path / "src" / "orders" / "orders.module.ts")
        assert "import { Orders } from '../entities/orders.entity';" in module
        reused = [a for a in report.artifacts_for("orders") if a.reused]
        assert len(reused) == 1 and reused[0].artifact_kind == "entity"

    def test_existing_entity_found_without_entity_pass(
        self, make_config: ConfigFactory, fake_engine: FakeEngine, tmp_path: pathlib.Path
    ) -> None:
        shared = tmp_path / "src" / "entities" / "orders.entity.ts"
        shared.parent.mkdir(parents=True)
        shared.write_text("export class Orders {}\n", encoding="utf-8")
        ScaffoldGenerator(make_config(features=CRUD_ONLY), engine=fake_engine).run()
        assert _read(shared) == "export class Orders {}\n"
        assert not (tmp_path / "src" / "orders" / "entities").exists()
        assert (tmp_path / "src" / "customers" / "entities" / "customers.entity.ts").is_file()


class TestFiltering:
    """Include / exclude lists and the generation outcome."""

    def test_exclusion_wins(self, make_config: ConfigFactory, fake_engine: FakeEngine) -> None:
        config = make_config(
            features=CRUD_ONLY,
            crud={"included_tables": ["orders"], "excluded_tables": ["orders"]},
        )
        report = ScaffoldGenerator(config, engine=fake_engine).run()
        assert report.success
        assert report.tables_processed == 0

    def test_include_subset(
        self, make_config: ConfigFactory, fake_engine: FakeEngine, tmp_path: pathlib.Path
    ) -> None:
        config = make_config(features=CRUD_ONLY, crud={"included_tables": ["customers"]})
        report = ScaffoldGenerator(config, engine=fake_engine).run()
        assert report.tables_processed == 1
        assert not (tmp_path / "src" / "orders").exists()

    def test_dangling_relation_warns(self, make_config: ConfigFactory, fake_engine: FakeEngine) -> None:
        config = make_config(features=CRUD_ONLY, crud={"included_tables": ["orders"]})
        report = ScaffoldGenerator(config, engine=fake_engine).run()
        assert report.success
        assert any("customers" in w for w in report.warnings)

    def test_entities_filtered_away_from_their_relation_target(
        self, make_config: ConfigFactory, fake_engine: FakeEngine, tmp_path: pathlib.Path
    ) -> None:
        config = make_config(entities={"included_tables": ["orders"]})
        report = ScaffoldGenerator(config, engine=fake_engine).generate_entities()
        entities_dir = tmp_path / "src" / "entities"
        assert not (entities_dir / "customers.entity.ts").exists()
        text = _read(entities_dir / "orders.entity.ts")
        assert "customers.entity" not in text
        assert "ManyToOne" not in text
        assert any("customers" in w for w in report.warnings)


class TestFailureIsolation:
    """One failing table never stops the others."""

    def test_render_failure_for_one_table(
        self,
        make_config: ConfigFactory,
        fake_engine: FakeEngine,
        tmp_path: pathlib.Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        original = ArtifactRenderer.render_service

        def flaky(self: ArtifactRenderer, table: TableInfo, entity_import: Optional[str] = None) -> str:
            if table.name == "orders":
                raise RuntimeError("template exploded")
            return original(self, table, entity_import)

        monkeypatch.setattr(ArtifactRenderer, "render_service", flaky)
        report = ScaffoldGenerator(make_config(features=CRUD_ONLY), engine=fake_engine).run()

        assert not report.success
        assert report.fatal_error is None
        assert report.failed_tables == ["orders"]
        assert report.tables_processed == 1
        failures = [a for a in report.artifacts_for("orders") if not a.success]
        assert "template exploded" in (failures[0].error or "")
        app_module = _read(tmp_path / "src" / "app.module.ts")
        assert "CustomersModule," in app_module
        assert "OrdersModule" not in app_module

    def test_files_written_before_a_failure_are_reported(
        self,
        make_config: ConfigFactory,
        fake_engine: FakeEngine,
        tmp_path: pathlib.Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        original = ArtifactRenderer.render_controller

        def flaky(self: ArtifactRenderer, table: TableInfo, entity_import: Optional[str] = None) -> str:
            if table.name == "orders":
                raise RuntimeError("controller exploded")
            return original(self, table, entity_import)

        monkeypatch.setattr(ArtifactRenderer, "render_controller", flaky)
        report = ScaffoldGenerator(make_config(features=CRUD_ONLY), engine=fake_engine).run()

        service = tmp_path / "src" / "orders" / "orders.service.ts"
        assert service.is_file()
        assert str(service) in report.output_paths
        kinds = [a.artifact_kind for a in report.artifacts_for("orders") if a.success]
        assert "service" in kinds and "controller" not in kinds
        assert report.failed_tables == ["orders"]
        assert report.tables_processed == 1

    def test_introspection_drop_is_a_warning(
        self, make_config: ConfigFactory, pg_catalog: PostgresCatalog
    ) -> None:
        pg_catalog.failing_tables.add("orders")
        report = ScaffoldGenerator(make_config(features=CRUD_ONLY), engine=FakeEngine(pg_catalog)).run()
        assert report.success
        assert report.tables_processed == 1
        assert any("orders" in w for w in report.warnings)


class TestFatalStages:
    """run() never raises; it reports the failed stage."""

    def test_listing_failure(self, make_config: ConfigFactory, pg_catalog: PostgresCatalog) -> None:
        pg_catalog.fail_listing = True
        report = ScaffoldGenerator(make_config(), engine=FakeEngine(pg_catalog)).run()
        assert not report.success
        assert report.failed_stage == "listing"
        assert report.fatal_error is not None
        assert report.files_generated == 0

    def test_connection_failure(self, make_config: ConfigFactory, pg_catalog: PostgresCatalog) -> None:
        engine = FakeEngine(pg_catalog, fail_connect=True)
        report = ScaffoldGenerator(make_config(), engine=engine).run()
        assert report.failed_stage == "connection"
        assert report.state == GenerationState.IDLE

    def test_output_root_is_a_file(
        self, make_config: ConfigFactory, fake_engine: FakeEngine, tmp_path: pathlib.Path
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("x", encoding="utf-8")
        config = make_config(features=CRUD_ONLY, paths={"crud": str(blocker)})
        report = ScaffoldGenerator(config, engine=fake_engine).run()
        assert report.failed_stage == "output"

    def test_lower_level_methods_raise(self, make_config: ConfigFactory, pg_catalog: PostgresCatalog) -> None:
        pg_catalog.fail_listing = True
        generator = ScaffoldGenerator(make_config(), engine=FakeEngine(pg_catalog))
        with pytest.raises(IntrospectionError) as excinfo:
            generator.generate_crud()
        assert excinfo.value.stage == "listing"


class TestAppModuleMerge:
    """Existing AppModule files are extended, never replaced."""

    EXISTING: str = (
        "import { Module } from '@nestjs/common';\n"
        "import { ConfigModule } from '@nestjs/config';\n"
        "\n"
        "@Module({\n"
        "  imports: [\n"
        "    ConfigModule.forRoot(),\n"
        "  ],\n"
        "})\n"
        "export class AppModule {}\n"
    )

    def test_merge_keeps_existing_entries(
        self, make_config: ConfigFactory, fake_engine: FakeEngine, tmp_path: pathlib.Path
    ) -> None:
        app_module = tmp_path / "src" / "app.module.ts"
        app_module.parent.mkdir(parents=True)
        app_module.write_text(self.EXISTING, encoding="utf-8")
        ScaffoldGenerator(make_config(features=CRUD_ONLY), engine=fake_engine).run()
        text = _read(app_module)
        assert "import { ConfigModule } from '@nestjs/config';" in text
        assert "    ConfigModule.forRoot()," in text
        assert "    CustomersModule," in text
        assert "    OrdersModule," in text
        assert "TypeOrmModule.forRoot" not in text

    def test_rerun_is_idempotent(
        self, make_config: ConfigFactory, pg_catalog: PostgresCatalog, tmp_path: pathlib.Path
    ) -> None:
        config = make_config(features={"sql": False})
        ScaffoldGenerator(config, engine=FakeEngine(pg_catalog)).run()
        first = _read(tmp_path / "src" / "app.module.ts")
        second_report = ScaffoldGenerator(config, engine=FakeEngine(pg_catalog)).run()
        assert second_report.success
        second = _read(tmp_path / "src" / "app.module.ts")
        assert second == first
        assert second.count("OrdersModule,") == 1

    def test_unmergeable_app_module(
        self, make_config: ConfigFactory, fake_engine: FakeEngine, tmp_path: pathlib.Path
    ) -> None:
        app_module = tmp_path / "src" / "app.module.ts"
        app_module.parent.mkdir(parents=True)
        app_module.write_text("export const app = {};\n", encoding="utf-8")
        report = ScaffoldGenerator(make_config(features=CRUD_ONLY), engine=fake_engine).run()
        assert report.failed_stage == "wiring"
        assert _read(app_module) == "export const app = {};\n"


class TestSqlAndExport:
    """generate_all(), SQL from entity files, data export."""

    def test_generate_all(
        self, make_config: ConfigFactory, pg_catalog: PostgresCatalog, tmp_path: pathlib.Path
    ) -> None:
        pg_catalog.data["customers"] = [{"id": 1, "name": "Ann", "email": "a@x.io", "status": "active"}]
        config = make_config(features={"data_export": True}, crud={"included_tables": ["orders"]})
        report = ScaffoldGenerator(config, engine=FakeEngine(pg_catalog)).generate_all()

        assert report.success, report.summary()
        assert report.sql_path is not None
        script = _read(pathlib.Path(report.sql_path))
        assert 'CREATE TABLE IF NOT EXISTS "customers"' in script
        assert 'CREATE TABLE IF NOT EXISTS "orders"' in script
        assert report.export_report is not None
        assert report.export_report.total_rows == 1
        assert report.export_report.summary_path in report.output_paths
        assert (tmp_path / "data").is_dir()

    def test_run_skips_sql_and_export(self, make_config: ConfigFactory, fake_engine: FakeEngine) -> None:
        report = ScaffoldGenerator(make_config(features={"data_export": True}), engine=fake_engine).run()
        assert report.sql_path is None
        assert report.export_report is None

    def test_sql_from_entities(
        self, make_config: ConfigFactory, fake_engine: FakeEngine, tmp_path: pathlib.Path
    ) -> None:
        config = make_config()
        ScaffoldGenerator(config, engine=fake_engine).generate_entities()

        report = ScaffoldGenerator(config).generate_sql_from_entities()
        assert report.sql_path is not None
        script = _read(pathlib.Path(report.sql_path))
        assert "customers" in script and "orders" in script
        assert 'FOREIGN KEY ("customer_id")' in script

    def test_sql_from_missing_entities(self, make_config: ConfigFactory, tmp_path: pathlib.Path) -> None:
        with pytest.raises(ConfigurationError):
            ScaffoldGenerator(make_config()).generate_sql_from_entities(tmp_path / "nowhere")
        empty = tmp_path / "empty"
        empty.mkdir()
        with pytest.raises(ConfigurationError):
            ScaffoldGenerator(make_config()).generate_sql_from_entities(empty)

    def test_export_data_lists_tables(
        self, make_config: ConfigFactory, pg_catalog: PostgresCatalog
    ) -> None:
        config = make_config(data_export={"excluded_tables": ["orders"]})
        export: Any = ScaffoldGenerator(config, engine=FakeEngine(pg_catalog)).export_data()
        assert [t.table for t in export.tables] == ["customers"]

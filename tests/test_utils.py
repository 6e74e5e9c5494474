"""
tests/test_utils.py
Unit tests for dbscaffold.utils (naming normalizer and file helpers).

Tests cover:
- Case conversions and their idempotence
- Identifier sanitisation and reserved-word guarding
- Pluralisation heuristics and enum-definition parsing
- Relative import paths and atomic file writes
"""

from __future__ import annotations

import pathlib

import pytest

from dbscaffold.utils import (
    Timer,
    count_lines,
    is_reserved_word,
    parse_enum_values,
    relative_import_path,
    sanitize_identifier,
    split_csv,
    to_camel_case,
    to_enum_name,
    to_kebab_case,
    to_pascal_case,
    to_plural,
    to_property_name,
    to_relationship_name,
    to_safe_class_name,
    to_snake_case,
    write_file,
)


class TestCaseConversions:
    """snake / Pascal / camel / kebab conversions."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("ReportParameter", "report_parameter"),
            ("getHTTPResponse", "get_http_response"),
            ("already_snake", "already_snake"),
            ("Order-Item", "order_item"),
            ("", ""),
        ],
    )
    def test_to_snake_case(self, raw: str, expected: str) -> None:
        assert to_snake_case(raw) == expected

    def test_to_pascal_case_accepts_any_style(self) -> None:
        assert to_pascal_case("report_parameter") == "ReportParameter"
        assert to_pascal_case("reportParameter") == "ReportParameter"
        assert to_pascal_case("report-parameter") == "ReportParameter"

    def test_to_camel_case(self) -> None:
        assert to_camel_case("report_parameter") == "reportParameter"
        assert to_camel_case("HTTPResponse") == "httpResponse"
        assert to_camel_case("") == ""

    def test_to_kebab_case(self) -> None:
        assert to_kebab_case("OrderItems") == "order-items"
        assert to_kebab_case("order_items") == "order-items"

    @pytest.mark.parametrize("name", ["order_items", "OrderItems", "orderItems", "HTTPLog"])
    def test_conversions_are_idempotent(self, name: str) -> None:
        for convert in (to_snake_case, to_pascal_case, to_camel_case, to_kebab_case):
            once = convert(name)
            assert convert(once) == once


class TestPluralisation:
    """Heuristic English plurals."""

    @pytest.mark.parametrize(
        "singular, plural",
        [
            ("category", "categories"),
            ("day", "days"),
            ("box", "boxes"),
            ("status", "statuses"),
            ("branch", "branches"),
            ("user", "users"),
        ],
    )
    def test_to_plural(self, singular: str, plural: str) -> None:
        assert to_plural(singular) == plural

    def test_relationship_name_collection_is_plural(self) -> None:
        assert to_relationship_name("order_item") == "orderItem"
        assert to_relationship_name("order_item", is_collection=True) == "orderItems"


class TestIdentifierSafety:
    """Sanitisation, reserved words and derived symbol names."""

    def test_sanitize_replaces_invalid_characters(self) -> None:
        assert sanitize_identifier("unit price") == "unit_price"
        assert sanitize_identifier("2fa-code") == "_2fa_code"

    def test_sanitize_suffixes_reserved_words(self) -> None:
        assert sanitize_identifier("class") == "class_"
        assert sanitize_identifier("save") == "save_"

    @pytest.mark.parametrize("name", ["class", "2fa-code", "order items", "delete", "ok"])
    def test_sanitize_is_idempotent(self, name: str) -> None:
        once = sanitize_identifier(name)
        assert sanitize_identifier(once) == once

    def test_reserved_word_check_is_case_insensitive(self) -> None:
        assert is_reserved_word("Class")
        assert is_reserved_word("REPOSITORY")
        assert not is_reserved_word("customer")

    def test_property_name(self) -> None:
        assert to_property_name("customer_id") == "customerId"
        assert to_property_name("type") == "type_"
        assert to_property_name("Unit Price") == "unitPrice"

    def test_safe_class_name(self) -> None:
        assert to_safe_class_name("order_items") == "OrderItems"
        assert to_safe_class_name("ab") == "AbEntity"
        assert to_safe_class_name("class") == "ClassEntity"
        assert to_safe_class_name("2024_sales")[0].isalpha()

    def test_enum_name(self) -> None:
        assert to_enum_name("in-progress") == "IN_PROGRESS"
        assert to_enum_name("Paid") == "PAID"


class TestEnumParsing:
    """Inline enum definitions."""

    def test_parse_values(self) -> None:
        assert parse_enum_values("enum('active','inactive')") == ["active", "inactive"]
        assert parse_enum_values('ENUM("a", "b", "c")') == ["a", "b", "c"]

    def test_non_enum_definition(self) -> None:
        assert parse_enum_values("varchar(20)") == []
        assert parse_enum_values("") == []


class TestFileHelpers:
    """Path and write helpers."""

    def test_relative_import_path_parent(self, tmp_path: pathlib.Path) -> None:
        result = relative_import_path(tmp_path / "src" / "orders", tmp_path / "src" / "entities" / "orders.entity.ts")
        assert result == "../entities/orders.entity"

    def test_relative_import_path_sibling(self, tmp_path: pathlib.Path) -> None:
        result = relative_import_path(tmp_path / "src", tmp_path / "src" / "orders" / "orders.module.ts")
        assert result == "./orders/orders.module"

    def test_write_file_creates_parents(self, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "a" / "b" / "out.ts"
        size = write_file(target, "export {};\n")
        assert target.read_text(encoding="utf-8") == "export {};\n"
        assert size == len("export {};\n".encode("utf-8"))
        assert [p.name for p in target.parent.iterdir()] == ["out.ts"]

    def test_write_file_overwrites(self, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "out.sql"
        write_file(target, "first")
        write_file(target, "second")
        assert target.read_text(encoding="utf-8") == "second"

    def test_count_lines(self) -> None:
        assert count_lines("") == 0
        assert count_lines("a\nb") == 2
        assert count_lines("a\nb\n") == 2

    def test_split_csv(self) -> None:
        assert split_csv("a, b,,c") == ["a", "b", "c"]
        assert split_csv(" , ") is None
        assert split_csv(None) is None

    def test_timer_measures(self) -> None:
        with Timer("noop") as t:
            pass
        assert t.elapsed >= 0.0
        assert "noop" in repr(t)

"""
tests/test_filters.py
Unit tests for dbscaffold.filters (include / exclude table lists).
"""

from __future__ import annotations

from typing import List

from dbscaffold.filters import filter_table_names, filter_tables
from dbscaffold.models import DatabaseSchema

NAMES: List[str] = ["customers", "orders", "users", "audit_log"]


class TestFilterTableNames:
    """Include first, exclude second."""

    def test_no_lists_keeps_everything(self) -> None:
        assert filter_table_names(NAMES) == NAMES
        assert filter_table_names(NAMES, [], []) == NAMES

    def test_include_keeps_order_of_input(self) -> None:
        assert filter_table_names(NAMES, ["users", "customers"]) == ["customers", "users"]

    def test_exclude(self) -> None:
        assert filter_table_names(NAMES, None, ["audit_log"]) == ["customers", "orders", "users"]

    def test_exclude_wins_over_include(self) -> None:
        assert filter_table_names(NAMES, ["users"], ["users"]) == []

    def test_unknown_include_names_are_ignored(self) -> None:
        assert filter_table_names(NAMES, ["ghosts", "orders"]) == ["orders"]

    def test_matching_is_case_sensitive(self) -> None:
        assert filter_table_names(NAMES, ["Users"]) == []


class TestFilterTables:
    """TableInfo-level filtering."""

    def test_returns_same_objects_without_mutating(self, shop_schema: DatabaseSchema) -> None:
        before = list(shop_schema.tables)
        kept = filter_tables(shop_schema.tables, include=["orders", "users"], exclude=["users"])
        assert [t.name for t in kept] == ["orders"]
        assert kept[0] is shop_schema.get_table("orders")
        assert shop_schema.tables == before

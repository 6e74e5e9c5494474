# File: dbscaffold/filters.py
"""
dbscaffold - Table Filter
===========================
Applies include / exclude table-name lists to a sequence of tables.

Include is always applied first, exclude second, so an exclude entry wins
over an include entry for the same name.  Matching is exact (case
sensitive).  The input is never mutated; the result is a new list holding
the same ``TableInfo`` objects.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from dbscaffold.models import TableInfo

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("dbscaffold.filters")


def filter_table_names(
    names: Sequence[str],
    include: Optional[Iterable[str]] = None,
    exclude: Optional[Iterable[str]] = None,
) -> List[str]:
    """Name-level variant of :func:`filter_tables`, order preserved."""
    include_set = set(include or ())
    exclude_set = set(exclude or ())

    selected: List[str] = list(names)
    if include_set:
        selected = [n for n in selected if n in include_set]
        missing = include_set - set(names)
        if missing:
            logger.warning("Included table(s) not found in schema: %s", ", ".join(sorted(missing)))
    if exclude_set:
        selected = [n for n in selected if n not in exclude_set]

    logger.info(
        "Table filter kept %d of %d table(s) (include=%d, exclude=%d).",
        len(selected),
        len(names),
        len(include_set),
        len(exclude_set),
    )
    return selected


def filter_tables(
    tables: Sequence[TableInfo],
    include: Optional[Iterable[str]] = None,
    exclude: Optional[Iterable[str]] = None,
) -> List[TableInfo]:
    """
    Return the tables that survive *include* then *exclude*.

    An empty or ``None`` include list keeps every table.
    """
    kept = set(filter_table_names([t.name for t in tables], include, exclude))
    return [t for t in tables if t.name in kept]


__all__: List[str] = ["filter_tables", "filter_table_names"]

logger.debug("dbscaffold.filters loaded.")

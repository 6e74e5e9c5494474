# File: dbscaffold/utils.py
"""
dbscaffold - Naming Normalizer & File Helpers
===============================================
Pure string transforms used by every other component (case conversion,
identifier sanitisation, reserved-word handling, pluralisation) plus the
small amount of file-system plumbing shared by the generators and the
data exporter.

Naming rules:
- Case conversions split the input into words first, so they accept any
  casing style (``report_parameter``, ``reportParameter``, ``Report-Parameter``)
  and are idempotent on their own output.
- ``sanitize_identifier`` must run before any case conversion that produces a
  symbol visible in generated TypeScript.
- All conversions are cached with ``functools.lru_cache``; a schema with a few
  hundred tables calls them thousands of times.
"""

from __future__ import annotations

import functools
import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import FrozenSet, List, Optional, Sequence, Tuple

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("dbscaffold.utils")

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns
# ---------------------------------------------------------------------------

_CAMEL_TO_SNAKE_RE1: re.Pattern[str] = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_TO_SNAKE_RE2: re.Pattern[str] = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALPHANUM_RE: re.Pattern[str] = re.compile(r"[^a-zA-Z0-9]")
_NON_IDENTIFIER_RE: re.Pattern[str] = re.compile(r"[^a-zA-Z0-9_]")
_MULTI_UNDERSCORE_RE: re.Pattern[str] = re.compile(r"_{2,}")
_LEADING_TRAILING_UNDERSCORE_RE: re.Pattern[str] = re.compile(r"^_+|_+$")
_SPLIT_WORDS_RE: re.Pattern[str] = re.compile(
    r"[A-Z]?[a-z]+|[A-Z]+(?=[A-Z][a-z]|\d|\b)|[A-Z]|\d+"
)
_ENUM_BODY_RE: re.Pattern[str] = re.compile(r"enum\s*\((.*)\)", re.IGNORECASE | re.DOTALL)

# TypeScript keywords and contextual keywords that cannot name a class or
# property without confusing the compiler or the reader.
TS_RESERVED_WORDS: FrozenSet[str] = frozenset({
    "break", "case", "catch", "class", "const", "continue", "debugger",
    "default", "delete", "do", "else", "enum", "export", "extends",
    "false", "finally", "for", "function", "if", "import", "in",
    "instanceof", "new", "null", "return", "super", "switch", "this",
    "throw", "true", "try", "typeof", "var", "void", "while", "with",
    "as", "implements", "interface", "let", "package", "private",
    "protected", "public", "static", "yield", "any", "boolean",
    "constructor", "declare", "get", "module", "require", "number",
    "set", "string", "symbol", "type", "from", "of", "async", "await",
    "undefined", "never", "unknown", "object", "namespace", "keyof",
})

# Members of TypeORM's BaseEntity / Repository surface; an entity property
# with one of these names shadows ORM behaviour.
PERSISTENCE_RESERVED_WORDS: FrozenSet[str] = frozenset({
    "save", "remove", "softremove", "recover", "reload", "hasid",
    "target", "prototype", "create", "merge", "preload", "query",
    "find", "findone", "findby", "count", "clear", "increment",
    "decrement", "metadata", "manager", "repository",
})

_RESERVED_WORDS: FrozenSet[str] = TS_RESERVED_WORDS | PERSISTENCE_RESERVED_WORDS


# ---------------------------------------------------------------------------
# Word splitting
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def _extract_words(name: str) -> Tuple[str, ...]:
    """Split any casing style into a tuple of lowercase words."""
    cleaned: str = _NON_ALPHANUM_RE.sub(" ", name)
    words: List[str] = _SPLIT_WORDS_RE.findall(cleaned)
    return tuple(w.lower() for w in words if w)


# ---------------------------------------------------------------------------
# Case conversions
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def to_snake_case(name: str) -> str:
    """
    Convert any string to snake_case.

    Examples:
        >>> to_snake_case("ReportParameter")
        'report_parameter'
        >>> to_snake_case("getHTTPResponse")
        'get_http_response'
        >>> to_snake_case("already_snake")
        'already_snake'
    """
    if not name:
        return ""
    s: str = _CAMEL_TO_SNAKE_RE1.sub(r"\1_\2", name)
    s = _CAMEL_TO_SNAKE_RE2.sub(r"\1_\2", s)
    s = _NON_ALPHANUM_RE.sub("_", s)
    s = _MULTI_UNDERSCORE_RE.sub("_", s)
    s = _LEADING_TRAILING_UNDERSCORE_RE.sub("", s)
    return s.lower()


@functools.lru_cache(maxsize=None)
def to_pascal_case(name: str) -> str:
    """
    Convert any string to PascalCase.

    Examples:
        >>> to_pascal_case("report_parameter")
        'ReportParameter'
        >>> to_pascal_case("ReportParameter")
        'ReportParameter'
    """
    if not name:
        return ""
    return "".join(word.capitalize() for word in _extract_words(name))


@functools.lru_cache(maxsize=None)
def to_camel_case(name: str) -> str:
    """
    Convert any string to camelCase.

    Examples:
        >>> to_camel_case("report_parameter")
        'reportParameter'
        >>> to_camel_case("HTTPResponse")
        'httpResponse'
    """
    words: Tuple[str, ...] = _extract_words(name) if name else ()
    if not words:
        return ""
    return words[0] + "".join(w.capitalize() for w in words[1:])


@functools.lru_cache(maxsize=None)
def to_kebab_case(name: str) -> str:
    """Convert any string to kebab-case (file names, route paths)."""
    if not name:
        return ""
    return "-".join(_extract_words(name))


@functools.lru_cache(maxsize=None)
def to_plural(name: str) -> str:
    """
    Heuristic English pluralisation.

    ``y`` after a consonant becomes ``ies``; sibilant endings
    (``s``, ``sh``, ``ch``, ``x``, ``z``) take ``es``; everything else
    takes ``s``.  Irregular plurals are not handled.
    """
    if not name:
        return ""
    lower: str = name.lower()
    if lower.endswith("y") and len(name) > 1 and lower[-2] not in "aeiou":
        return name[:-1] + "ies"
    if lower.endswith(("s", "sh", "ch", "x", "z")):
        return name + "es"
    return name + "s"


# ---------------------------------------------------------------------------
# Identifier safety
# ---------------------------------------------------------------------------


def is_reserved_word(name: str) -> bool:
    """True when *name* collides (case-insensitively) with a reserved word."""
    return name.lower() in _RESERVED_WORDS


@functools.lru_cache(maxsize=None)
def sanitize_identifier(name: str) -> str:
    """
    Make a catalog identifier safe to use as a generated symbol.

    - Any character outside ``[A-Za-z0-9_]`` becomes ``_``.
    - A leading digit gets a ``_`` prefix.
    - A reserved word gets a ``_`` suffix.

    Idempotent: ``sanitize_identifier(sanitize_identifier(s)) == sanitize_identifier(s)``.
    """
    if not name:
        return "_"
    result: str = _NON_IDENTIFIER_RE.sub("_", name)
    if result[0].isdigit():
        result = f"_{result}"
    if is_reserved_word(result):
        result = f"{result}_"
    return result


@functools.lru_cache(maxsize=None)
def to_property_name(column_name: str) -> str:
    """camelCase property name for a column, re-guarded against reserved words."""
    prop: str = to_camel_case(sanitize_identifier(column_name))
    if not prop:
        return "_"
    if prop[0].isdigit():
        prop = f"_{prop}"
    if is_reserved_word(prop):
        prop = f"{prop}_"
    return prop


@functools.lru_cache(maxsize=None)
def to_safe_class_name(table_name: str) -> str:
    """PascalCase class name; very short or reserved names get an ``Entity`` suffix."""
    class_name: str = to_pascal_case(sanitize_identifier(table_name))
    if not class_name or class_name[0].isdigit():
        class_name = f"T{class_name}"
    if len(class_name) < 3 or is_reserved_word(class_name):
        class_name = f"{class_name}Entity"
    return class_name


@functools.lru_cache(maxsize=None)
def to_enum_name(value: str) -> str:
    """UPPER_SNAKE member name for an enum value."""
    return sanitize_identifier(to_snake_case(value) or value).upper()


@functools.lru_cache(maxsize=None)
def to_relationship_name(table_name: str, is_collection: bool = False) -> str:
    """
    Property name for a relation pointing at *table_name*.

    Collections are pluralised (``order_item`` → ``orderItems``).
    """
    base: str = to_camel_case(sanitize_identifier(table_name))
    if is_collection:
        base = to_plural(base)
    if is_reserved_word(base):
        base = f"{base}_"
    return base


def parse_enum_values(definition: str) -> List[str]:
    """
    Extract the members of an inline enum definition.

    >>> parse_enum_values("enum('active','inactive')")
    ['active', 'inactive']

    Splits on commas, so quoted values that themselves contain commas or
    parentheses are not parsed correctly.
    """
    if not definition:
        return []
    match: Optional[re.Match[str]] = _ENUM_BODY_RE.search(definition)
    if match is None:
        return []
    values: List[str] = []
    for raw in match.group(1).split(","):
        value: str = raw.strip().strip("'\"")
        if value:
            values.append(value)
    return values


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


def relative_import_path(from_dir: Path, target_file: Path) -> str:
    """
    Module specifier for importing *target_file* from a file in *from_dir*.

    Always uses forward slashes, drops the ``.ts`` suffix and starts with
    ``./`` or ``../``.
    """
    rel: str = os.path.relpath(
        os.path.abspath(target_file), os.path.abspath(from_dir)
    ).replace(os.sep, "/")
    if rel.endswith(".ts"):
        rel = rel[:-3]
    if not rel.startswith("."):
        rel = f"./{rel}"
    return rel


def ensure_directory(path: Path) -> None:
    """Create *path* and its parents if missing."""
    path.mkdir(parents=True, exist_ok=True)
    logger.debug("Ensured directory exists: %s", path)


def write_file(path: Path, content: str) -> int:
    """
    Write *content* to *path* atomically (temp file in the same directory,
    then ``os.replace``).  Returns the number of bytes written.
    """
    ensure_directory(path.parent)
    encoded: bytes = content.encode("utf-8")

    fd: int = -1
    tmp_path: str = ""
    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
        )
        os.write(fd, encoded)
        os.fsync(fd)
        os.close(fd)
        fd = -1
        os.replace(tmp_path, str(path))
    except OSError:
        if fd >= 0:
            os.close(fd)
        if tmp_path and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise

    logger.debug("Wrote %d bytes to %s", len(encoded), path)
    return len(encoded)


def read_file(path: Path) -> str:
    """Read a UTF-8 text file."""
    return path.read_text(encoding="utf-8")


def count_lines(content: str) -> int:
    """Number of lines in *content*."""
    if not content:
        return 0
    return content.count("\n") + (1 if not content.endswith("\n") else 0)


def split_csv(value: Optional[str]) -> Optional[List[str]]:
    """``"a, b,,c"`` → ``["a", "b", "c"]``; ``None`` / blank → ``None``."""
    if value is None:
        return None
    items: List[str] = [part.strip() for part in value.split(",")]
    items = [item for item in items if item]
    return items or None


def timestamp_token() -> str:
    """Millisecond epoch timestamp used in generated file names."""
    return str(int(time.time() * 1000))


# ---------------------------------------------------------------------------
# Timer context manager
# ---------------------------------------------------------------------------


class Timer:
    """
    Context-manager timer for pipeline steps.

    Usage:
        with Timer("introspection") as t:
            ...
        report.elapsed = t.elapsed
    """

    __slots__ = ("label", "start_time", "elapsed")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.elapsed = time.perf_counter() - self.start_time
        logger.info("Timer [%s]: %.4f seconds", self.label, self.elapsed)

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "TS_RESERVED_WORDS",
    "PERSISTENCE_RESERVED_WORDS",
    "to_snake_case",
    "to_pascal_case",
    "to_camel_case",
    "to_kebab_case",
    "to_plural",
    "is_reserved_word",
    "sanitize_identifier",
    "to_property_name",
    "to_safe_class_name",
    "to_enum_name",
    "to_relationship_name",
    "parse_enum_values",
    "relative_import_path",
    "ensure_directory",
    "write_file",
    "read_file",
    "count_lines",
    "split_csv",
    "timestamp_token",
    "Timer",
]

logger.debug("dbscaffold.utils loaded — %d public symbols.", len(__all__))

# File: dbscaffold/errors.py
"""
dbscaffold - Exception Hierarchy
=================================
Typed errors for the run-aborting failure classes.  Each error carries the
pipeline *stage* it belongs to so the caller (CLI or library user) can tell
a bad configuration apart from a refused connection, a failed table
listing, an unwritable output root or a broken wiring merge.

Per-table and per-batch failures are *not* represented here: they are
caught where they happen and folded into the run report.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("dbscaffold.errors")


class ScaffoldError(Exception):
    """Base class for every fatal dbscaffold error."""

    stage: str = "run"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message: str = message
        self.details: Dict[str, Any] = details if details is not None else {}

    def __str__(self) -> str:
        return f"[{self.stage}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(ScaffoldError):
    """Invalid configuration, unreadable config file or unsupported dialect."""

    stage = "config"


class ConnectionFailedError(ScaffoldError):
    """The database engine could not be created or connected."""

    stage = "connection"


class IntrospectionError(ScaffoldError):
    """The initial table-listing query failed; no schema can be built."""

    stage = "listing"


class OutputPathError(ScaffoldError):
    """An output root directory could not be created or written."""

    stage = "output"


class WiringError(ScaffoldError):
    """The top-level module registry or entity index could not be written."""

    stage = "wiring"


__all__: List[str] = [
    "ScaffoldError",
    "ConfigurationError",
    "ConnectionFailedError",
    "IntrospectionError",
    "OutputPathError",
    "WiringError",
]

logger.debug("dbscaffold.errors loaded.")

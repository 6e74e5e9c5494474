# File: dbscaffold/exporters.py
"""
dbscaffold - Artifact Writer (File-System Manager)
====================================================

Responsible for:
    1. Creating output roots, failing fast with ``OutputPathError`` when a
       root cannot be created.
    2. Writing artifact text atomically (write-to-temp then rename).
    3. Keeping a record of every file written in the run, with size, line
       count and checksum, so the orchestrator can build its report.

Writes are idempotent: re-running on the same path overwrites the file in
place.  A failure on one file never removes files written before it.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from dbscaffold.errors import OutputPathError
from dbscaffold.utils import count_lines, ensure_directory, write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("dbscaffold.exporters")


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FileRecord:
    """Immutable record of a single written file."""

    path: str
    size_bytes: int
    line_count: int
    sha256: str
    overwritten: bool = False


@dataclass(frozen=False, slots=True)
class WriteManifest:
    """Everything an :class:`ArtifactWriter` wrote, in write order."""

    total_files: int = 0
    total_bytes: int = 0
    total_lines: int = 0
    files: List[FileRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_files": self.total_files,
            "total_bytes": self.total_bytes,
            "total_lines": self.total_lines,
            "files": [
                {
                    "path": f.path,
                    "size_bytes": f.size_bytes,
                    "line_count": f.line_count,
                    "sha256": f.sha256,
                    "overwritten": f.overwritten,
                }
                for f in self.files
            ],
        }

    def to_json(self, indent_size: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent_size, ensure_ascii=False)


# ---------------------------------------------------------------------------
# ArtifactWriter
# ---------------------------------------------------------------------------


class ArtifactWriter:
    """
    Writes generated artifacts and remembers what it wrote.

    Usage::

        writer = ArtifactWriter()
        writer.prepare_root(Path("./src"))
        record = writer.write(Path("./src/users/users.service.ts"), text)

    Thread-safety: NOT thread-safe.  One writer per run.
    """

    def __init__(self) -> None:
        self._records: List[FileRecord] = []
        self._roots: List[Path] = []

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def prepare_root(self, root: Path) -> Path:
        """
        Create *root* (and parents) if missing.

        Raises:
            OutputPathError: If the directory cannot be created or *root*
                exists but is not a directory.
        """
        root = Path(root)
        if root.exists() and not root.is_dir():
            raise OutputPathError(
                f"Output path '{root}' exists and is not a directory.",
                details={"path": str(root)},
            )
        try:
            ensure_directory(root)
        except OSError as exc:
            raise OutputPathError(
                f"Cannot create output directory '{root}': {exc}",
                details={"path": str(root)},
            ) from exc
        if root not in self._roots:
            self._roots.append(root)
        logger.debug("Output root ready: %s", root)
        return root

    def write(self, path: Path, content: str) -> FileRecord:
        """
        Atomically write *content* to *path* and record it.

        ``OSError`` propagates so the caller can decide whether the failure
        belongs to a table, a batch or the whole run.
        """
        path = Path(path)
        existed: bool = path.exists()
        size: int = write_file(path, content)
        record = FileRecord(
            path=str(path),
            size_bytes=size,
            line_count=count_lines(content),
            sha256=hashlib.sha256(content.encode("utf-8")).hexdigest(),
            overwritten=existed,
        )
        self._records.append(record)
        logger.debug(
            "Wrote %s (%d bytes, %d lines%s)",
            path,
            size,
            record.line_count,
            ", overwritten" if existed else "",
        )
        return record

    def find(self, path: Path) -> Optional[FileRecord]:
        """Most recent record for *path*, if it was written in this run."""
        wanted: str = str(Path(path))
        for record in reversed(self._records):
            if record.path == wanted:
                return record
        return None

    @property
    def records(self) -> List[FileRecord]:
        return list(self._records)

    @property
    def paths(self) -> List[str]:
        return [r.path for r in self._records]

    def manifest(self) -> WriteManifest:
        return WriteManifest(
            total_files=len(self._records),
            total_bytes=sum(r.size_bytes for r in self._records),
            total_lines=sum(r.line_count for r in self._records),
            files=list(self._records),
        )


__all__: List[str] = [
    "ArtifactWriter",
    "FileRecord",
    "WriteManifest",
]

logger.debug("dbscaffold.exporters loaded — %d public symbols.", len(__all__))

"""Data models for one consistency run.

Everything here is created fresh per invocation and never mutated after
construction, so all records are frozen dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

EXIT_OK = 0
EXIT_DISCREPANCY = 1
EXIT_INPUT_ERROR = 2

# Finding kinds (recoverable problems, accumulated instead of raised)
UNREADABLE_FILE = "unreadable-file"
MALFORMED_ENTRY = "malformed-entry"
DUPLICATE_ENTRY = "duplicate-entry"
TITLE_MISMATCH = "title-mismatch"

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"
SEVERITIES = (SEVERITY_ERROR, SEVERITY_WARNING)


class InputNotFoundError(FileNotFoundError):
    """Root directory or index document is missing."""


@dataclass(frozen=True)
class NoteFile:
    """A note discovered on disk."""

    path: str                    # repository-relative, '/'-separated
    category: str = ""           # containing directory name ("" at the root)
    title: str | None = None     # first heading text, if any

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "category": self.category, "title": self.title}


@dataclass(frozen=True)
class IndexEntry:
    """A linked list item under a category heading of the index document."""

    category: str
    title: str
    target: str                  # as written in the index
    path: str                    # normalized repository-relative path
    line: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "title": self.title,
            "target": self.target,
            "path": self.path,
            "line": self.line,
        }


@dataclass(frozen=True)
class MatchedPair:
    note: NoteFile
    entry: IndexEntry

    @property
    def path(self) -> str:
        return self.note.path

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "note": self.note.to_dict(), "entry": self.entry.to_dict()}


@dataclass(frozen=True)
class Finding:
    """A recoverable problem: reported alongside the discrepancies, never fatal."""

    kind: str
    path: str
    message: str
    line: int | None = None

    @property
    def location(self) -> str:
        return f"{self.path}:{self.line}" if self.line else self.path

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "path": self.path, "line": self.line, "message": self.message}


@dataclass(frozen=True)
class ConsistencyReport:
    """Result of comparing scanned notes against the parsed index."""

    root: str
    index: str
    notes_scanned: int = 0
    entries_parsed: int = 0
    external_links: int = 0
    unlisted: tuple[NoteFile, ...] = ()
    dangling: tuple[IndexEntry, ...] = ()
    matched: tuple[MatchedPair, ...] = ()
    warnings: tuple[Finding, ...] = field(default_factory=tuple)
    unlisted_severity: str = SEVERITY_ERROR
    dangling_severity: str = SEVERITY_ERROR
    strict: bool = False

    @property
    def is_consistent(self) -> bool:
        """True when the index and the tree agree exactly."""
        return not self.unlisted and not self.dangling

    @property
    def has_errors(self) -> bool:
        if self.unlisted and self.unlisted_severity == SEVERITY_ERROR:
            return True
        if self.dangling and self.dangling_severity == SEVERITY_ERROR:
            return True
        return self.strict and bool(self.warnings)

    @property
    def exit_code(self) -> int:
        return EXIT_DISCREPANCY if self.has_errors else EXIT_OK

    def to_dict(self) -> dict[str, Any]:
        return {
            "root": self.root,
            "index": self.index,
            "summary": {
                "notes": self.notes_scanned,
                "entries": self.entries_parsed,
                "external_links": self.external_links,
                "matched": len(self.matched),
                "unlisted": len(self.unlisted),
                "dangling": len(self.dangling),
                "warnings": len(self.warnings),
                "status": "fail" if self.has_errors else "ok",
            },
            "unlisted": [n.to_dict() for n in self.unlisted],
            "dangling": [e.to_dict() for e in self.dangling],
            "matched": [p.path for p in self.matched],
            "warnings": [w.to_dict() for w in self.warnings],
        }

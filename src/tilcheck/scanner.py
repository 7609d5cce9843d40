"""Note repository scanner: walk the tree → NoteFile records.

Discovery:
    - every file whose name ends with the configured extension (".md")
    - hidden directories and `exclude_dirs` are pruned
    - `exclude` globs (matched against the '/'-separated relative path) skip
      non-note assets; the index document itself is never a note
    - with `use_git`, candidates come from `git ls-files` instead of a walk

Titles come from the first ATX heading of the file, ignoring a leading YAML
front-matter block and fenced code. Reading stops at the first heading.
"""

from __future__ import annotations

import logging
import os
import posixpath
import re
import subprocess
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from tilcheck.models import UNREADABLE_FILE, Finding, InputNotFoundError, NoteFile

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from tilcheck.config import CheckConfig

logger = logging.getLogger("tilcheck.scanner")

_HEADING_RE = re.compile(r"^ {0,3}#{1,6}[ \t]+(.*?)(?:[ \t]+#+)?[ \t]*$")
_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
_FRONT_MATTER_END = ("---", "...")
# key: value, list items, indented continuations, comments, blanks
_YAML_LINE_RE = re.compile(r"^(?:[\w.-]+[ \t]*:|[ \t]|-[ \t]|-$|#|$)")


# ---------------------------------------------------------------------------
# Title extraction
# ---------------------------------------------------------------------------

def _body_lines(lines: Iterable[str]) -> Iterator[str]:
    """Yield lines with a leading YAML front-matter block removed.

    A first line of `---` only opens front matter if a closing `---`/`...`
    follows before any non-YAML line; otherwise it was a thematic break and
    the buffered lines are replayed.
    """
    it = iter(lines)
    first = next(it, None)
    if first is None:
        return
    if first.strip() != "---":
        yield first
        yield from it
        return

    buffered = [first]
    for raw in it:
        line = raw.rstrip("\r\n")
        if line.strip() in _FRONT_MATTER_END:
            yield from it
            return
        buffered.append(raw)
        if not _YAML_LINE_RE.match(line):
            break
    yield from buffered
    yield from it


def extract_title(lines: Iterable[str]) -> str | None:
    """Return the text of the first heading line, or None.

    Consumes `lines` only up to the heading, so an open file can be passed.
    """
    fence: str | None = None
    for raw in _body_lines(lines):
        line = raw.rstrip("\r\n")
        m = _FENCE_RE.match(line)
        if m:
            marker = m.group(1)
            if fence is None:
                fence = marker
            elif marker[0] == fence[0] and len(marker) >= len(fence):
                fence = None
            continue
        if fence is not None:
            continue

        h = _HEADING_RE.match(line)
        if h and h.group(1).strip():
            return h.group(1).strip()
    return None


# ---------------------------------------------------------------------------
# File discovery
# ---------------------------------------------------------------------------

def _git_files(root: Path) -> list[str] | None:
    """Return tracked + untracked (non-ignored) files under root. None if git is unusable."""
    try:
        result = subprocess.run(
            ["git", "ls-files", "-z", "--cached", "--others", "--exclude-standard"],
            cwd=root,
            capture_output=True,
            encoding="utf-8",
            errors="surrogateescape",
            check=True,
            timeout=10,
        )
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError):
        return None
    # -z: NUL-separated and never C-quoted, whatever core.quotePath says
    return [p for p in result.stdout.split("\0") if p]


def _walk_files(
    root: Path,
    config: CheckConfig,
    onerror: Callable[[OSError], None] | None = None,
) -> list[str]:
    """os.walk-based discovery, pruning hidden and excluded directories."""
    files: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=onerror):
        dirnames[:] = sorted(d for d in dirnames if not _skip_dir(d, config))
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else f"{rel_dir}/"
        files.extend(prefix + name for name in filenames)
    return files


def _skip_dir(name: str, config: CheckConfig) -> bool:
    return name.startswith(".") or name in config.exclude_dirs


class NoteScanner:
    """Lazily yield NoteFile records for a repository root.

    Unreadable files are still yielded (without a title) and recorded in
    `warnings`; they exist on disk, so they still take part in the comparison.
    """

    def __init__(self, root: Path | str, config: CheckConfig) -> None:
        self.root = Path(root)
        self.config = config
        self.warnings: list[Finding] = []

    def __iter__(self) -> Iterator[NoteFile]:
        self.warnings = []
        if not self.root.exists():
            msg = f"repository root not found: {self.root}"
            raise InputNotFoundError(msg)
        if not self.root.is_dir():
            msg = f"repository root is not a directory: {self.root}"
            raise InputNotFoundError(msg)

        for rel in self.candidates():
            yield self._read_note(rel)

    def candidates(self) -> list[str]:
        """Sorted relative paths of every note file under root."""
        raw: list[str] | None = None
        if self.config.use_git:
            raw = _git_files(self.root)
            if raw is None:
                logger.info("git ls-files unavailable in %s, walking the tree", self.root)
        if raw is None:
            raw = _walk_files(self.root, self.config, onerror=self._walk_error)

        result = sorted({rel for rel in raw if self._is_note(rel)})
        logger.debug("found %d note candidates under %s", len(result), self.root)
        return result

    def _walk_error(self, exc: OSError) -> None:
        """Directory listing failed: fatal for the root, a warning below it."""
        failed = Path(exc.filename) if exc.filename else self.root
        if failed == self.root:
            msg = f"cannot list repository root {self.root}: {exc.strerror or exc}"
            raise InputNotFoundError(msg) from exc
        try:
            rel = failed.relative_to(self.root).as_posix()
        except ValueError:
            rel = failed.as_posix()
        logger.warning("unreadable directory %s: %s", rel, exc)
        self.warnings.append(Finding(UNREADABLE_FILE, rel, f"cannot list directory: {exc.strerror or exc}"))

    def _is_note(self, rel: str) -> bool:
        if not rel.endswith(self.config.extension):
            return False
        if rel == posixpath.normpath(self.config.index.replace("\\", "/")):
            return False
        parts = rel.split("/")
        if any(_skip_dir(part, self.config) for part in parts[:-1]):
            return False
        if any(fnmatchcase(rel, pat.lstrip("/")) for pat in self.config.exclude):
            return False
        # git ls-files may list deleted-but-tracked paths
        return (self.root / rel).is_file()

    def _read_note(self, rel: str) -> NoteFile:
        category = PurePosixPath(rel).parent.name
        try:
            with (self.root / rel).open(encoding="utf-8") as f:
                title = extract_title(f)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("unreadable note %s: %s", rel, exc)
            self.warnings.append(Finding(UNREADABLE_FILE, rel, f"cannot read file: {exc}"))
            return NoteFile(path=rel, category=category, title=None)
        logger.debug("note %s title=%r", rel, title)
        return NoteFile(path=rel, category=category, title=title)


def scan_notes(root: Path | str, config: CheckConfig) -> tuple[list[NoteFile], list[Finding]]:
    """Scan root completely. Returns (notes, warnings)."""
    scanner = NoteScanner(root, config)
    notes = list(scanner)
    return notes, list(scanner.warnings)

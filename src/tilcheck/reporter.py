"""Consistency reporter: scanned notes × parsed index → ConsistencyReport.

Comparison is by normalized repository-relative path (case-sensitive):

    unlisted   notes with no entry pointing at them
    dangling   entries pointing at no note
    matched    one (note, entry) pair per note, first entry in document order

Additional entries for an already seen path are duplicate-entry warnings, so
the three sets stay disjoint. All output is sorted and timestamp-free: two
runs over an unchanged tree render byte-identical reports.
"""

from __future__ import annotations

import json
import logging
import posixpath
from collections import defaultdict
from typing import TYPE_CHECKING

from tilcheck.index_parser import parse_index, read_index, resolve_repository
from tilcheck.models import (
    DUPLICATE_ENTRY,
    SEVERITY_ERROR,
    SEVERITY_WARNING,
    TITLE_MISMATCH,
    ConsistencyReport,
    Finding,
    IndexEntry,
    MatchedPair,
    NoteFile,
)
from tilcheck.scanner import scan_notes

if TYPE_CHECKING:
    from collections.abc import Iterable

    from rich.console import Console

    from tilcheck.config import CheckConfig
    from tilcheck.index_parser import IndexParseResult

logger = logging.getLogger("tilcheck.reporter")


def _squash(text: str) -> str:
    return " ".join(text.split())


def _finding_key(f: Finding) -> tuple[str, int, str, str]:
    return (f.path, f.line or 0, f.kind, f.message)


def build_report(
    notes: Iterable[NoteFile],
    parsed: IndexParseResult,
    config: CheckConfig,
    *,
    scan_warnings: Iterable[Finding] = (),
) -> ConsistencyReport:
    """Compare the two sides. Pure: no filesystem access."""
    note_list = list(notes)
    by_path = {n.path: n for n in note_list}

    first_entry: dict[str, IndexEntry] = {}
    warnings: list[Finding] = [*scan_warnings, *parsed.unparsed]
    for entry in parsed.entries:
        if entry.path in first_entry:
            prev = first_entry[entry.path]
            warnings.append(Finding(
                DUPLICATE_ENTRY, config.index,
                f"{entry.path} is already listed at line {prev.line}", line=entry.line,
            ))
            continue
        first_entry[entry.path] = entry

    matched: list[MatchedPair] = []
    dangling: list[IndexEntry] = []
    for path, entry in first_entry.items():
        note = by_path.get(path)
        if note is None:
            dangling.append(entry)
            continue
        matched.append(MatchedPair(note=note, entry=entry))
        if (
            config.policy.compare_titles
            and note.title is not None
            and _squash(note.title) != _squash(entry.title)
        ):
            warnings.append(Finding(
                TITLE_MISMATCH, note.path,
                f"index title {entry.title!r} differs from heading {note.title!r}",
            ))

    unlisted = [n for n in note_list if n.path not in first_entry]

    report = ConsistencyReport(
        root=str(config.root),
        index=config.index,
        notes_scanned=len(note_list),
        entries_parsed=len(parsed.entries),
        external_links=parsed.external,
        unlisted=tuple(sorted(unlisted, key=lambda n: n.path)),
        dangling=tuple(sorted(dangling, key=lambda e: (e.path, e.line))),
        matched=tuple(sorted(matched, key=lambda p: p.path)),
        warnings=tuple(sorted(warnings, key=_finding_key)),
        unlisted_severity=config.policy.unlisted,
        dangling_severity=config.policy.dangling,
        strict=config.policy.strict,
    )
    logger.info(
        "report: %d matched, %d unlisted, %d dangling, %d warnings",
        len(report.matched), len(report.unlisted), len(report.dangling), len(report.warnings),
    )
    return report


def run_check(config: CheckConfig) -> ConsistencyReport:
    """One-shot pipeline: scan the tree, parse the index, compare.

    Raises InputNotFoundError when the root or the index document is missing.
    """
    notes, scan_warnings = scan_notes(config.root, config)
    text = read_index(config)
    parsed = parse_index(text, config, repo=resolve_repository(config))
    return build_report(notes, parsed, config, scan_warnings=scan_warnings)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def _severity_label(severity: str, strict: bool) -> str:
    return SEVERITY_ERROR if strict else severity


def render_text(report: ConsistencyReport) -> str:
    """Human-readable report."""
    lines = [
        f"root:  {report.root}",
        f"index: {report.index}",
        f"notes: {report.notes_scanned}  entries: {report.entries_parsed}"
        f"  external links: {report.external_links}",
        "",
        f"Unlisted files ({len(report.unlisted)}) [{report.unlisted_severity}]",
    ]
    for note in report.unlisted:
        lines.append(f"  {note.path}" + (f"  ({note.title})" if note.title else ""))

    lines.append(f"Dangling entries ({len(report.dangling)}) [{report.dangling_severity}]")
    for entry in report.dangling:
        lines.append(f"  {entry.path}  ({report.index}:{entry.line} [{entry.title}])")

    label = _severity_label(SEVERITY_WARNING, report.strict)
    lines.append(f"Warnings ({len(report.warnings)}) [{label}]")
    for w in report.warnings:
        lines.append(f"  {w.location}: {w.kind}: {w.message}")

    status = "FAIL" if report.has_errors else "OK"
    lines += [
        "",
        f"{len(report.matched)} matched, {len(report.unlisted)} unlisted, "
        f"{len(report.dangling)} dangling, {len(report.warnings)} warnings: {status}",
    ]
    return "\n".join(lines)


def render_json(report: ConsistencyReport) -> str:
    return json.dumps(report.to_dict(), indent=2, sort_keys=True, ensure_ascii=False)


def render_table(report: ConsistencyReport, console: Console) -> None:
    """Print the report as rich tables."""
    from rich.table import Table
    from rich.markup import escape

    summary = Table(title=f"tilcheck: {report.index}", show_header=True, header_style="bold")
    summary.add_column("Metric", style="dim", no_wrap=True)
    summary.add_column("Value", justify="right")
    summary.add_row("Notes", str(report.notes_scanned))
    summary.add_row("Entries", str(report.entries_parsed))
    summary.add_row("External links", str(report.external_links))
    summary.add_row("Matched", str(len(report.matched)))
    summary.add_row("Unlisted", _count_cell(len(report.unlisted), report.unlisted_severity))
    summary.add_row("Dangling", _count_cell(len(report.dangling), report.dangling_severity))
    summary.add_row("Warnings", _count_cell(
        len(report.warnings), _severity_label(SEVERITY_WARNING, report.strict),
    ))
    console.print(summary)

    if report.unlisted or report.dangling:
        issues = Table(title="Discrepancies", show_header=True, header_style="bold")
        issues.add_column("Kind", no_wrap=True)
        issues.add_column("Path")
        issues.add_column("Detail")
        for note in report.unlisted:
            issues.add_row("unlisted", escape(note.path), escape(note.title or ""))
        for entry in report.dangling:
            issues.add_row("dangling", escape(entry.path), escape(f"line {entry.line}: {entry.title}"))
        console.print(issues)

    if report.warnings:
        warn = Table(title="Warnings", show_header=True, header_style="bold")
        warn.add_column("Location", no_wrap=True)
        warn.add_column("Kind", no_wrap=True)
        warn.add_column("Message")
        for w in report.warnings:
            warn.add_row(escape(w.location), w.kind, escape(w.message))
        console.print(warn)

    status = "[red]FAIL[/red]" if report.has_errors else "[green]OK[/green]"
    console.print(f"Status: {status}")


def _count_cell(count: int, severity: str) -> str:
    if not count:
        return "0"
    color = "red" if severity == SEVERITY_ERROR else "yellow"
    return f"[{color}]{count}[/{color}]"


def render_suggestions(report: ConsistencyReport) -> str:
    """Markdown list items for unlisted notes, grouped under category headings."""
    index_dir = posixpath.dirname(report.index) or "."
    groups: dict[str, list[NoteFile]] = defaultdict(list)
    for note in report.unlisted:
        groups[note.category].append(note)

    blocks: list[str] = []
    for category in sorted(groups):
        lines = [f"## {category or 'Uncategorized'}", ""]
        for note in groups[category]:
            title = note.title or note.path.rsplit("/", 1)[-1].rsplit(".", 1)[0]
            lines.append(f"- [{title}]({_link_path(posixpath.relpath(note.path, index_dir))})")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def _link_path(path: str) -> str:
    return path.replace(" ", "%20").replace("(", "%28").replace(")", "%29")

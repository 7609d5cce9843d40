from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

from conftest import write
from tilcheck.config import CheckConfig, PolicyConfig
from tilcheck.index_parser import IndexParseResult
from tilcheck.models import (
    DUPLICATE_ENTRY,
    EXIT_DISCREPANCY,
    EXIT_OK,
    TITLE_MISMATCH,
    IndexEntry,
    NoteFile,
)
from tilcheck.reporter import build_report, render_json, render_suggestions, render_text, run_check


def test_consistent_repository_reports_nothing(cfg: CheckConfig) -> None:
    report = run_check(cfg)
    assert report.unlisted == ()
    assert report.dangling == ()
    assert [p.path for p in report.matched] == [
        "bash/brace-expansion.md",
        "bash/tail-a-log.md",
        "git/squash.md",
    ]
    assert report.is_consistent
    assert report.exit_code == EXIT_OK


def test_new_note_without_entry_is_one_unlisted_finding(cfg: CheckConfig) -> None:
    write(cfg.root, "docker/prune.md", "# Prune dangling images\n")
    report = run_check(cfg)
    assert [n.path for n in report.unlisted] == ["docker/prune.md"]
    assert report.dangling == ()
    assert len(report.matched) == 3
    assert report.exit_code == EXIT_DISCREPANCY


def test_removed_note_with_entry_left_is_one_dangling_finding(cfg: CheckConfig) -> None:
    (cfg.root / "git" / "squash.md").unlink()
    report = run_check(cfg)
    assert [e.path for e in report.dangling] == ["git/squash.md"]
    assert report.unlisted == ()
    assert report.exit_code == EXIT_DISCREPANCY


def test_example_scenario(tmp_path: Path) -> None:
    write(tmp_path, "README.md", "# Index\n\n## Notes\n\n- [A](notes/a.md)\n")
    write(tmp_path, "notes/a.md", "# A\n")
    write(tmp_path, "notes/b.md", "# B\n")
    report = run_check(CheckConfig(root=tmp_path))
    assert [n.path for n in report.unlisted] == ["notes/b.md"]
    assert report.dangling == ()
    assert [p.path for p in report.matched] == ["notes/a.md"]
    assert report.exit_code == 1


def test_reports_are_byte_identical_across_runs(cfg: CheckConfig) -> None:
    write(cfg.root, "docker/prune.md", "# Prune\n")
    write(cfg.root, "java/streams.md", "# Streams\n")
    first, second = run_check(cfg), run_check(cfg)
    assert render_text(first) == render_text(second)
    assert render_json(first) == render_json(second)


def test_external_links_never_dangle(cfg: CheckConfig) -> None:
    readme = cfg.root / "README.md"
    readme.write_text(
        readme.read_text(encoding="utf-8") + "- [Docker docs](https://docs.docker.com/engine/)\n",
        encoding="utf-8",
    )
    report = run_check(cfg)
    assert report.dangling == ()
    assert report.external_links == 2


def test_duplicate_entries_warn_and_keep_sets_disjoint(tmp_path: Path) -> None:
    cfg = CheckConfig(root=tmp_path)
    note = NoteFile("git/squash.md", "git", "Squash")
    parsed = IndexParseResult(entries=[
        IndexEntry("Git", "Squash", "git/squash.md", "git/squash.md", line=3),
        IndexEntry("Tips", "Squash again", "./git/squash.md", "git/squash.md", line=9),
    ])
    report = build_report([note], parsed, cfg)
    assert [p.entry.line for p in report.matched] == [3]
    assert report.dangling == ()
    assert [(w.kind, w.line) for w in report.warnings] == [(DUPLICATE_ENTRY, 9)]
    assert report.exit_code == EXIT_OK


def test_severity_policy_can_downgrade_discrepancies(cfg: CheckConfig) -> None:
    write(cfg.root, "docker/prune.md", "# Prune\n")
    (cfg.root / "git" / "squash.md").unlink()
    relaxed = replace(cfg, policy=PolicyConfig(unlisted="warning", dangling="warning"))
    report = run_check(relaxed)
    assert len(report.unlisted) == 1
    assert len(report.dangling) == 1
    assert report.exit_code == EXIT_OK
    assert run_check(replace(cfg, policy=PolicyConfig(unlisted="warning"))).exit_code == EXIT_DISCREPANCY


def test_strict_mode_fails_on_unparsed_lines(cfg: CheckConfig) -> None:
    readme = cfg.root / "README.md"
    readme.write_text(readme.read_text(encoding="utf-8") + "- TODO: write about rebase\n", encoding="utf-8")
    assert run_check(cfg).exit_code == EXIT_OK
    strict = run_check(cfg.with_overrides(strict=True))
    assert len(strict.warnings) == 1
    assert strict.exit_code == EXIT_DISCREPANCY


def test_compare_titles(tmp_path: Path) -> None:
    cfg = CheckConfig(root=tmp_path, policy=PolicyConfig(compare_titles=True))
    notes = [NoteFile("a/x.md", "a", "Exact  title"), NoteFile("a/y.md", "a", "Heading")]
    parsed = IndexParseResult(entries=[
        IndexEntry("A", "Exact title", "a/x.md", "a/x.md", line=2),
        IndexEntry("A", "Different", "a/y.md", "a/y.md", line=3),
    ])
    report = build_report(notes, parsed, cfg)
    assert [(w.kind, w.path) for w in report.warnings] == [(TITLE_MISMATCH, "a/y.md")]


def test_render_text_lists_each_discrepancy(cfg: CheckConfig) -> None:
    write(cfg.root, "docker/prune.md", "# Prune\n")
    (cfg.root / "bash" / "tail-a-log.md").unlink()
    text = render_text(run_check(cfg))
    assert "Unlisted files (1) [error]" in text
    assert "  docker/prune.md  (Prune)" in text
    assert "Dangling entries (1) [error]" in text
    assert "bash/tail-a-log.md  (README.md:10 [Tail a log])" in text
    assert text.endswith("2 matched, 1 unlisted, 1 dangling, 0 warnings: FAIL")


def test_render_json_summary(cfg: CheckConfig) -> None:
    write(cfg.root, "docker/prune.md", "# Prune\n")
    data = json.loads(render_json(run_check(cfg)))
    assert data["summary"]["status"] == "fail"
    assert data["summary"]["unlisted"] == 1
    assert data["unlisted"] == [{"path": "docker/prune.md", "category": "docker", "title": "Prune"}]
    assert data["matched"] == ["bash/brace-expansion.md", "bash/tail-a-log.md", "git/squash.md"]


def test_render_suggestions_groups_by_category(cfg: CheckConfig) -> None:
    write(cfg.root, "docker/prune.md", "# Prune images\n")
    write(cfg.root, "docker/run it.md", "no heading\n")
    write(cfg.root, "bash/history.md", "# History expansion\n")
    out = render_suggestions(run_check(cfg))
    assert out == (
        "## bash\n\n"
        "- [History expansion](bash/history.md)\n\n"
        "## docker\n\n"
        "- [Prune images](docker/prune.md)\n"
        "- [run it](docker/run%20it.md)"
    )


def test_note_with_parentheses_in_name_is_matched(tmp_path: Path) -> None:
    write(tmp_path, "README.md", "## Java\n\n- [Optional](java/optional_(jdk8).md)\n")
    write(tmp_path, "java/optional_(jdk8).md", "# Optional\n")
    report = run_check(CheckConfig(root=tmp_path))
    assert [p.path for p in report.matched] == ["java/optional_(jdk8).md"]
    assert report.unlisted == ()
    assert report.dangling == ()

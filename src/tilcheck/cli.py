"""tilcheck CLI — keep a notes repository and its README index in sync.

Commands:
    tilcheck check             compare notes on disk with the index (exit 0/1/2)
    tilcheck notes             list scanned notes
    tilcheck entries           list parsed index entries
    tilcheck suggest           print index lines for unlisted notes
    tilcheck init              write a default tilcheck.toml
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import NoReturn

import click

from tilcheck.config import CheckConfig, init_config, load_config
from tilcheck.index_parser import parse_index, read_index, resolve_repository
from tilcheck.models import EXIT_INPUT_ERROR, InputNotFoundError
from tilcheck.reporter import render_json, render_suggestions, render_table, render_text, run_check
from tilcheck.scanner import scan_notes

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fail_input(exc: Exception) -> NoReturn:
    click.echo(f"Error: {exc}", err=True)
    raise SystemExit(EXIT_INPUT_ERROR) from exc


def _load_cfg(ctx: click.Context, **overrides: object) -> CheckConfig:
    root: str | None = ctx.obj.get("root")
    try:
        cfg = load_config(root)
        return cfg.with_overrides(**overrides)
    except (ValueError, tomllib.TOMLDecodeError, OSError) as exc:
        _fail_input(exc)


def _setup_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(name)s %(message)s")


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="tilcheck")
@click.option("--root", type=click.Path(file_okay=False), default=None,
              help="Repository root (default: nearest dir with tilcheck.toml, else cwd)")
@click.option("-v", "--verbose", count=True, help="Log progress to stderr (-vv for debug)")
@click.pass_context
def cli(ctx: click.Context, root: str | None, verbose: int) -> None:
    """tilcheck — index consistency checker for notes repositories."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["root"] = root


# ---------------------------------------------------------------------------
# tilcheck check
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--index", "index", default=None, help="Index document, relative to root")
@click.option("--ext", "extension", default=None, help="Note file extension (default .md)")
@click.option("--exclude-dir", "exclude_dirs", multiple=True, help="Directory name to skip (repeatable)")
@click.option("--exclude", "exclude", multiple=True, help="Glob of non-note files to skip (repeatable)")
@click.option("--strict/--no-strict", default=None, help="Treat warnings as errors")
@click.option("--use-git/--no-git", "use_git", default=None, help="Discover files with git ls-files")
@click.option("--format", "fmt", type=click.Choice(["text", "json", "table"]), default="text",
              show_default=True)
@click.pass_context
def check(
    ctx: click.Context,
    index: str | None,
    extension: str | None,
    exclude_dirs: tuple[str, ...],
    exclude: tuple[str, ...],
    strict: bool | None,
    use_git: bool | None,
    fmt: str,
) -> None:
    """Compare note files on disk with the entries of the index document.

    Exit status: 0 when consistent, 1 when discrepancies (or, with --strict,
    warnings) were found, 2 when the root or the index cannot be read.
    """
    cfg = _load_cfg(
        ctx,
        index=index,
        extension=extension,
        exclude_dirs=list(exclude_dirs) or None,
        exclude=list(exclude) or None,
        strict=strict,
        use_git=use_git,
    )
    try:
        report = run_check(cfg)
    except InputNotFoundError as exc:
        _fail_input(exc)

    if fmt == "json":
        click.echo(render_json(report))
    elif fmt == "table":
        from rich.console import Console
        render_table(report, Console())
    else:
        click.echo(render_text(report))
    ctx.exit(report.exit_code)


# ---------------------------------------------------------------------------
# tilcheck notes / entries
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def notes(ctx: click.Context) -> None:
    """List the note files found on disk."""
    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    cfg = _load_cfg(ctx)
    try:
        found, warnings = scan_notes(cfg.root, cfg)
    except InputNotFoundError as exc:
        _fail_input(exc)

    table = Table(title=f"Notes — {cfg.root.name}", show_header=True, header_style="bold")
    table.add_column("Path", no_wrap=True)
    table.add_column("Category", style="dim")
    table.add_column("Title")
    for note in found:
        title = escape(note.title) if note.title else "[dim]—[/dim]"
        table.add_row(escape(note.path), escape(note.category), title)
    console = Console()
    console.print(table)
    for w in warnings:
        console.print(f"[yellow]⚠ {escape(w.location)}: {escape(w.message)}[/yellow]")


@cli.command()
@click.option("--index", "index", default=None, help="Index document, relative to root")
@click.pass_context
def entries(ctx: click.Context, index: str | None) -> None:
    """List the entries parsed from the index document."""
    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    cfg = _load_cfg(ctx, index=index)
    try:
        parsed = parse_index(read_index(cfg), cfg, repo=resolve_repository(cfg))
    except InputNotFoundError as exc:
        _fail_input(exc)

    table = Table(title=f"Index — {cfg.index}", show_header=True, header_style="bold")
    table.add_column("Line", justify="right", style="dim")
    table.add_column("Category")
    table.add_column("Title")
    table.add_column("Path", no_wrap=True)
    for entry in parsed.entries:
        table.add_row(str(entry.line), escape(entry.category), escape(entry.title), escape(entry.path))
    console = Console()
    console.print(table)
    console.print(
        f"{len(parsed.entries)} entries in {len(parsed.categories)} categories, "
        f"{len(parsed.unparsed)} unparsed, {parsed.external} external links"
    )
    for w in parsed.unparsed:
        console.print(f"[yellow]⚠ {escape(w.location)}: {escape(w.message)}[/yellow]")


# ---------------------------------------------------------------------------
# tilcheck suggest
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def suggest(ctx: click.Context) -> None:
    """Print Markdown index lines for notes missing from the index."""
    cfg = _load_cfg(ctx)
    try:
        report = run_check(cfg)
    except InputNotFoundError as exc:
        _fail_input(exc)
    if not report.unlisted:
        click.echo("All notes are listed in the index.", err=True)
        return
    click.echo(render_suggestions(report))


# ---------------------------------------------------------------------------
# tilcheck init
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--index", "index", default="README.md", show_default=True, help="Index document")
@click.pass_context
def init(ctx: click.Context, index: str) -> None:
    """Create tilcheck.toml in the repository root."""
    root_path = Path(ctx.obj.get("root") or ".").resolve()
    try:
        config_path = init_config(root_path, index=index)
    except FileExistsError:
        click.echo("tilcheck.toml already exists — skipping init")
        return
    click.echo(f"Created {config_path}")

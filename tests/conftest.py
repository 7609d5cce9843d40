from __future__ import annotations

from pathlib import Path

import pytest

from tilcheck.config import CheckConfig


@pytest.fixture(autouse=True)
def _no_git_remote(monkeypatch: pytest.MonkeyPatch) -> None:
    # tmp_path may sit inside some unrelated checkout
    monkeypatch.setattr("tilcheck.index_parser.detect_repository", lambda _root: None)


def write(root: Path, rel: str, text: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def til_repo(tmp_path: Path) -> Path:
    """Consistent repository: two categories, three notes, all listed."""
    write(tmp_path, "README.md", """\
# TIL

A collection of things I learned. [![badge](https://img.shields.io/x.svg)](https://example.com)

- [Bash](#bash)
- [Git](#git)

## Bash

- [Tail a log](bash/tail-a-log.md)
- [Brace expansion](bash/brace-expansion.md)

## Git

- [Squash commits](git/squash.md)
- [Pro Git book](https://git-scm.com/book)
""")
    write(tmp_path, "bash/tail-a-log.md", "# Tail a log\n\n```sh\ntail -f x.log\n```\n")
    write(tmp_path, "bash/brace-expansion.md", "# Brace expansion\n\n`echo {a,b}`\n")
    write(tmp_path, "git/squash.md", "# Squash commits\n\nUse `git rebase -i`.\n")
    return tmp_path


@pytest.fixture
def cfg(til_repo: Path) -> CheckConfig:
    return CheckConfig(root=til_repo)

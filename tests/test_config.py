from __future__ import annotations

from pathlib import Path

import pytest

from tilcheck.config import CheckConfig, init_config, load_config


def test_defaults_without_config_file(tmp_path: Path) -> None:
    cfg = load_config(tmp_path)
    assert cfg.root == tmp_path.resolve()
    assert cfg.index == "README.md"
    assert cfg.extension == ".md"
    assert cfg.exclude_dirs == [".git", ".hg", ".svn"]
    assert cfg.policy.unlisted == "error"
    assert cfg.policy.strict is False
    assert cfg.index_options.category_level == 2


def test_load_values_from_file(tmp_path: Path) -> None:
    (tmp_path / "tilcheck.toml").write_text("""\
[tilcheck]
index = "docs/INDEX.md"
extension = "markdown"
exclude = ["templates/**"]
use_git = true

[index]
category_level = 3
repository = "/jdoe/til/"
repo_hosts = ["GitHub.com"]

[check]
strict = true
dangling = "warning"
compare_titles = true
""", encoding="utf-8")
    cfg = load_config(tmp_path)
    assert cfg.index_path == tmp_path.resolve() / "docs" / "INDEX.md"
    assert cfg.extension == ".markdown"
    assert cfg.exclude == ["templates/**"]
    assert cfg.use_git is True
    assert cfg.index_options.category_level == 3
    assert cfg.index_options.repository == "jdoe/til"
    assert cfg.index_options.repo_hosts == ["github.com"]
    assert cfg.policy.strict is True
    assert cfg.policy.dangling == "warning"
    assert cfg.policy.compare_titles is True


def test_search_upward_from_cwd(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    (tmp_path / "tilcheck.toml").write_text('[tilcheck]\nindex = "INDEX.md"\n', encoding="utf-8")
    nested = tmp_path / "bash" / "deep"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)
    cfg = load_config()
    assert cfg.root == tmp_path.resolve()
    assert cfg.index == "INDEX.md"


@pytest.mark.parametrize(
    "body",
    ['[check]\nunlisted = "fatal"\n', "[index]\ncategory_level = 7\n", '[tilcheck]\nextension = ""\n'],
)
def test_invalid_values_raise(tmp_path: Path, body: str) -> None:
    (tmp_path / "tilcheck.toml").write_text(body, encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(tmp_path)


def test_with_overrides_ignores_none_and_validates(tmp_path: Path) -> None:
    cfg = CheckConfig(root=tmp_path)
    same = cfg.with_overrides(index=None, strict=None)
    assert same == cfg
    changed = cfg.with_overrides(extension="txt", strict=True, exclude=["a/**"])
    assert changed.extension == ".txt"
    assert changed.policy.strict is True
    assert changed.exclude == ["a/**"]
    with pytest.raises(ValueError):
        cfg.with_overrides(dangling="sometimes")


def test_init_config_writes_loadable_defaults(tmp_path: Path) -> None:
    path = init_config(tmp_path, index="INDEX.md")
    assert path == tmp_path / "tilcheck.toml"
    cfg = load_config(tmp_path)
    assert cfg.index == "INDEX.md"
    assert cfg.policy == CheckConfig(root=tmp_path).policy
    with pytest.raises(FileExistsError):
        init_config(tmp_path)

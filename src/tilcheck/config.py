"""CheckConfig: project-local config for the index consistency checker.

The config lives next to the index document, at the repository root:

    tilcheck.toml         # project config (git-tracked)
    README.md             # index document
    <category>/
        <note>.md

tilcheck.toml example:

    [tilcheck]
    index = "README.md"
    extension = ".md"
    exclude_dirs = [".git", ".hg", ".svn"]
    exclude = ["templates/**", "CHANGELOG.md"]
    use_git = false         # use git ls-files (respects .gitignore)

    [index]
    category_level = 2      # "## Category" headings
    repository = "jdoe/til" # owner/repo; empty = read from git remote.origin
    repo_hosts = ["github.com"]

    [check]
    strict = false          # treat warnings (unparsed lines etc.) as errors
    unlisted = "error"      # or "warning"
    dangling = "error"
    compare_titles = false
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from tilcheck.models import SEVERITIES, SEVERITY_ERROR

_CONFIG_FILENAME = "tilcheck.toml"
_DEFAULT_INDEX = "README.md"
_DEFAULT_EXTENSION = ".md"
_DEFAULT_EXCLUDE_DIRS = [".git", ".hg", ".svn"]
_DEFAULT_REPO_HOSTS = ["github.com", "gitlab.com", "bitbucket.org"]


@dataclass(frozen=True)
class IndexConfig:
    """[index] section: how the index document is read."""
    category_level: int = 2
    repository: str = ""                   # owner/repo for absolute-URL normalization
    repo_hosts: list[str] = field(default_factory=lambda: list(_DEFAULT_REPO_HOSTS))


@dataclass(frozen=True)
class PolicyConfig:
    """[check] section: what counts as a failure."""
    strict: bool = False
    unlisted: str = SEVERITY_ERROR
    dangling: str = SEVERITY_ERROR
    compare_titles: bool = False


@dataclass(frozen=True)
class CheckConfig:
    """Resolved configuration for one repository."""

    root: Path                              # directory that contains tilcheck.toml
    index: str = _DEFAULT_INDEX             # relative to root
    extension: str = _DEFAULT_EXTENSION
    exclude_dirs: list[str] = field(default_factory=lambda: list(_DEFAULT_EXCLUDE_DIRS))
    exclude: list[str] = field(default_factory=list)
    use_git: bool = False
    index_options: IndexConfig = field(default_factory=IndexConfig)
    policy: PolicyConfig = field(default_factory=PolicyConfig)

    @property
    def index_path(self) -> Path:
        return self.root / self.index

    @property
    def config_path(self) -> Path:
        return self.root / _CONFIG_FILENAME

    def with_overrides(self, **changes: Any) -> CheckConfig:
        """Return a copy with top-level fields replaced; None values are ignored."""
        policy_keys = {"strict", "unlisted", "dangling", "compare_titles"}
        top = {k: v for k, v in changes.items() if v is not None and k not in policy_keys}
        pol = {k: v for k, v in changes.items() if v is not None and k in policy_keys}
        if "extension" in top:
            top["extension"] = _normalize_extension(top["extension"])
        cfg = replace(self, **top)
        if pol:
            cfg = replace(cfg, policy=replace(cfg.policy, **pol))
        _validate(cfg)
        return cfg


def _normalize_extension(ext: str) -> str:
    ext = ext.strip()
    if not ext:
        msg = "extension must not be empty"
        raise ValueError(msg)
    return ext if ext.startswith(".") else f".{ext}"


def _validate(cfg: CheckConfig) -> None:
    for name, value in (("unlisted", cfg.policy.unlisted), ("dangling", cfg.policy.dangling)):
        if value not in SEVERITIES:
            msg = f"[check] {name} must be one of {', '.join(SEVERITIES)}, got {value!r}"
            raise ValueError(msg)
    level = cfg.index_options.category_level
    if not 1 <= level <= 6:
        msg = f"[index] category_level must be between 1 and 6, got {level}"
        raise ValueError(msg)


def load_config(root: Path | str | None = None) -> CheckConfig:
    """Load tilcheck.toml from root (or search upward from cwd if root is None).

    An explicit root is used as-is; only the cwd default walks upward.

    A missing config file is not an error: defaults apply and the root is the
    starting directory.
    """
    root_path = Path(root).resolve() if root else _find_root(Path.cwd())
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    main = raw.get("tilcheck", {})
    idx_section = raw.get("index", {})
    chk_section = raw.get("check", {})

    cfg = CheckConfig(
        root=root_path,
        index=str(main.get("index", _DEFAULT_INDEX)),
        extension=_normalize_extension(str(main.get("extension", _DEFAULT_EXTENSION))),
        exclude_dirs=list(main.get("exclude_dirs", _DEFAULT_EXCLUDE_DIRS)),
        exclude=list(main.get("exclude", [])),
        use_git=bool(main.get("use_git", False)),
        index_options=IndexConfig(
            category_level=int(idx_section.get("category_level", 2)),
            repository=str(idx_section.get("repository", "")).strip("/"),
            repo_hosts=[h.lower() for h in idx_section.get("repo_hosts", _DEFAULT_REPO_HOSTS)],
        ),
        policy=PolicyConfig(
            strict=bool(chk_section.get("strict", False)),
            unlisted=str(chk_section.get("unlisted", SEVERITY_ERROR)),
            dangling=str(chk_section.get("dangling", SEVERITY_ERROR)),
            compare_titles=bool(chk_section.get("compare_titles", False)),
        ),
    )
    _validate(cfg)
    return cfg


def _find_root(start: Path) -> Path:
    """Walk upward from start looking for tilcheck.toml."""
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return start


def init_config(root: Path, index: str = _DEFAULT_INDEX) -> Path:
    """Write a default tilcheck.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"tilcheck.toml already exists at {config_path}"
        raise FileExistsError(msg)

    content = f"""\
[tilcheck]
index = "{index}"
# extension = ".md"
# exclude_dirs = [".git", ".hg", ".svn"]   # hidden directories are always skipped
# exclude = []          # globs for non-note files, e.g. ["templates/**"]
# use_git = false       # use git ls-files to respect .gitignore

# [index]
# category_level = 2    # heading level of category sections ("## Bash")
# repository = ""       # owner/repo; empty = derive from git remote.origin
# repo_hosts = ["github.com", "gitlab.com", "bitbucket.org"]

# [check]
# strict = false        # unparsed index lines and other warnings fail the run
# unlisted = "error"    # notes on disk missing from the index: error | warning
# dangling = "error"    # index entries pointing at no note: error | warning
# compare_titles = false
"""
    config_path.write_text(content, encoding="utf-8")
    return config_path

"""Index document parser: README.md → IndexEntry records.

Recognized structure:

    ## Bash                          # category heading (level = category_level)

    - [Tail a log](bash/tail.md)     # entry: display title + target
    * [Squash commits](https://github.com/<owner>/<repo>/blob/main/git/squash.md)
    - some text without a link       # unparsed → malformed-entry finding

Targets are normalized to repository-relative '/'-separated paths:
fragments and queries dropped, percent-escapes decoded, `.`/`..` collapsed
relative to the index document's directory. Absolute URLs are kept only when
they point into the same repository; everything else is counted as external.
"""

from __future__ import annotations

import logging
import posixpath
import re
import subprocess
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from urllib.parse import SplitResult, unquote, urlsplit

from tilcheck.models import MALFORMED_ENTRY, Finding, IndexEntry, InputNotFoundError

if TYPE_CHECKING:
    from pathlib import Path

    from tilcheck.config import CheckConfig

logger = logging.getLogger("tilcheck.index_parser")

_HEADING_RE = re.compile(r"^ {0,3}(#{1,6})[ \t]+(.*?)(?:[ \t]+#+)?[ \t]*$")
_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
_LIST_ITEM_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])[ \t]+(.*\S)\s*$")
_THEMATIC_BREAK_RE = re.compile(r"^ {0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$")
# [title](target) but not ![alt](image); one level of nested brackets in the title,
# one level of balanced parentheses in the target, optional <...> and "link title"
_LINK_RE = re.compile(
    r"(?<!!)\[(?P<title>(?:[^\[\]]|\[[^\[\]]*\])*)\]"
    r"\(\s*(?P<target>(?:<[^<>\n]*>|(?:[^()\s]|\([^()\s]*\))*)"
    r"(?:\s+(?:\"[^\"]*\"|'[^']*'))?)\s*\)"
)

_RAW_HOST = "raw.githubusercontent.com"
_BLOB_MARKERS = ("blob", "tree", "raw")

# git remote forms: git@host:owner/repo.git, ssh://git@host/owner/repo, https://host/owner/repo.git
_SCP_REMOTE_RE = re.compile(r"^[\w.-]+@(?P<host>[^:/]+):(?P<path>.+)$")

LOCAL = "local"
ANCHOR = "anchor"
EXTERNAL = "external"


@dataclass(frozen=True)
class RepoIdentity:
    """Where the repository lives, for recognizing absolute links into it."""

    owner: str
    name: str
    hosts: tuple[str, ...] = ()

    @classmethod
    def parse(cls, repository: str, hosts: list[str] | tuple[str, ...] = ()) -> RepoIdentity | None:
        owner, sep, name = repository.strip("/").partition("/")
        if not sep or not owner or not name:
            return None
        name = name.removesuffix(".git")
        return cls(owner=owner.lower(), name=name.lower(), hosts=tuple(h.lower() for h in hosts))


@dataclass
class IndexParseResult:
    """Everything recovered from one index document."""

    entries: list[IndexEntry] = field(default_factory=list)
    unparsed: list[Finding] = field(default_factory=list)
    external: int = 0
    anchors: int = 0

    @property
    def categories(self) -> list[str]:
        """Category names in document order, without repeats."""
        return list(dict.fromkeys(e.category for e in self.entries))


# ---------------------------------------------------------------------------
# Repository identity
# ---------------------------------------------------------------------------

def _parse_remote(url: str) -> tuple[str, str] | None:
    """Return (host, "owner/repo") for a git remote URL."""
    url = url.strip()
    m = _SCP_REMOTE_RE.match(url)
    if m and "://" not in url:
        host, path = m.group("host"), m.group("path")
    else:
        parts = urlsplit(url)
        if not parts.hostname:
            return None
        host, path = parts.hostname, parts.path
    segs = [s for s in path.strip("/").removesuffix(".git").split("/") if s]
    if len(segs) < 2:
        return None
    return host.lower(), f"{segs[-2]}/{segs[-1]}"


def detect_repository(root: Path) -> tuple[str, str] | None:
    """Read remote.origin.url from git. Returns (host, "owner/repo") or None."""
    try:
        result = subprocess.run(
            ["git", "config", "--get", "remote.origin.url"],
            cwd=root,
            capture_output=True,
            text=True,
            check=True,
            timeout=10,
        )
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError, NotADirectoryError):
        return None
    return _parse_remote(result.stdout)


def resolve_repository(config: CheckConfig) -> RepoIdentity | None:
    """Repository identity from [index] repository, else from the git remote."""
    opts = config.index_options
    if opts.repository:
        return RepoIdentity.parse(opts.repository, opts.repo_hosts)
    detected = detect_repository(config.root)
    if detected is None:
        logger.debug("no repository identity; absolute URLs are treated as external")
        return None
    host, repository = detected
    hosts = list(dict.fromkeys([*opts.repo_hosts, host]))
    logger.debug("repository identity from git remote: %s on %s", repository, host)
    return RepoIdentity.parse(repository, hosts)


# ---------------------------------------------------------------------------
# Target normalization
# ---------------------------------------------------------------------------

def _same_repo_path(parts: SplitResult, repo: RepoIdentity) -> str | None:
    host = (parts.hostname or "").lower().removeprefix("www.")
    segs = [unquote(s) for s in parts.path.split("/") if s]
    if len(segs) < 2 or segs[0].lower() != repo.owner:
        return None
    if segs[1].lower().removesuffix(".git") != repo.name:
        return None

    if host == _RAW_HOST:
        rest = segs[3:]                       # owner/repo/<ref>/path
    elif host in repo.hosts:
        tail = segs[2:]
        if tail and tail[0] == "-":           # gitlab: owner/repo/-/blob/<ref>/path
            tail = tail[1:]
        if len(tail) < 2 or tail[0] not in _BLOB_MARKERS:
            return None
        rest = tail[2:]                       # blob/<ref>/path
    else:
        return None
    return "/".join(rest) or None


def normalize_target(
    target: str,
    *,
    index_dir: str = "",
    repo: RepoIdentity | None = None,
) -> tuple[str, str | None]:
    """Classify a link target and normalize it.

    Returns (kind, path) where kind is LOCAL, ANCHOR or EXTERNAL and path is
    the repository-relative path for LOCAL targets (None otherwise).
    """
    t = target.strip()
    if t.startswith("<") and ">" in t:
        t = t[1:t.index(">")].strip()
    elif t:
        t = t.split()[0]                      # drop an optional "link title"
    if not t:
        return EXTERNAL, None
    if t.startswith("#"):
        return ANCHOR, None

    parts = urlsplit(t)
    if parts.scheme or parts.netloc:
        if repo is not None and parts.scheme in ("http", "https", ""):
            path = _same_repo_path(parts, repo)
            if path is not None:
                return LOCAL, posixpath.normpath(path)
        return EXTERNAL, None

    path = unquote(parts.path).replace("\\", "/")
    if not path:
        return ANCHOR, None                   # "?query" or "#frag" variants of the index itself
    if path.startswith("/"):
        path = path.lstrip("/")
    elif index_dir:
        path = posixpath.join(index_dir, path)
    path = posixpath.normpath(path)
    if path == ".." or path.startswith("../"):
        return EXTERNAL, None
    return LOCAL, path


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_index(
    text: str,
    config: CheckConfig,
    *,
    repo: RepoIdentity | None = None,
) -> IndexParseResult:
    """Parse index text into entries. Tolerant: bad list items become findings."""
    if repo is None and config.index_options.repository:
        repo = RepoIdentity.parse(config.index_options.repository, config.index_options.repo_hosts)

    index_name = posixpath.normpath(config.index.replace("\\", "/"))
    index_dir = posixpath.dirname(index_name)
    level = config.index_options.category_level

    result = IndexParseResult()
    category: str | None = None
    fence: str | None = None

    for lineno, line in enumerate(text.splitlines(), start=1):
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
        if h:
            if len(h.group(1)) == level:
                category = h.group(2).strip()
            elif len(h.group(1)) < level:
                category = None               # a higher-level heading closes the section
            continue

        if category is None or _THEMATIC_BREAK_RE.match(line):
            continue
        item = _LIST_ITEM_RE.match(line)
        if not item:
            continue

        link = _LINK_RE.search(item.group(1))
        if link is None:
            logger.debug("%s:%d: list item without a link", index_name, lineno)
            result.unparsed.append(Finding(
                MALFORMED_ENTRY, index_name,
                f"list item is not a link: {item.group(1)[:80]}", line=lineno,
            ))
            continue

        raw_target = link.group("target")
        kind, path = normalize_target(raw_target, index_dir=index_dir, repo=repo)
        if kind == ANCHOR:
            result.anchors += 1
            continue
        if kind == EXTERNAL:
            if not raw_target.strip():
                result.unparsed.append(Finding(
                    MALFORMED_ENTRY, index_name, "link has an empty target", line=lineno,
                ))
            else:
                result.external += 1
            continue

        result.entries.append(IndexEntry(
            category=category,
            title=" ".join(link.group("title").split()),
            target=raw_target.strip(),
            path=path or "",
            line=lineno,
        ))

    logger.info(
        "parsed %s: %d entries, %d unparsed, %d external, %d anchors",
        index_name, len(result.entries), len(result.unparsed), result.external, result.anchors,
    )
    return result


def read_index(config: CheckConfig) -> str:
    """Read the index document. Raises InputNotFoundError if missing."""
    path = config.index_path
    if not path.exists():
        msg = f"index document not found: {path}"
        raise InputNotFoundError(msg)
    if not path.is_file():
        msg = f"index document is not a file: {path}"
        raise InputNotFoundError(msg)
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        msg = f"cannot read index document {path}: {exc}"
        raise InputNotFoundError(msg) from exc

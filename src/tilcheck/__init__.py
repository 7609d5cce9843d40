"""Index consistency checker for "Today I Learned" style notes repositories.

Layout checked:
    README.md                    # index document
        ## <Category>
        - [Title](category/note.md)
    <category>/
        <note>.md                # one note per file, titled by its first heading

Pipeline (one-shot, no state kept between runs):
    NoteScanner  ─┐
                  ├─> build_report ─> ConsistencyReport ─> render_text / render_json
    parse_index  ─┘
"""

from tilcheck.config import CheckConfig, init_config, load_config
from tilcheck.index_parser import IndexParseResult, parse_index
from tilcheck.models import ConsistencyReport, Finding, IndexEntry, InputNotFoundError, NoteFile
from tilcheck.reporter import build_report, run_check
from tilcheck.scanner import NoteScanner, scan_notes

__all__ = [
    "CheckConfig",
    "ConsistencyReport",
    "Finding",
    "IndexEntry",
    "IndexParseResult",
    "InputNotFoundError",
    "NoteFile",
    "NoteScanner",
    "build_report",
    "init_config",
    "load_config",
    "parse_index",
    "run_check",
    "scan_notes",
]

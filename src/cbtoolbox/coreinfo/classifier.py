"""
coreinfo.classifier — Decide which candidate paths are debuggable core dumps.

Runs the ``file`` utility on every candidate and looks for the configured
core markers (``"core file"``, ``"ELF"``) in its output.  The same output
is mined for ``FileInfo`` fields (platform, uid/gid pairs, execfn); any
field the tool does not report stays empty.
"""

from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from rich.markup import escape

from ..core.config import Config
from ..core.errors import ClassificationFailed, NoCandidates, NoValidCoreFiles
from ..core.log import console, debug_print
from ..core.models import FileInfo

FILE_TOOL_TIMEOUT = 30

_FILE_INFO_PATTERNS: Dict[str, re.Pattern] = {
    "platform": re.compile(r"platform: '([^']*)'"),
    "real_uid": re.compile(r"real uid: (\d+)"),
    "effective_uid": re.compile(r"effective uid: (\d+)"),
    "real_gid": re.compile(r"real gid: (\d+)"),
    "effective_gid": re.compile(r"effective gid: (\d+)"),
    "execfn": re.compile(r"execfn: '([^']*)'"),
    "from_command": re.compile(r"from '([^']*)'"),
}


@dataclass
class ValidationResult:
    """Validated core files in input order, plus their classification metadata."""

    core_files: List[str] = field(default_factory=list)
    file_info: Dict[str, FileInfo] = field(default_factory=dict)


def _run_file_command(path: str, cfg: Config) -> str:
    """Run the classification tool on *path* and return its stdout."""
    try:
        result = subprocess.run(
            [cfg.file_tool, "-b", path],
            capture_output=True,
            text=True,
            timeout=FILE_TOOL_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise ClassificationFailed(path, str(e)) from e
    if result.returncode != 0:
        raise ClassificationFailed(
            path, result.stderr.strip() or f"exit status {result.returncode}"
        )
    return result.stdout


def _strip_path_prefix(output: str, path: str) -> str:
    """Drop the echoed ``<path>: `` so markers are only matched in the description."""
    prefix = f"{path}: "
    return output[len(prefix):] if output.startswith(prefix) else output


def is_core_output(output: str, markers: Sequence[str]) -> bool:
    return any(marker in output for marker in markers)


def parse_file_info(output: str) -> FileInfo:
    """Best-effort extraction of ``FileInfo`` fields from ``file`` output."""
    fields: Dict[str, str] = {"file_output": output.strip()}
    for name, pattern in _FILE_INFO_PATTERNS.items():
        m = pattern.search(output)
        if m:
            fields[name] = m.group(1)
    return FileInfo(**fields)


def classify_file(path: str, cfg: Config) -> Optional[FileInfo]:
    """
    Classify a single file.

    Returns its ``FileInfo`` when the classification output carries a core
    marker, ``None`` otherwise.  Raises ``ClassificationFailed`` when the
    tool itself cannot be run.
    """
    output = _strip_path_prefix(_run_file_command(path, cfg), path)
    debug_print("classifier", f"{path}: {output.strip()}", enabled=cfg.debug)
    if not is_core_output(output, cfg.core_markers):
        return None
    return parse_file_info(output)


def _expand(arg: str) -> List[str]:
    """A directory expands to its immediate file entries (sorted); a file to itself."""
    p = Path(arg)
    if p.is_dir():
        return [str(p / entry.name) for entry in sorted(p.iterdir()) if entry.is_file()]
    return [arg]


def validate_core_files(args: Sequence[str], cfg: Config) -> ValidationResult:
    """
    Validate input paths (files or directories) as core dumps.

    Missing paths and paths the classification tool cannot handle are
    skipped with a diagnostic so that a partially available batch still
    proceeds.  With ``cfg.strict_classification`` a tool failure is raised
    instead.

    Raises ``NoCandidates`` for an empty argument list and
    ``NoValidCoreFiles`` when nothing survives classification.
    """
    if not args:
        raise NoCandidates()

    result = ValidationResult()
    for arg in args:
        if not Path(arg).exists():
            console.print(f"  [yellow]Skipping '{escape(arg)}': no such file or directory[/]")
            continue

        for candidate in _expand(arg):
            if candidate in result.file_info:
                continue
            try:
                info = classify_file(candidate, cfg)
            except ClassificationFailed as e:
                if cfg.strict_classification:
                    raise
                console.print(f"  [yellow]Skipping {escape(str(e))}[/]")
                continue

            if info is None:
                if cfg.verbose:
                    console.print(f"Validating file: {escape(candidate)} -> Not a core file")
                continue
            if cfg.verbose:
                console.print(f"Validating file: {escape(candidate)} -> Valid core file")
            result.core_files.append(candidate)
            result.file_info[candidate] = info

    if not result.core_files:
        raise NoValidCoreFiles()
    return result

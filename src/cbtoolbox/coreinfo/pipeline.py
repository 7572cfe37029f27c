"""
coreinfo.pipeline — Batch orchestration for core-dump analysis.

    paths → validate → gdb (per file, bounded pool) → parse → normalise
          → compare (2+ records) → BatchResult

Global preconditions (no candidates, no valid cores, gdb missing, missing
command script) abort before any gdb run.  Per-file failures are recorded
as ``FileFailure`` entries and never stop the rest of the batch.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

from rich.markup import escape

from ..core.config import Config
from ..core.errors import CoreFileError
from ..core.log import console, debug_print
from ..core.models import BatchResult, CoreAnalysis, FileFailure, FileInfo
from .classifier import validate_core_files
from .compare import compare_cores
from .gdb import check_gdb_available, gdb_script, run_gdb
from .threads import normalize_analysis
from .transcript import parse_transcript


def resolve_binary(cfg: Config, file_info: Optional[FileInfo] = None, binary: Optional[str] = None) -> str:
    """
    Pick the executable gdb should load next to a core.

    An explicit *binary* always wins; otherwise the configured binary when
    it exists, then the core's own ``execfn`` when that exists, and finally
    the configured binary regardless.
    """
    if binary:
        return binary
    if Path(cfg.binary).exists():
        return cfg.binary
    if file_info is not None and file_info.execfn and Path(file_info.execfn).exists():
        return file_info.execfn
    return cfg.binary


def analyze_core_file(
    core_file: str,
    script_path: str,
    cfg: Config,
    *,
    file_info: Optional[FileInfo] = None,
    binary: Optional[str] = None,
) -> Tuple[CoreAnalysis, str]:
    """Run gdb on one core and return its normalised analysis plus raw output."""
    target = resolve_binary(cfg, file_info, binary)
    console.print(f"  [dim]Analyzing core file: {escape(core_file)} using {escape(target)}…[/]")
    output = run_gdb(core_file, target, script_path, cfg)
    analysis = parse_transcript(output, core_file, file_info=file_info)
    normalize_analysis(analysis)
    debug_print(
        "pipeline",
        f"{core_file}: {analysis.signal_info.signal_name}, {len(analysis.threads)} thread(s)",
        enabled=cfg.debug,
    )
    return analysis, output


def run_coreinfo(
    paths: Sequence[str],
    cfg: Config,
    *,
    script: Optional[str] = None,
    binary: Optional[str] = None,
    compare: bool = True,
) -> BatchResult:
    """
    Analyse every core dump found under *paths*.

    At most ``cfg.max_workers`` gdb processes run at once.  Analyses and
    failures are reported in validation order regardless of completion
    order.
    """
    check_gdb_available(cfg)
    validation = validate_core_files(paths, cfg)
    core_files = validation.core_files
    console.print(f"Validated core files: {escape(str(core_files))}")

    analyses: Dict[str, CoreAnalysis] = {}
    failures: Dict[str, FileFailure] = {}
    transcripts: Dict[str, str] = {}

    with gdb_script(script) as script_path:
        workers = min(cfg.max_workers, len(core_files))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_file = {
                executor.submit(
                    analyze_core_file,
                    core_file,
                    script_path,
                    cfg,
                    file_info=validation.file_info.get(core_file),
                    binary=binary,
                ): core_file
                for core_file in core_files
            }
            for future in as_completed(future_to_file):
                core_file = future_to_file[future]
                try:
                    analysis, output = future.result()
                except CoreFileError as e:
                    console.print(f"  [red]✗ {escape(str(e))}[/]")
                    failures[core_file] = FileFailure(
                        core_file=core_file, error=type(e).__name__, message=str(e)
                    )
                    continue
                analyses[core_file] = analysis
                transcripts[core_file] = output

    batch = BatchResult(
        analyses=[analyses[f] for f in core_files if f in analyses],
        failures=[failures[f] for f in core_files if f in failures],
        transcripts=transcripts,
    )
    if compare and len(batch.analyses) > 1:
        batch.comparison = compare_cores(batch.analyses)
    return batch

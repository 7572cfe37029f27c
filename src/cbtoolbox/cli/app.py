"""
cli.app — Main Typer application.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..core.config import Config, load_config
from ..core.errors import CoreInfoError, ScriptNotFound
from ..core.log import console as err_console
from ..core.models import BatchResult, CoreComparison
from ..core.reporting import (
    render_sysinfo,
    save_analysis,
    save_batch_summary,
    save_comparison,
)

app = typer.Typer(
    name="cbtoolbox",
    help="An Apache Cloudberry (Incubator) toolbox.",
    no_args_is_help=True,
)
console = Console()


# ── Shared helpers ────────────────────────────────────────────────────


def _build_config(**cli_overrides: object) -> Config:
    """Build a ``Config`` from .env + CLI overrides, dropping None values."""
    try:
        return load_config(**{k: v for k, v in cli_overrides.items() if v is not None})
    except ValueError as e:
        err_console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(1)


@app.callback()
def _root() -> None:
    """An Apache Cloudberry (Incubator) toolbox."""
    cfg = _build_config()
    if cfg.gphome is not None and not cfg.gphome.is_dir():
        err_console.print(f"[red]GPHOME directory does not exist: {escape(str(cfg.gphome))}[/]")
        raise typer.Exit(1)


# ═════════════════════════════════════════════════════════════════════
#  coreinfo
# ═════════════════════════════════════════════════════════════════════


@app.command()
def coreinfo(
    paths: Optional[List[str]] = typer.Argument(None, help="Core files and/or directories of core files"),
    script: Optional[str] = typer.Option(
        None, "--gdb-script", "-s",
        help="Built-in command script (basic/detailed) or path to a custom one",
    ),
    binary: Optional[str] = typer.Option(None, "--binary", "-b", help="Binary that produced the cores"),
    fmt: Optional[str] = typer.Option(None, "--format", "-f", help="Report format: yaml or json"),
    output_dir: Optional[str] = typer.Option(None, "--output-dir", "-o", help="Directory for report files"),
    workers: Optional[int] = typer.Option(None, "--workers", "-j", help="Concurrent gdb processes"),
    timeout: Optional[int] = typer.Option(None, "--timeout", help="Seconds per gdb run (0 disables)"),
    strict: bool = typer.Option(False, "--strict", help="Fail when a file cannot be classified"),
    fail_on_error: bool = typer.Option(False, "--fail-on-error", help="Exit 1 if any core fails"),
    compare: bool = typer.Option(True, "--compare/--no-compare", help="Compare cores for crash patterns"),
    save: bool = typer.Option(True, "--save/--no-save", help="Write report files"),
    show_output: bool = typer.Option(False, "--show-output", help="Print the raw gdb output"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Report every classified file"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug output"),
) -> None:
    """Analyse core dumps with gdb and look for recurring crash patterns."""
    from ..coreinfo.pipeline import run_coreinfo

    cfg = _build_config(
        output_format=fmt.lower() if fmt else None,
        output_dir=Path(output_dir) if output_dir else None,
        max_workers=workers,
        gdb_timeout=timeout,
        strict_classification=strict or None,
        fail_on_error=fail_on_error or None,
        verbose=verbose or None,
        debug=debug or None,
    )

    try:
        batch = run_coreinfo(paths or [], cfg, script=script, binary=binary, compare=compare)
    except CoreInfoError as e:
        # preconditions, a missing script, or a classification failure under --strict
        err_console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(1)

    for analysis in batch.analyses:
        console.print()
        console.print(analysis.summary(), markup=False, highlight=False)
        if show_output:
            console.print("\nDetailed GDB Output:")
            console.print(batch.transcripts.get(analysis.core_file, ""), markup=False, highlight=False)

    _print_threads(batch)
    if batch.comparison is not None:
        _print_comparison(batch.comparison)
    _print_failures(batch)

    if save:
        report_paths: Dict[str, str] = {}
        for analysis in batch.analyses:
            path = save_analysis(
                analysis, cfg.output_dir, cfg.output_format,
                metadata={"binary": analysis.basic_info.binary, "script": script or "basic"},
            )
            report_paths[analysis.core_file] = str(path)
        if batch.comparison is not None:
            save_comparison(batch.comparison, cfg.output_dir, cfg.output_format)
        save_batch_summary(batch, cfg.output_dir, cfg.output_format, report_paths=report_paths)

    if batch.failures and cfg.fail_on_error:
        raise typer.Exit(1)


# ═════════════════════════════════════════════════════════════════════
#  sysinfo
# ═════════════════════════════════════════════════════════════════════


@app.command()
def sysinfo(
    fmt: Optional[str] = typer.Option(None, "--format", "-f", help="Output format: yaml or json"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug output"),
) -> None:
    """Display system and database environment information."""
    from ..sysinfo.collector import gather_sysinfo

    cfg = _build_config(output_format=fmt.lower() if fmt else None, debug=debug or None)
    info, errors = gather_sysinfo(cfg)

    typer.echo(render_sysinfo(info, cfg.output_format))

    if cfg.gphome is None:
        err_console.print("[red]GPHOME environment variable is not set[/]")
        raise typer.Exit(1)
    if errors:
        err_console.print("\n[bold]Summary of errors:[/]")
        for e in errors:
            err_console.print(f"  - {escape(e)}")
        raise typer.Exit(1)


# ═════════════════════════════════════════════════════════════════════
#  gdb-script
# ═════════════════════════════════════════════════════════════════════


@app.command(name="gdb-script")
def gdb_script_cmd(
    name: str = typer.Argument("basic", help="Built-in script: basic or detailed"),
    output: str = typer.Option(..., "--output", "-o", help="Where to write the script"),
) -> None:
    """Extract a built-in gdb command script for customisation."""
    from ..coreinfo.gdb import extract_builtin_script

    try:
        extract_builtin_script(name, Path(output))
    except ScriptNotFound as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(1)


# ═════════════════════════════════════════════════════════════════════
#  Helpers
# ═════════════════════════════════════════════════════════════════════


def _print_threads(batch: BatchResult) -> None:
    """One table per analysed core listing its normalised threads."""
    for analysis in batch.analyses:
        if not analysis.threads:
            continue
        table = Table(title=f"Threads: {escape(Path(analysis.core_file).name)}", show_header=True, header_style="bold")
        table.add_column("ID", style="dim", width=4)
        table.add_column("LWP", justify="right")
        table.add_column("Role", min_width=12)
        table.add_column("Crashed", width=7)
        table.add_column("Top frame", max_width=50)
        for t in analysis.threads:
            table.add_row(
                str(t.id),
                str(t.lwp) if t.lwp is not None else "—",
                t.name,
                "yes" if t.is_crashed else "",
                escape(t.backtrace[0].display()) if t.backtrace else "—",
            )
        console.print(table)


def _print_comparison(comparison: CoreComparison) -> None:
    """Pretty-print a CoreComparison."""
    console.print("\n[bold]═══ Core Comparison ═══[/]")
    console.print(f"  Cores compared: {comparison.total_cores}")
    console.print(f"  Unique signatures: {comparison.unique_signatures}")
    if comparison.time_range:
        console.print(f"  Time range: {comparison.time_range['first']} → {comparison.time_range['last']}")
    if comparison.common_signals:
        sigs = ", ".join(f"{k} ({v})" for k, v in comparison.common_signals.items())
        console.print(f"  Signals: {sigs}")

    if not comparison.crash_patterns:
        console.print("  No recurring crash patterns.")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Count", justify="right", width=5)
    table.add_column("Signal", min_width=8)
    table.add_column("Stack signature", min_width=20)
    table.add_column("Core files", max_width=50)
    for p in comparison.crash_patterns:
        table.add_row(
            str(p.occurrence_count),
            p.signal,
            escape(" → ".join(p.stack_signature) or "—"),
            escape(", ".join(Path(f).name for f in p.affected_core_files)),
        )
    console.print(table)


def _print_failures(batch: BatchResult) -> None:
    if not batch.failures:
        return
    console.print(f"\n[bold red]{len(batch.failures)} core file(s) failed:[/]")
    for f in batch.failures:
        console.print(f"  - {escape(f.message)}")


def main() -> None:
    """Entry-point registered in pyproject.toml."""
    app()

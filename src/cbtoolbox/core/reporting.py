"""
core.reporting — Structured report persistence.

Writes core analyses, cross-core comparisons and batch summaries to disk
as JSON or YAML so operators can archive and diff them.

All reports use a standard *envelope*::

    {
        "cbtoolbox_report": true,
        "version": "1.0",
        "kind": "<core_analysis | core_comparison | coreinfo_summary>",
        "generated_at": "2026-…",
        "metadata": { … },
        "data": { <model fields> }
    }
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel

from .config import validate_format
from .log import console
from .models import BatchResult, CoreAnalysis, CoreComparison, SysInfo

_UNSAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


# ── Envelope builder ──────────────────────────────────────────────────


def _report_envelope(
    kind: str,
    data: Any,
    *,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Wrap report data in a standard envelope with timestamp + metadata."""
    envelope: Dict[str, Any] = {
        "cbtoolbox_report": True,
        "version": "1.0",
        "kind": kind,
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }
    if metadata:
        envelope["metadata"] = metadata

    if isinstance(data, BaseModel):
        envelope["data"] = data.model_dump(mode="json")
    elif isinstance(data, list):
        envelope["data"] = [
            item.model_dump(mode="json") if isinstance(item, BaseModel) else item
            for item in data
        ]
    else:
        envelope["data"] = data

    return envelope


def render(envelope: Dict[str, Any], fmt: str) -> str:
    """Serialise an envelope (or any plain dict) as ``json`` or ``yaml``."""
    validate_format(fmt)
    if fmt == "json":
        return json.dumps(envelope, indent=2, default=str)
    return yaml.safe_dump(envelope, sort_keys=False, default_flow_style=False)


def _timestamp() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def _write(path: Path, envelope: Dict[str, Any], fmt: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render(envelope, fmt))
    return path


# ── Per-kind report saving ────────────────────────────────────────────


def save_analysis(
    analysis: CoreAnalysis,
    output_dir: Path,
    fmt: str = "yaml",
    *,
    metadata: Optional[Dict[str, Any]] = None,
) -> Path:
    """
    Save a single core analysis.

    File: ``core_analysis_<core-name>_<YYYYmmdd_HHMMSS>.<fmt>``.  The core
    file name is part of the file name so that a batch analysed within
    the same second does not overwrite itself.
    """
    core_name = _UNSAFE_NAME.sub("_", Path(analysis.core_file).name) or "core"
    path = Path(output_dir) / f"core_analysis_{core_name}_{_timestamp()}.{fmt}"
    _write(path, _report_envelope("core_analysis", analysis, metadata=metadata), fmt)
    console.print(f"  [dim]📄 Analysis saved to: {path}[/]")
    return path


def save_comparison(
    comparison: CoreComparison,
    output_dir: Path,
    fmt: str = "yaml",
) -> Path:
    """Save a cross-core comparison as ``core_comparison_<ts>.<fmt>``."""
    path = Path(output_dir) / f"core_comparison_{_timestamp()}.{fmt}"
    _write(path, _report_envelope("core_comparison", comparison), fmt)
    console.print(f"  [dim]📄 Comparison results saved to: {path}[/]")
    return path


def save_batch_summary(
    batch: BatchResult,
    output_dir: Path,
    fmt: str = "yaml",
    *,
    report_paths: Optional[Dict[str, str]] = None,
) -> Path:
    """
    Save the combined outcome of a batch run.

    Lists every analysed core with its signal and report file, plus every
    per-file failure, so a partially failed batch is still auditable.
    """
    report_paths = report_paths or {}
    data = {
        "analysed": [
            {
                "core_file": a.core_file,
                "signal": a.signal_info.signal_name,
                "binary": a.basic_info.binary,
                "report": report_paths.get(a.core_file),
            }
            for a in batch.analyses
        ],
        "failures": [f.model_dump(mode="json") for f in batch.failures],
        "patterns": len(batch.comparison.crash_patterns) if batch.comparison else 0,
    }
    path = Path(output_dir) / f"coreinfo_summary_{_timestamp()}.{fmt}"
    _write(path, _report_envelope("coreinfo_summary", data), fmt)
    console.print(f"\n  [bold]📋 Batch summary saved: {path}[/]")
    return path


def render_sysinfo(info: SysInfo, fmt: str = "yaml") -> str:
    """Render gathered environment facts; database facts that were not collected are omitted."""
    data = info.model_dump(mode="json", exclude_none=True)
    if not info.pg_config_configure:
        data.pop("pg_config_configure", None)
    return render(_report_envelope("sysinfo", data), fmt)

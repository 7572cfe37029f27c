"""
coreinfo.compare — Cluster crash records into recurring crash patterns.

A record's signature is its signal name followed by the first three
non-system frames of its primary stack trace, joined with ``|``.  Records
with equal signatures form a bucket; buckets of two or more become
``CrashPattern`` entries ranked by size, ties kept in first-seen order.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from ..core.models import CoreAnalysis, CoreComparison, CrashPattern, StackFrame
from .threads import is_system_function

SIGNATURE_DEPTH = 3
SIGNATURE_SEPARATOR = "|"

# fromisoformat before 3.11 only takes 3 or 6 fractional digits
_FRACTION_RE = re.compile(r"\.(\d+)(?=[+-]\d{2}:\d{2}$|$)")


def _is_system(frame: StackFrame) -> bool:
    return frame.is_system or is_system_function(frame.function)


def signature_frames(frames: Sequence[StackFrame], depth: int = SIGNATURE_DEPTH) -> List[str]:
    """The first *depth* non-system function names, innermost first."""
    names: List[str] = []
    for frame in frames:
        if len(names) == depth:
            break
        if not _is_system(frame):
            names.append(frame.function)
    return names


def crash_signature(analysis: CoreAnalysis, depth: int = SIGNATURE_DEPTH) -> str:
    parts = [analysis.signal_info.signal_name] + signature_frames(analysis.stack_trace, depth)
    return SIGNATURE_SEPARATOR.join(parts)


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp; ``None`` for anything malformed or zone-less."""
    if not value:
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda m: "." + (m.group(1) + "000000")[:6], text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return parsed


def _time_range(analyses: Sequence[CoreAnalysis]) -> Dict[str, str]:
    stamps = [(parse_timestamp(a.timestamp), a.timestamp) for a in analyses]
    valid = [(t, raw) for t, raw in stamps if t is not None]
    if not valid:
        return {}
    first = min(valid, key=lambda item: item[0])
    last = max(valid, key=lambda item: item[0])
    return {"first": first[1], "last": last[1]}


def compare_cores(analyses: Sequence[CoreAnalysis], depth: int = SIGNATURE_DEPTH) -> CoreComparison:
    """
    Summarise a batch of analyses.

    Signal and (non-system) function distributions cover every record;
    only signatures shared by two or more records are promoted to
    patterns.  Malformed timestamps are left out of ``time_range``.
    """
    comparison = CoreComparison(total_cores=len(analyses), time_range=_time_range(analyses))

    groups: Dict[str, List[CoreAnalysis]] = {}
    frames_by_signature: Dict[str, List[str]] = {}
    for analysis in analyses:
        signal = analysis.signal_info.signal_name
        comparison.common_signals[signal] = comparison.common_signals.get(signal, 0) + 1

        for frame in analysis.stack_trace:
            if not _is_system(frame):
                comparison.common_functions[frame.function] = (
                    comparison.common_functions.get(frame.function, 0) + 1
                )

        frames = signature_frames(analysis.stack_trace, depth)
        signature = SIGNATURE_SEPARATOR.join([signal] + frames)
        frames_by_signature.setdefault(signature, frames)
        groups.setdefault(signature, []).append(analysis)

    comparison.unique_signatures = len(groups)

    patterns: List[CrashPattern] = []
    for signature, group in groups.items():
        if len(group) < 2:
            continue
        patterns.append(
            CrashPattern(
                signal=group[0].signal_info.signal_name,
                stack_signature=frames_by_signature[signature],
                signature=signature,
                occurrence_count=len(group),
                affected_core_files=[a.core_file for a in group],
            )
        )

    # sorted() is stable, so equal counts keep first-seen order
    comparison.crash_patterns = sorted(patterns, key=lambda p: -p.occurrence_count)
    return comparison

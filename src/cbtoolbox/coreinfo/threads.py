"""
coreinfo.threads — Deduplicate threads and label their roles.

gdb re-prints identical stacks for symmetric workers (and twice when a
script runs both ``bt`` and ``thread apply all bt``), so threads whose
backtraces have the same function-name sequence collapse to the first
occurrence.  Crash detection and role labels are heuristics over fixed
tables; an unfamiliar platform may legitimately yield no crashed thread.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from ..core.models import CoreAnalysis, StackFrame, ThreadRecord

# ── Frame tables ──────────────────────────────────────────────────────

SIGNAL_HANDLER_FRAME = "<signal handler called>"

# Substrings of a frame function that mark signal delivery for the crash.
CRASH_MARKERS: Tuple[str, ...] = (
    "SigillSigsegvSigbus",
    SIGNAL_HANDLER_FRAME,
)

SYSTEM_FUNCTIONS: set[str] = {
    SIGNAL_HANDLER_FRAME,
    "??",
    "_start", "main",
    "raise", "abort", "__restore_rt",
    "__libc_start_main", "__libc_start_call_main",
    "start_thread", "clone", "clone3", "__clone", "__clone3",
    "pthread_kill", "__pthread_kill_implementation", "__pthread_kill_internal",
    "__GI_raise", "__GI_abort", "__GI___pthread_kill",
    "__poll", "poll", "__select", "select", "epoll_wait", "__epoll_wait_nocancel",
    "__nanosleep", "nanosleep", "__futex_abstimed_wait_common",
    "StandardHandlerForSigillSigsegvSigbus_OnMainThread",
    "CdbProgramErrorHandler",
    "ExceptionalCondition",
    "errfinish", "elog_finish", "pg_re_throw",
}

SYSTEM_PREFIXES: Tuple[str, ...] = ("__GI_", "__libc_", "__pthread_", "_dl_")

# Frames that appear while a thread is servicing a (non-fatal) signal.
SIGNAL_HANDLING_FUNCTIONS: set[str] = {
    "__restore_rt",
    "sigsuspend", "__sigsuspend", "pg_sigsuspend",
    "die", "quickdie", "StatementCancelHandler", "handle_sig_alarm",
    "procsignal_sigusr1_handler", "SIGHUP_handler", "reaper", "pmdie",
}

# Process / thread entry points, consulted from the outermost frame inward.
ROLE_TABLE: Sequence[Tuple[str, str]] = (
    ("PostmasterMain", "postmaster"),
    ("PostgresMain", "backend"),
    ("AutoVacLauncherMain", "autovacuum launcher"),
    ("AutoVacWorkerMain", "autovacuum worker"),
    ("BackgroundWriterMain", "background writer"),
    ("CheckpointerMain", "checkpointer"),
    ("WalWriterMain", "walwriter"),
    ("PgArchiverMain", "archiver"),
    ("PgstatCollectorMain", "stats collector"),
    ("WalSenderMain", "walsender"),
    ("WalSndLoop", "walsender"),
    ("WalReceiverMain", "walreceiver"),
    ("StartBackgroundWorker", "background worker"),
    ("FtsProbeMain", "fts probe"),
    ("rxThreadFunc", "interconnect receiver"),
)
_ROLES = dict(ROLE_TABLE)

ROLE_CRASHED = "crashed"
ROLE_SIGNAL_HANDLING = "signal-handling"
ROLE_WORKER = "worker"
ROLE_UNKNOWN = "unknown"


def is_system_function(name: str) -> bool:
    """True for runtime-internal / signal-delivery frames."""
    return name in SYSTEM_FUNCTIONS or name.startswith(SYSTEM_PREFIXES)


def is_crash_frame(name: str) -> bool:
    return any(marker in name for marker in CRASH_MARKERS)


# ── Normalisation steps ───────────────────────────────────────────────


def deduplicate_threads(threads: Iterable[ThreadRecord]) -> List[ThreadRecord]:
    """Keep the first thread for every distinct function-name sequence."""
    seen: set[Tuple[str, ...]] = set()
    unique: List[ThreadRecord] = []
    for thread in threads:
        key = tuple(thread.function_names())
        if key in seen:
            continue
        seen.add(key)
        unique.append(thread)
    return unique


def _select_crashed(threads: Sequence[ThreadRecord], current: Optional[int]) -> Optional[ThreadRecord]:
    candidates = [t for t in threads if any(is_crash_frame(f.function) for f in t.backtrace)]
    if not candidates:
        return None
    for t in candidates:
        if t.id == current:
            return t
    return candidates[0]


def determine_thread_role(backtrace: Sequence[StackFrame], *, is_crashed: bool = False) -> str:
    """
    Label a thread from its backtrace.

    Entry points are looked up from the outermost frame inward, and the
    most deeply nested one wins (a backend's stack still contains
    ``PostmasterMain`` further out).
    """
    role: Optional[str] = None
    for frame in reversed(backtrace):
        role = _ROLES.get(frame.function, role)
    if role is not None:
        return role
    if is_crashed:
        return ROLE_CRASHED
    if any(f.function in SIGNAL_HANDLING_FUNCTIONS for f in backtrace):
        return ROLE_SIGNAL_HANDLING
    if not backtrace:
        return ROLE_UNKNOWN
    return ROLE_WORKER


def normalize_threads(
    threads: Sequence[ThreadRecord],
    current_thread: Optional[int] = None,
) -> List[ThreadRecord]:
    """
    Deduplicate *threads*, mark at most one as crashed and label roles.

    When several threads carry a crash marker, the current thread wins,
    otherwise the first one.  Idempotent on its own output.
    """
    unique = deduplicate_threads(threads)
    crashed = _select_crashed(unique, current_thread)
    for thread in unique:
        thread.is_crashed = thread is crashed
        thread.name = determine_thread_role(thread.backtrace, is_crashed=thread.is_crashed)
    return unique


def _current_thread_id(analysis: CoreAnalysis) -> Optional[int]:
    try:
        return int(analysis.current_thread)
    except ValueError:
        return None


def normalize_analysis(analysis: CoreAnalysis) -> CoreAnalysis:
    """
    Normalise ``analysis.threads`` in place and refresh ``stack_trace``.

    ``stack_trace`` follows the crashed thread, else the current thread,
    else the first thread; it is left alone when there are no threads.
    """
    current = _current_thread_id(analysis)
    analysis.threads = normalize_threads(analysis.threads, current)

    primary = analysis.crashed_thread()
    if primary is None:
        primary = next((t for t in analysis.threads if t.id == current), None)
    if primary is None and analysis.threads:
        primary = analysis.threads[0]
    if primary is not None:
        analysis.stack_trace = list(primary.backtrace)
    return analysis

"""
coreinfo.transcript — Parse a gdb transcript into a ``CoreAnalysis``.

This is a pure-parsing module: no subprocesses, no filesystem access.

The transcript is the append-only output of a fixed command script, so it
is read as one linear pass over its lines.  Each field has its own
extractor returning ``None`` when its fragment is absent; absent fields
fall back to the ``"unknown"`` / ``"N/A"`` sentinels.  Only the
``Core was generated by`` line is mandatory: without it the record cannot
be attributed and ``MissingBinaryIdentity`` is raised.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from ..core.errors import MissingBinaryIdentity
from ..core.models import (
    NOT_AVAILABLE,
    BasicInfo,
    CoreAnalysis,
    FileInfo,
    SharedLibrary,
    SignalInfo,
    StackFrame,
    ThreadRecord,
)
from .threads import SIGNAL_HANDLER_FRAME, is_system_function

# ── Transcript fragments ──────────────────────────────────────────────

GENERATED_BY_RE = re.compile(r"Core was generated by [`'](.*)'\.?\s*$")
SIGNAL_RE = re.compile(r"Program terminated with signal (\w+), (.+?)\.?\s*$")
FAULT_ADDR_RE = re.compile(r"si_addr = ([^,}\s]+)")
CURRENT_THREAD_RE = re.compile(r"\[Current thread is (\d+)")
THREAD_HEADER_RE = re.compile(r"^Thread (\d+) \((.*)\):\s*$")
LWP_RE = re.compile(r"LWP (\d+)")

FRAME_RE = re.compile(
    r"^#(?P<index>\d+)\s+"
    r"(?:(?P<address>0x[0-9a-fA-F]+)\s+in\s+)?"
    r"(?P<function>[^\s(]+)\s*"
    r"(?:\((?P<args>.*?)\))?"
    r"(?:\s+at\s+(?P<file>\S+?):(?P<line>\d+))?"
    r"(?:\s+from\s+(?P<library>\S+))?"
    r"\s*$"
)
LOOSE_FRAME_RE = re.compile(r"^#(\d+)\s+(?:(0x[0-9a-fA-F]+)\s+in\s+)?([^\s(]+)")
SIGNAL_FRAME_RE = re.compile(r"^#(\d+)\s+" + re.escape(SIGNAL_HANDLER_FRAME))

REGISTER_RE = re.compile(r"^([a-z][a-z0-9_]*)\s+(0x[0-9a-fA-F]+)\b")
SHLIB_RE = re.compile(
    r"^(0x[0-9a-fA-F]+)\s+(0x[0-9a-fA-F]+)\s+(Yes|No)(?:\s+\(\*\))?\s+(\S.*?)\s*$"
)

KNOWN_REGISTERS: set[str] = {
    # x86_64
    "rax", "rbx", "rcx", "rdx", "rsi", "rdi", "rbp", "rsp",
    "r8", "r9", "r10", "r11", "r12", "r13", "r14", "r15",
    "rip", "eflags", "cs", "ss", "ds", "es", "fs", "gs",
    "fs_base", "gs_base",
    # aarch64
    *(f"x{i}" for i in range(31)),
    "sp", "pc", "cpsr", "fpsr", "fpcr",
}


def _now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


# ── Header extractors ─────────────────────────────────────────────────


def _first_match(lines: Sequence[str], pattern: re.Pattern) -> Optional[re.Match]:
    for line in lines:
        m = pattern.search(line)
        if m:
            return m
    return None


def extract_command_line(lines: Sequence[str]) -> Optional[str]:
    m = _first_match(lines, GENERATED_BY_RE)
    return m.group(1).strip() if m else None


def extract_signal(lines: Sequence[str]) -> Optional[Tuple[str, str]]:
    m = _first_match(lines, SIGNAL_RE)
    return (m.group(1), m.group(2).strip()) if m else None


def extract_fault_address(lines: Sequence[str]) -> Optional[str]:
    m = _first_match(lines, FAULT_ADDR_RE)
    return m.group(1) if m else None


def extract_current_thread(lines: Sequence[str]) -> Optional[str]:
    m = _first_match(lines, CURRENT_THREAD_RE)
    return m.group(1) if m else None


def extract_registers(lines: Sequence[str]) -> Dict[str, str]:
    """Register values from ``info registers`` (first occurrence of each)."""
    registers: Dict[str, str] = {}
    for line in lines:
        m = REGISTER_RE.match(line.strip())
        if m and m.group(1) in KNOWN_REGISTERS and m.group(1) not in registers:
            registers[m.group(1)] = m.group(2)
    return registers


def extract_shared_libraries(lines: Sequence[str]) -> List[SharedLibrary]:
    libs: List[SharedLibrary] = []
    seen: set[str] = set()
    for line in lines:
        m = SHLIB_RE.match(line.strip())
        if not m or m.group(4) in seen:
            continue
        seen.add(m.group(4))
        libs.append(
            SharedLibrary(
                from_address=m.group(1),
                to_address=m.group(2),
                symbols_read=m.group(3) == "Yes",
                path=m.group(4),
            )
        )
    return libs


# ── Thread / backtrace extraction ─────────────────────────────────────


def parse_frame(line: str) -> Optional[StackFrame]:
    """Parse a single ``#N ...`` backtrace line."""
    line = line.strip()
    if not line.startswith("#"):
        return None

    m = SIGNAL_FRAME_RE.match(line)
    if m:
        return StackFrame(index=int(m.group(1)), function=SIGNAL_HANDLER_FRAME, is_system=True)

    m = FRAME_RE.match(line)
    if m:
        func = m.group("function")
        return StackFrame(
            index=int(m.group("index")),
            function=func,
            address=m.group("address"),
            args=m.group("args"),
            file=m.group("file"),
            line=int(m.group("line")) if m.group("line") else None,
            library=m.group("library"),
            is_system=is_system_function(func),
        )

    # Anything gdb prints that the strict pattern misses still yields a name
    m = LOOSE_FRAME_RE.match(line)
    if m:
        func = m.group(3)
        return StackFrame(
            index=int(m.group(1)),
            function=func,
            address=m.group(2),
            is_system=is_system_function(func),
        )
    return None


def _is_prefix(short: Sequence[str], full: Sequence[str]) -> bool:
    return len(short) < len(full) and list(full[: len(short)]) == list(short)


def extract_threads(lines: Sequence[str], current_thread: Optional[str] = None) -> List[ThreadRecord]:
    """
    Split backtrace output into one ``ThreadRecord`` per block.

    ``Thread N (...):`` headers open a block; consecutive ``#N`` lines fill
    it.  Frames outside any header (a plain ``bt``, or the frame gdb prints
    when it loads the core) form anonymous blocks attributed to the current
    thread.  An anonymous block that is a prefix of another block, or that
    repeats a headed thread, is dropped.
    """
    default_id = int(current_thread) if current_thread and current_thread.isdigit() else 0
    threads: List[ThreadRecord] = []
    anonymous: List[ThreadRecord] = []
    current: Optional[ThreadRecord] = None

    for line in lines:
        stripped = line.strip()
        header = THREAD_HEADER_RE.match(stripped)
        if header:
            lwp = LWP_RE.search(header.group(2))
            current = ThreadRecord(
                id=int(header.group(1)),
                lwp=int(lwp.group(1)) if lwp else None,
                target=header.group(2),
            )
            threads.append(current)
            continue

        frame = parse_frame(stripped)
        if frame is None:
            continue
        if current is None or (frame.index == 0 and current.backtrace):
            current = ThreadRecord(id=default_id, target="bt")
            threads.append(current)
            anonymous.append(current)
        current.backtrace.append(frame)

    sequences = [t.function_names() for t in threads]
    headed = [t.function_names() for t in threads if not any(t is a for a in anonymous)]

    def _shadowed(t: ThreadRecord) -> bool:
        names = t.function_names()
        return any(_is_prefix(names, seq) for seq in sequences) or names in headed

    return [t for t in threads if not (any(t is a for a in anonymous) and _shadowed(t))]


# ── Entry point ───────────────────────────────────────────────────────


def parse_transcript(
    output: str,
    core_file: str,
    *,
    file_info: Optional[FileInfo] = None,
    timestamp: Optional[str] = None,
) -> CoreAnalysis:
    """
    Build a raw ``CoreAnalysis`` from gdb output.

    Threads are returned as parsed; deduplication and role labelling are
    the job of ``coreinfo.threads.normalize_analysis``.
    """
    lines = output.splitlines()

    command_line = extract_command_line(lines)
    if command_line is None:
        raise MissingBinaryIdentity(core_file)
    binary = command_line.split()[0].rstrip(":") if command_line.split() else command_line

    analysis = CoreAnalysis(
        core_file=core_file,
        timestamp=timestamp or _now(),
        file_info=file_info or FileInfo(),
        basic_info=BasicInfo(binary=binary, command_line=command_line),
    )

    sig = extract_signal(lines)
    if sig:
        analysis.signal_info = SignalInfo(signal_name=sig[0], description=sig[1])
        analysis.basic_info.signal = f"{sig[0]}, {sig[1]}"
    fault = extract_fault_address(lines)
    if fault:
        analysis.signal_info.fault_address = fault

    analysis.current_thread = extract_current_thread(lines) or NOT_AVAILABLE
    analysis.threads = extract_threads(lines, analysis.current_thread)
    analysis.registers = extract_registers(lines)
    analysis.shared_libraries = extract_shared_libraries(lines)

    if analysis.threads:
        analysis.stack_trace = list(analysis.threads[0].backtrace)
    return analysis

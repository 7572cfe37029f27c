"""
core.models — Canonical data models for core-dump analysis.

Every stage of the coreinfo pipeline (classifier → gdb driver → transcript
parser → thread normaliser → comparison engine → reporting) speaks the
same language through these Pydantic models.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN = "unknown"
NOT_AVAILABLE = "N/A"


# ── Classification ────────────────────────────────────────────────────


class FileInfo(BaseModel):
    """Metadata extracted from the ``file`` classification of a core dump.

    Fields the tool did not report are left as empty strings.
    """

    model_config = ConfigDict(frozen=True)

    platform: str = ""
    real_uid: str = ""
    effective_uid: str = ""
    real_gid: str = ""
    effective_gid: str = ""
    execfn: str = ""
    from_command: str = ""
    file_output: str = ""


# ── Crash representation ──────────────────────────────────────────────


class BasicInfo(BaseModel):
    """Header facts gdb prints when it loads the core."""

    binary: str = UNKNOWN
    command_line: str = NOT_AVAILABLE
    signal: str = UNKNOWN


class SignalInfo(BaseModel):
    signal_name: str = UNKNOWN
    description: str = UNKNOWN
    fault_address: str = NOT_AVAILABLE


class StackFrame(BaseModel):
    """A single frame of a gdb backtrace."""

    index: int = 0
    function: str
    address: Optional[str] = None
    args: Optional[str] = None
    file: Optional[str] = None
    line: Optional[int] = None
    library: Optional[str] = None
    is_system: bool = False

    def display(self) -> str:
        loc = f"{self.file}:{self.line}" if self.file and self.line else ""
        return f"{self.function} ({loc})" if loc else self.function


class ThreadRecord(BaseModel):
    id: int
    lwp: Optional[int] = None
    target: str = ""
    backtrace: List[StackFrame] = Field(default_factory=list)
    is_crashed: bool = False
    name: str = UNKNOWN

    def function_names(self) -> List[str]:
        return [f.function for f in self.backtrace]


class SharedLibrary(BaseModel):
    from_address: str
    to_address: str
    symbols_read: bool = False
    path: str


class CoreAnalysis(BaseModel):
    """Structured result of analysing one core file (a crash record)."""

    core_file: str
    timestamp: str = ""  # RFC 3339
    file_info: FileInfo = Field(default_factory=FileInfo)
    basic_info: BasicInfo = Field(default_factory=BasicInfo)
    signal_info: SignalInfo = Field(default_factory=SignalInfo)
    current_thread: str = NOT_AVAILABLE
    threads: List[ThreadRecord] = Field(default_factory=list)
    stack_trace: List[StackFrame] = Field(default_factory=list)
    registers: Dict[str, str] = Field(default_factory=dict)
    shared_libraries: List[SharedLibrary] = Field(default_factory=list)

    def crashed_thread(self) -> Optional[ThreadRecord]:
        for t in self.threads:
            if t.is_crashed:
                return t
        return None

    def summary(self) -> str:
        """Human-readable summary block printed ahead of detailed output."""
        sig = self.signal_info
        signal = (
            f"{sig.signal_name} ({sig.description})"
            if sig.signal_name != UNKNOWN
            else "Unknown signal"
        )
        lines = [
            f"Core Dump Analysis Summary: {self.core_file}",
            "-" * 40,
            f"- Binary: {self.basic_info.binary}",
            f"- Signal: {signal}",
            f"- Faulting Address: {sig.fault_address}",
            f"- Thread ID: {self.current_thread}",
            f"- Process Args: {self.basic_info.command_line}",
            f"- Threads: {len(self.threads)}",
        ]
        crashed = self.crashed_thread()
        if crashed is not None:
            lines.append(f"- Crashed thread: {crashed.id} ({crashed.name})")
        return "\n".join(lines)


# ── Cross-core comparison ─────────────────────────────────────────────


class CrashPattern(BaseModel):
    """A cluster of crash records sharing one signature."""

    signal: str
    stack_signature: List[str] = Field(default_factory=list)
    signature: str = ""
    occurrence_count: int = 0
    affected_core_files: List[str] = Field(default_factory=list)


class CoreComparison(BaseModel):
    total_cores: int = 0
    common_signals: Dict[str, int] = Field(default_factory=dict)
    common_functions: Dict[str, int] = Field(default_factory=dict)
    time_range: Dict[str, str] = Field(default_factory=dict)
    unique_signatures: int = 0
    crash_patterns: List[CrashPattern] = Field(default_factory=list)


# ── Batch results ─────────────────────────────────────────────────────


class FileFailure(BaseModel):
    core_file: str
    error: str
    message: str


class BatchResult(BaseModel):
    analyses: List[CoreAnalysis] = Field(default_factory=list)
    failures: List[FileFailure] = Field(default_factory=list)
    comparison: Optional[CoreComparison] = None
    # raw gdb output per core file; kept out of serialised reports
    transcripts: Dict[str, str] = Field(default_factory=dict, exclude=True)

    @property
    def success(self) -> bool:
        return not self.failures


# ── Environment facts ─────────────────────────────────────────────────


class SysInfo(BaseModel):
    """System and database environment facts gathered by ``sysinfo``."""

    os: str = ""
    architecture: str = ""
    hostname: str = ""
    kernel: str = ""
    os_version: str = ""
    cpus: int = 0
    memory_stats: Dict[str, str] = Field(default_factory=dict)
    gphome: Optional[str] = None
    pg_config_configure: List[str] = Field(default_factory=list)
    postgres_version: Optional[str] = None
    gp_version: Optional[str] = None

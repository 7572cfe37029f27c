"""
core — Shared models, configuration, errors and report persistence.

This package is the foundation layer with zero intra-project dependencies
(i.e., nothing in ``core`` imports from ``coreinfo``, ``sysinfo`` or ``cli``).
"""

from .config import Config, load_config
from .errors import (
    ClassificationFailed,
    CoreFileError,
    CoreInfoError,
    DebuggerExecutionFailed,
    DebuggerTimeout,
    DebuggerUnavailable,
    MissingBinaryIdentity,
    NoCandidates,
    NoValidCoreFiles,
    PreconditionError,
    ScriptNotFound,
)
from .models import (
    BasicInfo,
    BatchResult,
    CoreAnalysis,
    CoreComparison,
    CrashPattern,
    FileFailure,
    FileInfo,
    SharedLibrary,
    SignalInfo,
    StackFrame,
    SysInfo,
    ThreadRecord,
)
from .reporting import render, render_sysinfo, save_analysis, save_batch_summary, save_comparison

__all__ = [
    "Config",
    "load_config",
    "CoreInfoError",
    "PreconditionError",
    "NoCandidates",
    "NoValidCoreFiles",
    "DebuggerUnavailable",
    "ScriptNotFound",
    "CoreFileError",
    "ClassificationFailed",
    "DebuggerExecutionFailed",
    "DebuggerTimeout",
    "MissingBinaryIdentity",
    "BasicInfo",
    "BatchResult",
    "CoreAnalysis",
    "CoreComparison",
    "CrashPattern",
    "FileFailure",
    "FileInfo",
    "SharedLibrary",
    "SignalInfo",
    "StackFrame",
    "SysInfo",
    "ThreadRecord",
    "save_analysis",
    "save_comparison",
    "save_batch_summary",
    "render",
    "render_sysinfo",
]

"""
coreinfo — Core-dump analysis for Cloudberry processes.

Stages:
    classifier   Which paths are core dumps (``file`` utility)
    gdb          Run gdb with a command script against binary + core
    transcript   Turn gdb output into a ``CoreAnalysis``
    threads      Deduplicate threads, find the crashed one, label roles
    compare      Cluster analyses into crash patterns
    pipeline     Batch orchestration of all of the above
"""

from .classifier import ValidationResult, classify_file, validate_core_files
from .compare import compare_cores, crash_signature
from .gdb import BUILTIN_SCRIPTS, extract_builtin_script, gdb_script, run_gdb
from .pipeline import analyze_core_file, resolve_binary, run_coreinfo
from .threads import normalize_analysis, normalize_threads
from .transcript import parse_transcript

__all__ = [
    "ValidationResult",
    "classify_file",
    "validate_core_files",
    "compare_cores",
    "crash_signature",
    "BUILTIN_SCRIPTS",
    "extract_builtin_script",
    "gdb_script",
    "run_gdb",
    "analyze_core_file",
    "resolve_binary",
    "run_coreinfo",
    "normalize_analysis",
    "normalize_threads",
    "parse_transcript",
]

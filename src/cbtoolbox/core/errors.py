"""
core.errors — Failure taxonomy for core-file analysis.

Two families:

``PreconditionError``
    Global failures detected before any debugger run.  They abort the
    whole batch because no useful partial work is possible.

``CoreFileError``
    Failures local to one core file.  The batch pipeline records them as
    ``FileFailure`` entries and carries on with the remaining files.
"""

from __future__ import annotations

from typing import Optional


class CoreInfoError(Exception):
    """Base class for every error raised by the coreinfo pipeline."""


# ── Global preconditions ──────────────────────────────────────────────


class PreconditionError(CoreInfoError):
    pass


class NoCandidates(PreconditionError):
    def __init__(self) -> None:
        super().__init__("no core files or directories provided")


class NoValidCoreFiles(PreconditionError):
    def __init__(self) -> None:
        super().__init__("no valid core files provided")


class DebuggerUnavailable(PreconditionError):
    def __init__(self, debugger: str) -> None:
        self.debugger = debugger
        super().__init__(f"{debugger} is not installed or not available in PATH")


class ScriptNotFound(CoreInfoError):
    def __init__(self, script: str) -> None:
        self.script = script
        super().__init__(f"gdb command script not found: {script}")


# ── Per-file failures ─────────────────────────────────────────────────


class CoreFileError(CoreInfoError):
    """A failure that concerns a single core file only."""

    def __init__(self, core_file: str, message: str) -> None:
        self.core_file = core_file
        super().__init__(f"{core_file}: {message}")


class ClassificationFailed(CoreFileError):
    def __init__(self, core_file: str, reason: str) -> None:
        self.reason = reason
        super().__init__(core_file, f"failed to run file classification: {reason}")


class DebuggerExecutionFailed(CoreFileError):
    def __init__(self, core_file: str, returncode: int, output: str = "") -> None:
        self.returncode = returncode
        self.output = output
        detail = output.strip().splitlines()[-1] if output.strip() else ""
        msg = f"gdb exited with status {returncode}"
        if detail:
            msg += f" ({detail})"
        super().__init__(core_file, msg)


class DebuggerTimeout(CoreFileError):
    def __init__(self, core_file: str, timeout: Optional[float]) -> None:
        self.timeout = timeout
        super().__init__(core_file, f"gdb did not finish within {timeout}s and was killed")


class MissingBinaryIdentity(CoreFileError):
    def __init__(self, core_file: str) -> None:
        super().__init__(core_file, "failed to extract binary information from gdb output")

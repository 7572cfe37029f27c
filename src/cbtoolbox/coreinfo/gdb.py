"""
coreinfo.gdb — Drive gdb non-interactively against a binary + core file.

gdb runs once per core file as::

    gdb --quiet -x <script> <binary> <core>

and its combined stdout/stderr is the only contract surface.  Command
scripts are either one of the built-ins shipped in ``resources/``
("basic", "detailed") or a caller-supplied path.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from ..core.config import Config
from ..core.errors import (
    DebuggerExecutionFailed,
    DebuggerTimeout,
    DebuggerUnavailable,
    ScriptNotFound,
)
from ..core.log import console, debug_print

RESOURCES_DIR = Path(__file__).resolve().parent / "resources"
BUILTIN_SCRIPTS = ("basic", "detailed")
DEFAULT_SCRIPT = "basic"


def check_gdb_available(cfg: Config) -> str:
    """Return the resolved gdb executable or raise ``DebuggerUnavailable``."""
    resolved = shutil.which(cfg.gdb_path)
    if resolved is None:
        raise DebuggerUnavailable(cfg.gdb_path)
    return resolved


def builtin_script_text(name: str) -> str:
    """Return the text of a built-in command script."""
    if name not in BUILTIN_SCRIPTS:
        raise ScriptNotFound(name)
    return (RESOURCES_DIR / f"gdb_commands_{name}.txt").read_text()


def extract_builtin_script(name: str, output_path: Path) -> Path:
    """Write a built-in script to *output_path* so operators can customise it."""
    output_path = Path(output_path)
    output_path.write_text(builtin_script_text(name))
    console.print(f"File gdb_commands_{name}.txt extracted to {output_path}")
    return output_path


@contextmanager
def gdb_script(script: Optional[str] = None) -> Iterator[str]:
    """
    Yield a filesystem path for *script*.

    ``None`` or a built-in name is materialised to a temporary file that is
    removed when the block exits, however it exits.  Any other value must be
    an existing path and is yielded unchanged.
    """
    name = script or DEFAULT_SCRIPT
    if name not in BUILTIN_SCRIPTS:
        if not Path(name).is_file():
            raise ScriptNotFound(name)
        yield name
        return

    fd, tmp_path = tempfile.mkstemp(prefix=f"gdb_commands_{name}_", suffix=".txt")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(builtin_script_text(name))
        yield tmp_path
    finally:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass


def run_gdb(core_file: str, binary: str, script_path: str, cfg: Config) -> str:
    """
    Run gdb on one core file and return its combined output.

    ``subprocess.run`` kills the child when ``cfg.timeout`` expires; that
    surfaces as ``DebuggerTimeout`` for this file only.  A non-zero exit
    raises ``DebuggerExecutionFailed`` carrying the captured output.
    """
    cmd = [cfg.gdb_path, "--quiet", "-x", script_path, binary, core_file]
    debug_print("gdb", " ".join(cmd), enabled=cfg.debug)
    try:
        result = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            text=True,
            errors="replace",
            timeout=cfg.timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise DebuggerTimeout(core_file, e.timeout) from e
    except OSError as e:
        raise DebuggerExecutionFailed(core_file, -1, str(e)) from e

    if result.returncode != 0:
        raise DebuggerExecutionFailed(core_file, result.returncode, result.stdout or "")
    return result.stdout

"""
core.config — Centralised configuration management.

Loads settings from environment variables and .env files.
Every component receives a ``Config`` value explicitly; nothing reads
process-wide mutable state at call time.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_BINARY = "/usr/local/cloudberry-db/bin/postgres"
OUTPUT_FORMATS = ("yaml", "json")

_env_loaded = False


def _load_dotenv() -> None:
    """Load .env from the project root and other standard paths.

    Search order:
        1. ``<project-root>/.env``  (two levels above ``src/cbtoolbox``)
        2. ``$CWD/.env``
        3. ``~/.env``

    Existing environment variables are never overridden.
    """
    global _env_loaded
    if _env_loaded:
        return

    _pkg_root = Path(__file__).resolve().parent.parent          # src/cbtoolbox
    _project_root = _pkg_root.parent.parent

    search = [
        _project_root / ".env",
        Path.cwd() / ".env",
        Path.home() / ".env",
    ]
    for p in search:
        if p.exists():
            load_dotenv(p, override=False)
    _env_loaded = True


class Config(BaseModel):
    """
    Runtime configuration for a single cbtoolbox invocation.

    Create via ``load_config()`` which pre-loads the env file.
    """

    # ── Installation ─────────────────────────────────────────────────
    gphome: Optional[Path] = Field(default=None, description="Cloudberry installation root ($GPHOME)")
    binary: str = Field(
        default=DEFAULT_BINARY,
        description="Binary the core files were produced by (passed to gdb)",
    )

    # ── External tools ───────────────────────────────────────────────
    gdb_path: str = "gdb"
    file_tool: str = "file"
    core_markers: List[str] = Field(
        default_factory=lambda: ["core file", "ELF"],
        description="Substrings of `file` output that mark a debuggable dump",
    )

    # ── Execution ────────────────────────────────────────────────────
    gdb_timeout: Optional[int] = Field(
        default=300,
        description="Seconds before a gdb run is killed; None/0 disables",
    )
    max_workers: int = Field(default=4, ge=1, description="Concurrent gdb processes")
    strict_classification: bool = False
    fail_on_error: bool = False

    # ── Output ───────────────────────────────────────────────────────
    output_dir: Path = Field(default_factory=Path.cwd)
    output_format: str = "yaml"

    # ── Debug ────────────────────────────────────────────────────────
    debug: bool = False
    verbose: bool = False

    @property
    def timeout(self) -> Optional[int]:
        """The gdb timeout in seconds, or None when disabled."""
        return self.gdb_timeout or None


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("1", "true", "yes")


def load_config(**overrides: object) -> Config:
    """
    Load ``Config`` from environment, applying optional overrides.

    Call this once at startup; pass the returned object to subsystems.
    """
    _load_dotenv()
    defaults: dict = {
        "debug": _env_flag("CBTOOLBOX_DEBUG"),
        "verbose": _env_flag("CBTOOLBOX_VERBOSE"),
    }

    gphome = os.environ.get("GPHOME")
    if gphome:
        defaults["gphome"] = Path(gphome)
        defaults["binary"] = str(Path(gphome) / "bin" / "postgres")
    binary_env = os.environ.get("CBTOOLBOX_BINARY")
    if binary_env:
        defaults["binary"] = binary_env

    gdb_env = os.environ.get("CBTOOLBOX_GDB")
    if gdb_env:
        defaults["gdb_path"] = gdb_env
    file_env = os.environ.get("CBTOOLBOX_FILE_TOOL")
    if file_env:
        defaults["file_tool"] = file_env
    out_env = os.environ.get("CBTOOLBOX_OUTPUT_DIR")
    if out_env:
        defaults["output_dir"] = Path(out_env)
    fmt_env = os.environ.get("CBTOOLBOX_FORMAT")
    if fmt_env:
        defaults["output_format"] = fmt_env.lower()
    timeout_env = os.environ.get("CBTOOLBOX_GDB_TIMEOUT")
    if timeout_env:
        defaults["gdb_timeout"] = int(timeout_env)
    workers_env = os.environ.get("CBTOOLBOX_MAX_WORKERS")
    if workers_env:
        defaults["max_workers"] = int(workers_env)

    defaults.update(overrides)
    cfg = Config(**defaults)  # type: ignore[arg-type]
    validate_format(cfg.output_format)
    return cfg


def validate_format(fmt: str) -> None:
    """Raise ``ValueError`` for output formats other than yaml / json."""
    if fmt not in OUTPUT_FORMATS:
        raise ValueError(f"invalid format: {fmt} (supported formats: yaml, json)")

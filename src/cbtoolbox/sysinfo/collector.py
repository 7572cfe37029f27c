"""
sysinfo.collector — Host and database environment facts.

Every fact is an independent task submitted to a thread pool; each task
writes one ``SysInfo`` field.  Failures do not stop the other tasks: they
are appended to a shared error list and reported after the pool drains.
Database facts (``pg_config``, ``postgres --version`` / ``--gp-version``)
are only gathered when ``GPHOME`` is configured.
"""

from __future__ import annotations

import os
import platform
import socket
import subprocess
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from ..core.config import Config
from ..core.log import debug_print
from ..core.models import SysInfo

PROC_MEMINFO = "/proc/meminfo"
OS_RELEASE = "/etc/os-release"
MEMINFO_KEYS = ("MemTotal", "MemFree", "MemAvailable", "Cached", "Buffers")
COMMAND_TIMEOUT = 30


class FactError(Exception):
    """A single fact could not be collected."""


def _run(cmd: List[str]) -> str:
    """Run *cmd* and return its stripped stdout."""
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=COMMAND_TIMEOUT)
    except (OSError, subprocess.TimeoutExpired) as e:
        raise FactError(f"failed to execute {cmd[0]}: {e}") from e
    if result.returncode != 0:
        raise FactError(f"{cmd[0]} exited with status {result.returncode}")
    return result.stdout.strip()


# ── System facts ──────────────────────────────────────────────────────


def get_os() -> str:
    return platform.system().lower()


def get_architecture() -> str:
    return platform.machine()


def get_hostname() -> str:
    try:
        return socket.gethostname()
    except OSError as e:
        raise FactError(f"hostname: failed to retrieve hostname: {e}") from e


def get_kernel_version() -> str:
    try:
        return "Linux " + _run(["uname", "-r"])
    except FactError as e:
        raise FactError(f"kernel: {e}") from e


def get_os_version(os_release_path: str = OS_RELEASE) -> str:
    """``PRETTY_NAME`` from os-release, unquoted."""
    try:
        content = Path(os_release_path).read_text()
    except OSError as e:
        raise FactError(f"os-release: failed to read file: {e}") from e
    for line in content.splitlines():
        if line.startswith("PRETTY_NAME="):
            return line[len("PRETTY_NAME="):].strip('"')
    raise FactError("os-release: PRETTY_NAME not found")


def get_cpu_count() -> int:
    return os.cpu_count() or 0


def humanize_size(kb: str) -> str:
    """
    Render a kilobyte count the way ``free -h`` would.

    ``>= 1 GiB`` and ``>= 1 MiB`` get one decimal; smaller values stay in
    whole KiB.  Non-numeric input is returned unchanged.
    """
    try:
        value = int(kb)
    except ValueError:
        return kb
    if value >= 1024 * 1024:
        return f"{value / (1024 * 1024):.1f} GiB"
    if value >= 1024:
        return f"{value / 1024:.1f} MiB"
    return f"{value} KiB"


def get_memory_stats(meminfo_path: str = PROC_MEMINFO) -> Dict[str, str]:
    try:
        content = Path(meminfo_path).read_text()
    except OSError as e:
        raise FactError(f"meminfo: failed to read file: {e}") from e

    stats: Dict[str, str] = {}
    for line in content.splitlines():
        fields = line.split()
        if len(fields) < 2:
            continue
        key = fields[0].rstrip(":")
        if key in MEMINFO_KEYS:
            stats[key] = humanize_size(fields[1])
    return stats


# ── Database facts ────────────────────────────────────────────────────


def _gphome_tool(gphome: Path, name: str) -> str:
    tool = gphome / "bin" / name
    if not tool.exists():
        raise FactError(f"{name}: executable not found at {tool}")
    return str(tool)


def get_pg_config_configure(gphome: Path) -> List[str]:
    """Build options reported by ``pg_config --configure``, quotes removed."""
    output = _run([_gphome_tool(gphome, "pg_config"), "--configure"])
    return output.replace("'", "").split()


def get_postgres_version(gphome: Path) -> str:
    return _run([_gphome_tool(gphome, "postgres"), "--version"])


def get_gp_version(gphome: Path) -> str:
    return _run([_gphome_tool(gphome, "postgres"), "--gp-version"])


# ── Fan-out ───────────────────────────────────────────────────────────


def gather_sysinfo(
    cfg: Config,
    *,
    meminfo_path: str = PROC_MEMINFO,
    os_release_path: str = OS_RELEASE,
) -> Tuple[SysInfo, List[str]]:
    """
    Collect every fact concurrently.

    Returns the populated ``SysInfo`` and the list of per-fact error
    messages (empty when everything was collected).
    """
    info = SysInfo()
    errors: List[str] = []
    lock = threading.Lock()

    tasks: Dict[str, Callable[[], object]] = {
        "os": get_os,
        "architecture": get_architecture,
        "hostname": get_hostname,
        "kernel": get_kernel_version,
        "os_version": lambda: get_os_version(os_release_path),
        "cpus": get_cpu_count,
        "memory_stats": lambda: get_memory_stats(meminfo_path),
    }

    gphome: Optional[Path] = cfg.gphome
    if gphome is not None:
        if not gphome.is_dir():
            errors.append(f"GPHOME: directory does not exist: {gphome}")
        else:
            info.gphome = str(gphome)
            tasks.update({
                "pg_config_configure": lambda: get_pg_config_configure(gphome),
                "postgres_version": lambda: get_postgres_version(gphome),
                "gp_version": lambda: get_gp_version(gphome),
            })

    def collect(name: str, fn: Callable[[], object]) -> None:
        try:
            value = fn()
        except FactError as e:
            with lock:
                errors.append(str(e))
            return
        setattr(info, name, value)
        debug_print("sysinfo", f"{name} = {value}", enabled=cfg.debug)

    with ThreadPoolExecutor(max_workers=len(tasks)) as executor:
        futures = [executor.submit(collect, name, fn) for name, fn in tasks.items()]
        for future in as_completed(futures):
            future.result()

    return info, errors

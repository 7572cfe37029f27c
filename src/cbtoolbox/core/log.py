"""
core.log — Operator-facing output for cbtoolbox.

Provides a ``console`` (rich.Console on stderr) and a ``debug_print``
helper shared across all modules.  Reports go to stdout / disk; everything
written through ``console`` is diagnostic.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

console = Console(stderr=True)


def debug_print(module: str, msg: str, *, enabled: bool = True) -> None:
    """Print a bracketed debug message to stderr."""
    if enabled:
        console.print(f"[dim]\\[DEBUG:{module}] {escape(msg)}[/]", highlight=False)

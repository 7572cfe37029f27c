"""
cli — Typer CLI entry-point for cbtoolbox.

Commands:
    coreinfo     Analyse core dumps and compare crash patterns
    sysinfo      Host and database environment facts
    gdb-script   Extract a built-in gdb command script
"""

from .app import app, main

__all__ = ["app", "main"]

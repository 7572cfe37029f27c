"""
cbtoolbox — Operator diagnostics for Apache Cloudberry installations.

Architecture:
    core/         Shared models, configuration, errors, report persistence
    coreinfo/     Core-dump classification, gdb driving, transcript parsing,
                  thread normalisation and cross-core comparison
    sysinfo/      Host / database environment fact gathering
    cli/          Typer CLI entry-points
"""

__version__ = "0.3.0"

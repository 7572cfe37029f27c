"""
sysinfo — Host and Cloudberry environment facts.
"""

from .collector import gather_sysinfo, humanize_size

__all__ = ["gather_sysinfo", "humanize_size"]

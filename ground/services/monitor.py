from __future__ import annotations

from functools import lru_cache

from ground.config import settings
from ground.errors import CommandFailed
from ground.services import execute


def uptime() -> str:
    try:
        result = execute.run("uptime", "--pretty", failure="Failed to run uptime.")
    except CommandFailed:
        return "?"
    return result.stdout.decode(errors="replace").strip()


@lru_cache(maxsize=1)
def _disk_size() -> str:
    result = execute.run("df", "--human-readable", "--portability", settings.home_root)
    lines = result.stdout.decode(errors="replace").splitlines()
    fields = lines[1].split() if len(lines) >= 2 else []
    return fields[1] if len(fields) >= 6 else "?"


def disk_size() -> str:
    """Size of the filesystem holding the home root, as reported by ``df``."""
    try:
        return _disk_size()
    except CommandFailed:
        return "?"


def directory_size(dir_path: str) -> str:
    try:
        result = execute.run("du", "--summarize", "--human-readable", dir_path)
    except CommandFailed:
        return "?"
    fields = result.stdout.decode(errors="replace").split()
    if len(fields) < 2:
        return "?"
    return fields[0]


def directory_disk_usage(dir_path: str) -> str:
    return f"{directory_size(dir_path)}/{disk_size()}"

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Iterable

from ground.errors import CommandFailed, InputInvalid

logger = logging.getLogger(__name__)

# Every program the server is allowed to start.
ALLOWED_PROGRAMS = frozenset(
    {
        "df",
        "du",
        "gpasswd",
        "groups",
        "passwd",
        "sed",
        "su",
        "systemctl",
        "uptime",
        "useradd",
        "userdel",
    }
)


def run(
    program: str,
    *args: str,
    stdin: bytes | None = None,
    failure: str | None = None,
) -> subprocess.CompletedProcess:
    """Runs an allow-listed host utility and returns the completed process.

    The child runs with the server's own privileges; user-scoped commands go
    through ``su``. Raises ``CommandFailed`` when the program cannot be started
    or exits non-zero; ``failure`` becomes the client-facing message.
    """
    if program not in ALLOWED_PROGRAMS:
        raise ValueError(f"Program '{program}' is not allowed")

    kwargs: dict = {"capture_output": True, "check": False}
    if stdin is None:
        kwargs["stdin"] = subprocess.DEVNULL
    else:
        kwargs["input"] = stdin

    try:
        result = subprocess.run([program, *args], **kwargs)
    except OSError as exc:
        logger.error("failed to start %s: %s", program, exc)
        raise CommandFailed(program, failure) from exc

    if result.returncode != 0:
        logger.warning(
            "%s exited with status %s: %s",
            program,
            result.returncode,
            result.stderr.decode(errors="replace").strip(),
        )
        raise CommandFailed(program, failure, returncode=result.returncode, stderr=result.stderr)
    return result


def run_shell_as(username: str, command: str, *, failure: str | None = None) -> subprocess.CompletedProcess:
    """Runs ``command`` through the user's login shell via ``su -c``."""
    return run("su", "-c", command, username, failure=failure)


def _reject_quotes(*paths: str) -> None:
    for path in paths:
        if "'" in path:
            raise InputInvalid("Path is not valid.")


def tar_compress(username: str, dir_path: str, file_path: str) -> None:
    # -h dereferences symlinks so the archive holds file contents, not links
    _reject_quotes(dir_path, file_path)
    run_shell_as(
        username,
        f"tar -zchf '{file_path}' --directory='{dir_path}' .",
        failure="Failed to compress directory.",
    )


def tar_extract(username: str, file_path: str, dir_path: str) -> None:
    _reject_quotes(file_path, dir_path)
    run_shell_as(
        username,
        f"tar -xzf '{file_path}' --directory='{dir_path}'",
        failure="Failed to extract file.",
    )


def missing_programs(programs: Iterable[str]) -> list[str]:
    return [program for program in programs if shutil.which(program) is None]

from __future__ import annotations

import logging
import os
import posixpath
import re

from ground.errors import InputInvalid
from ground.services import execute, filesystem, paths

logger = logging.getLogger(__name__)

_SSH_KEY_RE = re.compile(r"ssh-(rsa|ed25519) [A-Za-z0-9+/]+={0,3}( [^@]+@[^@]+)?")


def authorized_keys_path(username: str) -> str:
    return posixpath.join(paths.home_root(username), ".ssh", "authorized_keys")


def key_is_valid(key: str) -> bool:
    if "\n" in key or "\r" in key:
        return False
    return bool(_SSH_KEY_RE.fullmatch(key))


def list_keys(username: str) -> list[str]:
    keys_path = authorized_keys_path(username)
    if not os.path.lexists(keys_path):
        return []
    paths.require_real_within(keys_path, paths.home_root(username))
    return filesystem.read_lines(keys_path)


def add_key(username: str, uid: int, gid: int, key: str) -> None:
    key = (key or "").strip()
    if not key_is_valid(key):
        raise InputInvalid("SSH key is not valid.")

    home = paths.home_root(username)
    ssh_dir = filesystem.create_missing_directories(home, ".ssh", uid, gid)
    os.chmod(ssh_dir, 0o700)
    keys_path = authorized_keys_path(username)
    filesystem.create_missing_file(keys_path, uid, gid, mode=0o600)
    paths.require_real_within(keys_path, home)

    fd = os.open(keys_path, os.O_WRONLY | os.O_APPEND | os.O_NOFOLLOW)
    with os.fdopen(fd, "a", encoding="utf-8") as fh:
        fh.write(key + "\n")
    logger.info("Added SSH key for %s", username)


def delete_key(username: str, index: int) -> None:
    """Deletes line ``index`` (1-based) from the user's authorized_keys."""
    keys = list_keys(username)
    if index < 1 or index > len(keys):
        raise InputInvalid("SSH key index is not valid.")
    execute.run("sed", "-i", f"{index}d", authorized_keys_path(username), failure="Failed to delete SSH key.")
    logger.info("Deleted SSH key %s for %s", index, username)

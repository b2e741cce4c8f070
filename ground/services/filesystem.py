from __future__ import annotations

import logging
import os
import posixpath

from ground.config import settings
from ground.errors import InputInvalid
from ground.schemas.users import Requestor
from ground.services import paths

logger = logging.getLogger(__name__)


def create_missing_directories(root: str, rel_dir: str, uid: int, gid: int) -> str:
    """Creates every missing directory of ``rel_dir`` below ``root``.

    New directories are 0755 and owned by ``uid``/``gid``; existing ones are
    left alone. Returns the full path of the deepest directory.

    Raises PathOutsideHome as soon as an existing component resolves, through
    a symlink, to somewhere outside ``root``.
    """
    current = root
    for part in (rel_dir or "").split("/"):
        if part in {"", "."}:
            continue
        if part == "..":
            raise InputInvalid("Path is not valid.")
        current = posixpath.join(current, part)
        if not os.path.isdir(current):
            os.mkdir(current, 0o755)
            os.chown(current, uid, gid)
        paths.require_real_within(current, root)
    return current


def create_missing_file(file_path: str, uid: int, gid: int, mode: int = 0o644) -> None:
    if os.path.lexists(file_path):
        return
    fd = os.open(file_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY | os.O_NOFOLLOW, mode)
    try:
        os.fchown(fd, uid, gid)
    finally:
        os.close(fd)


def read_lines(file_path: str) -> list[str]:
    fd = os.open(file_path, os.O_RDONLY | os.O_NOFOLLOW)
    with os.fdopen(fd, encoding="utf-8", errors="replace") as fh:
        return fh.read().splitlines()


def ensure_required_files(requestor: Requestor) -> None:
    home = paths.home_root(requestor.username)
    create_missing_directories(home, settings.trash_home_path, requestor.uid, requestor.gid)


def _valid_dir_name(name: str) -> bool:
    return bool(name) and name not in {".", ".."} and "/" not in name and "\x00" not in name


def make_directory(requestor: Requestor, rel_home_path: str, dir_name: str) -> str:
    parent = paths.resolve(requestor.username, rel_home_path)
    if not parent.is_dir:
        raise InputInvalid("Path is not a directory.")
    if not _valid_dir_name(dir_name):
        raise InputInvalid("Directory name is not valid.")
    paths.require_real_within(parent.full_path, paths.home_root(requestor.username))

    target = posixpath.join(parent.full_path, dir_name)
    if os.path.lexists(target):
        raise InputInvalid("Directory already exists.")
    os.mkdir(target, 0o755)
    os.chown(target, requestor.uid, requestor.gid)
    return target


def move(requestor: Requestor, source_rel_path: str, destination_rel_path: str) -> str:
    """Moves an entry to a new parent directory, keeping its name."""
    home = paths.home_root(requestor.username)
    source = paths.resolve(requestor.username, source_rel_path)
    if source.full_path == home:
        raise InputInvalid("Cannot move home directory.")

    destination = paths.full_path(requestor.username, destination_rel_path)
    if os.path.lexists(destination):
        raise InputInvalid("Destination already exists.")

    source_parent, source_name = posixpath.split(source.full_path)
    destination_parent, destination_name = posixpath.split(destination)
    if source_name != destination_name:
        raise InputInvalid("Source and destination names do not match.")
    if source_parent == destination_parent:
        raise InputInvalid("Source and destination are the same.")
    if paths.is_within(destination, source.full_path):
        raise InputInvalid("Cannot move a directory into itself.")
    paths.require_real_within(source_parent, home)

    rel_parent = paths.relative_to(destination_parent, home)
    create_missing_directories(home, rel_parent, requestor.uid, requestor.gid)
    os.rename(source.full_path, destination)
    logger.info("Moved %s to %s", source.full_path, destination)
    return destination


def require_directory(username: str, rel_path: str, mode: str = paths.HOME) -> str:
    resolved = paths.resolve(username, rel_path, mode)
    if not resolved.is_dir:
        raise InputInvalid("Path is not a directory.")
    return paths.require_real_within(resolved.full_path, paths.home_root(username))

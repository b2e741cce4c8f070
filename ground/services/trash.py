from __future__ import annotations

import logging
import os
import posixpath
import re
import shutil
from datetime import datetime

from ground.config import settings
from ground.errors import InputInvalid, PathNotFound, PathOutsideHome
from ground.schemas.files import TrashEntry
from ground.schemas.users import Requestor
from ground.services import filesystem, listing, naming, paths

logger = logging.getLogger(__name__)

RESTORE_PATH_FILE_NAME = ".ground-trash-restore-path"
_BUCKET_RE = re.compile(r"[0-9]{14}\.[0-9]{3}")


def bucket_name(now: datetime | None = None) -> str:
    now = now or datetime.now()
    return f"{now:%Y%m%d%H%M%S}.{now.microsecond // 1000:03d}"


def is_bucket_name(name: str) -> bool:
    return bool(_BUCKET_RE.fullmatch(name or ""))


def bucket_time(name: str) -> datetime:
    stamp, _, millis = name.partition(".")
    return datetime.strptime(stamp, "%Y%m%d%H%M%S").replace(microsecond=int(millis) * 1000)


def trash(requestor: Requestor, rel_home_path: str, now: datetime | None = None) -> str:
    """Moves an entry of the requestor's home into a new trash bucket.

    Returns the bucket name.
    """
    home = paths.home_root(requestor.username)
    trash_root = paths.trash_root(requestor.username)
    source = paths.resolve(requestor.username, rel_home_path)

    if source.full_path == home:
        raise InputInvalid("Cannot trash home directory.")
    if paths.is_within(source.full_path, trash_root):
        raise InputInvalid("Path is already in trash.")
    if paths.is_within(trash_root, source.full_path):
        raise InputInvalid("Cannot trash a directory that holds the trash.")
    paths.require_real_within(posixpath.dirname(source.full_path), home)

    filesystem.create_missing_directories(home, settings.trash_home_path, requestor.uid, requestor.gid)
    bucket = bucket_name(now)
    bucket_path = posixpath.join(trash_root, bucket)
    os.mkdir(bucket_path, 0o755)
    os.chown(bucket_path, requestor.uid, requestor.gid)

    name = posixpath.basename(source.full_path)
    if name == RESTORE_PATH_FILE_NAME:
        name = name[1:]
    try:
        os.rename(source.full_path, posixpath.join(bucket_path, name))
    except OSError:
        os.rmdir(bucket_path)
        raise

    fd = os.open(
        posixpath.join(bucket_path, RESTORE_PATH_FILE_NAME),
        os.O_CREAT | os.O_EXCL | os.O_WRONLY | os.O_NOFOLLOW,
        0o644,
    )
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        os.fchown(fh.fileno(), requestor.uid, requestor.gid)
        fh.write(source.full_path)
    logger.info("Trashed %s into bucket %s", source.full_path, bucket)
    return bucket


def _restore_origin(requestor: Requestor, bucket_path: str) -> str:
    try:
        lines = filesystem.read_lines(posixpath.join(bucket_path, RESTORE_PATH_FILE_NAME))
    except OSError as exc:
        raise InputInvalid("Restore path not found.") from exc
    origin = posixpath.normpath(lines[0].strip()) if lines else ""

    home = paths.home_root(requestor.username)
    if (
        not origin.startswith("/")
        or origin == home
        or not paths.is_within(origin, home)
        or paths.is_within(origin, paths.trash_root(requestor.username))
    ):
        raise PathOutsideHome("Restore path is not valid.")
    return origin


def restore(requestor: Requestor, bucket: str) -> str:
    """Moves a bucket's payload back to where it was trashed from.

    An occupied origin gets the next copy-number name. Returns the restored path.
    """
    if not is_bucket_name(bucket):
        raise InputInvalid("Trash directory name is not valid.")
    home = paths.home_root(requestor.username)
    bucket_path = posixpath.join(paths.trash_root(requestor.username), bucket)
    if not os.path.isdir(bucket_path):
        raise PathNotFound("Trash directory not found.")
    paths.require_real_within(bucket_path, home)

    origin = _restore_origin(requestor, bucket_path)
    parent, name = posixpath.split(origin)
    filesystem.create_missing_directories(home, paths.relative_to(parent, home), requestor.uid, requestor.gid)

    payloads = [entry for entry in os.listdir(bucket_path) if entry != RESTORE_PATH_FILE_NAME]
    if not payloads:
        raise InputInvalid("Trash directory is empty.")

    restored = ""
    for payload in payloads:
        restored = naming.available_path(parent, name)
        os.rename(posixpath.join(bucket_path, payload), restored)

    os.remove(posixpath.join(bucket_path, RESTORE_PATH_FILE_NAME))
    os.rmdir(bucket_path)
    logger.info("Restored bucket %s to %s", bucket, restored)
    return restored


def empty(requestor: Requestor) -> int:
    """Removes every bucket from the requestor's trash. Returns how many were removed."""
    trash_root = paths.trash_root(requestor.username)
    if not os.path.isdir(trash_root):
        return 0
    paths.require_real_within(trash_root, paths.home_root(requestor.username))

    removed = 0
    for name in os.listdir(trash_root):
        entry_path = posixpath.join(trash_root, name)
        if os.path.isdir(entry_path) and not os.path.islink(entry_path):
            shutil.rmtree(entry_path)
        else:
            os.remove(entry_path)
        removed += 1
    return removed


def _bucket_entries(username: str, bucket: str, rel_trash_path: str) -> list[TrashEntry]:
    trash_root = paths.trash_root(username)
    bucket_path = posixpath.join(trash_root, bucket)
    trashed_at = bucket_time(bucket)
    try:
        lines = filesystem.read_lines(posixpath.join(bucket_path, RESTORE_PATH_FILE_NAME))
    except OSError:
        lines = []
    restore_path = lines[0].strip() if lines else ""

    root_dir = paths.full_path(username, rel_trash_path, paths.TRASH)
    paths.require_real_within(root_dir, paths.home_root(username))
    skip = frozenset({RESTORE_PATH_FILE_NAME}) if rel_trash_path.strip("/") == bucket else frozenset()
    entries = []
    for entry in listing.directory_entries(rel_trash_path, root_dir, skip=skip):
        data = entry.model_dump()
        data["path"] = posixpath.join("/", settings.trash_home_path, entry.path.lstrip("/"))
        if entry.is_dir:
            data["url_path"] = listing.url_path("/trash", entry.path)
        else:
            data["url_path"] = listing.url_path("/file", data["path"])
        entries.append(
            TrashEntry(
                **data,
                bucket=bucket,
                trashed_at=trashed_at,
                trashed_on=listing.format_timestamp(trashed_at),
                restore_path=restore_path,
            )
        )
    return entries


def trash_entries(username: str, rel_trash_path: str = "/", sort_by: str = "type", sort_order: str = "asc") -> list[TrashEntry]:
    """Lists the trash.

    At the trash root every bucket's payload is shown in one list, newest
    bucket first. Below a bucket it is a plain listing of that directory.
    """
    trash_root = paths.trash_root(username)
    rel_trash_path = paths.relative_to(paths.full_path(username, rel_trash_path, paths.TRASH), trash_root)

    if rel_trash_path == "/":
        if not os.path.isdir(trash_root):
            return []
        entries = []
        for name in os.listdir(trash_root):
            bucket_path = posixpath.join(trash_root, name)
            if is_bucket_name(name) and os.path.isdir(bucket_path) and not os.path.islink(bucket_path):
                entries.extend(_bucket_entries(username, name, "/" + name))
        entries = listing.sort_entries(entries, sort_by, sort_order)
        return sorted(entries, key=lambda entry: entry.bucket, reverse=True)

    bucket = rel_trash_path.strip("/").split("/", 1)[0]
    if not is_bucket_name(bucket):
        raise InputInvalid("Trash directory name is not valid.")
    return listing.sort_entries(_bucket_entries(username, bucket, rel_trash_path), sort_by, sort_order)

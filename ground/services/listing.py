from __future__ import annotations

import logging
import os
import posixpath
import stat
from datetime import datetime, timezone
from functools import cmp_to_key
from urllib.parse import quote

from ground.schemas.files import DirectoryEntry

logger = logging.getLogger(__name__)

SORT_KEYS = ("type", "name", "link", "size", "time")
SORT_ORDERS = ("asc", "desc")
_TIE_BREAK_CHAIN = ("type", "name", "time", "size", "link")

_DISPLAY_TIME_FORMAT = "%Y-%m-%d %I:%M:%S %p"

_ICONS_BY_EXTENSION = {
    "file-image": {".apng", ".avif", ".gif", ".jpeg", ".jpg", ".png", ".svg", ".webp"},
    "file-video": {".avi", ".mkv", ".mov", ".mp4", ".mpeg", ".webm", ".wmv"},
    "file-audio": {".flac", ".mp3", ".ogg", ".wav"},
    "file-text": {".txt", ".md", ".log"},
    "file-script": {".sh", ".bash", ".py", ".ps1", ".bat"},
    "file-html": {".html", ".htm"},
    "file-document": {".doc", ".docx", ".odt", ".pdf", ".rtf"},
    "file-spreadsheet": {".csv", ".ods", ".xlsx", ".xlsm", ".xlsb", ".xltx", ".xltm", ".xls", ".xlt"},
    "file-slide": {".odp", ".ppt", ".pptx", ".pptm"},
}
_FOLDER_ICONS = {
    "desktop": "folder-desktop",
    "documents": "folder-documents",
    "downloads": "folder-downloads",
    "music": "folder-music",
    "pictures": "folder-pictures",
    "videos": "folder-videos",
}


def human_size(is_dir: bool, size: int) -> str:
    if is_dir:
        return "-"
    if size >= 1000**3:
        return f"{size / 1000**3:.3f} GB"
    if size >= 1000**2:
        return f"{size / 1000**2:.3f} MB"
    if size >= 1000:
        return f"{size / 1000:.3f} KB"
    return f"{size} B"


def icon_name(is_dir: bool, name: str) -> str:
    if is_dir:
        return _FOLDER_ICONS.get(name.lower(), "folder")
    _, ext = posixpath.splitext(name)
    ext = ext.lower()
    for icon, extensions in _ICONS_BY_EXTENSION.items():
        if ext in extensions:
            return icon
    return "file"


def format_timestamp(moment: datetime) -> str:
    return moment.strftime(_DISPLAY_TIME_FORMAT)


def local_time(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).astimezone()


def url_path(prefix: str, rel_path: str) -> str:
    return prefix + quote(rel_path)


def _symlink_info(full_path: str, root_dir: str) -> tuple[str, bool]:
    try:
        target = os.readlink(full_path)
    except OSError:
        return "", False
    if not target.startswith("/"):
        target = posixpath.normpath(posixpath.join(root_dir, target))
    try:
        target_is_dir = stat.S_ISDIR(os.stat(target).st_mode)
    except OSError:
        return "", False
    if target.startswith(root_dir.rstrip("/") + "/"):
        target = target[len(root_dir.rstrip("/")):]
    return target, target_is_dir


def directory_entry(rel_dir: str, root_dir: str, name: str) -> DirectoryEntry:
    full_path = posixpath.join(root_dir, name)
    info = os.lstat(full_path)
    is_dir = stat.S_ISDIR(info.st_mode)
    symlink_path = ""
    if stat.S_ISLNK(info.st_mode):
        symlink_path, target_is_dir = _symlink_info(full_path, root_dir)
        is_dir = is_dir or target_is_dir

    rel_path = posixpath.join("/", rel_dir.strip("/"), name)
    mtime = local_time(info.st_mtime)
    return DirectoryEntry(
        is_dir=is_dir,
        is_compressed=name.endswith(".tar.gz"),
        icon_name=icon_name(is_dir, name),
        name=name,
        path=rel_path,
        size=info.st_size,
        human_size=human_size(is_dir, info.st_size),
        mtime=mtime,
        last_modified=format_timestamp(mtime),
        symlink_path=symlink_path,
        url_path=url_path("/files" if is_dir else "/file", rel_path),
    )


def directory_entries(rel_dir: str, root_dir: str, skip: frozenset[str] = frozenset()) -> list[DirectoryEntry]:
    entries = []
    for name in os.listdir(root_dir):
        if name in skip:
            continue
        try:
            entries.append(directory_entry(rel_dir, root_dir, name))
        except OSError:
            logger.debug("Skipping unreadable entry %s in %s", name, root_dir)
    return entries


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def _compare(key: str, a: DirectoryEntry, b: DirectoryEntry) -> int:
    if key == "type":
        return _cmp(not a.is_dir, not b.is_dir)
    if key == "name":
        return _cmp((a.name.startswith("."), a.name.lower()), (b.name.startswith("."), b.name.lower()))
    if key == "time":
        return _cmp(a.mtime, b.mtime)
    if key == "size":
        return _cmp(0 if a.is_dir else a.size, 0 if b.is_dir else b.size)
    if key == "link":
        return _cmp(a.symlink_path, b.symlink_path)
    raise ValueError(f"Unknown sort key '{key}'")


def normalize_sort(sort_by: str | None, sort_order: str | None) -> tuple[str, str]:
    sort_by = sort_by if sort_by in SORT_KEYS else "type"
    sort_order = sort_order if sort_order in SORT_ORDERS else "asc"
    return sort_by, sort_order


def sort_entries(entries: list, sort_by: str = "type", sort_order: str = "asc") -> list:
    """Stable sort on ``sort_by``, ties broken by type, name, time, size, link."""
    sort_by, sort_order = normalize_sort(sort_by, sort_order)
    direction = -1 if sort_order == "desc" else 1
    chain = [key for key in _TIE_BREAK_CHAIN if key != sort_by]

    def compare(a, b) -> int:
        result = _compare(sort_by, a, b) * direction
        for key in chain:
            if result:
                break
            result = _compare(key, a, b)
        return result

    return sorted(entries, key=cmp_to_key(compare))

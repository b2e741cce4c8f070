from __future__ import annotations

import os
import posixpath
from datetime import datetime, timezone

from ground.config import settings
from ground.errors import PathNotFound, PathOutsideHome
from ground.schemas.files import Breadcrumb, ResolvedPath

HOME = "home"
TRASH = "trash"


def home_root(username: str) -> str:
    return posixpath.join(settings.home_root, username)


def trash_root(username: str) -> str:
    return posixpath.join(home_root(username), settings.trash_home_path)


def base_path(username: str, mode: str = HOME) -> str:
    if mode == HOME:
        return home_root(username)
    if mode == TRASH:
        return trash_root(username)
    raise ValueError(f"Unknown path mode '{mode}'")


def is_within(path: str, base: str) -> bool:
    return path == base or path.startswith(base.rstrip("/") + "/")


def clean_join(base: str, rel_path: str) -> str:
    """Joins ``rel_path`` under ``base`` and normalizes the result.

    ``..`` components are applied as given, so the result may leave ``base``.
    """
    return posixpath.normpath(base + "/" + (rel_path or ""))


def relative_to(full_path: str, base: str) -> str:
    if full_path == base:
        return "/"
    return "/" + full_path[len(base.rstrip("/")) + 1:]


def full_path(username: str, rel_path: str, mode: str = HOME) -> str:
    base = base_path(username, mode)
    full = clean_join(base, rel_path)
    if not is_within(full, base):
        raise PathOutsideHome()
    return full


def resolve(username: str, rel_path: str, mode: str = HOME) -> ResolvedPath:
    base = base_path(username, mode)
    full = full_path(username, rel_path, mode)
    try:
        info = os.stat(full)
    except OSError as exc:
        raise PathNotFound() from exc

    return ResolvedPath(
        full_path=full,
        rel_path=relative_to(full, base),
        is_dir=os.path.isdir(full),
        size=info.st_size,
        mtime=datetime.fromtimestamp(info.st_mtime, tz=timezone.utc),
    )


def require_real_within(path: str, base: str) -> str:
    """Raises PathOutsideHome unless ``path`` with symlinks resolved stays under ``base``."""
    if not is_within(os.path.realpath(path), os.path.realpath(base)):
        raise PathOutsideHome()
    return path


def resolve_real(username: str, rel_path: str) -> ResolvedPath:
    """Like ``resolve`` but also requires the symlink-free path to stay in the home."""
    resolved = resolve(username, rel_path)
    require_real_within(resolved.full_path, home_root(username))
    return resolved


def breadcrumbs(root_label: str, rel_path: str) -> list[Breadcrumb]:
    crumbs = [Breadcrumb(name=root_label, path="/", is_root=True)]
    current = ""
    for part in (rel_path or "").split("/"):
        if not part:
            continue
        current = f"{current}/{part}"
        crumbs.append(Breadcrumb(name=part, path=current, is_root=False))
    return crumbs

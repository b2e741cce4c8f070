from __future__ import annotations

import logging
import os
import posixpath

from ground.errors import InputInvalid
from ground.schemas.users import Requestor
from ground.services import execute, naming, paths

logger = logging.getLogger(__name__)

COMPRESSED_EXTENSION = ".tar.gz"


def _reject_quotes(full_path: str) -> None:
    if "'" in full_path:
        raise InputInvalid("Path is not valid.")


def compress_target(dir_path: str) -> str:
    """Free ``<name>.tar.gz`` path next to ``dir_path``."""
    parent, name = posixpath.split(dir_path)
    return naming.available_path(parent, name + COMPRESSED_EXTENSION)


def extract_target(file_path: str) -> str:
    """Free directory path next to ``file_path`` named after its stem."""
    parent, name = posixpath.split(file_path)
    if not name.endswith(COMPRESSED_EXTENSION) or name == COMPRESSED_EXTENSION:
        raise InputInvalid("File is not compressed.")
    return naming.available_path(parent, name[: -len(COMPRESSED_EXTENSION)])


def compress(requestor: Requestor, rel_home_path: str) -> str:
    source = paths.resolve(requestor.username, rel_home_path)
    _reject_quotes(source.full_path)
    if not source.is_dir:
        raise InputInvalid("Path is not a directory.")
    if source.full_path == paths.home_root(requestor.username):
        raise InputInvalid("Cannot compress home directory.")

    target = compress_target(source.full_path)
    _reject_quotes(target)
    execute.tar_compress(requestor.username, source.full_path, target)
    logger.info("Compressed %s into %s", source.full_path, target)
    return target


def extract(requestor: Requestor, rel_home_path: str) -> str:
    source = paths.resolve(requestor.username, rel_home_path)
    _reject_quotes(source.full_path)
    if source.is_dir:
        raise InputInvalid("Path is a directory.")

    target = extract_target(source.full_path)
    _reject_quotes(target)
    paths.require_real_within(posixpath.dirname(target), paths.home_root(requestor.username))
    os.mkdir(target, 0o755)
    os.chown(target, requestor.uid, requestor.gid)
    execute.tar_extract(requestor.username, source.full_path, target)
    logger.info("Extracted %s into %s", source.full_path, target)
    return target

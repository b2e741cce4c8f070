from __future__ import annotations

import logging
import os
import posixpath
import shutil
from typing import BinaryIO

from ground.errors import InputInvalid
from ground.schemas.users import Requestor
from ground.services import filesystem, naming

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


def split_upload_name(filename: str) -> tuple[str, str]:
    """Splits a client file name like ``docs/2024/report.pdf`` into (dir, name)."""
    rel_dir, name = posixpath.split((filename or "").replace("\\", "/"))
    if not name or name in {".", ".."}:
        raise InputInvalid("File name is not valid.")
    if ".." in rel_dir.split("/"):
        raise InputInvalid("File name is not valid.")
    return rel_dir, name


def save_upload(requestor: Requestor, root_dir: str, filename: str, fileobj: BinaryIO) -> str:
    """Writes one uploaded file below ``root_dir`` and returns its path.

    Missing directories from the client-supplied name are created, and an
    occupied name gets the next copy number. Everything created belongs to
    the requestor.
    """
    rel_dir, name = split_upload_name(filename)
    target_dir = filesystem.create_missing_directories(root_dir, rel_dir, requestor.uid, requestor.gid)
    target = naming.available_path(target_dir, name)

    fd = os.open(target, os.O_CREAT | os.O_EXCL | os.O_WRONLY | os.O_NOFOLLOW, 0o644)
    with os.fdopen(fd, "wb") as out:
        os.fchown(out.fileno(), requestor.uid, requestor.gid)
        shutil.copyfileobj(fileobj, out, _CHUNK_SIZE)

    logger.info("Uploaded %s", target)
    return target

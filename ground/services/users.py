from __future__ import annotations

import logging
import os
import pwd
import re

from ground.config import settings
from ground.errors import CommandFailed, InputInvalid
from ground.schemas.users import Requestor, UserListItem
from ground.services import execute, monitor, paths

logger = logging.getLogger(__name__)

# Letters, digits and ._- only; no leading '-'; not only digits; optional trailing '$'.
_USERNAME_RE = re.compile(r"(?![0-9]+\$?$)(?!-)[a-zA-Z0-9._-]{1,256}\$?")

_admin_group: str | None = None


def username_is_valid(username: str) -> bool:
    if username in {".", ".."}:
        return False
    return bool(_USERNAME_RE.fullmatch(username or ""))


def _user_ids(username: str) -> tuple[int, int]:
    entry = pwd.getpwnam(username)
    return entry.pw_uid, entry.pw_gid


def user_exists(username: str) -> bool:
    try:
        _user_ids(username)
    except KeyError:
        return False
    return True


def home_path(username: str) -> str:
    return paths.home_root(username)


def validate(username: str) -> tuple[int, int]:
    """Checks that ``username`` names an existing account with a home directory.

    Returns the account's (uid, gid); raises ``InputInvalid`` otherwise.
    """
    if not username_is_valid(username):
        raise InputInvalid("Username is not valid.")
    try:
        ids = _user_ids(username)
    except KeyError as exc:
        raise InputInvalid("User does not exist.") from exc
    if not os.path.isdir(home_path(username)):
        raise InputInvalid("User has no home.")
    return ids


def get_requestor(username: str) -> Requestor:
    uid, gid = validate(username)
    return Requestor(username=username, uid=uid, gid=gid, is_admin=is_admin(username))


def setup_admin_group(sudoers_path: str | None = None) -> str:
    """Picks the first candidate group granted ``ALL`` in the sudoers file."""
    global _admin_group

    sudoers_path = sudoers_path or settings.sudoers_path
    with open(sudoers_path, encoding="utf-8", errors="replace") as fh:
        lines = fh.read().splitlines()

    candidates = [group.strip() for group in settings.admin_group_candidates.split(",") if group.strip()]
    for group in candidates:
        pattern = re.compile(rf"^%{re.escape(group)}.*ALL")
        if any(pattern.search(line) for line in lines):
            _admin_group = group
            logger.info("Using '%s' as the admin group", group)
            return group
    raise RuntimeError("no admin group found")


def admin_group() -> str:
    if _admin_group is None:
        raise RuntimeError("admin group has not been set up")
    return _admin_group


def user_groups(username: str) -> list[str]:
    result = execute.run("groups", username, failure="Failed to read user groups.")
    # "alice : alice sudo" on most distributions, "alice sudo" on others
    output = result.stdout.decode(errors="replace")
    _, sep, names = output.partition(":")
    return (names if sep else output).split()


def is_admin(username: str) -> bool:
    try:
        return admin_group() in user_groups(username)
    except (CommandFailed, RuntimeError):
        return False


def list_usernames() -> list[str]:
    try:
        names = sorted(os.listdir(settings.home_root))
    except OSError:
        logger.exception("Failed to list %s", settings.home_root)
        return []
    return [
        name
        for name in names
        if username_is_valid(name) and os.path.isdir(os.path.join(settings.home_root, name))
    ]


def user_list_items() -> list[UserListItem]:
    return [
        UserListItem(
            username=name,
            disk_usage=monitor.directory_disk_usage(home_path(name)),
            is_admin=is_admin(name),
        )
        for name in list_usernames()
    ]

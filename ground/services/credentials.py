from __future__ import annotations

import logging

from ground.errors import CommandFailed
from ground.services import execute, users

logger = logging.getLogger(__name__)


def password_is_acceptable(password: str) -> bool:
    return bool(password) and "\n" not in password and "\r" not in password


def credentials_are_valid(username: str, password: str) -> bool:
    if not users.username_is_valid(username) or not password_is_acceptable(password):
        return False
    # root is never prompted by su, so su to the user and have them su to themselves
    try:
        execute.run(
            "su",
            "-c",
            f"su -c exit {username}",
            username,
            stdin=(password + "\n").encode(),
        )
    except CommandFailed:
        logger.info("Password check failed for %s", username)
        return False
    return True

from __future__ import annotations

import logging
import os

from ground.config import settings
from ground.errors import InputInvalid, NotAuthorized
from ground.services import credentials, execute, users

logger = logging.getLogger(__name__)


def set_password(username: str, password: str) -> None:
    execute.run(
        "passwd",
        "--stdin",
        username,
        stdin=(password + "\n").encode(),
        failure="Failed to set user password.",
    )


def create_user(username: str) -> None:
    """Creates an OS account with a home directory and the default password."""
    if not users.username_is_valid(username):
        raise InputInvalid("Username is not valid.")
    if os.path.lexists(users.home_path(username)):
        raise InputInvalid("User already exists.")
    if users.user_exists(username):
        raise InputInvalid("User already exists.")

    execute.run("useradd", "--create-home", username, failure="Failed to create user.")
    set_password(username, settings.default_password)
    logger.info("Created user %s", username)


def delete_user(username: str) -> None:
    users.validate(username)
    execute.run("userdel", "--remove", username, failure="Failed to delete user.")
    logger.info("Deleted user %s", username)


def reset_password(username: str) -> None:
    users.validate(username)
    set_password(username, settings.default_password)


def change_password(username: str, current_password: str, new_password: str, confirm_password: str) -> None:
    users.validate(username)
    if not current_password:
        raise InputInvalid("No current password provided.")
    if not credentials.password_is_acceptable(new_password):
        raise InputInvalid("New password is not valid.")
    if new_password != confirm_password:
        raise InputInvalid("Passwords do not match.")
    if not credentials.credentials_are_valid(username, current_password):
        raise NotAuthorized("Current password is not correct.")
    set_password(username, new_password)


def toggle_admin(username: str) -> bool:
    """Adds or removes ``username`` from the admin group; returns the new state."""
    users.validate(username)
    group = users.admin_group()
    if users.is_admin(username):
        execute.run("gpasswd", "-d", username, group, failure="Failed to remove admin.")
        return False
    execute.run("gpasswd", "-a", username, group, failure="Failed to add admin.")
    return True

from __future__ import annotations

import logging

from ground.errors import CommandFailed
from ground.services import execute

logger = logging.getLogger(__name__)

ACTIONS = ("reboot", "poweroff")


def run_action(action: str) -> None:
    """Asks the service manager to reboot or power off the host.

    Runs after the response is sent; the server usually dies with the host,
    so a failure can only be logged.
    """
    if action not in ACTIONS:
        raise ValueError(f"Unknown power action '{action}'")
    try:
        execute.run("systemctl", action, failure=f"Failed to call {action}.")
    except CommandFailed:
        logger.exception("systemctl %s failed", action)

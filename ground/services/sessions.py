from __future__ import annotations

from ground.schemas.users import Requestor
from ground.services import filesystem, security


def start_session(response, requestor: Requestor) -> None:
    """Replaces whatever session the browser holds with one for ``requestor``."""
    filesystem.ensure_required_files(requestor)
    security.remove_user_token(response)
    security.set_user_token(response, requestor.username)


def end_session(response) -> None:
    security.remove_user_token(response)

from __future__ import annotations

from fastapi import Request

from ground.errors import InputInvalid, NotAuthenticated, NotAuthorized
from ground.schemas.users import Requestor
from ground.services import security, users


def _requestor_from_cookie(request: Request) -> Requestor:
    username = security.get_username(request)
    try:
        requestor = users.get_requestor(username)
    except InputInvalid as exc:
        raise NotAuthenticated(exc.detail) from exc
    request.state.requestor = requestor
    return requestor


def get_requestor(request: Request) -> Requestor:
    """Dependency for API routes: the verified requestor, or 401."""
    return _requestor_from_cookie(request)


def page_requestor(request: Request) -> Requestor | None:
    """Dependency for page routes: the verified requestor, or None."""
    try:
        return _requestor_from_cookie(request)
    except NotAuthenticated:
        return None


def ensure_admin(requestor: Requestor, message: str) -> None:
    if not requestor.is_admin:
        raise NotAuthorized(message)


def is_authorized_for(requestor: Requestor, username: str) -> bool:
    return requestor.username == username or requestor.is_admin


def ensure_same_user_or_admin(requestor: Requestor, username: str, message: str) -> None:
    if not is_authorized_for(requestor, username):
        raise NotAuthorized(message)

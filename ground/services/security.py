from __future__ import annotations

import base64
import binascii
import os
from datetime import datetime, timedelta, timezone

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac
from fastapi import Request

from ground.config import settings
from ground.errors import NotAuthenticated, TokenExpired, TokenInvalid

USER_TOKEN_COOKIE = "GROUND-USER-TOKEN"
REDIRECT_URL_COOKIE = "GROUND-REDIRECT-URL"

# Regenerated on every start; restarting the server signs everybody out.
_HASH_SECRET = os.urandom(32)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def b64e(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode()


def b64d(data: str) -> bytes:
    try:
        decoded = base64.urlsafe_b64decode(data.encode())
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise TokenInvalid() from exc
    # urlsafe_b64decode ignores stray characters and unused bits
    if b64e(decoded) != data:
        raise TokenInvalid()
    return decoded


def _mac(value: bytes) -> hmac.HMAC:
    mac = hmac.HMAC(_HASH_SECRET, hashes.SHA256())
    mac.update(value)
    return mac


def session_expiry(now: datetime | None = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now + timedelta(hours=settings.session_ttl_hours)


def issue_token(username: str, now: datetime | None = None) -> tuple[str, datetime]:
    expiry = session_expiry(now)
    value = f"{username} {int(expiry.timestamp())}".encode()
    signature = _mac(value).finalize()
    return f"{b64e(value)}|{b64e(signature)}", expiry


def verify_token(token: str, now: datetime | None = None) -> str:
    """Returns the username carried by ``token``.

    Raises ``TokenInvalid`` for anything malformed or forged and
    ``TokenExpired`` once the embedded expiry has passed.
    """
    parts = (token or "").split("|")
    if len(parts) != 2:
        raise TokenInvalid()
    value = b64d(parts[0])
    signature = b64d(parts[1])

    try:
        _mac(value).verify(signature)
    except InvalidSignature as exc:
        raise TokenInvalid() from exc

    fields = value.decode(errors="replace").split(" ")
    if len(fields) != 2 or not fields[0]:
        raise TokenInvalid()
    username, raw_expiry = fields
    try:
        expiry = int(raw_expiry)
    except ValueError as exc:
        raise TokenInvalid() from exc

    now = now or datetime.now(timezone.utc)
    if now.timestamp() > expiry:
        raise TokenExpired()
    return username


def _cookie_value(request: Request, name: str) -> str:
    return (request.cookies.get(name) or "").strip().strip('"')


def set_user_token(response, username: str) -> None:
    token, expiry = issue_token(username)
    response.set_cookie(
        USER_TOKEN_COOKIE,
        token,
        path="/",
        expires=expiry,
        httponly=True,
        samesite="lax",
    )


def remove_user_token(response) -> None:
    response.set_cookie(USER_TOKEN_COOKIE, "", path="/", expires=_EPOCH, httponly=True, samesite="lax")


def get_username(request: Request) -> str:
    token = _cookie_value(request, USER_TOKEN_COOKIE)
    if not token:
        raise NotAuthenticated()
    return verify_token(token)


def _is_local_path(url: str) -> bool:
    return url.startswith("/") and not url.startswith("//") and "\\" not in url


def set_redirect_url(response, url: str) -> None:
    if not _is_local_path(url):
        url = "/"
    response.set_cookie(
        REDIRECT_URL_COOKIE,
        url,
        path="/",
        expires=session_expiry(),
        httponly=True,
        samesite="lax",
    )


def get_redirect_url(request: Request) -> str:
    url = _cookie_value(request, REDIRECT_URL_COOKIE)
    return url if _is_local_path(url) else "/"

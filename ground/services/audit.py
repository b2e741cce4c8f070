from __future__ import annotations

import logging

from fastapi import Request

from ground.schemas.users import Requestor

audit_logger = logging.getLogger("ground.audit")


def request_ip(request: Request | None) -> str | None:
    """Best-effort client address; proxy headers win over the socket peer."""
    if request is None:
        return None
    for header in ("x-forwarded-for", "x-real-ip"):
        value = (request.headers.get(header) or "").split(",", 1)[0].strip()
        if value:
            return value[:64]
    return request.client.host[:64] if request.client else None


def add_audit_log(
    *,
    requestor: Requestor | str | None,
    event_type: str,
    details: str | None = None,
    request: Request | None = None,
    level: int = logging.INFO,
) -> None:
    username = requestor.username if isinstance(requestor, Requestor) else requestor
    audit_logger.log(
        level,
        "event=%s requestor=%s ip=%s details=%s",
        event_type,
        username or "-",
        request_ip(request) or "-",
        details or "",
    )

import logging

from fastapi import APIRouter, Form, Request
from fastapi.responses import JSONResponse

from ground.errors import InputInvalid, NotAuthenticated
from ground.services import credentials, security, users
from ground.services.audit import add_audit_log
from ground.services.sessions import end_session, start_session

router = APIRouter(prefix="/api", tags=["auth"])


@router.post("/login")
def login(request: Request, username: str = Form(""), password: str = Form("")):
    username = username.strip()
    if not username:
        raise InputInvalid("No username provided.")
    if not password:
        raise InputInvalid("No password provided.")

    requestor = users.get_requestor(username)
    if not credentials.credentials_are_valid(username, password):
        add_audit_log(requestor=username, event_type="auth.login_failed", request=request, level=logging.WARNING)
        raise InputInvalid("Invalid credentials provided.")

    response = JSONResponse({"username": requestor.username, "redirect": security.get_redirect_url(request)})
    start_session(response, requestor)
    add_audit_log(requestor=requestor, event_type="auth.login_success", request=request)
    return response


@router.post("/logout")
def logout(request: Request):
    try:
        username = security.get_username(request)
    except NotAuthenticated:
        username = None

    response = JSONResponse({"status": "ok"})
    end_session(response)
    add_audit_log(requestor=username, event_type="auth.logout", request=request)
    return response

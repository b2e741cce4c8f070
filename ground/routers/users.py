from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse

from ground.errors import InputInvalid
from ground.schemas.users import Requestor
from ground.services import accounts, sshkeys, users
from ground.services.audit import add_audit_log
from ground.services.authn import ensure_admin, ensure_same_user_or_admin, get_requestor
from ground.services.sessions import end_session, start_session

router = APIRouter(prefix="/api/user", tags=["users"])


def _username(username: str) -> str:
    username = (username or "").strip()
    if not username:
        raise InputInvalid("No username provided.")
    return username


@router.post("/create")
def create_user(request: Request, username: str = Form(""), requestor: Requestor = Depends(get_requestor)):
    ensure_admin(requestor, "Must be admin to create user.")
    username = _username(username)
    accounts.create_user(username)
    add_audit_log(requestor=requestor, event_type="user.created", details=username, request=request)
    return {"username": username}


@router.post("/delete")
def delete_user(request: Request, username: str = Form(""), requestor: Requestor = Depends(get_requestor)):
    username = _username(username)
    ensure_same_user_or_admin(requestor, username, "Must be admin to delete other users.")
    accounts.delete_user(username)
    add_audit_log(requestor=requestor, event_type="user.deleted", details=username, request=request)

    response = JSONResponse({"username": username})
    if username == requestor.username:
        end_session(response)
    return response


@router.post("/reset-password")
def reset_password(request: Request, username: str = Form(""), requestor: Requestor = Depends(get_requestor)):
    username = _username(username)
    ensure_same_user_or_admin(requestor, username, "Must be admin to reset other passwords.")
    accounts.reset_password(username)
    add_audit_log(requestor=requestor, event_type="user.password_reset", details=username, request=request)
    return {"username": username}


@router.post("/change-password")
def change_password(
    request: Request,
    username: str = Form(""),
    current_password: str = Form("", alias="currentPassword"),
    new_password: str = Form("", alias="newPassword"),
    confirm_password: str = Form("", alias="confirmPassword"),
    requestor: Requestor = Depends(get_requestor),
):
    username = _username(username)
    ensure_same_user_or_admin(requestor, username, "Must be admin to change other passwords.")
    accounts.change_password(username, current_password, new_password, confirm_password)
    add_audit_log(requestor=requestor, event_type="user.password_changed", details=username, request=request)
    return {"username": username}


@router.post("/toggle-admin")
def toggle_admin(request: Request, username: str = Form(""), requestor: Requestor = Depends(get_requestor)):
    ensure_admin(requestor, "Must be admin to toggle admin.")
    username = _username(username)
    is_admin = accounts.toggle_admin(username)
    add_audit_log(
        requestor=requestor,
        event_type="user.admin_granted" if is_admin else "user.admin_revoked",
        details=username,
        request=request,
    )
    return {"username": username, "isAdmin": is_admin}


@router.post("/impersonate")
def impersonate(request: Request, username: str = Form(""), requestor: Requestor = Depends(get_requestor)):
    ensure_admin(requestor, "Must be admin to impersonate.")
    username = _username(username)
    if username == requestor.username:
        raise InputInvalid("Cannot impersonate yourself.")

    target = users.get_requestor(username)
    response = JSONResponse({"username": target.username})
    start_session(response, target)
    add_audit_log(requestor=requestor, event_type="user.impersonated", details=username, request=request)
    return response


@router.post("/ssh-key/add")
def add_ssh_key(
    request: Request,
    username: str = Form(""),
    ssh_key: str = Form("", alias="sshKey"),
    requestor: Requestor = Depends(get_requestor),
):
    username = _username(username)
    ensure_same_user_or_admin(requestor, username, "Must be admin to add other users' SSH keys.")
    uid, gid = users.validate(username)
    if not ssh_key:
        raise InputInvalid("No SSH key provided.")
    sshkeys.add_key(username, uid, gid, ssh_key)
    add_audit_log(requestor=requestor, event_type="user.ssh_key_added", details=username, request=request)
    return {"username": username}


@router.post("/ssh-key/delete")
def delete_ssh_key(
    request: Request,
    username: str = Form(""),
    index: int = Form(0),
    requestor: Requestor = Depends(get_requestor),
):
    username = _username(username)
    ensure_same_user_or_admin(requestor, username, "Must be admin to delete other users' SSH keys.")
    users.validate(username)
    sshkeys.delete_key(username, index)
    add_audit_log(requestor=requestor, event_type="user.ssh_key_deleted", details=f"{username} #{index}", request=request)
    return {"username": username}

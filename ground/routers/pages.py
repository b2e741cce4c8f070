import logging
import os
import posixpath
from pathlib import Path
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from ground.config import settings
from ground.errors import InputInvalid
from ground.schemas.users import Requestor
from ground.services import listing, monitor, paths, security, sshkeys, trash, users
from ground.services.authn import is_authorized_for, page_requestor
from ground.services.sessions import end_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pages"])

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))


def _render(request: Request, name: str, requestor: Requestor | None, status_code: int = 200, **context):
    context.update(
        app_name=settings.app_name,
        requestor=requestor,
        username=requestor.username if requestor else "",
        is_admin=bool(requestor and requestor.is_admin),
    )
    return templates.TemplateResponse(request, name, context, status_code=status_code)


def _problem(request: Request, requestor: Requestor | None, message: str, status_code: int = 400):
    logger.warning("%s %s for %s: %s", request.method, request.url.path, requestor.username if requestor else "-", message)
    return _render(request, "problem.html", requestor, status_code=status_code, page_title="Error", problem_message=message)


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=quote(url), status_code=303)


def _login_redirect(request: Request) -> RedirectResponse:
    response = RedirectResponse(url="/login", status_code=303)
    end_session(response)
    target = request.url.path
    if request.url.query:
        target = f"{target}?{request.url.query}"
    security.set_redirect_url(response, target)
    return response


def _sort_params(request: Request) -> tuple[str, str]:
    return listing.normalize_sort(request.query_params.get("sortBy"), request.query_params.get("sortOrder"))


@router.get("/login")
def login_page(request: Request, requestor: Requestor | None = Depends(page_requestor)):
    if requestor:
        return RedirectResponse(url=security.get_redirect_url(request), status_code=303)
    response = _render(request, "login.html", None, page_title="Login")
    end_session(response)
    return response


@router.get("/")
def home_page(request: Request, requestor: Requestor | None = Depends(page_requestor)):
    if not requestor:
        return _login_redirect(request)
    return _render(
        request,
        "home.html",
        requestor,
        page_title="Home",
        disk_usage=monitor.directory_disk_usage(paths.home_root(requestor.username)),
    )


@router.get("/files")
@router.get("/files/{rel_path:path}")
def files_page(request: Request, rel_path: str = "", requestor: Requestor | None = Depends(page_requestor)):
    if not requestor:
        return _login_redirect(request)
    try:
        resolved = paths.resolve(requestor.username, rel_path)
    except InputInvalid as exc:
        return _problem(request, requestor, f"The requested file path could not be found in your home directory. {exc.detail}")

    trash_root = paths.trash_root(requestor.username)
    if paths.is_within(resolved.full_path, trash_root):
        return _redirect("/trash" + paths.relative_to(resolved.full_path, trash_root))
    if not resolved.is_dir:
        return _redirect("/file" + resolved.rel_path)

    sort_by, sort_order = _sort_params(request)
    entries = listing.sort_entries(listing.directory_entries(resolved.rel_path, resolved.full_path), sort_by, sort_order)
    return _render(
        request,
        "files.html",
        requestor,
        page_title="Files",
        path=resolved.rel_path,
        breadcrumbs=paths.breadcrumbs("home", resolved.rel_path),
        breadcrumb_prefix="/files",
        disk_usage=monitor.directory_disk_usage(resolved.full_path),
        entries=entries,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/file/{rel_path:path}")
def file_page(request: Request, rel_path: str, requestor: Requestor | None = Depends(page_requestor)):
    if not requestor:
        return _login_redirect(request)
    try:
        resolved = paths.resolve_real(requestor.username, rel_path)
    except InputInvalid as exc:
        return _problem(request, requestor, f"The requested file path could not be found in your home directory. {exc.detail}")

    if resolved.is_dir:
        return _redirect("/files" + resolved.rel_path)
    return FileResponse(
        resolved.full_path,
        filename=posixpath.basename(resolved.full_path),
        content_disposition_type="inline",
    )


@router.get("/trash")
@router.get("/trash/{rel_path:path}")
def trash_page(request: Request, rel_path: str = "", requestor: Requestor | None = Depends(page_requestor)):
    if not requestor:
        return _login_redirect(request)
    try:
        full_path = paths.full_path(requestor.username, rel_path, paths.TRASH)
    except InputInvalid as exc:
        return _problem(request, requestor, exc.detail)

    trash_root = paths.trash_root(requestor.username)
    rel_trash_path = paths.relative_to(full_path, trash_root)
    if rel_trash_path != "/" and not os.path.isdir(full_path):
        return _redirect("/trash" + posixpath.dirname(rel_trash_path))

    sort_by, sort_order = _sort_params(request)
    try:
        entries = trash.trash_entries(requestor.username, rel_trash_path, sort_by, sort_order)
    except InputInvalid as exc:
        return _problem(request, requestor, exc.detail)
    return _render(
        request,
        "trash.html",
        requestor,
        page_title="Trash",
        path=rel_trash_path,
        breadcrumbs=paths.breadcrumbs("trash", rel_trash_path),
        breadcrumb_prefix="/trash",
        disk_usage=monitor.directory_disk_usage(full_path),
        entries=entries,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/admin")
def admin_page(request: Request, requestor: Requestor | None = Depends(page_requestor)):
    if not requestor:
        return _login_redirect(request)
    if not requestor.is_admin:
        return RedirectResponse(url="/", status_code=303)
    return _render(
        request,
        "admin.html",
        requestor,
        page_title="Admin",
        disk_usage=monitor.directory_disk_usage(settings.home_root),
        uptime=monitor.uptime(),
        user_list_items=users.user_list_items(),
    )


@router.get("/user/{target_username}")
def user_page(request: Request, target_username: str, requestor: Requestor | None = Depends(page_requestor)):
    if not requestor:
        return _login_redirect(request)
    try:
        users.validate(target_username)
    except InputInvalid as exc:
        return _problem(request, requestor, f"The requested user is not valid. {exc.detail}")
    if not is_authorized_for(requestor, target_username):
        return RedirectResponse(url="/", status_code=303)

    return _render(
        request,
        "user.html",
        requestor,
        page_title="User Manage",
        target_username=target_username,
        target_is_admin=users.is_admin(target_username),
        ssh_keys=sshkeys.list_keys(target_username),
    )


@router.get("/{rest:path}", include_in_schema=False)
def not_found_page(request: Request, rest: str, requestor: Requestor | None = Depends(page_requestor)):
    if not requestor:
        return _login_redirect(request)
    return _problem(request, requestor, "The requested URL path is not valid.", status_code=404)

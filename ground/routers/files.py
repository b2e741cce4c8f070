import logging
import posixpath

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import FileResponse
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from ground.errors import GroundError, InputInvalid, UploadFailed
from ground.schemas.users import Requestor
from ground.services import archive, filesystem, monitor, paths, trash, uploads
from ground.services.audit import add_audit_log
from ground.services.authn import get_requestor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["files"])


@router.post("/upload")
@router.post("/upload/{rel_path:path}")
async def upload(request: Request, rel_path: str = "", requestor: Requestor = Depends(get_requestor)):
    content_type = request.headers.get("content-type", "")
    if not content_type.lower().startswith("multipart/"):
        raise InputInvalid("Request is not multipart.")

    root_dir = await run_in_threadpool(filesystem.require_directory, requestor.username, rel_path)
    home = paths.home_root(requestor.username)
    saved: list[str] = []
    async with request.form() as form:
        for field, value in form.multi_items():
            if not isinstance(value, UploadFile) or not value.filename:
                logger.warning("Upload part '%s' from %s has no file name", field, requestor.username)
                raise UploadFailed()
            try:
                target = await run_in_threadpool(uploads.save_upload, requestor, root_dir, value.filename, value.file)
            except (GroundError, OSError) as exc:
                logger.error("Upload of '%s' for %s failed: %s", value.filename, requestor.username, exc)
                raise UploadFailed() from exc
            saved.append(paths.relative_to(target, home))

    return {"uploaded": saved}


@router.get("/download/{rel_path:path}")
def download(rel_path: str, requestor: Requestor = Depends(get_requestor)):
    resolved = paths.resolve_real(requestor.username, rel_path)
    if resolved.is_dir:
        raise InputInvalid("Path is a directory.")
    return FileResponse(resolved.full_path, filename=posixpath.basename(resolved.full_path))


@router.post("/mkdir")
def make_directory(
    rel_home_path: str = Form("", alias="relHomePath"),
    dir_name: str = Form("", alias="dirName"),
    requestor: Requestor = Depends(get_requestor),
):
    if not dir_name:
        raise InputInvalid("No directory name provided.")
    target = filesystem.make_directory(requestor, rel_home_path or "/", dir_name)
    return {"path": paths.relative_to(target, paths.home_root(requestor.username))}


@router.post("/compress")
def compress(rel_home_path: str = Form("", alias="relHomePath"), requestor: Requestor = Depends(get_requestor)):
    if not rel_home_path:
        raise InputInvalid("No path provided.")
    target = archive.compress(requestor, rel_home_path)
    return {"path": paths.relative_to(target, paths.home_root(requestor.username))}


@router.post("/extract")
def extract(rel_home_path: str = Form("", alias="relHomePath"), requestor: Requestor = Depends(get_requestor)):
    if not rel_home_path:
        raise InputInvalid("No path provided.")
    target = archive.extract(requestor, rel_home_path)
    return {"path": paths.relative_to(target, paths.home_root(requestor.username))}


@router.post("/move")
def move(
    source: str = Form("", alias="sourceRelHomePath"),
    destination: str = Form("", alias="destinationRelHomePath"),
    requestor: Requestor = Depends(get_requestor),
):
    if not source or not destination:
        raise InputInvalid("No source or destination provided.")
    target = filesystem.move(requestor, source, destination)
    return {"path": paths.relative_to(target, paths.home_root(requestor.username))}


@router.post("/trash")
def trash_path(
    request: Request,
    rel_home_path: str = Form("", alias="relHomePath"),
    requestor: Requestor = Depends(get_requestor),
):
    if not rel_home_path:
        raise InputInvalid("No path provided.")
    bucket = trash.trash(requestor, rel_home_path)
    add_audit_log(requestor=requestor, event_type="files.trashed", details=f"{rel_home_path} -> {bucket}", request=request)
    return {"trashDirName": bucket}


@router.post("/restore")
def restore(
    request: Request,
    trash_dir_name: str = Form("", alias="trashDirName"),
    requestor: Requestor = Depends(get_requestor),
):
    if not trash_dir_name:
        raise InputInvalid("No trash directory provided.")
    restored = trash.restore(requestor, trash_dir_name)
    rel_restored = paths.relative_to(restored, paths.home_root(requestor.username))
    add_audit_log(requestor=requestor, event_type="files.restored", details=f"{trash_dir_name} -> {rel_restored}", request=request)
    return {"path": rel_restored}


@router.delete("/trash")
def empty_trash(request: Request, requestor: Requestor = Depends(get_requestor)):
    removed = trash.empty(requestor)
    add_audit_log(requestor=requestor, event_type="files.trash_emptied", details=f"{removed} removed", request=request)
    return {"removed": removed}


@router.get("/disk-usage")
@router.get("/disk-usage/{rel_path:path}")
def disk_usage(rel_path: str = "", requestor: Requestor = Depends(get_requestor)):
    resolved = paths.resolve(requestor.username, rel_path)
    return {"diskUsage": monitor.directory_disk_usage(resolved.full_path)}

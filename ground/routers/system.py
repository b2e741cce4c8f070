from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse

from ground.schemas.users import Requestor
from ground.services import power
from ground.services.audit import add_audit_log
from ground.services.authn import ensure_admin, get_requestor

router = APIRouter(prefix="/api/system", tags=["system"])


def _schedule(action: str, request: Request, requestor: Requestor, background_tasks: BackgroundTasks):
    ensure_admin(requestor, f"Must be admin to {action}.")
    add_audit_log(requestor=requestor, event_type=f"system.{action}", request=request)
    # The host goes down with this process, so answer first and act afterwards.
    background_tasks.add_task(power.run_action, action)
    return JSONResponse(status_code=202, content={"status": "pending", "action": action})


@router.post("/reboot")
def reboot(request: Request, background_tasks: BackgroundTasks, requestor: Requestor = Depends(get_requestor)):
    return _schedule("reboot", request, requestor, background_tasks)


@router.post("/poweroff")
def poweroff(request: Request, background_tasks: BackgroundTasks, requestor: Requestor = Depends(get_requestor)):
    return _schedule("poweroff", request, requestor, background_tasks)

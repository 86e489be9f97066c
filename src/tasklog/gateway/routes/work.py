"""计时路由

POST /api/tasks/{task_id}/start: 开始在任务上工作（自动关闭 owner 之前的会话）。
POST /api/tasks/{task_id}/stop: 停止 owner 当前会话，幂等。
POST /api/tasks/{task_id}/complete: 停止该任务的会话并置为 done。
GET  /api/sessions/active: owner 当前进行中的会话。
"""

from fastapi import APIRouter, Depends

from ..auth import resolve_owner
from ..deps import get_services
from ..services import ServiceGroup

router = APIRouter()


def _session_payload(session) -> dict:
    if session is None:
        return {"session": None}
    return {"session": session.model_dump(mode="json", by_alias=True)}


@router.post("/api/tasks/{task_id}/start")
async def start_task(
    task_id: str,
    owner_id: str = Depends(resolve_owner),
    services: ServiceGroup = Depends(get_services),
):
    session = await services.ledger.start_work(owner_id, task_id)
    return _session_payload(session)


@router.post("/api/tasks/{task_id}/stop")
async def stop_task(
    task_id: str,
    owner_id: str = Depends(resolve_owner),
    services: ServiceGroup = Depends(get_services),
):
    """停止 owner 的当前会话（每个 owner 至多一个，与路径中的任务无关）"""
    session = await services.ledger.stop_work(owner_id)
    return _session_payload(session)


@router.post("/api/tasks/{task_id}/complete")
async def complete_task(
    task_id: str,
    owner_id: str = Depends(resolve_owner),
    services: ServiceGroup = Depends(get_services),
):
    task = await services.tasks.complete_task(owner_id, task_id)
    return {"task": task.model_dump(mode="json", by_alias=True)}


@router.get("/api/sessions/active")
async def active_session(
    owner_id: str = Depends(resolve_owner),
    services: ServiceGroup = Depends(get_services),
):
    session = await services.ledger.get_active_session(owner_id)
    return _session_payload(session)

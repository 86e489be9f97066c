"""任务路由

GET    /api/tasks: 任务列表（含 isActive / totalSeconds），支持 status 筛选。
POST   /api/tasks: 创建任务，返回 201。
GET    /api/tasks/{task_id}: 任务详情（含计时信息）。
PATCH  /api/tasks/{task_id}: 部分更新。
DELETE /api/tasks/{task_id}: 删除任务，会话保留。
"""

from fastapi import APIRouter, Depends, Query
from starlette.responses import Response

from tasklog.core.models import TaskCreate, TaskPatch, TaskWithMeta, coerce_status

from ..auth import resolve_owner
from ..deps import get_services
from ..services import ServiceGroup

router = APIRouter()


@router.get("/api/tasks")
async def list_tasks(
    status: str | None = Query(default=None, description="按状态筛选"),
    owner_id: str = Depends(resolve_owner),
    services: ServiceGroup = Depends(get_services),
):
    """按状态、截止时间、更新时间排序的任务列表"""
    tasks = await services.aggregator.list_with_meta(owner_id, coerce_status(status))
    return {"tasks": [t.model_dump(mode="json", by_alias=True) for t in tasks]}


@router.post("/api/tasks", status_code=201)
async def create_task(
    data: TaskCreate,
    owner_id: str = Depends(resolve_owner),
    services: ServiceGroup = Depends(get_services),
):
    task = await services.tasks.create_task(owner_id, data)
    return {"task": task.model_dump(mode="json", by_alias=True)}


@router.get("/api/tasks/{task_id}")
async def get_task(
    task_id: str,
    owner_id: str = Depends(resolve_owner),
    services: ServiceGroup = Depends(get_services),
):
    task = await services.tasks.get_task(owner_id, task_id)
    active = await services.ledger.get_active_session(owner_id)
    total_seconds = await services.aggregator.get_task_total_seconds(owner_id, task_id)
    detail = TaskWithMeta(
        **task.model_dump(),
        is_active=active is not None and active.task_id == task_id,
        total_seconds=total_seconds,
    )
    return {"task": detail.model_dump(mode="json", by_alias=True)}


@router.patch("/api/tasks/{task_id}")
async def update_task(
    task_id: str,
    patch: TaskPatch,
    owner_id: str = Depends(resolve_owner),
    services: ServiceGroup = Depends(get_services),
):
    task = await services.tasks.update_task(owner_id, task_id, patch)
    return {"task": task.model_dump(mode="json", by_alias=True)}


@router.delete("/api/tasks/{task_id}", status_code=204)
async def delete_task(
    task_id: str,
    owner_id: str = Depends(resolve_owner),
    services: ServiceGroup = Depends(get_services),
):
    await services.tasks.delete_task(owner_id, task_id)
    return Response(status_code=204)

"""汇总路由

GET /api/tasks/summary?range=today|week|month&weekStart=mon|sun
窗口终点为请求时刻；按天分桶使用部署配置的时区。
必须先于 /api/tasks/{task_id} 注册。
"""

from fastapi import APIRouter, Depends, Query

from ..auth import resolve_owner
from ..deps import get_services
from ..services import ServiceGroup

router = APIRouter()


@router.get("/api/tasks/summary")
async def get_summary(
    range_name: str = Query(default="today", alias="range", description="today/week/month"),
    week_start: str | None = Query(default=None, alias="weekStart", description="mon/sun"),
    owner_id: str = Depends(resolve_owner),
    services: ServiceGroup = Depends(get_services),
):
    """today / week / month 汇总；未知 range 按 today 处理"""
    if week_start not in ("mon", "sun"):
        week_start = services.config.week_start
    name, summary = await services.aggregator.get_range_summary(
        owner_id, range_name, week_start
    )
    return {"range": name, **summary.model_dump(mode="json", by_alias=True)}

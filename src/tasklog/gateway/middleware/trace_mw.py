"""TraceMiddleware -- 为任务相关请求绑定 task_id，贯穿该请求的全部日志

task_id 从 /api/tasks/{task_id}[/start|/stop|/complete] 路径中提取。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# /api/tasks/ 下不是 task_id 的固定段
_RESERVED_SEGMENTS = {"summary"}


class TraceMiddleware(BaseHTTPMiddleware):
    """任务级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        parts = request.url.path.strip("/").split("/")
        if len(parts) >= 3 and parts[0] == "api" and parts[1] == "tasks":
            task_id = parts[2]
            if task_id and task_id not in _RESERVED_SEGMENTS:
                structlog.contextvars.bind_contextvars(task_id=task_id)

        return await call_next(request)

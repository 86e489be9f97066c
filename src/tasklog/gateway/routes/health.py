"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，探测当前后端（SQLite 连通性 / 远端可达性）。
"""

import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

from tasklog.core.exceptions import StorageError

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查 -- 验证存储后端可用"""
    backend = request.app.state.services.backend
    checks = {}
    all_ok = True

    try:
        await backend.ping()
        checks[backend.name] = "ok"
    except StorageError as e:
        log.warning("readiness_check_failed", backend=backend.name, error=e.message)
        checks[backend.name] = f"error: {e.message}"
        all_ok = False

    status_code = 200 if all_ok else 503
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ready" if all_ok else "not_ready",
            "backend": backend.name,
            "checks": checks,
        },
    )

"""FastAPI 应用主文件

app 创建 + lifespan 管理：后端初始化/关闭 + 服务装配 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from tasklog import __version__
from tasklog.core.config import BackendConfig, load_backend_config
from tasklog.core.store import create_backend

from .errors import register_error_handlers
from .middleware.logging_config import setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import health, summary, tasks, work
from .services import ServiceGroup

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时创建后端与服务，关闭时释放连接"""
    config = app.state.config or load_backend_config()
    backend = await create_backend(config)
    app.state.services = ServiceGroup(backend, config)
    log.info(
        "services_initialized",
        backend=backend.name,
        timezone=config.timezone,
        week_start=config.week_start,
    )

    yield

    # 关闭：释放数据库连接 / HTTP 客户端
    if getattr(app.state, "services", None) is not None:
        await app.state.services.backend.close()


def create_app(config: BackendConfig | None = None) -> FastAPI:
    """创建 FastAPI 应用实例

    未传入 config 时，日志按当前环境变量配置，lifespan 启动时再加载一次后端配置。
    """
    app = FastAPI(
        title="tasklog",
        version=__version__,
        description="个人任务清单 + 工作计时 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    app.state.config = config
    setup_logging(config or load_backend_config())

    register_error_handlers(app)

    # 注册路由（summary 在 tasks 之前，避免被 /api/tasks/{task_id} 匹配）
    app.include_router(summary.router, tags=["summary"])
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(work.router, tags=["work"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()

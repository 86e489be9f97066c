"""依赖注入模块 -- 通过 FastAPI Depends 注入服务实例

服务实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Request

from .services import ServiceGroup


def get_services(request: Request) -> ServiceGroup:
    """从 app.state 获取 ServiceGroup 实例"""
    return request.app.state.services

"""身份解析 -- 把请求映射为 owner_id

remote 后端：必须携带 Authorization: Bearer <token>，由远端认证接口校验。
sqlite 后端：读取 X-User-Id 头，缺省使用配置的本地默认 owner。
引擎完全信任这里给出的 owner_id，并用它限定所有操作。
"""

import structlog
from fastapi import Request

from tasklog.core.exceptions import UnauthorizedError

from .services import ServiceGroup

log = structlog.get_logger()


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    if header.startswith("Bearer "):
        token = header[7:].strip()
        return token or None
    return None


async def resolve_owner(request: Request) -> str:
    """FastAPI 依赖：解析当前请求的 owner_id

    Raises:
        UnauthorizedError: remote 模式下缺少或无效的 token
    """
    services: ServiceGroup = request.app.state.services

    if services.config.backend == "remote":
        token = _bearer_token(request)
        if token is None:
            raise UnauthorizedError("missing bearer token")
        owner_id = await services.backend.client.resolve_user(token)
    else:
        owner_id = (request.headers.get("x-user-id") or "").strip()
        owner_id = owner_id or services.config.default_owner

    request.state.owner_id = owner_id
    structlog.contextvars.bind_contextvars(owner_id=owner_id)
    log.debug("owner_resolved", owner_id=owner_id)
    return owner_id

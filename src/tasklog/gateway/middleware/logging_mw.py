"""LoggingMiddleware -- 请求级访问日志

每个请求生成 ULID request_id 并绑定到 structlog contextvars，通过 X-Request-ID 返回。
request_completed 记录状态码、耗时与解析出的 owner（由 resolve_owner 写入 request.state）。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

# 探活请求只在 DEBUG 级别记录
_QUIET_PATHS = {"/health", "/ready"}


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求级日志中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = str(ULID())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        log = structlog.get_logger()
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            log.error(
                "request_failed",
                duration_ms=_elapsed_ms(started),
                owner_id=getattr(request.state, "owner_id", None),
            )
            raise

        status_code = response.status_code
        if status_code >= 500:
            emit = log.warning
        elif request.url.path in _QUIET_PATHS:
            emit = log.debug
        else:
            emit = log.info
        emit(
            "request_completed",
            status_code=status_code,
            duration_ms=_elapsed_ms(started),
            owner_id=getattr(request.state, "owner_id", None),
        )

        response.headers["X-Request-ID"] = request_id
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)

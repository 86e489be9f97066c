"""异常到 HTTP 状态码的映射

NotFoundError -> 404, ValidationError / 请求体不合法 -> 400,
UnauthorizedError -> 401, 其他 -> 500。
响应体统一为 {"error": {"code": ..., "message": ...}}。
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from tasklog.core.exceptions import (
    NotFoundError,
    TaskLogError,
    UnauthorizedError,
    ValidationError,
)

log = structlog.get_logger()

_STATUS_BY_ERROR: list[tuple[type[TaskLogError], int]] = [
    (NotFoundError, 404),
    (ValidationError, 400),
    (UnauthorizedError, 401),
]


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


async def _handle_tasklog_error(request: Request, exc: TaskLogError) -> JSONResponse:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return error_response(status_code, exc.code, exc.message)

    # 存储等内部错误：细节只进日志
    log.error(
        "request_failed",
        error=exc.message,
        error_type=type(exc).__name__,
    )
    return error_response(500, exc.code, "internal error")


async def _handle_request_validation(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return error_response(400, "BAD_REQUEST", "invalid request body or parameters")


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled_error", error_type=type(exc).__name__)
    return error_response(500, "INTERNAL_ERROR", "internal error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TaskLogError, _handle_tasklog_error)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(Exception, _handle_unexpected)

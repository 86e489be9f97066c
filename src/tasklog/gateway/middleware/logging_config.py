"""structlog 配置模块

日志级别与渲染模式来自 BackendConfig（TASKLOG_LOG_LEVEL / TASKLOG_LOG_FORMAT）。
每条日志都带上当前存储后端名，便于区分本地与远程部署。
"""

import logging

import structlog

from tasklog.core.config import BackendConfig

# 远程后端每个请求都会触发 httpx 的 INFO 日志
_NOISY_LOGGERS = ("httpx", "httpcore", "aiosqlite")


def _backend_stamp(backend: str) -> structlog.types.Processor:
    def add_backend(logger, method_name, event_dict):
        event_dict.setdefault("backend", backend)
        return event_dict

    return add_backend


def setup_logging(config: BackendConfig) -> None:
    """按配置初始化 structlog + 标准库 logging

    - "json": 结构化 JSON 输出（生产环境）
    - "dev": 控制台可读输出
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _backend_stamp(config.backend),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if config.log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer(
            ensure_ascii=False
        )
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )

    level = logging.getLevelName(config.log_level)
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level if isinstance(level, int) else logging.INFO)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root_logger.level))

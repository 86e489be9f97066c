"""配置模块 -- 可通过环境变量覆盖

包含数据库路径、后端选择、远程存储地址、按天分桶所用时区与日志输出等配置。
后端与时区在进程启动时确定一次，运行期间不再按请求切换。
"""

import logging
import os
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from pydantic import BaseModel, Field, SecretStr, field_validator

log = structlog.get_logger()

# 本地模式下未携带身份信息时使用的默认 owner
DEFAULT_LOCAL_OWNER = "local-default-user"

# 已删除任务在汇总中使用的占位标题
DELETED_TASK_TITLE = "(deleted task)"

# 开启新会话时遇到存储层冲突的最大重试次数
SESSION_SWITCH_MAX_RETRIES = 3


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("TASKLOG_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "TASKLOG_DB_PATH",
        str(_get_base_dir() / "sqlite" / "tasklog.db"),
    )


class BackendConfig(BaseModel):
    """存储后端配置 -- 从环境变量加载

    环境变量:
        TASKLOG_BACKEND: 后端类型（sqlite/remote）
        TASKLOG_REMOTE_URL: 远程 PostgREST 服务基础 URL
        TASKLOG_REMOTE_KEY: 远程服务访问密钥
        TASKLOG_REMOTE_TIMEOUT_S: 远程请求超时（秒，默认 10）
        TASKLOG_TIMEZONE: 按天分桶使用的 IANA 时区（默认 UTC）
        TASKLOG_WEEK_START: 周起始日（mon/sun）
        TASKLOG_DEFAULT_OWNER: 本地模式默认 owner
        TASKLOG_LOG_LEVEL: 日志级别（默认 INFO）
        TASKLOG_LOG_FORMAT: 日志渲染模式（dev/json）
    """

    backend: Literal["sqlite", "remote"] = Field(
        default="sqlite",
        description="存储后端：sqlite / remote",
    )
    db_path: str = Field(
        default_factory=get_db_path,
        description="SQLite 数据库文件路径",
    )
    remote_url: str = Field(
        default="",
        description="远程 PostgREST 服务基础 URL",
    )
    remote_key: SecretStr = Field(
        default=SecretStr(""),
        description="远程服务访问密钥（service role key）",
    )
    remote_timeout_s: int = Field(
        default=10,
        ge=1,
        description="远程请求超时（秒）",
    )
    timezone: str = Field(
        default="UTC",
        description="按天分桶使用的时区",
    )
    week_start: Literal["mon", "sun"] = Field(
        default="mon",
        description="周汇总的起始日",
    )
    default_owner: str = Field(
        default=DEFAULT_LOCAL_OWNER,
        description="本地模式下缺省的 owner",
    )
    log_level: str = Field(
        default="INFO",
        description="日志级别（标准库 logging 级别名）",
    )
    log_format: Literal["dev", "json"] = Field(
        default="dev",
        description="日志渲染：dev 控制台 / json 结构化",
    )

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone: {value}") from e
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def load_backend_config() -> BackendConfig:
    """从环境变量加载后端配置

    Returns:
        BackendConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("TASKLOG_BACKEND"):
        kwargs["backend"] = val

    if val := os.environ.get("TASKLOG_REMOTE_URL"):
        kwargs["remote_url"] = val

    if val := os.environ.get("TASKLOG_REMOTE_KEY"):
        kwargs["remote_key"] = SecretStr(val)

    if val := os.environ.get("TASKLOG_REMOTE_TIMEOUT_S"):
        try:
            kwargs["remote_timeout_s"] = int(val)
        except ValueError:
            log.warning(
                "invalid_timeout_config",
                env_var="TASKLOG_REMOTE_TIMEOUT_S",
                value=val,
                fallback=10,
            )

    if val := os.environ.get("TASKLOG_TIMEZONE"):
        kwargs["timezone"] = val

    if val := os.environ.get("TASKLOG_WEEK_START"):
        kwargs["week_start"] = val

    if val := os.environ.get("TASKLOG_DEFAULT_OWNER"):
        kwargs["default_owner"] = val

    if val := os.environ.get("TASKLOG_LOG_LEVEL"):
        level = val.strip().upper()
        if isinstance(logging.getLevelName(level), int):
            kwargs["log_level"] = level
        else:
            log.warning(
                "invalid_log_config",
                env_var="TASKLOG_LOG_LEVEL",
                value=val,
                fallback="INFO",
            )

    if val := os.environ.get("TASKLOG_LOG_FORMAT"):
        if val in ("dev", "json"):
            kwargs["log_format"] = val
        else:
            log.warning(
                "invalid_log_config",
                env_var="TASKLOG_LOG_FORMAT",
                value=val,
                fallback="dev",
            )

    return BackendConfig(**kwargs)

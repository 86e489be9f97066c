"""时钟抽象 -- 所有服务通过注入的 Clock 获取当前时间，便于测试固定时间"""

from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """返回当前时刻（带时区，UTC）"""
        ...


class SystemClock:
    """真实系统时钟"""

    def now(self) -> datetime:
        return datetime.now(UTC)

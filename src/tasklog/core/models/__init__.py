"""tasklog Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    SESSION_CLOSING_STATES,
    STATUS_ORDER,
    TaskPriority,
    TaskStatus,
    coerce_priority,
    coerce_status,
)
from .session import WorkSession
from .summary import DayBucket, Summary, TaskAggregate
from .task import Task, TaskCreate, TaskPatch, TaskWithMeta

__all__ = [
    # 枚举
    "TaskStatus",
    "TaskPriority",
    "STATUS_ORDER",
    "SESSION_CLOSING_STATES",
    "coerce_status",
    "coerce_priority",
    # Task
    "Task",
    "TaskCreate",
    "TaskPatch",
    "TaskWithMeta",
    # Session
    "WorkSession",
    # Summary
    "Summary",
    "TaskAggregate",
    "DayBucket",
]

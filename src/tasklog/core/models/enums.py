"""枚举定义 -- TaskStatus / TaskPriority

以及列表排序使用的状态顺序、会结束工作会话的状态集合、
非法取值回退到默认值的辅助函数。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """任务状态"""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CANCELED = "canceled"


class TaskPriority(StrEnum):
    """任务优先级"""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


# 列表排序：todo -> in_progress -> done -> canceled
STATUS_ORDER: dict[TaskStatus, int] = {
    TaskStatus.TODO: 0,
    TaskStatus.IN_PROGRESS: 1,
    TaskStatus.DONE: 2,
    TaskStatus.CANCELED: 3,
}

# 进入这些状态时，任务上的未结束会话会先被停止
SESSION_CLOSING_STATES: set[TaskStatus] = {
    TaskStatus.DONE,
    TaskStatus.CANCELED,
}


def coerce_status(value: str | None, default: TaskStatus | None = None) -> TaskStatus | None:
    """将外部输入转换为 TaskStatus，非法值返回 default"""
    try:
        return TaskStatus(value)
    except ValueError:
        return default


def coerce_priority(
    value: str | None, default: TaskPriority | None = TaskPriority.NORMAL
) -> TaskPriority | None:
    """将外部输入转换为 TaskPriority，非法值返回 default"""
    try:
        return TaskPriority(value)
    except ValueError:
        return default

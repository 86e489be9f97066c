"""Task Domain Model

任务归创建者所有，所有读写都按 owner_id 过滤。
对外 JSON 字段使用 camelCase（ownerId、createdAt ...）。
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .enums import TaskPriority, TaskStatus


class Task(BaseModel):
    """Task 数据模型"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(description="唯一标识，ULID 格式")
    owner_id: str = Field(description="所属 owner")
    title: str = Field(description="任务标题（非空）")
    note: str | None = Field(default=None, description="备注")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="当前状态")
    priority: TaskPriority = Field(default=TaskPriority.NORMAL, description="优先级")
    due: datetime | None = Field(default=None, description="截止时间")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")


class TaskWithMeta(Task):
    """附带计时信息的任务（列表/详情展示用）"""

    is_active: bool = Field(default=False, description="owner 当前会话是否在此任务上")
    total_seconds: int = Field(default=0, description="累计工作秒数")


class TaskCreate(BaseModel):
    """创建任务输入

    status 不可指定（创建时固定为 todo）；priority/due 保留原始字符串，
    由 TaskService 负责回退与解析。
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = ""
    note: str | None = None
    priority: str | None = None
    due: str | None = None


class TaskPatch(BaseModel):
    """更新任务输入 -- 仅显式出现的字段生效（due=None 表示清除截止时间）"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str | None = None
    note: str | None = None
    status: str | None = None
    priority: str | None = None
    due: str | None = None

"""Summary 模型 -- 派生数据，不持久化

total_seconds == sum(by_task.total_seconds) == sum(days.seconds)
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TaskAggregate(BaseModel):
    """单个任务在查询窗口内的聚合"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(description="任务 ID")
    title: str = Field(description="任务标题，已删除任务使用占位标题")
    total_seconds: int = Field(default=0, description="窗口内累计秒数")
    session_count: int = Field(default=0, description="与窗口相交的会话数")
    last_worked_at: datetime | None = Field(
        default=None,
        description="各会话 end_at（进行中则 start_at）的最大值",
    )


class DayBucket(BaseModel):
    """本地自然日分桶"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    date: datetime = Field(description="本地日起点（UTC 时刻）")
    seconds: int = Field(default=0, description="当日秒数")


class Summary(BaseModel):
    """时间范围汇总"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    window_from: datetime = Field(alias="from", description="窗口起点（含）")
    window_to: datetime = Field(alias="to", description="窗口终点（不含）")
    total_seconds: int = Field(default=0, description="窗口内总秒数")
    completed_count: int = Field(default=0, description="窗口内完成的任务数")
    by_task: list[TaskAggregate] = Field(default_factory=list, description="按任务聚合")
    days: list[DayBucket] = Field(default_factory=list, description="按天聚合")

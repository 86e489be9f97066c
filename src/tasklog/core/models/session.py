"""WorkSession Domain Model

end_at 为空表示会话未结束（open）。每个 owner 同一时刻最多一个 open 会话。
会话只会被创建和关闭（写入 end_at），不会被其他方式修改。
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WorkSession(BaseModel):
    """工作会话"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(description="唯一标识，ULID 格式")
    task_id: str = Field(description="关联的任务 ID（引用，不随任务删除）")
    owner_id: str = Field(description="所属 owner")
    start_at: datetime = Field(description="开始时间")
    end_at: datetime | None = Field(default=None, description="结束时间，空表示进行中")

    @property
    def is_open(self) -> bool:
        return self.end_at is None

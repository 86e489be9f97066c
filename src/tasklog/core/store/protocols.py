"""Store Protocol 接口定义

定义 TaskStore、SessionStore 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
本地 SQLite 与远程 PostgREST 两套实现必须在排序、计时与汇总形状上完全一致。
"""

from datetime import datetime
from typing import Protocol

from ..models.enums import TaskStatus
from ..models.session import WorkSession
from ..models.task import Task


class TaskStore(Protocol):
    """Task 存储接口 -- 所有方法按 owner_id 过滤"""

    async def list_tasks(
        self, owner_id: str, status: TaskStatus | None = None
    ) -> list[Task]:
        """查询任务列表

        排序：状态（todo, in_progress, done, canceled）-> due 升序（无 due 在后）
        -> updated_at 倒序 -> id 升序
        """
        ...

    async def get_task(self, owner_id: str, task_id: str) -> Task | None:
        """查询单个任务，不属于该 owner 时返回 None"""
        ...

    async def insert_task(self, task: Task) -> None:
        """插入任务记录"""
        ...

    async def update_task(self, task: Task) -> bool:
        """整行覆盖写入可变字段，返回是否命中"""
        ...

    async def delete_task(self, owner_id: str, task_id: str) -> bool:
        """删除任务，返回是否命中（不级联删除会话）"""
        ...

    async def count_completed(
        self, owner_id: str, window_from: datetime, window_to: datetime
    ) -> int:
        """status=done 且 updated_at 在 [from, to) 内的任务数"""
        ...


class SessionStore(Protocol):
    """WorkSession 存储接口 -- 所有方法按 owner_id 过滤"""

    async def get_open_session(self, owner_id: str) -> WorkSession | None:
        """查询 owner 当前未结束的会话"""
        ...

    async def switch_session(
        self, new_session: WorkSession, now: datetime
    ) -> WorkSession | None:
        """关闭 owner 现有 open 会话（end_at=now）并插入新会话

        先关后开；支持事务的后端在同一事务内完成。
        插入被唯一约束拒绝时抛出 OpenSessionConflictError。

        Returns:
            被关闭的旧会话，没有则 None
        """
        ...

    async def close_open_session(
        self, owner_id: str, now: datetime, task_id: str | None = None
    ) -> WorkSession | None:
        """关闭 owner 的 open 会话；指定 task_id 时仅当会话属于该任务才关闭

        Returns:
            被关闭的会话，没有则 None
        """
        ...

    async def list_sessions_for_task(
        self, owner_id: str, task_id: str
    ) -> list[WorkSession]:
        """查询任务的全部会话，按 start_at、id 升序"""
        ...

    async def list_sessions_in_range(
        self, owner_id: str, window_from: datetime, window_to: datetime
    ) -> list[WorkSession]:
        """查询与 [from, to) 相交的会话：start_at < to 且 coalesce(end_at, to) > from

        按 start_at、id 升序。
        """
        ...


class Backend(Protocol):
    """后端能力组合 -- 进程启动时选定一次"""

    name: str
    task_store: TaskStore
    session_store: SessionStore

    async def ping(self) -> None:
        """连通性检查，失败抛出 StorageError"""
        ...

    async def close(self) -> None:
        """释放连接"""
        ...

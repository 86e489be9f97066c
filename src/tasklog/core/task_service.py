"""TaskService -- 按 owner 隔离的任务增删改查

流程约定：
1. 所有读写都带 owner_id，其他 owner 的任务与不存在的任务表现一致（NotFoundError）
2. 非法 status/priority 回退到默认值或保持原值，空标题抛出 ValidationError
3. 任务进入 done/canceled 前先停止其进行中的会话，完成时长在汇总前已冻结
4. 同一操作内只取一次 now
"""

from datetime import datetime

import structlog
from ulid import ULID

from .clock import Clock, SystemClock
from .exceptions import NotFoundError, ValidationError
from .ledger import SessionLedger
from .models import (
    SESSION_CLOSING_STATES,
    Task,
    TaskCreate,
    TaskPatch,
    TaskPriority,
    TaskStatus,
    WorkSession,
    coerce_priority,
    coerce_status,
)
from .store.protocols import Backend
from .timecalc import coerce_instant

log = structlog.get_logger()


class TaskService:
    """任务业务服务"""

    def __init__(
        self,
        backend: Backend,
        ledger: SessionLedger,
        clock: Clock | None = None,
    ) -> None:
        self._tasks = backend.task_store
        self._ledger = ledger
        self._clock = clock or SystemClock()

    async def list_tasks(self, owner_id: str, status: str | None = None) -> list[Task]:
        """查询任务列表；非法 status 筛选值视为不筛选"""
        return await self._tasks.list_tasks(owner_id, coerce_status(status))

    async def get_task(self, owner_id: str, task_id: str) -> Task:
        """查询任务

        Raises:
            NotFoundError: 任务不存在或不属于该 owner
        """
        task = await self._tasks.get_task(owner_id, task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    async def create_task(self, owner_id: str, data: TaskCreate) -> Task:
        """创建任务，status 固定为 todo

        Raises:
            ValidationError: 标题为空或 due 无法解析
        """
        now = self._clock.now()
        title = (data.title or "").strip()
        if not title:
            raise ValidationError("title is required")

        task = Task(
            id=str(ULID()),
            owner_id=owner_id,
            title=title,
            note=data.note,
            status=TaskStatus.TODO,
            priority=coerce_priority(data.priority, TaskPriority.NORMAL),
            due=self._parse_due(data.due),
            created_at=now,
            updated_at=now,
        )
        await self._tasks.insert_task(task)
        log.info("task_created", owner_id=owner_id, task_id=task.id)
        return task

    async def update_task(self, owner_id: str, task_id: str, patch: TaskPatch) -> Task:
        """部分更新任务

        只应用 patch 中显式给出的字段；进入 done/canceled 时先停止该任务的会话。

        Raises:
            NotFoundError: 任务不存在或不属于该 owner
            ValidationError: 标题为空或 due 无法解析
        """
        current = await self.get_task(owner_id, task_id)
        fields = patch.model_fields_set
        changes: dict = {}

        if "title" in fields and patch.title is not None:
            title = patch.title.strip()
            if not title:
                raise ValidationError("title must not be empty")
            changes["title"] = title
        if "note" in fields:
            changes["note"] = patch.note
        if "priority" in fields:
            changes["priority"] = coerce_priority(patch.priority, current.priority)
        if "status" in fields:
            changes["status"] = coerce_status(patch.status, current.status)
        if "due" in fields:
            changes["due"] = self._parse_due(patch.due)

        closed = None
        status = changes.get("status", current.status)
        if status in SESSION_CLOSING_STATES and status != current.status:
            closed = await self._ledger.stop_task_session(owner_id, task_id=task_id)

        changes["updated_at"] = self._stamp(closed)
        return await self._save(current.model_copy(update=changes))

    async def complete_task(self, owner_id: str, task_id: str) -> Task:
        """完成任务：先停止该任务的进行中会话，再置为 done

        Raises:
            NotFoundError: 任务不存在或不属于该 owner
        """
        current = await self.get_task(owner_id, task_id)
        closed = await self._ledger.stop_task_session(owner_id, task_id=task_id)
        now = self._stamp(closed)
        task = await self._save(
            current.model_copy(update={"status": TaskStatus.DONE, "updated_at": now})
        )
        log.info("task_completed", owner_id=owner_id, task_id=task_id)
        return task

    async def delete_task(self, owner_id: str, task_id: str) -> None:
        """删除任务；其会话保留，汇总中以占位标题出现

        Raises:
            NotFoundError: 任务不存在或不属于该 owner
        """
        deleted = await self._tasks.delete_task(owner_id, task_id)
        if not deleted:
            raise NotFoundError("Task", task_id)
        log.info("task_deleted", owner_id=owner_id, task_id=task_id)

    def _stamp(self, closed: WorkSession | None) -> datetime:
        """与刚关闭的会话共用同一时刻；没有关闭会话时重新采样"""
        if closed is not None and closed.end_at is not None:
            return closed.end_at
        return self._clock.now()

    async def _save(self, task: Task) -> Task:
        if not await self._tasks.update_task(task):
            # 读取与写入之间被删除
            raise NotFoundError("Task", task.id)
        return task

    @staticmethod
    def _parse_due(value: str | None) -> datetime | None:
        if value is None or not value.strip():
            return None
        due = coerce_instant(value)
        if due is None:
            raise ValidationError(f"invalid due timestamp: {value!r}")
        return due

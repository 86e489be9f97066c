"""SessionLedger -- 单 owner 单活动会话

状态机（按 owner）：
    NoActiveSession --start--> Active(task)
    Active(task) --stop | start(other) | complete(task)--> NoActiveSession | Active(other)
没有暂停状态，stop 总是完整关闭会话。

并发：同一 owner 的 start/stop 在 owner 级 asyncio.Lock 内执行；
存储层部分唯一索引拒绝插入时（OpenSessionConflictError）重新 close-then-open。
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

import structlog
from ulid import ULID

from .clock import Clock, SystemClock
from .config import SESSION_SWITCH_MAX_RETRIES
from .exceptions import NotFoundError, OpenSessionConflictError, TaskLogError
from .models import TaskStatus, WorkSession
from .store.protocols import Backend

log = structlog.get_logger()


class SessionLedger:
    """工作会话账本"""

    def __init__(self, backend: Backend, clock: Clock | None = None) -> None:
        self._tasks = backend.task_store
        self._sessions = backend.session_store
        self._clock = clock or SystemClock()
        self._owner_locks: dict[str, asyncio.Lock] = {}
        self._owner_lock_users: dict[str, int] = {}
        self._owner_locks_guard = asyncio.Lock()

    async def get_active_session(self, owner_id: str) -> WorkSession | None:
        """owner 当前进行中的会话"""
        return await self._sessions.get_open_session(owner_id)

    async def start_work(self, owner_id: str, task_id: str) -> WorkSession:
        """开始在任务上工作

        1. 关闭 owner 现有 open 会话（end_at=now）
        2. 插入新的 open 会话
        3. 尝试将任务状态置为 in_progress（失败不回滚会话）

        Raises:
            NotFoundError: 任务不存在或不属于该 owner
        """
        task = await self._tasks.get_task(owner_id, task_id)
        if task is None:
            raise NotFoundError("Task", task_id)

        async with self._owner_lock(owner_id):
            # 持锁后再采样 now
            now = self._clock.now()
            session, closed = await self._switch_with_retry(owner_id, task_id, now)

        log.info(
            "work_started",
            owner_id=owner_id,
            task_id=task_id,
            session_id=session.id,
            closed_session_id=closed.id if closed else None,
        )

        await self._mark_in_progress(owner_id, task_id, now)
        return session

    async def stop_work(self, owner_id: str) -> WorkSession | None:
        """停止 owner 当前会话；没有进行中的会话时返回 None（幂等）"""
        return await self.stop_task_session(owner_id)

    async def stop_task_session(
        self, owner_id: str, task_id: str | None = None
    ) -> WorkSession | None:
        """关闭 owner 的 open 会话，end_at 取持锁时刻

        指定 task_id 时仅当会话属于该任务才关闭（任务完成/取消时使用）。
        """
        async with self._owner_lock(owner_id):
            now = self._clock.now()
            closed = await self._sessions.close_open_session(owner_id, now, task_id=task_id)
        if closed is not None:
            log.info(
                "work_stopped",
                owner_id=owner_id,
                task_id=closed.task_id,
                session_id=closed.id,
            )
        return closed

    async def _switch_with_retry(
        self, owner_id: str, task_id: str, now: datetime
    ) -> tuple[WorkSession, WorkSession | None]:
        """close-then-open，遇到存储层冲突时重试（沿用同一个 now）"""
        attempt = 0
        while True:
            attempt += 1
            session = WorkSession(
                id=str(ULID()),
                task_id=task_id,
                owner_id=owner_id,
                start_at=now,
            )
            try:
                closed = await self._sessions.switch_session(session, now)
                return session, closed
            except OpenSessionConflictError:
                if attempt >= SESSION_SWITCH_MAX_RETRIES:
                    raise
                log.warning(
                    "open_session_conflict_retry",
                    owner_id=owner_id,
                    task_id=task_id,
                    attempt=attempt,
                )

    async def _mark_in_progress(self, owner_id: str, task_id: str, now: datetime) -> None:
        """尽力而为：将任务置为 in_progress

        会话记录才是权威状态，这一步失败只记录日志，不影响 start_work 的结果。
        """
        try:
            task = await self._tasks.get_task(owner_id, task_id)
            if task is None or task.status == TaskStatus.IN_PROGRESS:
                return
            await self._tasks.update_task(
                task.model_copy(update={"status": TaskStatus.IN_PROGRESS, "updated_at": now})
            )
        except TaskLogError as e:
            log.warning(
                "task_status_update_skipped",
                owner_id=owner_id,
                task_id=task_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    @asynccontextmanager
    async def _owner_lock(self, owner_id: str) -> AsyncIterator[None]:
        """持有 owner 级锁；最后一个使用者退出后清理字典项"""
        async with self._owner_locks_guard:
            lock = self._owner_locks.get(owner_id)
            if lock is None:
                lock = asyncio.Lock()
                self._owner_locks[owner_id] = lock
            self._owner_lock_users[owner_id] = self._owner_lock_users.get(owner_id, 0) + 1

        try:
            async with lock:
                yield
        finally:
            await self._release_owner_lock(owner_id)

    async def _release_owner_lock(self, owner_id: str) -> None:
        async with self._owner_locks_guard:
            users = self._owner_lock_users.get(owner_id, 1) - 1
            if users > 0:
                self._owner_lock_users[owner_id] = users
                return
            self._owner_lock_users.pop(owner_id, None)
            self._owner_locks.pop(owner_id, None)

"""TaskStore SQLite 实现

所有查询都带 owner_id 条件；跨 owner 访问与任务不存在表现一致。
"""

import asyncio
from datetime import datetime

import aiosqlite

from ..exceptions import StorageError
from ..models.enums import TaskStatus
from ..models.task import Task
from ..timecalc import format_instant

_COLUMNS = "id, owner_id, title, note, status, priority, due, created_at, updated_at"

# 与 RemoteTaskStore._sort_tasks 保持一致
_ORDER_BY = """
    ORDER BY
        CASE status
            WHEN 'todo' THEN 0
            WHEN 'in_progress' THEN 1
            WHEN 'done' THEN 2
            ELSE 3
        END,
        due IS NULL,
        due ASC,
        updated_at DESC,
        id ASC
"""


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection, write_lock: asyncio.Lock) -> None:
        self._conn = conn
        self._write_lock = write_lock

    async def list_tasks(
        self, owner_id: str, status: TaskStatus | None = None
    ) -> list[Task]:
        """查询任务列表，支持按状态筛选"""
        if status:
            sql = f"SELECT {_COLUMNS} FROM tasks WHERE owner_id = ? AND status = ? {_ORDER_BY}"
            params: tuple = (owner_id, status.value)
        else:
            sql = f"SELECT {_COLUMNS} FROM tasks WHERE owner_id = ? {_ORDER_BY}"
            params = (owner_id,)
        try:
            cursor = await self._conn.execute(sql, params)
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageError(f"failed to list tasks: {e}", e) from e
        return [self._row_to_task(row) for row in rows]

    async def get_task(self, owner_id: str, task_id: str) -> Task | None:
        """根据 id + owner_id 查询任务"""
        try:
            cursor = await self._conn.execute(
                f"SELECT {_COLUMNS} FROM tasks WHERE id = ? AND owner_id = ?",
                (task_id, owner_id),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError(f"failed to get task: {e}", e) from e
        if row is None:
            return None
        return self._row_to_task(row)

    async def insert_task(self, task: Task) -> None:
        """插入任务记录"""
        await self._write(
            f"INSERT INTO tasks ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                task.id,
                task.owner_id,
                task.title,
                task.note,
                task.status.value,
                task.priority.value,
                format_instant(task.due) if task.due else None,
                format_instant(task.created_at),
                format_instant(task.updated_at),
            ),
        )

    async def update_task(self, task: Task) -> bool:
        """覆盖写入任务的可变字段"""
        rowcount = await self._write(
            """
            UPDATE tasks
            SET title = ?, note = ?, status = ?, priority = ?, due = ?, updated_at = ?
            WHERE id = ? AND owner_id = ?
            """,
            (
                task.title,
                task.note,
                task.status.value,
                task.priority.value,
                format_instant(task.due) if task.due else None,
                format_instant(task.updated_at),
                task.id,
                task.owner_id,
            ),
        )
        return rowcount > 0

    async def delete_task(self, owner_id: str, task_id: str) -> bool:
        """删除任务（会话保留）"""
        rowcount = await self._write(
            "DELETE FROM tasks WHERE id = ? AND owner_id = ?",
            (task_id, owner_id),
        )
        return rowcount > 0

    async def count_completed(
        self, owner_id: str, window_from: datetime, window_to: datetime
    ) -> int:
        """统计窗口内完成的任务数"""
        try:
            cursor = await self._conn.execute(
                """
                SELECT COUNT(1) FROM tasks
                WHERE owner_id = ? AND status = 'done'
                  AND updated_at >= ? AND updated_at < ?
                """,
                (owner_id, format_instant(window_from), format_instant(window_to)),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError(f"failed to count completed tasks: {e}", e) from e
        return int(row[0]) if row else 0

    async def _write(self, sql: str, params: tuple) -> int:
        """执行单条写语句并提交，返回影响行数"""
        async with self._write_lock:
            try:
                cursor = await self._conn.execute(sql, params)
                await self._conn.commit()
            except aiosqlite.Error as e:
                await self._conn.rollback()
                raise StorageError(f"task write failed: {e}", e) from e
            return cursor.rowcount

    @staticmethod
    def _row_to_task(row) -> Task:
        """将数据库行转换为 Task 模型"""
        return Task(
            id=row[0],
            owner_id=row[1],
            title=row[2],
            note=row[3],
            status=row[4],
            priority=row[5],
            due=datetime.fromisoformat(row[6]) if row[6] else None,
            created_at=datetime.fromisoformat(row[7]),
            updated_at=datetime.fromisoformat(row[8]),
        )

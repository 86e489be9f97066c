"""SessionStore SQLite 实现

写操作通过 transaction 模块提交，并由连接级锁串行化：
共享连接上的事务不能与其他协程的写入交错。
"""

import asyncio
from datetime import datetime

import aiosqlite

from ..exceptions import OpenSessionConflictError, StorageError
from ..models.session import WorkSession
from ..timecalc import format_instant
from .transaction import close_open_session, switch_open_session

_COLUMNS = "id, task_id, owner_id, start_at, end_at"


class SqliteSessionStore:
    """SessionStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection, write_lock: asyncio.Lock) -> None:
        self._conn = conn
        self._write_lock = write_lock

    async def get_open_session(self, owner_id: str) -> WorkSession | None:
        """查询 owner 当前未结束的会话（走 idx_ws_owner_open 部分索引）"""
        try:
            cursor = await self._conn.execute(
                f"SELECT {_COLUMNS} FROM work_sessions "
                "WHERE owner_id = ? AND end_at IS NULL LIMIT 1",
                (owner_id,),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError(f"failed to query open session: {e}", e) from e
        return self._row_to_session(row) if row else None

    async def switch_session(
        self, new_session: WorkSession, now: datetime
    ) -> WorkSession | None:
        """关闭现有 open 会话并插入新会话（同一事务）"""
        async with self._write_lock:
            try:
                return await switch_open_session(self._conn, self, new_session, now)
            except aiosqlite.IntegrityError as e:
                if self._is_open_session_conflict(e):
                    raise OpenSessionConflictError(new_session.owner_id, e) from e
                raise StorageError(f"failed to start session: {e}", e) from e
            except aiosqlite.Error as e:
                raise StorageError(f"failed to start session: {e}", e) from e

    async def close_open_session(
        self, owner_id: str, now: datetime, task_id: str | None = None
    ) -> WorkSession | None:
        """关闭 owner 的 open 会话"""
        async with self._write_lock:
            try:
                return await close_open_session(
                    self._conn, self, owner_id, now, task_id=task_id
                )
            except aiosqlite.Error as e:
                raise StorageError(f"failed to stop session: {e}", e) from e

    async def list_sessions_for_task(
        self, owner_id: str, task_id: str
    ) -> list[WorkSession]:
        """查询任务的全部会话"""
        return await self._fetch_sessions(
            f"SELECT {_COLUMNS} FROM work_sessions "
            "WHERE owner_id = ? AND task_id = ? ORDER BY start_at ASC, id ASC",
            (owner_id, task_id),
        )

    async def list_sessions_in_range(
        self, owner_id: str, window_from: datetime, window_to: datetime
    ) -> list[WorkSession]:
        """查询与 [from, to) 相交的会话（进行中会话视为延伸到 to）"""
        return await self._fetch_sessions(
            f"SELECT {_COLUMNS} FROM work_sessions "
            "WHERE owner_id = :owner AND start_at < :to "
            "AND COALESCE(end_at, :to) > :from "
            "ORDER BY start_at ASC, id ASC",
            {
                "owner": owner_id,
                "from": format_instant(window_from),
                "to": format_instant(window_to),
            },
        )

    # ---- 事务内原语（不提交，由 transaction 模块管理事务） ----

    async def end_open_session(
        self, owner_id: str, now: datetime, task_id: str | None = None
    ) -> WorkSession | None:
        """将 open 会话的 end_at 设为 now；指定 task_id 时仅处理该任务的会话"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM work_sessions "
            "WHERE owner_id = ? AND end_at IS NULL LIMIT 1",
            (owner_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        active = self._row_to_session(row)
        if task_id is not None and active.task_id != task_id:
            return None
        await self._conn.execute(
            "UPDATE work_sessions SET end_at = ? WHERE id = ? AND owner_id = ?",
            (format_instant(now), active.id, owner_id),
        )
        return active.model_copy(update={"end_at": now})

    async def insert_session(self, session: WorkSession) -> None:
        """插入会话记录"""
        await self._conn.execute(
            f"INSERT INTO work_sessions ({_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
            (
                session.id,
                session.task_id,
                session.owner_id,
                format_instant(session.start_at),
                format_instant(session.end_at) if session.end_at else None,
            ),
        )

    async def _fetch_sessions(self, sql: str, params) -> list[WorkSession]:
        try:
            cursor = await self._conn.execute(sql, params)
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageError(f"failed to query sessions: {e}", e) from e
        return [self._row_to_session(row) for row in rows]

    @staticmethod
    def _is_open_session_conflict(error: aiosqlite.IntegrityError) -> bool:
        message = str(error)
        return "UNIQUE constraint failed" in message and "work_sessions.owner_id" in message

    @staticmethod
    def _row_to_session(row) -> WorkSession:
        """将数据库行转换为 WorkSession 模型"""
        return WorkSession(
            id=row[0],
            task_id=row[1],
            owner_id=row[2],
            start_at=datetime.fromisoformat(row[3]),
            end_at=datetime.fromisoformat(row[4]) if row[4] else None,
        )

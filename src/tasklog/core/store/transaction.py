"""会话切换原子事务封装

close-then-open 在同一 SQLite 事务内提交：
要么旧会话关闭且新会话开始，要么都不生效，不会出现两个未结束会话。
"""

from datetime import datetime
from typing import TYPE_CHECKING

import aiosqlite

from ..models.session import WorkSession

if TYPE_CHECKING:
    from .session_store import SqliteSessionStore


async def switch_open_session(
    conn: aiosqlite.Connection,
    session_store: "SqliteSessionStore",
    new_session: WorkSession,
    now: datetime,
) -> WorkSession | None:
    """在同一事务内关闭 owner 的 open 会话并插入新会话

    Args:
        conn: 数据库连接（需在同一连接上操作以保证事务性）
        session_store: SessionStore 实例
        new_session: 要插入的新会话（end_at 为空）
        now: 旧会话的结束时间

    Returns:
        被关闭的旧会话，没有则 None

    Raises:
        aiosqlite.Error: 事务失败，自动回滚
    """
    try:
        closed = await session_store.end_open_session(new_session.owner_id, now)
        await session_store.insert_session(new_session)
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise
    return closed


async def close_open_session(
    conn: aiosqlite.Connection,
    session_store: "SqliteSessionStore",
    owner_id: str,
    now: datetime,
    task_id: str | None = None,
) -> WorkSession | None:
    """关闭 owner 的 open 会话并提交（可限定所属任务）"""
    try:
        closed = await session_store.end_open_session(owner_id, now, task_id=task_id)
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise
    return closed

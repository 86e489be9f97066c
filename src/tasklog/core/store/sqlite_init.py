"""SQLite 数据库初始化

PRAGMA 配置 + 两张表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# tasks 表 DDL
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    id          TEXT PRIMARY KEY,
    owner_id    TEXT NOT NULL,
    title       TEXT NOT NULL,
    note        TEXT,
    status      TEXT NOT NULL DEFAULT 'todo',
    priority    TEXT NOT NULL DEFAULT 'normal',
    due         TEXT,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_owner_status ON tasks(owner_id, status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_owner_updated_at ON tasks(owner_id, updated_at);",
]

# work_sessions 表 DDL
# task_id 只是引用：任务删除后会话保留，因此不加外键
_WORK_SESSIONS_DDL = """
CREATE TABLE IF NOT EXISTS work_sessions (
    id        TEXT PRIMARY KEY,
    task_id   TEXT NOT NULL,
    owner_id  TEXT NOT NULL,
    start_at  TEXT NOT NULL,
    end_at    TEXT
);
"""

_WORK_SESSIONS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_ws_task_id ON work_sessions(task_id);",
    "CREATE INDEX IF NOT EXISTS idx_ws_owner_start_at ON work_sessions(owner_id, start_at);",
    # 每个 owner 最多一个未结束会话（存储层兜底）
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_ws_owner_open "
        "ON work_sessions(owner_id) WHERE end_at IS NULL;"
    ),
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    await conn.execute(_TASKS_DDL)
    await conn.execute(_WORK_SESSIONS_DDL)

    for idx_sql in _TASKS_INDEXES + _WORK_SESSIONS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"

"""tasklog Core Store -- 本地 SQLite / 远程 PostgREST 两套后端

create_backend() 根据配置在进程启动时选定一个后端；
上层组件只依赖 Backend 协议，不区分具体实现。
"""

import asyncio
from pathlib import Path

import aiosqlite
import httpx
import structlog

from ..config import BackendConfig
from ..exceptions import StorageError
from .protocols import Backend, SessionStore, TaskStore
from .remote_store import RemoteClient, RemoteSessionStore, RemoteStoreError, RemoteTaskStore
from .session_store import SqliteSessionStore
from .sqlite_init import init_db
from .task_store import SqliteTaskStore

log = structlog.get_logger()


class SqliteBackend:
    """本地后端 -- Store 实例共享同一个数据库连接和写锁"""

    name = "sqlite"

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        write_lock = asyncio.Lock()
        self.task_store = SqliteTaskStore(conn, write_lock)
        self.session_store = SqliteSessionStore(conn, write_lock)

    async def ping(self) -> None:
        try:
            cursor = await self.conn.execute("SELECT 1")
            await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError(f"sqlite unavailable: {e}", e) from e

    async def close(self) -> None:
        await self.conn.close()


class RemoteBackend:
    """远程多租户后端 -- Store 实例共享同一个 HTTP 客户端"""

    name = "remote"

    def __init__(self, client: RemoteClient) -> None:
        self.client = client
        self.task_store = RemoteTaskStore(client)
        self.session_store = RemoteSessionStore(client)

    async def ping(self) -> None:
        await self.client.request("GET", "tasks", [("select", "id"), ("limit", "1")])

    async def close(self) -> None:
        await self.client.aclose()


async def open_sqlite_backend(db_path: str) -> SqliteBackend:
    """打开（必要时创建）SQLite 数据库并初始化表结构

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        SqliteBackend 实例
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    await init_db(conn)
    return SqliteBackend(conn)


def open_remote_backend(
    base_url: str,
    api_key: str,
    timeout_s: int = 10,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RemoteBackend:
    """创建 PostgREST 后端

    Args:
        base_url: 服务基础 URL（不含 /rest/v1）
        api_key: service role key，同时作为 apikey 与 Bearer 发送
        timeout_s: 请求超时（秒）
        transport: 自定义 httpx transport（测试注入）
    """
    http = httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        headers={"apikey": api_key, "Authorization": f"Bearer {api_key}"},
        timeout=timeout_s,
        transport=transport,
    )
    return RemoteBackend(RemoteClient(http))


async def create_backend(config: BackendConfig) -> Backend:
    """根据配置创建后端实例"""
    if config.backend == "remote":
        if not config.remote_url:
            raise StorageError("TASKLOG_REMOTE_URL is required for the remote backend")
        backend: Backend = open_remote_backend(
            config.remote_url,
            config.remote_key.get_secret_value(),
            timeout_s=config.remote_timeout_s,
        )
        log.info("backend_initialized", backend="remote", url=config.remote_url)
        return backend

    backend = await open_sqlite_backend(config.db_path)
    log.info("backend_initialized", backend="sqlite", db_path=config.db_path)
    return backend


__all__ = [
    "Backend",
    "TaskStore",
    "SessionStore",
    "SqliteBackend",
    "RemoteBackend",
    "RemoteClient",
    "RemoteStoreError",
    "SqliteTaskStore",
    "SqliteSessionStore",
    "RemoteTaskStore",
    "RemoteSessionStore",
    "create_backend",
    "open_sqlite_backend",
    "open_remote_backend",
    "init_db",
]

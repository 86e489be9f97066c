"""远程多租户存储 -- PostgREST（Supabase REST）实现

通过 httpx.AsyncClient 访问 /rest/v1/tasks 与 /rest/v1/work_sessions。
每个请求都带 owner_id 过滤；远端表需要与本地相同的部分唯一索引
（work_sessions(owner_id) WHERE end_at IS NULL），冲突时返回 HTTP 409。

远端没有跨请求事务：会话切换严格先关闭旧会话再插入新会话，
中途失败最多留下“旧会话已关闭、新会话未开始”，不会出现两个 open 会话。
"""

from datetime import datetime
from typing import Any

import httpx
import structlog

from ..exceptions import OpenSessionConflictError, StorageError, UnauthorizedError
from ..models.enums import STATUS_ORDER, TaskStatus
from ..models.session import WorkSession
from ..models.task import Task
from ..timecalc import EPOCH, format_instant

log = structlog.get_logger()

_REST_PREFIX = "/rest/v1"


class RemoteStoreError(StorageError):
    """远端返回非 2xx 或传输失败"""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.status_code = status_code


def _quoted(value: str) -> str:
    """PostgREST 逻辑表达式中的值需要加引号（含 : . + 等保留字符）"""
    return f'"{value}"'


class RemoteClient:
    """PostgREST HTTP 客户端封装"""

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    async def request(
        self,
        method: str,
        table: str,
        params: list[tuple[str, str]],
        json: dict[str, Any] | None = None,
        returning: bool = False,
    ) -> list[dict[str, Any]]:
        headers = {"Prefer": "return=representation"} if returning else {}
        resp = await self._send(method, table, params, json=json, headers=headers)
        if resp.status_code == 204 or not resp.content:
            return []
        data = resp.json()
        return data if isinstance(data, list) else [data]

    async def count(self, table: str, params: list[tuple[str, str]]) -> int:
        """服务端精确计数，不受 max-rows 截断影响"""
        resp = await self._send("HEAD", table, params, headers={"Prefer": "count=exact"})
        content_range = resp.headers.get("content-range", "")
        _, _, total = content_range.partition("/")
        if not total.isdigit():
            raise RemoteStoreError(
                f"remote store returned no exact count: {content_range!r}",
                status_code=resp.status_code,
            )
        return int(total)

    async def _send(
        self,
        method: str,
        table: str,
        params: list[tuple[str, str]],
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            resp = await self._http.request(
                method,
                f"{_REST_PREFIX}/{table}",
                params=params,
                json=json,
                headers=headers,
            )
        except httpx.HTTPError as e:
            log.error(
                "remote_request_failed",
                method=method,
                table=table,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise RemoteStoreError(f"remote store unreachable: {e}", original_error=e) from e

        if resp.status_code >= 400:
            log.warning(
                "remote_request_rejected",
                method=method,
                table=table,
                status_code=resp.status_code,
            )
            raise RemoteStoreError(
                f"remote store returned {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )
        return resp

    async def resolve_user(self, token: str) -> str:
        """通过远端认证接口解析 bearer token 对应的用户 ID"""
        try:
            resp = await self._http.get(
                "/auth/v1/user",
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"auth endpoint unreachable: {e}", original_error=e) from e
        if resp.status_code in (401, 403):
            raise UnauthorizedError("invalid or expired token")
        if resp.status_code >= 400:
            raise RemoteStoreError(
                f"auth endpoint returned {resp.status_code}",
                status_code=resp.status_code,
            )
        user_id = resp.json().get("id")
        if not user_id:
            raise UnauthorizedError("token has no user")
        return str(user_id)

    async def aclose(self) -> None:
        await self._http.aclose()


class RemoteTaskStore:
    """TaskStore 的 PostgREST 实现"""

    _TABLE = "tasks"

    def __init__(self, client: RemoteClient) -> None:
        self._client = client

    async def list_tasks(
        self, owner_id: str, status: TaskStatus | None = None
    ) -> list[Task]:
        params = [("select", "*"), ("owner_id", f"eq.{owner_id}")]
        if status:
            params.append(("status", f"eq.{status.value}"))
        rows = await self._client.request("GET", self._TABLE, params)
        return self._sort_tasks([Task.model_validate(row) for row in rows])

    async def get_task(self, owner_id: str, task_id: str) -> Task | None:
        rows = await self._client.request(
            "GET",
            self._TABLE,
            [("select", "*"), ("id", f"eq.{task_id}"), ("owner_id", f"eq.{owner_id}")],
        )
        return Task.model_validate(rows[0]) if rows else None

    async def insert_task(self, task: Task) -> None:
        await self._client.request(
            "POST", self._TABLE, [], json=self._task_to_row(task), returning=True
        )

    async def update_task(self, task: Task) -> bool:
        row = self._task_to_row(task)
        for key in ("id", "owner_id", "created_at"):
            row.pop(key)
        rows = await self._client.request(
            "PATCH",
            self._TABLE,
            [("id", f"eq.{task.id}"), ("owner_id", f"eq.{task.owner_id}")],
            json=row,
            returning=True,
        )
        return len(rows) > 0

    async def delete_task(self, owner_id: str, task_id: str) -> bool:
        rows = await self._client.request(
            "DELETE",
            self._TABLE,
            [("id", f"eq.{task_id}"), ("owner_id", f"eq.{owner_id}")],
            returning=True,
        )
        return len(rows) > 0

    async def count_completed(
        self, owner_id: str, window_from: datetime, window_to: datetime
    ) -> int:
        return await self._client.count(
            self._TABLE,
            [
                ("owner_id", f"eq.{owner_id}"),
                ("status", f"eq.{TaskStatus.DONE.value}"),
                ("updated_at", f"gte.{format_instant(window_from)}"),
                ("updated_at", f"lt.{format_instant(window_to)}"),
            ],
        )

    @staticmethod
    def _sort_tasks(tasks: list[Task]) -> list[Task]:
        """与 SqliteTaskStore 的 ORDER BY 一致：稳定排序从最低优先级键开始"""
        tasks.sort(key=lambda t: t.id)
        tasks.sort(key=lambda t: t.updated_at, reverse=True)
        tasks.sort(key=lambda t: (STATUS_ORDER[t.status], t.due is None, t.due or EPOCH))
        return tasks

    @staticmethod
    def _task_to_row(task: Task) -> dict[str, Any]:
        return {
            "id": task.id,
            "owner_id": task.owner_id,
            "title": task.title,
            "note": task.note,
            "status": task.status.value,
            "priority": task.priority.value,
            "due": format_instant(task.due) if task.due else None,
            "created_at": format_instant(task.created_at),
            "updated_at": format_instant(task.updated_at),
        }


class RemoteSessionStore:
    """SessionStore 的 PostgREST 实现"""

    _TABLE = "work_sessions"
    _ORDER = ("order", "start_at.asc,id.asc")

    def __init__(self, client: RemoteClient) -> None:
        self._client = client

    async def get_open_session(self, owner_id: str) -> WorkSession | None:
        rows = await self._client.request(
            "GET",
            self._TABLE,
            [
                ("select", "*"),
                ("owner_id", f"eq.{owner_id}"),
                ("end_at", "is.null"),
                ("limit", "1"),
            ],
        )
        return WorkSession.model_validate(rows[0]) if rows else None

    async def switch_session(
        self, new_session: WorkSession, now: datetime
    ) -> WorkSession | None:
        """先关闭旧会话，再插入新会话"""
        closed = await self.close_open_session(new_session.owner_id, now)
        try:
            await self._client.request(
                "POST",
                self._TABLE,
                [],
                json={
                    "id": new_session.id,
                    "task_id": new_session.task_id,
                    "owner_id": new_session.owner_id,
                    "start_at": format_instant(new_session.start_at),
                    "end_at": None,
                },
                returning=True,
            )
        except RemoteStoreError as e:
            if e.status_code == 409:
                raise OpenSessionConflictError(new_session.owner_id, e) from e
            raise
        return closed

    async def close_open_session(
        self, owner_id: str, now: datetime, task_id: str | None = None
    ) -> WorkSession | None:
        params = [("owner_id", f"eq.{owner_id}"), ("end_at", "is.null")]
        if task_id is not None:
            params.append(("task_id", f"eq.{task_id}"))
        rows = await self._client.request(
            "PATCH",
            self._TABLE,
            params,
            json={"end_at": format_instant(now)},
            returning=True,
        )
        return WorkSession.model_validate(rows[0]) if rows else None

    async def list_sessions_for_task(
        self, owner_id: str, task_id: str
    ) -> list[WorkSession]:
        rows = await self._client.request(
            "GET",
            self._TABLE,
            [
                ("select", "*"),
                ("owner_id", f"eq.{owner_id}"),
                ("task_id", f"eq.{task_id}"),
                self._ORDER,
            ],
        )
        return [WorkSession.model_validate(row) for row in rows]

    async def list_sessions_in_range(
        self, owner_id: str, window_from: datetime, window_to: datetime
    ) -> list[WorkSession]:
        params = [
            ("select", "*"),
            ("owner_id", f"eq.{owner_id}"),
            ("start_at", f"lt.{format_instant(window_to)}"),
        ]
        if window_from < window_to:
            # 进行中会话视为延伸到 to，窗口非空时必须命中
            lower = _quoted(format_instant(window_from))
            params.append(("or", f"(end_at.is.null,end_at.gt.{lower})"))
        else:
            params.append(("end_at", f"gt.{format_instant(window_from)}"))
        params.append(self._ORDER)
        rows = await self._client.request("GET", self._TABLE, params)
        return [WorkSession.model_validate(row) for row in rows]
